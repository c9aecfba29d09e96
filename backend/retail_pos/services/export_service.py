# Overview: CSV rendering for transaction and debt exports.

"""
CSV Export

Rows are flat dicts; the header comes from the first row's keys.
- None -> empty cell
- money columns are pre-formatted with format_money ("10.00")
- datetimes -> "YYYY-MM-DD HH:MM:SS"
- cells containing a comma, quote or newline are quoted, quotes doubled
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime

CSV_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExportError(Exception):
    """Raised when an export cannot be produced."""
    pass


def format_money(cents: int | None) -> str | None:
    """Integer cents as a major-unit amount with two decimals, e.g. 1005 -> "10.05"."""
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    major, minor = divmod(abs(int(cents)), 100)
    return f"{sign}{major}.{minor:02d}"


def format_cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(CSV_DATETIME_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_csv(rows: list[dict]) -> str:
    if not rows:
        raise ExportError("No data to export")

    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([format_cell(row.get(h)) for h in headers])
    return buffer.getvalue()


def export_filename(prefix: str, today: date) -> str:
    return f"{prefix}-{today.isoformat()}.csv"
