# Overview: Shared request parsing and error mapping for API routes.

from __future__ import annotations

from datetime import datetime
from functools import wraps

from flask import Response, current_app, jsonify, request

from ..services.auth_service import AuthError, PasswordValidationError
from ..services.customer_service import CustomerError
from ..services.debt_service import DebtError
from ..services.expense_service import ExpenseError
from ..services.export_service import ExportError
from ..services.purchase_order_service import PurchaseOrderError
from ..services.return_service import ReturnError
from ..services.stock_service import StockError
from ..services.transaction_service import TransactionError
from ..services.user_service import UserError
from ..validation import ConflictError, NotFoundError, ValidationError
from retail_pos.time_utils import end_of_day, parse_iso_date, parse_iso_datetime, start_of_day

# Business rule failures reported to the client as 400
BAD_REQUEST_ERRORS = (
    ValidationError,
    PasswordValidationError,
    AuthError,
    CustomerError,
    DebtError,
    ExpenseError,
    ExportError,
    PurchaseOrderError,
    ReturnError,
    StockError,
    TransactionError,
    UserError,
)


def error_response(exc: Exception):
    """Map a known service exception to (json, status); None if unknown."""
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, BAD_REQUEST_ERRORS):
        body = {"error": str(exc)}
        details = getattr(exc, "details", None)
        if details:
            body["details"] = details
        return jsonify(body), 400
    return None


def handle_errors(log_message: str):
    """
    Wrap a route so service exceptions become JSON errors.

    Anything unexpected is logged with a traceback and reported as 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except Exception as e:
                mapped = error_response(e)
                if mapped is not None:
                    return mapped
                current_app.logger.exception(log_message)
                return jsonify({"error": "Internal server error"}), 500
        return decorated_function
    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _parse_bound(value: str | None, *, is_end: bool) -> datetime | None:
    if not value:
        return None
    try:
        if len(value.strip()) == 10:
            d = parse_iso_date(value)
            return end_of_day(d) if is_end else start_of_day(d)
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def parse_datetime_range(args) -> tuple[datetime | None, datetime | None]:
    """?start_date=&end_date= as datetimes; a bare date covers the whole day."""
    return (
        _parse_bound(args.get("start_date"), is_end=False),
        _parse_bound(args.get("end_date"), is_end=True),
    )


def parse_date_range(args):
    """?start_date=&end_date= as calendar dates."""
    try:
        return parse_iso_date(args.get("start_date")), parse_iso_date(args.get("end_date"))
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 dates")


def optional_int(args, name: str) -> int | None:
    value = args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def csv_response(text: str, filename: str) -> Response:
    return Response(
        text,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
