# Overview: Flask API routes for the customer credit (debt) ledger.

"""
Debt routes.

SECURITY:
- VIEW_DEBTS for lists, summaries and detail
- RECORD_DEBT_PAYMENT to record a payment
"""

from flask import Blueprint, request, jsonify, g

from ..services import debt_service
from ..services.export_service import export_filename, to_csv
from ..validation import ValidationError, parse_pagination
from ..decorators import require_auth, require_permission
from retail_pos.time_utils import parse_iso_datetime, utcnow
from .helpers import csv_response, handle_errors, json_body, optional_int, parse_datetime_range

debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


def _filters() -> dict:
    start, end = parse_datetime_range(request.args)
    return {
        "search": request.args.get("search"),
        "start": start,
        "end": end,
        "customer_id": optional_int(request.args, "customer_id"),
    }


@debts_bp.get("")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to list debts")
def list_debts_route():
    """
    Query params:
    - search, start_date, end_date, customer_id
    - sort_by: date | amount | customer | daysOverdue (default date)
    - sort_order: asc | desc (default desc)
    - page, per_page
    """
    page, per_page = parse_pagination(request.args)
    result = debt_service.list_debts(
        tenant_id=g.tenant_id,
        sort_by=request.args.get("sort_by", "date"),
        sort_order=request.args.get("sort_order", "desc"),
        page=page,
        per_page=per_page,
        **_filters(),
    )
    return jsonify(result)


@debts_bp.get("/summary")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to load debt summary")
def debt_summary_route():
    return jsonify(debt_service.debt_summary(tenant_id=g.tenant_id))


@debts_bp.get("/by-customer")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to group debts by customer")
def debts_by_customer_route():
    groups = debt_service.debts_by_customer(tenant_id=g.tenant_id, search=request.args.get("search"))
    return jsonify({"items": groups, "count": len(groups)})


@debts_bp.get("/export")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to export debts")
def export_debts_route():
    rows = debt_service.export_rows(tenant_id=g.tenant_id, **_filters())
    return csv_response(to_csv(rows), export_filename("debts", utcnow().date()))


@debts_bp.get("/<int:transaction_id>")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to get debt")
def get_debt_route(transaction_id: int):
    return jsonify(debt_service.get_debt(tenant_id=g.tenant_id, transaction_id=transaction_id))


@debts_bp.get("/<int:transaction_id>/payments")
@require_auth
@require_permission("VIEW_DEBTS")
@handle_errors("Failed to load payment history")
def payment_history_route(transaction_id: int):
    payments = debt_service.payment_history(tenant_id=g.tenant_id, transaction_id=transaction_id)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})


@debts_bp.post("/<int:transaction_id>/payments")
@require_auth
@require_permission("RECORD_DEBT_PAYMENT")
@handle_errors("Failed to record debt payment")
def record_payment_route(transaction_id: int):
    """
    Request body:
    {
        "amount_cents": 500,
        "payment_method": "cash" | "mpesa" | "bank",
        "notes": "...",                  (optional)
        "payment_date": "2024-01-31T10:00:00Z"  (optional, default now)
    }
    """
    data = json_body()
    payment_date = None
    if data.get("payment_date"):
        try:
            payment_date = parse_iso_datetime(data["payment_date"])
        except ValueError:
            raise ValidationError("payment_date must be an ISO-8601 datetime")

    payment, txn = debt_service.record_debt_payment(
        tenant_id=g.tenant_id,
        transaction_id=transaction_id,
        amount_cents=data.get("amount_cents"),
        payment_method=data.get("payment_method"),
        user_id=g.current_user.id,
        notes=data.get("notes"),
        payment_date=payment_date,
    )
    return jsonify({"payment": payment.to_dict(), "transaction": txn.to_dict()}), 201
