# Overview: Flask API routes for checkout and transaction history.

"""
Transaction (checkout) routes.

SECURITY:
- CREATE_SALE to check out
- VIEW_TRANSACTIONS to browse history
- EXPORT_TRANSACTIONS for the CSV download
"""

from flask import Blueprint, request, jsonify, g

from ..services import transaction_service
from ..services.export_service import export_filename, to_csv
from ..validation import parse_pagination
from ..decorators import require_auth, require_permission
from retail_pos.time_utils import utcnow
from .helpers import csv_response, handle_errors, json_body, optional_int, parse_datetime_range

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _filters() -> dict:
    start, end = parse_datetime_range(request.args)
    return {
        "start": start,
        "end": end,
        "payment_method": request.args.get("payment_method"),
        "status": request.args.get("status"),
        "customer_id": optional_int(request.args, "customer_id"),
        "search": request.args.get("search"),
    }


@transactions_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
@handle_errors("Failed to create transaction")
def create_transaction_route():
    """
    Check out a cart.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 150}],
        "payment_method": "cash" | "mpesa" | "bank" | "debt",
        "customer_id": 5,                (required for debt)
        "discount_value": 10,            (0-100 = percent, larger = cents)
        "discount_type": "fixed",        (optional override)
        "amount_tendered_cents": 5000    (required for cash)
    }

    Returns:
        201: Transaction with items
        400: Empty cart, insufficient stock, tender or credit failure
        404: Product or customer not found
    """
    data = json_body()
    txn = transaction_service.create_transaction(
        tenant_id=g.tenant_id,
        user_id=g.current_user.id,
        items=data.get("items"),
        payment_method=data.get("payment_method"),
        customer_id=data.get("customer_id"),
        discount_value=data.get("discount_value", 0),
        discount_type=data.get("discount_type"),
        amount_tendered_cents=data.get("amount_tendered_cents"),
    )
    return jsonify(txn.to_dict(include_items=True)), 201


@transactions_bp.get("")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
@handle_errors("Failed to list transactions")
def list_transactions_route():
    """Query params: start_date, end_date, payment_method, status, customer_id, search, page, per_page"""
    page, per_page = parse_pagination(request.args)
    result = transaction_service.list_transactions(
        tenant_id=g.tenant_id,
        page=page,
        per_page=per_page,
        **_filters(),
    )
    return jsonify(result)


@transactions_bp.get("/export")
@require_auth
@require_permission("EXPORT_TRANSACTIONS")
@handle_errors("Failed to export transactions")
def export_transactions_route():
    rows = transaction_service.export_rows(tenant_id=g.tenant_id, **_filters())
    return csv_response(to_csv(rows), export_filename("transactions", utcnow().date()))


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
@handle_errors("Failed to get transaction")
def get_transaction_route(transaction_id: int):
    return jsonify(transaction_service.get_transaction(tenant_id=g.tenant_id, transaction_id=transaction_id))
