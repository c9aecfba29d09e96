"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Sales people are denied admin-only operations (403)
- Sales people can still sell, look up customers and file returns
- Denials are recorded as security events
"""

import pytest

from retail_pos.models import SecurityEvent
from retail_pos.models.auth import VALID_ROLES
from retail_pos.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    PermissionCategory,
    get_all_permission_codes,
    validate_permission_code,
)

from conftest import auth_headers


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("POST", "/api/stock/1/adjust"),
            ("GET", "/api/customers"),
            ("POST", "/api/transactions"),
            ("GET", "/api/debts"),
            ("GET", "/api/returns"),
            ("GET", "/api/purchase-orders"),
            ("GET", "/api/expenses"),
            ("GET", "/api/dashboard/kpis"),
            ("GET", "/api/users"),
            ("GET", "/api/tenant"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# SALES PERSON DENIED ADMIN OPERATIONS - 403
# =============================================================================


class TestSalesPersonDenied:
    """sales_person cannot manage catalog, money or staff."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("PUT", "/api/products/1"),
            ("POST", "/api/products/1/archive"),
            ("POST", "/api/stock/1/adjust"),
            ("GET", "/api/stock/1/history"),
            ("PUT", "/api/customers/1"),
            ("GET", "/api/transactions/export"),
            ("GET", "/api/debts"),
            ("POST", "/api/debts/1/payments"),
            ("POST", "/api/returns/1/approve"),
            ("POST", "/api/returns/1/revert"),
            ("GET", "/api/purchase-orders"),
            ("GET", "/api/expenses"),
            ("GET", "/api/dashboard/kpis"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("PATCH", "/api/tenant/settings"),
        ],
    )
    def test_denied(self, client, sales_a, method, path):
        resp = getattr(client, method.lower())(path, headers=auth_headers(sales_a), json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_denial_is_logged(self, client, db_session, sales_a):
        client.get("/api/users", headers=auth_headers(sales_a))
        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == sales_a.id
        assert event.tenant_id == sales_a.tenant_id


class TestSalesPersonAllowed:
    def test_can_browse_products(self, client, sales_a, product_a):
        resp = client.get("/api/products", headers=auth_headers(sales_a))
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_can_check_out(self, client, sales_a, product_a):
        resp = client.post("/api/transactions", headers=auth_headers(sales_a), json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "payment_method": "mpesa",
        })
        assert resp.status_code == 201

    def test_can_create_customer(self, client, sales_a):
        resp = client.post("/api/customers", headers=auth_headers(sales_a), json={"name": "New Buyer"})
        assert resp.status_code == 201

    def test_permissions_in_session_payload(self, client, sales_a):
        resp = client.get("/api/auth/me", headers=auth_headers(sales_a))
        permissions = set(resp.json["permissions"])
        assert "CREATE_SALE" in permissions
        assert "MANAGE_PRODUCTS" not in permissions
        assert "APPROVE_RETURNS" not in permissions


class TestPermissionCatalog:
    def test_every_role_has_a_permission_set(self):
        assert set(DEFAULT_ROLE_PERMISSIONS) == set(VALID_ROLES)

    @pytest.mark.parametrize("role", sorted(DEFAULT_ROLE_PERMISSIONS))
    def test_role_codes_are_defined(self, role):
        unknown = [code for code in DEFAULT_ROLE_PERMISSIONS[role] if not validate_permission_code(code)]
        assert unknown == []

    def test_admin_holds_every_permission(self):
        assert set(DEFAULT_ROLE_PERMISSIONS["admin"]) == set(get_all_permission_codes())

    def test_codes_are_unique(self):
        codes = [definition[0] for definition in PERMISSION_DEFINITIONS]
        assert len(codes) == len(set(codes))

    def test_catalog_marks_granted_codes(self, client, sales_a):
        resp = client.get("/api/auth/permissions", headers=auth_headers(sales_a))

        assert resp.status_code == 200
        assert resp.json["role"] == "sales_person"
        sales = {p["code"]: p["granted"] for p in resp.json["categories"][PermissionCategory.SALES]}
        assert sales["CREATE_SALE"] is True
        inventory = {p["code"]: p["granted"] for p in resp.json["categories"][PermissionCategory.INVENTORY]}
        assert inventory["MANAGE_PRODUCTS"] is False
