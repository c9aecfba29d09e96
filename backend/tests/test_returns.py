# Overview: Pytest coverage for the return lifecycle (create, approve, reject, revert).

import pytest

from retail_pos.models import Product, Return, StockHistory
from retail_pos.services import return_service, transaction_service
from retail_pos.services.return_service import ReturnError

from conftest import auth_headers


@pytest.fixture
def sale(db_session, tenant_a, admin_a, product_a, product_a2):
    """Sold 5 sugar and 2 milk; stock is now 15 and 18."""
    return transaction_service.create_transaction(
        tenant_id=tenant_a.id,
        user_id=admin_a.id,
        items=[
            {"product_id": product_a.id, "quantity": 5},
            {"product_id": product_a2.id, "quantity": 2},
        ],
        payment_method="mpesa",
    )


def _line(sale, product):
    return next(item for item in sale.items if item.product_id == product.id)


def _stock(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).stock_quantity


class TestCreateReturn:
    def test_create_is_pending_and_leaves_stock(self, client, db_session, admin_a, sale, product_a):
        resp = client.post("/api/returns", headers=auth_headers(admin_a), json={
            "transaction_id": sale.id,
            "reason": "Torn bag",
            "items": [{"transaction_item_id": _line(sale, product_a).id, "quantity": 2}],
        })

        assert resp.status_code == 201
        assert resp.json["status"] == "pending"
        assert resp.json["return_number"] == "RET-000001"
        assert resp.json["total_amount_cents"] == 2000
        assert resp.json["transaction_number"] == sale.transaction_number
        assert _stock(db_session, product_a) == 15

    def test_cannot_return_more_than_sold(self, db_session, tenant_a, admin_a, sale, product_a):
        line_id = _line(sale, product_a).id
        return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": line_id, "quantity": 4}],
        )
        with pytest.raises(ReturnError) as excinfo:
            return_service.create_return(
                tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
                items=[{"transaction_item_id": line_id, "quantity": 2}],
            )
        assert excinfo.value.details["items"][0]["returnable_quantity"] == 1

    def test_rejected_returns_free_the_quantity(self, db_session, tenant_a, admin_a, sale, product_a):
        line_id = _line(sale, product_a).id
        first = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": line_id, "quantity": 5}],
        )
        return_service.reject_return(tenant_id=tenant_a.id, return_id=first.id, user_id=admin_a.id)

        second = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": line_id, "quantity": 5}],
        )
        assert second.status == "pending"

    def test_item_must_belong_to_transaction(self, client, admin_a, sale):
        resp = client.post("/api/returns", headers=auth_headers(admin_a), json={
            "transaction_id": sale.id,
            "items": [{"transaction_item_id": 99999, "quantity": 1}],
        })
        assert resp.status_code == 400

    def test_items_required(self, client, admin_a, sale):
        resp = client.post("/api/returns", headers=auth_headers(admin_a), json={"transaction_id": sale.id, "items": []})
        assert resp.status_code == 400

    def test_non_string_reason_rejected(self, client, db_session, admin_a, sale, product_a):
        resp = client.post("/api/returns", headers=auth_headers(admin_a), json={
            "transaction_id": sale.id,
            "items": [{"transaction_item_id": _line(sale, product_a).id, "quantity": 1}],
            "reason": 5,
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "reason must be a string"
        assert db_session.query(Return).count() == 0

    def test_sales_person_can_file_return(self, client, sales_a, sale, product_a):
        resp = client.post("/api/returns", headers=auth_headers(sales_a), json={
            "transaction_id": sale.id,
            "items": [{"transaction_item_id": _line(sale, product_a).id, "quantity": 1}],
        })
        assert resp.status_code == 201


class TestApproveReject:
    def _pending(self, tenant_a, admin_a, sale, product, quantity):
        return return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": _line(sale, product).id, "quantity": quantity}],
        )

    def test_approve_restores_stock(self, client, db_session, tenant_a, admin_a, sale, product_a):
        pending = self._pending(tenant_a, admin_a, sale, product_a, 3)

        resp = client.post(f"/api/returns/{pending.id}/approve", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        assert resp.json["status"] == "approved"
        assert resp.json["approved_by"] == admin_a.id
        assert resp.json["approved_at"] is not None
        assert _stock(db_session, product_a) == 18

        history = db_session.query(StockHistory).filter_by(type="return").one()
        assert history.quantity_change == 3
        assert history.reference_id == pending.id
        assert history.reason == f"Return approved: {pending.return_number}"

    def test_reject_leaves_stock(self, client, db_session, tenant_a, admin_a, sale, product_a):
        pending = self._pending(tenant_a, admin_a, sale, product_a, 3)
        resp = client.post(f"/api/returns/{pending.id}/reject", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        assert resp.json["status"] == "rejected"
        assert _stock(db_session, product_a) == 15

    def test_cannot_approve_twice(self, client, tenant_a, admin_a, sale, product_a):
        pending = self._pending(tenant_a, admin_a, sale, product_a, 1)
        headers = auth_headers(admin_a)
        client.post(f"/api/returns/{pending.id}/approve", headers=headers)

        resp = client.post(f"/api/returns/{pending.id}/approve", headers=headers)
        assert resp.status_code == 400
        assert "Can only approve pending returns" in resp.json["error"]


class TestRevert:
    def _approved(self, tenant_a, admin_a, sale, product, quantity):
        pending = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": _line(sale, product).id, "quantity": quantity}],
        )
        return return_service.approve_return(tenant_id=tenant_a.id, return_id=pending.id, user_id=admin_a.id)

    def test_revert_approved_removes_stock_again(self, client, db_session, tenant_a, admin_a, sale, product_a):
        approved = self._approved(tenant_a, admin_a, sale, product_a, 3)
        assert _stock(db_session, product_a) == 18

        resp = client.post(f"/api/returns/{approved.id}/revert", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        assert resp.json["status"] == "pending"
        assert resp.json["approved_by"] is None
        assert resp.json["approved_at"] is None
        assert _stock(db_session, product_a) == 15

        reverted = db_session.query(StockHistory).filter_by(type="adjustment").one()
        assert reverted.quantity_change == -3
        assert reverted.reason == f"Return reverted: {approved.return_number}"

    def test_revert_fails_when_stock_was_sold(self, db_session, tenant_a, admin_a, sale, product_a):
        approved = self._approved(tenant_a, admin_a, sale, product_a, 5)

        # Sell everything, including the returned units
        transaction_service.create_transaction(
            tenant_id=tenant_a.id, user_id=admin_a.id,
            items=[{"product_id": product_a.id, "quantity": 20}],
            payment_method="cash", amount_tendered_cents=20000,
        )

        with pytest.raises(ReturnError, match="would go negative"):
            return_service.revert_return_to_pending(tenant_id=tenant_a.id, return_id=approved.id, user_id=admin_a.id)

        db_session.expire_all()
        assert db_session.get(Return, approved.id).status == "approved"
        assert db_session.get(Product, product_a.id).stock_quantity == 0

    def test_revert_rejected_only_changes_status(self, db_session, tenant_a, admin_a, sale, product_a):
        pending = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": _line(sale, product_a).id, "quantity": 2}],
        )
        return_service.reject_return(tenant_id=tenant_a.id, return_id=pending.id, user_id=admin_a.id)
        history_before = db_session.query(StockHistory).count()

        reverted = return_service.revert_return_to_pending(tenant_id=tenant_a.id, return_id=pending.id, user_id=admin_a.id)

        assert reverted.status == "pending"
        assert db_session.query(StockHistory).count() == history_before
        assert _stock(db_session, product_a) == 15

    def test_pending_cannot_be_reverted(self, db_session, tenant_a, admin_a, sale, product_a):
        pending = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": _line(sale, product_a).id, "quantity": 1}],
        )
        with pytest.raises(ReturnError):
            return_service.revert_return_to_pending(tenant_id=tenant_a.id, return_id=pending.id, user_id=admin_a.id)


class TestReturnQueries:
    def test_list_filters_by_status_and_search(self, client, tenant_a, admin_a, sale, product_a):
        pending = return_service.create_return(
            tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
            items=[{"transaction_item_id": _line(sale, product_a).id, "quantity": 1}],
        )
        headers = auth_headers(admin_a)

        assert client.get("/api/returns?status=pending", headers=headers).json["count"] == 1
        assert client.get("/api/returns?status=approved", headers=headers).json["count"] == 0
        assert client.get(f"/api/returns?search={sale.transaction_number}", headers=headers).json["count"] == 1

        detail = client.get(f"/api/returns/{pending.id}", headers=headers).json
        assert detail["items"][0]["quantity"] == 1
