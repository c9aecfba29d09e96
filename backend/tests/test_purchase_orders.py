# Overview: Pytest coverage for purchase orders and receiving.

import pytest

from retail_pos.models import Product, PurchaseOrder, PurchaseOrderItem, StockHistory
from retail_pos.services import purchase_order_service
from retail_pos.services.purchase_order_service import PurchaseOrderError

from conftest import auth_headers


@pytest.fixture
def draft_po(db_session, tenant_a, admin_a, product_a, product_a2):
    return purchase_order_service.create_purchase_order(
        tenant_id=tenant_a.id,
        user_id=admin_a.id,
        supplier_name="Mombasa Wholesalers",
        supplier_contact="0700 111 222",
        items=[
            {"product_id": product_a.id, "quantity": 24, "cost_per_unit_cents": 550},
            {"product_id": product_a2.id, "quantity": 10, "cost_per_unit_cents": 120},
        ],
    )


class TestCreateAndEdit:
    def test_create_computes_totals(self, client, admin_a, product_a):
        resp = client.post("/api/purchase-orders", headers=auth_headers(admin_a), json={
            "supplier_name": "Acme Wholesale",
            "items": [{"product_id": product_a.id, "quantity": 12, "cost_per_unit_cents": 80}],
            "expected_date": "2024-02-01",
        })

        assert resp.status_code == 201
        body = resp.json
        assert body["status"] == "draft"
        assert body["po_number"] == "PO-000001"
        assert body["total_cost_cents"] == 960
        assert body["expected_date"] == "2024-02-01"
        assert body["items"][0]["total_cost_cents"] == 960
        assert body["items"][0]["product_name"] == "Sugar 1kg"

    def test_supplier_required(self, client, admin_a, product_a):
        resp = client.post("/api/purchase-orders", headers=auth_headers(admin_a), json={
            "supplier_name": "  ",
            "items": [{"product_id": product_a.id, "quantity": 1, "cost_per_unit_cents": 1}],
        })
        assert resp.status_code == 400

    @pytest.mark.parametrize("extra", [
        {"notes": 5},
        {"supplier_contact": {"phone": "0700"}},
        {"expected_date": 20240201},
    ])
    def test_non_string_fields_rejected(self, client, db_session, admin_a, product_a, extra):
        resp = client.post("/api/purchase-orders", headers=auth_headers(admin_a), json={
            "supplier_name": "Acme",
            "items": [{"product_id": product_a.id, "quantity": 1, "cost_per_unit_cents": 1}],
            **extra,
        })
        assert resp.status_code == 400
        assert db_session.query(PurchaseOrder).count() == 0

    def test_non_string_item_name_rejected(self, client, admin_a, product_a):
        resp = client.post("/api/purchase-orders", headers=auth_headers(admin_a), json={
            "supplier_name": "Acme",
            "items": [{"product_id": product_a.id, "quantity": 1, "cost_per_unit_cents": 1, "product_name": 7}],
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "items[0].product_name must be a string"

    def test_items_must_be_in_tenant(self, client, admin_a, product_b):
        resp = client.post("/api/purchase-orders", headers=auth_headers(admin_a), json={
            "supplier_name": "Acme",
            "items": [{"product_id": product_b.id, "quantity": 1, "cost_per_unit_cents": 1}],
        })
        assert resp.status_code == 404

    def test_update_replaces_items(self, client, db_session, admin_a, draft_po, product_a):
        resp = client.put(f"/api/purchase-orders/{draft_po.id}", headers=auth_headers(admin_a), json={
            "items": [{"product_id": product_a.id, "quantity": 2, "cost_per_unit_cents": 500}],
        })

        assert resp.status_code == 200
        assert resp.json["total_cost_cents"] == 1000
        assert len(resp.json["items"]) == 1
        assert db_session.query(PurchaseOrderItem).count() == 1

    def test_suppliers_are_unique(self, db_session, tenant_a, admin_a, product_a, draft_po):
        purchase_order_service.create_purchase_order(
            tenant_id=tenant_a.id, user_id=admin_a.id,
            supplier_name="Mombasa Wholesalers", supplier_contact="0700 111 222",
            items=[{"product_id": product_a.id, "quantity": 1, "cost_per_unit_cents": 1}],
        )
        suppliers = purchase_order_service.list_suppliers(tenant_id=tenant_a.id)
        assert suppliers == [{"supplier_name": "Mombasa Wholesalers", "supplier_contact": "0700 111 222"}]


class TestStatusFlow:
    def test_receiving_restocks_and_completes(self, client, db_session, admin_a, draft_po, product_a, product_a2):
        headers = auth_headers(admin_a)
        assert client.post(f"/api/purchase-orders/{draft_po.id}/status", headers=headers,
                           json={"status": "ordered"}).json["status"] == "ordered"

        resp = client.post(f"/api/purchase-orders/{draft_po.id}/status", headers=headers, json={"status": "received"})

        assert resp.status_code == 200
        assert resp.json["status"] == "completed"
        assert resp.json["received_at"] is not None

        db_session.expire_all()
        assert db_session.get(Product, product_a.id).stock_quantity == 44
        assert db_session.get(Product, product_a2.id).stock_quantity == 30

        entries = db_session.query(StockHistory).filter_by(reference_id=draft_po.id, type="restock").all()
        assert len(entries) == 2
        assert {e.reason for e in entries} == {f"Restock from PO {draft_po.po_number}"}

    def test_completed_is_final(self, client, admin_a, draft_po):
        headers = auth_headers(admin_a)
        client.post(f"/api/purchase-orders/{draft_po.id}/status", headers=headers, json={"status": "received"})

        resp = client.post(f"/api/purchase-orders/{draft_po.id}/status", headers=headers, json={"status": "draft"})
        assert resp.status_code == 400

        resp = client.put(f"/api/purchase-orders/{draft_po.id}", headers=headers, json={"notes": "late"})
        assert resp.status_code == 400

    def test_completed_cannot_be_set_directly(self, db_session, tenant_a, admin_a, draft_po):
        with pytest.raises(PurchaseOrderError):
            purchase_order_service.update_status(
                tenant_id=tenant_a.id, po_id=draft_po.id, status="completed", user_id=admin_a.id
            )

    def test_restock_requires_received_status(self, client, admin_a, draft_po):
        resp = client.post(f"/api/purchase-orders/{draft_po.id}/restock", headers=auth_headers(admin_a))
        assert resp.status_code == 400
        assert resp.json["error"] == "Purchase order must be in received status to restock"

    def test_restock_from_received(self, db_session, tenant_a, admin_a, draft_po, product_a):
        # A PO left in received status (e.g. imported) can still be restocked
        po = db_session.get(PurchaseOrder, draft_po.id)
        po.status = "received"
        db_session.commit()

        done = purchase_order_service.restock_from_purchase_order(
            tenant_id=tenant_a.id, po_id=draft_po.id, user_id=admin_a.id
        )
        assert done.status == "completed"
        db_session.expire_all()
        assert db_session.get(Product, product_a.id).stock_quantity == 44


class TestDelete:
    def test_delete_draft(self, client, db_session, admin_a, draft_po):
        resp = client.delete(f"/api/purchase-orders/{draft_po.id}", headers=auth_headers(admin_a))
        assert resp.status_code == 200
        assert db_session.query(PurchaseOrder).count() == 0
        assert db_session.query(PurchaseOrderItem).count() == 0

    def test_cannot_delete_ordered(self, client, admin_a, draft_po):
        headers = auth_headers(admin_a)
        client.post(f"/api/purchase-orders/{draft_po.id}/status", headers=headers, json={"status": "ordered"})
        assert client.delete(f"/api/purchase-orders/{draft_po.id}", headers=headers).status_code == 400
