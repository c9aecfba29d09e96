# Overview: Pytest coverage for expenses, categories and the expense audit trail.

from datetime import date

import pytest

from retail_pos.models import Expense, ExpenseAudit, ExpenseCategory
from retail_pos.services import expense_service
from retail_pos.services.expense_service import ExpenseError
from retail_pos.validation import ConflictError, ValidationError

from conftest import auth_headers


def _category(db_session, tenant, name="Rent"):
    return db_session.query(ExpenseCategory).filter_by(tenant_id=tenant.id, name=name).one()


@pytest.fixture
def rent_expense(db_session, tenant_a, admin_a):
    return expense_service.create_expense(
        tenant_id=tenant_a.id,
        payload={
            "category_id": _category(db_session, tenant_a).id,
            "amount_cents": 150000,
            "expense_date": "2024-01-31",
            "description": "January rent",
        },
        user_id=admin_a.id,
    )


class TestCategories:
    def test_default_categories_seeded(self, client, admin_a):
        resp = client.get("/api/expenses/categories", headers=auth_headers(admin_a))
        names = [c["name"] for c in resp.json["items"]]
        assert "Rent" in names
        assert "Utilities" in names
        assert all(c["is_default"] for c in resp.json["items"])

    def test_seed_is_idempotent(self, client, admin_a):
        resp = client.post("/api/expenses/categories/seed", headers=auth_headers(admin_a))
        assert resp.status_code == 201
        assert resp.json["count"] == 0

    def test_duplicate_name_is_conflict(self, client, admin_a):
        resp = client.post("/api/expenses/categories", headers=auth_headers(admin_a), json={"name": "rent"})
        assert resp.status_code == 409

    def test_categories_are_per_tenant(self, db_session, tenant_b):
        with pytest.raises(ConflictError):
            expense_service.create_category(tenant_id=tenant_b.id, payload={"name": "Rent"})

        created = expense_service.create_category(tenant_id=tenant_b.id, payload={"name": "Security"})
        assert created.is_default is False

    def test_category_in_use_cannot_be_deleted(self, client, db_session, admin_a, tenant_a, rent_expense):
        category = _category(db_session, tenant_a)
        resp = client.delete(f"/api/expenses/categories/{category.id}", headers=auth_headers(admin_a))

        assert resp.status_code == 400
        assert "1 expense(s)" in resp.json["error"]

    def test_unused_category_deleted(self, client, db_session, admin_a, tenant_a):
        category = _category(db_session, tenant_a, "Transport")
        resp = client.delete(f"/api/expenses/categories/{category.id}", headers=auth_headers(admin_a))
        assert resp.status_code == 200
        assert db_session.get(ExpenseCategory, category.id) is None


class TestExpenseCrud:
    def test_create_writes_created_audit(self, db_session, rent_expense):
        assert rent_expense.expense_date == date(2024, 1, 31)
        audits = db_session.query(ExpenseAudit).filter_by(expense_id=rent_expense.id).all()
        assert [a.action for a in audits] == ["created"]
        assert audits[0].to_dict()["changes"]["amount_cents"] == {"old": None, "new": 150000}

    def test_audit_changes_stored_as_json(self, db_session, rent_expense):
        db_session.expire_all()
        audit = db_session.query(ExpenseAudit).filter_by(expense_id=rent_expense.id).one()
        assert isinstance(audit.changes, dict)
        assert audit.changes["expense_date"] == {"old": None, "new": "2024-01-31"}

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, db_session, tenant_a, admin_a, amount):
        with pytest.raises(ValidationError, match="Amount must be greater than zero"):
            expense_service.create_expense(
                tenant_id=tenant_a.id,
                payload={
                    "category_id": _category(db_session, tenant_a).id,
                    "amount_cents": amount,
                    "expense_date": "2024-01-31",
                },
                user_id=admin_a.id,
            )

    def test_category_from_other_tenant_rejected(self, client, db_session, admin_a, tenant_b):
        resp = client.post("/api/expenses", headers=auth_headers(admin_a), json={
            "category_id": _category(db_session, tenant_b).id,
            "amount_cents": 100,
            "expense_date": "2024-01-31",
        })
        assert resp.status_code == 404

    def test_update_audits_changed_fields_only(self, client, db_session, admin_a, rent_expense):
        resp = client.put(f"/api/expenses/{rent_expense.id}", headers=auth_headers(admin_a), json={
            "amount_cents": 160000,
            "description": "January rent",
        })

        assert resp.status_code == 200
        assert resp.json["amount_cents"] == 160000

        audit = client.get(f"/api/expenses/{rent_expense.id}/audit", headers=auth_headers(admin_a)).json
        assert audit["count"] == 2
        latest = audit["items"][0]
        assert latest["action"] == "updated"
        assert latest["changes"] == {"amount_cents": {"old": 150000, "new": 160000}}

    def test_noop_update_writes_no_audit(self, db_session, tenant_a, admin_a, rent_expense):
        expense_service.update_expense(
            tenant_id=tenant_a.id, expense_id=rent_expense.id,
            payload={"description": "January rent"}, user_id=admin_a.id,
        )
        assert db_session.query(ExpenseAudit).filter_by(expense_id=rent_expense.id).count() == 1

    def test_delete_keeps_audit_trail(self, client, db_session, admin_a, rent_expense):
        expense_id = rent_expense.id
        headers = auth_headers(admin_a)

        assert client.delete(f"/api/expenses/{expense_id}", headers=headers).status_code == 200
        assert db_session.get(Expense, expense_id) is None

        audit = client.get(f"/api/expenses/{expense_id}/audit", headers=headers).json
        assert [row["action"] for row in audit["items"]] == ["deleted", "created"]

    def test_audit_of_unknown_expense_is_404(self, client, admin_a):
        assert client.get("/api/expenses/9999/audit", headers=auth_headers(admin_a)).status_code == 404

    def test_sales_person_cannot_manage_expenses(self, client, sales_a):
        assert client.get("/api/expenses", headers=auth_headers(sales_a)).status_code == 403


class TestQueries:
    def test_list_filters_by_date_and_search(self, client, db_session, tenant_a, admin_a, rent_expense):
        expense_service.create_expense(
            tenant_id=tenant_a.id,
            payload={
                "category_id": _category(db_session, tenant_a, "Utilities").id,
                "amount_cents": 4500,
                "expense_date": "2024-02-10",
                "receipt_reference": "KPLC-991",
            },
            user_id=admin_a.id,
        )
        headers = auth_headers(admin_a)

        resp = client.get("/api/expenses?start_date=2024-02-01", headers=headers)
        assert [e["amount_cents"] for e in resp.json["items"]] == [4500]

        resp = client.get("/api/expenses?search=kplc", headers=headers)
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["category_name"] == "Utilities"

    def test_summary_by_category(self, db_session, tenant_a, admin_a, rent_expense):
        utilities = _category(db_session, tenant_a, "Utilities")
        for amount in (3000, 2000):
            expense_service.create_expense(
                tenant_id=tenant_a.id,
                payload={"category_id": utilities.id, "amount_cents": amount, "expense_date": "2024-01-15"},
                user_id=admin_a.id,
            )

        summary = expense_service.expense_summary(tenant_id=tenant_a.id)

        assert summary["total_cents"] == 155000
        assert summary["count"] == 3
        assert [row["name"] for row in summary["by_category"]] == ["Rent", "Utilities"]
        assert summary["by_category"][1]["count"] == 2

        january = expense_service.expense_total_cents(
            tenant_id=tenant_a.id, start=date(2024, 1, 1), end=date(2024, 1, 20)
        )
        assert january == 5000
