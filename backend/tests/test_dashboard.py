# Overview: Pytest coverage for dashboard KPIs, low stock, sales trend and daily summary.

from datetime import timedelta

import pytest

from retail_pos.models import ExpenseCategory, Product, Transaction
from retail_pos.services import dashboard_service, expense_service, return_service, transaction_service
from retail_pos.time_utils import utcnow

from conftest import auth_headers


@pytest.fixture
def sale(db_session, tenant_a, admin_a, product_a, product_a2):
    """5 sugar + 2 milk: gross 5500, margin 2200."""
    return transaction_service.create_transaction(
        tenant_id=tenant_a.id,
        user_id=admin_a.id,
        items=[
            {"product_id": product_a.id, "quantity": 5},
            {"product_id": product_a2.id, "quantity": 2},
        ],
        payment_method="cash",
        amount_tendered_cents=5500,
    )


@pytest.fixture
def approved_return(db_session, tenant_a, admin_a, sale, product_a):
    """2 sugar back: 2000 refunded, 800 margin lost."""
    line = next(item for item in sale.items if item.product_id == product_a.id)
    pending = return_service.create_return(
        tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
        items=[{"transaction_item_id": line.id, "quantity": 2}],
    )
    return return_service.approve_return(tenant_id=tenant_a.id, return_id=pending.id, user_id=admin_a.id)


@pytest.fixture
def todays_expense(db_session, tenant_a, admin_a):
    category = db_session.query(ExpenseCategory).filter_by(tenant_id=tenant_a.id, name="Transport").one()
    return expense_service.create_expense(
        tenant_id=tenant_a.id,
        payload={"category_id": category.id, "amount_cents": 500, "expense_date": utcnow().date().isoformat()},
        user_id=admin_a.id,
    )


class TestKpis:
    def test_net_figures(self, client, admin_a, sale, approved_return, todays_expense):
        resp = client.get("/api/dashboard/kpis", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        body = resp.json
        assert body["gross_revenue_cents"] == 5500
        assert body["total_returns_cents"] == 2000
        assert body["total_expenses_cents"] == 500
        assert body["total_revenue_cents"] == 3000
        assert body["total_profit_cents"] == 2200 - 800 - 500
        assert body["total_sales"] == 1
        assert body["revenue_change"] == 0.0
        assert body["profit_change"] == 0.0

    def test_profit_uses_cost_at_time_of_sale(self, db_session, tenant_a, sale, product_a):
        product = db_session.get(Product, product_a.id)
        product.cost_cents = 950
        db_session.commit()

        assert dashboard_service.kpis(tenant_id=tenant_a.id)["total_profit_cents"] == 2200

    def test_other_tenant_sales_ignored(self, tenant_b, sale):
        assert dashboard_service.kpis(tenant_id=tenant_b.id)["total_sales"] == 0

    def test_change_against_previous_period(self, db_session, tenant_a, admin_a, sale, product_a):
        now = utcnow()
        earlier = db_session.get(Transaction, sale.id)
        earlier.created_at = now - timedelta(hours=36)
        db_session.commit()

        transaction_service.create_transaction(
            tenant_id=tenant_a.id, user_id=admin_a.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
            payment_method="mpesa",
        )

        result = dashboard_service.kpis(tenant_id=tenant_a.id, start=now - timedelta(days=1), end=utcnow())

        assert result["gross_revenue_cents"] == 1000
        assert result["revenue_change"] == round((1000 - 5500) / 5500 * 100, 2)
        assert result["sales_change"] == 0.0

    def test_sales_person_cannot_view(self, client, sales_a):
        assert client.get("/api/dashboard/kpis", headers=auth_headers(sales_a)).status_code == 403


class TestLowStock:
    def test_lists_products_at_or_below_threshold(self, client, db_session, admin_a, product_a, product_a2):
        milk = db_session.get(Product, product_a2.id)
        milk.stock_quantity = 5
        db_session.commit()

        resp = client.get("/api/dashboard/low-stock", headers=auth_headers(admin_a))

        assert resp.json["count"] == 1
        assert resp.json["items"][0]["sku"] == "MILK-500"
        assert dashboard_service.low_stock_count(tenant_id=milk.tenant_id) == 1

    def test_archived_products_excluded(self, db_session, tenant_a, product_a):
        sugar = db_session.get(Product, product_a.id)
        sugar.stock_quantity = 0
        sugar.is_archived = True
        db_session.commit()

        assert dashboard_service.low_stock_products(tenant_id=tenant_a.id) == []


class TestTrendAndDaily:
    def test_sales_trend_nets_returns_on_sale_date(self, client, admin_a, sale, approved_return):
        resp = client.get("/api/dashboard/sales-trend?days=7", headers=auth_headers(admin_a))

        assert resp.status_code == 200
        assert resp.json["items"] == [{
            "date": utcnow().date().isoformat(),
            "revenue": 3500,
            "profit": 1400,
            "sales": 1,
        }]

    def test_daily_summary(self, tenant_a, sale, approved_return, todays_expense):
        summary = dashboard_service.daily_summary(tenant_id=tenant_a.id)

        assert summary["gross_sales_cents"] == 5500
        assert summary["gross_profit_cents"] == 2200
        assert summary["returns_cents"] == 2000
        assert summary["returns_profit_loss_cents"] == 800
        assert summary["expenses_cents"] == 500
        assert summary["transaction_count"] == 1
