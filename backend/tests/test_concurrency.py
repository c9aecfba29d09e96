# Overview: Pytest coverage for racing writers and the retry helper.

"""
Concurrency Tests

Racing checkouts and returns run on a file-backed SQLite database so each
thread gets its own connection; BEGIN IMMEDIATE serializes the writers.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from retail_pos import create_app
from retail_pos.extensions import db
from retail_pos.models import Product, Return, StockHistory, Tenant, Transaction
from retail_pos.services import concurrency, return_service, transaction_service
from retail_pos.services.concurrency import run_with_retry
from retail_pos.services.return_service import ReturnError
from retail_pos.services.transaction_service import TransactionError

THREADS = 4


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def race_product(file_app):
    """One unit of stock left."""
    tenant = Tenant(name="Race Duka", currency="KES", low_stock_threshold=10)
    db.session.add(tenant)
    db.session.commit()
    product = Product(
        tenant_id=tenant.id, sku="LAST-ONE", name="Last One", category="General",
        price_cents=500, cost_cents=300, stock_quantity=1, low_stock_threshold=0,
    )
    db.session.add(product)
    db.session.commit()
    return tenant.id, product.id


def _race(file_app, work):
    """Run work() in THREADS threads released together; collect outcomes."""
    barrier = threading.Barrier(THREADS)
    outcomes = []
    lock = threading.Lock()

    def runner():
        with file_app.app_context():
            barrier.wait()
            try:
                work()
                result = "ok"
            except (TransactionError, ReturnError) as exc:
                result = f"refused:{exc}"
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=runner) for _ in range(THREADS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(outcomes)


def test_racing_checkouts_sell_last_unit_once(file_app, race_product):
    tenant_id, product_id = race_product

    outcomes = _race(file_app, lambda: transaction_service.create_transaction(
        tenant_id=tenant_id,
        user_id=None,
        items=[{"product_id": product_id, "quantity": 1}],
        payment_method="mpesa",
    ))

    assert outcomes == ["ok"] + ["refused:Insufficient stock"] * (THREADS - 1)
    db.session.expire_all()
    assert db.session.get(Product, product_id).stock_quantity == 0
    assert db.session.query(StockHistory).filter_by(product_id=product_id, type="sale").count() == 1
    assert db.session.query(Transaction).count() == 1


def test_racing_returns_never_exceed_quantity_sold(file_app, race_product):
    tenant_id, product_id = race_product
    sale = transaction_service.create_transaction(
        tenant_id=tenant_id, user_id=None,
        items=[{"product_id": product_id, "quantity": 1}],
        payment_method="mpesa",
    )
    sale_id, line_id = sale.id, sale.items[0].id

    outcomes = _race(file_app, lambda: return_service.create_return(
        tenant_id=tenant_id, transaction_id=sale_id, user_id=None,
        items=[{"transaction_item_id": line_id, "quantity": 1}],
    ))

    assert outcomes.count("ok") == 1
    assert db.session.query(Return).count() == 1


def test_create_return_locks_the_sale(db_session, tenant_a, admin_a, product_a, monkeypatch):
    sale = transaction_service.create_transaction(
        tenant_id=tenant_a.id, user_id=admin_a.id,
        items=[{"product_id": product_a.id, "quantity": 2}],
        payment_method="cash", amount_tendered_cents=2000,
    )
    seen = []
    real_get_in_tenant = return_service.get_in_tenant

    def recording_get_in_tenant(model, row_id, tenant_id, **kwargs):
        seen.append((model, kwargs.get("lock", False)))
        return real_get_in_tenant(model, row_id, tenant_id, **kwargs)

    monkeypatch.setattr(return_service, "get_in_tenant", recording_get_in_tenant)

    return_service.create_return(
        tenant_id=tenant_a.id, transaction_id=sale.id, user_id=admin_a.id,
        items=[{"transaction_item_id": sale.items[0].id, "quantity": 1}],
    )

    assert (Transaction, True) in seen


class TestRunWithRetry:
    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

    def test_stale_data_is_retried_then_raised(self, app):
        calls = []

        def op():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with app.app_context():
            with pytest.raises(StaleDataError):
                run_with_retry(op)

        assert len(calls) == 3

    def test_locked_database_recovers_on_retry(self, app):
        calls = []

        def op():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
            return "done"

        with app.app_context():
            assert run_with_retry(op) == "done"

        assert len(calls) == 2

    def test_other_errors_are_not_retried(self, app):
        calls = []

        def op():
            calls.append(1)
            raise ValueError("bad input")

        with app.app_context():
            with pytest.raises(ValueError):
                run_with_retry(op)

        assert calls == [1]
