"""
Pytest fixtures for retail POS backend tests.

Provides test database setup, two tenants for isolation checks,
users for both roles, and an authenticated test client helper.
"""

import pytest

from retail_pos import create_app
from retail_pos.extensions import db
from retail_pos.models import Customer, Product, Tenant, User
from retail_pos.models.auth import ROLE_ADMIN, ROLE_SALES_PERSON
from retail_pos.services.auth_service import hash_password
from retail_pos.services.expense_service import seed_default_categories
from retail_pos.services.session_service import create_session

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_tenant(db_session, name: str) -> Tenant:
    tenant = Tenant(name=name, currency="KES", low_stock_threshold=10)
    db_session.add(tenant)
    db_session.commit()
    seed_default_categories(tenant_id=tenant.id)
    return tenant


def _make_user(db_session, tenant: Tenant, email: str, role: str) -> User:
    user = User(
        tenant_id=tenant.id,
        email=email,
        full_name=email.split("@")[0].title(),
        role=role,
        password_hash=hash_password(PASSWORD, rounds=4),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (first business)."""
    return _make_tenant(db_session, "Acme Duka")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (second business)."""
    return _make_tenant(db_session, "Beta Stores")


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a):
    return _make_user(db_session, tenant_a, "admin@acme.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def sales_a(db_session, tenant_a):
    return _make_user(db_session, tenant_a, "sales@acme.test", ROLE_SALES_PERSON)


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b):
    return _make_user(db_session, tenant_b, "admin@beta.test", ROLE_ADMIN)


def _make_product(db_session, tenant: Tenant, sku: str, **overrides) -> Product:
    fields = {
        "tenant_id": tenant.id,
        "sku": sku,
        "name": f"Product {sku}",
        "category": "General",
        "price_cents": 1000,
        "cost_cents": 600,
        "stock_quantity": 20,
        "low_stock_threshold": 5,
    }
    fields.update(overrides)
    product = Product(**fields)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, tenant_a):
    """Sugar 1kg in tenant A: 20 in stock, sells at 1000, costs 600."""
    return _make_product(db_session, tenant_a, "SUGAR-1KG", name="Sugar 1kg")


@pytest.fixture(scope='function')
def product_a2(db_session, tenant_a):
    return _make_product(db_session, tenant_a, "MILK-500", name="Milk 500ml", price_cents=250, cost_cents=150)


@pytest.fixture(scope='function')
def product_b(db_session, tenant_b):
    return _make_product(db_session, tenant_b, "BREAD-400", name="Bread 400g", price_cents=600, cost_cents=400)


@pytest.fixture(scope='function')
def credit_customer_a(db_session, tenant_a):
    """Credit-approved customer with a 5000 limit."""
    customer = Customer(
        tenant_id=tenant_a.id,
        name="Jane Wanjiru",
        phone="0712345678",
        is_credit_approved=True,
        credit_limit_cents=5000,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def walk_in_customer_a(db_session, tenant_a):
    customer = Customer(tenant_id=tenant_a.id, name="Walk In", is_credit_approved=False)
    db_session.add(customer)
    db_session.commit()
    return customer


def auth_headers(user: User) -> dict:
    """Open a session for the user and return Authorization headers."""
    _session, token = create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


def login(client, email: str, password: str = PASSWORD):
    """Helper to call the login endpoint."""
    return client.post('/api/auth/login', json={'email': email, 'password': password})
