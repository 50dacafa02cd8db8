"""
Pytest fixtures for Sarupaa backend tests.

Provides an in-memory database, a test client, an authenticated
administrator and small catalog / party factories.
"""

import pytest

from sarupaa import create_app
from sarupaa.extensions import db
from sarupaa.models import Product, Store, Supplier, Customer
from sarupaa.models.auth import ROLE_ADMINISTRATOR, ROLE_USER
from sarupaa.services import accounting_service, auth_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Main Store", code="MAIN")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def accounts(db_session):
    """Seed the system chart of accounts."""
    accounting_service.seed_chart_of_accounts()


@pytest.fixture(scope='function')
def admin(db_session, store):
    return auth_service.create_user(
        "admin", "admin@example.com", PASSWORD,
        role=ROLE_ADMINISTRATOR, store_id=store.id, rounds=4,
    )


@pytest.fixture(scope='function')
def clerk(db_session, store):
    return auth_service.create_user(
        "clerk", "clerk@example.com", PASSWORD,
        role=ROLE_USER, store_id=store.id, rounds=4,
    )


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin, accounts):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def clerk_headers(client, clerk):
    return auth_headers(get_auth_token(client, "clerk"))


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Wholesale", balance_cents=0, opening_balance_cents=0)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Walk-in Regular", balance_cents=0, opening_balance_cents=0)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products; stock is left at zero."""
    def _make(name="Widget", *, sku=None, barcode=None, cost=500, price=800, tax_bps=0):
        product = Product(
            name=name,
            sku=sku,
            barcode=barcode,
            cost_price_cents=cost,
            sale_price_cents=price,
            tax_rate_bps=tax_bps,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product("Widget", sku="WID-001")


@pytest.fixture(scope='function')
def login(client):
    """Returns a helper that logs in and yields Authorization headers (None on failure)."""
    def _login(username: str, password: str = PASSWORD):
        token = get_auth_token(client, username, password)
        return auth_headers(token) if token else None
    return _login
