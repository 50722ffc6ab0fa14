"""
Pytest fixtures for FlowStock backend tests.

Provides an in-memory database, a test client, users for each role and small
factories for catalog data.
"""

import pytest

from flowstock import create_app
from flowstock.extensions import db
from flowstock.models import Role
from flowstock.services import auth_service, product_service, stock_ledger, supplier_service

DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
        'BCRYPT_ROUNDS': 4,
        'PASSWORD_RESET_EXPOSE_TOKEN': True,
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
def make_user(db_session):
    def _make(username, role=Role.VIEWER.value, password=DEFAULT_PASSWORD):
        return auth_service.create_user(username=username, password=password, role=role)
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin", Role.ADMIN.value)


@pytest.fixture(scope='function')
def operator_user(make_user):
    return make_user("operator", Role.OPERATOR.value)


@pytest.fixture(scope='function')
def viewer_user(make_user):
    return make_user("viewer", Role.VIEWER.value)


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin", DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def operator_headers(client, operator_user):
    return auth_headers(get_auth_token(client, "operator", DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def viewer_headers(client, viewer_user):
    return auth_headers(get_auth_token(client, "viewer", DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Create a product, optionally with opening stock."""
    def _make(sku, *, available=0, reorder_point=0, reorder_quantity=0, unit_price_cents=1000, **kwargs):
        product = product_service.create_product(
            sku=sku,
            name=kwargs.pop("name", f"Product {sku}"),
            unit_price_cents=unit_price_cents,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            **kwargs,
        )
        if available:
            product_service.add_stock(product.id, available)
        return product
    return _make


@pytest.fixture(scope='function')
def make_supplier(db_session):
    def _make(code, name=None):
        return supplier_service.create_supplier(code=code, name=name or f"Supplier {code}")
    return _make


def levels(product_id: int) -> tuple:
    """(available, reserved) as committed in the database."""
    return stock_ledger.levels(product_id)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('access_token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
