"""
Pytest fixtures for the POS backend tests.

Provides the test app on in-memory SQLite, a per-test table wipe, user /
category / product factories and bearer-token helpers.
"""

import pytest

from pos_app import create_app
from pos_app.extensions import db
from pos_app.services import catalog_service
from pos_app.services.auth_service import create_user

PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'DEBUG',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
    def _make(username: str, role: str = "cashier", password: str = PASSWORD):
        return create_user(username, password, role)
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin", "admin")


@pytest.fixture(scope='function')
def cashier_user(make_user):
    return make_user("cashier", "cashier")


@pytest.fixture(scope='function')
def category(db_session):
    return catalog_service.create_category("Beverages")


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Create a product through the catalog service so its 'initial' ledger entry exists."""
    counter = {"n": 0}

    def _make(name: str | None = None, price_cents: int = 1_000_000, stock: int = 10, category_id: int | None = None):
        counter["n"] += 1
        return catalog_service.create_product(
            patch={
                "name": name or f"Product {counter['n']}",
                "category_id": category_id or category.id,
                "price_cents": price_cents,
            },
            stock_quantity=stock,
        )
    return _make


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
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))
