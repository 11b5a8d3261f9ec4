"""
Pytest fixtures for backend tests.

Provides test database setup, role actors, an order factory and test client.
"""

import pytest

from app import create_app
from app.extensions import db
from app.models import Order
from app.models.orders import ORDER_STATUS_ADDED
from app.permissions import Actor, Role
from app.services import session_service
from app.services.auth_service import create_user
from app.time_utils import utcnow


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_OVERLAP_SECONDS': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """
    Separate app on a file-backed SQLite database.

    Thread tests need one: every thread gets its own connection, so the
    database's own locking decides who wins.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'threads.sqlite3'}",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


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


@pytest.fixture
def seller():
    return Actor(role=Role.SELLER, username="anna")


@pytest.fixture
def other_seller():
    return Actor(role=Role.SELLER, username="boris")


@pytest.fixture
def printer():
    return Actor(role=Role.PRINTER, username="pavel")


@pytest.fixture
def admin():
    return Actor(role=Role.ADMINISTRATOR, username="root")


_order_seq = {"n": 0}


def build_order(**overrides) -> Order:
    """Unsaved Order with sensible defaults; any column may be overridden."""
    _order_seq["n"] += 1
    now = utcnow()
    values = {
        "order_date": now,
        "updated_at": now,
        "order_number": f"ORD-{_order_seq['n']:05d}",
        "shipment_number": None,
        "status": ORDER_STATUS_ADDED,
        "product_type": "фб",
        "size": "M",
        "seller": "anna",
        "price_cents": 1000,
        "photos": [],
        "on_warehouse": False,
        "printer_checked": False,
    }
    values.update(overrides)
    return Order(**values)


@pytest.fixture
def make_order(db_session):
    """Factory: make_order(status="Ready", on_warehouse=True, ...) -> persisted Order."""
    def _make(**overrides) -> Order:
        order = build_order(**overrides)
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture
def users(db_session):
    """One account per role, all with TEST_PASSWORD."""
    return {
        "seller": create_user("anna", "Anna", Role.SELLER.value, TEST_PASSWORD),
        "other_seller": create_user("boris", "Boris", Role.SELLER.value, TEST_PASSWORD),
        "printer": create_user("pavel", "Pavel", Role.PRINTER.value, TEST_PASSWORD),
        "admin": create_user("root", "Root", Role.ADMINISTRATOR.value, TEST_PASSWORD),
    }


@pytest.fixture
def headers_for(users):
    """headers_for("seller") -> Authorization header dict for that account."""
    def _headers(key: str) -> dict:
        _, token = session_service.create_session(users[key].id)
        return auth_headers(token)
    return _headers


def get_auth_token(client, username: str, password: str) -> str:
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
