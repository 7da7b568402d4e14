"""
Pytest fixtures for TailorPOS backend tests.

Provides an in-memory database wiped between tests, the test client, and a
small catalog: two branches, a finished shirt, a raw fabric and a tailoring
service.
"""

import pytest

from tailorpos import create_app
from tailorpos.extensions import db
from tailorpos.models import Branch, InventoryItem, Service, User
from tailorpos.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CHECKOUT_RETRY_ATTEMPTS': 3,
        'RETRY_BACKOFF_BASE': 0,
        'BUSINESS_TIMEZONE': 'UTC',
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

        db.session.rollback()


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(name="Downtown", location="Main St", type="store")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    branch = Branch(name="Warehouse", location="Industrial Zone", type="warehouse")
    db_session.add(branch)
    db_session.commit()
    return branch


def make_item(db_session, branch, **overrides) -> InventoryItem:
    fields = {
        "name": "Shirt",
        "type": "finished",
        "unit": "piece",
        "color": "white",
        "quantity": 5,
        "min_quantity": 1,
        "cost_cents": 60,
        "selling_price_cents": 100,
        "branch_id": branch.id if branch else None,
        "branch_name": branch.name if branch else None,
    }
    fields.update(overrides)
    item = InventoryItem(**fields)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def shirt(db_session, branch):
    """Finished good: stock 5, price 100, cost 60."""
    return make_item(db_session, branch, barcode="01012026001")


@pytest.fixture(scope='function')
def fabric(db_session, branch):
    """Raw material: 20 meters at cost 15 each."""
    return make_item(
        db_session,
        branch,
        name="Cotton fabric",
        type="raw",
        unit="meter",
        color="blue",
        quantity=20,
        min_quantity=5,
        cost_cents=15,
        selling_price_cents=None,
        barcode="01012026002",
    )


@pytest.fixture(scope='function')
def hemming(db_session):
    service = Service(type="tailoring", name="Trouser hemming", price_cents=250)
    db_session.add(service)
    db_session.commit()
    return service


def make_user(db_session, username: str, role: str, branch_id=None) -> User:
    user = User(
        username=username,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        branch_id=branch_id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return make_user(db_session, "cashier", "cashier")


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
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
def item_factory(db_session):
    """make(branch, **overrides) -> InventoryItem (defaults to a 5-unit shirt)."""
    def make(branch, **overrides):
        return make_item(db_session, branch, **overrides)
    return make


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))


@pytest.fixture(scope='function')
def user_factory(db_session):
    def make(username, role, branch_id=None):
        return make_user(db_session, username, role, branch_id=branch_id)
    return make


@pytest.fixture(scope='function')
def login(client):
    """login(username) -> Authorization headers for that user."""
    def _login(username, password=TEST_PASSWORD):
        return auth_headers(get_auth_token(client, username, password))
    return _login
