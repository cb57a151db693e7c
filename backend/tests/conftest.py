"""
Pytest fixtures for AssetDesk backend tests.

Provides an in-memory database, account and asset factories, and auth helpers
for the Flask test client.
"""

import pytest
from assetdesk import create_app
from assetdesk.extensions import db
from assetdesk.services import account_service, inventory_service


DEFAULT_PASSWORD = "Secret1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'STORAGE_RETRY_BACKOFF': 0,
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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_hr(db_session):
    """Factory: register an HR account (basic package unless told otherwise)."""
    def _make(email="hr@acme.io", company_name="Acme", package="basic", name="Hana HR"):
        return account_service.register_hr(
            name=name,
            email=email,
            password=DEFAULT_PASSWORD,
            company_name=company_name,
            package=package,
        )
    return _make


@pytest.fixture(scope='function')
def make_employee(db_session):
    """Factory: register an employee account."""
    def _make(email="emp@mail.io", name="Eli Employee"):
        return account_service.register_employee(
            name=name,
            email=email,
            password=DEFAULT_PASSWORD,
        )
    return _make


@pytest.fixture(scope='function')
def make_asset(db_session):
    """Factory: add an asset line to an HR account's inventory."""
    def _make(owner, product_name="Laptop", product_type="Returnable", product_quantity=1):
        return inventory_service.create_asset(
            owner=owner,
            product_name=product_name,
            product_type=product_type,
            product_quantity=product_quantity,
        )
    return _make


@pytest.fixture(scope='function')
def hr(make_hr):
    return make_hr()


@pytest.fixture(scope='function')
def employee(make_employee):
    return make_employee()


def get_auth_token(client, email: str, password: str = DEFAULT_PASSWORD) -> str:
    """Helper to get auth token for an account."""
    response = client.post('/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def login(client):
    """Factory: log an account in and return its Authorization headers."""
    def _login(user, password: str = DEFAULT_PASSWORD) -> dict:
        token = get_auth_token(client, user.email, password)
        assert token, f"login failed for {user.email}"
        return auth_headers(token)
    return _login
