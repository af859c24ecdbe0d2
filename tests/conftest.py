import os

# must be in place before the app and its settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")

import pytest
from fastapi.testclient import TestClient

from retail_relay.api import app
from retail_relay.database import Database, get_session
from retail_relay.models.user import Role, User
from retail_relay.security import hash_password
from retail_relay.tokens import issue_tokens


@pytest.fixture
def database():
    """Provide an isolated in-memory database for each test."""
    database = Database("sqlite://")
    database.connect()
    yield database
    database.dispose()


@pytest.fixture
def session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(database):
    def override_get_session():
        session = database.session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(email="user@example.com", password="secret1", role=Role.CUSTOMER):
        user = User(email=email, password_hash=hash_password(password), role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin_headers(make_user):
    admin = make_user(email="admin@example.com", password="admin123", role=Role.ADMIN)
    return {"Authorization": f"Bearer {issue_tokens(admin).access_token}"}


@pytest.fixture
def customer_headers(make_user):
    customer = make_user(email="customer@example.com", password="customer123")
    return {"Authorization": f"Bearer {issue_tokens(customer).access_token}"}
