"""
Shared fixtures for unit and integration tests.

Every test gets its own in-memory SQLite database. API tests use FastAPI's
TestClient with ``get_db`` overridden to hand out sessions bound to that
same database, so rows written by a test are visible to the app and back.

How to run:
  pytest                    # all tests
  pytest -m unit            # engine, store, guards, tokens
  pytest -m integration     # HTTP API
"""

import os

# Settings are read at import time, so configure them before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DEBUG", "false")

import pytest
from sqlalchemy.orm import sessionmaker

import hrms.models  # noqa: F401  registers tables
from hrms.core.roles import permissions_of
from hrms.core.security import create_access_token, hash_password, token_claims
from hrms.db.base import Base
from hrms.db.session import build_engine, get_db
from hrms.models.user import User
from hrms.services.role_service import RoleService
from hrms.services.role_store import RoleStore

TEST_PASSWORD = "Passw0rd!123"


@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt is slow on purpose, hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def role_store(db_session) -> RoleStore:
    return RoleStore(db_session)


@pytest.fixture
def role_service(role_store) -> RoleService:
    return RoleService(role_store)


@pytest.fixture
def make_user(db_session, password_hash):
    """Factory: ``make_user(role="manager")`` creates a user, optionally with a role."""
    counter = {"n": 0}

    def _make_user(role=None, email=None, full_name="Test User", is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            hashed_password=password_hash,
            full_name=full_name,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        if role is not None:
            RoleStore(db_session).insert_assignment(
                user.id, role, sorted(permissions_of(role))
            )
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    """Factory: bearer headers whose role claim defaults to nothing."""

    def _auth_headers(user, role=None):
        token = create_access_token(token_claims(user.id, user.email, role))
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from hrms.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
