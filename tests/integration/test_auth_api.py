"""Integration tests — registration, login and token refresh over HTTP."""

import pytest

from hrms.core.security import decode_token
from hrms.models.user_role import UserRole
from tests.conftest import TEST_PASSWORD

pytestmark = pytest.mark.integration


def _register(client, email="new.hire@example.com"):
    return client.post(
        "/api/auth/register",
        json={"email": email, "password": TEST_PASSWORD, "full_name": "New Hire"},
    )


def test_register_assigns_default_role(client):
    resp = _register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "new.hire@example.com"
    assert body["role"] == "employee"


def test_register_normalizes_email_and_rejects_duplicates(client):
    assert _register(client, "Someone@Example.com").status_code == 201
    resp = _register(client, "someone@example.com")
    assert resp.status_code == 409


def test_register_validates_password_length(client):
    resp = client.post(
        "/api/auth/register",
        json={"email": "short@example.com", "password": "abc", "full_name": "Short"},
    )
    assert resp.status_code == 422


def test_login_token_carries_persisted_role(client, make_user):
    manager = make_user(role="manager", email="boss@example.com")
    resp = client.post(
        "/api/auth/login", json={"email": "boss@example.com", "password": TEST_PASSWORD}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["role"] == "manager"

    claims = decode_token(body["access_token"])
    assert claims["sub"] == manager.id
    assert claims["role"] == "manager"


def test_login_heals_missing_role(client, make_user, db_session):
    user = make_user(email="orphan@example.com")
    resp = client.post(
        "/api/auth/login", json={"email": "orphan@example.com", "password": TEST_PASSWORD}
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "employee"

    db_session.expire_all()
    rows = db_session.query(UserRole).filter(UserRole.user_id == user.id).all()
    assert [r.role_name for r in rows] == ["employee"]


def test_login_wrong_password(client, make_user):
    make_user(role="employee", email="e@example.com")
    resp = client.post(
        "/api/auth/login", json={"email": "e@example.com", "password": "not-the-password"}
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid email or password"


def test_login_deactivated_account(client, make_user):
    make_user(role="employee", email="gone@example.com", is_active=False)
    resp = client.post(
        "/api/auth/login", json={"email": "gone@example.com", "password": TEST_PASSWORD}
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Account is deactivated"


def test_refresh_issues_current_role(client, make_user, role_store):
    user = make_user(role="employee", email="climber@example.com")
    tokens = client.post(
        "/api/auth/login", json={"email": "climber@example.com", "password": TEST_PASSWORD}
    ).json()

    role_store.replace_active(user.id, "hr-staff", ["employee.read"])

    resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert decode_token(resp.json()["access_token"])["role"] == "hr-staff"


def test_access_token_cannot_refresh(client, make_user):
    make_user(role="employee", email="x@example.com")
    tokens = client.post(
        "/api/auth/login", json={"email": "x@example.com", "password": TEST_PASSWORD}
    ).json()
    resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert resp.status_code == 401


def test_me(client, make_user, auth_headers):
    user = make_user(role="hr-staff", full_name="Pat Doe")
    resp = client.get("/api/auth/me", headers=auth_headers(user))
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Pat Doe"
    assert resp.json()["role"] == "hr-staff"


def test_me_requires_token(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Access token required"


def test_me_rejects_garbage_token(client):
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 401


def test_request_id_is_propagated(client):
    resp = client.get("/api/health", headers={"X-Request-Id": "abc-123"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"] == "abc-123"


def test_oversized_request_id_is_replaced(client):
    resp = client.get("/api/health", headers={"X-Request-Id": "x" * 200})
    assert resp.headers["X-Request-Id"] != "x" * 200
    assert len(resp.headers["X-Request-Id"]) == 36
