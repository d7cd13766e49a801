"""Unit tests — password hashing and JWT handling."""

from datetime import timedelta

import pytest
from fastapi import HTTPException

from hrms.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    principal_from_token,
    token_claims,
    verify_password,
)

pytestmark = pytest.mark.unit


def test_password_hash_verifies(password_hash):
    from tests.conftest import TEST_PASSWORD

    assert verify_password(TEST_PASSWORD, password_hash) is True
    assert verify_password("wrong-password", password_hash) is False


def test_access_token_round_trip():
    token = create_access_token(token_claims("u-1", "a@example.com", "manager"))
    principal = principal_from_token(token)
    assert principal.id == "u-1"
    assert principal.email == "a@example.com"
    assert principal.role == "manager"


def test_token_without_role_claim():
    token = create_access_token(token_claims("u-1", "a@example.com", None))
    assert principal_from_token(token).role is None


def test_refresh_token_is_not_an_access_token():
    refresh = create_refresh_token(token_claims("u-1", "a@example.com", None))
    assert decode_token(refresh, expected_type="refresh")["sub"] == "u-1"

    with pytest.raises(HTTPException) as exc_info:
        principal_from_token(refresh)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid token type"


def test_expired_token_rejected():
    token = create_access_token(
        token_claims("u-1", "a@example.com", None), expires_delta=timedelta(seconds=-5)
    )
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.detail == "Invalid or expired token"


def test_garbage_token_rejected():
    with pytest.raises(HTTPException) as exc_info:
        decode_token("not-a-jwt")
    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_token_without_subject_rejected():
    token = create_access_token({"email": "a@example.com"})
    with pytest.raises(HTTPException):
        principal_from_token(token)
