"""Unit tests for authentication utilities"""
from datetime import timedelta

import pytest
from starlette.requests import Request

from app.core.auth import (
    ANONYMOUS_USER_ID,
    create_access_token,
    decode_access_token,
    extract_token,
    is_admin,
    resolve_user,
    try_resolve_user,
)
from app.exceptions import AuthError


def make_request(authorization=None):
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": ("10.0.0.1", 5000)})


class TestTokenGeneration:
    """Tests for JWT token generation"""

    def test_round_trip(self, test_settings):
        """Test a created token decodes with an expiry"""
        token = create_access_token({"sub": "user-123", "role": "admin"}, test_settings)
        payload = decode_access_token(token, test_settings)
        assert payload["sub"] == "user-123"
        assert "exp" in payload

    def test_invalid_token(self, test_settings):
        """Test a malformed token is INVALID_TOKEN"""
        with pytest.raises(AuthError) as exc_info:
            decode_access_token("invalid.token.here", test_settings)
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_expired_token(self, test_settings):
        """Test an expired token is rejected"""
        token = create_access_token({"sub": "u"}, test_settings, expires_delta=timedelta(seconds=-10))
        with pytest.raises(AuthError):
            decode_access_token(token, test_settings)


class TestTokenExtraction:
    def test_bearer(self):
        """Test the bearer scheme is stripped"""
        assert extract_token(make_request("Bearer abc")) == "abc"

    def test_bare_token(self):
        """Test a token without scheme is accepted"""
        assert extract_token(make_request("abc")) == "abc"

    def test_missing(self):
        """Test no header means no token"""
        assert extract_token(make_request()) is None


class TestResolveUser:
    def test_anonymous_without_token(self, test_settings):
        """Test requests without a token are anonymous"""
        user = resolve_user(make_request(), test_settings)
        assert user == {"user_id": ANONYMOUS_USER_ID, "role": "anonymous", "auth_type": "anonymous"}

    def test_jwt_user(self, test_settings):
        """Test a valid token resolves to its user"""
        token = create_access_token({"sub": "user-1", "email": "a@b.c"}, test_settings)
        user = resolve_user(make_request(f"Bearer {token}"), test_settings)
        assert user == {"user_id": "user-1", "email": "a@b.c", "role": "user", "auth_type": "jwt"}

    def test_id_claim_is_accepted(self, test_settings):
        """Test an id claim stands in for sub"""
        token = create_access_token({"id": 42}, test_settings)
        assert resolve_user(make_request(token), test_settings)["user_id"] == "42"

    def test_token_without_subject(self, test_settings):
        """Test a token without a user id is rejected"""
        token = create_access_token({"email": "a@b.c"}, test_settings)
        with pytest.raises(AuthError):
            resolve_user(make_request(f"Bearer {token}"), test_settings)

    def test_try_resolve_swallows_bad_tokens(self, test_settings):
        """Test try_resolve_user returns None for a bad token"""
        assert try_resolve_user(make_request("Bearer garbage"), test_settings) is None


def test_is_admin():
    """Test admin and super_admin roles are admins"""
    assert is_admin({"role": "admin"})
    assert is_admin({"role": "super_admin"})
    assert not is_admin({"role": "user"})
    assert not is_admin(None)
