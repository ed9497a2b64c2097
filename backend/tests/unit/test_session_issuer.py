"""Tests for session token issuance and cookie transport."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import Response

from employme.core.auth import (
    clear_session_cookie,
    decode_session,
    issue_session,
    set_session_cookie,
)
from employme.core.config import settings
from tests.conftest import TEST_AUTH_SECRET, create_test_jwt

_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


class TestIssueSession:
    """Tests for issue_session()."""

    def test_token_carries_account_and_window(self):
        """sub, aud, iss, iat and a 30-day exp are encoded."""
        session = issue_session(_ACCOUNT_ID)
        payload = jwt.decode(
            session.value,
            TEST_AUTH_SECRET,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )

        assert payload["sub"] == str(_ACCOUNT_ID)
        assert payload["exp"] - payload["iat"] == 30 * 24 * 60 * 60
        assert session.account_id == _ACCOUNT_ID
        assert session.expires_at - session.issued_at == timedelta(days=30)

    def test_issued_at_has_whole_seconds(self):
        """iat is truncated so it compares exactly with revocation times."""
        assert issue_session(_ACCOUNT_ID).issued_at.microsecond == 0


class TestDecodeSession:
    """Tests for decode_session()."""

    def test_round_trip(self):
        """A freshly issued token decodes to the same account."""
        session = issue_session(_ACCOUNT_ID)
        claims = decode_session(session.value)
        assert claims.account_id == _ACCOUNT_ID
        assert claims.issued_at == session.issued_at

    def test_rejects_expired(self):
        """Expired tokens raise InvalidTokenError."""
        token = create_test_jwt(
            _ACCOUNT_ID,
            iat=datetime.now(UTC) - timedelta(days=31),
            expires_delta=timedelta(days=-1),
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_session(token)

    def test_rejects_wrong_secret(self):
        """Tokens signed with another key are rejected."""
        token = create_test_jwt(_ACCOUNT_ID, secret="x" * 40)
        with pytest.raises(jwt.InvalidTokenError):
            decode_session(token)

    def test_rejects_wrong_audience(self):
        """Tokens minted for another audience are rejected."""
        token = create_test_jwt(_ACCOUNT_ID, audience="someone-else")
        with pytest.raises(jwt.InvalidTokenError):
            decode_session(token)

    def test_rejects_non_uuid_subject(self):
        """A subject that is not a UUID is rejected."""
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": "not-a-uuid",
                "aud": settings.auth_audience,
                "iss": settings.auth_issuer,
                "iat": now,
                "exp": now + timedelta(hours=1),
            },
            TEST_AUTH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_session(token)


class TestSessionCookie:
    """Tests for cookie transport."""

    def test_cookie_is_http_only_with_30_day_max_age(self):
        """Cookie is httpOnly, path /, and lives 30 days."""
        response = Response()
        set_session_cookie(response, issue_session(_ACCOUNT_ID))
        header = response.headers["set-cookie"].lower()

        assert header.startswith(f"{settings.auth_cookie_name}=")
        assert "httponly" in header
        assert "max-age=2592000" in header
        assert "path=/" in header

    def test_samesite_lax_outside_production(self):
        """Relaxed same-site policy in non-production environments."""
        response = Response()
        set_session_cookie(response, issue_session(_ACCOUNT_ID))
        assert "samesite=lax" in response.headers["set-cookie"].lower()

    def test_samesite_strict_and_secure_in_production(self, monkeypatch):
        """Strict same-site policy in production."""
        monkeypatch.setattr(settings, "environment", "production")
        monkeypatch.setattr(settings, "auth_cookie_secure", True)
        response = Response()
        set_session_cookie(response, issue_session(_ACCOUNT_ID))
        header = response.headers["set-cookie"].lower()

        assert "samesite=strict" in header
        assert "secure" in header

    def test_clear_cookie_expires_it(self):
        """Clearing sets an already-expired cookie with the same name."""
        response = Response()
        clear_session_cookie(response)
        header = response.headers["set-cookie"].lower()

        assert header.startswith(f"{settings.auth_cookie_name}=")
        assert "max-age=0" in header
