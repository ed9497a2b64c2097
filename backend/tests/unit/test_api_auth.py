"""Tests for password-based auth endpoints.

POST /api/v1/auth/register, /login and /change-password.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from employme.core.config import settings
from employme.core.passwords import verify_password
from employme.models.account import Account
from employme.repositories.account_repository import AccountRepository
from tests.conftest import TEST_PASSWORD, create_account, create_test_jwt

_REGISTER_URL = "/api/v1/auth/register"
_LOGIN_URL = "/api/v1/auth/login"
_CHANGE_PASSWORD_URL = "/api/v1/auth/change-password"
_ME_URL = "/api/v1/auth/me"
_NEW_PASSWORD = "a-much-better-secret"  # nosec B105


async def _seed(factory: async_sessionmaker[AsyncSession], **fields) -> Account:
    async with factory() as db:
        account = await create_account(db, **fields)
        await db.commit()
        return account


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegister:
    """POST /auth/register."""

    async def test_creates_unverified_account(
        self,
        client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        mock_email_sender: AsyncMock,
    ):
        """201 with the account summary; no session yet."""
        response = await client.post(
            _REGISTER_URL,
            json={
                "email": "New@Example.com",
                "password": TEST_PASSWORD,
                "first_name": "Nia",
                "role": "EMPLOYER",
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "new@example.com"
        assert data["is_verified"] is False
        assert data["role"] == "EMPLOYER"
        assert settings.auth_cookie_name not in response.cookies
        mock_email_sender.send_verification_email.assert_awaited_once()

        async with session_factory() as db:
            account = await AccountRepository.get_by_email(db, "new@example.com")
            assert account is not None
            assert account.verification_code is not None

    async def test_verification_email_sent_after_commit(
        self,
        client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        mock_email_sender: AsyncMock,
    ):
        """The code is emailed only once the account is visible to other sessions."""
        seen_at_send: list[str | None] = []

        async def record_committed_code(*, to_email: str, name: str, code: str):
            async with session_factory() as db:
                account = await AccountRepository.get_by_email(db, to_email)
                seen_at_send.append(account.verification_code if account else None)

        mock_email_sender.send_verification_email.side_effect = record_committed_code

        response = await client.post(
            _REGISTER_URL,
            json={"email": "after@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 201
        sent_code = mock_email_sender.send_verification_email.call_args.kwargs["code"]
        assert seen_at_send == [sent_code]

    async def test_duplicate_email(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """409 EMAIL_ALREADY_REGISTERED for an email in use."""
        await _seed(session_factory, email="taken@example.com")

        response = await client.post(
            _REGISTER_URL,
            json={"email": "TAKEN@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_ALREADY_REGISTERED"

    async def test_weak_password(self, client: AsyncClient):
        """400 WEAK_PASSWORD below the minimum length."""
        response = await client.post(
            _REGISTER_URL, json={"email": "w@example.com", "password": "short"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "WEAK_PASSWORD"

    async def test_admin_role_not_self_service(self, client: AsyncClient):
        """ADMIN cannot be requested at registration."""
        response = await client.post(
            _REGISTER_URL,
            json={"email": "a@example.com", "password": TEST_PASSWORD, "role": "ADMIN"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestLogin:
    """POST /auth/login."""

    async def test_success_sets_session_cookie(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """Valid credentials set an http-only session cookie."""
        account = await _seed(session_factory, email="in@example.com")

        response = await client.post(
            _LOGIN_URL, json={"email": "in@example.com", "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()["data"]
        assert body["account"]["id"] == str(account.id)
        assert body["has_profile"] is False
        set_cookie = response.headers["set-cookie"].lower()
        assert settings.auth_cookie_name in set_cookie
        assert "httponly" in set_cookie

        me = await client.get(_ME_URL)
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "in@example.com"

    async def test_wrong_password_and_unknown_email_match(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """Both failures return the identical 401 body."""
        await _seed(session_factory, email="real@example.com")

        wrong = await client.post(
            _LOGIN_URL, json={"email": "real@example.com", "password": "bad-password"}
        )
        unknown = await client.post(
            _LOGIN_URL, json={"email": "ghost@example.com", "password": "bad-password"}
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "INVALID_CREDENTIALS"

    async def test_unverified(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """403 EMAIL_NOT_VERIFIED with the right password."""
        await _seed(session_factory, email="new@example.com", is_verified=False)

        response = await client.post(
            _LOGIN_URL, json={"email": "new@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "EMAIL_NOT_VERIFIED"

    async def test_deactivated(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """403 ACCOUNT_DEACTIVATED with the right password."""
        await _seed(session_factory, email="off@example.com", is_active=False)

        response = await client.post(
            _LOGIN_URL, json={"email": "off@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCOUNT_DEACTIVATED"


class TestChangePassword:
    """POST /auth/change-password."""

    async def test_requires_session(self, client: AsyncClient):
        """401 without a session."""
        response = await client.post(
            _CHANGE_PASSWORD_URL,
            json={"current_password": TEST_PASSWORD, "new_password": _NEW_PASSWORD},
        )
        assert response.status_code == 401

    async def test_changes_password_and_revokes_older_sessions(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """The old token stops working; the re-issued cookie keeps working."""
        account = await _seed(session_factory)
        old_token = create_test_jwt(
            account.id, iat=datetime.now(UTC) - timedelta(minutes=5)
        )

        response = await client.post(
            _CHANGE_PASSWORD_URL,
            json={"current_password": TEST_PASSWORD, "new_password": _NEW_PASSWORD},
            headers=_bearer(old_token),
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Password updated"
        assert settings.auth_cookie_name in response.cookies

        # Cookie re-issued by the response is still valid
        current = await client.get(_ME_URL)
        assert current.status_code == 200

        client.cookies.clear()
        revoked = await client.get(_ME_URL, headers=_bearer(old_token))
        assert revoked.status_code == 401

        async with session_factory() as db:
            stored = await AccountRepository.get_by_id(db, account.id)
            assert verify_password(_NEW_PASSWORD, stored.password_hash)

    async def test_wrong_current_password(
        self, client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
    ):
        """401 INVALID_CREDENTIALS and nothing changes."""
        account = await _seed(session_factory)

        response = await client.post(
            _CHANGE_PASSWORD_URL,
            json={"current_password": "nope-nope", "new_password": _NEW_PASSWORD},
            headers=_bearer(create_test_jwt(account.id)),
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"
