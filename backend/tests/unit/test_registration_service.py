"""Tests for RegistrationService.

Registration, verification with single-use codes, and resending codes.
Email delivery is a mock. Services only queue emails; nothing is sent
until the outbox is delivered, and failures never undo the account mutation.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.auth import decode_session
from employme.core.errors import (
    AlreadyVerifiedError,
    EmailAlreadyRegisteredError,
    InvalidOrExpiredCodeError,
    NotFoundError,
    WeakPasswordError,
)
from employme.core.passwords import verify_password
from employme.models.profile import JobSeekerProfile
from employme.repositories.account_repository import AccountRepository
from employme.services.registration_service import RegistrationService
from tests.conftest import TEST_PASSWORD, create_account, deliver_outbox


def _sent_code(mock_email_sender: AsyncMock) -> str:
    return mock_email_sender.send_verification_email.call_args.kwargs["code"]


class TestRegister:
    """Test RegistrationService.register()."""

    async def test_creates_unverified_account_with_code(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """New accounts start unverified with a 15-minute code."""
        service = RegistrationService(db_session, mock_email_sender)
        before = datetime.now(UTC)

        summary = await service.register(
            email="New@Example.com",
            password=TEST_PASSWORD,
            first_name=" Nia ",
            last_name="Doe",
        )

        assert summary.email == "new@example.com"
        assert summary.is_verified is False
        assert summary.role == "JOB_SEEKER"
        assert summary.first_name == "Nia"

        account = await AccountRepository.get_by_id(db_session, summary.id)
        assert account is not None
        assert account.verification_code is not None
        assert len(account.verification_code) == 6
        expiry = account.verification_code_expiry
        assert before + timedelta(minutes=14) < expiry <= datetime.now(UTC) + timedelta(
            minutes=15
        )
        assert verify_password(TEST_PASSWORD, account.password_hash)

    async def test_emails_the_stored_code(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """The emailed code is the one stored on the account."""
        service = RegistrationService(db_session, mock_email_sender)
        summary = await service.register(email="code@example.com", password=TEST_PASSWORD)
        await deliver_outbox(service)

        account = await AccountRepository.get_by_id(db_session, summary.id)
        assert _sent_code(mock_email_sender) == account.verification_code
        kwargs = mock_email_sender.send_verification_email.call_args.kwargs
        assert kwargs["to_email"] == "code@example.com"

    async def test_employer_role(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """The requested role is stored."""
        service = RegistrationService(db_session, mock_email_sender)
        summary = await service.register(
            email="boss@example.com", password=TEST_PASSWORD, role="EMPLOYER"
        )
        assert summary.role == "EMPLOYER"

    async def test_duplicate_email_rejected(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """An email in any case variant cannot be registered twice."""
        await create_account(db_session, email="taken@example.com")
        service = RegistrationService(db_session, mock_email_sender)

        with pytest.raises(EmailAlreadyRegisteredError):
            await service.register(email="TAKEN@example.com", password=TEST_PASSWORD)
        assert service.outbox == []

    async def test_weak_password_rejected_before_lookup(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Short passwords fail with WEAK_PASSWORD and nothing is created."""
        service = RegistrationService(db_session, mock_email_sender)

        with pytest.raises(WeakPasswordError):
            await service.register(email="weak@example.com", password="short")
        assert await AccountRepository.get_by_email(db_session, "weak@example.com") is None

    async def test_lost_insert_race_maps_to_already_registered(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock, monkeypatch
    ):
        """A unique violation at insert time surfaces as EMAIL_ALREADY_REGISTERED."""
        await create_account(db_session, email="race@example.com")
        real_get_by_email = AccountRepository.get_by_email

        async def miss(db, email):
            # The concurrent winner is not visible to the pre-check
            return None

        monkeypatch.setattr(AccountRepository, "get_by_email", miss)
        service = RegistrationService(db_session, mock_email_sender)

        with pytest.raises(EmailAlreadyRegisteredError):
            await service.register(email="race@example.com", password=TEST_PASSWORD)

        # Savepoint rolled back, outer transaction still usable
        monkeypatch.setattr(AccountRepository, "get_by_email", real_get_by_email)
        assert await AccountRepository.get_by_email(db_session, "race@example.com")

    async def test_email_failure_keeps_account(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """A failed send is logged and registration still succeeds."""
        mock_email_sender.send_verification_email.side_effect = httpx.ConnectError(
            "down"
        )
        service = RegistrationService(db_session, mock_email_sender)

        summary = await service.register(email="ok@example.com", password=TEST_PASSWORD)
        await deliver_outbox(service)

        assert await AccountRepository.get_by_id(db_session, summary.id) is not None


class TestVerifyEmail:
    """Test RegistrationService.verify_email()."""

    async def _register(self, db, sender) -> tuple[RegistrationService, str]:
        service = RegistrationService(db, sender)
        await service.register(email="verify@example.com", password=TEST_PASSWORD)
        await deliver_outbox(service)
        return service, _sent_code(sender)

    async def test_valid_code_verifies_and_signs_in(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Verification flips the flag, clears the code and issues a session."""
        service, code = await self._register(db_session, mock_email_sender)

        result = await service.verify_email(code)

        assert result.account.is_verified is True
        assert result.profile_id is None
        assert decode_session(result.session.value).account_id == result.account.id
        account = await AccountRepository.get_by_id(db_session, result.account.id)
        assert account.verification_code is None
        assert account.verification_code_expiry is None
        await deliver_outbox(service)
        mock_email_sender.send_welcome_email.assert_awaited_once()

    async def test_code_is_single_use(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """A consumed code no longer matches any account."""
        service, code = await self._register(db_session, mock_email_sender)
        await service.verify_email(code)

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_email(code)

    async def test_unknown_code(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """A code nobody holds is rejected."""
        service = RegistrationService(db_session, mock_email_sender)
        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_email("000000")

    async def test_expired_code(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """A code past its 15 minutes is rejected and the account stays unverified."""
        account = await create_account(
            db_session,
            is_verified=False,
            verification_code="111111",
            verification_code_expiry=datetime.now(UTC) - timedelta(minutes=1),
        )
        service = RegistrationService(db_session, mock_email_sender)

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_email("111111")
        await db_session.refresh(account)
        assert account.is_verified is False

    async def test_already_verified(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """A verified account holding a live code reports ALREADY_VERIFIED."""
        await create_account(
            db_session,
            is_verified=True,
            verification_code="222222",
            verification_code_expiry=datetime.now(UTC) + timedelta(minutes=5),
        )
        service = RegistrationService(db_session, mock_email_sender)

        with pytest.raises(AlreadyVerifiedError):
            await service.verify_email("222222")

    async def test_reports_existing_profile(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """The role profile id is returned when onboarding is complete."""
        account = await create_account(
            db_session,
            is_verified=False,
            verification_code="333333",
            verification_code_expiry=datetime.now(UTC) + timedelta(minutes=5),
        )
        profile = JobSeekerProfile(account_id=account.id)
        db_session.add(profile)
        await db_session.flush()

        result = await RegistrationService(db_session, mock_email_sender).verify_email(
            "333333"
        )
        assert result.profile_id == profile.id


class TestResendVerification:
    """Test RegistrationService.resend_verification()."""

    async def test_replaces_code(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Resending stores and emails a fresh code with a fresh expiry."""
        account = await create_account(
            db_session,
            email="again@example.com",
            is_verified=False,
            verification_code="444444",
            verification_code_expiry=datetime.now(UTC) + timedelta(minutes=1),
        )
        service = RegistrationService(db_session, mock_email_sender)

        await service.resend_verification("Again@Example.com")
        await deliver_outbox(service)

        await db_session.refresh(account)
        assert account.verification_code == _sent_code(mock_email_sender)
        assert account.verification_code_expiry > datetime.now(UTC) + timedelta(
            minutes=14
        )

    async def test_unknown_email(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Unknown emails are reported as NOT_FOUND."""
        with pytest.raises(NotFoundError):
            await RegistrationService(
                db_session, mock_email_sender
            ).resend_verification("ghost@example.com")

    async def test_already_verified(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Verified accounts get no new code."""
        await create_account(db_session, email="done@example.com", is_verified=True)
        service = RegistrationService(db_session, mock_email_sender)
        with pytest.raises(AlreadyVerifiedError):
            await service.resend_verification("done@example.com")
        assert service.outbox == []


class TestOutbox:
    """Emails wait for the caller to deliver the outbox."""

    async def test_register_queues_without_sending(
        self, db_session: AsyncSession, mock_email_sender: AsyncMock
    ):
        """Nothing is sent while the registering transaction is still open."""
        service = RegistrationService(db_session, mock_email_sender)

        await service.register(email="queued@example.com", password=TEST_PASSWORD)

        mock_email_sender.send_verification_email.assert_not_awaited()
        assert [email.kind for email in service.outbox] == ["verification"]

        await deliver_outbox(service)
        mock_email_sender.send_verification_email.assert_awaited_once()
        assert service.outbox == []
