"""Registration and email verification.

Local sign-up creates an unverified Account with a bcrypt password hash and
a 15-minute verification code. Verifying the code flips the account to
verified exactly once, clears the code, and signs the user in.

Emails are queued on ``outbox`` rather than sent; the route schedules them
after commit. Delivery is best-effort: a failed send is logged and the
account mutation that triggered it stands.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta
from functools import partial

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.auth import issue_session
from employme.core.codes import issue_code
from employme.core.config import settings
from employme.core.email import EmailSender, OutboundEmail
from employme.core.errors import (
    AlreadyVerifiedError,
    EmailAlreadyRegisteredError,
    InvalidOrExpiredCodeError,
    NotFoundError,
)
from employme.core.passwords import hash_password, validate_password_policy
from employme.models.account import Account, Role
from employme.repositories.account_repository import AccountRepository
from employme.repositories.profile_repository import ProfileRepository
from employme.services.identity_types import AccountSummary, AuthenticatedSession

logger = logging.getLogger(__name__)


class RegistrationService:
    """Account creation and email verification.

    Args:
        db: Async database session.
        email_sender: Outbound email collaborator.
    """

    def __init__(self, db: AsyncSession, email_sender: EmailSender) -> None:
        self._db = db
        self._email = email_sender
        self.outbox: list[OutboundEmail] = []

    def _queue_email(
        self, send: Callable[[], Awaitable[None]], *, kind: str
    ) -> None:
        self.outbox.append(OutboundEmail(kind=kind, send=send))

    async def _is_verification_code_taken(self, code: str) -> bool:
        held = await AccountRepository.get_by_valid_verification_code(self._db, code)
        return held is not None

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role: Role | str | None = None,
    ) -> AccountSummary:
        """Create an unverified account and queue its verification code.

        Args:
            email: Email address (case-insensitive).
            password: Plain-text password.
            first_name: Given name.
            last_name: Family name.
            role: Account role, JOB_SEEKER when omitted.

        Returns:
            AccountSummary of the new account.

        Raises:
            WeakPasswordError: If the password is shorter than the policy minimum.
            EmailAlreadyRegisteredError: If the email is already in use.
        """
        validate_password_policy(password)

        if await AccountRepository.get_by_email(self._db, email) is not None:
            raise EmailAlreadyRegisteredError()

        issued = await issue_code(
            timedelta(minutes=settings.verification_code_ttl_minutes),
            is_taken=self._is_verification_code_taken,
        )

        # Savepoint: a concurrent registration for the same email loses here
        # without invalidating the outer transaction.
        try:
            async with self._db.begin_nested():
                account = await AccountRepository.create(
                    self._db,
                    email=email,
                    password_hash=hash_password(password),
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                    role=role or Role.JOB_SEEKER,
                    verification_code=issued.code,
                    verification_code_expiry=issued.expires_at,
                )
        except IntegrityError as exc:
            raise EmailAlreadyRegisteredError() from exc

        logger.info(
            "Account registered",
            extra={"account_id": str(account.id), "role": account.role},
        )

        self._queue_email(
            partial(
                self._email.send_verification_email,
                to_email=account.email,
                name=account.first_name,
                code=issued.code,
            ),
            kind="verification",
        )
        return AccountSummary.from_account(account)

    async def verify_email(self, code: str) -> AuthenticatedSession:
        """Consume a verification code and sign the account in.

        Args:
            code: Verification code from the email.

        Returns:
            AuthenticatedSession for the now-verified account.

        Raises:
            InvalidOrExpiredCodeError: If no account holds this unexpired code.
            AlreadyVerifiedError: If the matching account is already verified.
        """
        account = await AccountRepository.get_by_valid_verification_code(
            self._db, code.strip()
        )
        if account is None:
            raise InvalidOrExpiredCodeError()
        if account.is_verified:
            raise AlreadyVerifiedError()

        account = await self._mark_verified(account.id)
        session = issue_session(account.id)
        profile_id = await ProfileRepository.get_profile_id(
            self._db, account.id, account.role
        )

        logger.info("Email verified", extra={"account_id": str(account.id)})

        self._queue_email(
            partial(
                self._email.send_welcome_email,
                to_email=account.email,
                name=account.first_name,
            ),
            kind="welcome",
        )
        return AuthenticatedSession(
            account=AccountSummary.from_account(account),
            profile_id=profile_id,
            session=session,
        )

    async def resend_verification(self, email: str) -> None:
        """Replace the pending verification code and queue it for sending.

        Args:
            email: Email address of the account.

        Raises:
            NotFoundError: If no account has this email.
            AlreadyVerifiedError: If the account is already verified.
        """
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            raise NotFoundError("Account")
        if account.is_verified:
            raise AlreadyVerifiedError()

        issued = await issue_code(
            timedelta(minutes=settings.verification_code_ttl_minutes),
            is_taken=self._is_verification_code_taken,
        )
        await AccountRepository.update(
            self._db,
            account.id,
            verification_code=issued.code,
            verification_code_expiry=issued.expires_at,
        )

        logger.info("Verification code reissued", extra={"account_id": str(account.id)})

        self._queue_email(
            partial(
                self._email.send_verification_email,
                to_email=account.email,
                name=account.first_name,
                code=issued.code,
            ),
            kind="verification",
        )

    async def _mark_verified(self, account_id: uuid.UUID) -> Account:
        account = await AccountRepository.update(
            self._db,
            account_id,
            is_verified=True,
            verification_code=None,
            verification_code_expiry=None,
        )
        if account is None:
            raise InvalidOrExpiredCodeError()
        return account
