"""Password reset via emailed single-use codes.

request_reset answers identically whether or not the email is registered;
only the side effect (a code and an email) differs. reset_password consumes
the code, rotates the hash, and revokes every session issued before it.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.codes import issue_code
from employme.core.config import settings
from employme.core.email import EmailSender, OutboundEmail
from employme.core.errors import InvalidOrExpiredCodeError
from employme.core.passwords import hash_password, validate_password_policy
from employme.repositories.account_repository import AccountRepository

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset code has been sent."
)


class PasswordResetService:
    """Reset-code issuance and redemption.

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

    async def _is_reset_code_taken(self, code: str) -> bool:
        held = await AccountRepository.get_by_valid_reset_code(self._db, code)
        return held is not None

    async def request_reset(self, email: str) -> str:
        """Issue a reset code and queue its email if the account exists.

        Args:
            email: Email address (case-insensitive).

        Returns:
            The same generic message in every case.
        """
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return RESET_REQUESTED_MESSAGE

        issued = await issue_code(
            timedelta(minutes=settings.reset_code_ttl_minutes),
            is_taken=self._is_reset_code_taken,
        )
        await AccountRepository.update(
            self._db,
            account.id,
            reset_code=issued.code,
            reset_code_expiry=issued.expires_at,
        )
        logger.info("Password reset code issued", extra={"account_id": str(account.id)})

        self._queue_email(
            partial(
                self._email.send_password_reset_email,
                to_email=account.email,
                name=account.first_name,
                code=issued.code,
            ),
            kind="password_reset",
        )
        return RESET_REQUESTED_MESSAGE

    async def reset_password(self, *, code: str, new_password: str) -> None:
        """Consume a reset code and set a new password.

        Args:
            code: Reset code from the email.
            new_password: Replacement password.

        Raises:
            InvalidOrExpiredCodeError: If no account holds this unexpired code.
            WeakPasswordError: If new_password violates the policy.
        """
        account = await AccountRepository.get_by_valid_reset_code(
            self._db, code.strip()
        )
        if account is None:
            raise InvalidOrExpiredCodeError()

        validate_password_policy(new_password)

        await AccountRepository.update(
            self._db,
            account.id,
            password_hash=hash_password(new_password),
            reset_code=None,
            reset_code_expiry=None,
            sessions_invalidated_before=datetime.now(UTC).replace(microsecond=0),
        )
        logger.info("Password reset completed", extra={"account_id": str(account.id)})
