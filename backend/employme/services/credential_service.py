"""Password login and password change.

Security:
- Unknown email and wrong password raise the same InvalidCredentialsError
  and both run one bcrypt comparison, so neither the response body nor its
  timing reveals which emails are registered.
- State gates (verified, then active) are only checked after the password
  matched.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.auth import SessionToken, issue_session
from employme.core.errors import (
    AccountDeactivatedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    UnauthorizedError,
)
from employme.core.passwords import (
    hash_password,
    validate_password_policy,
    verify_against_dummy,
    verify_password,
)
from employme.repositories.account_repository import AccountRepository
from employme.repositories.profile_repository import ProfileRepository
from employme.services.identity_types import AccountSummary, AuthenticatedSession

logger = logging.getLogger(__name__)


class CredentialService:
    """Local credential checks.

    Args:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def login(self, *, email: str, password: str) -> AuthenticatedSession:
        """Authenticate with email and password.

        Args:
            email: Email address (case-insensitive).
            password: Plain-text password.

        Returns:
            AuthenticatedSession with the account summary, its role profile
            reference, and a new session token.

        Raises:
            InvalidCredentialsError: Unknown email, no local password, or
                wrong password.
            EmailNotVerifiedError: Credentials valid but email unverified.
            AccountDeactivatedError: Credentials valid but account deactivated.
        """
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            verify_against_dummy(password)
            raise InvalidCredentialsError()

        if not verify_password(password, account.password_hash):
            logger.info("Login rejected", extra={"account_id": str(account.id)})
            raise InvalidCredentialsError()

        if not account.is_verified:
            raise EmailNotVerifiedError()
        if not account.is_active:
            raise AccountDeactivatedError()

        profile_id = await ProfileRepository.get_profile_id(
            self._db, account.id, account.role
        )
        session = issue_session(account.id)
        logger.info("Login succeeded", extra={"account_id": str(account.id)})
        return AuthenticatedSession(
            account=AccountSummary.from_account(account),
            profile_id=profile_id,
            session=session,
        )

    async def change_password(
        self,
        account_id: uuid.UUID,
        *,
        current_password: str | None,
        new_password: str,
    ) -> SessionToken:
        """Rotate the password of an authenticated account.

        An account without a local password (federated-only) may set its
        first password here; current_password is ignored in that case.
        Sessions issued before the change are revoked and a fresh token is
        returned for the caller.

        Args:
            account_id: Authenticated caller.
            current_password: Existing password, required when one is set.
            new_password: Replacement password.

        Returns:
            New SessionToken replacing the caller's revoked one.

        Raises:
            UnauthorizedError: If the account no longer exists.
            InvalidCredentialsError: If current_password does not match.
            WeakPasswordError: If new_password violates the policy.
        """
        account = await AccountRepository.get_by_id(self._db, account_id)
        if account is None:
            raise UnauthorizedError()

        if account.password_hash is not None and not verify_password(
            current_password or "", account.password_hash
        ):
            raise InvalidCredentialsError()

        validate_password_policy(new_password)

        await AccountRepository.update(
            self._db,
            account.id,
            password_hash=hash_password(new_password),
            sessions_invalidated_before=datetime.now(UTC).replace(microsecond=0),
        )
        logger.info("Password changed", extra={"account_id": str(account.id)})
        return issue_session(account.id)
