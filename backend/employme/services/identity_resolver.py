"""Federated identity resolution and explicit linking.

Resolution order for a provider assertion:
1. Identity match: (provider, provider_external_id) already linked, sign in
   as its owner. Read-only, so repeat logins are idempotent.
2. Email match: an Account holds the asserted email, attach a new
   ExternalIdentity to it (implicit merge).
3. New account: create a verified, password-less Account plus its
   ExternalIdentity.
4. No email claim: MissingEmailClaimError.

Identity match runs before email match so a user whose provider-side email
changed after linking is still recognized by the provider identity.

Concurrency: no application locks are taken for resolution. The unique
constraints on accounts.email and (provider, provider_external_id) decide
races. Inserts run inside a SAVEPOINT; a unique violation rolls back only
the savepoint and the lookup chain is re-run once, returning the winner.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.auth import issue_session
from employme.core.errors import (
    AccountDeactivatedError,
    IdentityAlreadyLinkedElsewhereError,
    IdentityAlreadyLinkedToSelfError,
    LastAuthMethodError,
    MissingEmailClaimError,
    NotFoundError,
    NotLinkedError,
    ProviderAlreadyLinkedError,
    UnauthorizedError,
    ValidationError,
)
from employme.core.oauth import ProviderRegistry
from employme.core.oauth_client import ProviderAssertion
from employme.models.account import Account, Role
from employme.models.external_identity import ExternalIdentity
from employme.repositories.account_repository import AccountRepository
from employme.repositories.external_identity_repository import (
    ExternalIdentityRepository,
)
from employme.repositories.profile_repository import ProfileRepository
from employme.services.identity_types import AccountSummary, AuthenticatedSession

logger = logging.getLogger(__name__)


class ResolutionPath(str, Enum):
    """Which resolution step produced the account."""

    IDENTITY_MATCH = "identity_match"
    EMAIL_MATCH = "email_match"
    NEW_ACCOUNT = "new_account"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a provider assertion.

    Attributes:
        account: The resolved Account.
        path: Resolution step that produced it.
    """

    account: Account
    path: ResolutionPath


class IdentityResolver:
    """Reconciles provider assertions with Accounts and ExternalIdentities.

    Args:
        db: Async database session.
        providers: Provider registry; assertions from providers outside it
            are rejected.
    """

    def __init__(self, db: AsyncSession, providers: ProviderRegistry) -> None:
        self._db = db
        self._providers = providers

    def _require_supported(self, provider: str) -> None:
        if provider not in self._providers:
            raise ValidationError(f"Unsupported OAuth provider: {provider}")

    # -----------------------------------------------------------------------
    # Federated sign-in
    # -----------------------------------------------------------------------

    async def resolve(self, assertion: ProviderAssertion) -> Resolution:
        """Find or create the Account for a provider assertion.

        Args:
            assertion: Verified claims from the provider.

        Returns:
            Resolution with the Account and the step that produced it.

        Raises:
            ValidationError: If the provider is not supported.
            MissingEmailClaimError: If no identity matches and the assertion
                has no email.
            ProviderAlreadyLinkedError: If the email-matched Account already
                holds a different identity for this provider.
            AccountDeactivatedError: If the email-matched Account is
                deactivated. No identity is attached.
            sqlalchemy.exc.IntegrityError: If a unique violation persists
                after one re-lookup.
        """
        self._require_supported(assertion.provider)

        resolution = await self._match_identity(assertion)
        if resolution is not None:
            return resolution

        if not assertion.email_claim:
            raise MissingEmailClaimError(assertion.provider)

        try:
            return await self._attach_or_create(assertion)
        except IntegrityError:
            # Lost a race with a concurrent request. The savepoint was
            # rolled back; the session is still usable.
            logger.info(
                "Resolution conflict, re-running lookup",
                extra={"provider": assertion.provider},
            )

        resolution = await self._match_identity(assertion)
        if resolution is not None:
            return resolution
        return await self._attach_or_create(assertion)

    async def sign_in(self, assertion: ProviderAssertion) -> AuthenticatedSession:
        """Resolve an assertion and issue a session for the Account.

        Args:
            assertion: Verified claims from the provider.

        Returns:
            AuthenticatedSession for the resolved Account.

        Raises:
            AccountDeactivatedError: If the resolved Account is deactivated.
            Everything resolve() raises.
        """
        resolution = await self.resolve(assertion)
        account = resolution.account
        if not account.is_active:
            raise AccountDeactivatedError()

        profile_id = await ProfileRepository.get_profile_id(
            self._db, account.id, account.role
        )
        logger.info(
            "Federated sign-in",
            extra={
                "account_id": str(account.id),
                "provider": assertion.provider,
                "path": resolution.path.value,
            },
        )
        return AuthenticatedSession(
            account=AccountSummary.from_account(account),
            profile_id=profile_id,
            session=issue_session(account.id),
        )

    async def _match_identity(self, assertion: ProviderAssertion) -> Resolution | None:
        identity = await ExternalIdentityRepository.get_by_provider_and_external_id(
            self._db, assertion.provider, assertion.provider_external_id
        )
        if identity is None:
            return None
        account = await AccountRepository.get_by_id(self._db, identity.account_id)
        if account is None:
            return None
        return Resolution(account=account, path=ResolutionPath.IDENTITY_MATCH)

    async def _attach_or_create(self, assertion: ProviderAssertion) -> Resolution:
        """Email match or new account, inside one savepoint."""
        email = assertion.email_claim or ""
        async with self._db.begin_nested():
            account = await AccountRepository.get_by_email(self._db, email)
            if account is not None:
                if not account.is_active:
                    raise AccountDeactivatedError()
                held = await ExternalIdentityRepository.get_by_account_and_provider(
                    self._db, account.id, assertion.provider
                )
                if held is not None:
                    if held.provider_external_id == assertion.provider_external_id:
                        # Committed by a concurrent request after our lookup
                        return Resolution(
                            account=account, path=ResolutionPath.IDENTITY_MATCH
                        )
                    raise ProviderAlreadyLinkedError(assertion.provider)
                await self._create_identity(account.id, assertion)
                logger.info(
                    "Linked provider identity by email",
                    extra={"account_id": str(account.id), "provider": assertion.provider},
                )
                return Resolution(account=account, path=ResolutionPath.EMAIL_MATCH)

            account = await AccountRepository.create(
                self._db,
                email=email,
                password_hash=None,
                first_name=assertion.first_name,
                last_name=assertion.last_name,
                image_url=assertion.avatar_uri,
                role=Role.JOB_SEEKER,
                is_verified=True,
            )
            await self._create_identity(account.id, assertion)
        logger.info(
            "Created account from provider identity",
            extra={"account_id": str(account.id), "provider": assertion.provider},
        )
        return Resolution(account=account, path=ResolutionPath.NEW_ACCOUNT)

    async def _create_identity(
        self, account_id: uuid.UUID, assertion: ProviderAssertion
    ) -> ExternalIdentity:
        return await ExternalIdentityRepository.create(
            self._db,
            account_id=account_id,
            provider=assertion.provider,
            provider_external_id=assertion.provider_external_id,
            email_claim=assertion.email_claim,
            display_name=assertion.display_name,
            avatar_uri=assertion.avatar_uri,
        )

    # -----------------------------------------------------------------------
    # Explicit linking
    # -----------------------------------------------------------------------

    async def link_identity(
        self,
        account_id: uuid.UUID,
        assertion: ProviderAssertion,
        *,
        authorized_at: datetime | None = None,
    ) -> ExternalIdentity:
        """Link a provider identity to an authenticated Account.

        Args:
            account_id: Authenticated caller.
            assertion: Verified claims from the provider.
            authorized_at: When the caller was last authenticated, e.g. the
                issue time of the link state. Refused if sessions were
                revoked after it.

        Returns:
            The new ExternalIdentity.

        Raises:
            ValidationError: If the provider is not supported.
            NotFoundError: If the Account does not exist.
            AccountDeactivatedError: If the Account is deactivated.
            UnauthorizedError: If sessions were revoked after authorized_at.
            IdentityAlreadyLinkedElsewhereError: Identity owned by another Account.
            IdentityAlreadyLinkedToSelfError: Identity already owned by the caller.
            ProviderAlreadyLinkedError: Caller holds a different identity for
                this provider.
        """
        self._require_supported(assertion.provider)

        account = await AccountRepository.get_by_id(self._db, account_id)
        if account is None:
            raise NotFoundError("Account", str(account_id))

        if not account.is_active:
            raise AccountDeactivatedError()
        invalidated_before = account.sessions_invalidated_before
        if (
            authorized_at is not None
            and invalidated_before is not None
            and authorized_at < invalidated_before
        ):
            raise UnauthorizedError()

        await self._check_link_owner(account_id, assertion)

        held = await ExternalIdentityRepository.get_by_account_and_provider(
            self._db, account_id, assertion.provider
        )
        if held is not None:
            raise ProviderAlreadyLinkedError(assertion.provider)

        try:
            async with self._db.begin_nested():
                identity = await self._create_identity(account_id, assertion)
        except IntegrityError:
            await self._check_link_owner(account_id, assertion)
            raise

        logger.info(
            "Linked provider identity",
            extra={"account_id": str(account_id), "provider": assertion.provider},
        )
        return identity

    async def _check_link_owner(
        self, account_id: uuid.UUID, assertion: ProviderAssertion
    ) -> None:
        owner = await ExternalIdentityRepository.get_by_provider_and_external_id(
            self._db, assertion.provider, assertion.provider_external_id
        )
        if owner is None:
            return
        if owner.account_id == account_id:
            raise IdentityAlreadyLinkedToSelfError(assertion.provider)
        raise IdentityAlreadyLinkedElsewhereError(assertion.provider)

    async def unlink_identity(self, account_id: uuid.UUID, provider: str) -> None:
        """Remove the caller's identity for a provider.

        The account row is locked first so two concurrent unlinks cannot
        both pass the last-method check.

        Args:
            account_id: Authenticated caller.
            provider: Provider name to unlink.

        Raises:
            NotFoundError: If the Account does not exist.
            NotLinkedError: If the caller has no identity for the provider.
            LastAuthMethodError: If the account has no password and this is
                its only identity. Nothing is modified.
        """
        account = await AccountRepository.get_by_id_for_update(self._db, account_id)
        if account is None:
            raise NotFoundError("Account", str(account_id))

        identity = await ExternalIdentityRepository.get_by_account_and_provider(
            self._db, account_id, provider
        )
        if identity is None:
            raise NotLinkedError(provider)

        if account.password_hash is None:
            remaining = await ExternalIdentityRepository.count_by_account(
                self._db, account_id
            )
            if remaining <= 1:
                raise LastAuthMethodError()

        await ExternalIdentityRepository.delete(self._db, identity.id)
        logger.info(
            "Unlinked provider identity",
            extra={"account_id": str(account_id), "provider": provider},
        )

    async def list_linked_providers(self, account_id: uuid.UUID) -> list[str]:
        """Provider names linked to an account, oldest link first."""
        identities = await ExternalIdentityRepository.list_by_account(
            self._db, account_id
        )
        return [identity.provider for identity in identities]
