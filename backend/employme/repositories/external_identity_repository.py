"""Repository for ExternalIdentity CRUD operations.

Provides database access for the external_identities table.
Follows the repository pattern established by AccountRepository.
"""

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from employme.models.external_identity import ExternalIdentity


class ExternalIdentityRepository:
    """Stateless repository for ExternalIdentity table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        provider: str,
        provider_external_id: str,
        email_claim: str | None = None,
        display_name: str | None = None,
        avatar_uri: str | None = None,
    ) -> ExternalIdentity:
        """Create a new identity record linking a provider to an account.

        Args:
            db: Async database session.
            account_id: FK to accounts table.
            provider: Provider name ("google", "linkedin", "facebook").
            provider_external_id: Provider's subject identifier.
            email_claim: Email asserted by the provider.
            display_name: Display name asserted by the provider.
            avatar_uri: Profile picture URL asserted by the provider.

        Returns:
            Created ExternalIdentity with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If (provider, provider_external_id)
                or (account_id, provider) already exists.
        """
        identity = ExternalIdentity(
            account_id=account_id,
            provider=provider,
            provider_external_id=provider_external_id,
            email_claim=email_claim,
            display_name=display_name,
            avatar_uri=avatar_uri,
        )
        db.add(identity)
        await db.flush()
        await db.refresh(identity)
        return identity

    @staticmethod
    async def get_by_provider_and_external_id(
        db: AsyncSession,
        provider: str,
        provider_external_id: str,
    ) -> ExternalIdentity | None:
        """Find an identity by provider name and provider subject id.

        Used to identify returning users: if the pair already exists, we know
        which account this is regardless of the email the provider reports
        today.

        Args:
            db: Async database session.
            provider: Provider name (e.g., "google").
            provider_external_id: Provider's subject identifier.

        Returns:
            ExternalIdentity if found, None otherwise.
        """
        stmt = select(ExternalIdentity).where(
            ExternalIdentity.provider == provider,
            ExternalIdentity.provider_external_id == provider_external_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_account_and_provider(
        db: AsyncSession,
        account_id: uuid.UUID,
        provider: str,
    ) -> ExternalIdentity | None:
        """Find the identity an account holds for one provider."""
        stmt = select(ExternalIdentity).where(
            ExternalIdentity.account_id == account_id,
            ExternalIdentity.provider == provider,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_account(
        db: AsyncSession,
        account_id: uuid.UUID,
    ) -> list[ExternalIdentity]:
        """List all identities linked to an account.

        Args:
            db: Async database session.
            account_id: UUID of the account.

        Returns:
            List of ExternalIdentity records ordered by link time (may be empty).
        """
        stmt = (
            select(ExternalIdentity)
            .where(ExternalIdentity.account_id == account_id)
            .order_by(ExternalIdentity.linked_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_account(db: AsyncSession, account_id: uuid.UUID) -> int:
        """Count identities linked to an account."""
        stmt = (
            select(func.count())
            .select_from(ExternalIdentity)
            .where(ExternalIdentity.account_id == account_id)
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def delete(db: AsyncSession, identity_id: uuid.UUID) -> None:
        """Delete an identity by primary key.

        Args:
            db: Async database session.
            identity_id: UUID of the identity row.
        """
        stmt = delete(ExternalIdentity).where(ExternalIdentity.id == identity_id)
        await db.execute(stmt)
