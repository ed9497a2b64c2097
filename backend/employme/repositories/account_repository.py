"""Repository for Account CRUD operations.

Provides database access for the accounts table. Email lookups are
case-insensitive because emails are normalized to lowercase on write.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employme.models.account import Account, Role

# Fields that may be updated via AccountRepository.update().
# Security: Never add 'id', 'email', 'role', 'is_active', 'created_at',
# or 'updated_at'.
# - id: primary key, immutable
# - email: unique identity, requires dedicated flow with re-verification
# - role: assigned at creation
# - is_active: owned by the administrative collaborator
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "first_name",
        "last_name",
        "image_url",
        "password_hash",
        "is_verified",
        "verification_code",
        "verification_code_expiry",
        "reset_code",
        "reset_code_expiry",
        "sessions_invalidated_before",
    }
)


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


class AccountRepository:
    """Stateless repository for Account table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account | None:
        """Fetch an account by primary key.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            Account if found, None otherwise.
        """
        return await db.get(Account, account_id)

    @staticmethod
    async def get_by_id_for_update(
        db: AsyncSession, account_id: uuid.UUID
    ) -> Account | None:
        """Fetch an account and lock its row until the transaction ends.

        Serializes concurrent changes to the account's sign-in methods.
        Dialects without row locks (SQLite) ignore FOR UPDATE.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.id == account_id).with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Account | None:
        """Fetch an account by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.email == normalize_email(email))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_valid_verification_code(
        db: AsyncSession, code: str
    ) -> Account | None:
        """Fetch the account holding an unexpired verification code.

        Expiry is compared against the server clock inside the query.

        Args:
            db: Async database session.
            code: Verification code from the user.

        Returns:
            Account if the code matches and has not expired, None otherwise.
        """
        stmt = select(Account).where(
            Account.verification_code == code,
            Account.verification_code_expiry > datetime.now(UTC),
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_by_valid_reset_code(db: AsyncSession, code: str) -> Account | None:
        """Fetch the account holding an unexpired password reset code.

        Args:
            db: Async database session.
            code: Reset code from the user.

        Returns:
            Account if the code matches and has not expired, None otherwise.
        """
        stmt = select(Account).where(
            Account.reset_code == code,
            Account.reset_code_expiry > datetime.now(UTC),
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str | None = None,
        first_name: str = "",
        last_name: str = "",
        image_url: str | None = None,
        role: Role | str = Role.JOB_SEEKER,
        is_verified: bool = False,
        verification_code: str | None = None,
        verification_code_expiry: datetime | None = None,
    ) -> Account:
        """Create a new account.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: Account email address.
            password_hash: bcrypt hash (None for federated-only accounts).
            first_name: Given name.
            last_name: Family name.
            image_url: Profile picture URL.
            role: Account role.
            is_verified: Initial verification state.
            verification_code: Initial verification code.
            verification_code_expiry: Expiry of the initial code.

        Returns:
            Created Account with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        account = Account(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            image_url=image_url,
            role=Role(role).value,
            is_verified=is_verified,
            verification_code=verification_code,
            verification_code_expiry=verification_code_expiry,
        )
        db.add(account)
        await db.flush()
        await db.refresh(account)
        return account

    @staticmethod
    async def update(
        db: AsyncSession,
        account_id: uuid.UUID,
        **kwargs: str | datetime | bool | None,
    ) -> Account | None:
        """Update account fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            account_id: UUID of the account to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated Account if found, None if account does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        account = await db.get(Account, account_id)
        if account is None:
            return None

        for field, value in kwargs.items():
            setattr(account, field, value)

        await db.flush()
        await db.refresh(account)
        return account
