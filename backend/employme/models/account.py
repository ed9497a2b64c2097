"""Account model - the canonical identity record.

One row per person regardless of how they first signed in (local
registration or first federated login). Email is stored lower-cased and is
unique across all accounts.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from employme.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from employme.models.external_identity import ExternalIdentity

_CASCADE_ALL_DELETE_ORPHAN = "all, delete-orphan"


class Role(str, Enum):
    """Account role, assigned at creation."""

    JOB_SEEKER = "JOB_SEEKER"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


class Account(Base, TimestampMixin):
    """User account for authentication.

    Invariant: an account always has at least one way to sign in, either
    ``password_hash`` or one linked ExternalIdentity. The identity resolver
    enforces this before deleting identities.

    Attributes:
        id: UUID primary key.
        email: Unique, lower-cased email address.
        password_hash: bcrypt hash. NULL for federated-only accounts.
        first_name: Given name (registration form or provider profile).
        last_name: Family name.
        image_url: Profile picture URL from a provider.
        role: JOB_SEEKER, EMPLOYER or ADMIN.
        is_verified: Whether the email address has been verified.
        is_active: False once an administrator deactivates the account.
        verification_code: Pending email verification code.
        verification_code_expiry: Absolute expiry of verification_code.
        reset_code: Pending password reset code.
        reset_code_expiry: Absolute expiry of reset_code.
        sessions_invalidated_before: Session tokens issued earlier are rejected.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("email", name="uq_accounts_email"),
        CheckConstraint(
            "role IN ('JOB_SEEKER', 'EMPLOYER', 'ADMIN')",
            name="ck_accounts_role",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
        default="",
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
        default="",
    )
    image_url: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=Role.JOB_SEEKER.value,
        default=Role.JOB_SEEKER.value,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("true"),
        default=True,
    )
    verification_code: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        index=True,
    )
    verification_code_expiry: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    reset_code: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        index=True,
    )
    reset_code_expiry: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    sessions_invalidated_before: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    # Relationships (lazy="raise": load identities through the repository)
    external_identities: Mapped[list["ExternalIdentity"]] = relationship(
        "ExternalIdentity",
        back_populates="account",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
        passive_deletes=True,
        lazy="raise",
    )

    @property
    def display_name(self) -> str:
        """First and last name joined, or empty string."""
        return f"{self.first_name} {self.last_name}".strip()
