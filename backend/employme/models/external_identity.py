"""ExternalIdentity model - federated provider identities.

Links one Account to one (provider, provider_external_id) pair. Rows are
created on implicit merge, first federated sign-in, or explicit link, and
deleted on unlink. They are never updated in place.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from employme.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from employme.models.account import Account


class Provider(str, Enum):
    """Supported federated identity providers."""

    GOOGLE = "google"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"


class ExternalIdentity(Base):
    """Federated identity owned by exactly one Account.

    Attributes:
        id: UUID primary key.
        account_id: FK to accounts table.
        provider: Provider name ("google", "linkedin", "facebook").
        provider_external_id: Provider's subject identifier.
        email_claim: Email asserted by the provider at link time. May
            differ from Account.email.
        display_name: Display name asserted by the provider.
        avatar_uri: Profile picture URL asserted by the provider.
        linked_at: When the identity was linked.
    """

    __tablename__ = "external_identities"
    __table_args__ = (
        UniqueConstraint(
            "provider",
            "provider_external_id",
            name="uq_external_identities_provider_external_id",
        ),
        UniqueConstraint(
            "account_id",
            "provider",
            name="uq_external_identities_account_provider",
        ),
        CheckConstraint(
            "provider IN ('google', 'linkedin', 'facebook')",
            name="ck_external_identities_provider",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    email_claim: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_uri: Mapped[str | None] = mapped_column(Text(), nullable=True)
    linked_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    account: Mapped["Account"] = relationship(
        "Account",
        back_populates="external_identities",
        lazy="raise",
    )
