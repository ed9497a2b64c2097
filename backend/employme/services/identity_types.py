"""Value types shared by the identity services.

Services return these instead of ORM rows so that callers (routes, tests)
never see password hashes or pending codes.
"""

import uuid
from dataclasses import dataclass
from typing import Any

from employme.core.auth import SessionToken
from employme.models.account import Account


@dataclass(frozen=True)
class AccountSummary:
    """Public view of an Account.

    Attributes:
        id: Account UUID.
        email: Lower-cased email address.
        first_name: Given name.
        last_name: Family name.
        role: JOB_SEEKER, EMPLOYER or ADMIN.
        is_verified: Whether the email address has been verified.
        image_url: Profile picture URL, if any.
    """

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: str
    is_verified: bool
    image_url: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        """Build a summary from an ORM row."""
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            role=account.role,
            is_verified=account.is_verified,
            image_url=account.image_url,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation for API responses."""
        return {
            "id": str(self.id),
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "is_verified": self.is_verified,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class AuthenticatedSession:
    """Outcome of a successful authentication.

    Attributes:
        account: Summary of the authenticated account.
        profile_id: Role profile reference, None before onboarding.
        session: Freshly issued session token for the cookie.
    """

    account: AccountSummary
    profile_id: uuid.UUID | None
    session: SessionToken

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (the token itself travels in the cookie)."""
        return {
            "account": self.account.to_dict(),
            "profile_id": str(self.profile_id) if self.profile_id else None,
            "has_profile": self.profile_id is not None,
        }
