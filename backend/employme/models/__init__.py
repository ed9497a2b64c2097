"""SQLAlchemy ORM models for the EmployMe identity service.

All models are exported from this module for convenient imports:
    from employme.models import Account, ExternalIdentity, ...

Models are organized by domain:
- account.py: Account, Role (Tier 0)
- external_identity.py: ExternalIdentity, Provider (Tier 1 - federated auth)
- profile.py: JobSeekerProfile, EmployerProfile, AdminProfile (Tier 1)
"""

from employme.models.account import Account, Role
from employme.models.base import Base, TimestampMixin, UTCDateTime
from employme.models.external_identity import ExternalIdentity, Provider
from employme.models.profile import AdminProfile, EmployerProfile, JobSeekerProfile

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Tier 0
    "Account",
    "Role",
    # Tier 1 - Federated auth
    "ExternalIdentity",
    "Provider",
    # Tier 1 - Role profiles
    "JobSeekerProfile",
    "EmployerProfile",
    "AdminProfile",
]
