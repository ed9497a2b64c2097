"""Role profile models - job seeker, employer, and admin profiles.

Profile content (CVs, company details, ...) is owned by the job board's CRUD
services. The identity core only needs to know whether the profile matching
an account's role exists and what its id is, so only the ownership columns
are mapped here.
"""

import uuid

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from employme.models.base import Base, TimestampMixin


class _ProfileColumns(TimestampMixin):
    """Shared id + owning account columns for role profiles."""

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )


class JobSeekerProfile(Base, _ProfileColumns):
    """Profile for JOB_SEEKER accounts."""

    __tablename__ = "job_seeker_profiles"


class EmployerProfile(Base, _ProfileColumns):
    """Profile for EMPLOYER accounts."""

    __tablename__ = "employer_profiles"


class AdminProfile(Base, _ProfileColumns):
    """Profile for ADMIN accounts."""

    __tablename__ = "admin_profiles"
