"""Repository for role profile lookups.

Reads only the profile table that matches an account's role, one narrow
query per call. Profile content is owned by other services.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employme.models.account import Role
from employme.models.profile import AdminProfile, EmployerProfile, JobSeekerProfile

_PROFILE_MODELS: dict[Role, type[JobSeekerProfile | EmployerProfile | AdminProfile]] = {
    Role.JOB_SEEKER: JobSeekerProfile,
    Role.EMPLOYER: EmployerProfile,
    Role.ADMIN: AdminProfile,
}


class ProfileRepository:
    """Stateless repository for role profile reads."""

    @staticmethod
    async def get_profile_id(
        db: AsyncSession,
        account_id: uuid.UUID,
        role: Role | str,
    ) -> uuid.UUID | None:
        """Return the id of the profile matching the account's role.

        Args:
            db: Async database session.
            account_id: Owning account UUID.
            role: The account's role; selects which profile table is read.

        Returns:
            Profile UUID if the account has completed onboarding, None otherwise.
        """
        model = _PROFILE_MODELS[Role(role)]
        stmt = select(model.id).where(model.account_id == account_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
