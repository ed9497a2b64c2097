"""Authentication endpoints for password-based auth.

register, login, change-password endpoints.

Security considerations:
- login: dummy bcrypt comparison at the configured cost prevents account enumeration
- register: bcrypt with configurable cost, email uniqueness, verification email
- change-password: verifies current password, invalidates all sessions
"""

from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from employme.api.deps import CurrentAccountId, DbSession, Mailer
from employme.core.auth import set_session_cookie
from employme.core.email import schedule_outbox
from employme.core.responses import DataResponse, MessageData
from employme.services.credential_service import CredentialService
from employme.services.registration_service import RegistrationService

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register.

    ADMIN accounts are not self-service; they are created by the
    administrative tooling.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    role: Literal["JOB_SEEKER", "EMPLOYER"] = "JOB_SEEKER"


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    model_config = ConfigDict(extra="forbid")

    current_password: str | None = Field(None, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    email_sender: Mailer,
) -> DataResponse[dict]:
    """Register a new account with email + password.

    Unauthenticated. Creates an unverified account and emails a
    verification code. No session is issued until the email is verified.
    """
    service = RegistrationService(db, email_sender)
    summary = await service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
    )
    await db.commit()
    schedule_outbox(background_tasks, service.outbox)
    return DataResponse(data=summary.to_dict())


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    db: DbSession,
) -> DataResponse[dict]:
    """Verify email + password and issue the session cookie.

    Unauthenticated. Unknown email and wrong password produce the same
    INVALID_CREDENTIALS response.
    """
    result = await CredentialService(db).login(email=body.email, password=body.password)
    set_session_cookie(response, result.session)
    return DataResponse(data=result.to_dict())


# ===================================================================
# POST /auth/change-password
# ===================================================================


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    account_id: CurrentAccountId,
    db: DbSession,
) -> DataResponse[MessageData]:
    """Change password for the authenticated account.

    Authenticated. Verifies the current password if one is set, applies
    the password policy, and invalidates all sessions. Re-issues the
    session cookie so the current session stays valid.
    """
    session = await CredentialService(db).change_password(
        account_id,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    await db.commit()
    set_session_cookie(response, session)
    return DataResponse(data=MessageData(message="Password updated"))
