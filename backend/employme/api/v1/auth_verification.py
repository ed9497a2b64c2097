"""Code-based endpoints: email verification and password reset.

- POST /auth/verify-email: consume verification code, sign in
- POST /auth/resend-verification: issue a fresh verification code
- POST /auth/request-password-reset: always answers the same way
- POST /auth/reset-password: consume reset code, set new password
"""

from fastapi import APIRouter, BackgroundTasks, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from employme.api.deps import DbSession, Mailer
from employme.core.auth import set_session_cookie
from employme.core.email import schedule_outbox
from employme.core.responses import DataResponse, MessageData
from employme.services.password_reset_service import PasswordResetService
from employme.services.registration_service import RegistrationService

router = APIRouter()

_CODE_MAX_LENGTH = 16


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=_CODE_MAX_LENGTH)


class EmailRequest(BaseModel):
    """Request body carrying only an email address."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=_CODE_MAX_LENGTH)
    new_password: str = Field(min_length=1, max_length=128)


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: DbSession,
    email_sender: Mailer,
) -> DataResponse[dict]:
    """Verify the email address and sign the account in."""
    service = RegistrationService(db, email_sender)
    result = await service.verify_email(body.code)
    await db.commit()
    schedule_outbox(background_tasks, service.outbox)
    set_session_cookie(response, result.session)
    return DataResponse(data=result.to_dict())


@router.post("/resend-verification")
async def resend_verification(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    email_sender: Mailer,
) -> DataResponse[MessageData]:
    """Replace the pending verification code and email it again."""
    service = RegistrationService(db, email_sender)
    await service.resend_verification(body.email)
    await db.commit()
    schedule_outbox(background_tasks, service.outbox)
    return DataResponse(data=MessageData(message="Verification code sent"))


@router.post("/request-password-reset")
async def request_password_reset(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    email_sender: Mailer,
) -> DataResponse[MessageData]:
    """Start a password reset.

    Security: identical response whether or not the email is registered.
    The email is sent as a background task so response time does not
    depend on it either.
    """
    service = PasswordResetService(db, email_sender)
    message = await service.request_reset(body.email)
    await db.commit()
    schedule_outbox(background_tasks, service.outbox)
    return DataResponse(data=MessageData(message=message))


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: DbSession,
    email_sender: Mailer,
) -> DataResponse[MessageData]:
    """Set a new password with a reset code. All prior sessions are revoked."""
    await PasswordResetService(db, email_sender).reset_password(
        code=body.code, new_password=body.new_password
    )
    await db.commit()
    return DataResponse(data=MessageData(message="Password has been reset"))
