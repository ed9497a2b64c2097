"""Shared dependencies for API endpoints.

Authentication: the session token is read from the http-only cookie, or
from an ``Authorization: Bearer`` header for non-browser clients. There is
no fallback identity: a request without a valid session is rejected.

Collaborators (email sender, provider registry) are provided here so tests
can swap them through app.dependency_overrides.
"""

import uuid
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from employme.core.auth import decode_session
from employme.core.config import settings
from employme.core.database import get_db
from employme.core.email import EmailSender
from employme.core.errors import AccountDeactivatedError, UnauthorizedError
from employme.core.oauth import ProviderRegistry, build_provider_registry
from employme.models.account import Account
from employme.repositories.account_repository import AccountRepository

_BEARER_PREFIX = "bearer "


def _read_session_token(request: Request) -> str | None:
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith(_BEARER_PREFIX):
        return header[len(_BEARER_PREFIX) :].strip() or None
    return None


async def get_current_account(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Account:
    """Resolve the authenticated Account for a request.

    Validation steps:
    1. Read the token from the cookie, else the Bearer header
    2. Decode + verify signature, exp, aud, iss (decode_session)
    3. Load the account (deleted accounts are rejected)
    4. Reject tokens issued before sessions_invalidated_before (revocation)
    5. Reject deactivated accounts

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session (injected).

    Returns:
        The authenticated Account.

    Raises:
        UnauthorizedError: For any token or account lookup failure. The
            message never says why.
        AccountDeactivatedError: If the account is deactivated.
    """
    token = _read_session_token(request)
    if not token:
        raise UnauthorizedError()

    try:
        claims = decode_session(token)
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError() from exc

    account = await AccountRepository.get_by_id(db, claims.account_id)
    if account is None:
        raise UnauthorizedError()

    invalidated_before = account.sessions_invalidated_before
    if invalidated_before is not None and claims.issued_at < invalidated_before:
        raise UnauthorizedError()

    if not account.is_active:
        raise AccountDeactivatedError()

    return account


async def get_current_account_id(
    account: Annotated[Account, Depends(get_current_account)],
) -> uuid.UUID:
    """Get the authenticated account's id.

    Most endpoints only need the id; use get_current_account for the row.
    """
    return account.id


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Provider registry built once from settings."""
    return build_provider_registry(settings)


def get_email_sender() -> EmailSender:
    """Outbound email collaborator configured from settings."""
    return EmailSender()


# Reusable type aliases for dependency injection
CurrentAccount = Annotated[Account, Depends(get_current_account)]
CurrentAccountId = Annotated[uuid.UUID, Depends(get_current_account_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Providers = Annotated[ProviderRegistry, Depends(get_provider_registry)]
Mailer = Annotated[EmailSender, Depends(get_email_sender)]
