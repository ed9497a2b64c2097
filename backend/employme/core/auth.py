"""Session issuance: signed session tokens and cookie transport.

Pipeline:
- issue_session: mint a signed JWT bound to an account id
- decode_session: verify signature, expiry, audience and issuer
- set_session_cookie / clear_session_cookie: http-only cookie transport
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Response

from employme.core.config import settings

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionToken:
    """Opaque session credential handed to the client.

    Attributes:
        value: Encoded JWT placed in the session cookie.
        account_id: Owning account.
        issued_at: Issuance time, truncated to whole seconds (JWT iat).
        expires_at: Absolute expiry.
    """

    value: str
    account_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    account_id: uuid.UUID
    issued_at: datetime


def _session_ttl() -> timedelta:
    return timedelta(days=settings.session_ttl_days)


def issue_session(account_id: uuid.UUID) -> SessionToken:
    """Create a signed session token for an account.

    iat is truncated to whole seconds because JWT encodes it as an integer;
    revocation compares against it (see get_current_account_id).

    Args:
        account_id: Account the session authenticates.

    Returns:
        SessionToken with the encoded JWT and its time window.
    """
    issued_at = datetime.now(UTC).replace(microsecond=0)
    expires_at = issued_at + _session_ttl()
    payload = {
        "sub": str(account_id),
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": issued_at,
        "exp": expires_at,
    }
    value = jwt.encode(
        payload, settings.auth_secret.get_secret_value(), algorithm=_ALGORITHM
    )
    return SessionToken(
        value=value,
        account_id=account_id,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def decode_session(token: str) -> SessionClaims:
    """Verify a session token and extract its claims.

    Args:
        token: Encoded JWT from the cookie or Authorization header.

    Returns:
        SessionClaims with the account id and issuance time.

    Raises:
        jwt.InvalidTokenError: If the signature, expiry, audience, issuer,
            or required claims are invalid.
    """
    payload = jwt.decode(
        token,
        settings.auth_secret.get_secret_value(),
        algorithms=[_ALGORITHM],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
        options={"require": ["sub", "iat", "exp"]},
    )
    try:
        account_id = uuid.UUID(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Malformed subject") from exc
    return SessionClaims(
        account_id=account_id,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
    )


def set_session_cookie(response: Response, session: SessionToken) -> None:
    """Set the http-only session cookie on a response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    come from settings (SameSite is strict in production, lax elsewhere).

    Args:
        response: FastAPI response object.
        session: Token returned by issue_session.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=session.value,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.session_cookie_samesite,
        path="/",
        max_age=int(_session_ttl().total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_session_cookie(response: Response) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_session_cookie() for the browser to
    delete it.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.session_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
