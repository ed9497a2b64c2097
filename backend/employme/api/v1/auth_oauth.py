"""OAuth authentication and account linking endpoints.

OAuth initiation and callback for Google, LinkedIn and Facebook using the
PKCE authorization code flow, plus explicit link/unlink for signed-in
accounts.

Explicit linking goes through the same provider round trip: POST
/link-social returns the authorization URL and a state cookie that carries
the link intent and the caller's account id, signed so it cannot be forged.
The callback then links instead of signing in.
"""

import logging
import secrets
import uuid
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import Response

from employme.api.deps import CurrentAccountId, DbSession, Providers
from employme.core.auth import set_session_cookie
from employme.core.config import settings
from employme.core.errors import APIError, ValidationError
from employme.core.oauth import (
    OAuthIntent,
    OAuthProviderConfig,
    ProviderRegistry,
    create_oauth_state_cookie,
    generate_code_challenge,
    generate_code_verifier,
    get_provider_config,
    validate_oauth_state_cookie,
)
from employme.core.oauth_client import (
    ProviderAssertion,
    exchange_code_for_tokens,
    fetch_userinfo,
    normalize_userinfo,
)
from employme.core.responses import DataResponse, MessageData
from employme.services.identity_resolver import IdentityResolver

logger = logging.getLogger(__name__)

router = APIRouter()

# Cookie name for OAuth state/PKCE storage
_OAUTH_STATE_COOKIE = "oauth_state"
_OAUTH_STATE_COOKIE_PATH = "/api/v1/auth/callback"
_OAUTH_STATE_MAX_AGE = 600  # 10 minutes


class ProviderRequest(BaseModel):
    """Request body for POST /auth/link-social and /auth/unlink-social."""

    model_config = ConfigDict(extra="forbid")

    provider: str = Field(min_length=1, max_length=50)


def _get_api_callback_url(request: Request, config: OAuthProviderConfig) -> str:
    """Build the OAuth callback URL.

    Uses the configured callback URL when set, otherwise the request's
    base URL.

    Args:
        request: FastAPI request.
        config: Provider configuration.

    Returns:
        Full callback URL.
    """
    if config.callback_url:
        return config.callback_url
    base = str(request.base_url).rstrip("/")
    return f"{base}/api/v1/auth/callback/{config.name}"


def _configured_provider(
    providers: ProviderRegistry, provider: str
) -> OAuthProviderConfig:
    try:
        config = get_provider_config(providers, provider)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if not config.is_configured:
        raise ValidationError(f"OAuth provider {provider} is not configured")
    return config


def _build_authorization(
    request: Request,
    config: OAuthProviderConfig,
    *,
    intent: OAuthIntent,
    account_id: uuid.UUID | None = None,
) -> tuple[str, str]:
    """Create the provider authorization URL and the signed state cookie.

    Returns:
        Tuple of (authorization_url, state_cookie_value).
    """
    code_verifier = generate_code_verifier()
    code_challenge = generate_code_challenge(code_verifier)

    # Generate state parameter for CSRF protection
    state = secrets.token_urlsafe(32)

    state_cookie = create_oauth_state_cookie(
        state=state,
        code_verifier=code_verifier,
        secret=settings.auth_secret.get_secret_value(),
        intent=intent,
        account_id=account_id,
    )

    params = {
        "client_id": config.client_id,
        "redirect_uri": _get_api_callback_url(request, config),
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{config.authorization_url}?{urlencode(params)}", state_cookie


def _set_state_cookie(response: Response, value: str) -> None:
    response.set_cookie(
        key=_OAUTH_STATE_COOKIE,
        value=value,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        max_age=_OAUTH_STATE_MAX_AGE,
        path=_OAUTH_STATE_COOKIE_PATH,
    )


def _frontend_redirect(path: str, **query: str) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}{path}"
    if query:
        url = f"{url}?{urlencode(query)}"
    redirect = RedirectResponse(url=url, status_code=307)
    redirect.delete_cookie(key=_OAUTH_STATE_COOKIE, path=_OAUTH_STATE_COOKIE_PATH)
    return redirect


# ===================================================================
# GET /auth/providers/{provider}: OAuth Initiation
# ===================================================================


@router.get("/providers/{provider}")
async def oauth_initiate(
    provider: str,
    request: Request,
    providers: Providers,
) -> Response:
    """Redirect to the OAuth provider's authorization URL.

    Generates PKCE code_verifier + code_challenge and a random state
    parameter for CSRF protection, stores both in a signed cookie, and
    redirects to the provider.
    """
    config = _configured_provider(providers, provider)
    auth_url, state_cookie = _build_authorization(
        request, config, intent=OAuthIntent.SIGN_IN
    )

    redirect = RedirectResponse(url=auth_url, status_code=307)
    _set_state_cookie(redirect, state_cookie)
    return redirect


# ===================================================================
# POST /auth/link-social: start explicit linking
# ===================================================================


@router.post("/link-social")
async def link_social(
    body: ProviderRequest,
    request: Request,
    response: Response,
    account_id: CurrentAccountId,
    providers: Providers,
) -> DataResponse[dict]:
    """Start linking a provider identity to the signed-in account.

    Authenticated. Returns the authorization URL for the client to open;
    the callback completes the link.
    """
    config = _configured_provider(providers, body.provider)
    auth_url, state_cookie = _build_authorization(
        request, config, intent=OAuthIntent.LINK, account_id=account_id
    )
    _set_state_cookie(response, state_cookie)
    return DataResponse(data={"authorization_url": auth_url})


# ===================================================================
# POST /auth/unlink-social
# ===================================================================


@router.post("/unlink-social")
async def unlink_social(
    body: ProviderRequest,
    account_id: CurrentAccountId,
    db: DbSession,
    providers: Providers,
) -> DataResponse[MessageData]:
    """Remove the signed-in account's identity for a provider.

    Refused with LAST_AUTH_METHOD when it is the account's only way to
    sign in.
    """
    await IdentityResolver(db, providers).unlink_identity(account_id, body.provider)
    await db.commit()
    return DataResponse(
        data=MessageData(message=f"{body.provider} account unlinked")
    )


# ===================================================================
# GET /auth/callback/{provider}: OAuth Callback
# ===================================================================


async def _fetch_assertion(
    request: Request,
    config: OAuthProviderConfig,
    *,
    code: str,
    code_verifier: str,
) -> ProviderAssertion:
    """Exchange the authorization code and normalize the userinfo."""
    try:
        tokens = await exchange_code_for_tokens(
            config=config,
            code=code,
            code_verifier=code_verifier,
            redirect_uri=_get_api_callback_url(request, config),
        )
    except httpx.HTTPError:
        logger.exception("OAuth token exchange failed", extra={"provider": config.name})
        raise ValidationError("OAuth authentication failed") from None

    access_token = tokens.get("access_token")
    if not access_token:
        raise ValidationError("OAuth provider did not return access token")

    try:
        userinfo = await fetch_userinfo(config=config, access_token=access_token)
    except httpx.HTTPError:
        logger.exception("OAuth userinfo fetch failed", extra={"provider": config.name})
        raise ValidationError("Could not retrieve user information") from None

    try:
        return normalize_userinfo(config.name, userinfo)
    except ValueError as exc:
        raise ValidationError("OAuth provider did not return required user info") from exc


@router.get("/callback/{provider}")
async def oauth_callback(
    provider: str,
    request: Request,
    db: DbSession,
    providers: Providers,
    code: str | None = None,
    state: str | None = None,
) -> Response:
    """Handle the OAuth provider callback after user consent.

    Validates state, exchanges the code for tokens, fetches user info, then
    either signs in (resolving or creating the account) or links the
    identity to the account named in the signed state. Redirects to the
    frontend; identity errors are reported as an ``error`` query parameter
    and nothing from the refused attempt is committed.
    """
    if not code:
        raise ValidationError("Missing authorization code")

    if not state:
        raise ValidationError("Missing state parameter")

    config = _configured_provider(providers, provider)

    state_cookie = request.cookies.get(_OAUTH_STATE_COOKIE)
    if not state_cookie:
        raise ValidationError("Missing OAuth state cookie")

    oauth_state = validate_oauth_state_cookie(
        cookie_value=state_cookie,
        expected_state=state,
        secret=settings.auth_secret.get_secret_value(),
    )
    if oauth_state is None:
        raise ValidationError("Invalid or expired OAuth state")

    assertion = await _fetch_assertion(
        request, config, code=code, code_verifier=oauth_state.code_verifier
    )
    resolver = IdentityResolver(db, providers)

    if oauth_state.intent is OAuthIntent.LINK and oauth_state.account_id is not None:
        try:
            await resolver.link_identity(
                oauth_state.account_id,
                assertion,
                authorized_at=oauth_state.issued_at,
            )
        except APIError as exc:
            await db.rollback()
            logger.warning(
                "OAuth link refused",
                extra={"provider": provider, "error_code": exc.code},
            )
            return _frontend_redirect("/settings", error=exc.code)
        await db.commit()
        return _frontend_redirect("/settings", linked=provider)

    try:
        result = await resolver.sign_in(assertion)
    except APIError as exc:
        await db.rollback()
        logger.warning(
            "OAuth sign-in refused",
            extra={"provider": provider, "error_code": exc.code},
        )
        return _frontend_redirect("/login", error=exc.code)
    await db.commit()

    redirect = _frontend_redirect("/dashboard" if result.profile_id else "/onboarding")
    set_session_cookie(redirect, result.session)
    return redirect
