"""OAuth utilities: PKCE, state cookies, and provider configuration.

PKCE code verifier/challenge generation, state parameter management via
signed JWT cookies, and the registry of federated providers (Google,
LinkedIn, Facebook) built from settings.
"""

import base64
import hashlib
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import jwt

from employme.core.config import Settings

# PKCE code verifier length (RFC 7636 allows 43-128)
_VERIFIER_LENGTH = 128

# Characters allowed in PKCE code verifier (RFC 7636 §4.1)
# unreserved = ALPHA / DIGIT / "-" / "." / "_" / "~"
_UNRESERVED_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# Default TTL for OAuth state cookie (10 minutes)
_DEFAULT_STATE_TTL = 600


class OAuthIntent(str, Enum):
    """What the callback should do with the provider assertion."""

    SIGN_IN = "sign_in"
    LINK = "link"


@dataclass(frozen=True)
class OAuthState:
    """Validated contents of the OAuth state cookie.

    Attributes:
        code_verifier: PKCE verifier for the token exchange.
        intent: Sign in (resolve) or link to an existing account.
        account_id: Account to link to; set only for the link intent.
        issued_at: When the cookie was minted (whole seconds), used to
            reject link flows started before a session revocation.
    """

    code_verifier: str
    intent: OAuthIntent
    account_id: uuid.UUID | None = None
    issued_at: datetime | None = None


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier.

    RFC 7636 §4.1: 128-character string from unreserved characters.

    Returns:
        Random 128-character code verifier string.
    """
    return "".join(secrets.choice(_UNRESERVED_CHARS) for _ in range(_VERIFIER_LENGTH))


def generate_code_challenge(verifier: str) -> str:
    """Generate a PKCE code challenge from a verifier.

    RFC 7636 §4.2: BASE64URL(SHA256(code_verifier)), no padding.

    Args:
        verifier: PKCE code verifier string.

    Returns:
        Base64url-encoded SHA256 hash without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_oauth_state_cookie(
    *,
    state: str,
    code_verifier: str,
    secret: str,
    intent: OAuthIntent = OAuthIntent.SIGN_IN,
    account_id: uuid.UUID | None = None,
    ttl_seconds: int = _DEFAULT_STATE_TTL,
) -> str:
    """Create a signed JWT cookie containing OAuth state and PKCE verifier.

    Stored as a cookie between the initiation redirect and callback.
    Signed with HS256 to prevent tampering, so the link target account id
    cannot be forged by the client.

    Args:
        state: Random state parameter for CSRF protection.
        code_verifier: PKCE code verifier to use in token exchange.
        secret: HMAC signing secret.
        intent: Sign in or link.
        account_id: Link target (required when intent is LINK).
        ttl_seconds: Cookie expiry in seconds (default 10 minutes).

    Returns:
        Signed JWT string.

    Raises:
        ValueError: If intent is LINK without an account_id.
    """
    if intent is OAuthIntent.LINK and account_id is None:
        msg = "Link intent requires an account_id"
        raise ValueError(msg)

    now = int(time.time())
    payload = {
        "state": state,
        "code_verifier": code_verifier,
        "intent": intent.value,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if account_id is not None:
        payload["account_id"] = str(account_id)
    return jwt.encode(payload, secret, algorithm="HS256")


def validate_oauth_state_cookie(
    *,
    cookie_value: str,
    expected_state: str,
    secret: str,
) -> OAuthState | None:
    """Validate an OAuth state cookie.

    Verifies JWT signature, expiry, and state match. Returns None if any
    check fails.

    Args:
        cookie_value: JWT string from the oauth_state cookie.
        expected_state: State parameter from the callback query string.
        secret: HMAC signing secret.

    Returns:
        OAuthState if valid, None otherwise.
    """
    try:
        payload = jwt.decode(cookie_value, secret, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None

    if payload.get("state") != expected_state:
        return None

    code_verifier = payload.get("code_verifier")
    if not code_verifier:
        return None

    try:
        intent = OAuthIntent(payload.get("intent", OAuthIntent.SIGN_IN.value))
        raw_account_id = payload.get("account_id")
        account_id = uuid.UUID(raw_account_id) if raw_account_id else None
    except ValueError:
        return None

    if intent is OAuthIntent.LINK and account_id is None:
        return None

    issued_at = payload.get("iat")
    return OAuthState(
        code_verifier=code_verifier,
        intent=intent,
        account_id=account_id,
        issued_at=(
            datetime.fromtimestamp(issued_at, tz=UTC)
            if isinstance(issued_at, int)
            else None
        ),
    )


# ===================================================================
# OAuth Provider Configuration
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Configuration for an OAuth provider.

    Attributes:
        name: Provider name ("google", "linkedin", "facebook").
        authorization_url: Provider's authorization endpoint.
        token_url: Provider's token exchange endpoint.
        userinfo_url: Provider's userinfo endpoint.
        scopes: OAuth scopes to request.
        client_id: Registered client id (empty = provider disabled).
        client_secret: Registered client secret.
        callback_url: Explicit redirect URI; empty derives it from the request.
    """

    name: str
    authorization_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]
    client_id: str = ""
    client_secret: str = ""
    callback_url: str = ""

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present for this provider."""
        return bool(self.client_id and self.client_secret)


ProviderRegistry = dict[str, OAuthProviderConfig]


def build_provider_registry(settings: Settings) -> ProviderRegistry:
    """Build the provider registry from settings.

    Every supported provider is present; unconfigured ones have empty
    credentials and are refused at initiation time.

    Args:
        settings: Application settings.

    Returns:
        Mapping of provider name to its configuration.
    """
    return {
        "google": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
            name="google",
            authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
            token_url="https://oauth2.googleapis.com/token",
            userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
            scopes=("openid", "email", "profile"),
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret.get_secret_value(),
            callback_url=settings.google_callback_url,
        ),
        "linkedin": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
            name="linkedin",
            authorization_url="https://www.linkedin.com/oauth/v2/authorization",
            token_url="https://www.linkedin.com/oauth/v2/accessToken",
            userinfo_url="https://api.linkedin.com/v2/userinfo",
            scopes=("openid", "email", "profile"),
            client_id=settings.linkedin_client_id,
            client_secret=settings.linkedin_client_secret.get_secret_value(),
            callback_url=settings.linkedin_callback_url,
        ),
        "facebook": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
            name="facebook",
            authorization_url="https://www.facebook.com/v19.0/dialog/oauth",
            token_url="https://graph.facebook.com/v19.0/oauth/access_token",
            userinfo_url=(
                "https://graph.facebook.com/me"
                "?fields=id,email,name,first_name,last_name,picture.type(large)"
            ),
            scopes=("email", "public_profile"),
            client_id=settings.facebook_client_id,
            client_secret=settings.facebook_client_secret.get_secret_value(),
            callback_url=settings.facebook_callback_url,
        ),
    }


def get_provider_config(registry: ProviderRegistry, provider: str) -> OAuthProviderConfig:
    """Get OAuth configuration for a provider.

    Args:
        registry: Provider registry from build_provider_registry().
        provider: Provider name (e.g., "google", "linkedin").

    Returns:
        OAuthProviderConfig for the provider.

    Raises:
        ValueError: If provider is not supported.
    """
    config = registry.get(provider)
    if config is None:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg)
    return config
