"""OAuth HTTP client: token exchange, userinfo fetching, and normalization.

HTTP client functions for exchanging authorization codes for tokens and
fetching user info from OAuth providers, plus the mapping from each
provider's userinfo shape onto a ProviderAssertion.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from employme.core.oauth import OAuthProviderConfig

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0


@dataclass(frozen=True)
class ProviderAssertion:
    """Verified claims from a federated provider after its own authentication.

    Attributes:
        provider: Provider name.
        provider_external_id: Provider's stable subject identifier.
        email_claim: Email asserted by the provider, None if absent.
        display_name: Full display name.
        avatar_uri: Profile picture URL.
        first_name: Given name, empty if not provided.
        last_name: Family name, empty if not provided.
    """

    provider: str
    provider_external_id: str
    email_claim: str | None = None
    display_name: str | None = None
    avatar_uri: str | None = None
    first_name: str = ""
    last_name: str = ""


async def exchange_code_for_tokens(
    *,
    config: OAuthProviderConfig,
    code: str,
    code_verifier: str,
    redirect_uri: str,
) -> dict[str, Any]:
    """Exchange authorization code for OAuth tokens.

    Args:
        config: Provider configuration (endpoints and credentials).
        code: Authorization code from callback.
        code_verifier: PKCE code verifier.
        redirect_uri: Callback URL used in initiation.

    Returns:
        Token response dict (access_token, id_token, etc.).

    Raises:
        httpx.HTTPStatusError: If token exchange fails.
    """
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            config.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "code_verifier": code_verifier,
            },
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


async def fetch_userinfo(
    *,
    config: OAuthProviderConfig,
    access_token: str,
) -> dict[str, Any]:
    """Fetch user info from the OAuth provider.

    Args:
        config: Provider configuration.
        access_token: OAuth access token.

    Returns:
        Raw user info dict in the provider's own shape.

    Raises:
        httpx.HTTPStatusError: If userinfo request fails.
    """
    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def normalize_userinfo(provider: str, userinfo: dict[str, Any]) -> ProviderAssertion:
    """Map a provider's userinfo payload onto a ProviderAssertion.

    Google and LinkedIn return OpenID Connect claims (sub, email, name,
    given_name, family_name, picture). Facebook's Graph API returns id and
    nests the picture URL under picture.data.url.

    Args:
        provider: Provider name.
        userinfo: Raw payload from fetch_userinfo().

    Returns:
        ProviderAssertion. email_claim is None when the provider sent none.

    Raises:
        ValueError: If the payload has no subject identifier.
    """
    if provider == "facebook":
        subject = userinfo.get("id")
        picture = userinfo.get("picture")
        avatar = None
        if isinstance(picture, dict):
            avatar = _clean((picture.get("data") or {}).get("url"))
        first_name = userinfo.get("first_name")
        last_name = userinfo.get("last_name")
    else:
        subject = userinfo.get("sub")
        avatar = _clean(userinfo.get("picture"))
        first_name = userinfo.get("given_name")
        last_name = userinfo.get("family_name")

    external_id = _clean(str(subject)) if subject is not None else None
    if not external_id:
        msg = f"{provider} userinfo has no subject identifier"
        raise ValueError(msg)

    return ProviderAssertion(
        provider=provider,
        provider_external_id=external_id,
        email_claim=_clean(userinfo.get("email")),
        display_name=_clean(userinfo.get("name")),
        avatar_uri=avatar,
        first_name=_clean(first_name) or "",
        last_name=_clean(last_name) or "",
    )
