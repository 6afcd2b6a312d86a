import secrets
from collections.abc import Mapping
from urllib.parse import urlencode

import httpx

from ghdash.core.errors import AuthenticationError
from ghdash.core.errors import NetworkFailure
from ghdash.core.errors import UpstreamError
from ghdash.settings import Settings

OAUTH_SCOPE = "read:user repo"


def generate_state() -> str:
    return secrets.token_hex(16)


def authorize_url(settings: Settings, state: str) -> str:
    params = urlencode(
        {
            "client_id": settings.github_client_id or "",
            "redirect_uri": settings.oauth_redirect_uri,
            "scope": OAUTH_SCOPE,
            "state": state,
            "allow_signup": "true",
        }
    )
    return f"{settings.github_oauth_url.rstrip('/')}/authorize?{params}"


async def exchange_code(
    http: httpx.AsyncClient, settings: Settings, code: str, state: str
) -> str:
    """Trade an authorization code for an access token.

    Raises:
        AuthenticationError: If GitHub refuses the code.
        UpstreamError: If the token endpoint fails or answers garbage.
    """

    try:
        response = await http.post(
            f"{settings.github_oauth_url.rstrip('/')}/access_token",
            data={
                "client_id": settings.github_client_id or "",
                "client_secret": settings.github_client_secret or "",
                "code": code,
                "redirect_uri": settings.oauth_redirect_uri,
                "state": state,
            },
            headers={"Accept": "application/json", "User-Agent": settings.user_agent},
            timeout=settings.request_timeout_seconds,
        )
    except httpx.TransportError as exc:
        raise NetworkFailure(f"GitHub OAuth is unreachable: {exc}") from exc

    if response.is_error:
        raise UpstreamError(
            "GitHub OAuth token exchange failed", status_code=response.status_code
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError("Error parsing GitHub response") from exc

    if not isinstance(payload, Mapping):
        raise UpstreamError("Error parsing GitHub response")
    if payload.get("error"):
        raise AuthenticationError(str(payload.get("error_description") or payload["error"]))

    token = payload.get("access_token")
    if not isinstance(token, str) or not token:
        raise UpstreamError("Failed to obtain access token from GitHub")
    return token
