import logging

import httpx
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.responses import PlainTextResponse
from fastapi.responses import RedirectResponse
from fastapi.responses import Response

from ghdash.api.deps import get_http_client
from ghdash.api.deps import get_settings
from ghdash.api.schemas.dashboard import TokenPayload
from ghdash.clients.github_client import DirectTransport
from ghdash.clients.oauth import authorize_url
from ghdash.clients.oauth import exchange_code
from ghdash.clients.oauth import generate_state
from ghdash.core.errors import GitHubError
from ghdash.core.security import STATE_COOKIE
from ghdash.core.security import TOKEN_COOKIE
from ghdash.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/auth/github")
def start_oauth(settings: Settings = Depends(get_settings)) -> Response:
    """Redirect to GitHub's authorize page and remember the state nonce."""

    if not settings.github_client_id:
        return PlainTextResponse(
            "OAuth not configured on server. Set GITHUB_CLIENT_ID.", status_code=500
        )

    state = generate_state()
    response = RedirectResponse(authorize_url(settings, state), status_code=302)
    response.set_cookie(STATE_COOKIE, state, httponly=True, samesite="lax")
    return response


@router.get("/auth/github/callback")
async def finish_oauth(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Exchange the authorization code and store the token in a session cookie."""

    saved_state = request.cookies.get(STATE_COOKIE)
    if not code:
        return PlainTextResponse("Missing code", status_code=400)
    if not state or not saved_state or state != saved_state:
        return PlainTextResponse("Invalid state", status_code=400)
    if not settings.github_client_id or not settings.github_client_secret:
        return PlainTextResponse(
            "OAuth not configured on server. Set GITHUB_CLIENT_ID and "
            "GITHUB_CLIENT_SECRET.",
            status_code=500,
        )

    try:
        token = await exchange_code(http, settings, code, state)
    except GitHubError as exc:
        logger.error("OAuth code exchange failed: %s", exc)
        return PlainTextResponse("Error exchanging code for token", status_code=500)

    response = RedirectResponse(
        f"{settings.client_app_url.rstrip('/')}?auth=success", status_code=302
    )
    response.delete_cookie(STATE_COOKIE)
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax")
    return response


async def _validate_token(
    http: httpx.AsyncClient, settings: Settings, token: str
) -> tuple[object, str]:
    result = await DirectTransport(http, token, settings).rest("/user")
    return result.data, result.header("x-oauth-scopes") or ""


@router.post("/auth/token/test")
async def test_token(
    payload: TokenPayload,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Validate a personal access token without storing it."""

    token = payload.token.strip()
    if not token:
        return JSONResponse({"error": "Missing token"}, status_code=400)

    try:
        user, scopes = await _validate_token(http, settings, token)
    except GitHubError as exc:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=401)
    return JSONResponse({"ok": True, "user": user, "scopes": scopes})


@router.post("/auth/token")
async def store_token(
    payload: TokenPayload,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Validate a personal access token and keep it in an httpOnly cookie."""

    token = payload.token.strip()
    if not token:
        return JSONResponse({"error": "Missing token"}, status_code=400)

    try:
        user, scopes = await _validate_token(http, settings, token)
    except GitHubError as exc:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=401)

    response = JSONResponse({"ok": True, "user": user, "scopes": scopes})
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax")
    return response


@router.post("/auth/logout")
def logout() -> JSONResponse:
    response = JSONResponse({"ok": True})
    response.delete_cookie(TOKEN_COOKIE)
    return response
