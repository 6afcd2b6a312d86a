import logging

import httpx
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi.responses import JSONResponse

from ghdash.api.deps import get_http_client
from ghdash.api.deps import get_settings
from ghdash.api.schemas.dashboard import GraphQLPayload
from ghdash.clients.github_client import DirectTransport
from ghdash.core.errors import AuthenticationError
from ghdash.core.errors import GitHubError
from ghdash.core.errors import RateLimitExceeded
from ghdash.core.notices import NoticeBoard
from ghdash.core.security import TOKEN_COOKIE
from ghdash.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github")


def _session_transport(
    request: Request,
    http: httpx.AsyncClient,
    settings: Settings,
    notices: NoticeBoard | None = None,
) -> DirectTransport:
    token = request.cookies.get(TOKEN_COOKIE) or None
    return DirectTransport(http, token, settings, notices)


def _notice_payload(notices: NoticeBoard) -> list[dict[str, str]]:
    return [
        {"key": notice.key, "level": notice.level, "message": notice.message}
        for notice in notices.active()
    ]


def _error_response(exc: GitHubError) -> JSONResponse:
    logger.warning("Proxied GitHub call failed: %s", exc)
    if isinstance(exc, RateLimitExceeded):
        return JSONResponse(
            {"ok": False, "error": str(exc), "reset": exc.reset_epoch_seconds},
            status_code=429,
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(exc.reset_epoch_seconds),
            },
        )
    status_code = 401 if isinstance(exc, AuthenticationError) else 500
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=status_code)


@router.get("/user")
async def proxy_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Return the GitHub user behind the session cookie."""

    if not request.cookies.get(TOKEN_COOKIE):
        return JSONResponse({"ok": False, "error": "Not authenticated"}, status_code=401)

    try:
        result = await _session_transport(request, http, settings).rest("/user")
    except GitHubError as exc:
        return _error_response(exc)
    return JSONResponse({"ok": True, "user": result.data})


@router.get("/scopes")
async def proxy_scopes(
    request: Request,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Return the OAuth scopes granted to the session token."""

    if not request.cookies.get(TOKEN_COOKIE):
        return JSONResponse({"ok": False, "error": "Not authenticated"}, status_code=401)

    try:
        result = await _session_transport(request, http, settings).rest("/user")
    except GitHubError as exc:
        return _error_response(exc)
    return JSONResponse({"ok": True, "scopes": result.header("x-oauth-scopes") or ""})


@router.get("/rest")
async def proxy_rest(
    request: Request,
    path: str | None = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Pass a GET through to the GitHub REST API, e.g. `?path=/user/repos`."""

    if not path or not path.startswith("/") or path.startswith("//"):
        return JSONResponse({"ok": False, "error": "Invalid path"}, status_code=400)

    notices = NoticeBoard()
    try:
        result = await _session_transport(request, http, settings, notices).rest(path)
    except GitHubError as exc:
        return _error_response(exc)

    return JSONResponse(
        {
            "ok": True,
            "data": result.data,
            "headers": result.headers,
            "notices": _notice_payload(notices),
        },
        headers={"x-github-proxy": "1"},
    )


@router.post("/graphql")
async def proxy_graphql(
    request: Request,
    payload: GraphQLPayload,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Pass a query through to the GitHub GraphQL API."""

    if not payload.query.strip():
        return JSONResponse({"ok": False, "error": "Missing query"}, status_code=400)

    notices = NoticeBoard()
    try:
        data = await _session_transport(request, http, settings, notices).graphql(
            payload.query, payload.variables
        )
    except GitHubError as exc:
        return _error_response(exc)
    return JSONResponse({"ok": True, "data": data, "notices": _notice_payload(notices)})
