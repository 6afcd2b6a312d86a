import logging
from typing import Literal

import httpx
from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import Request
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials

from ghdash.api.deps import get_analytics
from ghdash.api.deps import get_cache_store
from ghdash.api.deps import get_http_client
from ghdash.api.deps import get_settings
from ghdash.api.schemas.dashboard import DashboardResponse
from ghdash.api.schemas.dashboard import HeatmapResponse
from ghdash.api.schemas.dashboard import RecentCommitsResponse
from ghdash.clients.credentials import CredentialResolver
from ghdash.clients.github_client import GitHubClient
from ghdash.clients.github_client import build_github_client
from ghdash.clients.github_queries import fetch_contribution_calendar
from ghdash.clients.github_queries import fetch_recent_commits
from ghdash.clients.github_queries import fetch_viewer
from ghdash.clients.github_queries import one_year_window
from ghdash.core.analytics import AnalyticsHandle
from ghdash.core.cache import KeyValueStore
from ghdash.core.cache import RequestCache
from ghdash.core.errors import AuthenticationError
from ghdash.core.errors import GitHubError
from ghdash.core.errors import RateLimitExceeded
from ghdash.core.notices import NoticeBoard
from ghdash.core.security import MISSING_TOKEN_DETAIL
from ghdash.core.security import bearer_scheme
from ghdash.core.security import request_token
from ghdash.services.dashboard_service import load_dashboard
from ghdash.services.heatmap_service import build_calendar_payload
from ghdash.services.reconciliation import RECOVERABLE_ERRORS
from ghdash.services.repositories import filter_repositories
from ghdash.services.repositories import repository_languages
from ghdash.services.repositories import summarize_commits
from ghdash.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    """Return a basic service greeting."""

    return {"message": "Hello World"}


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Return liveness probe response for health checks."""

    return {"status": "ok"}


def _client_for_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
    store: KeyValueStore,
    http: httpx.AsyncClient,
    notices: NoticeBoard,
) -> GitHubClient:
    token = request_token(request, credentials)
    if token is None:
        token = CredentialResolver(store, default=settings.github_token).resolve()
    if token is None:
        raise HTTPException(status_code=401, detail=MISSING_TOKEN_DETAIL)
    return build_github_client(
        http, settings, token, cache=RequestCache(store), notices=notices
    )


def _http_error(exc: GitHubError) -> HTTPException:
    logger.warning("GitHub request failed: %s", exc)
    if isinstance(exc, RateLimitExceeded):
        return HTTPException(
            status_code=429,
            detail="GitHub API rate limit exhausted",
            headers={"X-RateLimit-Reset": str(exc.reset_epoch_seconds)},
        )
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=401, detail="GitHub token is invalid")
    return HTTPException(status_code=502, detail="GitHub API request failed")


@router.get("/api/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    request: Request,
    q: str | None = None,
    language: str | None = None,
    sort: Literal["stars", "name", "updated"] = "stars",
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    settings: Settings = Depends(get_settings),
    store: KeyValueStore = Depends(get_cache_store),
    http: httpx.AsyncClient = Depends(get_http_client),
    analytics: AnalyticsHandle = Depends(get_analytics),
) -> DashboardResponse:
    """Return language, stats, activity series and repositories for the authenticated user.

    `q`, `language` and `sort` narrow and order the repository list only.
    """

    notices = NoticeBoard()
    client = _client_for_request(request, credentials, settings, store, http, notices)

    try:
        snapshot = await load_dashboard(client, settings, notices=notices)
    except GitHubError as exc:
        raise _http_error(exc) from exc

    analytics.track(
        "dashboard_loaded",
        {
            "reconciliation_state": str(snapshot.reconciliation_state),
            "repos": snapshot.stats["repos"],
        },
    )
    return DashboardResponse(
        login=snapshot.login,
        language_series=[vars(share) for share in snapshot.language_series],
        stats=snapshot.stats,
        monthly_series=snapshot.monthly_series,
        daily_contributions=snapshot.daily_contributions,
        reconciliation_state=str(snapshot.reconciliation_state),
        progress=vars(snapshot.progress) if snapshot.progress else None,
        notices=[vars(notice) for notice in snapshot.notices],
        repositories=[
            vars(repo)
            for repo in filter_repositories(snapshot.repositories, q, language, sort)
        ],
        repository_languages=repository_languages(snapshot.repositories),
    )


@router.get("/heatmap/me", response_model=HeatmapResponse)
async def get_authenticated_user_heatmap(
    request: Request,
    locale: str | None = None,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    settings: Settings = Depends(get_settings),
    store: KeyValueStore = Depends(get_cache_store),
    http: httpx.AsyncClient = Depends(get_http_client),
    analytics: AnalyticsHandle = Depends(get_analytics),
) -> HeatmapResponse:
    """Return contribution heatmap payload for the authenticated GitHub user."""

    analytics.pageview(request.url.path)
    client = _client_for_request(
        request, credentials, settings, store, http, NoticeBoard()
    )
    start, end = one_year_window()

    try:
        viewer = await fetch_viewer(client, settings)
        days = await fetch_contribution_calendar(
            client, str(viewer["login"]), start, end, settings
        )
    except GitHubError as exc:
        raise _http_error(exc) from exc

    payload = build_calendar_payload(days, reference=end, locale=locale)
    return HeatmapResponse(username=str(viewer["login"]).lower(), **payload)


@router.get(
    "/api/repos/{owner}/{name}/commits", response_model=RecentCommitsResponse
)
async def get_recent_commits(
    request: Request,
    owner: str,
    name: str,
    limit: int = Query(default=10, ge=1, le=100),
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    settings: Settings = Depends(get_settings),
    store: KeyValueStore = Depends(get_cache_store),
    http: httpx.AsyncClient = Depends(get_http_client),
    analytics: AnalyticsHandle = Depends(get_analytics),
) -> RecentCommitsResponse:
    """Return the latest commits of one repository for the repository detail view.

    A repository that cannot be read yields an empty list.
    """

    analytics.pageview(request.url.path)
    client = _client_for_request(
        request, credentials, settings, store, http, NoticeBoard()
    )
    full_name = f"{owner}/{name}"

    try:
        items = await fetch_recent_commits(client, full_name, settings, limit=limit)
    except RECOVERABLE_ERRORS as exc:
        logger.warning("Recent commits of %s unavailable: %s", full_name, exc)
        items = []
    except GitHubError as exc:
        raise _http_error(exc) from exc

    return RecentCommitsResponse(
        repository=full_name,
        commits=[vars(commit) for commit in summarize_commits(items)],
    )
