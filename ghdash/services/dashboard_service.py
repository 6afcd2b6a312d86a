import logging
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from typing import Any

from ghdash.clients.github_client import GitHubClient
from ghdash.clients.github_queries import fetch_repositories
from ghdash.clients.github_queries import fetch_repository_languages
from ghdash.clients.github_queries import fetch_repository_totals
from ghdash.clients.github_queries import fetch_viewer
from ghdash.clients.github_queries import one_year_window
from ghdash.core.notices import Notice
from ghdash.core.notices import NoticeBoard
from ghdash.services.aggregation import LanguageShare
from ghdash.services.aggregation import RepositoryTotals
from ghdash.services.aggregation import aggregate_languages
from ghdash.services.aggregation import sum_repository_totals
from ghdash.services.batch import batch
from ghdash.services.reconciliation import RECOVERABLE_ERRORS
from ghdash.services.reconciliation import ActivityReconciler
from ghdash.services.reconciliation import Progress
from ghdash.services.reconciliation import ProgressCallback
from ghdash.services.reconciliation import ReconciliationState
from ghdash.services.repositories import RepositorySummary
from ghdash.services.repositories import summarize_repository
from ghdash.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class DashboardSnapshot:
    login: str
    language_series: list[LanguageShare]
    stats: dict[str, int]
    monthly_series: list[dict[str, str | int]]
    daily_contributions: list[dict[str, str | int]]
    reconciliation_state: ReconciliationState
    progress: Progress | None = None
    notices: list[Notice] = field(default_factory=list)
    repositories: list[RepositorySummary] = field(default_factory=list)


def repository_identity(repo: Mapping[str, Any], login: str) -> tuple[str, str]:
    """Return (owner, name) for a repository listing item."""

    name = str(repo.get("name", ""))
    owner = repo.get("owner")
    owner_login = owner.get("login") if isinstance(owner, Mapping) else None
    return (owner_login if isinstance(owner_login, str) else login), name


def build_stats(
    viewer: Mapping[str, Any], repo_count: int, totals: RepositoryTotals
) -> dict[str, int]:
    public_repos = viewer.get("public_repos")
    private_repos = viewer.get("total_private_repos")
    followers = viewer.get("followers")
    return {
        "commits": totals.commits,
        "repos": repo_count,
        "contributions": (public_repos if isinstance(public_repos, int) else 0)
        + (private_repos if isinstance(private_repos, int) else 0),
        "followers": followers if isinstance(followers, int) else 0,
        "pull_requests": totals.pull_requests,
        "code_reviews": totals.code_reviews,
    }


async def load_dashboard(
    client: GitHubClient,
    settings: Settings,
    notices: NoticeBoard | None = None,
    on_progress: ProgressCallback | None = None,
    today: date | None = None,
) -> DashboardSnapshot:
    """Fetch everything the dashboard charts need for the credential owner.

    Failures of individual sections are logged and leave that section empty
    or zeroed. Rate-limit exhaustion and authentication errors propagate.
    """

    notices = notices if notices is not None else NoticeBoard()
    viewer = await fetch_viewer(client, settings)
    login = str(viewer["login"])

    try:
        repositories = await fetch_repositories(client, settings)
    except RECOVERABLE_ERRORS as exc:
        logger.warning("Repository listing failed for %s: %s", login, exc)
        repositories = []

    identities = [repository_identity(repo, login) for repo in repositories]
    identities = [(owner, name) for owner, name in identities if name]
    full_names = [f"{owner}/{name}" for owner, name in identities]

    try:
        totals = sum_repository_totals(
            await fetch_repository_totals(client, identities, settings)
        )
    except RECOVERABLE_ERRORS as exc:
        logger.warning("Repository totals failed for %s: %s", login, exc)
        totals = RepositoryTotals()

    async def languages_of(full_name: str) -> dict[str, int]:
        try:
            return await fetch_repository_languages(client, full_name, settings)
        except RECOVERABLE_ERRORS as exc:
            logger.warning("Language fetch failed for %s: %s", full_name, exc)
            return {}

    language_maps = await batch(full_names, languages_of, settings.language_concurrency)
    language_series = aggregate_languages(language_maps, settings.language_palette)

    start, end = one_year_window(today)
    report = await ActivityReconciler(
        client,
        settings,
        login=login,
        repositories=full_names,
        start=start,
        end=end,
        on_progress=on_progress,
        notices=notices,
    ).run()

    return DashboardSnapshot(
        login=login,
        language_series=language_series,
        stats=build_stats(viewer, len(repositories), totals),
        monthly_series=report.monthly_series,
        daily_contributions=report.daily_contributions,
        reconciliation_state=report.state,
        progress=report.progress,
        notices=notices.active(),
        repositories=[
            summarize_repository(repo, login) for repo in repositories if repo.get("name")
        ],
    )
