"""Monthly commit/PR series reconciled against the contribution calendar.

The detail query behind the series is capped, so it can undercount. The
calendar total is treated as authoritative and decides which source wins:

    PRIMARY      detail series kept; it covers at least `threshold` of the
                 calendar total.
    RECONCILING  detail series fell short; every repository is re-read
                 (commits over REST, pull requests over GraphQL) to rebuild
                 the series.
    FALLBACK     the rebuild succeeded and replaced the series.
    DEGRADED     the detail query or the rebuild failed and the series
                 comes from the calendar alone (everything counted as
                 commits), or the calendar itself failed and the series is
                 left empty.

Quota exhaustion and authentication failures always propagate.
"""

import logging
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import StrEnum

from ghdash.clients.github_client import GitHubClient
from ghdash.clients.github_queries import fetch_contribution_calendar
from ghdash.clients.github_queries import fetch_contribution_detail
from ghdash.clients.github_queries import fetch_repository_commit_dates
from ghdash.clients.github_queries import fetch_repository_pull_request_dates
from ghdash.core.errors import NetworkFailure
from ghdash.core.errors import UpstreamError
from ghdash.core.notices import NoticeBoard
from ghdash.services.aggregation import aggregate_dates_to_month_map
from ghdash.services.aggregation import calendar_series
from ghdash.services.aggregation import month_map_to_series
from ghdash.services.aggregation import months_between
from ghdash.services.aggregation import series_total
from ghdash.services.batch import batch
from ghdash.settings import Settings

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (UpstreamError, NetworkFailure)


class ReconciliationState(StrEnum):
    PRIMARY = "primary"
    RECONCILING = "reconciling"
    FALLBACK = "fallback"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int


ProgressCallback = Callable[[Progress], None]


@dataclass
class ActivityReport:
    state: ReconciliationState
    monthly_series: list[dict[str, str | int]] = field(default_factory=list)
    daily_contributions: list[dict[str, str | int]] = field(default_factory=list)
    calendar_total: int = 0
    series_total: int = 0
    progress: Progress | None = None
    history: list[ReconciliationState] = field(default_factory=list)


def needs_fallback(
    detail_total: int, calendar_total: int, threshold: float = 0.9
) -> bool:
    """True when the detail series covers less than `threshold` of the calendar."""

    return detail_total < calendar_total * threshold


class ActivityReconciler:
    """Builds the monthly series for one user and one time window."""

    def __init__(
        self,
        client: GitHubClient,
        settings: Settings,
        login: str,
        repositories: Sequence[str],
        start: datetime,
        end: datetime,
        on_progress: ProgressCallback | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.login = login
        self.repositories = list(repositories)
        self.start = start
        self.end = end
        self.on_progress = on_progress
        self.notices = notices
        self.report = ActivityReport(state=ReconciliationState.DEGRADED)

    @property
    def months(self) -> list[str]:
        return months_between(self.start.date(), self.end.date())

    def _enter(self, state: ReconciliationState) -> None:
        logger.debug("Activity reconciliation for %s: %s", self.login, state)
        self.report.state = state
        self.report.history.append(state)

    def _degrade(self, exc: Exception, what: str) -> None:
        logger.warning("%s failed for %s: %s", what, self.login, exc)
        if isinstance(exc, NetworkFailure) and self.notices is not None:
            self.notices.publish(
                "network", "GitHub could not be reached, some charts may be incomplete"
            )

    def _set_series(self, series: list[dict[str, str | int]]) -> None:
        self.report.monthly_series = series
        self.report.series_total = series_total(series)

    async def run(self) -> ActivityReport:
        try:
            days = await fetch_contribution_calendar(
                self.client, self.login, self.start, self.end, self.settings
            )
        except RECOVERABLE_ERRORS as exc:
            self._degrade(exc, "Contribution calendar")
            self._enter(ReconciliationState.DEGRADED)
            return self.report

        self.report.daily_contributions = days
        self.report.calendar_total = sum(int(day["count"]) for day in days)

        try:
            commit_dates, pr_dates = await fetch_contribution_detail(
                self.client, self.login, self.start, self.end, self.settings
            )
        except RECOVERABLE_ERRORS as exc:
            self._degrade(exc, "Contribution detail")
            self._set_series(calendar_series(days, self.start.date(), self.end.date()))
            self._enter(ReconciliationState.DEGRADED)
            return self.report

        self._set_series(
            month_map_to_series(
                self.months,
                aggregate_dates_to_month_map(commit_dates),
                aggregate_dates_to_month_map(pr_dates),
            )
        )
        self._enter(ReconciliationState.PRIMARY)

        if not needs_fallback(
            self.report.series_total,
            self.report.calendar_total,
            self.settings.reconciliation_threshold,
        ):
            return self.report

        logger.info(
            "Detail series for %s covers %d of %d contributions, rebuilding per repository",
            self.login,
            self.report.series_total,
            self.report.calendar_total,
        )
        self._enter(ReconciliationState.RECONCILING)
        series = await self._rebuild_from_rest()
        if series is None:
            self._set_series(calendar_series(days, self.start.date(), self.end.date()))
            self._enter(ReconciliationState.DEGRADED)
        else:
            self._set_series(series)
            self._enter(ReconciliationState.FALLBACK)
        return self.report

    def _advance(self) -> None:
        current = self.report.progress or Progress(completed=0, total=0)
        progress = Progress(completed=current.completed + 1, total=current.total)
        self.report.progress = progress
        if self.on_progress is not None:
            self.on_progress(progress)

    async def _rebuild_from_rest(self) -> list[dict[str, str | int]] | None:
        """Re-read every repository's commits and pull requests.

        Returns None when not a single step succeeded.
        """

        self.report.progress = Progress(completed=0, total=len(self.repositories) * 2)
        if self.on_progress is not None:
            self.on_progress(self.report.progress)

        succeeded = 0

        async def read_repository(full_name: str) -> tuple[list[str], list[str]]:
            nonlocal succeeded
            commits: list[str] = []
            pulls: list[str] = []

            try:
                commits = await fetch_repository_commit_dates(
                    self.client, full_name, self.login, self.start, self.end, self.settings
                )
                succeeded += 1
            except RECOVERABLE_ERRORS as exc:
                self._degrade(exc, f"Commit listing of {full_name}")
            self._advance()

            try:
                pulls = await fetch_repository_pull_request_dates(
                    self.client, full_name, self.login, self.start, self.end, self.settings
                )
                succeeded += 1
            except RECOVERABLE_ERRORS as exc:
                self._degrade(exc, f"Pull request listing of {full_name}")
            self._advance()

            return commits, pulls

        results = await batch(
            self.repositories, read_repository, self.settings.fallback_concurrency
        )
        if succeeded == 0:
            return None

        commit_dates = [stamp for commits, _ in results for stamp in commits]
        pr_dates = [stamp for _, pulls in results for stamp in pulls]
        return month_map_to_series(
            self.months,
            aggregate_dates_to_month_map(commit_dates),
            aggregate_dates_to_month_map(pr_dates),
        )
