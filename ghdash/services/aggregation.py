from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC
from datetime import date
from datetime import datetime
from decimal import ROUND_HALF_UP
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class LanguageShare:
    name: str
    value: int
    color: str


@dataclass(frozen=True)
class RepositoryTotals:
    commits: int = 0
    pull_requests: int = 0
    code_reviews: int = 0


def round_half_up(value: float) -> int:
    """Round .5 away from zero, unlike Python's banker's rounding."""

    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def aggregate_languages(
    language_maps: Iterable[Mapping[str, int] | None],
    palette: Sequence[str],
) -> list[LanguageShare]:
    """Sum language bytes across repositories into percentage shares.

    Percentages are rounded per language and may not add up to exactly 100.
    Colors are assigned by position after sorting, cycling through `palette`.
    """

    byte_totals: dict[str, int] = {}
    for language_map in language_maps:
        for name, size in (language_map or {}).items():
            if isinstance(size, int) and size >= 0:
                byte_totals[name] = byte_totals.get(name, 0) + size

    total_bytes = sum(byte_totals.values()) or 1
    ranked = sorted(
        (
            (name, round_half_up(size / total_bytes * 100))
            for name, size in byte_totals.items()
        ),
        key=lambda pair: pair[1],
        reverse=True,
    )

    if not palette:
        raise ValueError("palette must contain at least one color")

    return [
        LanguageShare(name=name, value=value, color=palette[index % len(palette)])
        for index, (name, value) in enumerate(ranked)
    ]


def _count(data: Any, *path: str) -> int:
    for name in path:
        if not isinstance(data, Mapping):
            return 0
        data = data.get(name)
    return data if isinstance(data, int) else 0


def sum_repository_totals(data: Mapping[str, Any]) -> RepositoryTotals:
    """Add up commits, pull requests and sampled reviews across repo aliases."""

    commits = 0
    pull_requests = 0
    code_reviews = 0

    for repository in data.values():
        if not isinstance(repository, Mapping):
            continue
        commits += _count(
            repository, "defaultBranchRef", "target", "history", "totalCount"
        )
        pull_requests += _count(repository, "pullRequests", "totalCount")

        prs = repository.get("pullRequests")
        nodes = prs.get("nodes") if isinstance(prs, Mapping) else None
        for node in nodes if isinstance(nodes, list) else []:
            code_reviews += _count(node, "reviews", "totalCount")

    return RepositoryTotals(
        commits=commits, pull_requests=pull_requests, code_reviews=code_reviews
    )


def month_bucket(timestamp: str) -> str | None:
    """Return the `YYYY-MM` bucket of an ISO-8601 instant after UTC normalization."""

    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.isoformat()[:7]


def aggregate_dates_to_month_map(timestamps: Iterable[str]) -> dict[str, int]:
    buckets: dict[str, int] = {}
    for timestamp in timestamps:
        month = month_bucket(timestamp)
        if month is not None:
            buckets[month] = buckets.get(month, 0) + 1
    return buckets


def aggregate_daily_to_months(
    days: Iterable[Mapping[str, Any]],
) -> list[dict[str, str | int]]:
    totals: dict[str, int] = {}
    for day in days:
        raw_date = day.get("date")
        if not isinstance(raw_date, str):
            continue
        raw_count = day.get("count")
        month = raw_date[:7]
        totals[month] = totals.get(month, 0) + (
            raw_count if isinstance(raw_count, int) else 0
        )
    return [{"month": month, "total": totals[month]} for month in sorted(totals)]


def months_between(start: date, end: date) -> list[str]:
    """All `YYYY-MM` keys from `start` to `end`, both months included."""

    months: list[str] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def month_map_to_series(
    months: Iterable[str],
    commit_map: Mapping[str, int] | None = None,
    pr_map: Mapping[str, int] | None = None,
) -> list[dict[str, str | int]]:
    commit_map = commit_map or {}
    pr_map = pr_map or {}
    return [
        {"month": month, "commits": commit_map.get(month, 0), "prs": pr_map.get(month, 0)}
        for month in months
    ]


def series_total(series: Iterable[Mapping[str, Any]]) -> int:
    return sum(int(item.get("commits", 0)) + int(item.get("prs", 0)) for item in series)


def flatten_calendar(calendar: Mapping[str, Any]) -> list[dict[str, str | int]]:
    """Flatten `contributionCalendar.weeks[].contributionDays[]` into daily counts."""

    days: list[dict[str, str | int]] = []
    weeks = calendar.get("weeks")
    if not isinstance(weeks, list):
        return days

    for week in weeks:
        if not isinstance(week, Mapping):
            continue
        contribution_days = week.get("contributionDays")
        if not isinstance(contribution_days, list):
            continue
        for item in contribution_days:
            if not isinstance(item, Mapping):
                continue
            raw_date = item.get("date")
            raw_count = item.get("contributionCount")
            if isinstance(raw_date, str) and isinstance(raw_count, int):
                days.append({"date": raw_date, "count": raw_count})

    return days


def calendar_series(
    days: Iterable[Mapping[str, Any]], start: date, end: date
) -> list[dict[str, str | int]]:
    """Series built from the calendar alone: every contribution counts as a commit."""

    monthly = {item["month"]: item["total"] for item in aggregate_daily_to_months(days)}
    return month_map_to_series(months_between(start, end), monthly, {})
