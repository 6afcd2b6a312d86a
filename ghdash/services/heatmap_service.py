import calendar
import locale as locale_module
from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC
from datetime import date
from datetime import datetime
from datetime import timedelta
from typing import Any


@dataclass(frozen=True)
class HeatmapWeeks:
    today: date
    start_date: date
    start_monday: date
    weeks: list[list[dict[str, Any]]]


def to_utc_date(reference: datetime | date | str | None = None) -> date:
    """Normalize a reference instant to its UTC calendar day."""

    if reference is None:
        return datetime.now(UTC).date()
    if isinstance(reference, str):
        reference = datetime.fromisoformat(reference.replace("Z", "+00:00"))
    if isinstance(reference, datetime):
        if reference.tzinfo is not None:
            reference = reference.astimezone(UTC)
        return reference.date()
    return reference


def format_day_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def generate_weeks(
    reference: datetime | date | str | None = None, window_days: int = 364
) -> HeatmapWeeks:
    """Split the trailing window into Monday-first columns of seven days.

    The last column may run past `today`; callers mark those cells.
    """

    today = to_utc_date(reference)
    start_date = today - timedelta(days=window_days)
    days_since_monday = start_date.weekday()
    start_monday = start_date - timedelta(days=days_since_monday)

    weeks: list[list[dict[str, Any]]] = []
    cursor = start_monday
    while cursor <= today:
        column = []
        for offset in range(7):
            day = cursor + timedelta(days=offset)
            column.append({"date": format_day_key(day), "date_obj": day})
        weeks.append(column)
        cursor += timedelta(days=7)

    return HeatmapWeeks(
        today=today, start_date=start_date, start_monday=start_monday, weeks=weeks
    )


def _month_abbreviation(day: date, locale: str | None) -> str:
    if locale is None:
        return calendar.month_abbr[day.month]
    try:
        with calendar.different_locale(locale):
            return calendar.month_abbr[day.month]
    except locale_module.Error:
        return calendar.month_abbr[day.month]


def format_month_label(
    day: date, locale: str | None = None, include_year: bool = False
) -> str:
    """Short month name; January always carries the year."""

    label = _month_abbreviation(day, locale)
    if include_year or day.month == 1:
        return f"{label} {day.year}"
    return label


def build_month_label_map(
    start_date: date,
    today: date,
    weeks: list[list[dict[str, Any]]],
    locale: str | None = None,
) -> dict[int, str]:
    """Place one label per month on the column holding that month's first day."""

    column_of: dict[date, int] = {}
    for index, column in enumerate(weeks):
        for cell in column:
            column_of[cell["date_obj"]] = index

    labels: dict[int, str] = {}
    first = date(start_date.year, start_date.month, 1)
    if first < start_date:
        first = date(first.year + first.month // 12, first.month % 12 + 1, 1)

    while first <= today:
        index = column_of.get(first)
        if index is not None and index not in labels:
            labels[index] = format_month_label(first, locale)
        first = date(first.year + first.month // 12, first.month % 12 + 1, 1)

    return labels


def contribution_level(count: int) -> int:
    """Map daily contribution count to a heatmap level in range 0..4."""

    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 5:
        return 2
    if count <= 9:
        return 3
    return 4


def build_calendar_payload(
    contribution_days: Iterable[Mapping[str, Any]],
    reference: datetime | date | str | None = None,
    window_days: int = 364,
    locale: str | None = None,
) -> dict[str, object]:
    """Lay daily counts onto Monday-first week columns with month labels."""

    counts: dict[str, int] = {}
    for item in contribution_days:
        raw_day = item.get("date")
        raw_count = item.get("count")
        if isinstance(raw_day, str) and isinstance(raw_count, int):
            counts[raw_day] = counts.get(raw_day, 0) + raw_count

    grid = generate_weeks(reference, window_days)
    total = 0
    weeks: list[dict[str, object]] = []
    for column in grid.weeks:
        days = []
        for weekday, cell in enumerate(column):
            in_range = grid.start_date <= cell["date_obj"] <= grid.today
            count = counts.get(cell["date"], 0) if in_range else 0
            total += count
            days.append(
                {
                    "date": cell["date"],
                    "weekday": weekday,
                    "count": count,
                    "level": contribution_level(count),
                    "in_range": in_range,
                }
            )
        weeks.append({"week_start": column[0]["date"], "days": days})

    return {
        "today": format_day_key(grid.today),
        "start_date": format_day_key(grid.start_date),
        "total": total,
        "weeks": weeks,
        "month_labels": build_month_label_map(
            grid.start_date, grid.today, grid.weeks, locale
        ),
    }
