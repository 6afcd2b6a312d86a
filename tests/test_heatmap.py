from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from ghdash.services.heatmap_service import build_calendar_payload
from ghdash.services.heatmap_service import contribution_level
from ghdash.services.heatmap_service import format_month_label
from ghdash.services.heatmap_service import generate_weeks
from ghdash.services.heatmap_service import to_utc_date


def test_contribution_level_thresholds() -> None:
    assert contribution_level(0) == 0
    assert contribution_level(1) == 1
    assert contribution_level(2) == 1
    assert contribution_level(3) == 2
    assert contribution_level(5) == 2
    assert contribution_level(6) == 3
    assert contribution_level(9) == 3
    assert contribution_level(10) == 4


def test_to_utc_date_normalizes_offsets() -> None:
    late_evening = datetime(2025, 10, 21, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

    assert to_utc_date(late_evening) == date(2025, 10, 22)
    assert to_utc_date("2025-10-22T00:00:00Z") == date(2025, 10, 22)
    assert to_utc_date(date(2025, 1, 1)) == date(2025, 1, 1)


def test_generate_weeks_short_window_starts_on_monday() -> None:
    grid = generate_weeks("2025-10-22T00:00:00Z", window_days=13)

    assert grid.start_date == date(2025, 10, 9)
    assert grid.start_monday == date(2025, 10, 6)
    assert len(grid.weeks) == 3
    assert all(len(column) == 7 for column in grid.weeks)
    assert grid.weeks[0][0]["date"] == "2025-10-06"
    assert grid.weeks[-1][-1]["date"] == "2025-10-26"


def test_generate_weeks_full_year_columns() -> None:
    grid = generate_weeks(date(2025, 10, 22))

    assert grid.start_date == date(2024, 10, 23)
    assert grid.start_monday.weekday() == 0
    assert grid.start_monday <= grid.start_date
    assert all(column[0]["date_obj"].weekday() == 0 for column in grid.weeks)
    assert grid.weeks[-1][0]["date_obj"] <= grid.today < grid.weeks[-1][0]["date_obj"] + timedelta(days=7)


def test_format_month_label_marks_january_with_year() -> None:
    assert format_month_label(date(2025, 1, 1)) == "Jan 2025"
    assert format_month_label(date(2025, 10, 1)) == "Oct"
    assert format_month_label(date(2025, 10, 1), include_year=True) == "Oct 2025"


def test_format_month_label_unknown_locale_falls_back() -> None:
    assert format_month_label(date(2025, 10, 1), locale="xx_NOT_A_LOCALE") == "Oct"


def test_build_calendar_payload_places_counts_and_labels() -> None:
    days = [
        {"date": "2025-10-01", "count": 4},
        {"date": "2025-10-22", "count": 12},
        {"date": "2024-10-20", "count": 99},
    ]

    payload = build_calendar_payload(days, reference="2025-10-22T12:00:00Z")

    assert payload["today"] == "2025-10-22"
    assert payload["start_date"] == "2024-10-23"
    assert payload["total"] == 16

    cells = {day["date"]: day for week in payload["weeks"] for day in week["days"]}
    assert cells["2025-10-01"]["level"] == 2
    assert cells["2025-10-22"]["level"] == 4
    assert cells["2024-10-21"]["in_range"] is False
    assert cells["2024-10-21"]["count"] == 0
    assert cells["2025-10-26"]["in_range"] is False

    labels = payload["month_labels"]
    assert len(labels) == 12
    assert labels[49] == "Oct"
    assert "Jan 2025" in labels.values()
