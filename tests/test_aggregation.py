from datetime import date

import pytest

from ghdash.services.aggregation import LanguageShare
from ghdash.services.aggregation import RepositoryTotals
from ghdash.services.aggregation import aggregate_daily_to_months
from ghdash.services.aggregation import aggregate_dates_to_month_map
from ghdash.services.aggregation import aggregate_languages
from ghdash.services.aggregation import calendar_series
from ghdash.services.aggregation import flatten_calendar
from ghdash.services.aggregation import month_bucket
from ghdash.services.aggregation import month_map_to_series
from ghdash.services.aggregation import months_between
from ghdash.services.aggregation import round_half_up
from ghdash.services.aggregation import series_total
from ghdash.services.aggregation import sum_repository_totals

PALETTE = ["#111111", "#222222"]


def test_aggregate_languages_sums_sorts_and_colors() -> None:
    shares = aggregate_languages(
        [{"JavaScript": 600, "CSS": 100}, {"JavaScript": 200, "Python": 100}, None],
        PALETTE,
    )

    assert shares == [
        LanguageShare(name="JavaScript", value=80, color="#111111"),
        LanguageShare(name="CSS", value=10, color="#222222"),
        LanguageShare(name="Python", value=10, color="#111111"),
    ]


def test_aggregate_languages_rounds_half_up_per_language() -> None:
    shares = aggregate_languages([{"Go": 1, "Rust": 1, "C": 2}], PALETTE)

    assert [share.value for share in shares] == [50, 25, 25]
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1


def test_aggregate_languages_handles_no_bytes() -> None:
    assert aggregate_languages([], PALETTE) == []
    assert aggregate_languages([{"Shell": 0}], PALETTE)[0].value == 0


def test_aggregate_languages_requires_palette() -> None:
    with pytest.raises(ValueError):
        aggregate_languages([{"Go": 1}], [])


def test_sum_repository_totals_adds_up_aliases() -> None:
    data = {
        "repo0": {
            "defaultBranchRef": {"target": {"history": {"totalCount": 40}}},
            "pullRequests": {
                "totalCount": 5,
                "nodes": [{"reviews": {"totalCount": 2}}, {"reviews": {"totalCount": 1}}],
            },
        },
        "repo1": {
            "defaultBranchRef": None,
            "pullRequests": {"totalCount": 1, "nodes": []},
        },
        "repo2": None,
    }

    assert sum_repository_totals(data) == RepositoryTotals(
        commits=40, pull_requests=6, code_reviews=3
    )


def test_month_bucket_normalizes_to_utc() -> None:
    assert month_bucket("2025-08-31T23:30:00-02:00") == "2025-09"
    assert month_bucket("2025-09-01T00:00:00Z") == "2025-09"
    assert month_bucket("not a date") is None


def test_aggregate_dates_to_month_map_counts_occurrences() -> None:
    stamps = ["2025-01-02T10:00:00Z", "2025-01-30T10:00:00Z", "2025-02-01T00:00:00Z", "x"]

    assert aggregate_dates_to_month_map(stamps) == {"2025-01": 2, "2025-02": 1}


def test_aggregate_daily_to_months_sorted_totals() -> None:
    days = [
        {"date": "2025-02-01", "count": 3},
        {"date": "2025-01-10", "count": 2},
        {"date": "2025-01-11", "count": 4},
    ]

    assert aggregate_daily_to_months(days) == [
        {"month": "2025-01", "total": 6},
        {"month": "2025-02", "total": 3},
    ]


def test_months_between_crosses_year_boundary() -> None:
    assert months_between(date(2024, 11, 15), date(2025, 2, 1)) == [
        "2024-11",
        "2024-12",
        "2025-01",
        "2025-02",
    ]


def test_month_map_to_series_zero_fills() -> None:
    series = month_map_to_series(
        ["2025-01", "2025-02", "2025-03"], {"2025-01": 4}, {"2025-03": 2}
    )

    assert series == [
        {"month": "2025-01", "commits": 4, "prs": 0},
        {"month": "2025-02", "commits": 0, "prs": 0},
        {"month": "2025-03", "commits": 0, "prs": 2},
    ]
    assert series_total(series) == 6


def test_flatten_calendar_skips_malformed_days() -> None:
    calendar = {
        "weeks": [
            {"contributionDays": [{"date": "2025-01-01", "contributionCount": 1}]},
            {"contributionDays": [{"date": "2025-01-08"}, {"date": "2025-01-09", "contributionCount": 0}]},
            {"other": []},
        ]
    }

    assert flatten_calendar(calendar) == [
        {"date": "2025-01-01", "count": 1},
        {"date": "2025-01-09", "count": 0},
    ]


def test_calendar_series_counts_everything_as_commits() -> None:
    days = [{"date": "2025-01-05", "count": 7}]

    assert calendar_series(days, date(2024, 12, 1), date(2025, 1, 31)) == [
        {"month": "2024-12", "commits": 0, "prs": 0},
        {"month": "2025-01", "commits": 7, "prs": 0},
    ]


def test_month_map_to_series_two_month_example() -> None:
    assert month_map_to_series(["2025-09", "2025-10"], {"2025-09": 4}, {"2025-10": 1}) == [
        {"month": "2025-09", "commits": 4, "prs": 0},
        {"month": "2025-10", "commits": 0, "prs": 1},
    ]


def test_aggregate_languages_puts_dominant_language_first() -> None:
    shares = aggregate_languages([{"JavaScript": 300, "TypeScript": 100, "Python": 100}], PALETTE)

    assert [(share.name, share.value) for share in shares] == [
        ("JavaScript", 60),
        ("TypeScript", 20),
        ("Python", 20),
    ]
