from ghdash.core import analytics
from ghdash.core.analytics import AnalyticsConfig


def recording_sink():
    events: list[tuple[str, dict]] = []

    def sink(name, params):
        events.append((name, dict(params)))

    return sink, events


def test_disabled_handle_drops_events() -> None:
    sink, events = recording_sink()
    handle = analytics.init(AnalyticsConfig(enabled=False), sink)

    handle.track("dashboard_loaded", {"repos": 3})
    handle.pageview("/")

    assert handle.active is False
    assert events == []


def test_enabled_handle_tags_measurement_id() -> None:
    sink, events = recording_sink()
    handle = analytics.init(AnalyticsConfig(enabled=True, measurement_id="G-TEST"), sink)

    handle.track("dashboard_loaded", {"repos": 3})
    handle.pageview("/settings")

    assert events == [
        ("dashboard_loaded", {"repos": 3, "measurement_id": "G-TEST"}),
        ("page_view", {"page_path": "/settings", "measurement_id": "G-TEST"}),
    ]


def test_dispose_stops_tracking() -> None:
    sink, events = recording_sink()
    handle = analytics.init(AnalyticsConfig(enabled=True), sink)

    handle.dispose()
    handle.track("dashboard_loaded")

    assert handle.active is False
    assert events == []


def test_sink_failure_is_not_raised() -> None:
    def sink(name, params):
        raise RuntimeError("collector offline")

    handle = analytics.init(AnalyticsConfig(enabled=True), sink)

    handle.track("dashboard_loaded")


def test_default_sink_records_sentry_breadcrumb(monkeypatch) -> None:
    crumbs: list[dict[str, object]] = []
    monkeypatch.setattr(
        "ghdash.core.analytics.sentry_sdk.add_breadcrumb",
        lambda **kwargs: crumbs.append(kwargs),
    )

    analytics.init(AnalyticsConfig(enabled=True)).track("page_view", {"page_path": "/"})

    assert crumbs == [
        {"category": "analytics", "message": "page_view", "data": {"page_path": "/"}}
    ]
