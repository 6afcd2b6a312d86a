import logging
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import sentry_sdk

logger = logging.getLogger(__name__)

Sink = Callable[[str, Mapping[str, Any]], None]


@dataclass(frozen=True)
class AnalyticsConfig:
    enabled: bool = False
    measurement_id: str | None = None


def default_sink(name: str, params: Mapping[str, Any]) -> None:
    logger.info("[analytics] event %s %s", name, dict(params))
    sentry_sdk.add_breadcrumb(category="analytics", message=name, data=dict(params))


class AnalyticsHandle:
    """Consent-aware event tracker. A disabled or disposed handle drops events."""

    def __init__(self, config: AnalyticsConfig, sink: Sink = default_sink) -> None:
        self.config = config
        self._sink = sink
        self._active = config.enabled

    @property
    def active(self) -> bool:
        return self._active

    def track(self, name: str, params: Mapping[str, Any] | None = None) -> None:
        if not self._active:
            return
        event = dict(params or {})
        if self.config.measurement_id:
            event.setdefault("measurement_id", self.config.measurement_id)
        try:
            self._sink(name, event)
        except Exception as exc:
            logger.warning("analytics sink failed for %s: %s", name, exc)

    def pageview(self, path: str) -> None:
        self.track("page_view", {"page_path": path})

    def dispose(self) -> None:
        self._active = False


def init(config: AnalyticsConfig, sink: Sink = default_sink) -> AnalyticsHandle:
    return AnalyticsHandle(config, sink)
