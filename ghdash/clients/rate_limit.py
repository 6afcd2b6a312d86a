import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime

from ghdash.core.errors import RateLimitExceeded
from ghdash.core.notices import NoticeBoard

logger = logging.getLogger(__name__)

DEFAULT_WARNING_THRESHOLD = 50


@dataclass(frozen=True)
class RateLimitSnapshot:
    remaining: int
    reset_epoch_seconds: int


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def inspect(headers: Mapping[str, str]) -> RateLimitSnapshot | None:
    """Read the GitHub quota headers. Returns None when they are absent."""

    raw_remaining = _header(headers, "x-ratelimit-remaining")
    if raw_remaining is None:
        return None

    try:
        remaining = int(raw_remaining)
    except ValueError:
        return None

    try:
        reset = int(_header(headers, "x-ratelimit-reset") or 0)
    except ValueError:
        reset = 0

    return RateLimitSnapshot(remaining=remaining, reset_epoch_seconds=reset)


def enforce(
    snapshot: RateLimitSnapshot | None,
    notices: NoticeBoard | None = None,
    threshold: int = DEFAULT_WARNING_THRESHOLD,
) -> None:
    """Fail on exhausted quota, warn when it is running low.

    Raises:
        RateLimitExceeded: If no requests remain in the current window.
    """

    if snapshot is None:
        return

    if snapshot.remaining <= 0:
        raise RateLimitExceeded(snapshot.reset_epoch_seconds)

    if snapshot.remaining < threshold:
        reset_at = datetime.fromtimestamp(snapshot.reset_epoch_seconds, UTC)
        message = (
            f"GitHub API quota is low: {snapshot.remaining} requests left "
            f"until {reset_at:%H:%M} UTC"
        )
        logger.warning(message)
        if notices is not None:
            notices.publish("rate-limit", message)
