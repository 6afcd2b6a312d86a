from dataclasses import dataclass
from itertools import count


@dataclass(frozen=True)
class Notice:
    """A dismissible message surfaced to the dashboard user."""

    id: int
    key: str
    level: str
    message: str


class NoticeBoard:
    """Collects warnings raised while loading the dashboard.

    Notices are keyed by topic; publishing again under the same key replaces
    the message but keeps its id.
    """

    def __init__(self) -> None:
        self._notices: dict[str, Notice] = {}
        self._ids = count(1)

    def publish(self, key: str, message: str, level: str = "warning") -> Notice:
        existing = self._notices.get(key)
        notice_id = existing.id if existing else next(self._ids)
        notice = Notice(id=notice_id, key=key, level=level, message=message)
        self._notices[key] = notice
        return notice

    def active(self) -> list[Notice]:
        return sorted(self._notices.values(), key=lambda notice: notice.id)
