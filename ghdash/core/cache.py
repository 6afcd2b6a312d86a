import hashlib
import json
import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ghdash.core.errors import CacheFault
from ghdash.models import CacheRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    timestamp: int
    payload: Any


class KeyValueStore(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local key-value store. Entries linger until overwritten."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class SqlStore:
    """Key-value store backed by the `cache_entries` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> CacheEntry | None:
        try:
            with self._session_factory() as db:
                record = db.scalar(select(CacheRecord).where(CacheRecord.key == key))
                if record is None:
                    return None
                return CacheEntry(
                    key=record.key, timestamp=record.timestamp, payload=record.payload
                )
        except SQLAlchemyError as exc:
            raise CacheFault(f"cache read failed for {key}") from exc

    def set(self, key: str, entry: CacheEntry) -> None:
        try:
            with self._session_factory() as db:
                db.merge(
                    CacheRecord(
                        key=key, timestamp=entry.timestamp, payload=entry.payload
                    )
                )
                db.commit()
        except SQLAlchemyError as exc:
            raise CacheFault(f"cache write failed for {key}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                record = db.get(CacheRecord, key)
                if record is not None:
                    db.delete(record)
                    db.commit()
        except SQLAlchemyError as exc:
            raise CacheFault(f"cache delete failed for {key}") from exc


def cache_key(namespace: str, identity: Any) -> str:
    """Digest a namespace and a JSON-serializable request identity."""

    canonical = json.dumps(
        [namespace, identity], sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def now_ms() -> int:
    return int(time.time() * 1000)


class RequestCache:
    """Time-bounded cache in front of REST and GraphQL calls.

    Storage problems never reach the caller: a failed read is a miss and a
    failed write is skipped.
    """

    def __init__(
        self, store: KeyValueStore, clock: Callable[[], int] = now_ms
    ) -> None:
        self.store = store
        self._clock = clock

    def lookup(self, key: str, ttl_seconds: float) -> CacheEntry | None:
        try:
            entry = self.store.get(key)
        except Exception as exc:
            logger.debug("Cache read failed for %s: %s", key, exc)
            return None

        if not isinstance(entry, CacheEntry) or not isinstance(entry.timestamp, int):
            return None
        if self._clock() - entry.timestamp >= ttl_seconds * 1000:
            return None
        return entry

    def save(self, key: str, payload: Any) -> None:
        try:
            self.store.set(
                key, CacheEntry(key=key, timestamp=self._clock(), payload=payload)
            )
        except Exception as exc:
            logger.debug("Cache write failed for %s: %s", key, exc)

    async def cached_fetch(
        self,
        namespace: str,
        identity: Any,
        ttl_seconds: float,
        fetcher: Callable[[], Awaitable[Any]],
    ) -> Any:
        key = cache_key(namespace, identity)
        entry = self.lookup(key, ttl_seconds)
        if entry is not None:
            return entry.payload

        payload = await fetcher()
        self.save(key, payload)
        return payload
