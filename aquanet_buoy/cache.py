from __future__ import annotations

"""Short- and long-lived caches of buoy records.

- :class:`FreshnessMemo` keeps the latest record per buoy for 30 seconds so
  repeat lookups of the same buoy skip the page walk.
  It is an optimization only; dropping it never changes results.
- :class:`OfflineSnapshotStore` persists the last successfully ingested
  dataset for 24 hours and is read only when the network path fails.

Both take an injectable ``clock`` so expiry can be tested without waiting.
"""

from collections import OrderedDict
import json
import logging
import time
from typing import Callable, Optional, Sequence

from .const import (
    FRESHNESS_MAX_ENTRIES,
    FRESHNESS_TTL_SECONDS,
    OFFLINE_CACHE_KEY,
    OFFLINE_CACHE_MAX_AGE_SECONDS,
    OFFLINE_CACHE_TIMESTAMP_KEY,
)
from .errors import CacheExpired, CacheMiss
from .logging_utils import log_event
from .models import CachedSnapshot, CacheInfo, FreshnessEntry, Record
from .settings import SettingsService
from .storage import KeyValueStore


_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class FreshnessMemo:
    """Per-buoy memo of the latest record, valid for ``ttl`` seconds.

    Entries younger than ``ttl`` are hits. Expired entries are evicted on read.
    The mapping is bounded; the least recently written entry goes first.
    """

    def __init__(
        self,
        *,
        ttl: float = FRESHNESS_TTL_SECONDS,
        max_entries: int = FRESHNESS_MAX_ENTRIES,
        clock: Clock = time.monotonic,
    ) -> None:
        self._ttl = float(ttl)
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: "OrderedDict[int, FreshnessEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, buoy_id: int) -> Optional[Record]:
        entry = self._entries.get(buoy_id)
        if entry is None:
            return None
        if entry.age(self._clock()) >= self._ttl:
            del self._entries[buoy_id]
            log_event(_LOGGER, logging.DEBUG, "cache.memo", "expired", buoy=buoy_id)
            return None
        return entry.record

    def put(self, buoy_id: int, record: Record) -> None:
        self._entries.pop(buoy_id, None)
        self._entries[buoy_id] = FreshnessEntry(buoy_id=buoy_id, record=record, captured_at=self._clock())
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


def _format_age(seconds: float) -> str:
    total_minutes = int(seconds // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m ago"
    return f"{minutes}m ago"


class OfflineSnapshotStore:
    """Persisted last-known-good dataset, usable for ``max_age`` seconds.

    The snapshot lives under two keys: the
    JSON payload (``offline_buoy_data``) and the capture time in epoch
    milliseconds (``offline_cache_timestamp``).

    Args:
        storage: Key-value persistence primitive.
        settings: Settings source; saving happens only with offline mode on.
        clock: Wall clock in epoch seconds.
        max_age: Snapshot lifetime in seconds.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        settings: SettingsService,
        *,
        clock: Clock = time.time,
        max_age: float = OFFLINE_CACHE_MAX_AGE_SECONDS,
    ) -> None:
        self._storage = storage
        self._settings = settings
        self._clock = clock
        self._max_age = float(max_age)

    async def save(self, records: Sequence[Record]) -> bool:
        """Persist ``records`` with the current time; returns False when disabled."""

        if not self._settings.is_offline_mode_enabled():
            return False
        now_ms = int(self._clock() * 1000)
        payload = {
            "data": [r.to_dict() for r in records],
            "timestamp": now_ms,
            "buoyCount": len(records),
        }
        await self._storage.set_item(OFFLINE_CACHE_KEY, json.dumps(payload, ensure_ascii=False))
        await self._storage.set_item(OFFLINE_CACHE_TIMESTAMP_KEY, str(now_ms))
        log_event(_LOGGER, logging.INFO, "cache.snapshot", "saved", records=len(records))
        return True

    async def _read(self) -> Optional[CachedSnapshot]:
        raw = await self._storage.get_item(OFFLINE_CACHE_KEY)
        stamp = await self._storage.get_item(OFFLINE_CACHE_TIMESTAMP_KEY)
        if not raw or not stamp:
            return None
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("snapshot payload is not an object")
        items = payload["data"]
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ValueError("snapshot data is not a list of records")
        records = tuple(Record.from_dict(item) for item in items)
        return CachedSnapshot(records=records, captured_at=int(stamp) / 1000.0)

    async def load(self) -> CachedSnapshot:
        """Return the stored snapshot if it is young enough.

        Raises:
            CacheMiss: Offline mode is off, nothing is stored, or the stored
                blob is unreadable (it is then cleared).
            CacheExpired: The snapshot is older than ``max_age``; it is cleared.
        """

        if not self._settings.is_offline_mode_enabled():
            raise CacheMiss("Offline mode is disabled")
        try:
            snapshot = await self._read()
        except (ValueError, KeyError, TypeError) as exc:
            _LOGGER.error("Discarding unreadable offline snapshot: %s", exc)
            await self.clear()
            raise CacheMiss("Offline snapshot is unreadable") from exc
        if snapshot is None:
            raise CacheMiss("No offline snapshot stored")

        age = snapshot.age(self._clock())
        if age > self._max_age:
            log_event(_LOGGER, logging.INFO, "cache.snapshot", "expired", age_s=age)
            await self.clear()
            raise CacheExpired(f"Offline snapshot is {age / 3600:.1f}h old")
        log_event(_LOGGER, logging.INFO, "cache.snapshot", "hit", records=len(snapshot.records), age_s=age)
        return snapshot

    async def clear(self) -> None:
        await self._storage.remove_item(OFFLINE_CACHE_KEY)
        await self._storage.remove_item(OFFLINE_CACHE_TIMESTAMP_KEY)
        log_event(_LOGGER, logging.INFO, "cache.snapshot", "cleared")

    async def info(self) -> CacheInfo:
        """Describe the stored snapshot without touching it."""

        try:
            snapshot = await self._read()
        except (ValueError, KeyError, TypeError):
            return CacheInfo(has_cache=False)
        if snapshot is None:
            return CacheInfo(has_cache=False)
        return CacheInfo(
            has_cache=True,
            data_points=len(snapshot.records),
            age=_format_age(snapshot.age(self._clock())),
        )

    async def size_bytes(self) -> int:
        raw = await self._storage.get_item(OFFLINE_CACHE_KEY)
        return len(raw.encode("utf-8")) if raw else 0


__all__ = ["FreshnessMemo", "OfflineSnapshotStore"]
