from __future__ import annotations

"""Offline tests for the freshness memo and the offline snapshot store.

Both caches run on a simulated clock; no test waits for real time.
"""

import json

import pytest

from aquanet_buoy.cache import FreshnessMemo, OfflineSnapshotStore
from aquanet_buoy.const import AppSettings, OFFLINE_CACHE_KEY, OFFLINE_CACHE_TIMESTAMP_KEY
from aquanet_buoy.errors import CacheExpired, CacheMiss
from aquanet_buoy.models import Record
from aquanet_buoy.settings import SettingsService
from aquanet_buoy.storage import MemoryKeyValueStore

from helpers import reading


DAY = 24 * 60 * 60


def _records(n: int) -> list:
    return [Record.from_cells(reading(i, buoy=1 + i % 2)) for i in range(1, n + 1)]


def _snapshot_store(clock, *, offline_mode: bool = True):  # type: ignore[no-untyped-def]
    storage = MemoryKeyValueStore()
    settings = SettingsService(storage, initial=AppSettings(offline_mode=offline_mode))
    return storage, OfflineSnapshotStore(storage, settings, clock=clock)


# ---------- Freshness memo ----------


# Test: Entry read back before the TTL
# Expect: same record
def test_memo_hit_within_ttl(clock) -> None:  # type: ignore[no-untyped-def]
    memo = FreshnessMemo(ttl=30, clock=clock)
    record = _records(1)[0]
    memo.put(1, record)

    clock.advance(29.9)
    assert memo.get(1) is record


# Test: Entry read exactly at and after the TTL
# Expect: miss, and the entry is evicted
def test_memo_expires_at_ttl(clock) -> None:  # type: ignore[no-untyped-def]
    memo = FreshnessMemo(ttl=30, clock=clock)
    memo.put(1, _records(1)[0])

    clock.advance(30)
    assert memo.get(1) is None
    assert len(memo) == 0


# Test: Overwriting an entry
# Expect: capture time resets
def test_memo_put_resets_capture_time(clock) -> None:  # type: ignore[no-untyped-def]
    memo = FreshnessMemo(ttl=30, clock=clock)
    first, second = _records(2)
    memo.put(1, first)
    clock.advance(20)
    memo.put(1, second)
    clock.advance(20)

    assert memo.get(1) is second


# Test: More buoys than max_entries
# Expect: oldest written entry evicted first
def test_memo_bounded(clock) -> None:  # type: ignore[no-untyped-def]
    memo = FreshnessMemo(max_entries=2, clock=clock)
    a, b, c = _records(3)
    memo.put(1, a)
    memo.put(2, b)
    memo.put(3, c)

    assert memo.get(1) is None
    assert memo.get(2) is b
    assert memo.get(3) is c


def test_memo_clear(clock) -> None:  # type: ignore[no-untyped-def]
    memo = FreshnessMemo(clock=clock)
    memo.put(1, _records(1)[0])
    memo.clear()
    assert memo.get(1) is None


# ---------- Offline snapshot ----------


# Test: Save then load within 24 h
# Expect: identical record sequence
@pytest.mark.asyncio
async def test_snapshot_round_trip(clock) -> None:  # type: ignore[no-untyped-def]
    _, store = _snapshot_store(clock)
    records = _records(5)

    assert await store.save(records) is True
    clock.advance(DAY - 1)
    snapshot = await store.load()

    assert list(snapshot.records) == records
    assert snapshot.captured_at == pytest.approx(clock.now - (DAY - 1))


# Test: Persisted layout
# Expect: JSON payload with data/timestamp/buoyCount and a millisecond timestamp key
@pytest.mark.asyncio
async def test_snapshot_storage_layout(clock) -> None:  # type: ignore[no-untyped-def]
    storage, store = _snapshot_store(clock)
    await store.save(_records(2))

    payload = json.loads(await storage.get_item(OFFLINE_CACHE_KEY))
    assert payload["buoyCount"] == 2
    assert payload["timestamp"] == int(clock.now * 1000)
    assert payload["data"][0]["Buoy"] == "Buoy 2"
    assert payload["data"][0]["Temp (°C)"] == "28.5"
    assert await storage.get_item(OFFLINE_CACHE_TIMESTAMP_KEY) == str(int(clock.now * 1000))


# Test: Load at exactly 24 h
# Expect: still usable
@pytest.mark.asyncio
async def test_snapshot_usable_at_exactly_max_age(clock) -> None:  # type: ignore[no-untyped-def]
    _, store = _snapshot_store(clock)
    await store.save(_records(1))

    clock.advance(DAY)
    assert len((await store.load()).records) == 1


# Test: Load after more than 24 h
# Expect: CacheExpired, snapshot cleared, info reports no cache
@pytest.mark.asyncio
async def test_snapshot_expires_and_clears(clock) -> None:  # type: ignore[no-untyped-def]
    storage, store = _snapshot_store(clock)
    await store.save(_records(3))

    clock.advance(DAY + 1)
    with pytest.raises(CacheExpired):
        await store.load()

    assert (await store.info()).has_cache is False
    assert await storage.get_item(OFFLINE_CACHE_KEY) is None
    with pytest.raises(CacheMiss):
        await store.load()


# Test: Nothing stored
# Expect: CacheMiss
@pytest.mark.asyncio
async def test_snapshot_missing(clock) -> None:  # type: ignore[no-untyped-def]
    _, store = _snapshot_store(clock)
    with pytest.raises(CacheMiss):
        await store.load()


# Test: Corrupt blob in storage
# Expect: CacheMiss and the blob is removed
@pytest.mark.asyncio
async def test_snapshot_unreadable_is_cleared(clock) -> None:  # type: ignore[no-untyped-def]
    storage, store = _snapshot_store(clock)
    await storage.set_item(OFFLINE_CACHE_KEY, "{not json")
    await storage.set_item(OFFLINE_CACHE_TIMESTAMP_KEY, "123")

    with pytest.raises(CacheMiss):
        await store.load()
    assert await storage.get_item(OFFLINE_CACHE_KEY) is None


# Test: Well-formed JSON of the wrong shape in storage
# Expect: info reports no cache, load raises CacheMiss and removes the blob
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "blob",
    [
        {"data": ["oops"]},
        {"data": [["1", "Buoy 1"]]},
        {"data": {"id": "1"}},
        ["not", "an", "object"],
        "just a string",
    ],
)
async def test_snapshot_wrong_shape_is_a_miss(clock, blob) -> None:  # type: ignore[no-untyped-def]
    storage, store = _snapshot_store(clock)
    await storage.set_item(OFFLINE_CACHE_KEY, json.dumps(blob))
    await storage.set_item(OFFLINE_CACHE_TIMESTAMP_KEY, "123")

    assert (await store.info()).has_cache is False
    with pytest.raises(CacheMiss):
        await store.load()
    assert await storage.get_item(OFFLINE_CACHE_KEY) is None


# Test: Offline mode disabled
# Expect: save is a no-op and load reports a miss
@pytest.mark.asyncio
async def test_snapshot_disabled_without_offline_mode(clock) -> None:  # type: ignore[no-untyped-def]
    storage, store = _snapshot_store(clock, offline_mode=False)

    assert await store.save(_records(2)) is False
    assert await storage.get_item(OFFLINE_CACHE_KEY) is None
    with pytest.raises(CacheMiss):
        await store.load()


# Test: Cache info for display
# Expect: count and human-readable age; reading info twice never mutates
@pytest.mark.asyncio
async def test_snapshot_info(clock) -> None:  # type: ignore[no-untyped-def]
    _, store = _snapshot_store(clock)
    assert (await store.info()).has_cache is False

    await store.save(_records(4))
    clock.advance(7 * 60 + 5)
    info = await store.info()
    assert (info.has_cache, info.data_points, info.age) == (True, 4, "7m ago")

    clock.advance(2 * 3600)
    assert (await store.info()).age == "2h 7m ago"
    # Stale snapshots are still described, not cleared
    clock.advance(DAY)
    assert (await store.info()).has_cache is True


@pytest.mark.asyncio
async def test_snapshot_clear_and_size(clock) -> None:  # type: ignore[no-untyped-def]
    _, store = _snapshot_store(clock)
    assert await store.size_bytes() == 0

    await store.save(_records(3))
    assert await store.size_bytes() > 0

    await store.clear()
    assert await store.size_bytes() == 0
    assert (await store.info()).has_cache is False
