from __future__ import annotations

"""End-to-end offline tests: BuoyDataService over the real DashboardScraper.

HTTP is mocked with aioresponses; connectivity is a static probe so the
retry path can be steered without touching the network.
"""

import pathlib

import pytest
from aioresponses import aioresponses

from aquanet_buoy.cache import OfflineSnapshotStore
from aquanet_buoy.connectivity import StaticConnectivityProbe
from aquanet_buoy.const import AppSettings, ServiceConfig
from aquanet_buoy.errors import FetchFailed
from aquanet_buoy.service import BuoyDataService
from aquanet_buoy.settings import SettingsService
from aquanet_buoy.storage import MemoryKeyValueStore

from helpers import DASHBOARD_URL, RecordingSleep, dashboard_html, page_url, reading


FIXTURE_PATH = pathlib.Path(__file__).parent / "fixtures" / "dashboard_page_sample.html"
EMPTY_PAGE = dashboard_html([])


def _service(probe: StaticConnectivityProbe, *, offline_mode: bool = True):  # type: ignore[no-untyped-def]
    storage = MemoryKeyValueStore()
    settings = SettingsService(storage, initial=AppSettings(offline_mode=offline_mode))
    return BuoyDataService(
        settings,
        storage,
        config=ServiceConfig(url=DASHBOARD_URL),
        connectivity=probe,
        snapshots=OfflineSnapshotStore(storage, settings),
        sleep=RecordingSleep(),
    )


# Test: Fixture page then an empty page
# Expect: latest per buoy resolved across date formats; corrupted year ignored
@pytest.mark.asyncio
async def test_latest_for_each_buoy_from_fixture() -> None:
    probe = StaticConnectivityProbe(True)
    with aioresponses() as mocked:
        mocked.get(page_url(1), status=200, body=FIXTURE_PATH.read_text(encoding="utf-8"))
        mocked.get(page_url(2), status=200, body=EMPTY_PAGE)

        async with _service(probe) as service:
            ids = await service.fetch_available_buoy_ids()
            buoy1 = await service.fetch_latest_for_buoy(1)
            buoy2 = await service.fetch_latest_for_buoy(2)
            buoy3 = await service.fetch_latest_for_buoy(3)

    assert ids.value == [1, 2, 3]
    assert buoy1.value.id == "1207"
    assert buoy2.value.id == "1206"
    assert buoy3.value.id == "1204"
    assert buoy1.from_memo and buoy2.from_memo and buoy3.from_memo


# Test: Multi-page walk for latest N
# Expect: records from page 1 then page 2, cut to N
@pytest.mark.asyncio
async def test_latest_n_walks_pages() -> None:
    probe = StaticConnectivityProbe(True)
    page1 = dashboard_html([reading(i) for i in range(10, 5, -1)], total_pages=3)
    page2 = dashboard_html([reading(i) for i in range(5, 0, -1)], total_pages=3)
    with aioresponses() as mocked:
        mocked.get(page_url(1), status=200, body=page1)
        mocked.get(page_url(2), status=200, body=page2)

        async with _service(probe) as service:
            result = await service.fetch_latest_n(7)

    assert [r.id for r in result.value] == ["10", "9", "8", "7", "6", "5", "4"]


# Test: Server answers 500 three times after a good walk
# Expect: retried, then served offline from the snapshot
@pytest.mark.asyncio
async def test_server_errors_served_from_snapshot() -> None:
    probe = StaticConnectivityProbe(True)
    with aioresponses() as mocked:
        mocked.get(page_url(1), status=200, body=FIXTURE_PATH.read_text(encoding="utf-8"))
        mocked.get(page_url(2), status=200, body=EMPTY_PAGE)
        for _ in range(3):
            mocked.get(page_url(1), status=500)

        async with _service(probe) as service:
            await service.fetch_all_records()
            result = await service.fetch_latest_n(2)

    assert result.is_offline
    assert [r.id for r in result.value] == ["1207", "1206"]


# Test: Offline from the start with nothing cached
# Expect: FetchFailed and no HTTP request made
@pytest.mark.asyncio
async def test_offline_without_snapshot_fails() -> None:
    probe = StaticConnectivityProbe(False)
    with aioresponses() as mocked:
        async with _service(probe) as service:
            with pytest.raises(FetchFailed):
                await service.fetch_latest_for_buoy(1)

        assert not mocked.requests


# Test: Full export through HTTP
# Expect: header plus one line per parsed row
@pytest.mark.asyncio
async def test_export_csv_over_http() -> None:
    probe = StaticConnectivityProbe(True)
    with aioresponses() as mocked:
        mocked.get(page_url(1), status=200, body=FIXTURE_PATH.read_text(encoding="utf-8"))
        mocked.get(page_url(2), status=200, body=EMPTY_PAGE)

        async with _service(probe) as service:
            text = await service.export_all_records_as_csv()

    lines = text.splitlines()
    assert len(lines) == 6
    assert lines[2].startswith('"1206","Buoy 2","2024-08-15","14:25:41"')
    assert '"1,204"' in lines[2]
