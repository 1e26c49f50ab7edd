from __future__ import annotations

"""Optional online tests against the live buoy dashboard.

Skipped by default unless RUN_ONLINE=1.
"""

import os

import pytest

from aquanet_buoy.const import AppSettings
from aquanet_buoy.scrapers.dashboard import DashboardScraper
from aquanet_buoy.service import BuoyDataService
from aquanet_buoy.settings import SettingsService
from aquanet_buoy.storage import MemoryKeyValueStore
from aquanet_buoy.timeparse import is_valid_timestamp


ONLINE = os.getenv("RUN_ONLINE") == "1"


@pytest.mark.online
@pytest.mark.skipif(not ONLINE, reason="Set RUN_ONLINE=1 to enable online tests")
@pytest.mark.asyncio
async def test_live_first_page_has_records() -> None:
    async with DashboardScraper() as scraper:
        page = await scraper.fetch_page(1)

    assert page.records
    assert page.total_pages_hint >= 1
    assert any(is_valid_timestamp(r.date, r.time) for r in page.records)


@pytest.mark.online
@pytest.mark.skipif(not ONLINE, reason="Set RUN_ONLINE=1 to enable online tests")
@pytest.mark.asyncio
async def test_live_buoy_discovery_and_latest() -> None:
    storage = MemoryKeyValueStore()
    settings = SettingsService(storage, initial=AppSettings(offline_mode=True))

    async with BuoyDataService(settings, storage) as service:
        ids = (await service.fetch_available_buoy_ids()).value
        assert ids
        latest = await service.fetch_latest_for_buoy(ids[0])

    # Discovery warms the memo for every buoy with a valid timestamp
    if latest.value is not None:
        assert latest.from_memo
