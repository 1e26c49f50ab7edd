from __future__ import annotations

"""Offline tests for connectivity probes."""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from aquanet_buoy.connectivity import ConnectivityProbe, HttpConnectivityProbe, StaticConnectivityProbe


ROOT = "https://dorsu.edu.ph/"


@pytest.mark.asyncio
async def test_static_probe() -> None:
    probe = StaticConnectivityProbe(False)
    assert isinstance(probe, ConnectivityProbe)
    assert await probe.is_online() is False
    probe.set_online(True)
    assert await probe.is_online() is True


# Test: Host answers, even with an error status
# Expect: online
@pytest.mark.asyncio
@pytest.mark.parametrize("status", [200, 301, 404, 503])
async def test_any_http_answer_means_online(status: int) -> None:
    with aioresponses() as mocked:
        mocked.head(ROOT, status=status)
        async with HttpConnectivityProbe("https://dorsu.edu.ph/buoy/dashboard.php") as probe:
            assert await probe.is_online() is True


# Test: Transport failure or timeout
# Expect: offline, never raises
@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
async def test_transport_failure_means_offline(exc: BaseException) -> None:
    with aioresponses() as mocked:
        mocked.head(ROOT, exception=exc)
        async with HttpConnectivityProbe() as probe:
            assert await probe.is_online() is False
