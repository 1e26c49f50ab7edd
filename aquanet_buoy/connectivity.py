from __future__ import annotations

"""Device connectivity probes consumed by the retry executor."""

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import aiohttp

from .const import DASHBOARD_URL, DEFAULT_CONNECTIVITY_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from .mixins import AsyncSessionMixin


_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class ConnectivityProbe(Protocol):
    """Anything that can answer "is the device online?"."""

    async def is_online(self) -> bool:  # pragma: no cover - signature only
        ...


class StaticConnectivityProbe:
    """Probe with a fixed answer; used for forced offline mode and tests."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    def set_online(self, online: bool) -> None:
        self.online = bool(online)

    async def is_online(self) -> bool:
        return self.online


class HttpConnectivityProbe(AsyncSessionMixin):
    """Reachability check with a HEAD request to the dashboard host root.

    Any HTTP answer, even an error status, proves the network path works. Only
    transport failures and timeouts count as offline. The probe never raises.
    """

    def __init__(
        self,
        url: str = DASHBOARD_URL,
        *,
        timeout_seconds: float = DEFAULT_CONNECTIVITY_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        parsed = urlparse(url)
        self._target = f"{parsed.scheme}://{parsed.netloc}/" if parsed.scheme and parsed.netloc else url
        super().__init__(session=session, user_agent=user_agent, request_timeout_seconds=timeout_seconds)

    async def is_online(self) -> bool:
        session = await self._ensure_session()
        try:
            async with session.head(self._target, timeout=self.request_timeout, allow_redirects=False) as resp:
                _LOGGER.debug("Connectivity probe %s answered HTTP %s", self._target, resp.status)
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            _LOGGER.debug("Connectivity probe %s failed: %s", self._target, exc)
            return False


__all__ = [
    "ConnectivityProbe",
    "StaticConnectivityProbe",
    "HttpConnectivityProbe",
]
