from __future__ import annotations

"""``aiohttp.ClientSession`` ownership for HTTP-speaking components.

:class:`AsyncSessionMixin` lets a component either borrow a session from its
caller (never closed here) or lazily create its own (closed by :meth:`close`
or on leaving ``async with``). Owned sessions carry a total request timeout,
so every individual HTTP call is bounded independently of any retry delays.
"""

from typing import Mapping, Optional
import logging

import aiohttp

from .const import DEFAULT_REQUEST_TIMEOUT_SECONDS, DEFAULT_USER_AGENT


_LOGGER = logging.getLogger(__name__)


class AsyncSessionMixin:
    """Provide :meth:`_ensure_session` and :meth:`close` to subclasses."""

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._borrowed_session: Optional[aiohttp.ClientSession] = session
        self._owned_session: Optional[aiohttp.ClientSession] = None
        self._request_timeout = aiohttp.ClientTimeout(total=float(request_timeout_seconds))

        headers: dict[str, str] = {"User-Agent": user_agent}
        if default_headers:
            headers.update(default_headers)
        self._session_headers: Mapping[str, str] = headers

    @property
    def request_timeout(self) -> aiohttp.ClientTimeout:
        return self._request_timeout

    async def __aenter__(self):  # noqa: ANN204 - subclass type
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Return the borrowed session if usable, else an owned one."""
        if self._borrowed_session is not None and not self._borrowed_session.closed:
            return self._borrowed_session
        if self._owned_session is None or self._owned_session.closed:
            _LOGGER.debug("Opening owned aiohttp session (timeout=%ss)", self._request_timeout.total)
            self._owned_session = aiohttp.ClientSession(
                headers=dict(self._session_headers),
                timeout=self._request_timeout,
            )
        return self._owned_session

    async def close(self) -> None:
        """Close the owned session; borrowed sessions are left to their owner."""
        if self._owned_session is not None and not self._owned_session.closed:
            await self._owned_session.close()
        self._owned_session = None


__all__ = ["AsyncSessionMixin"]
