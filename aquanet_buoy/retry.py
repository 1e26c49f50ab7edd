from __future__ import annotations

"""Bounded retry with linear backoff around one network operation."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp

from .const import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS
from .errors import BuoyDataError, HttpError, NetworkUnavailable, ParseError
from .logging_utils import log_event


_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

OnlineCheck = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[object]]


class RetryExecutor:
    """Run an operation with a connectivity check, retries and backoff.

    Connectivity is checked before every attempt; an offline device fails fast
    with :class:`NetworkUnavailable` and no attempt is made. Failed attempts are
    followed by ``delay * attempt_number`` seconds of sleep. After the last
    attempt connectivity is checked once more so that a device that dropped
    offline mid-way is reported as :class:`NetworkUnavailable` rather than as a
    server problem.

    Args:
        is_online: Coroutine function returning device reachability.
        max_attempts: Total attempts per :meth:`run` call.
        delay: Base delay in seconds for the linear backoff.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        is_online: OnlineCheck,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._is_online = is_online
        self._max_attempts = int(max_attempts)
        self._delay = max(0.0, float(delay))
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def backoff_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self._delay * attempt

    async def run(self, operation: Callable[[], Awaitable[T]], *, description: str = "operation") -> T:
        """Execute ``operation`` and return its result.

        Raises:
            NetworkUnavailable: If the device is offline before an attempt or
                after the final failed attempt.
            HttpError: Transport or status failure on the final attempt.
            ParseError: Structural failure on the final attempt.
        """

        last_error: Optional[BuoyDataError] = None
        attempt = 0
        while True:
            attempt += 1
            if not await self._is_online():
                log_event(_LOGGER, logging.WARNING, "retry", "offline", operation=description, attempt=attempt)
                raise NetworkUnavailable(f"No connectivity; skipped {description}") from last_error
            try:
                return await operation()
            except NetworkUnavailable:
                raise
            except (HttpError, ParseError) as exc:
                error: BuoyDataError = exc
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                error = HttpError(f"{description} failed: {exc}")
                error.__cause__ = exc
            last_error = error

            if attempt >= self._max_attempts:
                break
            wait = self.backoff_for(attempt)
            log_event(
                _LOGGER,
                logging.WARNING,
                "retry",
                "attempt_failed",
                operation=description,
                attempt=attempt,
                max_attempts=self._max_attempts,
                wait_s=wait,
                error=str(error),
            )
            await self._sleep(wait)

        if not await self._is_online():
            raise NetworkUnavailable(f"Connectivity lost during {description}") from error
        log_event(
            _LOGGER,
            logging.ERROR,
            "retry",
            "exhausted",
            operation=description,
            attempts=self._max_attempts,
            exc_type=type(error).__name__,
            error=str(error),
        )
        raise error


__all__ = ["RetryExecutor"]
