from __future__ import annotations

"""Exception taxonomy for the buoy ingestion layer.

Parse-level errors (:class:`ParseError`, :class:`InvalidDateError`) are
recovered locally by the components that raise them. Network-level errors
(:class:`NetworkUnavailable`, :class:`HttpError`) propagate to the caller only
after retries and the offline snapshot fallback have both failed, at which
point :class:`FetchFailed` is raised.
"""


class BuoyDataError(Exception):
    """Base class for ingestion-related errors."""


class NetworkUnavailable(BuoyDataError):
    """The device reports no connectivity; no request was attempted."""


class HttpError(BuoyDataError):
    """Transport failure or non-2xx HTTP response.

    Attributes:
        status: HTTP status code when the server answered, otherwise ``None``.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ParseError(BuoyDataError):
    """A page or row is structurally unusable."""


class InvalidDateError(BuoyDataError, ValueError):
    """A date/time pair is unparseable or outside the plausible year window."""


class CacheError(BuoyDataError):
    """Base class for soft cache failures."""


class CacheMiss(CacheError):
    """No usable snapshot is stored."""


class CacheExpired(CacheError):
    """A snapshot was stored but is older than the allowed age."""


class FetchFailed(BuoyDataError):
    """Terminal failure: the network failed and no usable cache exists."""


__all__ = [
    "BuoyDataError",
    "NetworkUnavailable",
    "HttpError",
    "ParseError",
    "InvalidDateError",
    "CacheError",
    "CacheMiss",
    "CacheExpired",
    "FetchFailed",
]
