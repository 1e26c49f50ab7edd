from __future__ import annotations

"""AquaNet buoy data ingestion and resilience layer.

Turns the paginated HTML table of the buoy dashboard into typed records, with
retry, a short-lived per-buoy memo and a 24 hour offline snapshot. Start with
:class:`~aquanet_buoy.service.BuoyDataService`.
"""

from .errors import (
    BuoyDataError,
    CacheExpired,
    CacheMiss,
    FetchFailed,
    HttpError,
    InvalidDateError,
    NetworkUnavailable,
    ParseError,
)
from .models import CacheInfo, FetchResult, Record
from .service import BuoyDataService, FetchRequest, RequestKind
from .settings import SettingsService
from .storage import JsonFileKeyValueStore, MemoryKeyValueStore

__all__ = [
    "BuoyDataService",
    "FetchRequest",
    "RequestKind",
    "SettingsService",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "Record",
    "FetchResult",
    "CacheInfo",
    "BuoyDataError",
    "NetworkUnavailable",
    "HttpError",
    "ParseError",
    "InvalidDateError",
    "CacheMiss",
    "CacheExpired",
    "FetchFailed",
]
