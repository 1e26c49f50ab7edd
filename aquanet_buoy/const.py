from __future__ import annotations

"""Constants and configuration schema for the AquaNet buoy ingestion layer."""

from typing import Any, Dict, Final, Mapping
from dataclasses import dataclass
import voluptuous as vol

DASHBOARD_URL: Final[str] = "https://dorsu.edu.ph/buoy/dashboard.php"
PAGE_QUERY_PARAM: Final[str] = "page"

DEFAULT_USER_AGENT: Final[str] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_TIMEZONE: Final[str] = "Asia/Manila"

# Network behavior
DEFAULT_REQUEST_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_CONNECTIVITY_TIMEOUT_SECONDS: Final[float] = 3.0
DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_RETRY_DELAY_SECONDS: Final[float] = 1.0

# Page walk ceilings; every walk is bounded
DEFAULT_BOUNDED_PAGE_CEILING: Final[int] = 10
DEFAULT_EXHAUSTIVE_PAGE_CEILING: Final[int] = 100

# Number of newest records scanned for a single-buoy lookup
LATEST_LOOKUP_RECORD_COUNT: Final[int] = 50

# Cache lifetimes
FRESHNESS_TTL_SECONDS: Final[float] = 30.0
FRESHNESS_MAX_ENTRIES: Final[int] = 64
OFFLINE_CACHE_MAX_AGE_SECONDS: Final[float] = 24 * 60 * 60

# Persisted key names
OFFLINE_CACHE_KEY: Final[str] = "offline_buoy_data"
OFFLINE_CACHE_TIMESTAMP_KEY: Final[str] = "offline_cache_timestamp"
SETTINGS_KEY: Final[str] = "appSettings"

# Plausible year window for buoy timestamps
MIN_VALID_YEAR: Final[int] = 2020
MAX_VALID_YEAR: Final[int] = 2030

# Settings keys, persisted in camelCase
CONF_AUTO_REFRESH_INTERVAL: Final[str] = "autoRefreshInterval"
CONF_DEFAULT_BUOY_SELECTION: Final[str] = "defaultBuoySelection"
CONF_DATA_RETENTION_POINTS: Final[str] = "dataRetentionPoints"
CONF_OFFLINE_MODE: Final[str] = "offlineMode"
CONF_NOTIFICATIONS_ENABLED: Final[str] = "notificationsEnabled"

DEFAULT_AUTO_REFRESH_INTERVAL: Final[int] = 60
DEFAULT_BUOY_SELECTION: Final[int] = 1
DEFAULT_DATA_RETENTION_POINTS: Final[int] = 20

# Validation bounds
MAX_AUTO_REFRESH_INTERVAL: Final[int] = 24 * 60 * 60  # 1 day
MIN_DATA_RETENTION_POINTS: Final[int] = 1
MAX_DATA_RETENTION_POINTS: Final[int] = 1000


def _strict_int(name: str, low: int, high: int | None = None):  # noqa: ANN202 - validator factory
    def _validate(value: Any) -> int:
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise vol.Invalid(f"Invalid {name}: expected integer")
        if value < low or (high is not None and value > high):
            bound = f"between {low} and {high}" if high is not None else f">= {low}"
            raise vol.Invalid(f"Invalid {name}: must be {bound}")
        return value

    return _validate


def _strict_bool(name: str):  # noqa: ANN202 - validator factory
    def _validate(value: Any) -> bool:
        if not isinstance(value, bool):
            raise vol.Invalid(f"Invalid {name}: expected true or false")
        return value

    return _validate


SETTINGS_SCHEMA: Final = vol.Schema(
    {
        vol.Optional(CONF_AUTO_REFRESH_INTERVAL, default=DEFAULT_AUTO_REFRESH_INTERVAL): _strict_int(
            CONF_AUTO_REFRESH_INTERVAL, 0, MAX_AUTO_REFRESH_INTERVAL
        ),
        vol.Optional(CONF_DEFAULT_BUOY_SELECTION, default=DEFAULT_BUOY_SELECTION): _strict_int(
            CONF_DEFAULT_BUOY_SELECTION, 1
        ),
        vol.Optional(CONF_DATA_RETENTION_POINTS, default=DEFAULT_DATA_RETENTION_POINTS): _strict_int(
            CONF_DATA_RETENTION_POINTS, MIN_DATA_RETENTION_POINTS, MAX_DATA_RETENTION_POINTS
        ),
        vol.Optional(CONF_OFFLINE_MODE, default=False): _strict_bool(CONF_OFFLINE_MODE),
        vol.Optional(CONF_NOTIFICATIONS_ENABLED, default=True): _strict_bool(CONF_NOTIFICATIONS_ENABLED),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class AppSettings:
    """Validated application settings read by the ingestion layer."""

    auto_refresh_interval: int = DEFAULT_AUTO_REFRESH_INTERVAL
    default_buoy_selection: int = DEFAULT_BUOY_SELECTION
    data_retention_points: int = DEFAULT_DATA_RETENTION_POINTS
    offline_mode: bool = False
    notifications_enabled: bool = True

    @property
    def auto_refresh_enabled(self) -> bool:
        return self.auto_refresh_interval > 0

    def to_mapping(self) -> Dict[str, Any]:
        """Return the persisted camelCase representation."""
        return {
            CONF_AUTO_REFRESH_INTERVAL: self.auto_refresh_interval,
            CONF_DEFAULT_BUOY_SELECTION: self.default_buoy_selection,
            CONF_DATA_RETENTION_POINTS: self.data_retention_points,
            CONF_OFFLINE_MODE: self.offline_mode,
            CONF_NOTIFICATIONS_ENABLED: self.notifications_enabled,
        }


DEFAULT_SETTINGS: Final[AppSettings] = AppSettings()


def build_app_settings(validated: Mapping[str, Any]) -> AppSettings:
    """Convert a validated mapping (via SETTINGS_SCHEMA) into AppSettings."""

    return AppSettings(
        auto_refresh_interval=validated.get(CONF_AUTO_REFRESH_INTERVAL, DEFAULT_AUTO_REFRESH_INTERVAL),
        default_buoy_selection=validated.get(CONF_DEFAULT_BUOY_SELECTION, DEFAULT_BUOY_SELECTION),
        data_retention_points=validated.get(CONF_DATA_RETENTION_POINTS, DEFAULT_DATA_RETENTION_POINTS),
        offline_mode=validated.get(CONF_OFFLINE_MODE, False),
        notifications_enabled=validated.get(CONF_NOTIFICATIONS_ENABLED, True),
    )


def format_refresh_interval(seconds: int) -> str:
    """Human-readable refresh interval, e.g. ``"5 minutes"`` or ``"Manual Only"``."""
    if seconds == 0:
        return "Manual Only"
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{seconds / 60:g} minutes"
    return f"{seconds / 3600:g} hours"


@dataclass(frozen=True)
class ServiceConfig:
    """Static wiring options for :class:`~aquanet_buoy.service.BuoyDataService`."""

    url: str = DASHBOARD_URL
    user_agent: str = DEFAULT_USER_AGENT
    timezone: str = DEFAULT_TIMEZONE
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    bounded_page_ceiling: int = DEFAULT_BOUNDED_PAGE_CEILING
    exhaustive_page_ceiling: int = DEFAULT_EXHAUSTIVE_PAGE_CEILING
    latest_lookup_record_count: int = LATEST_LOOKUP_RECORD_COUNT
    freshness_ttl_seconds: float = FRESHNESS_TTL_SECONDS
    offline_max_age_seconds: float = OFFLINE_CACHE_MAX_AGE_SECONDS
