from __future__ import annotations

"""Application settings source with change notification.

Settings are persisted as one JSON blob under ``appSettings`` in the injected
key-value store, validated with :data:`~aquanet_buoy.const.SETTINGS_SCHEMA`
and exposed as an immutable :class:`~aquanet_buoy.const.AppSettings`. The
ingestion layer only reads them; the refresh scheduler subscribes to changes.
"""

from dataclasses import replace
import json
import logging
from typing import Any, Callable, List

import voluptuous as vol

from .const import DEFAULT_SETTINGS, SETTINGS_KEY, SETTINGS_SCHEMA, AppSettings, build_app_settings
from .storage import KeyValueStore


_LOGGER = logging.getLogger(__name__)

SettingsListener = Callable[[AppSettings], None]


class SettingsService:
    """Load, validate, persist and broadcast :class:`AppSettings`."""

    def __init__(self, storage: KeyValueStore, *, initial: AppSettings = DEFAULT_SETTINGS) -> None:
        self._storage = storage
        self._settings = initial
        self._listeners: List[SettingsListener] = []

    @property
    def settings(self) -> AppSettings:
        return self._settings

    # Convenience accessors used by the ingestion layer
    @property
    def auto_refresh_interval(self) -> int:
        return self._settings.auto_refresh_interval

    @property
    def data_retention_points(self) -> int:
        return self._settings.data_retention_points

    @property
    def default_buoy_selection(self) -> int:
        return self._settings.default_buoy_selection

    def is_offline_mode_enabled(self) -> bool:
        return self._settings.offline_mode

    async def load(self) -> AppSettings:
        """Merge persisted settings over the defaults.

        Unreadable or invalid persisted data is logged and ignored; the current
        settings are kept.
        """

        raw = await self._storage.get_item(SETTINGS_KEY)
        if not raw:
            return self._settings
        try:
            stored = json.loads(raw)
            if not isinstance(stored, dict):
                raise vol.Invalid("stored settings are not an object")
            merged = {**DEFAULT_SETTINGS.to_mapping(), **stored}
            self._settings = build_app_settings(SETTINGS_SCHEMA(merged))
        except (json.JSONDecodeError, vol.Invalid) as exc:
            _LOGGER.error("Ignoring invalid persisted settings: %s", exc)
        return self._settings

    async def save(self, settings: AppSettings) -> None:
        """Validate, persist and broadcast ``settings``.

        Raises:
            voluptuous.Invalid: If a field is out of range.
        """

        validated = build_app_settings(SETTINGS_SCHEMA(settings.to_mapping()))
        await self._storage.set_item(SETTINGS_KEY, json.dumps(validated.to_mapping()))
        previous, self._settings = self._settings, validated
        if previous != validated:
            self._notify()

    async def update(self, **changes: Any) -> AppSettings:
        """Replace individual fields, e.g. ``update(auto_refresh_interval=30)``."""
        await self.save(replace(self._settings, **changes))
        return self._settings

    async def reset(self) -> AppSettings:
        await self.save(DEFAULT_SETTINGS)
        return self._settings

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register ``listener`` for changes; returns an unsubscribe function."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._settings)
            except Exception as exc:  # noqa: BLE001 - one listener must not break the others
                _LOGGER.error("Settings listener %r failed: %s", listener, exc, exc_info=True)


__all__ = ["SettingsService", "SettingsListener"]
