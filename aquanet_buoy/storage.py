from __future__ import annotations

"""String key-value persistence backing the offline snapshot and settings.

Values are strings addressed by string keys (``get_item``/``set_item``/``remove_item``).
Two implementations: an in-memory dictionary and a single JSON file on disk.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable


_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    async def get_item(self, key: str) -> Optional[str]:  # pragma: no cover - signature only
        ...

    async def set_item(self, key: str, value: str) -> None:  # pragma: no cover - signature only
        ...

    async def remove_item(self, key: str) -> None:  # pragma: no cover - signature only
        ...


class MemoryKeyValueStore:
    """Process-local store; contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileKeyValueStore:
    """All keys in one JSON object on disk, rewritten atomically on change.

    A missing file is an empty store. A corrupt file is logged and treated as
    empty; it is replaced on the next write. Disk access runs in a worker
    thread so the event loop keeps serving other tasks meanwhile.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            _LOGGER.error("Ignoring corrupt key-value file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            _LOGGER.error("Ignoring key-value file %s: top level is not an object", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    async def get_item(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = str(value)
            await asyncio.to_thread(self._write_all, data)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write_all, data)


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
