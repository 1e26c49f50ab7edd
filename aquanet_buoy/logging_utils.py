from __future__ import annotations

"""Structured logging helpers for the buoy ingestion layer.

Every component logs single-line ``key=value`` records so that a page walk,
its retries and its cache decisions can be followed with a plain ``grep``:

    component=pagination op=finish operation=walk pages=3 records=27 duration_ms=812

The library never touches global logging configuration. Only the command line
entry point calls :func:`configure_logging`.
"""

from dataclasses import dataclass, field
import logging
from logging.config import dictConfig
import time
from typing import Any, Dict, Mapping, MutableMapping


def _render_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = f"{value:.3f}".rstrip("0").rstrip(".")
    elif isinstance(value, (list, tuple, set, frozenset)):
        text = ",".join(str(v) for v in value)
    else:
        text = str(value)
    if not text:
        return '""'
    if any(ch in text for ch in (" ", "=", "\t", "\n")):
        escaped = text.replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    return text


def kv(mapping: Mapping[str, Any] | None = None, /, **kwargs: Any) -> str:
    """Render fields as ``key=value`` pairs sorted by key.

    ``None`` renders as ``-``, booleans in lower case, floats with at most three
    decimals and sequences comma-joined. Values containing whitespace or ``=``
    are double-quoted.
    """

    fields: Dict[str, Any] = dict(mapping or {})
    fields.update(kwargs)
    return " ".join(f"{key}={_render_value(fields[key])}" for key in sorted(fields))


def log_event(
    logger: logging.Logger,
    level: int,
    component: str,
    event: str,
    *,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """Emit one structured record if ``logger`` is enabled for ``level``.

        log_event(_LOGGER, logging.INFO, "cache.snapshot", "saved", records=27)
        # component=cache.snapshot event=saved records=27
    """

    if logger.isEnabledFor(level):
        logger.log(level, "%s", kv(fields, component=component, event=event), exc_info=exc_info)


@dataclass
class _OperationLogger:
    """Times one operation and logs its start and outcome.

    Obtain instances through :func:`log_operation`.
    """

    logger: logging.Logger
    component: str
    operation: str
    level_start: int = logging.DEBUG
    level_end: int = logging.DEBUG
    base_fields: MutableMapping[str, Any] = field(default_factory=dict)

    _started: float = field(init=False, default=0.0)
    _fields: Dict[str, Any] = field(init=False, default_factory=dict)

    def set(self, **fields: Any) -> None:
        """Attach fields to the closing record."""
        self._fields.update(fields)

    def __enter__(self) -> "_OperationLogger":
        self._started = time.monotonic()
        if self.logger.isEnabledFor(self.level_start):
            self.logger.log(
                self.level_start,
                "%s",
                kv(self.base_fields, component=self.component, op="start", operation=self.operation),
            )
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:  # noqa: ANN001 - context manager protocol
        self._finish(exc)
        return False

    async def __aenter__(self) -> "_OperationLogger":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> bool:  # noqa: ANN001 - context manager protocol
        return self.__exit__(exc_type, exc, tb)

    def _finish(self, exc: BaseException | None) -> None:
        failed = exc is not None
        level = logging.ERROR if failed else self.level_end
        if not self.logger.isEnabledFor(level):
            return
        fields: Dict[str, Any] = dict(self.base_fields)
        fields.update(self._fields)
        fields["duration_ms"] = int((time.monotonic() - self._started) * 1000)
        if failed:
            fields.setdefault("exc_type", type(exc).__name__)
            fields.setdefault("error", str(exc))
        self.logger.log(
            level,
            "%s",
            kv(fields, component=self.component, op="error" if failed else "finish", operation=self.operation),
            exc_info=failed,
        )


def log_operation(
    logger: logging.Logger,
    *,
    component: str,
    operation: str,
    level_start: int = logging.DEBUG,
    level_end: int = logging.DEBUG,
    **base_fields: Any,
) -> _OperationLogger:
    """Return a sync/async context manager logging start, finish or error.

    Example:

        async with log_operation(_LOGGER, component="scraper.dashboard", operation="http_get", page=2) as op:
            html = await fetch()
            op.set(bytes=len(html))

    Exceptions are logged at ERROR with ``exc_info`` and always propagate.
    """

    return _OperationLogger(
        logger=logger,
        component=component,
        operation=operation,
        level_start=level_start,
        level_end=level_end,
        base_fields=dict(base_fields),
    )


_configured = False


def configure_logging(level: str | int = "INFO") -> None:
    """Install a console handler on the root logger (command line use only)."""

    global _configured
    if _configured:
        return
    if isinstance(level, str):
        level = level.upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "plain",
                }
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
    _configured = True


__all__ = ["kv", "log_event", "log_operation", "configure_logging"]
