from __future__ import annotations

"""Date/time normalization for dashboard records.

The dashboard publishes dates and times as free text. Three date shapes are
seen in practice:

- ``MM/DD/YYYY`` (e.g. ``08/15/2024``)
- ``YYYY-MM-DD`` (e.g. ``2024-08-15``)
- anything else, which is parsed as one ``"<date> <time>"`` expression

Times arrive as ``HH:MM``, ``HH:MM:SS``, ``HH MM`` or a bare ``HHMM`` integer;
seconds are dropped. Corrupted rows with years such as 2065 or 2068 have been
observed, so any timestamp outside ``[2020, 2030]`` is rejected rather than
silently accepted.
"""

from datetime import datetime
from functools import lru_cache
import logging
import re
from typing import Tuple
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from .const import DEFAULT_TIMEZONE, MAX_VALID_YEAR, MIN_VALID_YEAR
from .errors import InvalidDateError


_LOGGER = logging.getLogger(__name__)

_COLON_TIME_RE = re.compile(r"^(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?\s*([AaPp][Mm])?$")
_SPACED_TIME_RE = re.compile(r"^(\d{1,2})\s+(\d{1,2})$")
_COMPACT_TIME_RE = re.compile(r"^(\d{4})$")

# Fill-in for fields missing from a free-form expression. Its year lies outside
# the valid window, so a date without a year never validates.
_FALLBACK_DEFAULT = datetime(1900, 1, 1)


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def parse_time(time_str: str) -> Tuple[int, int]:
    """Return ``(hour, minute)`` for a time cell; empty means midnight.

    Raises:
        InvalidDateError: If the text matches no supported shape or is out of range.
    """

    text = (time_str or "").strip()
    if not text:
        return 0, 0

    if m := _COLON_TIME_RE.match(text):
        hour, minute = int(m.group(1)), int(m.group(2))
        meridiem = (m.group(4) or "").lower()
        if meridiem:
            if not 1 <= hour <= 12:
                raise InvalidDateError(f"Invalid 12-hour time: {time_str!r}")
            hour = hour % 12 + (12 if meridiem == "pm" else 0)
    elif m := _SPACED_TIME_RE.match(text):
        hour, minute = int(m.group(1)), int(m.group(2))
    elif m := _COMPACT_TIME_RE.match(text):
        value = int(m.group(1))
        hour, minute = divmod(value, 100)
    else:
        raise InvalidDateError(f"Unrecognized time format: {time_str!r}")

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidDateError(f"Out-of-range time: {time_str!r}")
    return hour, minute


def _split_ints(text: str, sep: str) -> Tuple[int, int, int] | None:
    parts = [p.strip() for p in text.split(sep)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    return int(parts[0]), int(parts[1]), int(parts[2])


def _parse_free_form(date_str: str, time_str: str) -> datetime:
    expression = f"{date_str} {time_str}".strip()
    try:
        return date_parser.parse(expression, default=_FALLBACK_DEFAULT)
    except (ValueError, OverflowError) as exc:
        raise InvalidDateError(f"Unrecognized date/time: {expression!r}") from exc


def normalize_timestamp(date_str: str, time_str: str, *, tz: str = DEFAULT_TIMEZONE) -> datetime:
    """Parse a dashboard (date, time) pair into a timezone-aware datetime.

    Args:
        date_str: Raw date cell.
        time_str: Raw time cell.
        tz: IANA zone the buoys report in; attached to naive results.

    Returns:
        A timezone-aware datetime with seconds and microseconds zeroed.

    Raises:
        InvalidDateError: If the pair cannot be parsed or its year is outside
            the plausible window.
    """

    date_text = (date_str or "").strip()
    time_text = (time_str or "").strip()
    if not date_text:
        raise InvalidDateError("Empty date")

    fields: Tuple[int, int, int] | None = None
    if "/" in date_text:
        if (split := _split_ints(date_text, "/")) is not None:
            month, day, year = split
            fields = (year, month, day)
    elif "-" in date_text:
        if (split := _split_ints(date_text, "-")) is not None:
            fields = split

    if fields is not None:
        hour, minute = parse_time(time_text)
        try:
            parsed = datetime(fields[0], fields[1], fields[2], hour, minute)
        except ValueError as exc:
            raise InvalidDateError(f"Invalid calendar date: {date_text!r}") from exc
    else:
        parsed = _parse_free_form(date_text, time_text)

    if not (MIN_VALID_YEAR <= parsed.year <= MAX_VALID_YEAR):
        raise InvalidDateError(
            f"Implausible year {parsed.year} in {date_text!r} {time_text!r} "
            f"(accepted {MIN_VALID_YEAR}-{MAX_VALID_YEAR})"
        )

    parsed = parsed.replace(second=0, microsecond=0)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_zone(tz))
    return parsed


def is_valid_timestamp(date_str: str, time_str: str, *, tz: str = DEFAULT_TIMEZONE) -> bool:
    try:
        normalize_timestamp(date_str, time_str, tz=tz)
    except InvalidDateError:
        return False
    return True


def format_canonical(value: datetime) -> Tuple[str, str]:
    """Serialize to ``("YYYY-MM-DD", "HH:MM")``; re-parsing yields ``value``."""
    return value.strftime("%Y-%m-%d"), value.strftime("%H:%M")


def format_display(date_str: str, time_str: str, *, tz: str = DEFAULT_TIMEZONE) -> Tuple[str, str]:
    """Render a pair as ``("Aug 15, 2024", "02:30 PM")`` for display.

    Falls back to echoing the raw strings when the pair is invalid. The result
    is for display only and must never feed a comparison.
    """

    try:
        value = normalize_timestamp(date_str, time_str, tz=tz)
    except InvalidDateError:
        _LOGGER.debug("Display fallback to raw date/time: %r %r", date_str, time_str)
        return (date_str or "").strip(), (time_str or "").strip()
    return f"{value:%b} {value.day}, {value.year}", value.strftime("%I:%M %p")


__all__ = [
    "parse_time",
    "normalize_timestamp",
    "is_valid_timestamp",
    "format_canonical",
    "format_display",
]
