from __future__ import annotations

"""Latest-record selection per buoy.

Buoy labels are free text (``"Buoy 3"``, ``" buoy   2 "``, ``"BUOY3"``); the
numeric id is the first ``Buoy <digits>`` match, case-insensitive with any
whitespace in between. All functions here are pure: the same input sequence
always yields the same output.
"""

from datetime import datetime
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from .const import DEFAULT_TIMEZONE
from .errors import InvalidDateError
from .models import Record
from .timeparse import normalize_timestamp


_LOGGER = logging.getLogger(__name__)

_BUOY_LABEL_RE = re.compile(r"Buoy\s*(\d+)", re.IGNORECASE)


def extract_buoy_number(label: str) -> Optional[int]:
    """Return the buoy number embedded in ``label`` or ``None``."""
    m = _BUOY_LABEL_RE.search((label or "").strip())
    return int(m.group(1)) if m else None


def _timestamped(records: Iterable[Record], tz: str) -> Iterable[Tuple[int, datetime, Record]]:
    """Yield ``(buoy_id, timestamp, record)`` for records with a valid label and date."""
    for record in records:
        buoy_id = extract_buoy_number(record.buoy)
        if buoy_id is None:
            continue
        try:
            ts = normalize_timestamp(record.date, record.time, tz=tz)
        except InvalidDateError as exc:
            _LOGGER.debug("Dropping record %s from resolution: %s", record.identity, exc)
            continue
        yield buoy_id, ts, record


def resolve_latest(records: Iterable[Record], buoy_id: int, *, tz: str = DEFAULT_TIMEZONE) -> Optional[Record]:
    """Return the most recent valid record for ``buoy_id`` or ``None``.

    Records with an invalid timestamp are ignored. On an exact timestamp tie the
    record seen last in ``records`` wins.
    """

    best: Optional[Tuple[datetime, Record]] = None
    for candidate_id, ts, record in _timestamped(records, tz):
        if candidate_id != buoy_id:
            continue
        if best is None or ts >= best[0]:
            best = (ts, record)
    return best[1] if best is not None else None


def latest_per_buoy(records: Iterable[Record], *, tz: str = DEFAULT_TIMEZONE) -> Dict[int, Record]:
    """Map every buoy id to its most recent valid record (same tie rule)."""

    best: Dict[int, Tuple[datetime, Record]] = {}
    for buoy_id, ts, record in _timestamped(records, tz):
        current = best.get(buoy_id)
        if current is None or ts >= current[0]:
            best[buoy_id] = (ts, record)
    return {buoy_id: pair[1] for buoy_id, pair in sorted(best.items())}


def available_buoy_ids(records: Iterable[Record]) -> List[int]:
    """Return the sorted distinct buoy numbers found in ``records`` labels."""

    ids = {n for n in (extract_buoy_number(r.buoy) for r in records) if n is not None}
    return sorted(ids)


__all__ = [
    "extract_buoy_number",
    "resolve_latest",
    "latest_per_buoy",
    "available_buoy_ids",
]
