from __future__ import annotations

"""Monthly statistics over ingested records.

Produces the figures behind the monthly water-quality report: per-sensor
average/min/max, counts of readings outside acceptable ranges, all-zero
records (typically sensor start-up or transmission artifacts) and the time
window covered. Records with an invalid timestamp never enter a month.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .const import DEFAULT_TIMEZONE
from .errors import InvalidDateError
from .models import Record
from .timeparse import normalize_timestamp


_LOGGER = logging.getLogger(__name__)

PH_ACCEPTABLE_MIN = 6.5
PH_ACCEPTABLE_MAX = 8.5
TEMPERATURE_HOT_C = 35.0
TDS_HIGH_PPM = 300.0


def _number(value: str) -> Optional[float]:
    try:
        parsed = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    # NaN/inf never count as readings
    return parsed if parsed == parsed and parsed not in (float("inf"), float("-inf")) else None


def _dated(records: Iterable[Record], tz: str) -> List[Tuple[datetime, Record]]:
    out: List[Tuple[datetime, Record]] = []
    for record in records:
        try:
            out.append((normalize_timestamp(record.date, record.time, tz=tz), record))
        except InvalidDateError:
            continue
    return out


def filter_by_month(records: Iterable[Record], year: int, month: int, *, tz: str = DEFAULT_TIMEZONE) -> List[Record]:
    """Records whose valid timestamp falls in ``year``-``month``, in input order."""
    return [r for ts, r in _dated(records, tz) if ts.year == year and ts.month == month]


def available_months(records: Iterable[Record], *, tz: str = DEFAULT_TIMEZONE) -> List[Tuple[int, int]]:
    """Distinct ``(year, month)`` pairs present in ``records``, newest first."""
    return sorted({(ts.year, ts.month) for ts, _ in _dated(records, tz)}, reverse=True)


@dataclass(frozen=True)
class SensorStats:
    count: int
    avg: Optional[float]
    min: Optional[float]
    max: Optional[float]

    @classmethod
    def of(cls, values: Sequence[float]) -> "SensorStats":
        if not values:
            return cls(count=0, avg=None, min=None, max=None)
        return cls(count=len(values), avg=sum(values) / len(values), min=min(values), max=max(values))


@dataclass(frozen=True)
class ReportSummary:
    """Aggregate view of a set of records (usually one month)."""

    record_count: int
    ph: SensorStats
    temperature: SensorStats
    tds: SensorStats
    ph_out_of_range: int
    hot_temperature: int
    high_tds: int
    zero_records: int
    buoys: Tuple[str, ...]
    first: Optional[Record]
    last: Optional[Record]


def summarize(records: Sequence[Record], *, tz: str = DEFAULT_TIMEZONE) -> ReportSummary:
    """Compute :class:`ReportSummary` for ``records``.

    Non-numeric sensor cells are skipped per sensor. ``first``/``last`` are the
    earliest and latest records by valid timestamp.
    """

    ph = [v for v in (_number(r.ph) for r in records) if v is not None]
    temperature = [v for v in (_number(r.temperature) for r in records) if v is not None]
    tds = [v for v in (_number(r.tds) for r in records) if v is not None]

    # Stable sort keeps source order among equal timestamps
    ordered = sorted(_dated(records, tz), key=lambda pair: pair[0])
    buoys = tuple(dict.fromkeys(r.buoy for r in records))

    summary = ReportSummary(
        record_count=len(records),
        ph=SensorStats.of(ph),
        temperature=SensorStats.of(temperature),
        tds=SensorStats.of(tds),
        ph_out_of_range=sum(1 for v in ph if v < PH_ACCEPTABLE_MIN or v > PH_ACCEPTABLE_MAX),
        hot_temperature=sum(1 for v in temperature if v > TEMPERATURE_HOT_C),
        high_tds=sum(1 for v in tds if v > TDS_HIGH_PPM),
        zero_records=sum(1 for r in records if r.is_all_zero),
        buoys=buoys,
        first=ordered[0][1] if ordered else None,
        last=ordered[-1][1] if ordered else None,
    )
    _LOGGER.debug("Summarized %d records across %d buoy label(s)", summary.record_count, len(buoys))
    return summary


__all__ = [
    "SensorStats",
    "ReportSummary",
    "filter_by_month",
    "available_months",
    "summarize",
]
