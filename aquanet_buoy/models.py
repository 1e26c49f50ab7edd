from __future__ import annotations

"""Typed records produced by the ingestion layer.

All types are immutable. The layer only accumulates, filters and selects among
snapshots; it never edits a record after the Row Parser created it.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Sequence, Tuple, TypeVar


# Persisted/exported column labels, in positional order of the source table.
RECORD_COLUMNS: Tuple[str, ...] = (
    "ID",
    "Buoy",
    "Date",
    "Time",
    "Latitude",
    "Longitude",
    "pH",
    "Temp (°C)",
    "TDS (ppm)",
)


def _to_number(value: str) -> float | None:
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class Record:
    """One buoy reading, exactly as published by the dashboard table.

    All fields keep the raw cell text. Sensor values are numeric-as-string so
    that malformed cells survive ingestion and CSV export untouched.
    """

    id: str
    buoy: str
    date: str
    time: str
    latitude: str
    longitude: str
    ph: str
    temperature: str
    tds: str

    @property
    def identity(self) -> Tuple[str, str, str]:
        """Structural identity: buoy label, date and time."""
        return (self.buoy, self.date, self.time)

    @property
    def is_all_zero(self) -> bool:
        """True when pH, temperature and TDS all read as 0."""
        values = [_to_number(v) for v in (self.ph, self.temperature, self.tds)]
        return all(v == 0 for v in values)

    def as_row(self) -> Tuple[str, ...]:
        return (
            self.id,
            self.buoy,
            self.date,
            self.time,
            self.latitude,
            self.longitude,
            self.ph,
            self.temperature,
            self.tds,
        )

    def to_dict(self) -> dict[str, str]:
        return dict(zip(RECORD_COLUMNS, self.as_row()))

    @classmethod
    def from_cells(cls, cells: Sequence[str]) -> "Record":
        """Build a record from the first nine cells of a table row.

        Raises:
            ValueError: If fewer than nine cells are provided.
        """
        if len(cells) < len(RECORD_COLUMNS):
            raise ValueError(f"Expected at least {len(RECORD_COLUMNS)} cells, got {len(cells)}")
        return cls(*(str(c) for c in cells[: len(RECORD_COLUMNS)]))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        """Inverse of :meth:`to_dict`; missing keys become empty strings."""
        return cls(*(str(data.get(col, "") or "") for col in RECORD_COLUMNS))


@dataclass(frozen=True)
class Page:
    """Outcome of fetching one page index.

    ``total_pages_hint`` is scraped from pagination links and is advisory only;
    the aggregator never trusts it as a stopping condition.
    """

    index: int
    records: Tuple[Record, ...]
    total_pages_hint: int = 1

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass(frozen=True)
class AggregationResult:
    """Records collected by a page walk, in source order (most recent first)."""

    records: Tuple[Record, ...]
    pages_consulted: int
    ceiling_reached: bool = False


@dataclass(frozen=True)
class CachedSnapshot:
    """Last known good dataset persisted for offline use."""

    records: Tuple[Record, ...]
    captured_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.captured_at)


@dataclass(frozen=True)
class FreshnessEntry:
    """Short-lived memo of the latest record for one buoy."""

    buoy_id: int
    record: Record
    captured_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.captured_at)


@dataclass(frozen=True)
class CacheInfo:
    """Observational view of the offline snapshot (display only)."""

    has_cache: bool
    data_points: int = 0
    age: str = ""


T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Payload returned by the service together with its provenance.

    Attributes:
        value: The requested data.
        is_offline: True when served from the offline snapshot after the
            network path failed.
        from_memo: True when served from the short-lived freshness memo.
    """

    value: T
    is_offline: bool = False
    from_memo: bool = False
    notes: Tuple[str, ...] = field(default=())


__all__ = [
    "RECORD_COLUMNS",
    "Record",
    "Page",
    "AggregationResult",
    "CachedSnapshot",
    "FreshnessEntry",
    "CacheInfo",
    "FetchResult",
]
