from __future__ import annotations

"""Builders and fakes shared by the offline tests."""

from typing import Iterable, List, Sequence

DASHBOARD_URL = "https://dorsu.edu.ph/buoy/dashboard.php"

HEADER_ROW = (
    "<tr><th>ID</th><th>Buoy</th><th>Date</th><th>Time</th><th>Latitude</th>"
    "<th>Longitude</th><th>pH</th><th>Temp (°C)</th><th>TDS (ppm)</th></tr>"
)


def page_url(page: int) -> str:
    return f"{DASHBOARD_URL}?page={page}"


def row_html(cells: Sequence[str]) -> str:
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


def dashboard_html(rows: Iterable[Sequence[str]], *, total_pages: int = 1) -> str:
    """Minimal dashboard page: header row, data rows and pagination links."""
    links = "".join(f'<a href="?page={n}">{n}</a>' for n in range(1, total_pages + 1))
    body = "".join(row_html(r) for r in rows)
    return f"<html><body><table>{HEADER_ROW}{body}</table><div class='pagination'>{links}</div></body></html>"


def reading(idx: int, buoy: int = 1, date: str = "2024-08-15", time: str = "14:30") -> List[str]:
    return [str(idx), f"Buoy {buoy}", date, time, "7.0512", "125.6128", "7.20", "28.5", "150"]


class FakeClock:
    """Manually advanced clock usable for both monotonic and wall time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep stand-in that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
