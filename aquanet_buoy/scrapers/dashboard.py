from __future__ import annotations

"""Scraper for the buoy table dashboard (``dashboard.php?page=N``).

The dashboard is a server-rendered PHP page with one paginated HTML table.
Each data row carries nine cells in a fixed order:

    ID | Buoy | Date | Time | Latitude | Longitude | pH | Temp (°C) | TDS (ppm)

The markup is ad hoc: cells sometimes wrap their text in ``<span>``/``<b>``
tags, attributes vary between rows and the first row is always a header. The
row and cell split is therefore regex based and isolated in
:func:`parse_table_rows`, so that a structured parser can replace it without
touching callers. Embedded markup inside a cell is removed with BeautifulSoup.

Design goals:
- Async-first networking with a reusable ``aiohttp.ClientSession``
- Malformed rows never abort a page; they are dropped and logged
- aiohttp failures mapped onto :class:`~aquanet_buoy.errors.HttpError`
- Undecodable payloads mapped onto :class:`~aquanet_buoy.errors.ParseError`
"""

import asyncio
import logging
import re
from typing import List

import aiohttp
from aiohttp import ClientConnectorError, ClientResponseError
from bs4 import BeautifulSoup

from ..const import DASHBOARD_URL, DEFAULT_REQUEST_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, PAGE_QUERY_PARAM
from ..errors import HttpError, ParseError
from ..logging_utils import log_event, log_operation
from ..mixins import AsyncSessionMixin
from ..models import RECORD_COLUMNS, Page, Record


_LOGGER = logging.getLogger(__name__)

_COMPONENT = "scraper.dashboard"

_ROW_RE = re.compile(r"<tr\b[^>]*>(.*?)</tr\s*>", re.IGNORECASE | re.DOTALL)
_CELL_RE = re.compile(r"<td\b[^>]*>(.*?)</td\s*>", re.IGNORECASE | re.DOTALL)
_PAGE_LINK_RE = re.compile(rf"[?&]{PAGE_QUERY_PARAM}=(\d+)", re.IGNORECASE)
_MARKUP_HINT_RE = re.compile(r"[<&]")


# ---------- Parsing ----------


def _clean_cell(raw: str) -> str:
    """Strip embedded markup and surrounding whitespace from one cell."""
    if not _MARKUP_HINT_RE.search(raw):
        return raw.strip()
    return BeautifulSoup(raw, "html.parser").get_text().strip()


def parse_table_rows(html: str) -> List[Record]:
    """Turn one raw HTML table fragment into records.

    The first ``<tr>`` is skipped unconditionally (header). Rows yielding fewer
    than nine cells are dropped; extra trailing cells are ignored. This function
    never raises for malformed markup and returns an empty list when nothing
    usable is found.

    Args:
        html: Raw HTML of a dashboard page or of a bare table fragment.

    Returns:
        Records in page order.
    """

    with log_operation(_LOGGER, component=_COMPONENT, operation="parse_table") as op:
        rows = _ROW_RE.findall(html or "")
        records: List[Record] = []
        dropped = 0
        for position, row in enumerate(rows[1:], start=1):
            cells = [_clean_cell(cell) for cell in _CELL_RE.findall(row)]
            if len(cells) < len(RECORD_COLUMNS):
                dropped += 1
                log_event(
                    _LOGGER, logging.DEBUG, _COMPONENT, "row_skipped", reason="short_row", row=position, cells=len(cells)
                )
                continue
            records.append(Record.from_cells(cells))
        op.set(rows=len(rows), records=len(records), dropped=dropped)
        return records


def parse_total_pages(html: str) -> int:
    """Return the highest ``page=N`` number linked from the page (advisory)."""
    numbers = [int(m) for m in _PAGE_LINK_RE.findall(html or "")]
    return max(numbers) if numbers else 1


def build_page_url(base_url: str, page: int) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{PAGE_QUERY_PARAM}={int(page)}"


# ---------- Scraper Implementation ----------


class DashboardScraper(AsyncSessionMixin):
    """Async page fetcher for the buoy dashboard.

    Example usage:

        async with DashboardScraper() as scraper:
            page = await scraper.fetch_page(1)

    With an externally managed session:

        async with aiohttp.ClientSession() as session:
            scraper = DashboardScraper(session=session)
            html = await scraper.fetch_page_html(3)

    Args:
        url: Dashboard endpoint without the page query parameter.
        user_agent: User-Agent header for owned sessions.
        request_timeout_seconds: Total timeout per HTTP request.
        session: Optional externally managed aiohttp session.
    """

    def __init__(
        self,
        url: str = DASHBOARD_URL,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = url
        super().__init__(
            session=session,
            user_agent=user_agent,
            request_timeout_seconds=request_timeout_seconds,
            default_headers={"Accept": "text/html,application/xhtml+xml"},
        )

    @property
    def url(self) -> str:
        return self._url

    async def fetch_page(self, page: int) -> Page:
        """Fetch and parse one page.

        Raises:
            HttpError: On transport failures, timeouts or non-2xx responses.
            ParseError: If the payload cannot be decoded as text.
        """

        html = await self.fetch_page_html(page)
        return Page(
            index=page,
            records=tuple(parse_table_rows(html)),
            total_pages_hint=parse_total_pages(html),
        )

    async def fetch_page_html(self, page: int) -> str:
        """Download the raw HTML for ``page`` (1-based).

        Raises:
            HttpError: On transport failures, timeouts or non-2xx responses.
            ParseError: If the payload cannot be decoded as text.
        """

        url = build_page_url(self._url, page)
        session = await self._ensure_session()
        try:
            async with log_operation(_LOGGER, component=_COMPONENT, operation="http_get", url=url) as op:
                async with session.get(url, timeout=self.request_timeout) as resp:
                    try:
                        resp.raise_for_status()
                    except ClientResponseError as exc:
                        raise HttpError(f"HTTP error {exc.status} for {url}", status=exc.status) from exc
                    try:
                        text = await resp.text()
                    except UnicodeDecodeError as exc:
                        raise ParseError(f"Undecodable payload from {url}: {exc}") from exc
                    op.set(status=resp.status, bytes=len(text))
                    return text
        except ClientConnectorError as exc:
            raise HttpError(f"Network error while connecting to {url}") from exc
        except (aiohttp.ServerTimeoutError, asyncio.TimeoutError) as exc:
            raise HttpError(f"Timeout while fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise HttpError(f"Client error while fetching {url}: {exc}") from exc


__all__ = [
    "DashboardScraper",
    "parse_table_rows",
    "parse_total_pages",
    "build_page_url",
]
