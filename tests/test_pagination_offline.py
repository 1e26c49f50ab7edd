from __future__ import annotations

"""Offline tests for the sequential page walk.

Pages are served by an in-memory fetcher that records which indexes were
requested, so the stopping rules can be asserted exactly.
"""

import logging
from typing import Dict, List

import pytest

from aquanet_buoy.errors import HttpError
from aquanet_buoy.models import Page, Record
from aquanet_buoy.pagination import CountBounded, Exhaustive, aggregate_pages

from helpers import reading


class PagedSource:
    """Serve fixed pages; unknown indexes are empty."""

    def __init__(self, sizes: Dict[int, int]) -> None:
        self.requested: List[int] = []
        self._pages: Dict[int, tuple] = {}
        next_id = 1
        for index, size in sorted(sizes.items()):
            self._pages[index] = tuple(Record.from_cells(reading(next_id + i)) for i in range(size))
            next_id += size

    async def __call__(self, index: int) -> Page:
        self.requested.append(index)
        return Page(index=index, records=self._pages.get(index, ()))


class EndlessSource:
    def __init__(self) -> None:
        self.requested: List[int] = []

    async def __call__(self, index: int) -> Page:
        self.requested.append(index)
        return Page(index=index, records=(Record.from_cells(reading(index)),))


# Test: Page 1 has 10 rows, page 2 is empty, 15 records requested
# Expect: exactly 10 records after consulting 2 pages
@pytest.mark.asyncio
async def test_short_source_returns_what_exists() -> None:
    source = PagedSource({1: 10})

    result = await aggregate_pages(source, CountBounded(15))

    assert len(result.records) == 10
    assert result.pages_consulted == 2
    assert source.requested == [1, 2]
    assert not result.ceiling_reached


# Test: Count reached mid-page
# Expect: truncated to exactly the count, later pages not fetched
@pytest.mark.asyncio
async def test_count_bounded_truncates_and_stops() -> None:
    source = PagedSource({1: 10, 2: 10, 3: 10})

    result = await aggregate_pages(source, CountBounded(15))

    assert [r.id for r in result.records] == [str(i) for i in range(1, 16)]
    assert source.requested == [1, 2]


# Test: Records keep source order across pages
# Expect: page 1 records first, then page 2, each in row order
@pytest.mark.asyncio
async def test_exhaustive_preserves_page_order() -> None:
    source = PagedSource({1: 3, 2: 2, 3: 4})

    result = await aggregate_pages(source, Exhaustive())

    assert [r.id for r in result.records] == [str(i) for i in range(1, 10)]
    assert source.requested == [1, 2, 3, 4]
    assert result.pages_consulted == 4


# Test: Server never returns an empty page
# Expect: walk stops at the ceiling, flags it and logs a warning
@pytest.mark.asyncio
async def test_ceiling_stops_runaway_walk(caplog) -> None:  # type: ignore[no-untyped-def]
    caplog.set_level(logging.WARNING, logger="aquanet_buoy.pagination")
    source = EndlessSource()

    result = await aggregate_pages(source, Exhaustive(ceiling=5))

    assert source.requested == [1, 2, 3, 4, 5]
    assert result.ceiling_reached
    assert len(result.records) == 5
    assert any("event=ceiling_reached" in rec.getMessage() for rec in caplog.records)


# Test: Count-bounded walk that reaches its count exactly on the ceiling page
# Expect: not reported as ceiling hit
@pytest.mark.asyncio
async def test_count_met_on_last_allowed_page_is_not_ceiling() -> None:
    source = PagedSource({1: 5, 2: 5})

    result = await aggregate_pages(source, CountBounded(10, ceiling=2))

    assert len(result.records) == 10
    assert not result.ceiling_reached


# Test: Count-bounded walk cut short by the ceiling
# Expect: fewer records than asked and ceiling_reached set
@pytest.mark.asyncio
async def test_count_bounded_ceiling() -> None:
    source = EndlessSource()

    result = await aggregate_pages(source, CountBounded(50, ceiling=3))

    assert len(result.records) == 3
    assert result.ceiling_reached


# Test: Non-positive count
# Expect: empty result, no page fetched
@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, -3])
async def test_non_positive_count_fetches_nothing(count: int) -> None:
    source = EndlessSource()

    result = await aggregate_pages(source, CountBounded(count))

    assert result.records == ()
    assert result.pages_consulted == 0
    assert source.requested == []


# Test: Page fetch failure in the middle of a walk
# Expect: the error propagates
@pytest.mark.asyncio
async def test_failed_page_aborts_walk() -> None:
    async def flaky(index: int) -> Page:
        if index == 2:
            raise HttpError("boom", status=500)
        return Page(index=index, records=(Record.from_cells(reading(index)),))

    with pytest.raises(HttpError):
        await aggregate_pages(flaky, Exhaustive())


def test_invalid_ceiling_rejected() -> None:
    with pytest.raises(ValueError):
        CountBounded(5, ceiling=0)
    with pytest.raises(ValueError):
        Exhaustive(ceiling=0)


class UnderstatedHintSource:
    """Pages 1-3 hold rows but each claims the listing ends at page 1."""

    def __init__(self) -> None:
        self.requested: List[int] = []

    async def __call__(self, index: int) -> Page:
        self.requested.append(index)
        records = (Record.from_cells(reading(index)),) if index <= 3 else ()
        return Page(index=index, records=records, total_pages_hint=1)


# Test: Scraped page count says 1 while more pages hold rows
# Expect: walk continues to the first empty page
@pytest.mark.asyncio
async def test_total_pages_hint_never_ends_walk() -> None:
    source = UnderstatedHintSource()

    result = await aggregate_pages(source, Exhaustive())

    assert [r.id for r in result.records] == ["1", "2", "3"]
    assert source.requested == [1, 2, 3, 4]
