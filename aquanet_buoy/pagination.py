from __future__ import annotations

"""Sequential page walk over the dashboard.

The total page count printed by the dashboard is unreliable, so the walk
decides when to stop on its own: after enough records (count-bounded policy),
on the first empty page, or at a hard page ceiling. Pages are fetched one at a
time in increasing order starting at 1; there is no fetch-ahead, which keeps
the record order identical to the source (most recent first) and keeps the
load on the single endpoint low.
"""

from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, List, Union

from .const import DEFAULT_BOUNDED_PAGE_CEILING, DEFAULT_EXHAUSTIVE_PAGE_CEILING
from .logging_utils import log_event, log_operation
from .models import AggregationResult, Page, Record


_LOGGER = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[Page]]


@dataclass(frozen=True)
class CountBounded:
    """Stop once ``count`` records are collected; the result is cut to ``count``."""

    count: int
    ceiling: int = DEFAULT_BOUNDED_PAGE_CEILING

    def __post_init__(self) -> None:
        if self.ceiling < 1:
            raise ValueError(f"Page ceiling must be >= 1, got {self.ceiling}")


@dataclass(frozen=True)
class Exhaustive:
    """Walk until an empty page or the ceiling."""

    ceiling: int = DEFAULT_EXHAUSTIVE_PAGE_CEILING

    def __post_init__(self) -> None:
        if self.ceiling < 1:
            raise ValueError(f"Page ceiling must be >= 1, got {self.ceiling}")


StoppingPolicy = Union[CountBounded, Exhaustive]


async def aggregate_pages(fetch_page: PageFetcher, policy: StoppingPolicy) -> AggregationResult:
    """Collect records page by page until ``policy`` says stop.

    Args:
        fetch_page: Coroutine returning the parsed :class:`Page` for an index.
        policy: :class:`CountBounded` or :class:`Exhaustive`.

    Returns:
        The collected records in page order plus the number of pages consulted.
        ``ceiling_reached`` is set when the walk stopped only because of the
        ceiling; this is reported, never raised.

    Raises:
        Whatever ``fetch_page`` raises; a failed page aborts the walk.
    """

    target = policy.count if isinstance(policy, CountBounded) else None
    if target is not None and target <= 0:
        return AggregationResult(records=(), pages_consulted=0)

    collected: List[Record] = []
    pages = 0
    ceiling_reached = False
    mode = "bounded" if target is not None else "exhaustive"

    async with log_operation(
        _LOGGER,
        component="pagination",
        operation="walk",
        mode=mode,
        target=target,
        ceiling=policy.ceiling,
    ) as op:
        page_index = 1
        while True:
            if pages >= policy.ceiling:
                ceiling_reached = True
                break
            page = await fetch_page(page_index)
            pages += 1
            if page.is_empty:
                break
            collected.extend(page.records)
            if target is not None and len(collected) >= target:
                break
            page_index += 1

        if ceiling_reached:
            log_event(
                _LOGGER,
                logging.WARNING,
                "pagination",
                "ceiling_reached",
                mode=mode,
                ceiling=policy.ceiling,
                records=len(collected),
            )

        if target is not None:
            collected = collected[:target]
        op.set(pages=pages, records=len(collected), ceiling_reached=ceiling_reached)

    return AggregationResult(
        records=tuple(collected),
        pages_consulted=pages,
        ceiling_reached=ceiling_reached,
    )


__all__ = [
    "PageFetcher",
    "CountBounded",
    "Exhaustive",
    "StoppingPolicy",
    "aggregate_pages",
]
