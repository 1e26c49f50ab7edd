from __future__ import annotations

"""Ingestion entry point composing scraper, retry, caches and scheduler.

:class:`BuoyDataService` is the only object callers need. Every public
operation is turned into a :class:`FetchRequest` and dispatched through
:meth:`BuoyDataService.execute`, which

1. answers single-buoy lookups from the freshness memo when possible,
2. joins an identical request that is already in flight (single-flight),
3. walks the dashboard pages through the retry executor,
4. persists the result as the offline snapshot,
5. on network failure serves the same question from that snapshot, and
6. raises :class:`~aquanet_buoy.errors.FetchFailed` only when both failed.

All collaborators are injected; anything not supplied is built from
:class:`~aquanet_buoy.const.ServiceConfig` and owned (closed) by the service.
"""

import asyncio
import csv
from dataclasses import dataclass
from enum import Enum
import io
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, TypeVar

from .cache import FreshnessMemo, OfflineSnapshotStore
from .connectivity import ConnectivityProbe, HttpConnectivityProbe
from .const import ServiceConfig
from .errors import CacheError, FetchFailed, HttpError, NetworkUnavailable, ParseError
from .logging_utils import log_event, log_operation
from .models import RECORD_COLUMNS, AggregationResult, CacheInfo, FetchResult, Page, Record
from .pagination import CountBounded, Exhaustive, StoppingPolicy, aggregate_pages
from .report import ReportSummary, filter_by_month, summarize
from .resolver import available_buoy_ids, latest_per_buoy, resolve_latest
from .retry import RetryExecutor, Sleep
from .scheduler import RefreshCallback, RefreshScheduler
from .scrapers.dashboard import DashboardScraper
from .settings import SettingsService
from .storage import KeyValueStore


_LOGGER = logging.getLogger(__name__)

_COMPONENT = "service"

NOTE_CEILING_REACHED = "page_ceiling_reached"
NOTE_OFFLINE_SNAPSHOT = "offline_snapshot"

T = TypeVar("T")


class PageSource(Protocol):
    """Anything that can fetch and parse one dashboard page."""

    async def fetch_page(self, page: int) -> Page:  # pragma: no cover - signature only
        ...


class RequestKind(str, Enum):
    LATEST_FOR_BUOY = "latest_for_buoy"
    LATEST_N = "latest_n"
    AVAILABLE_BUOY_IDS = "available_buoy_ids"
    ALL_RECORDS = "all_records"


@dataclass(frozen=True)
class FetchRequest:
    """One ingestion request.

    Attributes:
        kind: What is being asked for.
        key: Request discriminator; the buoy id for ``LATEST_FOR_BUOY`` and the
            count for ``LATEST_N``. Identical ``(kind, key)`` pairs share one
            in-flight walk.
        force_refresh: Skip the freshness memo.
        reason: Free-form trigger label for logs (``"manual"``, ``"auto"``).
        count: Record count for ``LATEST_N``.
    """

    kind: RequestKind
    key: str = ""
    force_refresh: bool = False
    reason: str = "manual"
    count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind is RequestKind.LATEST_N and self.count is None:
            raise ValueError("LATEST_N requests need a count")
        if self.kind is RequestKind.LATEST_FOR_BUOY and not self.key.lstrip("-").isdigit():
            raise ValueError(f"LATEST_FOR_BUOY key must be a buoy number, got {self.key!r}")

    @property
    def flight_key(self) -> str:
        return f"{self.kind.value}:{self.key}"

    @property
    def buoy_id(self) -> int:
        return int(self.key)

    @classmethod
    def latest_for_buoy(cls, buoy_id: int, *, force_refresh: bool = False, reason: str = "manual") -> "FetchRequest":
        return cls(RequestKind.LATEST_FOR_BUOY, key=str(int(buoy_id)), force_refresh=force_refresh, reason=reason)

    @classmethod
    def latest_n(cls, count: int, *, reason: str = "manual") -> "FetchRequest":
        return cls(RequestKind.LATEST_N, key=str(int(count)), reason=reason, count=int(count))

    @classmethod
    def available_buoy_ids(cls, *, reason: str = "manual") -> "FetchRequest":
        return cls(RequestKind.AVAILABLE_BUOY_IDS, reason=reason)

    @classmethod
    def all_records(cls, *, reason: str = "manual") -> "FetchRequest":
        return cls(RequestKind.ALL_RECORDS, reason=reason)


class SingleFlight:
    """Collapse concurrent calls with the same key into one execution.

    The first caller starts the factory in a task owned by the flight; every
    caller, the first included, awaits that task and receives the same result
    or exception. Cancelling a caller only abandons its own wait. The key is
    released as soon as the execution settles, so the next call starts a
    fresh one.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Task[Any]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._execute(key, factory))
            self._pending[key] = task
        else:
            log_event(_LOGGER, logging.DEBUG, _COMPONENT, "joined_in_flight", key=key)
        return await asyncio.shield(task)

    async def _execute(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._pending.pop(key, None)


def records_to_csv(records: Sequence[Record]) -> str:
    """Render records as CSV with every field quoted; no records gives ``""``."""

    if not records:
        return ""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(RECORD_COLUMNS)
    writer.writerows(record.as_row() for record in records)
    return buffer.getvalue()


class BuoyDataService:
    """Resilient access to buoy records.

    Args:
        settings: Settings source (offline mode, refresh interval).
        storage: Key-value store backing the offline snapshot.
        config: Static wiring options.
        scraper: Page source; defaults to an owned :class:`DashboardScraper`.
        connectivity: Reachability probe; defaults to an owned
            :class:`HttpConnectivityProbe`.
        memo: Freshness memo override (e.g. with a simulated clock).
        snapshots: Offline snapshot store override.
        retry: Retry executor override.
        sleep: Awaitable sleep used by the default retry executor.
    """

    def __init__(
        self,
        settings: SettingsService,
        storage: KeyValueStore,
        *,
        config: Optional[ServiceConfig] = None,
        scraper: Optional[PageSource] = None,
        connectivity: Optional[ConnectivityProbe] = None,
        memo: Optional[FreshnessMemo] = None,
        snapshots: Optional[OfflineSnapshotStore] = None,
        retry: Optional[RetryExecutor] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config or ServiceConfig()
        self._settings = settings

        self._owned_closables: List[Any] = []
        if scraper is None:
            scraper = DashboardScraper(
                self._config.url,
                user_agent=self._config.user_agent,
                request_timeout_seconds=self._config.request_timeout_seconds,
            )
            self._owned_closables.append(scraper)
        if connectivity is None:
            connectivity = HttpConnectivityProbe(self._config.url, user_agent=self._config.user_agent)
            self._owned_closables.append(connectivity)
        self._scraper = scraper
        self._connectivity = connectivity

        self._memo = memo or FreshnessMemo(ttl=self._config.freshness_ttl_seconds)
        self._snapshots = snapshots or OfflineSnapshotStore(
            storage, settings, max_age=self._config.offline_max_age_seconds
        )
        self._retry = retry or RetryExecutor(
            connectivity.is_online,
            max_attempts=self._config.max_attempts,
            delay=self._config.retry_delay_seconds,
            sleep=sleep,
        )
        self._flights = SingleFlight()
        self._scheduler: Optional[RefreshScheduler] = None

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def settings(self) -> SettingsService:
        return self._settings

    @property
    def memo(self) -> FreshnessMemo:
        return self._memo

    @property
    def snapshots(self) -> OfflineSnapshotStore:
        return self._snapshots

    @property
    def scheduler(self) -> Optional[RefreshScheduler]:
        return self._scheduler

    async def __aenter__(self) -> "BuoyDataService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        """Stop auto refresh and close owned HTTP sessions."""
        await self.stop_auto_refresh()
        for closable in self._owned_closables:
            await closable.close()

    # ---------- Public operations ----------

    async def fetch_latest_for_buoy(self, buoy_id: int, force_refresh: bool = False) -> FetchResult[Optional[Record]]:
        return await self.execute(FetchRequest.latest_for_buoy(buoy_id, force_refresh=force_refresh))

    async def fetch_latest_n(self, count: Optional[int] = None) -> FetchResult[List[Record]]:
        """Newest ``count`` records; defaults to the ``dataRetentionPoints`` setting."""
        if count is None:
            count = self._settings.data_retention_points
        return await self.execute(FetchRequest.latest_n(count))

    async def fetch_available_buoy_ids(self) -> FetchResult[List[int]]:
        return await self.execute(FetchRequest.available_buoy_ids())

    async def fetch_all_records(self) -> FetchResult[List[Record]]:
        return await self.execute(FetchRequest.all_records())

    async def export_all_records_as_csv(self) -> str:
        """CSV export of every reachable record (or the offline snapshot)."""
        result = await self.fetch_all_records()
        return records_to_csv(result.value)

    async def fetch_month_summary(self, year: int, month: int) -> FetchResult[ReportSummary]:
        """Statistics for one calendar month over all reachable records."""
        result = await self.fetch_all_records()
        tz = self._config.timezone
        summary = summarize(filter_by_month(result.value, year, month, tz=tz), tz=tz)
        return FetchResult(value=summary, is_offline=result.is_offline, notes=result.notes)

    async def get_cache_info(self) -> CacheInfo:
        return await self._snapshots.info()

    async def clear_offline_cache(self) -> None:
        await self._snapshots.clear()
        self._memo.clear()

    def start_auto_refresh(self, callback: RefreshCallback) -> RefreshScheduler:
        """Run ``callback`` on the configured interval until stopped.

        The scheduler follows later changes to ``auto_refresh_interval``.
        Calling again replaces the callback; never two timers at once.
        """

        if self._scheduler is not None:
            self._scheduler.detach()
            self._scheduler.stop()
        self._scheduler = RefreshScheduler(callback)
        self._scheduler.attach(self._settings)
        return self._scheduler

    async def stop_auto_refresh(self) -> None:
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.close()

    async def execute(self, request: FetchRequest) -> FetchResult[Any]:
        """Serve ``request`` from memo, network or offline snapshot."""

        if request.kind is RequestKind.LATEST_FOR_BUOY and not request.force_refresh:
            if (cached := self._memo.get(request.buoy_id)) is not None:
                log_event(_LOGGER, logging.DEBUG, _COMPONENT, "memo_hit", buoy=request.buoy_id)
                return FetchResult(value=cached, from_memo=True)

        async with log_operation(
            _LOGGER,
            component=_COMPONENT,
            operation=request.kind.value,
            key=request.key or None,
            reason=request.reason,
            force=request.force_refresh,
        ) as op:
            result = await self._flights.run(request.flight_key, lambda: self._serve(request))
            op.set(offline=result.is_offline, notes=result.notes)
            return result

    # ---------- Internals ----------

    def _policy_for(self, request: FetchRequest) -> StoppingPolicy:
        cfg = self._config
        if request.kind is RequestKind.LATEST_N:
            return CountBounded(count=int(request.count or 0), ceiling=cfg.bounded_page_ceiling)
        if request.kind in (RequestKind.ALL_RECORDS, RequestKind.AVAILABLE_BUOY_IDS):
            return Exhaustive(ceiling=cfg.exhaustive_page_ceiling)
        # Single-buoy lookups scan the newest records only
        return CountBounded(count=cfg.latest_lookup_record_count, ceiling=cfg.bounded_page_ceiling)

    def _answer(self, request: FetchRequest, records: Sequence[Record]) -> Any:
        if request.kind is RequestKind.LATEST_FOR_BUOY:
            return resolve_latest(records, request.buoy_id, tz=self._config.timezone)
        if request.kind is RequestKind.LATEST_N:
            return list(records[: max(0, int(request.count or 0))])
        if request.kind is RequestKind.AVAILABLE_BUOY_IDS:
            return available_buoy_ids(records)
        return list(records)

    async def _fetch_page(self, page: int) -> Page:
        return await self._retry.run(lambda: self._scraper.fetch_page(page), description=f"fetch page {page}")

    async def _serve(self, request: FetchRequest) -> FetchResult[Any]:
        try:
            aggregated: AggregationResult = await aggregate_pages(self._fetch_page, self._policy_for(request))
        except (NetworkUnavailable, HttpError, ParseError) as exc:
            return await self._serve_offline(request, exc)

        records = aggregated.records
        if request.kind in (RequestKind.LATEST_FOR_BUOY, RequestKind.AVAILABLE_BUOY_IDS):
            for buoy_id, record in latest_per_buoy(records, tz=self._config.timezone).items():
                self._memo.put(buoy_id, record)
        await self._snapshots.save(records)

        notes = (NOTE_CEILING_REACHED,) if aggregated.ceiling_reached else ()
        return FetchResult(value=self._answer(request, records), notes=notes)

    async def _serve_offline(self, request: FetchRequest, network_error: Exception) -> FetchResult[Any]:
        log_event(
            _LOGGER,
            logging.WARNING,
            _COMPONENT,
            "network_failed",
            request=request.kind.value,
            exc_type=type(network_error).__name__,
            error=str(network_error),
        )
        try:
            snapshot = await self._snapshots.load()
        except CacheError as cache_exc:
            log_event(
                _LOGGER, logging.ERROR, _COMPONENT, "fallback_failed", request=request.kind.value, cache=str(cache_exc)
            )
            raise FetchFailed(f"Failed to fetch {request.kind.value}; no usable offline data ({cache_exc})") from network_error

        log_event(
            _LOGGER, logging.INFO, _COMPONENT, "served_offline", request=request.kind.value, records=len(snapshot.records)
        )
        return FetchResult(
            value=self._answer(request, snapshot.records),
            is_offline=True,
            notes=(NOTE_OFFLINE_SNAPSHOT,),
        )


__all__ = [
    "BuoyDataService",
    "FetchRequest",
    "RequestKind",
    "SingleFlight",
    "PageSource",
    "records_to_csv",
]
