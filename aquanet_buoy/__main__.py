from __future__ import annotations

"""Command line access to the buoy ingestion layer.

Usage:
  python -m aquanet_buoy latest 2 [--force]
  python -m aquanet_buoy --json latest-n 20
  python -m aquanet_buoy buoys
  python -m aquanet_buoy export-csv --output buoy_data.csv
  python -m aquanet_buoy cache-info
  python -m aquanet_buoy clear-cache
  python -m aquanet_buoy summary 2024 8
  python -m aquanet_buoy watch --buoy 1 --interval 30

Settings and the offline snapshot live in one JSON file (``--storage``).
"""

import argparse
import asyncio
from dataclasses import asdict
import json
import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional, Sequence

from .const import DASHBOARD_URL, ServiceConfig, format_refresh_interval
from .errors import FetchFailed
from .logging_utils import configure_logging
from .models import FetchResult, Record
from .service import BuoyDataService
from .settings import SettingsService
from .storage import JsonFileKeyValueStore
from .timeparse import format_display


_LOGGER = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = Path.home() / ".aquanet_buoy" / "store.json"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aquanet_buoy", description="Buoy water-quality data from the dashboard.")
    parser.add_argument("--storage", type=Path, default=DEFAULT_STORAGE_PATH, help="Key-value JSON file")
    parser.add_argument("--url", default=DASHBOARD_URL, help="Dashboard endpoint")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument(
        "--offline-mode",
        choices=("on", "off"),
        help="Persist the offlineMode setting before running the command",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    latest = sub.add_parser("latest", help="Latest record for one buoy")
    latest.add_argument("buoy", type=int)
    latest.add_argument("--force", action="store_true", help="Bypass the 30 s memo")

    latest_n = sub.add_parser("latest-n", help="Newest N records")
    latest_n.add_argument("count", type=int, nargs="?", help="Defaults to the dataRetentionPoints setting")

    sub.add_parser("buoys", help="Buoy numbers seen in recent data")

    export = sub.add_parser("export-csv", help="Export all records as CSV")
    export.add_argument("--output", type=Path, help="File to write; stdout when omitted")

    sub.add_parser("cache-info", help="Describe the offline snapshot")
    sub.add_parser("clear-cache", help="Delete the offline snapshot")

    summary = sub.add_parser("summary", help="Monthly statistics")
    summary.add_argument("year", type=int)
    summary.add_argument("month", type=int, choices=range(1, 13), metavar="MONTH")

    watch = sub.add_parser("watch", help="Print the latest record on every auto refresh")
    watch.add_argument("--buoy", type=int, help="Defaults to the defaultBuoySelection setting")
    watch.add_argument("--interval", type=int, help="Override autoRefreshInterval (seconds) for this run")
    return parser


def _record_line(record: Optional[Record]) -> str:
    if record is None:
        return "no data"
    date_text, time_text = format_display(record.date, record.time)
    return (
        f"{record.buoy} @ {date_text} {time_text}: pH {record.ph}, "
        f"{record.temperature} °C, TDS {record.tds} ppm ({record.latitude}, {record.longitude})"
    )


def _provenance(result: FetchResult[Any]) -> str:
    if result.is_offline:
        return " [offline snapshot]"
    if result.from_memo:
        return " [memo]"
    return ""


def _emit(args: argparse.Namespace, payload: Dict[str, Any], lines: Sequence[str]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    for line in lines:
        print(line)


def _result_payload(result: FetchResult[Any], value: Any) -> Dict[str, Any]:
    return {"value": value, "is_offline": result.is_offline, "from_memo": result.from_memo, "notes": list(result.notes)}


async def _watch(args: argparse.Namespace, service: BuoyDataService, settings: SettingsService) -> None:
    buoy = args.buoy or settings.default_buoy_selection

    async def _tick() -> None:
        result = await service.fetch_latest_for_buoy(buoy, force_refresh=True)
        print(f"{_record_line(result.value)}{_provenance(result)}", flush=True)

    await _tick()
    scheduler = service.start_auto_refresh(_tick)
    if args.interval is not None:
        scheduler.detach()
        scheduler.set_interval(args.interval)
    if not scheduler.is_running:
        print("Auto refresh is set to Manual Only; nothing to watch.")
        return
    print(f"Refreshing every {format_refresh_interval(int(scheduler.interval))}; Ctrl+C to stop.", flush=True)
    # Runs until the process is interrupted
    await asyncio.Event().wait()


async def _run(args: argparse.Namespace) -> int:
    storage = JsonFileKeyValueStore(args.storage)
    settings = SettingsService(storage)
    await settings.load()
    if args.offline_mode is not None:
        await settings.update(offline_mode=args.offline_mode == "on")

    async with BuoyDataService(settings, storage, config=ServiceConfig(url=args.url)) as service:
        command = args.command
        if command == "latest":
            result = await service.fetch_latest_for_buoy(args.buoy, force_refresh=args.force)
            record = result.value
            _emit(
                args,
                _result_payload(result, record.to_dict() if record else None),
                [f"{_record_line(record)}{_provenance(result)}"],
            )
            return 0 if record is not None else 1

        if command == "latest-n":
            result = await service.fetch_latest_n(args.count)
            _emit(
                args,
                _result_payload(result, [r.to_dict() for r in result.value]),
                [_record_line(r) for r in result.value] + ([_provenance(result).strip()] if result.is_offline else []),
            )
            return 0

        if command == "buoys":
            result = await service.fetch_available_buoy_ids()
            ids: List[int] = result.value
            _emit(args, _result_payload(result, ids), [", ".join(f"Buoy {n}" for n in ids) + _provenance(result)])
            return 0

        if command == "export-csv":
            text = await service.export_all_records_as_csv()
            if args.output is None:
                sys.stdout.write(text)
            else:
                args.output.write_text(text, encoding="utf-8")
                print(f"Wrote {len(text.splitlines())} lines to {args.output}")
            return 0

        if command == "cache-info":
            info = await service.get_cache_info()
            size = await service.snapshots.size_bytes()
            lines = (
                [f"{info.data_points} records cached {info.age} ({size / 1024:.1f} KB)"]
                if info.has_cache
                else ["No offline snapshot stored"]
            )
            _emit(args, {**asdict(info), "size_bytes": size}, lines)
            return 0

        if command == "clear-cache":
            await service.clear_offline_cache()
            _emit(args, {"cleared": True}, ["Offline snapshot cleared"])
            return 0

        if command == "summary":
            result = await service.fetch_month_summary(args.year, args.month)
            s = result.value
            lines = [f"{args.year}-{args.month:02d}: {s.record_count} records from {', '.join(s.buoys) or 'no buoys'}"]
            for label, stats in (("pH", s.ph), ("Temp (°C)", s.temperature), ("TDS (ppm)", s.tds)):
                if stats.count:
                    lines.append(f"  {label}: avg {stats.avg:.2f}, min {stats.min:.2f}, max {stats.max:.2f}")
            lines.append(
                f"  pH out of range: {s.ph_out_of_range}, hot readings: {s.hot_temperature}, "
                f"high TDS: {s.high_tds}, all-zero records: {s.zero_records}"
            )
            _emit(args, _result_payload(result, asdict(s)), lines)
            return 0

        if command == "watch":
            await _watch(args, service, settings)
            return 0

    raise AssertionError(f"Unhandled command {args.command!r}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except FetchFailed as exc:
        _LOGGER.debug("Fetch failed", exc_info=True)
        print(f"Failed to fetch data, try again: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
