"""Command-line interface for mileage_log.

Run:
    python -m mileage_log list --range this_month --sort distance_desc
    python -m mileage_log export --format csv --search coffee
    python -m mileage_log import TripLogs.json
"""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from pathlib import Path

from mileage_log.core.config import get_config
from mileage_log.core.errors import ErrorCode, ExchangeError, TripImportError
from mileage_log.core.models import DateRangeFilter, ExportFormat, QueryParams, SortOption
from mileage_log.core.query_engine import QueryEngine, summarize
from mileage_log.core.store import TripStore

logger = logging.getLogger(__name__)


def _load_store(args: argparse.Namespace) -> TripStore:
    config = get_config()
    try:
        return TripStore.load(args.store, max_plausible_speed=config.max_plausible_speed_mps)
    except (OSError, KeyError, TypeError, ValueError, RecursionError) as exc:
        raise TripImportError(
            f"Trip store {args.store} is unreadable: {exc!r}", code=ErrorCode.FILE_READ_FAILED, cause=exc
        ) from exc


def _query(args: argparse.Namespace, store: TripStore):
    params = QueryParams(
        search_text=args.search,
        sort_option=SortOption[args.sort.upper()],
        date_range=DateRangeFilter[args.range.upper()],
        reason_filter=args.reason,
        distance_range_km=(args.min_km, args.max_km),
    )
    engine = QueryEngine(store, first_weekday=get_config().first_weekday)
    return engine.query(params)


def _format_duration(seconds: float) -> str:
    minutes, _ = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def _cmd_list(args: argparse.Namespace) -> int:
    trips = _query(args, _load_store(args))
    for trip in trips:
        print(
            f"{trip.id}  {trip.start_time:%Y-%m-%d %H:%M}  {trip.distance_km:8.2f} km  "
            f"{_format_duration(trip.duration.total_seconds()):>8}  {trip.reason:<12}  {trip.notes}"
        )
    print(f"{len(trips)} trip(s)")
    return 0


def _cmd_summary(args: argparse.Namespace) -> int:
    summary = summarize(_query(args, _load_store(args)))
    config = get_config()
    if config.use_kilometers:
        distance = f"{summary.total_distance_km:.2f} km"
    else:
        distance = f"{summary.total_distance_m / 1609.344:.2f} mi"
    print(f"trips={summary.count}")
    print(f"distance={distance}")
    print(f"drive_time={_format_duration(summary.total_duration_s)}")
    print(f"earnings={summary.total_earnings:.2f}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    from mileage_log.app.exchange import ExchangeCoordinator

    trips = _query(args, _load_store(args))
    export_format = ExportFormat(args.format)
    include_route = True if args.include_route else None

    if args.stdout:
        coordinator = ExchangeCoordinator(TripStore(), clipboard_writer=sys.stdout.write)
        coordinator.copy_to_clipboard(trips, export_format, include_route=include_route)
        sys.stdout.write("\n")
        return 0

    coordinator = ExchangeCoordinator(TripStore(), export_dir=args.out_dir)
    path = coordinator.export_file(trips, export_format, include_route=include_route)
    print(path)
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    from PySide6.QtCore import QCoreApplication

    from mileage_log.app.exchange import ExchangeCoordinator

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    store = _load_store(args)
    coordinator = ExchangeCoordinator(store)
    outcome: dict[str, object] = {}

    def on_finished(result) -> None:
        outcome["result"] = result
        app.quit()

    def on_failed(error) -> None:
        outcome["error"] = error
        app.quit()

    coordinator.import_finished.connect(on_finished)
    coordinator.import_failed.connect(on_failed)

    if coordinator.import_file(args.path) is not None:
        app.exec()

    if "error" in outcome:
        raise outcome["error"]

    result = outcome["result"]
    store.save(args.store)
    print(f"imported {result.total} trip(s): {result.added} added, {result.updated} updated")
    return 0


def _cmd_duplicate(args: argparse.Namespace) -> int:
    store = _load_store(args)
    try:
        copy = store.duplicate(uuid.UUID(args.id))
    except KeyError:
        print(f"No trip with id {args.id}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    store.save(args.store)
    print(copy.id)
    return 0


def _add_query_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--search", type=str, default="", help="Case-insensitive text in notes or reason")
    p.add_argument(
        "--sort",
        type=str,
        default="date_desc",
        choices=[o.name.lower() for o in SortOption],
        help="Row ordering",
    )
    p.add_argument(
        "--range",
        type=str,
        default="all",
        choices=[r.name.lower() for r in DateRangeFilter],
        help="Calendar window on the trip start time",
    )
    p.add_argument("--reason", type=str, default="All", help="Exact reason to keep ('All' disables)")
    p.add_argument("--min-km", type=float, default=0.0, help="Minimum distance in km")
    p.add_argument("--max-km", type=float, default=float("inf"), help="Maximum distance in km")


def build_parser() -> argparse.ArgumentParser:
    config = get_config()

    p = argparse.ArgumentParser(prog="mileage_log", description="Query, export and import logged trips")
    p.add_argument("--store", type=Path, default=config.store_path, help="Trip store JSON file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list", help="Print matching trips")
    _add_query_arguments(p_list)
    p_list.set_defaults(func=_cmd_list)

    p_sum = sub.add_parser("summary", help="Totals for matching trips")
    _add_query_arguments(p_sum)
    p_sum.set_defaults(func=_cmd_summary)

    p_exp = sub.add_parser("export", help="Export matching trips to TripLogs.csv/.json")
    _add_query_arguments(p_exp)
    p_exp.add_argument("--format", type=str, default="csv", choices=[f.value for f in ExportFormat])
    p_exp.add_argument("--include-route", action="store_true", help="Include routeCoordinates in JSON")
    p_exp.add_argument("--out-dir", type=Path, default=None, help="Output directory")
    p_exp.add_argument("--stdout", action="store_true", help="Print instead of writing a file")
    p_exp.set_defaults(func=_cmd_export)

    p_imp = sub.add_parser("import", help="Import trips from a .csv or .json file")
    p_imp.add_argument("path", type=Path, help="File to import")
    p_imp.set_defaults(func=_cmd_import)

    p_dup = sub.add_parser("duplicate", help="Copy a trip as a new trip starting now")
    p_dup.add_argument("id", type=str, help="Trip id")
    p_dup.set_defaults(func=_cmd_duplicate)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_config().log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except ExchangeError as exc:
        logger.debug("%s failed: %s", args.cmd, exc.message)
        print(exc.user_message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
