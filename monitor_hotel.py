"""CLI entrypoint for the hotelwatch agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from hotelwatch.browser import PlaywrightPageProvider, ProviderStartupError
from hotelwatch.config import ConfigError, MonitorConfig, load_config
from hotelwatch.db import Database, resolve_sqlite_path
from hotelwatch.models import RunSummary
from hotelwatch.notifications import build_notifier, format_price
from hotelwatch.runner import HotelWatchRunner
from hotelwatch.state import SnapshotStore, StateStoreError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hotel room availability monitor")
    parser.add_argument("--init", action="store_true", help="initialize history storage and exit")
    parser.add_argument(
        "--run",
        action="store_true",
        help="execute one monitoring cycle",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="skip persistence and notifications while still checking and diffing",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config.json"),
        help="monitor configuration file (overrides CONFIG_PATH env var)",
    )
    parser.add_argument(
        "--state",
        default=None,
        help="snapshot file (overrides STATE_FILE env var)",
    )
    parser.add_argument(
        "--export",
        type=Path,
        default=None,
        help="write the observation history to this xlsx file after the run",
    )
    parser.add_argument(
        "--force-digest",
        action="store_true",
        help="send the status report even outside the reporting window",
    )
    parser.add_argument("--headful", action="store_true", help="show the browser window")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


async def run_cycle(
    config: MonitorConfig,
    database: Database,
    args: argparse.Namespace,
) -> RunSummary:
    async with PlaywrightPageProvider(
        navigation_timeout_ms=config.navigation_timeout_ms,
        headless=not args.headful,
    ) as provider:
        runner = HotelWatchRunner(
            config=config,
            store=SnapshotStore(path=config.state_path),
            provider=provider,
            notifier=build_notifier(config),
            database=database,
        )
        runner.init()
        return await runner.run(dry_run=args.dry_run, force_digest=args.force_digest)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if not args.init and not args.run:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    if args.state:
        config = replace(config, state_path=Path(args.state))

    database = Database(path=resolve_sqlite_path(config.database_url))
    if args.init:
        logger.info("Initializing database at %s", database.path)
        database.initialize()
        return 0

    try:
        summary = asyncio.run(run_cycle(config, database, args))
    except ProviderStartupError as exc:
        logger.error("Browser could not be started: %s", exc)
        return 1
    except StateStoreError as exc:
        logger.error("Snapshot persistence failed: %s", exc)
        return 1

    logger.info("Summary for %s:", config.hotel_name)
    for date, record in summary.snapshot.items():
        status = "有房" if record.is_available else "滿房"
        logger.info(
            "  %s: %s | 價格: %s%s",
            date,
            status,
            format_price(record.price, record.currency),
            f" | 錯誤: {record.error}" if record.error else "",
        )
    if summary.events:
        logger.info("Detected %d change event(s)", len(summary.events))
    else:
        logger.info("No new notifications in this run.")

    if args.export and not args.dry_run:
        try:
            database.export_history_to_xlsx(args.export)
            logger.info("Exported observation history to %s", args.export)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to export observation history")
    return 0


if __name__ == "__main__":
    sys.exit(main())
