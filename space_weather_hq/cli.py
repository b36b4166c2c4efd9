"""Command-line entrypoints for space_weather_hq."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import dotenv

from space_weather_hq.config import DataConfig
from space_weather_hq.data.database import init_database
from space_weather_hq.errors import NoDataYetError, TransportError
from space_weather_hq.ingestion.donki_client import DonkiClient
from space_weather_hq.ingestion.run_ingestion import SpaceWeatherPipeline
from space_weather_hq.ingestion.scheduler import IngestionScheduler

PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


def _pipeline(args: argparse.Namespace) -> SpaceWeatherPipeline:
    client = DonkiClient.from_config(api_key=getattr(args, "api_key", None))
    return SpaceWeatherPipeline(client=client, lookback_days=getattr(args, "lookback_days", None))


def init_db(args: argparse.Namespace) -> int:
    """Handle init-db command."""
    tables = init_database(drop_existing=args.drop)
    print(f"database initialized (tables: {', '.join(tables)})")
    return 0


def ingest(args: argparse.Namespace) -> int:
    """Handle ingest command: one fetch -> persist run."""
    try:
        stats = _pipeline(args).run()
    except TransportError as e:
        print(f"Ingestion failed: {e}", file=sys.stderr)
        return 1
    print(
        f"Ingestion {stats['status']}: {stats['buckets']} buckets, "
        f"events={stats['events']}, persist={stats['persist']}"
    )
    return 0 if stats["status"] == "success" else 1


def monitor(args: argparse.Namespace) -> int:
    """Handle monitor command: periodic ingestion until interrupted."""
    scheduler = IngestionScheduler(_pipeline(args), interval_minutes=args.interval_minutes)

    def _shutdown(signum, frame):
        logger.info("shutdown requested, stopping after the current run")
        scheduler.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    scheduler.run_forever(max_runs=args.max_runs)
    return 0


def status(args: argparse.Namespace) -> int:
    """Handle status command: print the advisory for the latest stored hour."""
    from space_weather_hq.api.service import AdvisoryService

    try:
        advisory = AdvisoryService().current_advisory()
    except NoDataYetError as e:
        print(f"No data yet: {e}. Run `space-weather-hq ingest` first.")
        return 2
    print(json.dumps(advisory, indent=2))
    return 0


def serve(args: argparse.Namespace) -> int:
    """Handle serve command: run the http api, optionally with the scheduler in the background."""
    import threading

    from space_weather_hq.api.app import create_app
    from space_weather_hq.api.service import AdvisoryService

    pipeline = _pipeline(args)
    scheduler = IngestionScheduler(pipeline, interval_minutes=args.interval_minutes)
    if args.with_scheduler:
        threading.Thread(target=scheduler.run_forever, name="ingestion-scheduler", daemon=True).start()

    app = create_app(AdvisoryService(store=pipeline.store, pipeline=pipeline, scheduler=scheduler))
    app.run(host=args.host, port=args.port)
    scheduler.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="space weather hq utilities")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-db", help="Create database tables")
    init.add_argument("--drop", action="store_true", help="Drop existing tables first")
    init.set_defaults(func=init_db)

    def add_source_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--api-key", default=None, help="NASA API key (default NASA_API_KEY or DEMO_KEY)")
        sub.add_argument(
            "--lookback-days",
            type=int,
            default=None,
            help=f"Days of history to rebuild (default {DataConfig.LOOKBACK_DAYS})",
        )

    run = subparsers.add_parser("ingest", help="Fetch DONKI events once and upsert the hourly timeline")
    add_source_args(run)
    run.set_defaults(func=ingest)

    mon = subparsers.add_parser("monitor", help="Ingest periodically until interrupted")
    add_source_args(mon)
    mon.add_argument("--interval-minutes", type=int, default=DataConfig.UPDATE_INTERVAL)
    mon.add_argument("--max-runs", type=int, default=None, help="Stop after this many runs")
    mon.set_defaults(func=monitor)

    stat = subparsers.add_parser("status", help="Print the current space weather advisory")
    stat.set_defaults(func=status)

    srv = subparsers.add_parser("serve", help="Run the http api")
    add_source_args(srv)
    srv.add_argument("--host", default="127.0.0.1", help="host to bind to (default: 127.0.0.1)")
    srv.add_argument("--port", type=int, default=5000)
    srv.add_argument("--interval-minutes", type=int, default=DataConfig.UPDATE_INTERVAL)
    srv.add_argument("--with-scheduler", action="store_true", help="Also ingest periodically in the background")
    srv.set_defaults(func=serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    dotenv.load_dotenv(PROJECT_ROOT / ".env", override=False)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
