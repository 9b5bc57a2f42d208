#!/usr/bin/env python3
"""
Practice Manager Worker

Command-line entry points for work that runs outside a web request.

Usage:
    python worker.py alerts [--loop] [--interval=S]
    python worker.py ingest --path=companies/chunk_01.csv [--bucket=B] [--table=T] [--batch-size=N]

Commands:
- alerts: run the daily alert analyzer once, or repeatedly with --loop
  (graceful shutdown on SIGINT/SIGTERM)
- ingest: clean a Companies House CSV already in storage and upsert it,
  the same as the storage-event webhook
"""

import asyncio
import logging
import os
import signal
import sys
import argparse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("practice.worker")

from app.supabase_client import get_supabase
from app.alert_scheduler import run_alert_analyzer
from app.companies_csv import CsvImportError, IngestSettings, ingest_storage_file


class AlertAnalyzerWorker:
    """
    Runs the alert analyzer on a fixed interval until told to stop.
    """

    def __init__(self, supabase, interval: float = 24 * 60 * 60):
        self.supabase = supabase
        self.interval = interval
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self):
        self._running = True
        logger.info(f"Alert worker starting, interval={self.interval}s")

        loop = asyncio.get_event_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                pass

        while self._running:
            try:
                summary = await asyncio.to_thread(run_alert_analyzer, self.supabase)
                logger.info(summary["message"])
            except Exception as e:
                logger.error(f"Error in alert run: {e}")

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Alert worker stopped")

    def _handle_shutdown(self):
        logger.info("Alert worker received shutdown signal")
        self._running = False
        self._shutdown_event.set()


def run_alerts(args, supabase) -> int:
    if not args.loop:
        summary = run_alert_analyzer(supabase)
        logger.info(summary["message"])
        return 1 if summary["errors"] else 0

    try:
        asyncio.run(AlertAnalyzerWorker(supabase, interval=args.interval).start())
    except KeyboardInterrupt:
        logger.info("Alert worker interrupted")
    return 0


def run_ingest(args, supabase) -> int:
    defaults = IngestSettings.from_env()
    settings = IngestSettings(
        bucket=args.bucket or defaults.bucket,
        table=args.table or defaults.table,
        batch_size=args.batch_size or defaults.batch_size,
    )

    try:
        report = ingest_storage_file(supabase, args.path, settings)
    except CsvImportError as e:
        logger.error(f"Ingestion of {args.path} failed: {e}")
        return 1

    logger.info(
        f"Processed {report.rows_upserted} records from {args.path} "
        f"({report.rows_parsed} parsed, {report.rows_cleaned} cleaned, {report.rows_failed} failed)"
    )
    for batch in report.failed_batches:
        logger.error(f"Batch {batch.index} ({batch.size} rows) failed: {batch.error}")
    return 1 if report.rows_failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Practice Manager Worker")
    commands = parser.add_subparsers(dest="command", required=True)

    alerts = commands.add_parser("alerts", help="Run the client alert analyzer")
    alerts.add_argument(
        "--loop",
        action="store_true",
        help="Keep running, analysing every --interval seconds"
    )
    alerts.add_argument(
        "--interval", "-i",
        type=float,
        default=float(os.environ.get("ALERT_INTERVAL_SECONDS", str(24 * 60 * 60))),
        help="Seconds between runs with --loop (default: 86400)"
    )

    ingest = commands.add_parser("ingest", help="Ingest a Companies House CSV from storage")
    ingest.add_argument("--path", "-p", required=True, help="Object path inside the bucket")
    ingest.add_argument("--bucket", "-b", default=None, help="Storage bucket (default: COMPANIES_CSV_BUCKET)")
    ingest.add_argument("--table", "-t", default=None, help="Destination table (default: COMPANIES_CSV_TABLE)")
    ingest.add_argument("--batch-size", type=int, default=None, help="Rows per upsert (default: COMPANIES_CSV_BATCH_SIZE)")

    return parser


def main(argv=None) -> int:
    """Main entry point for the worker."""
    args = build_parser().parse_args(argv)

    supabase = get_supabase()
    if not supabase:
        logger.error("Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        return 1

    if args.command == "alerts":
        return run_alerts(args, supabase)
    return run_ingest(args, supabase)


if __name__ == "__main__":
    sys.exit(main())
