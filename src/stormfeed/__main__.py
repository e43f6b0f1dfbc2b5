"""Storm feed worker entry point. Use --help for usage."""

import argparse
import asyncio
import errno
import logging
import os
import socket
import sys
from pathlib import Path

from dotenv import load_dotenv
from prometheus_client import start_http_server

from config.config import StormFeedConfig, load_config
from core.logging.setup import setup_logging
from core.utils import generate_worker_id
from stormfeed.fetcher import FeedFetcher
from stormfeed.orchestrator import StormReportPipeline
from stormfeed.processor.worker import ReportProcessor
from stormfeed.publisher import StormReportPublisher
from stormfeed.signals import setup_shutdown_signal_handlers

# Repository root, home of the optional .env file
PROJECT_ROOT = Path(__file__).parent.parent.parent

WORKERS = ["producer", "processor"]

logger = logging.getLogger(__name__)

# Set by signal handlers, checked by the schedule loop and processor
_shutdown_event: asyncio.Event | None = None


def get_shutdown_event() -> asyncio.Event:
    global _shutdown_event
    if _shutdown_event is None:
        _shutdown_event = asyncio.Event()
    return _shutdown_event


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m stormfeed",
        description="Ingest storm report feeds and publish them to Kafka",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run now, then every 24 hours
    python -m stormfeed

    # Single on-demand run
    python -m stormfeed --once

    # Backfill a historical day (epoch seconds or YYYY-MM-DD)
    python -m stormfeed --once --date 2024-05-26

    # Run the raw-to-processed ETL worker
    python -m stormfeed --worker processor
        """,
    )

    parser.add_argument(
        "--worker",
        choices=WORKERS,
        default="producer",
        help="Which worker to run (default: producer)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the producer pipeline once and exit instead of scheduling",
    )
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Backfill date for the producer (epoch seconds or YYYY-MM-DD)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between scheduled runs (default: from config, 86400)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port (default: disabled)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config, INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from config or ./logs)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Log to stdout only, no log files (or set LOG_TO_STDOUT=true)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (file logs are JSON unless disabled in config)",
    )

    args = parser.parse_args(argv)
    if args.date and args.worker != "producer":
        parser.error("--date only applies to the producer worker")
    if args.interval_seconds is not None and args.interval_seconds <= 0:
        parser.error("--interval-seconds must be positive")
    return args


def start_metrics_server(preferred_port: int) -> int:
    """Serve /metrics on ``preferred_port``, or on a free port if it is taken.

    Returns the port actually bound.
    """
    try:
        start_http_server(preferred_port)
        return preferred_port
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.info(
                "Metrics port busy, binding an ephemeral port instead",
                extra={"preferred_port": preferred_port},
            )

            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(("", 0))
                s.listen(1)
                port = s.getsockname()[1]

            start_http_server(port)
            return port
        else:
            raise


def setup_signal_handlers(loop: asyncio.AbstractEventLoop):
    """Two-stage shutdown on SIGINT/SIGTERM.

    The first signal sets the shutdown event so the current run can finish
    and the publisher can flush. A second signal cancels every task.
    """

    def handle_signal(sig):
        logger.info("Shutdown requested", extra={"signal": sig.name})
        shutdown_event = get_shutdown_event()
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Second signal, cancelling all tasks")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    setup_shutdown_signal_handlers(loop, handle_signal)


def build_pipeline(config: StormFeedConfig) -> StormReportPipeline:
    fetcher = FeedFetcher(
        base_url=config.feed_base_url,
        connect_timeout_seconds=config.feed_connect_timeout_seconds,
        read_timeout_seconds=config.feed_read_timeout_seconds,
    )
    publisher = StormReportPublisher(config)
    return StormReportPipeline(
        fetcher,
        publisher,
        interval_seconds=config.interval_seconds,
        topic=config.raw_topic,
    )


async def run_producer(
    config: StormFeedConfig,
    shutdown_event: asyncio.Event,
    once: bool = False,
    explicit_date: str | None = None,
) -> int:
    """Run the ingestion pipeline. Returns a process exit code."""
    pipeline = build_pipeline(config)
    try:
        if once or explicit_date:
            try:
                result = await pipeline.run_until_shutdown(shutdown_event, explicit_date)
            except Exception:
                # Logged by the pipeline
                return 1
            if result is None:
                return 1
        else:
            await pipeline.run_forever(shutdown_event)
        return 0
    finally:
        await pipeline.publisher.close()
        await pipeline.fetcher.close()


async def run_processor(config: StormFeedConfig, shutdown_event: asyncio.Event) -> int:
    processor = ReportProcessor(config)
    await processor.run(shutdown_event)
    return 0


def _setup_environment(argv: list[str] | None = None):
    load_dotenv(PROJECT_ROOT / ".env")

    args = parse_args(argv)
    worker_id = os.getenv("WORKER_ID") or generate_worker_id(f"stormfeed-{args.worker}")
    return args, worker_id


def _load_config(args) -> StormFeedConfig:
    overrides = {}
    if args.interval_seconds is not None:
        overrides["schedule"] = {"interval_seconds": args.interval_seconds}
    return load_config(config_path=args.config, overrides=overrides or None)


def _setup_logging(args, config: StormFeedConfig, worker_id: str) -> None:
    log_level = getattr(logging, args.log_level or config.log_level.upper(), logging.INFO)

    env_stdout = os.getenv("LOG_TO_STDOUT", "").strip().lower() in ("true", "1", "yes")
    log_to_stdout = args.log_to_stdout or env_stdout
    # stdout gets the console format unless JSON is asked for explicitly
    json_logs = args.json_logs or (config.json_logs and not log_to_stdout)

    setup_logging(
        name="stormfeed",
        stage=args.worker,
        log_dir=Path(args.log_dir or config.log_dir),
        json_format=json_logs,
        console_level=log_level,
        worker_id=worker_id,
        log_to_stdout=log_to_stdout,
    )


def main(argv: list[str] | None = None) -> int:
    global logger

    args, worker_id = _setup_environment(argv)

    try:
        config = _load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"[STARTUP] Configuration error: {e}", file=sys.stderr, flush=True)
        return 2

    _setup_logging(args, config, worker_id)
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting stormfeed worker",
        extra={"worker_id": worker_id, "stage": args.worker, "topic": config.raw_topic},
    )

    if args.metrics_port is not None:
        port = start_metrics_server(args.metrics_port)
        logger.info(f"Metrics server listening on port {port}")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    setup_signal_handlers(loop)
    shutdown_event = get_shutdown_event()

    exit_code = 0
    try:
        if args.worker == "processor":
            exit_code = loop.run_until_complete(run_processor(config, shutdown_event))
        else:
            exit_code = loop.run_until_complete(
                run_producer(config, shutdown_event, once=args.once, explicit_date=args.date)
            )
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except asyncio.CancelledError:
        logger.info("Worker tasks cancelled")
    finally:
        loop.close()
        logger.info("Stormfeed shutdown complete")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
