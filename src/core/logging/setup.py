"""
Logging bootstrap for the stormfeed workers.

Each worker logs to the console and to a per-day file:

    logs/2026-01-05/stormfeed_producer_0105_1430.log

Rotated files are moved under ``logs/archive/<day>/`` so the day folders only
ever hold the live file. In containers, ``log_to_stdout`` skips the files.
"""

import logging
import secrets
import shutil
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LOG_DIR = Path("logs")
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_ROTATION_INTERVAL = 1
DEFAULT_BACKUP_COUNT = 7

# Client libraries that log every reconnect and metadata refresh at INFO
NOISY_LOGGERS = ["aiokafka", "aiohttp", "urllib3"]

PLAIN_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d] %(message)s"


class ArchivingTimedRotatingFileHandler(TimedRotatingFileHandler):
    """Timed rotation that moves each rotated file into ``archive_dir``."""

    def __init__(self, filename, archive_dir=None, **kwargs):
        super().__init__(filename, **kwargs)
        base = Path(self.baseFilename)
        self.archive_dir = Path(archive_dir) if archive_dir else base.parent / "archive"
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def doRollover(self):
        super().doRollover()
        live = Path(self.baseFilename)
        for rotated in live.parent.glob(f"{live.name}.*"):
            try:
                shutil.move(rotated, self.archive_dir / rotated.name)
            except OSError as e:
                # Logging from inside a handler would recurse
                print(f"Could not archive {rotated}: {e}", file=sys.stderr)


def get_log_file_path(log_dir: Path, stage: str | None = None, name: str = "stormfeed") -> Path:
    """``<log_dir>/<YYYY-MM-DD>/<name>[_<stage>]_<MMDD>_<HHMM>.log``"""
    now = datetime.now()
    prefix = "_".join(part for part in (name, stage) if part)
    return log_dir / f"{now:%Y-%m-%d}" / f"{prefix}_{now:%m%d}_{now:%H%M}.log"


def _file_handler(
    log_dir: Path,
    log_file: Path,
    json_format: bool,
    level: int,
    when: str,
    interval: int,
    backup_count: int,
) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    # logs/<day>/x.log rotates into logs/archive/<day>/
    if log_file.is_relative_to(log_dir):
        archive_dir = log_dir / "archive" / log_file.parent.relative_to(log_dir)
    else:
        archive_dir = log_file.parent / "archive"

    handler = ArchivingTimedRotatingFileHandler(
        log_file,
        archive_dir=archive_dir,
        when=when,
        interval=interval,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FILE_FORMAT))
    return handler


def setup_logging(
    name: str = "stormfeed",
    stage: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    rotation_when: str = DEFAULT_ROTATION_WHEN,
    rotation_interval: int = DEFAULT_ROTATION_INTERVAL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    worker_id: str | None = None,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Replace the root logger's handlers with the stormfeed console/file pair.

    Args:
        name: Logger returned to the caller, and the log file prefix
        stage: Worker name (producer/processor), tagged on every record
        log_dir: Base directory for log files (default: ./logs)
        json_format: JSON file logs; with ``log_to_stdout``, JSON on stdout
        console_level: Minimum level printed to stdout
        file_level: Minimum level written to the file
        rotation_when: TimedRotatingFileHandler ``when`` ('midnight', 'H', ...)
        rotation_interval: TimedRotatingFileHandler ``interval``
        backup_count: Rotated files kept
        suppress_noisy: Raise aiokafka/aiohttp loggers to WARNING
        worker_id: Worker identifier, tagged on every record
        log_to_stdout: Log to stdout only, no files
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    set_log_context(stage=stage, worker_id=worker_id)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(JSONFormatter() if log_to_stdout and json_format else ConsoleFormatter())
    root.addHandler(console)

    log_file = None
    if not log_to_stdout:
        log_file = get_log_file_path(log_dir, stage=stage, name=name)
        root.addHandler(
            _file_handler(
                log_dir,
                log_file,
                json_format,
                file_level,
                rotation_when,
                rotation_interval,
                backup_count,
            )
        )

    if suppress_noisy:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug("Logging configured: %s", log_file or "stdout only")
    return logger


def generate_run_id() -> str:
    """Run identifier: local start time plus 8 random hex characters."""
    return f"{datetime.now():%Y%m%d%H%M%S}-{secrets.token_hex(4)}"
