"""Tests for logging setup and configuration."""

import logging
import re
from pathlib import Path

import pytest

from core.logging.context import get_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    NOISY_LOGGERS,
    ArchivingTimedRotatingFileHandler,
    generate_run_id,
    get_log_file_path,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestGetLogFilePath:

    def test_builds_path_with_stage(self):
        path = get_log_file_path(Path("logs"), stage="producer")

        assert path.name.startswith("stormfeed_producer_")
        assert path.suffix == ".log"
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", path.parent.name)

    def test_builds_path_without_stage(self):
        path = get_log_file_path(Path("logs"), name="feeds")

        assert path.name.startswith("feeds_")


class TestSetupLogging:

    def test_stdout_only_mode(self, tmp_path):
        setup_logging(stage="producer", log_dir=tmp_path, log_to_stdout=True, json_format=False)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, ConsoleFormatter)
        assert not any(tmp_path.iterdir())

    def test_stdout_json_mode(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_stdout=True, json_format=True)

        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_file_mode_writes_json(self, tmp_path):
        setup_logging(stage="processor", log_dir=tmp_path, worker_id="w-1")

        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, ArchivingTimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JSONFormatter)
        assert Path(file_handlers[0].baseFilename).parent.parent == tmp_path
        assert (tmp_path / "archive").is_dir()
        assert get_log_context()["worker_id"] == "w-1"
        assert get_log_context()["stage"] == "processor"

    def test_suppresses_noisy_loggers(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_to_stdout=True)

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestArchivingHandler:

    def test_rollover_moves_files_to_archive(self, tmp_path):
        log_file = tmp_path / "app.log"
        archive = tmp_path / "archive"
        handler = ArchivingTimedRotatingFileHandler(
            log_file, when="S", backupCount=3, archive_dir=archive
        )
        try:
            handler.emit(logging.LogRecord("t", logging.INFO, "f.py", 1, "line", (), None))
            handler.doRollover()
        finally:
            handler.close()

        assert log_file.exists()
        assert len(list(archive.iterdir())) == 1


def test_generate_run_id_unique_and_shaped():
    run_ids = {generate_run_id() for _ in range(20)}

    assert len(run_ids) == 20
    for run_id in run_ids:
        assert re.fullmatch(r"\d{14}-[0-9a-f]{8}", run_id)
