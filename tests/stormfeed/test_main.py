"""Tests for the stormfeed worker entry point."""

import asyncio
import signal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stormfeed import __main__ as cli
from stormfeed.signals import setup_shutdown_signal_handlers


@pytest.fixture(autouse=True)
def fresh_shutdown_event():
    cli._shutdown_event = None
    yield
    cli._shutdown_event = None


class TestParseArgs:
    def test_defaults(self):
        args = cli.parse_args([])

        assert args.worker == "producer"
        assert args.once is False
        assert args.date is None
        assert args.interval_seconds is None
        assert args.config is None
        assert args.metrics_port is None

    def test_backfill_once(self):
        args = cli.parse_args(["--once", "--date", "2024-05-26", "--config", "/etc/sf.yaml"])

        assert args.once is True
        assert args.date == "2024-05-26"
        assert args.config == Path("/etc/sf.yaml")

    def test_processor_worker(self):
        assert cli.parse_args(["--worker", "processor"]).worker == "processor"

    def test_date_rejected_for_processor(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--worker", "processor", "--date", "1716764227"])

    def test_interval_must_be_positive(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--interval-seconds", "0"])

    def test_unknown_worker_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--worker", "consumer"])


class TestLoadConfig:
    def test_interval_override(self):
        args = cli.parse_args(["--interval-seconds", "60"])

        with patch.object(cli, "load_config") as mock_load:
            cli._load_config(args)

        mock_load.assert_called_once_with(
            config_path=None, overrides={"schedule": {"interval_seconds": 60.0}}
        )

    def test_no_overrides(self):
        with patch.object(cli, "load_config") as mock_load:
            cli._load_config(cli.parse_args([]))

        mock_load.assert_called_once_with(config_path=None, overrides=None)


class TestRunProducer:
    @pytest.fixture
    def pipeline(self):
        pipeline = MagicMock()
        pipeline.run_until_shutdown = AsyncMock(return_value=MagicMock())
        pipeline.run_forever = AsyncMock()
        pipeline.publisher.close = AsyncMock()
        pipeline.fetcher.close = AsyncMock()
        with patch.object(cli, "build_pipeline", return_value=pipeline):
            yield pipeline

    @pytest.mark.asyncio
    async def test_once(self, storm_config, pipeline):
        shutdown = asyncio.Event()
        code = await cli.run_producer(storm_config, shutdown, once=True)

        assert code == 0
        pipeline.run_until_shutdown.assert_awaited_once_with(shutdown, None)
        pipeline.run_forever.assert_not_called()
        pipeline.publisher.close.assert_awaited_once()
        pipeline.fetcher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_date_implies_single_run(self, storm_config, pipeline):
        shutdown = asyncio.Event()
        await cli.run_producer(storm_config, shutdown, explicit_date="1716764227")

        pipeline.run_until_shutdown.assert_awaited_once_with(shutdown, "1716764227")

    @pytest.mark.asyncio
    async def test_failed_run_exit_code(self, storm_config, pipeline):
        pipeline.run_until_shutdown.side_effect = RuntimeError("feed down")

        code = await cli.run_producer(storm_config, asyncio.Event(), once=True)

        assert code == 1
        pipeline.publisher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_interrupted_run_exit_code(self, storm_config, pipeline):
        pipeline.run_until_shutdown.return_value = None

        code = await cli.run_producer(storm_config, asyncio.Event(), once=True)

        assert code == 1
        pipeline.publisher.close.assert_awaited_once()
        pipeline.fetcher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_scheduled(self, storm_config, pipeline):
        shutdown = asyncio.Event()

        assert await cli.run_producer(storm_config, shutdown) == 0

        pipeline.run_forever.assert_awaited_once_with(shutdown)


class TestBuildPipeline:
    def test_wires_config(self, storm_config):
        storm_config.interval_seconds = 120.0

        pipeline = cli.build_pipeline(storm_config)

        assert pipeline.interval_seconds == 120.0
        assert pipeline.topic == "raw-weather-reports"
        assert pipeline.fetcher.base_url == "https://feeds.example.com/reports/"
        assert pipeline.publisher.config is storm_config


class TestMain:
    def test_config_error_exit_code(self, tmp_path):
        with patch.object(cli, "load_dotenv"):
            code = cli.main(["--config", str(tmp_path / "missing.yaml")])

        assert code == 2


class TestSignals:
    def test_registers_handlers(self):
        loop = MagicMock()
        callback = MagicMock()

        setup_shutdown_signal_handlers(loop, callback)

        loop.add_signal_handler.assert_any_call(signal.SIGTERM, callback, signal.SIGTERM)
        loop.add_signal_handler.assert_any_call(signal.SIGINT, callback, signal.SIGINT)

    @pytest.mark.asyncio
    async def test_first_signal_sets_shutdown_second_cancels(self):
        loop = MagicMock()
        cli.setup_signal_handlers(loop)
        handler = loop.add_signal_handler.call_args.args[1]

        handler(signal.SIGTERM)
        assert cli.get_shutdown_event().is_set()

        task = asyncio.get_running_loop().create_task(asyncio.sleep(10))
        with patch.object(cli.asyncio, "all_tasks", return_value={task}):
            handler(signal.SIGINT)
        with pytest.raises(asyncio.CancelledError):
            await task
