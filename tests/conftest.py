"""
pytest configuration for stormfeed tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from config.config import StormFeedConfig  # noqa: E402
from core.logging.context import clear_log_context  # noqa: E402


@pytest.fixture
def storm_config() -> StormFeedConfig:
    """Config pointing at a local broker with fast retry settings."""
    return StormFeedConfig(
        bootstrap_servers="localhost:9092",
        raw_topic="raw-weather-reports",
        processed_topic="processed-weather-reports",
        feed_base_url="https://feeds.example.com/reports/",
        connect_retries=0,
        retry_max_attempts=5,
        retry_base_delay_seconds=1.0,
        close_timeout_seconds=0.5,
    )


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    clear_log_context()


class AsyncLines:
    """Async iterable over a fixed list of items (feed lines or body chunks)."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._items:
            yield item


def lines_of(text: str) -> AsyncLines:
    """Split feed text into lines the way the fetcher yields them."""
    return AsyncLines(text.splitlines())


@pytest.fixture
def make_lines():
    """Factory turning feed text into an async line stream."""
    return lines_of


@pytest.fixture
def make_chunks():
    """Factory wrapping raw byte lines as an aiohttp-like response body."""
    return AsyncLines
