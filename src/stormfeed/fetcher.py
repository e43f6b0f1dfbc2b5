"""
Feed fetcher for the remote storm report CSV files.

Streams a feed over HTTP with aiohttp and yields decoded text lines as they
arrive. Failures of any kind (network, timeout, non-2xx status, undecodable
body) surface as FetchError; this layer does not retry.
"""

import logging
import time
from collections.abc import AsyncIterator
from datetime import UTC, date, datetime

import aiohttp

from config.config import DEFAULT_FEED_BASE_URL
from core.errors.exceptions import FetchError
from stormfeed.types import StormCategory

logger = logging.getLogger(__name__)


def parse_target_date(value: str) -> date:
    """
    Resolve a backfill date argument to a calendar date.

    Accepts unix epoch seconds (``"1716764227"``) or an ISO date
    (``"2024-05-26"``). Epoch values are interpreted in UTC.

    Raises:
        ValueError: If the value is neither form
    """
    text = value.strip()
    if text.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(text), UTC).date()
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(
            f"Invalid date '{value}': expected epoch seconds or YYYY-MM-DD"
        ) from None


def format_yymmdd(target: date) -> str:
    return target.strftime("%y%m%d")


def build_feed_url(
    base_url: str,
    category: StormCategory,
    target_date: date | None = None,
) -> str:
    """
    Build the feed URL for one category.

    Today's feeds are ``today_<suffix>.csv``; historical feeds are
    ``<YYMMDD>_rpts_<suffix>.csv``.
    """
    if not base_url.endswith("/"):
        base_url = base_url + "/"
    if target_date is None:
        return f"{base_url}today_{category.feed_suffix}.csv"
    return f"{base_url}{format_yymmdd(target_date)}_rpts_{category.feed_suffix}.csv"


class FeedFetcher:
    """Streams remote CSV feeds as text lines.

    The aiohttp session is created lazily on first use and closed by
    ``close()``. A caller-provided session is used as-is and never closed here.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_FEED_BASE_URL,
        connect_timeout_seconds: float = 10.0,
        read_timeout_seconds: float = 60.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url
        self.connect_timeout_seconds = connect_timeout_seconds
        self.read_timeout_seconds = read_timeout_seconds
        self._session = session
        self._owns_session = session is None

    def feed_url(self, category: StormCategory, target_date: date | None = None) -> str:
        return build_feed_url(self.base_url, category, target_date)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(
                total=None,
                sock_connect=self.connect_timeout_seconds,
                sock_read=self.read_timeout_seconds,
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def stream_lines(self, url: str) -> AsyncIterator[str]:
        """
        Stream the resource at ``url`` as decoded text lines.

        Line terminators (``\\n`` and ``\\r\\n``) are stripped. Lines are
        yielded as the body arrives; nothing is buffered beyond one line.

        Raises:
            FetchError: On network failure, timeout, non-2xx status, a body
                that is not valid UTF-8 or a line too long to buffer
        """
        session = self._get_session()
        start = time.perf_counter()
        line_count = 0

        logger.debug("Fetching feed", extra={"url": url})
        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(
                        f"HTTP {response.status} fetching feed",
                        url=url,
                        status_code=response.status,
                    )

                async for raw_line in response.content:
                    try:
                        line = raw_line.decode("utf-8")
                    except UnicodeDecodeError as e:
                        raise FetchError(
                            f"Feed body is not valid UTF-8 at line {line_count + 1}",
                            url=url,
                            cause=e,
                        ) from e
                    line_count += 1
                    yield line.rstrip("\r\n")

        except TimeoutError as e:
            raise FetchError(
                f"Timed out fetching feed after {self.read_timeout_seconds}s",
                url=url,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Connection error fetching feed: {e}", url=url, cause=e) from e
        except ValueError as e:
            # aiohttp refuses lines longer than its read buffer ("Chunk too big")
            raise FetchError(
                f"Feed line {line_count + 1} could not be read: {e}",
                url=url,
                cause=e,
            ) from e

        logger.debug(
            "Feed fetched",
            extra={
                "url": url,
                "records_processed": line_count,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    async def close(self) -> None:
        """Close the owned HTTP session. Safe to call repeatedly."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None


__all__ = [
    "FeedFetcher",
    "build_feed_url",
    "format_yymmdd",
    "parse_target_date",
]
