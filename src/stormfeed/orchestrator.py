"""
Pipeline orchestrator for storm report ingestion.

One run fetches the tornado, hail and wind feeds concurrently, tags every row
with its category and observation time, and hands the combined batch to the
publisher. Runs are serialized; the schedule loop starts one immediately and
then one per interval until shutdown.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from core.logging.context import set_log_context
from core.logging.setup import generate_run_id
from core.logging.utilities import log_exception, log_with_context
from stormfeed.fetcher import FeedFetcher, parse_target_date
from stormfeed.metrics import record_reports_fetched, record_run
from stormfeed.normalizer import Clock, ReportNormalizer
from stormfeed.parser import parse_rows
from stormfeed.publisher import StormReportPublisher
from stormfeed.types import NormalizedReport, RawReport, StormCategory

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    PUBLISHING = "publishing"
    FAILED = "failed"


@dataclass
class RunResult:
    """Outcome of one successful pipeline run."""

    run_id: str
    state: RunState
    counts: dict[str, int] = field(default_factory=dict)
    published: int = 0
    duration_seconds: float = 0.0
    explicit_date: str | None = None

    @property
    def total_reports(self) -> int:
        return sum(self.counts.values())


class StormReportPipeline:
    """Fetch, normalize and publish storm reports.

    The fetcher and publisher are injected; the pipeline does not close them.
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        publisher: StormReportPublisher,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        topic: str | None = None,
        clock: Clock = time.time,
    ):
        self.fetcher = fetcher
        self.publisher = publisher
        self.interval_seconds = interval_seconds
        self.topic = topic
        self.clock = clock
        self._state = RunState.IDLE
        self._run_lock = asyncio.Lock()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def _fetch_category(self, category: StormCategory, url: str) -> list[RawReport]:
        set_log_context(category=category.value)
        rows = [row async for row in parse_rows(self.fetcher.stream_lines(url))]
        record_reports_fetched(category.value, len(rows))
        log_with_context(
            logger,
            logging.INFO,
            "Fetched feed",
            category=category.value,
            url=url,
            records_processed=len(rows),
        )
        return rows

    async def _fetch_all(self, target_date) -> list[list[RawReport]]:
        # All requests are in flight before any is awaited
        tasks = [
            asyncio.create_task(
                self._fetch_category(category, self.fetcher.feed_url(category, target_date)),
                name=f"fetch-{category.value}",
            )
            for category in StormCategory
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _normalize(
        self,
        fetched: list[list[RawReport]],
        observed_at: str | None,
    ) -> list[NormalizedReport]:
        reports: list[NormalizedReport] = []
        for category, rows in zip(StormCategory, fetched):
            normalizer = ReportNormalizer(category, observed_at=observed_at, clock=self.clock)
            reports.extend(normalizer.normalize(row) for row in rows)
        return reports

    async def run(self, explicit_date: str | None = None) -> RunResult:
        """
        Execute one full fetch, normalize and publish pass.

        Args:
            explicit_date: Backfill date (epoch seconds or YYYY-MM-DD). Selects
                the date-coded feeds and is stamped verbatim as every report's
                ``observedAt``.

        Raises:
            The first fetch/parse error, or DeliveryExhaustedError from the
            publisher. The run is logged and left in ``RunState.FAILED``.
        """
        async with self._run_lock:
            run_id = generate_run_id()
            set_log_context(run_id=run_id)
            start = time.perf_counter()
            counts: dict[str, int] = {}

            logger.info(
                "Starting pipeline run",
                extra={"run_id": run_id, "explicit_date": explicit_date},
            )
            try:
                target_date = parse_target_date(explicit_date) if explicit_date else None

                self._state = RunState.FETCHING
                fetched = await self._fetch_all(target_date)
                counts = {
                    category.value: len(rows) for category, rows in zip(StormCategory, fetched)
                }

                self._state = RunState.NORMALIZING
                reports = self._normalize(fetched, explicit_date)

                self._state = RunState.PUBLISHING
                published = await self.publisher.publish_batch(reports, topic=self.topic)
            except Exception as e:
                self._state = RunState.FAILED
                duration = time.perf_counter() - start
                record_run("failed", duration)
                log_exception(
                    logger,
                    e,
                    "Pipeline run failed",
                    run_id=run_id,
                    state=RunState.FAILED.value,
                    duration_ms=round(duration * 1000, 2),
                )
                raise
            except asyncio.CancelledError:
                self._state = RunState.FAILED
                record_run("cancelled", time.perf_counter() - start)
                logger.warning(
                    "Pipeline run cancelled",
                    extra={"run_id": run_id, "state": RunState.FAILED.value},
                )
                raise
            finally:
                set_log_context(run_id="", category="")

            self._state = RunState.IDLE
            duration = time.perf_counter() - start
            record_run("success", duration)
            result = RunResult(
                run_id=run_id,
                state=self._state,
                counts=counts,
                published=published,
                duration_seconds=duration,
                explicit_date=explicit_date,
            )
            logger.info(
                "Pipeline run complete",
                extra={
                    "run_id": run_id,
                    "records_processed": result.total_reports,
                    "duration_ms": round(duration * 1000, 2),
                },
            )
            return result

    async def run_until_shutdown(
        self,
        shutdown_event: asyncio.Event,
        explicit_date: str | None = None,
    ) -> RunResult | None:
        """
        Execute one run, cancelling it if ``shutdown_event`` is set first.

        Backoff sleeps and connect retries inside the run are abandoned on
        shutdown; reports not yet confirmed stay queued.

        Returns:
            The run result, or None if shutdown cut the run short
        """
        run_task = asyncio.create_task(self.run(explicit_date), name="pipeline-run")
        stop_task = asyncio.create_task(shutdown_event.wait(), name="shutdown-wait")
        try:
            await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not run_task.done():
                logger.warning(
                    "Shutdown requested, cancelling the active run",
                    extra={"state": self._state.value},
                )
                run_task.cancel()
            await asyncio.gather(run_task, stop_task, return_exceptions=True)

        if run_task.cancelled():
            return None
        return run_task.result()

    async def _scheduled_run(self, shutdown_event: asyncio.Event) -> None:
        if self.is_running:
            logger.warning("Previous run still active, skipping scheduled run")
            return
        try:
            await self.run_until_shutdown(shutdown_event)
        except Exception:
            # Already logged by run(); the schedule keeps going
            pass

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        """Run now, then once per interval until ``shutdown_event`` is set."""
        loop = asyncio.get_running_loop()
        logger.info(
            "Starting scheduled runs",
            extra={"interval_seconds": self.interval_seconds},
        )

        next_tick = loop.time()
        while not shutdown_event.is_set():
            await self._scheduled_run(shutdown_event)

            next_tick += self.interval_seconds
            now = loop.time()
            if now >= next_tick:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                logger.warning(
                    "Run outlasted the schedule interval, skipping %d tick(s)",
                    missed,
                    extra={"interval_seconds": self.interval_seconds},
                )
                next_tick += missed * self.interval_seconds

            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=next_tick - now)
            except TimeoutError:
                pass

        logger.info("Scheduled runs stopped")


__all__ = ["RunResult", "RunState", "StormReportPipeline"]
