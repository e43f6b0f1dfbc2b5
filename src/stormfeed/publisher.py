"""Broker publisher: owns the Kafka producer and drains the delivery queue into it."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Iterable
from typing import Any

from aiokafka import AIOKafkaProducer

from config.config import StormFeedConfig
from core.errors.exceptions import BrokerConnectionError, DeliveryExhaustedError
from core.logging.utilities import log_exception
from core.resilience.retry import RetryConfig, with_retry_async
from stormfeed.delivery_queue import DeliveryQueue, QueuedMessage
from stormfeed.kafka_config import build_producer_config
from stormfeed.metrics import record_message_produced, update_connection_status
from stormfeed.types import NormalizedReport

logger = logging.getLogger(__name__)

CONNECT_MAX_DELAY_SECONDS = 30.0


class StormReportPublisher:
    """Publishes normalized storm reports to Kafka.

    The producer is started lazily by the first publish and kept for later
    batches. Every batch goes through the delivery queue, so reports left
    over from a failed batch are sent first, in order, by the next one.
    """

    def __init__(self, config: StormFeedConfig, queue: DeliveryQueue | None = None):
        self.config = config
        self.queue = queue if queue is not None else DeliveryQueue(config.max_message_bytes)
        self._producer: AIOKafkaProducer | None = None
        self._connect_lock = asyncio.Lock()

        self.delivery_retry = RetryConfig(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay_seconds,
            max_delay=config.retry_max_delay_seconds,
            exponential_base=2.0,
            jitter=False,
            # Connect and drain is retried as a unit whatever the failure
            respect_permanent=False,
        )
        self.connect_retry = RetryConfig(
            max_attempts=config.connect_retries + 1,
            base_delay=config.connect_retry_delay_ms / 1000,
            max_delay=CONNECT_MAX_DELAY_SECONDS,
            exponential_base=2.0,
            jitter=False,
        )

    @property
    def is_connected(self) -> bool:
        return self._producer is not None

    async def _start_producer(self, producer_config: dict[str, Any]) -> AIOKafkaProducer:
        producer = AIOKafkaProducer(**producer_config)
        try:
            await producer.start()
        except BaseException:
            with contextlib.suppress(Exception):
                await producer.stop()
            raise
        return producer

    async def ensure_connected(self) -> None:
        """
        Start the Kafka producer if it is not already running.

        Raises:
            BrokerConnectionError: If the broker could not be reached after the
                configured connect retries
        """
        async with self._connect_lock:
            if self._producer is not None:
                return

            producer_config = build_producer_config(self.config)
            logger.info(
                "Connecting to Kafka",
                extra={
                    "bootstrap_servers": self.config.bootstrap_servers,
                    "max_attempts": self.connect_retry.max_attempts,
                },
            )

            start = with_retry_async(config=self.connect_retry)(self._start_producer)
            try:
                self._producer = await start(producer_config)
            except Exception as e:
                update_connection_status("producer", connected=False)
                raise BrokerConnectionError(
                    f"Could not connect to Kafka at {self.config.bootstrap_servers}",
                    cause=e,
                    context={"bootstrap_servers": self.config.bootstrap_servers},
                ) from e

            update_connection_status("producer", connected=True)
            logger.info(
                "Connected to Kafka",
                extra={"bootstrap_servers": self.config.bootstrap_servers},
            )

    async def _send(self, topic: str, message: QueuedMessage) -> None:
        try:
            await self._producer.send_and_wait(topic, value=message.payload)
        except Exception as e:
            record_message_produced(topic, success=False, error_type=type(e).__name__)
            raise
        record_message_produced(topic)

    async def publish_batch(
        self,
        reports: Iterable[NormalizedReport],
        topic: str | None = None,
    ) -> int:
        """
        Queue a batch of reports and deliver the whole queue to ``topic``.

        Reports are queued exactly once; only the connect-and-drain step is
        retried, so a message confirmed on an earlier attempt is never resent.

        Returns:
            Number of messages confirmed by the broker during this call

        Raises:
            DeliveryExhaustedError: If delivery still failed after the last retry
                attempt; undelivered messages stay queued
        """
        topic = topic or self.config.raw_topic
        leftover = len(self.queue)
        accepted = 0
        rejected = 0
        for report in reports:
            if self.queue.enqueue(report):
                accepted += 1
            else:
                rejected += 1

        logger.info(
            "Publishing batch",
            extra={
                "topic": topic,
                "batch_size": accepted,
                "records_skipped": rejected,
                "pending": len(self.queue),
            },
        )
        if leftover:
            logger.info(
                "Delivering reports left over from a previous batch first",
                extra={"topic": topic, "pending": leftover},
            )

        if not len(self.queue):
            return 0

        attempts = 0

        async def connect_and_drain() -> int:
            nonlocal attempts
            attempts += 1
            await self.ensure_connected()
            return await self.queue.drain(lambda message: self._send(topic, message))

        start = time.perf_counter()
        deliver = with_retry_async(config=self.delivery_retry)(connect_and_drain)
        try:
            sent = await deliver()
        except Exception as e:
            pending = len(self.queue)
            log_exception(
                logger,
                e,
                "Batch delivery failed",
                topic=topic,
                pending=pending,
                attempt=attempts,
                max_attempts=self.delivery_retry.max_attempts,
            )
            # Start from a fresh connection on the next batch
            await self.close()
            raise DeliveryExhaustedError(
                f"Delivery to {topic} failed with {pending} reports still queued",
                attempts=attempts,
                pending=pending,
                cause=e,
            ) from e

        logger.info(
            "Batch published",
            extra={
                "topic": topic,
                "records_processed": sent,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return sent

    async def close(self) -> None:
        """
        Stop the producer, waiting at most ``close_timeout_seconds``.

        Safe to call any number of times, connected or not. Never raises;
        disconnect failures are logged as warnings.
        """
        producer = self._producer
        self._producer = None
        if producer is None:
            logger.debug("Publisher already closed")
            return

        logger.info("Closing Kafka producer")
        try:
            await asyncio.wait_for(producer.stop(), timeout=self.config.close_timeout_seconds)
        except Exception as e:
            log_exception(
                logger,
                e,
                "Error while closing Kafka producer",
                level=logging.WARNING,
                include_traceback=False,
            )
        else:
            logger.info("Kafka producer closed")
        finally:
            update_connection_status("producer", connected=False)


__all__ = ["StormReportPublisher"]
