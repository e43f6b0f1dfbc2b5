"""
Report processor worker.

Consumes raw storm reports, coerces them into StormReport and republishes them
to the processed topic. Records that cannot be transformed are logged and
skipped; offsets are committed after every fetched batch.
"""

import asyncio
import itertools
import logging

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.structs import ConsumerRecord

from config.config import StormFeedConfig
from core.errors.exceptions import TransformError
from core.logging.utilities import log_exception
from stormfeed.kafka_config import build_consumer_config, build_producer_config
from stormfeed.metrics import (
    record_message_produced,
    record_processor_outcome,
    update_connection_status,
)
from stormfeed.processor.transform import transform_message

logger = logging.getLogger(__name__)

POLL_TIMEOUT_MS = 1000


class ReportProcessor:
    """Raw-topic to processed-topic ETL worker."""

    def __init__(self, config: StormFeedConfig):
        self.config = config
        self.group_id = config.get_consumer_group()
        self._consumer: AIOKafkaConsumer | None = None
        self._producer: AIOKafkaProducer | None = None

    async def start(self) -> None:
        logger.info(
            "Starting report processor",
            extra={
                "topic": self.config.raw_topic,
                "group_id": self.group_id,
                "bootstrap_servers": self.config.bootstrap_servers,
            },
        )
        producer_config = build_producer_config(self.config)
        producer_config["client_id"] = f"{self.config.client_id}-processor"

        self._producer = AIOKafkaProducer(**producer_config)
        await self._producer.start()
        update_connection_status("processor_producer", connected=True)

        self._consumer = AIOKafkaConsumer(self.config.raw_topic, **build_consumer_config(self.config))
        await self._consumer.start()
        update_connection_status("processor_consumer", connected=True)

    async def stop(self) -> None:
        """Stop consumer and producer; errors are logged, not raised."""
        consumer, self._consumer = self._consumer, None
        producer, self._producer = self._producer, None

        if consumer is not None:
            try:
                await consumer.stop()
            except Exception as e:
                log_exception(logger, e, "Error stopping processor consumer", level=logging.WARNING)
            finally:
                update_connection_status("processor_consumer", connected=False)

        if producer is not None:
            try:
                await producer.stop()
            except Exception as e:
                log_exception(logger, e, "Error stopping processor producer", level=logging.WARNING)
            finally:
                update_connection_status("processor_producer", connected=False)

        logger.info("Report processor stopped")

    async def process_message(self, message: ConsumerRecord) -> bool:
        """
        Transform one raw message and publish the result.

        Returns:
            True if the processed report was published
        """
        try:
            payload = transform_message(message.value)
        except TransformError as e:
            record_processor_outcome("rejected")
            log_exception(
                logger,
                e,
                "Skipping raw report that could not be transformed",
                level=logging.WARNING,
                include_traceback=False,
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
            )
            return False

        try:
            await self._producer.send_and_wait(self.config.processed_topic, value=payload)
        except Exception as e:
            record_processor_outcome("failed")
            record_message_produced(
                self.config.processed_topic, success=False, error_type=type(e).__name__
            )
            log_exception(
                logger,
                e,
                "Failed to publish processed report",
                topic=self.config.processed_topic,
                partition=message.partition,
                offset=message.offset,
            )
            return False

        record_processor_outcome("processed")
        record_message_produced(self.config.processed_topic)
        logger.debug(
            "Processed report published",
            extra={"topic": self.config.processed_topic, "offset": message.offset},
        )
        return True

    async def _process_batch(self) -> int:
        data = await self._consumer.getmany(timeout_ms=POLL_TIMEOUT_MS)
        if not data:
            return 0

        processed = 0
        for message in itertools.chain.from_iterable(data.values()):
            if await self.process_message(message):
                processed += 1
        await self._consumer.commit()
        return processed

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Consume until ``shutdown_event`` is set, then stop cleanly."""
        try:
            await self.start()
            while not shutdown_event.is_set():
                try:
                    processed = await self._process_batch()
                except asyncio.CancelledError:
                    logger.info("Processor loop cancelled")
                    raise
                except Exception:
                    logger.error("Error in processor loop", exc_info=True)
                    await asyncio.sleep(1)
                    continue
                if processed:
                    logger.info(
                        "Processed batch",
                        extra={"records_processed": processed, "group_id": self.group_id},
                    )
        finally:
            await self.stop()


__all__ = ["ReportProcessor"]
