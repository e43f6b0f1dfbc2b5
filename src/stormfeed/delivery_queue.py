"""
In-process delivery queue for outbound storm reports.

Messages leave the head only once their send is confirmed. A failed send puts
the message back at the head, so it blocks everything queued behind it until
a later drain succeeds. Payloads over the size ceiling are rejected at
enqueue time and never sent.
"""

import asyncio
import json
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from config.config import DEFAULT_MAX_MESSAGE_BYTES
from core.errors.exceptions import OversizeMessageError
from core.utils.json_serializers import json_serializer
from stormfeed.metrics import record_oversize_message, update_queue_depth
from stormfeed.types import CATEGORY_FIELD, NormalizedReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedMessage:
    """A normalized report and its serialized UTF-8 JSON payload."""

    report: NormalizedReport
    payload: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.payload)


def serialize_report(report: NormalizedReport) -> bytes:
    return json.dumps(report, default=json_serializer, ensure_ascii=False).encode("utf-8")


class DeliveryQueue:
    """Strict FIFO buffer of messages awaiting broker confirmation."""

    def __init__(self, max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES):
        self.max_message_bytes = max_message_bytes
        self._messages: deque[QueuedMessage] = deque()
        self._drain_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._messages)

    def _create_message(self, report: NormalizedReport) -> QueuedMessage:
        payload = serialize_report(report)
        if len(payload) > self.max_message_bytes:
            raise OversizeMessageError(
                len(payload),
                self.max_message_bytes,
                context={"category": report.get(CATEGORY_FIELD)},
            )
        return QueuedMessage(report=report, payload=payload)

    def enqueue(self, report: NormalizedReport) -> bool:
        """
        Serialize and append a report to the tail.

        Returns:
            True if queued, False if the payload exceeded the size ceiling
            (the report is logged and dropped)
        """
        try:
            message = self._create_message(report)
        except OversizeMessageError as e:
            record_oversize_message()
            logger.warning(
                "Dropping oversize report",
                extra={
                    "category": e.context.get("category"),
                    "size_bytes": e.size_bytes,
                    "max_bytes": e.max_bytes,
                },
            )
            return False

        self._messages.append(message)
        update_queue_depth(len(self._messages))
        return True

    def peek(self) -> QueuedMessage | None:
        return self._messages[0] if self._messages else None

    def clear(self) -> None:
        self._messages.clear()
        update_queue_depth(0)

    async def drain(self, send_one: Callable[[QueuedMessage], Awaitable[object]]) -> int:
        """
        Send queued messages in order until the queue is empty.

        Each message is removed from the head before its send and discarded on
        success. If ``send_one`` raises, the message goes back to the head,
        draining stops and the error propagates.

        Returns:
            Number of messages confirmed by this drain
        """
        sent = 0
        async with self._drain_lock:
            while self._messages:
                message = self._messages.popleft()
                try:
                    await send_one(message)
                except BaseException:
                    self._messages.appendleft(message)
                    update_queue_depth(len(self._messages))
                    raise
                sent += 1
                update_queue_depth(len(self._messages))
        return sent


__all__ = ["DeliveryQueue", "QueuedMessage", "serialize_report"]
