"""FIFO single-flight work queue with exponential-backoff retry.

Inbound messages are appended to the tail and applied to their processor one
at a time, strictly in arrival order. A failing head item is retried in place
(1s, 2s, 4s with the default constants) and blocks everything behind it until
it succeeds or exhausts its retries, after which it is dropped.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from orderbot.constants import QUEUE_BASE_RETRY_DELAY, QUEUE_MAX_RETRIES

from .messages import InboundMessage

MessageProcessor = Callable[[InboundMessage], Awaitable[None]]


@dataclass
class QueueItem:
    message: InboundMessage
    processor: MessageProcessor
    retry_count: int = 0


class MessageQueue:
    def __init__(
        self,
        max_retries: int = QUEUE_MAX_RETRIES,
        base_delay: float = QUEUE_BASE_RETRY_DELAY,
        on_drop: Callable[[InboundMessage], None] | None = None,
    ) -> None:
        """
        Args:
            max_retries: Retries after the first failed attempt.
            base_delay:  Backoff base in seconds (delay = base * 2^(n-1)).
            on_drop:     Called with the message when retries are exhausted.
        """
        self._items: deque[QueueItem] = deque()
        self._processing = False
        self._task: asyncio.Task | None = None
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._on_drop = on_drop
        logger.info("MessageQueue initialized")

    def enqueue(self, message: InboundMessage, processor: MessageProcessor) -> None:
        """Append a message and start the processing loop if it is idle.

        Must be called from inside a running event loop. Never blocks.
        """
        self._items.append(QueueItem(message=message, processor=processor))
        logger.info(
            "Message {} enqueued. Queue length: {}",
            message.message_id,
            len(self._items),
        )

        if not self._processing:
            self._processing = True
            self._task = asyncio.get_running_loop().create_task(
                self._process_queue(), name="message-queue"
            )

    async def _process_queue(self) -> None:
        try:
            while self._items:
                item = self._items[0]
                try:
                    await item.processor(item.message)
                except Exception as exc:
                    await self._handle_processing_error(item, exc)
                    continue

                logger.info("Successfully processed message {}", item.message.message_id)
                self._remove_head(item)

            logger.info("Queue processing completed")
        finally:
            # A cleared queue may already have a new loop running.
            if self._task is asyncio.current_task():
                self._processing = False
                self._task = None

    async def _handle_processing_error(self, item: QueueItem, exc: Exception) -> None:
        logger.error("Error processing message {}: {}", item.message.message_id, exc)

        if item.retry_count < self._max_retries:
            item.retry_count += 1
            delay = self.calculate_retry_delay(item.retry_count)
            logger.info(
                "Retrying message {} (attempt {}) in {}s",
                item.message.message_id,
                item.retry_count,
                delay,
            )
            await asyncio.sleep(delay)
            return

        logger.error(
            "Max retries reached for message {}. Removing from queue.",
            item.message.message_id,
        )
        self._remove_head(item)
        if self._on_drop is not None:
            self._on_drop(item.message)

    def _remove_head(self, item: QueueItem) -> None:
        if self._items and self._items[0] is item:
            self._items.popleft()

    def calculate_retry_delay(self, retry_count: int) -> float:
        """Exponential backoff: base_delay * 2^(retry_count - 1)."""
        return self._base_delay * (2 ** (retry_count - 1))

    async def join(self) -> None:
        """Wait until the queue is drained (useful for shutdown and tests)."""
        while self._task is not None:
            await asyncio.shield(self._task)

    def clear_queue(self) -> None:
        """Drop all pending items and stop the processing loop."""
        self._items.clear()
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._processing = False
        logger.info("Queue cleared")

    def get_queue_length(self) -> int:
        return len(self._items)

    def is_queue_processing(self) -> bool:
        return self._processing
