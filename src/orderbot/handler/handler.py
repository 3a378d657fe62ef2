# roles: channel connections, inbound queueing, reply delivery.

from __future__ import annotations

import dataclasses

from loguru import logger

from orderbot.agents.message_handler import MessageHandler
from orderbot.constants import QUEUE_BASE_RETRY_DELAY, QUEUE_MAX_RETRIES
from orderbot.handler.channels.base import BaseChannelHandler, ChannelError
from orderbot.handler.message_queue import MessageQueue
from orderbot.handler.messages import InboundMessage, MessageKind, OutboundMessage


class CommunicationHandler:
    """Orchestrator that owns the channels and the inbound MessageQueue.

    Responsibilities:
        1. **Channel connections**: connect/disconnect every registered channel.
        2. **Inbound transport**: channels hand messages to ``receive``, which
           enqueues them for single-flight processing.
        3. **Reply delivery**: the queue processor runs the MessageHandler and
           sends its reply back through the originating channel. A failed send
           raises, so the queue retries the whole message.

    Replies are cached per message id until sent, so a retry after a failed
    send re-delivers the same reply instead of advancing the dialogue twice.
    """

    def __init__(
        self,
        message_handler: MessageHandler,
        channels: dict[str, BaseChannelHandler] | None = None,
        max_retries: int = QUEUE_MAX_RETRIES,
        base_delay: float = QUEUE_BASE_RETRY_DELAY,
    ):
        self.message_handler = message_handler
        self.queue = MessageQueue(max_retries, base_delay, on_drop=self._forget)
        self.channels: dict[str, BaseChannelHandler] = {}
        self._pending_replies: dict[str, OutboundMessage] = {}

        for name, channel in (channels or {}).items():
            self.add_channel(name, channel)

    def add_channel(self, name: str, channel: BaseChannelHandler) -> None:
        channel.set_inbound_callback(self.receive)
        self.channels[name] = channel
        logger.info("Registered channel: {} ({})", name, type(channel).__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Connect all channels."""
        for name, channel in self.channels.items():
            await channel.connect()
            logger.info("Channel '{}' connected", name)
        logger.info("CommunicationHandler started")

    async def stop(self):
        """Drain the queue, then disconnect channels."""
        await self.queue.join()
        for name, channel in self.channels.items():
            await channel.disconnect()
            logger.info("Channel '{}' disconnected", name)
        logger.info("CommunicationHandler stopped")

    # ------------------------------------------------------------------
    # Message flow
    # ------------------------------------------------------------------

    def receive(self, message: InboundMessage) -> None:
        """Inbound entry point for channels. Never blocks."""
        self.queue.enqueue(message, self.process)

    async def process(self, message: InboundMessage) -> None:
        reply = self._pending_replies.get(message.message_id)
        if reply is None:
            message = await self._resolve_media(message)
            reply = await self.message_handler.handle(message)
            self._pending_replies[message.message_id] = reply

        channel = self.channels.get(message.channel)
        if channel is None:
            self._pending_replies.pop(message.message_id, None)
            logger.error("No channel '{}' to reply to message {}", message.channel, message.message_id)
            return

        await channel.send_message(reply)
        self._pending_replies.pop(message.message_id, None)
        logger.debug("Reply to {} sent via {}", message.message_id, message.channel)

    async def _resolve_media(self, message: InboundMessage) -> InboundMessage:
        if message.kind is not MessageKind.IMAGE or not message.media_ref:
            return message
        if message.media_ref.startswith(("http://", "https://", "data:")):
            return message

        channel = self.channels.get(message.channel)
        if channel is None:
            return message
        try:
            media_ref = await channel.fetch_media(message.media_ref)
        except ChannelError as exc:
            logger.warning("Media for {} unavailable: {}", message.message_id, exc)
            return dataclasses.replace(message, media_ref=None)
        return dataclasses.replace(message, media_ref=media_ref)

    def _forget(self, message: InboundMessage) -> None:
        self._pending_replies.pop(message.message_id, None)
