# channel: connect/disconnect, send, hand inbound messages to the handler

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from loguru import logger

from orderbot.handler.messages import InboundMessage, OutboundMessage

InboundCallback = Callable[[InboundMessage], None]


class ChannelError(RuntimeError):
    """A channel failed to deliver an outbound message."""


class BaseChannelHandler(ABC):
    name: str = "base"

    def __init__(
        self,
        on_inbound: InboundCallback | None = None,
        config: dict | None = None,
    ):
        self._running = False
        self._on_inbound = on_inbound
        self._config = config or {}

    def set_inbound_callback(self, callback: InboundCallback) -> None:
        self._on_inbound = callback

    @abstractmethod
    async def connect(self):
        """Establish connection to the channel."""
        pass

    @abstractmethod
    async def disconnect(self):
        """Terminate connection to the channel."""
        pass

    @abstractmethod
    async def send_message(self, message: OutboundMessage):
        """Send a message to the channel. Raises ChannelError on failure."""
        pass

    async def fetch_media(self, media_ref: str) -> str:
        """Turn a channel media reference into something an LLM can read."""
        return media_ref

    def _publish_inbound(self, message: InboundMessage) -> None:
        """Hand an inbound message to whoever consumes this channel."""
        if self._on_inbound is None:
            logger.warning("Channel '{}' has no inbound consumer; dropping {}", self.name, message.message_id)
            return
        self._on_inbound(message)

    @property
    def is_running(self) -> bool:
        """Return True if the handler is running, False otherwise."""
        return self._running
