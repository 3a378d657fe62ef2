"""In-memory conversation store — per-sender dialogue state.

Each sender gets one ConversationContext holding the bounded turn history
and the in-progress order draft. Contexts are created lazily and evicted
least-recently-used once ``max_contexts`` is reached, or swept after
``ttl`` seconds without interaction.

Designed for single-event-loop asyncio with single-flight processing; no
locking needed.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from orderbot.constants import CONTEXT_TTL, MAX_CONTEXTS, MAX_HISTORY_TURNS

if TYPE_CHECKING:
    from orderbot.agents.intents import Intent
    from orderbot.agents.orders import OrderDraft
    from orderbot.store.catalog import Product
    from orderbot.store.orders import Address


@dataclass(frozen=True)
class Turn:
    role: str  # "user" | "assistant"
    content: str
    timestamp: float


@dataclass
class ConversationContext:
    sender_id: str
    history: list[Turn] = field(default_factory=list)
    last_seen: float = field(default_factory=time.time)
    last_intent: Intent | None = None
    order_draft: OrderDraft | None = None
    current_product: Product | None = None
    delivery_address: Address | None = None

    def add_turn(self, role: str, content: str, max_history: int, timestamp: float | None = None) -> None:
        """Append a turn, dropping the oldest ones beyond ``max_history``."""
        self.history.append(
            Turn(
                role=role,
                content=content,
                timestamp=time.time() if timestamp is None else timestamp,
            )
        )
        if len(self.history) > max_history:
            trimmed = len(self.history) - max_history
            self.history = self.history[trimmed:]
            logger.trace("Context {} | trimmed {} old turns", self.sender_id, trimmed)

    def clear_order(self) -> None:
        """Drop the draft and everything collected for it."""
        self.order_draft = None
        self.current_product = None
        self.delivery_address = None

    def as_messages(self) -> list[dict]:
        """History as OpenAI-format message dicts."""
        return [{"role": t.role, "content": t.content} for t in self.history]


class ConversationStore:
    """Maps sender id → ConversationContext with LRU and TTL eviction."""

    def __init__(
        self,
        max_history: int = MAX_HISTORY_TURNS,
        max_contexts: int = MAX_CONTEXTS,
        ttl: float | None = CONTEXT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            max_history:  Turns kept per sender (oldest trimmed first).
            max_contexts: Senders kept before least-recently-used eviction.
            ttl:          Seconds of inactivity after which a context is swept.
                          ``None`` disables the sweep.
        """
        self._contexts: OrderedDict[str, ConversationContext] = OrderedDict()
        self.max_history = max_history
        self._max_contexts = max_contexts
        self._ttl = ttl
        self._clock = clock

    def get_or_create(self, sender_id: str) -> ConversationContext:
        """Return the sender's context, creating it on first contact."""
        now = self._clock()
        self.sweep(now)

        context = self._contexts.get(sender_id)
        if context is None:
            context = ConversationContext(sender_id=sender_id, last_seen=now)
            self._contexts[sender_id] = context
            self._evict_overflow()
            logger.debug("Context {} created (total: {})", sender_id, len(self._contexts))
        else:
            self._contexts.move_to_end(sender_id)
            context.last_seen = now
        return context

    def get(self, sender_id: str) -> ConversationContext | None:
        return self._contexts.get(sender_id)

    def add_turn(self, sender_id: str, role: str, content: str) -> None:
        self.get_or_create(sender_id).add_turn(
            role, content, self.max_history, timestamp=self._clock()
        )

    def get_history(self, sender_id: str) -> list[Turn]:
        """Return the turn history for a sender (copy)."""
        context = self._contexts.get(sender_id)
        return list(context.history) if context else []

    def clear(self, sender_id: str) -> None:
        """Forget everything about a sender."""
        self._contexts.pop(sender_id, None)
        logger.debug("Context {} cleared", sender_id)

    def sweep(self, now: float | None = None) -> int:
        """Drop contexts idle for longer than the TTL. Returns how many went."""
        if self._ttl is None:
            return 0
        now = self._clock() if now is None else now
        stale = [
            sid for sid, ctx in self._contexts.items() if now - ctx.last_seen > self._ttl
        ]
        for sid in stale:
            del self._contexts[sid]
        if stale:
            logger.debug("Swept {} idle contexts", len(stale))
        return len(stale)

    @property
    def active_contexts(self) -> int:
        """Number of senders with stored state."""
        return len(self._contexts)

    def __contains__(self, sender_id: str) -> bool:
        return sender_id in self._contexts

    def _evict_overflow(self) -> None:
        while len(self._contexts) > self._max_contexts:
            sid, _ = self._contexts.popitem(last=False)
            logger.debug("Context {} evicted (LRU)", sid)
