"""Build the LLM inputs from the system prompt + conversation history.

Layers:
    1. System prompt: store persona, plus the tool list when tools are on
    2. Conversation history: from the sender's ConversationContext
"""

from __future__ import annotations

from orderbot.agents.tool_protocol import build_system_prompt
from orderbot.agents.tools import ToolRegistry
from orderbot.handler.session.session import ConversationContext

SYSTEM_PROMPT = """\
You are a helpful WhatsApp assistant for an Australian barbecue meat wholesaler.

You help customers with:
- Browsing our products (smoked beef brisket, pulled beef, pork ribs,
  pulled pork, chicken drumettes and cheese kransky), all sold by the carton.
- Prices, carton sizes and product details.
- Order status, delivery and payment questions.

Keep replies short and friendly, suitable for a chat app. Quote carton
prices in AUD. If a customer wants to order, tell them to reply "order"
and the ordering assistant will guide them. Never invent order details;
look them up with a tool or say you don't know.\
"""


class AgentContextBuilder:
    """Assembles the system prompt and history for an LLM call."""

    def __init__(
        self,
        tools: ToolRegistry | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self._tools = tools
        self._system_prompt = system_prompt or SYSTEM_PROMPT

    def system_prompt(self) -> str:
        """Base prompt, extended with tool instructions when tools are connected."""
        if self._tools is None or not self._tools.is_connected():
            return self._system_prompt
        return build_system_prompt(self._system_prompt, self._tools.list_tools())

    @staticmethod
    def history(context: ConversationContext) -> list[dict]:
        """Prior turns as OpenAI-format dicts (current message excluded)."""
        return context.as_messages()
