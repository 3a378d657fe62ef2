"""Message handler: one inbound message in, one reply out.

This is the core processing step of orderbot. It sits between the
message queue and the dialogue components, orchestrating:
    1. Rate limiting
    2. Per-sender context lookup (and the /clear command)
    3. Order dialogue, scripted replies, or the LLM-with-tools path
    4. Turn history bookkeeping

``handle`` never raises; any failure becomes a generic apology so a
deterministic bug cannot wedge the single-flight queue.
"""

from __future__ import annotations

from loguru import logger

from orderbot.agents import tool_protocol
from orderbot.agents.context import AgentContextBuilder
from orderbot.agents.intents import Intent, classify_intent
from orderbot.agents.orders import OrderDialogue
from orderbot.agents.responses import Reply, ScriptedResponder
from orderbot.agents.tools import ToolRegistry
from orderbot.constants import DEFAULT_IMAGE_PROMPT, ERROR_REPLY, RATE_LIMITED_REPLY
from orderbot.handler.messages import InboundMessage, MessageKind, OutboundMessage
from orderbot.handler.rate_limiter import RateLimiter
from orderbot.handler.session.session import ConversationContext, ConversationStore
from orderbot.providers.llm.base import BaseLLMProvider

CLEARED_REPLY = "🗑️ Conversation cleared. Let's start fresh!"


class MessageHandler:
    """Turns an InboundMessage into the OutboundMessage to send back."""

    def __init__(
        self,
        conversations: ConversationStore,
        rate_limiter: RateLimiter,
        dialogue: OrderDialogue,
        responder: ScriptedResponder,
        llm: BaseLLMProvider | None = None,
        tools: ToolRegistry | None = None,
        use_llm: bool = False,
        llm_all_intents: bool = False,
        context_builder: AgentContextBuilder | None = None,
    ) -> None:
        """
        Args:
            use_llm:         Answer general inquiries (and images) with the LLM.
            llm_all_intents: Route every non-order intent to the LLM instead of
                             the scripted replies. Needs ``use_llm``.
        """
        self._conversations = conversations
        self._rate_limiter = rate_limiter
        self._dialogue = dialogue
        self._responder = responder
        self._llm = llm
        self._tools = tools
        self._use_llm = use_llm and llm is not None
        self._llm_all_intents = llm_all_intents
        self._context_builder = context_builder or AgentContextBuilder(tools)

    async def handle(self, msg: InboundMessage) -> OutboundMessage:
        if not self._rate_limiter.check(msg.sender_id):
            return self._outbound(msg, Reply(RATE_LIMITED_REPLY))

        try:
            reply = await self._process(msg)
        except Exception:
            logger.exception("Error handling message {} from {}", msg.message_id, msg.sender_id)
            reply = Reply(ERROR_REPLY)

        return self._outbound(msg, reply)

    async def _process(self, msg: InboundMessage) -> Reply:
        context = self._conversations.get_or_create(msg.sender_id)
        text = (msg.content or "").strip()

        if msg.metadata.get("command") == "clear" or text.lower() == "/clear":
            self._conversations.clear(msg.sender_id)
            logger.info("Context cleared for {}", msg.sender_id)
            return Reply(CLEARED_REPLY)

        intent = classify_intent(text)
        if context.order_draft is not None or intent is Intent.PLACE_ORDER:
            logger.info("Order dialogue for {} (intent={})", msg.sender_id, intent.value)
            reply = await self._dialogue.handle(text, context)
            intent = Intent.PLACE_ORDER
        elif self._routes_to_llm(intent, msg):
            logger.info("LLM reply for {} (intent={})", msg.sender_id, intent.value)
            reply = Reply(await self._llm_reply(msg, text, context))
        else:
            logger.info("Scripted reply for {} (intent={})", msg.sender_id, intent.value)
            reply = await self._dispatch(intent, text, msg.sender_id)

        context.last_intent = intent
        max_history = self._conversations.max_history
        context.add_turn("user", text or f"[{msg.kind.value}]", max_history)
        context.add_turn("assistant", reply.content, max_history)
        return reply

    def _routes_to_llm(self, intent: Intent, msg: InboundMessage) -> bool:
        if not self._use_llm:
            return False
        if msg.kind is MessageKind.IMAGE and msg.media_ref:
            return True
        return self._llm_all_intents or intent is Intent.GENERAL_INQUIRY

    async def _dispatch(self, intent: Intent, text: str, sender_id: str) -> Reply:
        if intent is Intent.BROWSE_PRODUCTS:
            return await self._responder.browse_products()
        if intent is Intent.PRODUCT_INQUIRY:
            return await self._responder.product_inquiry(text)
        if intent is Intent.ORDER_STATUS:
            return await self._responder.order_status(sender_id)
        if intent is Intent.CANCEL_ORDER:
            return await self._responder.cancel_order(sender_id)
        if intent is Intent.DELIVERY_INQUIRY:
            return await self._responder.delivery_inquiry(sender_id)
        if intent is Intent.PAYMENT:
            return await self._responder.payment()
        return await self._responder.general_inquiry()

    async def _llm_reply(self, msg: InboundMessage, text: str, context: ConversationContext) -> str:
        if msg.kind is MessageKind.IMAGE and msg.media_ref:
            prompt = msg.caption or text or DEFAULT_IMAGE_PROMPT
            response = await self._llm.process_image_query(prompt, msg.media_ref)
        else:
            response = await self._llm.generate_response(
                text,
                use_advanced_model=self._llm.is_complex_query(text),
                system_prompt=self._context_builder.system_prompt(),
                history=self._context_builder.history(context),
            )
        logger.debug("LLM raw reply for {}: {:.200}", msg.sender_id, response)
        return await tool_protocol.apply(response, self._tools)

    @staticmethod
    def _outbound(msg: InboundMessage, reply: Reply) -> OutboundMessage:
        return OutboundMessage(
            recipient_id=msg.sender_id,
            content=reply.content,
            channel=msg.channel,
            quick_replies=list(reply.quick_replies),
            metadata={"in_reply_to": msg.message_id},
        )
