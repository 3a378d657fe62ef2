"""Integration tests for MessageHandler: rate limit → context → dialogue / replies / LLM."""

import itertools
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from orderbot.agents.message_handler import CLEARED_REPLY, MessageHandler
from orderbot.agents.orders import OrderDialogue, OrderStage
from orderbot.agents.responses import ScriptedResponder
from orderbot.agents.tools import ToolRegistry
from orderbot.constants import ERROR_REPLY, RATE_LIMITED_REPLY
from orderbot.handler.messages import InboundMessage, MessageKind
from orderbot.handler.rate_limiter import RateLimiter
from orderbot.handler.session.session import ConversationStore
from orderbot.providers.llm import LLMError
from orderbot.store.catalog import ProductCatalog
from orderbot.store.customers import CustomerStore
from orderbot.store.orders import OrderStore
from orderbot.tools import ProductSearchTool

SENDER = "61400000001"
_ids = itertools.count(1)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog():
    return ProductCatalog()


@pytest.fixture
def orders(catalog):
    return OrderStore(catalog)


@pytest.fixture
def conversations():
    return ConversationStore(max_history=20)


@pytest.fixture
def responder(catalog, orders):
    return ScriptedResponder(catalog, orders)


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.generate_response = AsyncMock(return_value="Happy to help!")
    llm.process_image_query = AsyncMock(return_value="That looks like brisket.")
    llm.is_complex_query = MagicMock(return_value=False)
    return llm


def _build(catalog, orders, conversations, responder, **kwargs):
    return MessageHandler(
        conversations=conversations,
        rate_limiter=kwargs.pop("rate_limiter", RateLimiter(max_messages=30)),
        dialogue=OrderDialogue(catalog, orders, CustomerStore()),
        responder=responder,
        **kwargs,
    )


@pytest.fixture
def handler(catalog, orders, conversations, responder):
    return _build(catalog, orders, conversations, responder)


@pytest.fixture
def llm_handler(catalog, orders, conversations, responder, llm):
    return _build(
        catalog,
        orders,
        conversations,
        responder,
        llm=llm,
        tools=ToolRegistry([ProductSearchTool(catalog)]),
        use_llm=True,
    )


def _make_inbound(text: str = "hello", sender: str = SENDER, **kwargs) -> InboundMessage:
    return InboundMessage(
        message_id=f"wamid.{next(_ids)}",
        sender_id=sender,
        content=text,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_31st_message_is_throttled(self, handler):
        for _ in range(30):
            reply = await handler.handle(_make_inbound("hello"))
            assert reply.content != RATE_LIMITED_REPLY

        with patch("orderbot.agents.message_handler.classify_intent") as classify:
            reply = await handler.handle(_make_inbound("show me your products"))
            again = await handler.handle(_make_inbound("show me your products"))

        classify.assert_not_called()
        assert reply.content == RATE_LIMITED_REPLY
        assert again.content == RATE_LIMITED_REPLY
        assert reply.recipient_id == SENDER

    @pytest.mark.asyncio
    async def test_other_sender_unaffected(self, handler):
        for _ in range(31):
            await handler.handle(_make_inbound("hello"))
        reply = await handler.handle(_make_inbound("hello", sender="61400000002"))
        assert reply.content != RATE_LIMITED_REPLY


class TestOrderFlow:
    @pytest.mark.asyncio
    async def test_end_to_end_order(self, handler, orders, conversations):
        for text in ("place order", "pulled pork", "2 cartons", "123 Test St, Sydney, NSW, 2000"):
            reply = await handler.handle(_make_inbound(text))
        assert "$519.98" in reply.content

        reply = await handler.handle(_make_inbound("confirm order"))

        assert "has been confirmed" in reply.content
        assert conversations.get(SENDER).order_draft is None
        placed = await orders.get_customer_orders(SENDER)
        assert placed[0].total_amount == Decimal("519.98")

    @pytest.mark.asyncio
    async def test_draft_captures_messages_regardless_of_intent(self, handler, conversations):
        await handler.handle(_make_inbound("I want to buy pulled pork"))
        # "2 for delivery" would classify as DELIVERY_INQUIRY without a draft
        await handler.handle(_make_inbound("2 for delivery"))

        draft = conversations.get(SENDER).order_draft
        assert draft.stage is OrderStage.ADDRESS_COLLECTION
        assert draft.items[0].quantity == 2

    @pytest.mark.asyncio
    async def test_quick_replies_forwarded(self, handler):
        reply = await handler.handle(_make_inbound("I want to buy pulled pork"))
        assert "2 cartons" in reply.quick_replies


class TestScriptedReplies:
    @pytest.mark.asyncio
    async def test_browse(self, handler):
        reply = await handler.handle(_make_inbound("show me your products"))
        assert reply.content.startswith("🍖 *Available Products*")
        assert reply.channel == "whatsapp"

    @pytest.mark.asyncio
    async def test_order_status_without_orders(self, handler):
        reply = await handler.handle(_make_inbound("where is my order"))
        assert reply.content.startswith("You don't have any orders yet")

    @pytest.mark.asyncio
    async def test_cancel_latest_order(self, handler, orders):
        for text in ("place order", "pulled pork", "1", "1 Main St, Sydney, NSW, 2000", "confirm"):
            await handler.handle(_make_inbound(text))

        reply = await handler.handle(_make_inbound("please cancel my order"))

        assert "has been cancelled successfully" in reply.content
        placed = await orders.get_customer_orders(SENDER)
        assert placed[0].status.value == "CANCELLED"

    @pytest.mark.asyncio
    async def test_general_inquiry_without_llm(self, handler):
        reply = await handler.handle(_make_inbound("good morning"))
        assert reply.content.startswith("How can I help you today?")


class TestContext:
    @pytest.mark.asyncio
    async def test_history_capped_at_20(self, handler, conversations):
        for i in range(11):
            await handler.handle(_make_inbound(f"hello {i}"))

        history = conversations.get_history(SENDER)
        assert len(history) == 20
        assert history[0].content == "hello 1"
        assert history[-1].role == "assistant"

    @pytest.mark.asyncio
    async def test_clear_command_resets_context(self, handler, conversations):
        await handler.handle(_make_inbound("I want to buy pulled pork"))

        reply = await handler.handle(_make_inbound("/clear"))

        assert reply.content == CLEARED_REPLY
        assert conversations.get(SENDER) is None or conversations.get(SENDER).order_draft is None

    @pytest.mark.asyncio
    async def test_clear_command_from_metadata(self, handler, conversations):
        await handler.handle(_make_inbound("hello"))
        reply = await handler.handle(_make_inbound("", metadata={"command": "clear"}))
        assert reply.content == CLEARED_REPLY
        assert conversations.get_history(SENDER) == []


class TestErrors:
    @pytest.mark.asyncio
    async def test_exception_becomes_apology(self, handler, responder):
        responder.browse_products = AsyncMock(side_effect=RuntimeError("bug"))

        reply = await handler.handle(_make_inbound("show me your products"))

        assert reply.content == ERROR_REPLY
        assert reply.recipient_id == SENDER

    @pytest.mark.asyncio
    async def test_llm_failure_becomes_apology(self, llm_handler, llm):
        llm.generate_response.side_effect = LLMError("Failed to generate response")
        reply = await llm_handler.handle(_make_inbound("good morning"))
        assert reply.content == ERROR_REPLY


class TestLLMPath:
    @pytest.mark.asyncio
    async def test_general_inquiry_goes_to_llm(self, llm_handler, llm):
        reply = await llm_handler.handle(_make_inbound("good morning"))

        assert reply.content == "Happy to help!"
        kwargs = llm.generate_response.await_args.kwargs
        assert "search_products" in kwargs["system_prompt"]
        assert "TOOL: <tool_name>" in kwargs["system_prompt"]
        assert kwargs["history"] == []
        assert kwargs["use_advanced_model"] is False

    @pytest.mark.asyncio
    async def test_history_passed_on_next_turn(self, llm_handler, llm):
        await llm_handler.handle(_make_inbound("good morning"))
        await llm_handler.handle(_make_inbound("how are you"))

        history = llm.generate_response.await_args.kwargs["history"]
        assert history == [
            {"role": "user", "content": "good morning"},
            {"role": "assistant", "content": "Happy to help!"},
        ]

    @pytest.mark.asyncio
    async def test_tool_call_executed_inline(self, llm_handler, llm):
        llm.generate_response.return_value = (
            "Let me look that up.\n"
            "TOOL: search_products\n"
            'ARGS: {"query": "pulled pork"}\n'
            "REASON: customer asked about pork\n"
            "\n"
            "Anything else?"
        )

        reply = await llm_handler.handle(_make_inbound("good morning"))

        assert reply.content.startswith("Let me look that up.\n")
        assert reply.content.endswith("\n\nAnything else?")
        assert "Pulled Pork with a Little Kick" in reply.content
        assert "TOOL:" not in reply.content

    @pytest.mark.asyncio
    async def test_scripted_intents_stay_scripted(self, llm_handler, llm):
        reply = await llm_handler.handle(_make_inbound("show me your products"))

        llm.generate_response.assert_not_awaited()
        assert "Available Products" in reply.content

    @pytest.mark.asyncio
    async def test_all_intents_mode(self, catalog, orders, conversations, responder, llm):
        handler = _build(
            catalog, orders, conversations, responder, llm=llm, use_llm=True, llm_all_intents=True
        )

        reply = await handler.handle(_make_inbound("show me your products"))

        llm.generate_response.assert_awaited_once()
        assert reply.content == "Happy to help!"

    @pytest.mark.asyncio
    async def test_order_intent_never_goes_to_llm(self, catalog, orders, conversations, responder, llm):
        handler = _build(
            catalog, orders, conversations, responder, llm=llm, use_llm=True, llm_all_intents=True
        )

        reply = await handler.handle(_make_inbound("I want to buy pulled pork"))

        llm.generate_response.assert_not_awaited()
        assert "How many cartons" in reply.content

    @pytest.mark.asyncio
    async def test_complex_query_uses_advanced_model(self, llm_handler, llm):
        llm.is_complex_query.return_value = True
        await llm_handler.handle(_make_inbound("good morning"))
        assert llm.generate_response.await_args.kwargs["use_advanced_model"] is True

    @pytest.mark.asyncio
    async def test_image_goes_to_vision(self, llm_handler, llm):
        msg = _make_inbound(
            "what cut is this",
            kind=MessageKind.IMAGE,
            media_ref="https://cdn.example/meat.jpg",
            caption="what cut is this",
        )

        reply = await llm_handler.handle(msg)

        llm.process_image_query.assert_awaited_once_with("what cut is this", "https://cdn.example/meat.jpg")
        assert reply.content == "That looks like brisket."

    @pytest.mark.asyncio
    async def test_image_without_caption_uses_default_prompt(self, llm_handler, llm):
        msg = _make_inbound("", kind=MessageKind.IMAGE, media_ref="https://cdn.example/meat.jpg")

        await llm_handler.handle(msg)

        assert llm.process_image_query.await_args.args[0] == "What is in this image?"
