"""Tests for the scripted replies and where their quick replies lead."""

from unittest.mock import AsyncMock

import pytest

from orderbot.agents.intents import Intent, classify_intent
from orderbot.agents.orders import OrderDialogue
from orderbot.agents.responses import ScriptedResponder
from orderbot.handler.session.session import ConversationContext
from orderbot.store.catalog import ProductCatalog
from orderbot.store.customers import CustomerStore
from orderbot.store.orders import Address, LineItem, OrderError, OrderStatus, OrderStore

SENDER = "61400000001"
ADDRESS = Address("123 Test St", "Sydney", "NSW", "2000")

# Every label a customer can tap once no order draft is open.
QUICK_REPLY_INTENTS = {
    "Browse products": Intent.BROWSE_PRODUCTS,
    "Product details": Intent.PRODUCT_INQUIRY,
    "Order now": Intent.PLACE_ORDER,
    "Place order": Intent.PLACE_ORDER,
    "Place new order": Intent.PLACE_ORDER,
    "Place another order": Intent.PLACE_ORDER,
    "Start new order": Intent.PLACE_ORDER,
    "Check order status": Intent.ORDER_STATUS,
    "Delivery status": Intent.DELIVERY_INQUIRY,
    "Cancel order": Intent.CANCEL_ORDER,
    "Payment help": Intent.PAYMENT,
    "Contact support": Intent.GENERAL_INQUIRY,
}


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
def responder(catalog, orders):
    return ScriptedResponder(catalog, orders)


@pytest.fixture
def dialogue(catalog, orders):
    return OrderDialogue(catalog, orders, CustomerStore())


async def _place(orders, customer):
    return await orders.create_order(customer, [LineItem("pulled-pork", 2)], ADDRESS)


async def _scripted_replies(responder, orders):
    replies = [
        await responder.browse_products(),
        await responder.product_inquiry("tell me about pulled pork"),
        await responder.payment(),
        await responder.general_inquiry(),
        # no orders yet
        await responder.order_status(SENDER),
        await responder.cancel_order(SENDER),
        await responder.delivery_inquiry(SENDER),
    ]

    await _place(orders, SENDER)
    replies.append(await responder.order_status(SENDER))
    replies.append(await responder.delivery_inquiry(SENDER))
    replies.append(await responder.cancel_order(SENDER))

    shipped = await _place(orders, "61400000002")
    await orders.update_order_status(shipped.id, OrderStatus.SHIPPED)
    replies.append(await responder.cancel_order("61400000002"))

    await _place(orders, "61400000003")
    orders.cancel_order = AsyncMock(side_effect=OrderError("store unavailable"))
    replies.append(await responder.cancel_order("61400000003"))
    return replies


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestQuickReplyRouting:
    @pytest.mark.parametrize("label, intent", sorted(QUICK_REPLY_INTENTS.items()))
    def test_label_classifies_as_intended(self, label, intent):
        assert classify_intent(label) is intent

    @pytest.mark.asyncio
    async def test_scripted_replies_only_offer_known_labels(self, responder, orders):
        labels = {
            label
            for reply in await _scripted_replies(responder, orders)
            for label in reply.quick_replies
        }

        assert labels <= set(QUICK_REPLY_INTENTS)

    @pytest.mark.asyncio
    async def test_payment_reply_never_offers_a_cancellation(self, responder):
        reply = await responder.payment()

        assert [classify_intent(label) for label in reply.quick_replies] == [
            Intent.ORDER_STATUS,
            Intent.PAYMENT,
            Intent.GENERAL_INQUIRY,
        ]

    @pytest.mark.asyncio
    async def test_unknown_product_offers_inquiries_by_name(self, responder, catalog):
        reply = await responder.product_inquiry("what's the price?")

        assert len(reply.quick_replies) == len(catalog.products)
        for label, product in zip(reply.quick_replies, catalog.products):
            assert classify_intent(label) is Intent.PRODUCT_INQUIRY
            assert catalog.find_in_text(label) is product

    @pytest.mark.asyncio
    async def test_replies_after_the_draft_closes(self, dialogue):
        cancelled = ConversationContext(sender_id=SENDER)
        await dialogue.handle("place order", cancelled)
        after_cancel = await dialogue.handle("cancel", cancelled)

        placed = ConversationContext(sender_id=SENDER)
        for text in ("place order", "pulled pork", "2", "123 Test St, Sydney, NSW, 2000"):
            await dialogue.handle(text, placed)
        after_confirm = await dialogue.handle("confirm order", placed)

        assert cancelled.order_draft is None and placed.order_draft is None
        for reply in (after_cancel, after_confirm):
            assert set(reply.quick_replies) <= set(QUICK_REPLY_INTENTS)
        assert classify_intent(after_cancel.quick_replies[-1]) is Intent.ORDER_STATUS
