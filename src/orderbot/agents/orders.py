"""Order dialogue — the per-sender order placement state machine.

    PRODUCT_SELECTION → QUANTITY_SELECTION → ADDRESS_COLLECTION → CONFIRMATION

Every stage parses the free-text message; a parse failure re-prompts and
leaves the draft where it was. Confirm persists the order and clears the
draft, modify restarts at product selection with no items, cancel (accepted
at any stage) clears the draft.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from loguru import logger

from orderbot.agents.parsers import (
    ConfirmationChoice,
    extract_quantity,
    parse_address,
    parse_confirmation,
    wants_cancel,
    wants_saved_address,
)
from orderbot.agents.responses import Reply, format_money
from orderbot.handler.session.session import ConversationContext
from orderbot.store.catalog import Product, ProductCatalog
from orderbot.store.customers import CustomerStore
from orderbot.store.orders import Address, LineItem, OrderError, OrderStore

QUANTITY_REPLIES = ["1 carton", "2 cartons", "5 cartons", "10 cartons", "Cancel order"]
CONFIRMATION_REPLIES = ["Confirm order", "Modify order", "Cancel order"]
ADDRESS_PROMPT = (
    "Please provide your delivery address in the following format:\n\n"
    "Street, City, State, Postcode\n\n"
    'For example: "123 Main St, Sydney, NSW, 2000"'
)


class OrderStage(str, Enum):
    PRODUCT_SELECTION = "PRODUCT_SELECTION"
    QUANTITY_SELECTION = "QUANTITY_SELECTION"
    ADDRESS_COLLECTION = "ADDRESS_COLLECTION"
    CONFIRMATION = "CONFIRMATION"


@dataclass
class OrderDraft:
    stage: OrderStage = OrderStage.PRODUCT_SELECTION
    items: list[LineItem] = field(default_factory=list)


class OrderDialogue:
    """Drives one dialogue step per message for a sender's draft."""

    def __init__(
        self,
        catalog: ProductCatalog,
        orders: OrderStore,
        customers: CustomerStore,
    ) -> None:
        self._catalog = catalog
        self._orders = orders
        self._customers = customers

    async def handle(self, text: str, context: ConversationContext) -> Reply:
        """Advance the sender's draft with ``text``, starting one if needed."""
        draft = context.order_draft
        if draft is None:
            context.order_draft = OrderDraft()
            logger.info("Order draft started for {}", context.sender_id)
            product = self._catalog.find_in_text(text)
            if product is None:
                return Reply(
                    content="What would you like to order? Please mention the product name.",
                    quick_replies=self._catalog.product_names,
                )
            return self._choose_product(product, context)

        if draft.stage is not OrderStage.CONFIRMATION and wants_cancel(text):
            return self._cancel(context)

        logger.debug("Order stage {} for {}", draft.stage.value, context.sender_id)
        if draft.stage is OrderStage.PRODUCT_SELECTION:
            return await self._product_selection(text, context)
        if draft.stage is OrderStage.QUANTITY_SELECTION:
            return await self._quantity_selection(text, context)
        if draft.stage is OrderStage.ADDRESS_COLLECTION:
            return await self._address_collection(text, context)
        return await self._confirmation(text, context)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _product_selection(self, text: str, context: ConversationContext) -> Reply:
        product = self._catalog.find_in_text(text)
        if product is None:
            return Reply(
                content=(
                    "I couldn't find that product. Please try again or browse "
                    "our available products."
                ),
                quick_replies=[*self._catalog.product_names, "Cancel order"],
            )
        return self._choose_product(product, context)

    def _choose_product(self, product: Product, context: ConversationContext) -> Reply:
        context.current_product = product
        context.order_draft.stage = OrderStage.QUANTITY_SELECTION
        return Reply(
            content=(
                f"How many cartons of {product.name} would you like to order?\n"
                f"Each carton contains {product.carton.units} units of "
                f"{product.unit.weight_label}g {product.unit.format}."
            ),
            quick_replies=QUANTITY_REPLIES,
        )

    async def _quantity_selection(self, text: str, context: ConversationContext) -> Reply:
        draft = context.order_draft
        if context.current_product is None:
            draft.stage = OrderStage.PRODUCT_SELECTION
            return await self._product_selection(text, context)

        quantity = extract_quantity(text)
        if quantity <= 0:
            return Reply(
                content='Please specify a valid quantity (e.g., "2 cartons").',
                quick_replies=QUANTITY_REPLIES,
            )

        draft.items.append(LineItem(product_id=context.current_product.id, quantity=quantity))
        draft.stage = OrderStage.ADDRESS_COLLECTION

        quick_replies = ["Cancel order"]
        customer = await self._customers.get_customer(context.sender_id)
        if customer is not None and customer.saved_address is not None:
            quick_replies.insert(0, "Use saved address")
        return Reply(content=ADDRESS_PROMPT, quick_replies=quick_replies)

    async def _address_collection(self, text: str, context: ConversationContext) -> Reply:
        address = None
        if wants_saved_address(text):
            customer = await self._customers.get_customer(context.sender_id)
            address = customer.saved_address if customer else None
        else:
            address = parse_address(text)

        if address is None:
            return Reply(
                content=(
                    "Invalid address format. Please provide your address as:\n"
                    "Street, City, State, Postcode"
                ),
                quick_replies=["Cancel order"],
            )

        context.delivery_address = address
        context.order_draft.stage = OrderStage.CONFIRMATION
        return Reply(
            content=self.render_summary(context.order_draft, address),
            quick_replies=CONFIRMATION_REPLIES,
        )

    async def _confirmation(self, text: str, context: ConversationContext) -> Reply:
        choice = parse_confirmation(text)

        if choice is ConfirmationChoice.CONFIRM:
            return await self._place_order(context)

        if choice is ConfirmationChoice.MODIFY:
            context.order_draft.stage = OrderStage.PRODUCT_SELECTION
            context.order_draft.items = []
            context.current_product = None
            return Reply(
                content="Let's modify your order. What would you like to order?",
                quick_replies=self._catalog.product_names,
            )

        if choice is ConfirmationChoice.CANCEL:
            return self._cancel(context)

        return Reply(
            content="Please confirm if you want to proceed with this order.",
            quick_replies=CONFIRMATION_REPLIES,
        )

    async def _place_order(self, context: ConversationContext) -> Reply:
        draft = context.order_draft
        address = context.delivery_address
        try:
            order = await self._orders.create_order(context.sender_id, list(draft.items), address)
        except OrderError as exc:
            logger.error("Error creating order for {}: {}", context.sender_id, exc)
            return Reply(
                content="Sorry, there was an error processing your order. Please try again.",
                quick_replies=["Confirm order", "Cancel order"],
            )

        await self._customers.record_order(context.sender_id, order.id, address)
        context.clear_order()
        return Reply(
            content=(
                f"Thank you! Your order (ID: {order.id}) has been confirmed.\n\n"
                f"Total: {format_money(order.total_amount)}\n\n"
                "We'll process your payment and update you on the status.\n\n"
                'You can check your order status anytime by sending "order status".'
            ),
            quick_replies=["Check order status", "Place another order"],
        )

    @staticmethod
    def _cancel(context: ConversationContext) -> Reply:
        context.clear_order()
        logger.info("Order draft cancelled for {}", context.sender_id)
        return Reply(
            content="Order cancelled. Is there anything else I can help you with?",
            quick_replies=["Browse products", "Start new order", "Check order status"],
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def order_total(self, draft: OrderDraft) -> Decimal:
        """Sum of quantity × carton price over the draft's line items."""
        total = Decimal("0")
        for item in draft.items:
            product = self._catalog.get(item.product_id)
            if product:
                total += product.carton.price * item.quantity
        return total

    def render_summary(self, draft: OrderDraft, address: Address) -> str:
        lines = ["*Order Summary*", ""]
        for item in draft.items:
            product = self._catalog.get(item.product_id)
            if product:
                subtotal = product.carton.price * item.quantity
                lines.append(f"• {product.name} x {item.quantity} cartons")
                lines.append(f"  Subtotal: {format_money(subtotal)}")

        lines.extend(
            [
                "",
                f"*Total Amount: {format_money(self.order_total(draft))}*",
                "",
                "*Delivery Address*",
                address.street,
                f"{address.city}, {address.state} {address.postcode}",
                "",
                "Would you like to confirm this order?",
            ]
        )
        return "\n".join(lines)
