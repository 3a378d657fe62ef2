"""Scripted replies for the non-order intents.

Each handler renders plain WhatsApp-formatted text (``*bold*``) plus a list
of quick-reply suggestions that nudge the customer toward well-formed input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger

from orderbot.store.catalog import Product, ProductCatalog
from orderbot.store.orders import Order, OrderError, OrderStore


@dataclass
class Reply:
    content: str
    quick_replies: list[str] = field(default_factory=list)


def format_money(amount: Decimal) -> str:
    return f"${amount:.2f}"


def format_packaging(product: Product) -> str:
    unit = product.unit
    packaging = f"{unit.weight_label}g per {unit.format}"
    if unit.count is not None:
        packaging += f" ({unit.count} pieces)"
    packaging += f"\nCarton: {product.carton.units} units"
    return packaging


def format_date(order: Order) -> str | None:
    if order.delivery_date is None:
        return None
    return order.delivery_date.strftime("%d/%m/%Y")


class ScriptedResponder:
    """Catalog and order-lookup replies that need no dialogue state."""

    def __init__(self, catalog: ProductCatalog, orders: OrderStore) -> None:
        self._catalog = catalog
        self._orders = orders

    async def browse_products(self) -> Reply:
        lines = ["🍖 *Available Products*", ""]
        for category, products in self._catalog.by_category().items():
            lines.append(f"*{category.value}*")
            for product in products:
                lines.append(f"• {product.name} ({product.unit.weight_label}g)")
            lines.append("")
        lines.append("To learn more about a product, just ask about it by name!")
        return Reply(
            content="\n".join(lines),
            quick_replies=["Order now", "Product details", "Check order status"],
        )

    async def product_inquiry(self, text: str) -> Reply:
        product = self._catalog.find_in_text(text)
        if product is None:
            return Reply(
                content=(
                    "Which product would you like to know more about? "
                    "Please mention the product name."
                ),
                quick_replies=[f"Tell me about {name}" for name in self._catalog.product_names],
            )

        lines = [f"*{product.name}*", "", product.description, "", "*Features:*"]
        lines.extend(f"• {feature}" for feature in product.features)
        lines.append("")
        lines.append(f"*Packaging:* {format_packaging(product)}")
        lines.append(f"*Carton price:* {format_money(product.carton.price)}")
        return Reply(
            content="\n".join(lines),
            quick_replies=["Place order", "Browse products", "Check order status"],
        )

    async def order_status(self, customer_id: str) -> Reply:
        orders = await self._orders.get_customer_orders(customer_id)
        if not orders:
            return Reply(
                content="You don't have any orders yet. Would you like to place an order?",
                quick_replies=["Browse products", "Place order"],
            )

        recent = orders[0]
        lines = [
            "*Latest Order Status*",
            f"Order ID: {recent.id}",
            f"Status: {recent.status.value}",
            f"Payment: {recent.payment_status.value}",
            "",
        ]
        delivery = format_date(recent)
        if delivery:
            lines.append(f"Expected delivery: {delivery}")

        lines.append("")
        lines.append("*Items:*")
        for item in recent.items:
            product = self._catalog.get(item.product_id)
            if product:
                lines.append(f"• {product.name} x {item.quantity} cartons")
        lines.append(f"\n*Total:* {format_money(recent.total_amount)}")

        return Reply(
            content="\n".join(lines),
            quick_replies=["Delivery status", "Cancel order", "Place new order"],
        )

    async def cancel_order(self, customer_id: str) -> Reply:
        orders = await self._orders.get_customer_orders(customer_id)
        if not orders:
            return Reply(
                content="You don't have any active orders to cancel.",
                quick_replies=["Browse products", "Place order"],
            )

        recent = orders[0]
        if not recent.is_cancellable:
            return Reply(
                content=(
                    f"Sorry, your order ({recent.id}) cannot be cancelled as it "
                    f"is already {recent.status.value.lower()}."
                ),
                quick_replies=["Check order status", "Place new order"],
            )

        try:
            await self._orders.cancel_order(recent.id)
        except OrderError as exc:
            logger.error("Failed to cancel order {}: {}", recent.id, exc)
            return Reply(
                content=(
                    "Sorry, there was an error cancelling your order. "
                    "Please try again or contact support."
                ),
                quick_replies=["Cancel order", "Contact support"],
            )

        return Reply(
            content=(
                f"Your order ({recent.id}) has been cancelled successfully. "
                "Would you like to place a new order?"
            ),
            quick_replies=["Browse products", "Place new order"],
        )

    async def delivery_inquiry(self, customer_id: str) -> Reply:
        orders = await self._orders.get_customer_orders(customer_id)
        if not orders:
            return Reply(
                content="You don't have any active orders for delivery tracking.",
                quick_replies=["Browse products", "Place order"],
            )

        recent = orders[0]
        address = recent.delivery_address
        lines = [f"*Delivery Status for Order {recent.id}*", "", f"Status: {recent.status.value}"]
        delivery = format_date(recent)
        if delivery:
            lines.append(f"Expected delivery: {delivery}")
        lines.extend(
            [
                "",
                "*Delivery Address*",
                address.street,
                f"{address.city}, {address.state} {address.postcode}",
            ]
        )
        if address.instructions:
            lines.append(f"\nDelivery instructions: {address.instructions}")

        return Reply(
            content="\n".join(lines),
            quick_replies=["Check order status", "Contact support", "Place new order"],
        )

    async def payment(self) -> Reply:
        return Reply(
            content=(
                "We will assist you with the payment process. "
                "Please wait while we check your order details."
            ),
            quick_replies=["Check order status", "Payment help", "Contact support"],
        )

    async def general_inquiry(self) -> Reply:
        return Reply(
            content=(
                "How can I help you today? You can browse our products, "
                "check order status, or place a new order."
            ),
            quick_replies=["Browse products", "Check order status", "Place order", "Contact support"],
        )
