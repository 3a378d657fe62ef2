"""In-memory order store — the order persistence capability.

Every status transition appends an entry to the order's status history.
Methods are coroutines so a document-store backed implementation can be
swapped in without touching callers.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from loguru import logger

from orderbot.constants import CANCELLABLE_STATUSES, DEFAULT_COUNTRY
from orderbot.store.catalog import ProductCatalog


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class OrderError(Exception):
    """Base class for order store errors."""


class OrderNotFoundError(OrderError):
    pass


class OrderValidationError(OrderError):
    pass


class OrderStateError(OrderError):
    pass


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    state: str
    postcode: str
    country: str = DEFAULT_COUNTRY
    instructions: str | None = None


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int  # cartons


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    price: Decimal  # carton price at order time
    total: Decimal


@dataclass(frozen=True)
class StatusChange:
    status: OrderStatus
    timestamp: datetime
    note: str | None = None


@dataclass
class Order:
    id: str
    customer_id: str
    items: list[OrderLine]
    delivery_address: Address
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    delivery_date: datetime | None = None
    status_history: list[StatusChange] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_cancellable(self) -> bool:
        return self.status.value in CANCELLABLE_STATUSES


def _generate_order_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


class OrderStore:
    """Orders keyed by id, held in process memory."""

    def __init__(self, catalog: ProductCatalog) -> None:
        self._catalog = catalog
        self._orders: dict[str, Order] = {}

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create_order(
        self,
        customer_id: str,
        items: list[LineItem],
        delivery_address: Address,
    ) -> Order:
        """Validate line items, price them by carton and store a PENDING order.

        Raises:
            OrderValidationError: empty order, unknown or out-of-stock
                product, or a non-positive quantity.
        """
        lines = self._price_items(items)
        order = Order(
            id=_generate_order_id(),
            customer_id=customer_id,
            items=lines,
            delivery_address=delivery_address,
            total_amount=sum((line.total for line in lines), Decimal("0")),
        )
        order.status_history.append(
            StatusChange(status=order.status, timestamp=order.created_at, note="Order placed")
        )
        self._orders[order.id] = order
        logger.info(
            "Order {} created for {} ({} items, total {})",
            order.id,
            customer_id,
            len(lines),
            order.total_amount,
        )
        return order

    async def get_order(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def get_customer_orders(self, customer_id: str) -> list[Order]:
        """All orders for a customer, newest first."""
        orders = [o for o in self._orders.values() if o.customer_id == customer_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update_order_status(
        self, order_id: str, status: OrderStatus, note: str | None = None
    ) -> Order:
        order = self._require(order_id)
        self._transition(order, status, note)
        return order

    async def update_payment_status(self, order_id: str, status: PaymentStatus) -> Order:
        """Record payment; a PAID pending order becomes CONFIRMED."""
        order = self._require(order_id)
        order.payment_status = status
        order.updated_at = datetime.now(timezone.utc)
        if status is PaymentStatus.PAID and order.status is OrderStatus.PENDING:
            self._transition(order, OrderStatus.CONFIRMED, "Payment received")
        return order

    async def set_delivery_date(self, order_id: str, delivery_date: datetime) -> Order:
        order = self._require(order_id)
        order.delivery_date = delivery_date
        order.updated_at = datetime.now(timezone.utc)
        return order

    async def cancel_order(self, order_id: str, note: str | None = None) -> Order:
        """Cancel a PENDING or CONFIRMED order.

        Raises:
            OrderNotFoundError: unknown id.
            OrderStateError: the order is already past confirmation.
        """
        order = self._require(order_id)
        if not order.is_cancellable:
            raise OrderStateError(f"Cannot cancel order in status: {order.status.value}")
        self._transition(order, OrderStatus.CANCELLED, note or "Cancelled by customer")
        return order

    async def delete_order(self, order_id: str) -> None:
        self._require(order_id)
        del self._orders[order_id]
        logger.info("Order {} deleted", order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order not found: {order_id}")
        return order

    @staticmethod
    def _transition(order: Order, status: OrderStatus, note: str | None) -> None:
        now = datetime.now(timezone.utc)
        order.status = status
        order.updated_at = now
        order.status_history.append(StatusChange(status=status, timestamp=now, note=note))
        logger.info("Order {} → {}", order.id, status.value)

    def _price_items(self, items: list[LineItem]) -> list[OrderLine]:
        if not items:
            raise OrderValidationError("Order must contain at least one item")

        lines: list[OrderLine] = []
        for item in items:
            product = self._catalog.get(item.product_id)
            if product is None:
                raise OrderValidationError(f"Product not found: {item.product_id}")
            if not product.in_stock:
                raise OrderValidationError(f"Product out of stock: {product.name}")
            if item.quantity <= 0:
                raise OrderValidationError(f"Invalid quantity for product: {product.name}")
            price = product.carton.price
            lines.append(
                OrderLine(
                    product_id=product.id,
                    quantity=item.quantity,
                    price=price,
                    total=price * item.quantity,
                )
            )
        return lines
