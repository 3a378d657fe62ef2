"""In-memory customer store keyed by WhatsApp number."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger

from orderbot.store.orders import Address


@dataclass
class Customer:
    id: str  # WhatsApp number / sender id
    name: str | None = None
    saved_address: Address | None = None
    order_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CustomerStore:
    def __init__(self) -> None:
        self._customers: dict[str, Customer] = {}

    async def get_customer(self, customer_id: str) -> Customer | None:
        return self._customers.get(customer_id)

    async def get_or_create(self, customer_id: str, name: str | None = None) -> Customer:
        customer = self._customers.get(customer_id)
        if customer is None:
            customer = Customer(id=customer_id, name=name)
            self._customers[customer_id] = customer
            logger.debug("Customer {} created", customer_id)
        return customer

    async def record_order(
        self, customer_id: str, order_id: str, address: Address | None = None
    ) -> Customer:
        """Attach an order to the customer and remember its delivery address."""
        customer = await self.get_or_create(customer_id)
        customer.order_ids.append(order_id)
        if address is not None:
            customer.saved_address = address
        return customer

    async def delete_customer(self, customer_id: str) -> None:
        self._customers.pop(customer_id, None)
