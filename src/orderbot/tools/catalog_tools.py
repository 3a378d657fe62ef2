"""Catalog and order lookup tools backed by the in-process stores."""

from __future__ import annotations

from typing import Any

from loguru import logger

from orderbot.store.catalog import Product, ProductCatalog
from orderbot.store.orders import OrderStore
from orderbot.tools.base import BaseTool


def _product_summary(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category.value,
        "carton_units": product.carton.units,
        "carton_price": f"{product.carton.price:.2f}",
        "unit_weight_g": str(product.unit.weight),
        "in_stock": product.in_stock,
    }


class ProductSearchTool(BaseTool):
    """Search the product catalog by keyword."""

    def __init__(self, catalog: ProductCatalog) -> None:
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "search_products"

    @property
    def description(self) -> str:
        return (
            "Search the product catalog by name, category (beef, pork, chicken, "
            "specialty) or keyword. Returns id, carton size, carton price and stock."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keyword to search for. Empty string lists everything.",
                    "maxLength": 100,
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> list[dict[str, Any]]:
        query: str = kwargs.get("query", "")
        matches = self._catalog.search(query)
        logger.debug("search_products {!r} → {} matches", query, len(matches))
        return [_product_summary(p) for p in matches]


class OrderLookupTool(BaseTool):
    """Look up a single order by id."""

    def __init__(self, orders: OrderStore) -> None:
        self._orders = orders

    @property
    def name(self) -> str:
        return "get_order_status"

    @property
    def description(self) -> str:
        return (
            "Get the status, payment status, items and total of an order "
            "given its order id (e.g. 'ORD-1700000000000-abc123xyz')."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "order_id": {
                    "type": "string",
                    "description": "Order id as shown in the confirmation message.",
                    "minLength": 1,
                },
            },
            "required": ["order_id"],
        }

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        order_id: str = kwargs["order_id"].strip()
        order = await self._orders.get_order(order_id)
        if order is None:
            raise LookupError(f"Order '{order_id}' not found")

        return {
            "order_id": order.id,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "total": f"{order.total_amount:.2f}",
            "items": [
                {"product_id": line.product_id, "cartons": line.quantity}
                for line in order.items
            ],
            "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
        }
