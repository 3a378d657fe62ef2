"""Keyword intent classifier.

An ordered rule table over the lower-cased message; the first rule with a
matching keyword wins, so order matters: "track my order" must hit
ORDER_STATUS before the generic "order" rule turns it into PLACE_ORDER.
"""

from __future__ import annotations

from enum import Enum


class Intent(str, Enum):
    BROWSE_PRODUCTS = "BROWSE_PRODUCTS"
    PRODUCT_INQUIRY = "PRODUCT_INQUIRY"
    PLACE_ORDER = "PLACE_ORDER"
    ORDER_STATUS = "ORDER_STATUS"
    CANCEL_ORDER = "CANCEL_ORDER"
    DELIVERY_INQUIRY = "DELIVERY_INQUIRY"
    PAYMENT = "PAYMENT"
    GENERAL_INQUIRY = "GENERAL_INQUIRY"


INTENT_RULES: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.ORDER_STATUS, ("order status", "track", "where is my order")),
    (Intent.CANCEL_ORDER, ("cancel",)),
    (Intent.DELIVERY_INQUIRY, ("delivery", "shipping")),
    (Intent.PAYMENT, ("pay", "payment")),
    (Intent.PLACE_ORDER, ("order", "buy", "purchase")),
    # Browse before inquiry: "show me your products" is a listing request.
    (Intent.BROWSE_PRODUCTS, ("menu", "products", "catalog", "catalogue", "available", "show me")),
    (Intent.PRODUCT_INQUIRY, ("product", "price", "cost", "tell me about", "details")),
)


def classify_intent(text: str, rules=INTENT_RULES) -> Intent:
    """Map message text to an Intent; GENERAL_INQUIRY when nothing matches."""
    lowered = text.lower()
    for intent, keywords in rules:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return Intent.GENERAL_INQUIRY
