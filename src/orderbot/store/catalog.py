"""Product catalog — the wholesale barbecue range sold by carton.

Products are priced per carton; a carton holds ``carton.units`` vacuum
sealed pouches. Lookups are case-insensitive substring matches on the
product name or id, in catalog order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class ProductCategory(str, Enum):
    BEEF = "BEEF"
    PORK = "PORK"
    CHICKEN = "CHICKEN"
    SPECIALTY = "SPECIALTY"


@dataclass(frozen=True)
class Range:
    min: int
    max: int

    def __str__(self) -> str:
        return f"{self.min}-{self.max}"


@dataclass(frozen=True)
class ProductUnit:
    weight: int | Range  # grams
    format: str
    count: int | Range | None = None  # pieces per unit

    @property
    def weight_label(self) -> str:
        return str(self.weight)


@dataclass(frozen=True)
class CartonFormat:
    units: int
    price: Decimal  # price per carton
    weight: int | None = None  # grams


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    category: ProductCategory
    description: str
    unit: ProductUnit
    carton: CartonFormat
    features: tuple[str, ...] = field(default_factory=tuple)
    origin: str = "Australia"
    price: Decimal | None = None  # price per unit
    in_stock: bool = True
    image_url: str | None = None


class ProductCatalog:
    """Read-only product lookups."""

    def __init__(self, products: Iterable[Product] | None = None) -> None:
        self._products: list[Product] = list(
            products if products is not None else DEFAULT_PRODUCTS
        )

    @property
    def products(self) -> list[Product]:
        return list(self._products)

    @property
    def product_names(self) -> list[str]:
        return [p.name for p in self._products]

    def get(self, product_id: str) -> Product | None:
        for product in self._products:
            if product.id == product_id:
                return product
        return None

    def find_in_text(self, text: str) -> Product | None:
        """First product whose name or id appears in ``text``."""
        lowered = text.lower()
        for product in self._products:
            if product.name.lower() in lowered or product.id.lower() in lowered:
                return product
        # "pulled pork" should still find "Pulled Pork with a Little Kick"
        normalized = lowered.replace("-", " ")
        for product in self._products:
            if product.id.replace("-", " ") in normalized:
                return product
        return None

    def search(self, query: str) -> list[Product]:
        """Products whose name, id, category or description mention ``query``."""
        q = query.lower().strip()
        if not q:
            return self.products
        return [
            p for p in self._products
            if q in p.name.lower()
            or q in p.id.lower()
            or q in p.category.value.lower()
            or q in p.description.lower()
        ]

    def by_category(self) -> dict[ProductCategory, list[Product]]:
        """Products grouped by category, categories in enum order."""
        grouped: dict[ProductCategory, list[Product]] = {}
        for category in ProductCategory:
            members = [p for p in self._products if p.category is category]
            if members:
                grouped[category] = members
        return grouped


DEFAULT_PRODUCTS: tuple[Product, ...] = (
    Product(
        id="beef-brisket",
        name="Smoky & Peppery Beef Brisket",
        category=ProductCategory.BEEF,
        description=(
            "Australian grain fed beef brisket cooked low and slow, seasoned "
            "with a black pepper, coffee and cocoa rub and a hint of smoky hickory."
        ),
        features=(
            "Made with 100% Australian Beef",
            "Black pepper, coffee and cocoa rub",
            "Smoky hickory flavor",
            "Low and slow cooked",
        ),
        unit=ProductUnit(weight=Range(900, 1200), format="Vacuum Sealed Pouch"),
        carton=CartonFormat(units=10, price=Decimal("249.99")),
    ),
    Product(
        id="pulled-beef",
        name="Rich & Smoky Pulled Beef",
        category=ProductCategory.BEEF,
        description=(
            "Australian grain fed beef brisket cooked low and slow, seasoned "
            "with a black pepper, coffee and cocoa rub and a hint of smoky "
            "hickory, then hand pulled."
        ),
        features=(
            "Made with 100% Australian Beef",
            "Hand pulled",
            "Black pepper, coffee and cocoa rub",
            "Smoky hickory flavor",
        ),
        unit=ProductUnit(weight=1000, format="Vacuum Sealed Pouch"),
        carton=CartonFormat(units=10, weight=10000, price=Decimal("279.99")),
    ),
    Product(
        id="pork-ribs",
        name="Smoky & Sweet Pork Ribs",
        category=ProductCategory.PORK,
        description=(
            "Slow cooked in a smoky, sweet and sticky Louisiana style sauce, "
            "these Chef Cut Pork Ribs are juicier and have more meat than "
            "larger racks of ribs."
        ),
        features=(
            "Made with 100% Australian Pork",
            "Louisiana style sauce",
            "Chef Cut ribs",
            "Extra juicy",
        ),
        unit=ProductUnit(
            weight=Range(900, 1400), count=2, format="Vacuum Sealed Pouch"
        ),
        carton=CartonFormat(units=14, price=Decimal("299.99")),
    ),
    Product(
        id="pulled-pork",
        name="Pulled Pork with a Little Kick",
        category=ProductCategory.PORK,
        description=(
            "Australian pork, cooked low and slow, seasoned with a mild "
            "chilli, tomato and vinegar rub reminiscent of Carolina's deep "
            "south, then hand pulled."
        ),
        features=(
            "Made with 100% Australian Pork",
            "Carolina-style rub",
            "Hand pulled",
            "Mild chilli kick",
        ),
        unit=ProductUnit(weight=1000, format="Vacuum Sealed Pouch"),
        carton=CartonFormat(units=10, weight=10000, price=Decimal("259.99")),
    ),
    Product(
        id="bbq-drumettes",
        name="Smoky, Sweet & Spiced BBQ Drumettes",
        category=ProductCategory.CHICKEN,
        description=(
            "Our Barbeque Chicken Wing Drumettes are an instant classic! The "
            "addictive flavour of the smoky, sweet, spiced barbeque sauce "
            "make eating just one simply impossible!"
        ),
        features=(
            "Made with 100% Australian Chicken",
            "Smoky, sweet BBQ sauce",
            "Spiced flavor profile",
            "Perfect portion size",
        ),
        unit=ProductUnit(
            weight=1000, count=Range(12, 14), format="Vacuum Sealed Pouch"
        ),
        carton=CartonFormat(units=10, weight=10000, price=Decimal("189.99")),
    ),
    Product(
        id="buffalo-drumettes",
        name="Tangy & Buttery Buffalo Drumettes",
        category=ProductCategory.CHICKEN,
        description=(
            "The mildly spicy kick and the tangy, buttery flavour profile of "
            "our saucy Buffalo Chicken Wing Drumettes is deliciously addictive!"
        ),
        features=(
            "Made with 100% Australian Chicken",
            "Tangy buffalo sauce",
            "Buttery flavor",
            "Mild spicy kick",
        ),
        unit=ProductUnit(
            weight=1000, count=Range(12, 14), format="Vacuum Sealed Pouch"
        ),
        carton=CartonFormat(units=10, weight=10000, price=Decimal("189.99")),
    ),
    Product(
        id="cheese-kransky",
        name="Smoky & Cheesy Big Cheese Kransky",
        category=ProductCategory.SPECIALTY,
        description=(
            "These big boys are stuffed with smoked pork and cheese with "
            "pepper and paprika bringing a bit of spice."
        ),
        features=(
            "Made in Australia",
            "Stuffed with smoked pork and cheese",
            "Pepper and paprika seasoning",
            "Premium quality",
        ),
        unit=ProductUnit(weight=960, count=10, format="Vacuum Sealed Pouch"),
        carton=CartonFormat(units=10, weight=9600, price=Decimal("159.99")),
    ),
)
