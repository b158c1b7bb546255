"""
Transport result types — normalized platform responses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class LineTotals:
    """Response to a quantity change or line removal."""

    count: int
    subtotal: Decimal
    subtotal_display: str
    total: Decimal
    total_display: str


@dataclass(frozen=True, slots=True)
class CouponApplied:
    code: str
    discount_display: str
    subtotal_display: str
    total_display: str
    message: str = ""


@dataclass(frozen=True, slots=True)
class AddToCartRequest:
    product_id: int
    quantity: int = 1
    variation_id: int | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AddedToCart:
    fragments: Mapping[str, str]
    cart_hash: str | None


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: int
    name: str
    price_display: str
    type: str = "simple"
    permalink: str = ""
    image_url: str = ""

    @property
    def is_variable(self) -> bool:
        return self.type == "variable"


@dataclass(frozen=True, slots=True)
class ProductVariation:
    """
    One purchasable combination.

    attributes maps attribute names (attribute_pa_color) to values;
    an empty value means "any".
    """

    variation_id: int
    attributes: Mapping[str, str]
    price_display: str
    in_stock: bool = True


@dataclass(frozen=True, slots=True)
class VariableProduct:
    id: int
    name: str
    price_display: str
    short_description: str
    image_url: str
    gallery: tuple[str, ...]
    attributes: Mapping[str, tuple[str, ...]]
    variations: tuple[ProductVariation, ...]


@dataclass(frozen=True, slots=True)
class ProductQuery:
    search: str | None = None
    page: int = 1
    per_page: int = 100


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    redirect: str
    order_id: int | None = None


__all__ = (
    "LineTotals",
    "CouponApplied",
    "AddToCartRequest",
    "AddedToCart",
    "Product",
    "ProductVariation",
    "VariableProduct",
    "ProductQuery",
    "CheckoutResult",
)
