"""
Platform payloads — pydantic models for response bodies.

Each model validates the `data` member of a response envelope and
converts it with to_domain(). Display prices arrive as HTML from the
platform and are flattened to plain text here, so they compare equal to
client-side estimates.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from cartsync._money import PriceFormat, parse_price, plain_price
from cartsync.snapshot import (
    AppliedCoupon,
    CartLineItem,
    CartSnapshot,
    CartTotals,
    ShippingMethod,
)
from cartsync.transport._types import (
    AddedToCart,
    CheckoutResult,
    CouponApplied,
    LineTotals,
    Product,
    ProductVariation,
    VariableProduct,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class ItemIn(BaseModel):
    key: str
    id: int
    name: str
    price: str
    quantity: int
    subtotal: str
    image: str = ""
    permalink: str = ""
    variation_id: int | None = None

    def to_domain(self, fmt: PriceFormat) -> CartLineItem:
        return CartLineItem(
            key=self.key,
            product_id=self.id,
            name=self.name,
            unit_price=parse_price(self.price, fmt),
            unit_price_display=plain_price(self.price),
            quantity=self.quantity,
            line_subtotal_display=plain_price(self.subtotal),
            image_url=self.image,
            permalink=self.permalink,
            variation_id=self.variation_id or None,
        )


class CouponIn(BaseModel):
    code: str
    discount: str

    def to_domain(self) -> AppliedCoupon:
        return AppliedCoupon(code=self.code, discount_display=plain_price(self.discount))


class ShippingMethodIn(BaseModel):
    id: str
    label: str
    cost: Decimal = Decimal("0")
    cost_formatted: str = ""
    selected: bool = False

    def to_domain(self, selected: bool) -> ShippingMethod:
        return ShippingMethod(
            id=self.id,
            label=self.label,
            cost_display=plain_price(self.cost_formatted),
            raw_cost=self.cost,
            selected=selected,
        )


class CartIn(BaseModel):
    """GET cart response."""

    items: list[ItemIn] = Field(default_factory=list)
    count: int = 0
    subtotal: str = ""
    discount_total: Decimal = Decimal("0")
    discount_tax: Decimal = Decimal("0")
    shipping_total: Decimal = Decimal("0")
    shipping_tax: Decimal = Decimal("0")
    fee_total: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total: str = ""
    total_raw: Decimal | None = None
    coupons: list[CouponIn] = Field(default_factory=list)
    shipping_methods: list[ShippingMethodIn] = Field(default_factory=list)
    shipping_destination: str = ""

    def to_domain(self, fmt: PriceFormat) -> CartSnapshot:
        # First selected method wins if the platform reports several
        methods: list[ShippingMethod] = []
        seen_selected = False
        for method in self.shipping_methods:
            selected = method.selected and not seen_selected
            seen_selected = seen_selected or selected
            methods.append(method.to_domain(selected))

        coupons: dict[str, AppliedCoupon] = {}
        for coupon in self.coupons:
            coupons.setdefault(coupon.code, coupon.to_domain())

        total = self.total_raw if self.total_raw is not None else _amount(self.total, fmt)
        return CartSnapshot(
            items=tuple(i.to_domain(fmt) for i in self.items if i.quantity > 0),
            applied_coupons=tuple(coupons.values()),
            shipping_methods=tuple(methods),
            totals=CartTotals(
                subtotal=_amount(self.subtotal, fmt),
                subtotal_display=plain_price(self.subtotal),
                discount_total=self.discount_total,
                discount_tax=self.discount_tax,
                shipping_total=self.shipping_total,
                shipping_tax=self.shipping_tax,
                fee_total=self.fee_total,
                total_tax=self.total_tax,
                total=total,
                total_display=plain_price(self.total),
            ),
            count=self.count,
            shipping_destination=self.shipping_destination,
        )


class LineTotalsIn(BaseModel):
    """Quantity change / removal response."""

    count: int
    subtotal: str
    total: str

    def to_domain(self, fmt: PriceFormat) -> LineTotals:
        return LineTotals(
            count=self.count,
            subtotal=_amount(self.subtotal, fmt),
            subtotal_display=plain_price(self.subtotal),
            total=_amount(self.total, fmt),
            total_display=plain_price(self.total),
        )


class CartTotalsIn(BaseModel):
    subtotal: str = ""
    total: str = ""


class CouponAppliedIn(BaseModel):
    coupon_code: str
    discount: str
    cart_totals: CartTotalsIn = Field(default_factory=CartTotalsIn)
    message: str = ""

    def to_domain(self) -> CouponApplied:
        return CouponApplied(
            code=self.coupon_code,
            discount_display=plain_price(self.discount),
            subtotal_display=plain_price(self.cart_totals.subtotal),
            total_display=plain_price(self.cart_totals.total),
            message=self.message,
        )


class CouponRemovedIn(BaseModel):
    coupon_code: str


class ShippingSelectedIn(BaseModel):
    shipping_method: str


class AddedToCartIn(BaseModel):
    fragments: dict[str, str] = Field(default_factory=dict)
    cart_hash: str | None = None

    def to_domain(self) -> AddedToCart:
        return AddedToCart(fragments=self.fragments, cart_hash=self.cart_hash)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ProductIn(BaseModel):
    id: int
    name: str
    price: str = ""
    type: str = "simple"
    permalink: str = ""
    image: str = ""

    def to_domain(self) -> Product:
        return Product(
            id=self.id,
            name=self.name,
            price_display=plain_price(self.price),
            type=self.type,
            permalink=self.permalink,
            image_url=self.image,
        )


class GalleryImageIn(BaseModel):
    url: str
    id: int | None = None


class VariationIn(BaseModel):
    variation_id: int
    attributes: dict[str, str] = Field(default_factory=dict)
    price_html: str = ""
    is_in_stock: bool = True

    def to_domain(self) -> ProductVariation:
        return ProductVariation(
            variation_id=self.variation_id,
            attributes=self.attributes,
            price_display=plain_price(self.price_html),
            in_stock=self.is_in_stock,
        )


class VariableProductIn(BaseModel):
    id: int
    name: str
    price: str = ""
    short_description: str = ""
    image: str = ""
    gallery_images: list[GalleryImageIn] = Field(default_factory=list)
    attributes: dict[str, list[str]] = Field(default_factory=dict)
    available_variations: list[VariationIn] = Field(default_factory=list)

    def to_domain(self) -> VariableProduct:
        return VariableProduct(
            id=self.id,
            name=self.name,
            price_display=plain_price(self.price),
            short_description=self.short_description,
            image_url=self.image,
            gallery=tuple(g.url for g in self.gallery_images),
            attributes={k: tuple(v) for k, v in self.attributes.items()},
            variations=tuple(v.to_domain() for v in self.available_variations),
        )


class VariableProductEnvelopeIn(BaseModel):
    product: VariableProductIn


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutResultIn(BaseModel):
    redirect: str
    order_id: int | None = None

    def to_domain(self) -> CheckoutResult:
        return CheckoutResult(redirect=self.redirect, order_id=self.order_id)


def _amount(display: str, fmt: PriceFormat) -> Decimal:
    if not display:
        return Decimal("0")
    return parse_price(display, fmt)


__all__ = (
    "ItemIn",
    "CouponIn",
    "ShippingMethodIn",
    "CartIn",
    "LineTotalsIn",
    "CartTotalsIn",
    "CouponAppliedIn",
    "CouponRemovedIn",
    "ShippingSelectedIn",
    "AddedToCartIn",
    "ProductIn",
    "GalleryImageIn",
    "VariationIn",
    "VariableProductIn",
    "VariableProductEnvelopeIn",
    "CheckoutResultIn",
)
