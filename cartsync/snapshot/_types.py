"""
Snapshot types — the cart as the shopper sees it.

All types are immutable: a "deep copy" of a slice is the slice itself.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum, auto

from cartsync._types import ResourceKey

# ═══════════════════════════════════════════════════════════════════════════════
# Cart Contents
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLineItem:
    """
    One cart line.

    Note: key is assigned by the platform and is distinct from product_id,
    the same product with different options lands on separate lines.
    """

    key: str
    product_id: int
    name: str
    unit_price: Decimal
    unit_price_display: str
    quantity: int
    line_subtotal_display: str
    image_url: str = ""
    permalink: str = ""
    variation_id: int | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"Negative quantity on line {self.key}")

    def with_quantity(self, quantity: int, subtotal_display: str) -> CartLineItem:
        return replace(
            self, quantity=quantity, line_subtotal_display=subtotal_display
        )


@dataclass(frozen=True, slots=True)
class AppliedCoupon:
    code: str
    discount_display: str


@dataclass(frozen=True, slots=True)
class ShippingMethod:
    id: str
    label: str
    cost_display: str
    raw_cost: Decimal
    selected: bool = False


@dataclass(frozen=True, slots=True)
class CartTotals:
    """
    Cart totals as the platform reported them.

    Display strings are shown verbatim; raw numbers exist only for
    client-side display estimates.
    """

    subtotal: Decimal = Decimal("0")
    subtotal_display: str = ""
    discount_total: Decimal = Decimal("0")
    discount_tax: Decimal = Decimal("0")
    shipping_total: Decimal = Decimal("0")
    shipping_tax: Decimal = Decimal("0")
    fee_total: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    total_display: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """
    Authoritative-or-predicted cart at a point in time.

    Invariants (checked on construction):
        - no line has quantity 0
        - coupon codes are unique
        - at most one shipping method is selected
    """

    items: tuple[CartLineItem, ...] = ()
    applied_coupons: tuple[AppliedCoupon, ...] = ()
    shipping_methods: tuple[ShippingMethod, ...] = ()
    totals: CartTotals = field(default_factory=CartTotals)
    count: int = 0
    shipping_destination: str = ""
    revision: int = 0

    def __post_init__(self) -> None:
        for item in self.items:
            if item.quantity == 0:
                raise ValueError(f"Line {item.key} has quantity 0")
        codes = [c.code for c in self.applied_coupons]
        if len(codes) != len(set(codes)):
            raise ValueError("Duplicate coupon code")
        if sum(1 for m in self.shipping_methods if m.selected) > 1:
            raise ValueError("More than one shipping method selected")

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(item.key for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def selected_shipping(self) -> ShippingMethod | None:
        for method in self.shipping_methods:
            if method.selected:
                return method
        return None

    def line(self, key: str) -> CartLineItem | None:
        for item in self.items:
            if item.key == key:
                return item
        return None

    def same_content(self, other: CartSnapshot) -> bool:
        """Equal in everything the shopper can see (revision excluded)."""
        return replace(self, revision=0) == replace(other, revision=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Slice — The Part of a Snapshot a Resource Owns
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Slice:
    """
    The state one resource key owns, plus badge count and totals.

    Note: totals and count ride along with every slice.
    Why: rollback must restore the badge and totals byte-for-byte.

    line/position: only for line resources (line None = line absent).
    coupons: only for the coupon resource.
    shipping_methods: only for the shipping resource.
    """

    resource: ResourceKey
    totals: CartTotals
    count: int
    line: CartLineItem | None = None
    position: int | None = None
    coupons: tuple[AppliedCoupon, ...] = ()
    shipping_methods: tuple[ShippingMethod, ...] = ()


type Mutator = Callable[[Slice], Slice]
"""Computes a predicted slice from the current one."""


# ═══════════════════════════════════════════════════════════════════════════════
# Pending Mutation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PendingMutation:
    """
    An in-flight optimistic operation.

    ticket: store-wide increasing stamp; a pending mutation is stale once
    a newer ticket exists for the same resource.
    """

    resource_key: ResourceKey
    previous_state: Slice
    predicted_state: Slice
    started_revision: int
    ticket: int


# ═══════════════════════════════════════════════════════════════════════════════
# Change Notification
# ═══════════════════════════════════════════════════════════════════════════════


class ChangeKind(Enum):
    PREDICTION = auto()
    AUTHORITATIVE = auto()
    CONFIRMED = auto()
    ROLLBACK = auto()
    RELEASED = auto()
    REORDER = auto()


@dataclass(frozen=True, slots=True)
class Change:
    """What caused a notification."""

    kind: ChangeKind
    resource: ResourceKey | None
    revision: int


type Listener = Callable[[CartSnapshot, Change], None]
type Unsubscribe = Callable[[], None]
type Arrange = Callable[[tuple[CartLineItem, ...]], tuple[CartLineItem, ...]]


__all__ = (
    "CartLineItem",
    "AppliedCoupon",
    "ShippingMethod",
    "CartTotals",
    "CartSnapshot",
    "Slice",
    "Mutator",
    "PendingMutation",
    "ChangeKind",
    "Change",
    "Listener",
    "Unsubscribe",
    "Arrange",
)
