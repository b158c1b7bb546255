"""
Core types for cartsync.

Re-exports from kungfu + resource key helpers.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Resource Keys
# ═══════════════════════════════════════════════════════════════════════════════

type ResourceKey = str
"""
What a mutation targets: a cart line key, the coupon list, or the
shipping selection.
"""

COUPONS: ResourceKey = "coupons"
SHIPPING: ResourceKey = "shipping"
ADDRESS: ResourceKey = "address"
CHECKOUT: ResourceKey = "checkout"
CART: ResourceKey = "cart"
"""Whole-cart reads (refresh); never pending."""

_LINE_PREFIX = "line:"
_ADD_PREFIX = "add:"


def line(key: str) -> ResourceKey:
    """Resource key of a single cart line."""
    return f"{_LINE_PREFIX}{key}"


def add_product(product_id: int) -> ResourceKey:
    """Resource key guarding add-to-cart of one product."""
    return f"{_ADD_PREFIX}{product_id}"


def line_key_of(resource: ResourceKey) -> str | None:
    """Cart line key of a line resource, None for shared resources."""
    if resource.startswith(_LINE_PREFIX):
        return resource[len(_LINE_PREFIX):]
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Type aliases
    "Lazy",
    "ResourceKey",
    # Resource keys
    "COUPONS",
    "SHIPPING",
    "ADDRESS",
    "CHECKOUT",
    "CART",
    "line",
    "add_product",
    "line_key_of",
)
