"""
cartsync — optimistic cart and checkout state for storefront drawers.

    from cartsync import snapshot as S      # The cart the shopper sees
    from cartsync import coordinator as M   # Predict, call, confirm or roll back
    from cartsync import transport as T     # Platform calls with typed failures
    from cartsync import surfaces as V      # Badge, panel, popup, checkout
"""

from cartsync import transport
from cartsync import snapshot
from cartsync import coordinator
from cartsync import reorder
from cartsync import catalog
from cartsync import surfaces
from cartsync._logging import setup_logging
from cartsync._money import (
    CurrencyPosition,
    PriceFormat,
    format_price,
    parse_price,
    plain_price,
)
from cartsync._types import (
    Lazy,
    ResourceKey,
    COUPONS,
    SHIPPING,
    ADDRESS,
    CHECKOUT,
    CART,
    line,
    add_product,
    line_key_of,
)
from cartsync.config import Settings, CheckoutStepSettings
from cartsync.storefront import Renderers, Storefront, connect

__version__ = "0.1.0"

__all__ = (
    "transport",
    "snapshot",
    "coordinator",
    "reorder",
    "catalog",
    "surfaces",
    "setup_logging",
    "CurrencyPosition",
    "PriceFormat",
    "format_price",
    "parse_price",
    "plain_price",
    "Lazy",
    "ResourceKey",
    "COUPONS",
    "SHIPPING",
    "ADDRESS",
    "CHECKOUT",
    "CART",
    "line",
    "add_product",
    "line_key_of",
    "Settings",
    "CheckoutStepSettings",
    "Renderers",
    "Storefront",
    "connect",
)
