"""
Transport — authenticated platform calls with typed failures.

    from cartsync import transport as T

    transport = T.HttpTransport(client, settings)

    match await transport.set_quantity("k1", 3):
        case Ok(totals):
            print(totals.total_display)
        case Error(T.SessionError()):
            ...  # nonce expired
        case Error(e):
            print(T.describe(e, "Failed to update quantity"))
"""

from __future__ import annotations

from cartsync.transport._errors import (
    NetworkError,
    ApplicationError,
    SessionError,
    ValidationError,
    TransportError,
    describe,
)
from cartsync.transport._types import (
    LineTotals,
    CouponApplied,
    AddToCartRequest,
    AddedToCart,
    Product,
    ProductVariation,
    VariableProduct,
    ProductQuery,
    CheckoutResult,
)
from cartsync.transport._client import (
    Transport,
    HttpTransport,
    interpret,
)

__all__ = (
    # Errors
    "NetworkError",
    "ApplicationError",
    "SessionError",
    "ValidationError",
    "TransportError",
    "describe",
    # Results
    "LineTotals",
    "CouponApplied",
    "AddToCartRequest",
    "AddedToCart",
    "Product",
    "ProductVariation",
    "VariableProduct",
    "ProductQuery",
    "CheckoutResult",
    # Adapters
    "Transport",
    "HttpTransport",
    "interpret",
)
