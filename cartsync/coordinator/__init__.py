"""
Coordinator — optimistic mutations with single-flight per resource.

    from cartsync import coordinator as M

    coordinator = M.Coordinator(store, notices=on_notice, on_nonce=transport.set_nonce)
    actions = M.CartActions(store, coordinator, transport, settings)

    match await actions.request_quantity_change("k1", +1):
        case Ok(confirmed):
            ...
        case Error(M.MutationError(kind=M.MutationErrorKind.ROLLED_BACK)):
            ...  # prediction undone, notice published
"""

from __future__ import annotations

from cartsync.coordinator._types import (
    Confirmed,
    MutationErrorKind,
    MutationError,
    NoticeLevel,
    Notice,
    NoticeSink,
)
from cartsync.coordinator._policy import (
    OnBusy,
    QUEUE,
    REJECT,
    Policy,
    DEFAULT,
)
from cartsync.coordinator._quantity import (
    QuantityState,
    Transition,
    QuantityTracker,
)
from cartsync.coordinator._coordinator import Coordinator, SESSION_EXPIRED
from cartsync.coordinator._actions import (
    CartActions,
    fold_line_totals,
    fold_coupon_applied,
    fold_coupon_removed,
    QUANTITY_FAILED,
    REMOVE_FAILED,
    COUPON_INVALID,
    COUPON_EMPTY,
    COUPON_REMOVE_FAILED,
    SHIPPING_FAILED,
    ADD_FAILED,
    ADDRESS_FAILED,
    CHECKOUT_FAILED,
    CART_UNAVAILABLE,
)

__all__ = (
    # Outcomes
    "Confirmed",
    "MutationErrorKind",
    "MutationError",
    "NoticeLevel",
    "Notice",
    "NoticeSink",
    # Policy
    "OnBusy",
    "QUEUE",
    "REJECT",
    "Policy",
    "DEFAULT",
    # Quantity state machine
    "QuantityState",
    "Transition",
    "QuantityTracker",
    # Execution
    "Coordinator",
    "SESSION_EXPIRED",
    "CartActions",
    "fold_line_totals",
    "fold_coupon_applied",
    "fold_coupon_removed",
    # Messages
    "QUANTITY_FAILED",
    "REMOVE_FAILED",
    "COUPON_INVALID",
    "COUPON_EMPTY",
    "COUPON_REMOVE_FAILED",
    "SHIPPING_FAILED",
    "ADD_FAILED",
    "ADDRESS_FAILED",
    "CHECKOUT_FAILED",
    "CART_UNAVAILABLE",
)
