"""
Snapshot — the cart the shopper sees.

    from cartsync import snapshot as S

    store = S.SnapshotStore()
    store.on_change(lambda snap, change: print(change.kind, snap.count))
    store.absorb_authoritative(server_snapshot)
"""

from __future__ import annotations

from cartsync.snapshot._types import (
    CartLineItem,
    AppliedCoupon,
    ShippingMethod,
    CartTotals,
    CartSnapshot,
    Slice,
    Mutator,
    PendingMutation,
    ChangeKind,
    Change,
    Listener,
    Unsubscribe,
    Arrange,
)
from cartsync.snapshot._slice import extract, restore, sort_by_keys
from cartsync.snapshot._store import Fold, SnapshotStore

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
    "extract",
    "restore",
    "sort_by_keys",
    "Fold",
    "SnapshotStore",
)
