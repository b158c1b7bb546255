"""
Reorder — drag rows in the cart panel, keep the order across refreshes.

    from cartsync import reorder as R

    controller = R.ReorderController(store)
    controller.start_drag("k3")
    controller.drop("k1")
"""

from __future__ import annotations

from cartsync.reorder._controller import (
    DragReorderState,
    move,
    ReorderController,
)

__all__ = (
    "DragReorderState",
    "move",
    "ReorderController",
)
