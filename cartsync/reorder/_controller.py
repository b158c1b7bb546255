"""
Drag reorder — client-only line order that survives refreshes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from cartsync.snapshot import CartLineItem, SnapshotStore, sort_by_keys

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DragReorderState:
    """
    Last known key order plus the row being dragged.

    Note: order may name keys that have since left the cart; they are
    ignored when sorting.
    """

    order: tuple[str, ...]
    dragging: str | None = None


def move(order: tuple[str, ...], dragged: str, target: str) -> tuple[str, ...]:
    """
    Move dragged next to target.

    Dragging up lands before the target, dragging down lands after it.

    Example:
        move(("x", "y", "z"), "z", "x")  # ("z", "x", "y")
        move(("x", "y", "z"), "x", "y")  # ("y", "x", "z")
    """
    if dragged == target:
        return order
    source = order.index(dragged)
    destination = order.index(target)

    rest = [key for key in order if key != dragged]
    anchor = rest.index(target)
    rest.insert(anchor + 1 if source < destination else anchor, dragged)
    return tuple(rest)


class ReorderController:
    """
    Drag/drop handling for cart rows.

    Installs itself as the store's arrangement, so every absorbed
    snapshot is sorted by the last dropped order.

    Example:
        reorder = ReorderController(store)
        reorder.start_drag("k3")
        reorder.drop("k1")
    """

    def __init__(self, store: SnapshotStore) -> None:
        self._store = store
        self._state: DragReorderState | None = None
        store.set_arrangement(self.arrange)

    @property
    def state(self) -> DragReorderState | None:
        return self._state

    @property
    def dragging(self) -> str | None:
        return self._state.dragging if self._state is not None else None

    def start_drag(self, key: str) -> bool:
        keys = self._store.current.keys
        if key not in keys:
            return False
        self._state = DragReorderState(order=keys, dragging=key)
        return True

    def drop(self, target: str) -> bool:
        """Finish the drag on target's row. False if nothing moved."""
        state = self._state
        if state is None or state.dragging is None:
            return False

        keys = self._store.current.keys
        dragged = state.dragging
        if dragged not in keys or target not in keys:
            self._state = replace(state, dragging=None)
            return False

        order = move(keys, dragged, target)
        self._state = DragReorderState(order=order)
        if order == keys:
            return False
        self._store.reorder(order)
        logger.debug("Moved %s next to %s", dragged, target)
        return True

    def cancel_drag(self) -> None:
        if self._state is not None:
            self._state = replace(self._state, dragging=None)

    def arrange(self, items: tuple[CartLineItem, ...]) -> tuple[CartLineItem, ...]:
        if self._state is None:
            return items
        return sort_by_keys(items, self._state.order)

    def detach(self) -> None:
        self._store.set_arrangement(None)


__all__ = ("DragReorderState", "move", "ReorderController")
