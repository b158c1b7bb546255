"""
Surface base — view-model diffing over store notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from cartsync.snapshot import CartSnapshot, Change, SnapshotStore

logger = logging.getLogger(__name__)

type Renderer[V] = Callable[[V], None]


class Surface[V]:
    """
    Derives an immutable view from the store and renders only on change.

    Subclasses implement view(). Local UI state (open flags, form input)
    changes call rerender() themselves, store changes arrive through
    on_change.

    Note: surfaces never write to the store; every mutation goes through
    CartActions.
    """

    def __init__(self, store: SnapshotStore, renderer: Renderer[V] | None = None) -> None:
        self._store = store
        self._renderer = renderer
        self._last: V | None = None
        self._renders = 0
        self._unsubscribe = store.on_change(self._on_change)

    def view(self) -> V:
        raise NotImplementedError

    @property
    def last_view(self) -> V | None:
        return self._last

    @property
    def render_count(self) -> int:
        return self._renders

    def rerender(self) -> bool:
        """Render if the view changed. Returns whether the renderer ran."""
        current = self.view()
        if current == self._last:
            return False
        self._last = current
        self._renders += 1
        if self._renderer is not None:
            self._renderer(current)
        return True

    def detach(self) -> None:
        self._unsubscribe()

    def _on_change(self, snapshot: CartSnapshot, change: Change) -> None:
        if self.rerender():
            logger.debug("%s rendered after %s", type(self).__name__, change.kind.name)


__all__ = ("Renderer", "Surface")
