"""
Toggle badge — floating cart button with the item count.
"""

from __future__ import annotations

from dataclasses import dataclass

from cartsync._types import Error, Ok, Result
from cartsync.coordinator import CartActions, Confirmed, MutationError
from cartsync.snapshot import SnapshotStore
from cartsync.surfaces._base import Renderer, Surface
from cartsync.surfaces._panel import CartPanel
from cartsync.surfaces._popup import VariationPopup
from cartsync.transport import AddedToCart, Product

BADGE_LIMIT = 99


def badge_label(count: int) -> str:
    return f"{BADGE_LIMIT}+" if count > BADGE_LIMIT else str(count)


@dataclass(frozen=True, slots=True)
class BadgeView:
    count: int
    label: str
    visible: bool
    open: bool
    drop_active: bool


class ToggleBadge(Surface[BadgeView]):
    """
    Opens the panel on click and accepts products dropped onto it.

    Variable products dropped here open the variation popup instead of
    being added blind.
    """

    def __init__(
        self,
        store: SnapshotStore,
        actions: CartActions,
        panel: CartPanel,
        *,
        popup: VariationPopup | None = None,
        show_badge: bool = True,
        renderer: Renderer[BadgeView] | None = None,
    ) -> None:
        self._actions = actions
        self._panel = panel
        self._popup = popup
        self._show_badge = show_badge
        self._drop_active = False
        super().__init__(store, renderer)

    def view(self) -> BadgeView:
        count = self._store.current.count
        return BadgeView(
            count=count,
            label=badge_label(count),
            visible=self._show_badge,
            open=self._panel.is_open,
            drop_active=self._drop_active,
        )

    def click(self) -> None:
        self._panel.toggle()
        self.rerender()

    def drag_enter(self) -> None:
        self._drop_active = True
        self.rerender()

    def drag_leave(self) -> None:
        self._drop_active = False
        self.rerender()

    async def drop(self, product: Product) -> Result[Confirmed[AddedToCart], MutationError] | None:
        """
        Add a dropped product.

        Returns None when the popup took over (variable product).
        """
        self._drop_active = False
        self.rerender()

        if product.is_variable and self._popup is not None and self._popup.enabled:
            await self._popup.open(product.id)
            return None

        result = await self._actions.request_add_to_cart(product.id)
        match result:
            case Ok(_):
                self._panel.open()
                self.rerender()
            case Error(_):
                pass
        return result


__all__ = ("BADGE_LIMIT", "badge_label", "BadgeView", "ToggleBadge")
