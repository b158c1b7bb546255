"""
Cart panel — the slide-out drawer with rows, totals, coupons and shipping.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from cartsync._types import COUPONS, SHIPPING, Error, Ok, Result, line
from cartsync.coordinator import CartActions, Confirmed, MutationError
from cartsync.snapshot import AppliedCoupon, ShippingMethod, SnapshotStore
from cartsync.surfaces._base import Renderer, Surface
from cartsync.transport import CouponApplied, LineTotals

# ═══════════════════════════════════════════════════════════════════════════════
# View Model
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RowView:
    key: str
    name: str
    image_url: str
    permalink: str
    unit_price_display: str
    quantity: int
    subtotal_display: str
    busy: bool


@dataclass(frozen=True, slots=True)
class CouponInput:
    value: str = ""
    loading: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PanelView:
    open: bool
    rows: tuple[RowView, ...]
    count: int
    subtotal_display: str
    total_display: str
    coupons: tuple[AppliedCoupon, ...]
    shipping_methods: tuple[ShippingMethod, ...]
    shipping_destination: str
    shipping_busy: bool
    coupon: CouponInput = field(default_factory=CouponInput)

    @property
    def empty(self) -> bool:
        return not self.rows


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Panel
# ═══════════════════════════════════════════════════════════════════════════════


class CartPanel(Surface[PanelView]):
    """
    Drawer listing the cart.

    Example:
        panel = CartPanel(store, actions, renderer=draw)
        panel.open()
        await panel.increment("k1")
        panel.set_coupon_code("SAVE10")
        await panel.submit_coupon()
    """

    def __init__(
        self,
        store: SnapshotStore,
        actions: CartActions,
        renderer: Renderer[PanelView] | None = None,
    ) -> None:
        self._actions = actions
        self._open = False
        self._coupon = CouponInput()
        super().__init__(store, renderer)

    def view(self) -> PanelView:
        snapshot = self._store.current
        rows = tuple(
            RowView(
                key=item.key,
                name=item.name,
                image_url=item.image_url,
                permalink=item.permalink,
                unit_price_display=item.unit_price_display,
                quantity=item.quantity,
                subtotal_display=item.line_subtotal_display,
                busy=self._store.is_pending(line(item.key)),
            )
            for item in snapshot.items
        )
        return PanelView(
            open=self._open,
            rows=rows,
            count=snapshot.count,
            subtotal_display=snapshot.totals.subtotal_display,
            total_display=snapshot.totals.total_display,
            coupons=snapshot.applied_coupons,
            shipping_methods=snapshot.shipping_methods,
            shipping_destination=snapshot.shipping_destination,
            shipping_busy=self._store.is_pending(SHIPPING),
            coupon=replace(self._coupon, loading=self._store.is_pending(COUPONS)),
        )

    # ───────────────────────────────────────────────────────────────────────
    # Open / Close
    # ───────────────────────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True
        self.rerender()

    def close(self) -> None:
        self._open = False
        self.rerender()

    def toggle(self) -> None:
        self._open = not self._open
        self.rerender()

    # ───────────────────────────────────────────────────────────────────────
    # Rows
    # ───────────────────────────────────────────────────────────────────────

    async def increment(self, key: str) -> Result[Confirmed[LineTotals], MutationError]:
        return await self._actions.request_quantity_change(key, +1)

    async def decrement(self, key: str) -> Result[Confirmed[LineTotals], MutationError]:
        return await self._actions.request_quantity_change(key, -1)

    async def remove(self, key: str) -> Result[Confirmed[LineTotals], MutationError]:
        return await self._actions.request_remove(key)

    async def select_shipping(self, method_id: str) -> Result[Confirmed[str], MutationError]:
        return await self._actions.request_shipping_change(method_id)

    # ───────────────────────────────────────────────────────────────────────
    # Coupon Form
    # ───────────────────────────────────────────────────────────────────────

    def set_coupon_code(self, value: str) -> None:
        self._coupon = CouponInput(value=value)
        self.rerender()

    async def submit_coupon(self) -> Result[Confirmed[CouponApplied], MutationError]:
        """Apply the typed code. Success clears the input, failure shows why."""
        result = await self._actions.request_coupon_apply(self._coupon.value)
        match result:
            case Ok(_):
                self._coupon = CouponInput()
            case Error(e):
                self._coupon = replace(self._coupon, error=e.message)
        self.rerender()
        return result

    async def remove_coupon(self, code: str) -> Result[Confirmed[str], MutationError]:
        result = await self._actions.request_coupon_remove(code)
        match result:
            case Ok(_):
                self._coupon = replace(self._coupon, error=None)
            case Error(e):
                self._coupon = replace(self._coupon, error=e.message)
        self.rerender()
        return result


__all__ = ("RowView", "CouponInput", "PanelView", "CartPanel")
