"""
Cart actions — the intents surfaces dispatch.

Each intent picks a resource key, a prediction, the transport call and
a fold for the response, then hands them to the Coordinator. Surfaces
never see the transport.

    actions = CartActions(store, coordinator, transport, settings)

    await actions.request_quantity_change("k1", +1)
    await actions.request_coupon_apply(" SAVE10 ")
    await actions.request_shipping_change("flat_rate")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import replace

from cartsync._money import format_price, parse_price
from cartsync._types import (
    ADDRESS,
    CART,
    CHECKOUT,
    COUPONS,
    SHIPPING,
    Error,
    Ok,
    ResourceKey,
    Result,
    add_product,
    line,
)
from cartsync.config import Settings
from cartsync.coordinator._coordinator import SESSION_EXPIRED, Coordinator, _await
from cartsync.coordinator._policy import QUEUE, REJECT, Policy
from cartsync.coordinator._quantity import QuantityState, QuantityTracker
from cartsync.coordinator._types import (
    Confirmed,
    MutationError,
    MutationErrorKind,
    Notice,
    NoticeLevel,
)
from cartsync.snapshot import (
    AppliedCoupon,
    CartSnapshot,
    CartTotals,
    Fold,
    Slice,
    SnapshotStore,
)
from cartsync.transport import (
    AddedToCart,
    AddToCartRequest,
    CheckoutResult,
    CouponApplied,
    LineTotals,
    SessionError,
    Transport,
    ValidationError,
    describe,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════════════════════════

QUANTITY_FAILED = "Failed to update quantity"
REMOVE_FAILED = "Failed to remove item"
COUPON_INVALID = "Invalid coupon code"
COUPON_EMPTY = "Please enter a coupon code"
COUPON_REMOVE_FAILED = "Failed to remove coupon"
SHIPPING_FAILED = "Failed to update shipping method"
ADD_FAILED = "Failed to add to cart"
ADDRESS_FAILED = "Failed to save address"
CHECKOUT_FAILED = "Checkout failed"
CART_UNAVAILABLE = "Could not load cart"


# ═══════════════════════════════════════════════════════════════════════════════
# Folds — Authoritative Numbers Into the Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


def fold_line_totals(totals: LineTotals) -> Fold:
    """Badge count, subtotal and total verbatim from the platform."""

    def fold(snapshot: CartSnapshot) -> CartSnapshot:
        return replace(
            snapshot,
            count=totals.count,
            totals=replace(
                snapshot.totals,
                subtotal=totals.subtotal,
                subtotal_display=totals.subtotal_display,
                total=totals.total,
                total_display=totals.total_display,
            ),
        )

    return fold


def fold_coupon_applied(applied: CouponApplied, settings: Settings) -> Fold:
    fmt = settings.price_format

    def fold(snapshot: CartSnapshot) -> CartSnapshot:
        coupons = tuple(c for c in snapshot.applied_coupons if c.code != applied.code)
        totals = snapshot.totals
        if applied.subtotal_display:
            totals = replace(
                totals,
                subtotal=parse_price(applied.subtotal_display, fmt),
                subtotal_display=applied.subtotal_display,
            )
        if applied.total_display:
            totals = replace(
                totals,
                total=parse_price(applied.total_display, fmt),
                total_display=applied.total_display,
            )
        return replace(
            snapshot,
            applied_coupons=(*coupons, AppliedCoupon(applied.code, applied.discount_display)),
            totals=totals,
        )

    return fold


def fold_coupon_removed(code: str) -> Fold:
    def fold(snapshot: CartSnapshot) -> CartSnapshot:
        return replace(
            snapshot,
            applied_coupons=tuple(c for c in snapshot.applied_coupons if c.code != code),
        )

    return fold


def _unchanged(piece: Slice) -> Slice:
    return piece


def _invalid(resource: ResourceKey, message: str, field: str | None = None) -> Error:
    return Error(
        MutationError(
            MutationErrorKind.VALIDATION,
            resource,
            message,
            cause=ValidationError(message, field=field),
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Actions
# ═══════════════════════════════════════════════════════════════════════════════


class CartActions:
    """
    Intent dispatch for every surface.

    Successful mutations are followed by a refresh so line subtotals and
    rates come from the platform. A refresh cancels any older refresh
    still in flight; its snapshot is absorbed against the ticket
    watermark taken when it was sent.
    """

    def __init__(
        self,
        store: SnapshotStore,
        coordinator: Coordinator,
        transport: Transport,
        settings: Settings,
        tracker: QuantityTracker | None = None,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._transport = transport
        self._settings = settings
        self._tracker = tracker if tracker is not None else QuantityTracker()
        self._refresh_task: asyncio.Future[Result[CartSnapshot, object]] | None = None

        self._quantity_policy = (
            Policy()
            .with_on_busy(QUEUE)
            .with_cooldown(seconds=settings.quantity_cooldown)
        )
        self._guard_policy = Policy().with_on_busy(REJECT)
        self._shipping_policy = Policy().with_on_busy(QUEUE).without_rollback()

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def tracker(self) -> QuantityTracker:
        return self._tracker

    @property
    def settings(self) -> Settings:
        return self._settings

    def is_busy(self, resource: ResourceKey) -> bool:
        return self._coordinator.is_busy(resource)

    def cancel(self, resource: ResourceKey) -> bool:
        return self._coordinator.cancel(resource)

    # ───────────────────────────────────────────────────────────────────────
    # Refresh
    # ───────────────────────────────────────────────────────────────────────

    async def refresh(self) -> Result[CartSnapshot, MutationError]:
        """Fetch the cart and absorb it. Supersedes an older refresh."""
        if self._coordinator.is_degraded:
            return Error(MutationError(MutationErrorKind.DEGRADED, CART, SESSION_EXPIRED))

        previous = self._refresh_task
        if previous is not None and not previous.done():
            previous.cancel()
            logger.info("Superseded in-flight cart refresh")

        as_of = self._store.watermark
        task = asyncio.ensure_future(_await(self._transport.get_cart()))
        self._refresh_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if task is not self._refresh_task:
                return Error(
                    MutationError(MutationErrorKind.CANCELLED, CART, "Superseded by a newer refresh")
                )
            raise
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

        match result:
            case Ok(snapshot):
                return Ok(self._store.absorb_authoritative(snapshot, as_of=as_of))
            case Error(SessionError() as e):
                self._coordinator.degrade(e)
                return Error(MutationError(MutationErrorKind.FAILED, CART, SESSION_EXPIRED, cause=e))
            case Error(e):
                logger.warning("Cart refresh failed: %r", e)
                return Error(
                    MutationError(
                        MutationErrorKind.FAILED, CART, describe(e, CART_UNAVAILABLE), cause=e
                    )
                )

    async def recover(self, nonce: str) -> Result[CartSnapshot, MutationError]:
        """Install a fresh nonce, leave degraded mode and reload the cart."""
        self._coordinator.recover(nonce)
        return await self.refresh()

    async def _refresh_after(self, result: Result[Confirmed, MutationError]) -> None:
        match result:
            case Ok(_):
                await self.refresh()
            case Error(e) if e.stale_totals:
                logger.info("Reloading cart after partial rollback of %s", e.resource)
                await self.refresh()
            case Error(_):
                pass

    # ───────────────────────────────────────────────────────────────────────
    # Lines
    # ───────────────────────────────────────────────────────────────────────

    async def request_quantity_change(
        self, key: str, delta: int
    ) -> Result[Confirmed[LineTotals], MutationError]:
        """
        +/- on a line. Quantity 0 predicts and requests a removal.

        The line subtotal is estimated as unit price times quantity until
        the platform answers; count and totals then come from the response.
        """
        resource = line(key)
        if self._store.current.line(key) is None and not self._store.is_pending(resource):
            return _invalid(resource, "Cart item not found", field="cart_item_key")

        fmt = self._settings.price_format
        tracker = self._tracker
        target = 0
        sent = False

        def predict(piece: Slice) -> Slice:
            nonlocal target
            current = piece.line.quantity if piece.line is not None else 0
            # A line removed while this intent was queued stays removed
            target = max(0, current + delta) if piece.line is not None else 0
            tracker.advance(key, QuantityState.PREDICTING, target)

            count = max(0, piece.count + target - current)
            if piece.line is None or target == 0:
                return replace(piece, line=None, count=count)
            estimate = format_price(piece.line.unit_price * target, fmt)
            return replace(piece, line=piece.line.with_quantity(target, estimate), count=count)

        def call():
            nonlocal sent
            tracker.advance(key, QuantityState.AWAITING_SERVER, target)
            sent = True
            if target == 0:
                return self._transport.remove_item(key)
            return self._transport.set_quantity(key, target)

        try:
            result = await self._coordinator.mutate(
                resource,
                predict,
                call,
                merge=fold_line_totals,
                failure_message=QUANTITY_FAILED,
                policy=self._quantity_policy,
            )
        except asyncio.CancelledError:
            if sent:
                tracker.settle(key, confirmed=False, quantity=target)
            raise

        if sent:
            match result:
                case Ok(_):
                    tracker.settle(key, confirmed=True, quantity=target)
                case Error(_):
                    tracker.settle(key, confirmed=False, quantity=target)

        await self._refresh_after(result)
        return result

    async def request_remove(self, key: str) -> Result[Confirmed[LineTotals], MutationError]:
        resource = line(key)
        if self._store.current.line(key) is None and not self._store.is_pending(resource):
            return _invalid(resource, "Cart item not found", field="cart_item_key")

        def predict(piece: Slice) -> Slice:
            removed = piece.line.quantity if piece.line is not None else 0
            return replace(piece, line=None, count=max(0, piece.count - removed))

        result = await self._coordinator.mutate(
            resource,
            predict,
            lambda: self._transport.remove_item(key),
            merge=fold_line_totals,
            failure_message=REMOVE_FAILED,
            policy=self._guard_policy,
        )
        await self._refresh_after(result)
        return result

    # ───────────────────────────────────────────────────────────────────────
    # Coupons
    # ───────────────────────────────────────────────────────────────────────

    async def request_coupon_apply(
        self, code: str
    ) -> Result[Confirmed[CouponApplied], MutationError]:
        """
        Apply a coupon. Totals are not predicted: the pending coupon
        resource is the loading indicator until the platform decides.
        """
        code = code.strip()
        if not code:
            return _invalid(COUPONS, COUPON_EMPTY, field="coupon_code")

        settings = self._settings
        result = await self._coordinator.mutate(
            COUPONS,
            _unchanged,
            lambda: self._transport.apply_coupon(code),
            merge=lambda applied: fold_coupon_applied(applied, settings),
            failure_message=COUPON_INVALID,
            policy=self._guard_policy,
        )
        await self._refresh_after(result)
        return result

    async def request_coupon_remove(self, code: str) -> Result[Confirmed[str], MutationError]:
        code = code.strip()
        if not code:
            return _invalid(COUPONS, COUPON_EMPTY, field="coupon_code")

        result = await self._coordinator.mutate(
            COUPONS,
            _unchanged,
            lambda: self._transport.remove_coupon(code),
            merge=fold_coupon_removed,
            failure_message=COUPON_REMOVE_FAILED,
            policy=self._guard_policy,
        )
        await self._refresh_after(result)
        return result

    # ───────────────────────────────────────────────────────────────────────
    # Shipping
    # ───────────────────────────────────────────────────────────────────────

    async def request_shipping_change(self, method_id: str) -> Result[Confirmed[str], MutationError]:
        """
        Select a shipping method and estimate total = subtotal + cost.

        A failed persist keeps the selection on screen and raises a
        warning notice instead of rolling back.
        """
        methods = self._store.current.shipping_methods
        if not any(m.id == method_id for m in methods):
            return _invalid(SHIPPING, "Unknown shipping method", field="shipping_method")

        fmt = self._settings.price_format

        def predict(piece: Slice) -> Slice:
            selected = None
            flipped = []
            for method in piece.shipping_methods:
                chosen = method.id == method_id
                flipped.append(replace(method, selected=chosen))
                if chosen:
                    selected = method
            if selected is None:
                return piece

            total = piece.totals.subtotal + selected.raw_cost
            totals: CartTotals = replace(
                piece.totals,
                shipping_total=selected.raw_cost,
                total=total,
                total_display=format_price(total, fmt),
            )
            return replace(piece, shipping_methods=tuple(flipped), totals=totals)

        result = await self._coordinator.mutate(
            SHIPPING,
            predict,
            lambda: self._transport.select_shipping(method_id),
            failure_message=SHIPPING_FAILED,
            policy=self._shipping_policy,
        )
        await self._refresh_after(result)
        return result

    # ───────────────────────────────────────────────────────────────────────
    # Add to Cart
    # ───────────────────────────────────────────────────────────────────────

    async def request_add_to_cart(
        self,
        product_id: int,
        quantity: int = 1,
        variation_id: int | None = None,
        attributes: Mapping[str, str] | None = None,
    ) -> Result[Confirmed[AddedToCart], MutationError]:
        resource = add_product(product_id)
        if quantity < 1:
            return _invalid(resource, "Quantity must be at least 1", field="quantity")

        request = AddToCartRequest(
            product_id=product_id,
            quantity=quantity,
            variation_id=variation_id,
            attributes=dict(attributes or {}),
        )
        result = await self._coordinator.mutate(
            resource,
            _unchanged,
            lambda: self._transport.add_to_cart(request),
            failure_message=ADD_FAILED,
            policy=self._guard_policy,
        )
        match result:
            case Ok(_):
                self._coordinator.notify(Notice(NoticeLevel.INFO, "Added to cart", resource))
            case Error(_):
                pass
        await self._refresh_after(result)
        return result

    # ───────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────

    def missing_fields(self, fields: Mapping[str, str]) -> tuple[str, ...]:
        return tuple(
            name
            for name in self._settings.required_checkout_fields
            if not fields.get(name, "").strip()
        )

    def _check_required(self, resource: ResourceKey, fields: Mapping[str, str]) -> Error | None:
        missing = self.missing_fields(fields)
        if not missing:
            return None
        return _invalid(resource, f"Field {missing[0]} is required", field=missing[0])

    async def request_save_address(
        self, fields: Mapping[str, str]
    ) -> Result[Confirmed[None], MutationError]:
        """Save billing/shipping into the platform session; rates follow."""
        invalid = self._check_required(ADDRESS, fields)
        if invalid is not None:
            return invalid

        snapshot = dict(fields)
        result = await self._coordinator.mutate(
            ADDRESS,
            _unchanged,
            lambda: self._transport.save_checkout_address(snapshot),
            failure_message=ADDRESS_FAILED,
            policy=self._guard_policy,
        )
        await self._refresh_after(result)
        return result

    async def request_checkout(
        self, fields: Mapping[str, str]
    ) -> Result[Confirmed[CheckoutResult], MutationError]:
        """Place the order. A second submit while one is in flight is BUSY."""
        invalid = self._check_required(CHECKOUT, fields)
        if invalid is not None:
            return invalid

        snapshot = dict(fields)
        return await self._coordinator.mutate(
            CHECKOUT,
            _unchanged,
            lambda: self._transport.process_checkout(snapshot),
            failure_message=CHECKOUT_FAILED,
            policy=self._guard_policy,
        )


__all__ = (
    "CartActions",
    "fold_line_totals",
    "fold_coupon_applied",
    "fold_coupon_removed",
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
