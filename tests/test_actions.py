import asyncio
from decimal import Decimal

from kungfu import Error, Ok

from cartsync import CART, COUPONS, SHIPPING, Settings, Storefront, add_product, line
from cartsync.coordinator import (
    ADD_FAILED,
    QUANTITY_FAILED,
    SESSION_EXPIRED,
    SHIPPING_FAILED,
    MutationErrorKind,
    Notice,
    NoticeLevel,
    QuantityState,
)
from cartsync.snapshot import AppliedCoupon, ChangeKind
from cartsync.surfaces import CouponInput
from cartsync.transport import (
    ApplicationError,
    NetworkError,
    Product,
    SessionError,
)

from conftest import FakePlatform, cart, item, method


def kind_of(result):
    match result:
        case Error(e):
            return e.kind
        case Ok(_):
            return None


# ═══════════════════════════════════════════════════════════════════════════════
# Quantity
# ═══════════════════════════════════════════════════════════════════════════════


def test_increment_shows_prediction_then_server_totals(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("set_quantity")

        task = asyncio.create_task(front.panel.increment("k1"))
        await asyncio.sleep(0)

        row = front.panel.last_view.rows[0]
        assert (row.quantity, row.subtotal_display, row.busy) == (3, "$30.00", True)
        assert front.badge.last_view.count == 3

        gate.set_result(None)
        assert isinstance(await task, Ok)

        view = front.panel.last_view
        assert view.rows[0].quantity == 3
        assert view.rows[0].subtotal_display == "$30.00"
        assert view.rows[0].busy is False
        assert view.total_display == "$30.00"
        assert platform.called("set_quantity") == [("k1", 3)]

    asyncio.run(scenario())


def test_failed_increment_restores_row_and_notifies(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        before = front.panel.last_view
        platform.fail("set_quantity", ApplicationError(None))

        result = await front.panel.increment("k1")

        assert kind_of(result) is MutationErrorKind.ROLLED_BACK
        assert front.panel.last_view == before
        assert before.rows[0].quantity == 2
        assert before.rows[0].subtotal_display == "$20.00"
        assert front.notices == [Notice(NoticeLevel.ERROR, QUANTITY_FAILED, line("k1"))]
        # No reload after a refusal
        assert len(platform.called("get_cart")) == 1

    asyncio.run(scenario())


def test_failed_line_keeps_totals_confirmed_by_another_line(settings):
    platform = FakePlatform(cart(item("a", 1), item("b", 1)))

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("set_quantity")
        platform.fail("set_quantity", NetworkError("timeout"))

        first = asyncio.create_task(front.panel.increment("a"))
        await asyncio.sleep(0)
        assert front.badge.last_view.count == 3

        assert isinstance(await front.panel.increment("b"), Ok)
        assert front.store.current.line("a").quantity == 2
        assert front.store.is_pending(line("a"))

        gate.set_result(None)
        result = await first

        assert kind_of(result) is MutationErrorKind.ROLLED_BACK
        match result:
            case Error(e):
                assert e.stale_totals
            case Ok(_):
                raise AssertionError("line a was confirmed")

        server = platform.snapshot()
        current = front.store.current
        assert [(i.key, i.quantity) for i in current.items] == [("a", 1), ("b", 2)]
        assert current.count == server.count == 3
        assert current.totals.total_display == server.totals.total_display == "$30.00"
        assert front.badge.last_view.count == 3
        # start, after b, after the partial rollback of a
        assert len(platform.called("get_cart")) == 3

    asyncio.run(scenario())


def test_single_failure_rolls_back_exactly_without_stale_flag(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        platform.fail("set_quantity", NetworkError("timeout"))
        return await front.panel.increment("k1")

    match asyncio.run(scenario()):
        case Error(e):
            assert e.kind is MutationErrorKind.ROLLED_BACK
            assert e.stale_totals is False
        case Ok(_):
            raise AssertionError("increment succeeded")


def test_queued_increments_predict_from_previous_result(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("set_quantity")

        first = asyncio.create_task(front.panel.increment("k1"))
        await asyncio.sleep(0)
        second = asyncio.create_task(front.panel.increment("k1"))
        await asyncio.sleep(0)
        assert front.store.current.line("k1").quantity == 3

        gate.set_result(None)
        await first
        await second

        assert front.store.current.line("k1").quantity == 4
        assert platform.called("set_quantity") == [("k1", 3), ("k1", 4)]
        assert front.store.pending_resources == frozenset()

    asyncio.run(scenario())


def test_cooldown_drops_rapid_clicks(platform):
    async def scenario():
        front = Storefront.build(platform, Settings(quantity_cooldown=60.0))
        await front.start()

        assert isinstance(await front.panel.increment("k1"), Ok)
        assert kind_of(await front.panel.increment("k1")) is MutationErrorKind.COOLDOWN
        assert front.store.current.line("k1").quantity == 3

    asyncio.run(scenario())


def test_decrement_to_zero_removes_the_line(settings):
    platform = FakePlatform(cart(item("k1", 1), item("k2", 1)))

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()

        result = await front.panel.decrement("k1")

        assert isinstance(result, Ok)
        assert platform.called("remove_item") == ["k1"]
        assert platform.called("set_quantity") == []
        assert front.store.current.keys == ("k2",)
        assert front.badge.last_view.count == 1

    asyncio.run(scenario())


def test_second_remove_click_is_busy(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("remove_item")

        first = asyncio.create_task(front.panel.remove("k1"))
        await asyncio.sleep(0)
        assert front.panel.last_view.empty

        assert kind_of(await front.panel.remove("k1")) is MutationErrorKind.BUSY

        gate.set_result(None)
        assert isinstance(await first, Ok)
        assert platform.called("remove_item") == ["k1"]

    asyncio.run(scenario())


def test_unknown_line_is_a_validation_error(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        result = await front.actions.request_quantity_change("nope", +1)
        assert kind_of(result) is MutationErrorKind.VALIDATION
        assert platform.called("set_quantity") == []

    asyncio.run(scenario())


def test_cancelled_request_is_ignored_and_next_intent_wins(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("set_quantity")

        first = asyncio.create_task(front.panel.increment("k1"))
        await asyncio.sleep(0)
        assert front.actions.cancel(line("k1"))
        assert front.store.current.line("k1").quantity == 2

        second = await front.panel.decrement("k1")
        assert kind_of(await first) is MutationErrorKind.CANCELLED
        assert gate.cancelled()

        assert isinstance(second, Ok)
        assert front.store.current.line("k1").quantity == 1
        assert platform.called("set_quantity") == [("k1", 3), ("k1", 1)]

    asyncio.run(scenario())


def test_quantity_tracker_records_each_step(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        await front.panel.increment("k1")
        platform.fail("set_quantity", NetworkError("timeout"))
        await front.panel.increment("k1")

        states = [t.target for t in front.actions.tracker.history("k1")]
        assert states == [
            QuantityState.PREDICTING,
            QuantityState.AWAITING_SERVER,
            QuantityState.CONFIRMED,
            QuantityState.IDLE,
            QuantityState.PREDICTING,
            QuantityState.AWAITING_SERVER,
            QuantityState.ROLLED_BACK,
            QuantityState.IDLE,
        ]
        assert front.actions.tracker.state("k1") is QuantityState.IDLE

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


def test_coupon_apply_shows_discount_and_clears_input(platform, settings):
    platform.valid_coupons["SAVE10"] = Decimal("5.00")

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        front.panel.set_coupon_code(" SAVE10 ")
        gate = platform.hold("apply_coupon")

        task = asyncio.create_task(front.panel.submit_coupon())
        await asyncio.sleep(0)
        assert front.panel.last_view.coupon.loading is True

        gate.set_result(None)
        assert isinstance(await task, Ok)

        view = front.panel.last_view
        assert view.coupons == (AppliedCoupon("SAVE10", "$5.00"),)
        assert view.coupon == CouponInput()
        assert view.total_display == "$15.00"
        assert platform.called("apply_coupon") == ["SAVE10"]

    asyncio.run(scenario())


def test_invalid_coupon_keeps_input_and_shows_platform_message(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        front.panel.set_coupon_code("NOPE")

        result = await front.panel.submit_coupon()

        assert kind_of(result) is MutationErrorKind.ROLLED_BACK
        coupon = front.panel.last_view.coupon
        assert coupon.value == "NOPE"
        assert coupon.error == 'Coupon "NOPE" does not exist!'
        assert coupon.loading is False
        assert front.store.current.applied_coupons == ()

    asyncio.run(scenario())


def test_blank_coupon_never_reaches_the_store(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        changes = []
        front.store.on_change(lambda snap, change: changes.append(change.kind))
        front.panel.set_coupon_code("   ")

        result = await front.panel.submit_coupon()

        assert kind_of(result) is MutationErrorKind.VALIDATION
        assert ChangeKind.PREDICTION not in changes
        assert not front.store.is_pending(COUPONS)
        assert platform.called("apply_coupon") == []
        assert front.panel.last_view.coupon.error == "Please enter a coupon code"

    asyncio.run(scenario())


def test_double_coupon_submit_is_busy(platform, settings):
    platform.valid_coupons["SAVE10"] = Decimal("5.00")

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("apply_coupon")

        first = asyncio.create_task(front.actions.request_coupon_apply("SAVE10"))
        await asyncio.sleep(0)
        assert kind_of(await front.actions.request_coupon_apply("SAVE10")) is MutationErrorKind.BUSY

        gate.set_result(None)
        assert isinstance(await first, Ok)
        assert platform.called("apply_coupon") == ["SAVE10"]

    asyncio.run(scenario())


def test_coupon_remove(settings):
    platform = FakePlatform(cart(item("k1", 2), coupons={"SAVE10": Decimal("5.00")}))

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        assert front.store.current.applied_coupons != ()

        assert isinstance(await front.panel.remove_coupon("SAVE10"), Ok)
        assert front.store.current.applied_coupons == ()

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping
# ═══════════════════════════════════════════════════════════════════════════════


def shipping_platform():
    return FakePlatform(
        cart(
            item("k1", 5),
            shipping=(method("flat_rate", "10.00"), method("free_shipping", "0", selected=True)),
        )
    )


def test_shipping_change_estimates_total_immediately(settings):
    platform = shipping_platform()

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        assert front.panel.last_view.total_display == "$50.00"
        gate = platform.hold("select_shipping")

        task = asyncio.create_task(front.panel.select_shipping("flat_rate"))
        await asyncio.sleep(0)

        view = front.panel.last_view
        assert view.total_display == "$60.00"
        assert [m.id for m in view.shipping_methods if m.selected] == ["flat_rate"]
        assert view.shipping_busy is True

        gate.set_result(None)
        assert isinstance(await task, Ok)
        assert front.panel.last_view.total_display == "$60.00"
        assert front.panel.last_view.shipping_busy is False

    asyncio.run(scenario())


def test_shipping_failure_keeps_selection_with_warning(settings):
    platform = shipping_platform()

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        platform.fail("select_shipping", NetworkError("timeout"))

        result = await front.panel.select_shipping("flat_rate")

        assert kind_of(result) is MutationErrorKind.FAILED
        assert front.store.current.selected_shipping.id == "flat_rate"
        assert front.store.current.totals.total_display == "$60.00"
        assert not front.store.is_pending(SHIPPING)
        assert front.notices == [Notice(NoticeLevel.WARNING, SHIPPING_FAILED, SHIPPING)]

    asyncio.run(scenario())


def test_unknown_shipping_method_is_rejected_locally(settings):
    platform = shipping_platform()

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        result = await front.panel.select_shipping("teleport")
        assert kind_of(result) is MutationErrorKind.VALIDATION
        assert platform.called("select_shipping") == []

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════════════════════════════════
# Add to cart
# ═══════════════════════════════════════════════════════════════════════════════


def test_add_to_cart_reloads_and_announces(platform, settings):
    platform.products[7] = Product(7, "Mug", "$12.00")

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()

        result = await front.actions.request_add_to_cart(7, quantity=2)

        assert isinstance(result, Ok)
        assert front.store.current.line("p7-0").quantity == 2
        assert front.badge.last_view.count == 4
        assert front.notices == [Notice(NoticeLevel.INFO, "Added to cart", add_product(7))]

    asyncio.run(scenario())


def test_add_to_cart_failure_uses_fallback_message(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        platform.fail("add_to_cart", NetworkError("timeout"))

        result = await front.actions.request_add_to_cart(7)

        match result:
            case Error(e):
                assert e.message == ADD_FAILED
            case Ok(_):
                raise AssertionError("expected failure")
        assert front.store.current.keys == ("k1",)

    asyncio.run(scenario())


def test_add_to_cart_requires_positive_quantity(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        result = await front.actions.request_add_to_cart(7, quantity=0)
        assert kind_of(result) is MutationErrorKind.VALIDATION

    asyncio.run(scenario())


def test_double_add_to_cart_is_busy(platform, settings):
    platform.products[7] = Product(7, "Mug", "$12.00")

    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        gate = platform.hold("add_to_cart")

        first = asyncio.create_task(front.actions.request_add_to_cart(7))
        await asyncio.sleep(0)
        assert kind_of(await front.actions.request_add_to_cart(7)) is MutationErrorKind.BUSY

        gate.set_result(None)
        await first
        assert front.store.current.line("p7-0").quantity == 1

    asyncio.run(scenario())


# ═══════════════════════════════════════════════════════════════════════════════
# Refresh and session
# ═══════════════════════════════════════════════════════════════════════════════


def test_newer_refresh_supersedes_older(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        gate = platform.hold("get_cart")

        older = asyncio.create_task(front.actions.refresh())
        await asyncio.sleep(0)
        newer = await front.actions.refresh()

        assert isinstance(newer, Ok)
        assert kind_of(await older) is MutationErrorKind.CANCELLED
        assert front.store.revision == 1

    asyncio.run(scenario())


def test_refresh_failure_keeps_current_cart(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        before = front.store.current
        platform.fail("get_cart", NetworkError("offline"))

        result = await front.actions.refresh()

        match result:
            case Error(e):
                assert e.kind is MutationErrorKind.FAILED
                assert e.resource == CART
            case Ok(_):
                raise AssertionError("expected failure")
        assert front.store.current == before

    asyncio.run(scenario())


def test_expired_session_degrades_until_recovered(platform, settings):
    async def scenario():
        front = Storefront.build(platform, settings)
        await front.start()
        platform.fail("set_quantity", SessionError("Security check failed", 403))

        assert kind_of(await front.panel.increment("k1")) is MutationErrorKind.ROLLED_BACK
        assert front.notices == [Notice(NoticeLevel.ERROR, SESSION_EXPIRED)]
        assert front.coordinator.is_degraded

        assert kind_of(await front.panel.increment("k1")) is MutationErrorKind.DEGRADED
        assert kind_of(await front.actions.refresh()) is MutationErrorKind.DEGRADED
        assert front.store.current.line("k1").quantity == 2

        assert isinstance(await front.actions.recover("n1"), Ok)
        assert platform.nonce == "n1"
        assert isinstance(await front.panel.increment("k1"), Ok)
        assert front.store.current.line("k1").quantity == 3

    asyncio.run(scenario())
