"""
Cart drawer — optimistic quantity, coupon and shipping changes.

Key concepts:
- The panel shows the prediction before the platform answers
- A refused change rolls back to exactly what the shopper saw
- Shipping is the exception: the selection stays, a warning is shown
- An expired nonce degrades the session until recover() is called

Run: python -m examples.cart_example
"""

import asyncio

from kungfu import Error, Ok

import cartsync
from cartsync import Renderers, Settings
from cartsync.surfaces import PanelView
from cartsync.transport import UPDATE_ITEM
from examples._infra import MUG, FakeShop, banner, run, show_notice


shop = FakeShop()
settings = Settings(nonce=shop.nonce, quantity_cooldown=0.0)


def render(view: PanelView) -> None:
    rows = ", ".join(
        f"{row.name} x{row.quantity}{' …' if row.busy else ''}" for row in view.rows
    )
    print(f"    panel: [{rows}] total={view.total_display}")


# ═══════════════════════════════════════════════════════════════════════════════
# Main
# ═══════════════════════════════════════════════════════════════════════════════


async def main() -> None:
    async with cartsync.connect(
        "https://shop.example",
        settings,
        renderers=Renderers(panel=render),
        on_notice=show_notice,
        http_transport=shop.transport(),
    ) as front:
        banner("1. Load the cart")
        await front.start()
        front.badge.click()
        print(f"  Badge: {front.badge.last_view.label}, panel open: {front.panel.is_open}")

        # ═══════════════════════════════════════════════════════════════════
        # 2. Optimistic increment
        # ═══════════════════════════════════════════════════════════════════

        banner("2. Increment: prediction first, platform second")
        pending = asyncio.create_task(front.panel.increment("k1"))
        await asyncio.sleep(0)
        print(f"  Before the reply: quantity={front.panel.last_view.rows[0].quantity}")
        match await pending:
            case Ok(confirmed):
                print(f"  Confirmed: total={confirmed.value.total_display}")
            case Error(e):
                print(f"  Failed: {e.message}")

        # ═══════════════════════════════════════════════════════════════════
        # 3. Rollback
        # ═══════════════════════════════════════════════════════════════════

        banner("3. Refused increment rolls back")
        shop.fail_next = UPDATE_ITEM
        match await front.panel.increment("k1"):
            case Error(e):
                print(f"  {e.kind.name}: quantity back to {front.panel.last_view.rows[0].quantity}")
            case Ok(_):
                print("  Unexpected success")

        # ═══════════════════════════════════════════════════════════════════
        # 4. Coupons
        # ═══════════════════════════════════════════════════════════════════

        banner("4. Coupons")
        front.panel.set_coupon_code("NOPE")
        await front.panel.submit_coupon()
        print(f"  Input error: {front.panel.last_view.coupon.error}")

        front.panel.set_coupon_code("SAVE10")
        await front.panel.submit_coupon()
        applied = front.panel.last_view.coupons
        print(f"  Applied: {[(c.code, c.discount_display) for c in applied]}")

        # ═══════════════════════════════════════════════════════════════════
        # 5. Shipping
        # ═══════════════════════════════════════════════════════════════════

        banner("5. Shipping")
        await front.panel.select_shipping("flat_rate")
        selected = [m.label for m in front.panel.last_view.shipping_methods if m.selected]
        print(f"  Selected: {selected}, total={front.panel.last_view.total_display}")

        # ═══════════════════════════════════════════════════════════════════
        # 6. Add to cart
        # ═══════════════════════════════════════════════════════════════════

        banner("6. Add a product and reorder the lines")
        match await front.catalog.product(MUG.id):
            case Ok(product):
                await front.badge.drop(product)
                print(f"  Dropped {product.name}, badge: {front.badge.last_view.label}")
            case Error(e):
                print(f"  Catalog failed: {e!r}")
                return

        keys = [row.key for row in front.panel.last_view.rows]
        front.reorder.start_drag(keys[-1])
        front.reorder.drop(keys[0])
        print(f"  Order: {[row.name for row in front.panel.last_view.rows]}")

        # ═══════════════════════════════════════════════════════════════════
        # 7. Session expiry
        # ═══════════════════════════════════════════════════════════════════

        banner("7. Expired session")
        shop.nonce = "rotated-nonce"
        await front.panel.decrement("k1")
        print(f"  Degraded: {front.coordinator.is_degraded}")

        await front.actions.recover("rotated-nonce")
        await front.panel.decrement("k1")
        print(f"  Recovered, degraded: {front.coordinator.is_degraded}")

    print("\nDone!")


if __name__ == "__main__":
    run(main)
