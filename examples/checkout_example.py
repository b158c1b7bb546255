"""
Checkout — variation popup and the multi-step checkout.

Key concepts:
- Dropping a variable product opens the popup instead of adding
- Every attribute must be chosen before the variation can be added
- Leaving the billing step saves the address and reloads totals
- Submitting twice while the order is in flight is refused

Run: python -m examples.checkout_example
"""

import asyncio

from kungfu import Error, Ok

import cartsync
from cartsync import Renderers, Settings
from cartsync.surfaces import CheckoutView
from cartsync.transport import Product
from examples._infra import TEE, FakeShop, banner, run, show_notice


shop = FakeShop()
settings = Settings(nonce=shop.nonce)


def render(view: CheckoutView) -> None:
    if view.active:
        step = view.steps[view.current].label
        print(f"    checkout: {step} ({view.progress}%)")


# ═══════════════════════════════════════════════════════════════════════════════
# Main
# ═══════════════════════════════════════════════════════════════════════════════


async def main() -> None:
    async with cartsync.connect(
        "https://shop.example",
        settings,
        renderers=Renderers(checkout=render),
        on_notice=show_notice,
        http_transport=shop.transport(),
    ) as front:
        await front.start()

        # ═══════════════════════════════════════════════════════════════════
        # 1. Variation popup
        # ═══════════════════════════════════════════════════════════════════

        banner("1. Drop a variable product")
        await front.badge.drop(Product(TEE.id, TEE.name, "$15.00", type="variable"))
        popup = front.popup.last_view
        print(f"  Popup open: {popup.open}, attributes: {list(popup.product.attributes)}")

        front.popup.choose("pa_color", "blue")
        match await front.popup.add_to_cart():
            case Error(e):
                print(f"  {e.kind.name}: {e.message}")
            case Ok(_):
                print("  Added without a size?")

        front.popup.choose("pa_size", "m")
        print(f"  Matched variation: {front.popup.variation.variation_id}")
        await front.popup.add_to_cart()
        print(f"  Popup open: {front.popup.last_view.open}, badge: {front.badge.last_view.label}")

        # ═══════════════════════════════════════════════════════════════════
        # 2. Billing step
        # ═══════════════════════════════════════════════════════════════════

        banner("2. Billing")
        checkout = front.checkout
        checkout.show()
        checkout.set_fields(billing_first_name="Ada", billing_last_name="Lovelace")
        await checkout.next()
        print(f"  Error: {checkout.last_view.error}")

        checkout.set_fields(billing_email="ada@example.com", billing_city="London")
        await checkout.next()
        print(f"  Ships to: {front.store.current.shipping_destination}")

        # ═══════════════════════════════════════════════════════════════════
        # 3. Place the order
        # ═══════════════════════════════════════════════════════════════════

        banner("3. Place the order")
        await checkout.next()
        first = asyncio.create_task(checkout.submit())
        await asyncio.sleep(0)
        match await checkout.submit():
            case Error(e):
                print(f"  Second submit: {e.kind.name}")
            case Ok(_):
                print("  Second submit went through?")

        match await first:
            case Ok(confirmed):
                print(f"  Order {confirmed.value.order_id} → {confirmed.value.redirect}")
            case Error(e):
                print(f"  Checkout failed: {e.message}")

    print("\nDone!")


if __name__ == "__main__":
    run(main)
