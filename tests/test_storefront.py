import asyncio
from urllib.parse import parse_qs

import httpx
from kungfu import Ok

from cartsync import Settings, Storefront, connect
from cartsync.coordinator import SESSION_EXPIRED, Notice, NoticeLevel
from cartsync.snapshot import CartSnapshot
from cartsync.transport import GET_CART, UPDATE_ITEM


class Shop:
    """admin-ajax over httpx.MockTransport: one line, price $10.00."""

    def __init__(self, nonce: str) -> None:
        self.nonce = nonce
        self.quantity = 2
        self.actions: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.actions.append(form["action"])
        if form["nonce"] != self.nonce:
            return httpx.Response(403, text="-1")

        if form["action"] == UPDATE_ITEM:
            self.quantity = int(form["quantity"])
            return httpx.Response(200, json={"success": True, "data": self.totals()})
        if form["action"] == GET_CART:
            return httpx.Response(200, json={"success": True, "data": self.cart()})
        return httpx.Response(400, text="0")

    def totals(self) -> dict:
        amount = f"${self.quantity * 10}.00"
        return {"count": self.quantity, "subtotal": amount, "total": amount}

    def cart(self) -> dict:
        return {
            "items": [
                {
                    "key": "k1",
                    "id": 1,
                    "name": "Hoodie",
                    "price": "$10.00",
                    "quantity": self.quantity,
                    "subtotal": f"${self.quantity * 10}.00",
                }
            ],
            **self.totals(),
        }


def test_connect_runs_a_full_round_trip():
    shop = Shop(nonce="n0")
    notices = []

    async def scenario():
        async with connect(
            "https://shop.test",
            Settings(nonce="n0", quantity_cooldown=0.0),
            on_notice=notices.append,
            http_transport=httpx.MockTransport(shop),
        ) as front:
            assert isinstance(await front.start(), Ok)
            assert front.panel.last_view.total_display == "$20.00"

            assert isinstance(await front.panel.increment("k1"), Ok)
            assert front.panel.last_view.rows[0].quantity == 3
            assert front.panel.last_view.total_display == "$30.00"
            return front

    front = asyncio.run(scenario())
    assert shop.actions == [GET_CART, UPDATE_ITEM, GET_CART]
    assert notices == []
    # Surfaces are detached on exit
    count = front.panel.render_count
    front.store.absorb_authoritative(CartSnapshot())
    assert front.panel.render_count == count


def test_rotated_nonce_degrades_and_recovers():
    shop = Shop(nonce="n0")

    async def scenario():
        async with connect(
            "https://shop.test",
            Settings(nonce="n0", quantity_cooldown=0.0),
            http_transport=httpx.MockTransport(shop),
        ) as front:
            await front.start()
            shop.nonce = "n1"

            await front.panel.increment("k1")
            assert front.coordinator.is_degraded
            assert front.notices == [Notice(NoticeLevel.ERROR, SESSION_EXPIRED)]
            assert front.panel.last_view.rows[0].quantity == 2

            assert isinstance(await front.actions.recover("n1"), Ok)
            assert isinstance(await front.panel.increment("k1"), Ok)
            assert shop.quantity == 3

    asyncio.run(scenario())


def test_build_forwards_notices(platform, settings):
    forwarded = []

    async def scenario():
        front = Storefront.build(platform, settings, on_notice=forwarded.append)
        await front.start()
        await front.actions.request_shipping_change("none")
        await front.actions.request_add_to_cart(404)
        return front

    front = asyncio.run(scenario())
    assert forwarded == front.notices
    assert [n.level for n in forwarded] == [NoticeLevel.ERROR]


def test_build_defaults_to_plain_settings(platform):
    front = Storefront.build(platform)
    assert front.settings == Settings()
    assert front.checkout.steps == Settings().checkout_steps
    assert front.popup.enabled
