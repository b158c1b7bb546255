"""Shared infrastructure for examples: an in-memory shop behind httpx.MockTransport."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from urllib.parse import parse_qs

import httpx

from cartsync import format_price
from cartsync.coordinator import Notice
from cartsync.transport import (
    ADD_TO_CART,
    APPLY_COUPON,
    GET_CART,
    PROCESS_CHECKOUT,
    REMOVE_COUPON,
    REMOVE_ITEM,
    SAVE_ADDRESS,
    UPDATE_ITEM,
    UPDATE_SHIPPING,
    VARIABLE_PRODUCT,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Listing:
    id: int
    name: str
    price: Decimal
    type: str = "simple"


HOODIE = Listing(11, "Hoodie", Decimal("10.00"))
MUG = Listing(12, "Mug", Decimal("12.00"))
TEE = Listing(42, "Tee", Decimal("15.00"), type="variable")
LISTINGS = {listing.id: listing for listing in (HOODIE, MUG, TEE)}

COUPONS = {"SAVE10": Decimal("5.00")}
RATES = {"free_shipping": Decimal("0"), "flat_rate": Decimal("10.00")}

type Form = dict[str, str]


# ═══════════════════════════════════════════════════════════════════════════════
# Fake shop
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class FakeShop:
    """
    admin-ajax and the product REST routes over in-memory state.

    Set fail_next to an action name and its next call answers
    success: false. Rotate nonce to simulate an expired session.
    """

    nonce: str = "demo-nonce"
    lines: dict[str, tuple[Listing, int]] = field(
        default_factory=lambda: {"k1": (HOODIE, 2)}
    )
    coupons: list[str] = field(default_factory=list)
    shipping: str = "free_shipping"
    city: str = ""
    fail_next: str | None = None
    latency: float = 0.05

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(self.latency)
        if request.method == "GET":
            return self.rest(request)

        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        action = form.get("action", "")
        if form.get("nonce") != self.nonce:
            return httpx.Response(403, text="-1")
        if action == self.fail_next:
            self.fail_next = None
            return httpx.Response(200, json={"success": False, "data": {}})

        routes: dict[str, Callable[[Form], httpx.Response]] = {
            GET_CART: lambda _: ok(self.cart()),
            UPDATE_ITEM: self.update_item,
            REMOVE_ITEM: self.remove_item,
            APPLY_COUPON: self.apply_coupon,
            REMOVE_COUPON: self.remove_coupon,
            UPDATE_SHIPPING: self.update_shipping,
            ADD_TO_CART: self.add_to_cart,
            VARIABLE_PRODUCT: lambda _: ok({"product": tee_payload()}),
            SAVE_ADDRESS: self.save_address,
            PROCESS_CHECKOUT: lambda _: ok(
                {"redirect": "https://shop.example/order-received/1001", "order_id": 1001}
            ),
        }
        route = routes.get(action)
        if route is None:
            return httpx.Response(400, text="0")
        return route(form)

    def rest(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("X-WP-Nonce") != self.nonce:
            return httpx.Response(403, json={"code": "rest_forbidden"})
        product_id = request.url.path.rsplit("/", 1)[-1]
        listing = LISTINGS.get(int(product_id)) if product_id.isdigit() else None
        if listing is None:
            return httpx.Response(404, json={"code": "not_found"})
        return httpx.Response(
            200,
            json={
                "id": listing.id,
                "name": listing.name,
                "price": format_price(listing.price),
                "type": listing.type,
            },
        )

    # ───────────────────────────────────────────────────────────────────────
    # Actions
    # ───────────────────────────────────────────────────────────────────────

    def update_item(self, form: Form) -> httpx.Response:
        key = form["cart_item_key"]
        listing, _ = self.lines[key]
        self.lines[key] = (listing, int(form["quantity"]))
        return ok(self.totals())

    def remove_item(self, form: Form) -> httpx.Response:
        self.lines.pop(form["cart_item_key"], None)
        return ok(self.totals())

    def apply_coupon(self, form: Form) -> httpx.Response:
        code = form["coupon_code"]
        if code not in COUPONS:
            return refuse(f'Coupon "{code}" does not exist!')
        self.coupons.append(code)
        return ok(
            {
                "coupon_code": code,
                "discount": f"<span>{format_price(COUPONS[code])}</span>",
                "cart_totals": {
                    "subtotal": format_price(self.subtotal()),
                    "total": format_price(self.total()),
                },
                "message": "Coupon applied successfully",
            }
        )

    def remove_coupon(self, form: Form) -> httpx.Response:
        code = form["coupon_code"]
        if code in self.coupons:
            self.coupons.remove(code)
        return ok({"coupon_code": code})

    def update_shipping(self, form: Form) -> httpx.Response:
        if form["shipping_method"] not in RATES:
            return refuse("Invalid shipping method")
        self.shipping = form["shipping_method"]
        return ok({"shipping_method": self.shipping})

    def add_to_cart(self, form: Form) -> httpx.Response:
        listing = LISTINGS.get(int(form["product_id"]))
        if listing is None:
            return httpx.Response(200, json={"error": True, "message": "Product not found"})
        key = f"p{listing.id}-{form.get('variation_id', '0')}"
        _, quantity = self.lines.get(key, (listing, 0))
        self.lines[key] = (listing, quantity + int(form.get("quantity", "1")))
        return httpx.Response(200, json={"fragments": {}, "cart_hash": str(len(self.lines))})

    def save_address(self, form: Form) -> httpx.Response:
        self.city = form.get("billing_city", "")
        return ok({})

    # ───────────────────────────────────────────────────────────────────────
    # Totals
    # ───────────────────────────────────────────────────────────────────────

    def subtotal(self) -> Decimal:
        return sum((listing.price * q for listing, q in self.lines.values()), Decimal("0"))

    def discount(self) -> Decimal:
        return sum((COUPONS[c] for c in self.coupons), Decimal("0"))

    def total(self) -> Decimal:
        return self.subtotal() - self.discount() + RATES[self.shipping]

    def totals(self) -> dict[str, Any]:
        return {
            "count": sum(q for _, q in self.lines.values()),
            "subtotal": format_price(self.subtotal()),
            "total": format_price(self.total()),
        }

    def cart(self) -> dict[str, Any]:
        return {
            "items": [
                {
                    "key": key,
                    "id": listing.id,
                    "name": listing.name,
                    "price": format_price(listing.price),
                    "quantity": quantity,
                    "subtotal": format_price(listing.price * quantity),
                }
                for key, (listing, quantity) in self.lines.items()
            ],
            "coupons": [
                {"code": c, "discount": format_price(COUPONS[c])} for c in self.coupons
            ],
            "discount_total": str(self.discount()),
            "shipping_total": str(RATES[self.shipping]),
            "shipping_methods": [
                {
                    "id": rate,
                    "label": rate.replace("_", " ").title(),
                    "cost": str(cost),
                    "cost_formatted": format_price(cost),
                    "selected": rate == self.shipping,
                }
                for rate, cost in RATES.items()
            ],
            "shipping_destination": self.city,
            **self.totals(),
        }


def tee_payload() -> dict[str, Any]:
    return {
        "id": TEE.id,
        "name": TEE.name,
        "price": format_price(TEE.price),
        "attributes": {"pa_color": ["blue", "red"], "pa_size": ["m", "l"]},
        "available_variations": [
            {
                "variation_id": 43,
                "attributes": {"attribute_pa_color": "blue", "attribute_pa_size": ""},
                "price_html": format_price(TEE.price),
            },
            {
                "variation_id": 44,
                "attributes": {"attribute_pa_color": "red", "attribute_pa_size": "l"},
                "price_html": format_price(TEE.price + 2),
                "is_in_stock": False,
            },
        ],
    }


def ok(data: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


def refuse(message: str) -> httpx.Response:
    return httpx.Response(200, json={"success": False, "data": {"message": message}})


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def banner(title: str) -> None:
    print(f"\n{'─' * 60}")
    print(f"  {title}")
    print(f"{'─' * 60}")


def show_notice(notice: Notice) -> None:
    print(f"  [{notice.level.name}] {notice.message}")


def run(main: Callable[[], Coroutine[Any, Any, None]]) -> None:
    asyncio.run(main())
