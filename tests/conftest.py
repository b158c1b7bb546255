from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import replace
from decimal import Decimal

import pytest
from kungfu import Error, LazyCoroResult, Ok, Result

from cartsync._money import format_price, parse_price
from cartsync.config import Settings
from cartsync.snapshot import (
    AppliedCoupon,
    CartLineItem,
    CartSnapshot,
    CartTotals,
    ShippingMethod,
)
from cartsync.transport import (
    AddedToCart,
    AddToCartRequest,
    ApplicationError,
    CheckoutResult,
    CouponApplied,
    LineTotals,
    Product,
    ProductQuery,
    TransportError,
    VariableProduct,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Builders
# ═══════════════════════════════════════════════════════════════════════════════


def item(key: str, quantity: int, unit: str = "10.00", product_id: int = 1) -> CartLineItem:
    price = Decimal(unit)
    return CartLineItem(
        key=key,
        product_id=product_id,
        name=key.upper(),
        unit_price=price,
        unit_price_display=format_price(price),
        quantity=quantity,
        line_subtotal_display=format_price(price * quantity),
    )


def method(id: str, cost: str, selected: bool = False) -> ShippingMethod:
    amount = Decimal(cost)
    return ShippingMethod(
        id=id,
        label=id.replace("_", " ").title(),
        cost_display=format_price(amount),
        raw_cost=amount,
        selected=selected,
    )


def cart(
    *items: CartLineItem,
    coupons: Mapping[str, Decimal] | None = None,
    shipping: tuple[ShippingMethod, ...] = (),
    destination: str = "",
) -> CartSnapshot:
    """A consistent server-side cart: totals derived from the lines."""
    coupons = coupons or {}
    subtotal = sum((i.unit_price * i.quantity for i in items), Decimal("0"))
    discount = sum(coupons.values(), Decimal("0"))
    selected = next((m for m in shipping if m.selected), None)
    shipping_total = selected.raw_cost if selected is not None else Decimal("0")
    total = subtotal - discount + shipping_total
    return CartSnapshot(
        items=tuple(items),
        applied_coupons=tuple(AppliedCoupon(c, format_price(d)) for c, d in coupons.items()),
        shipping_methods=shipping,
        totals=CartTotals(
            subtotal=subtotal,
            subtotal_display=format_price(subtotal),
            discount_total=discount,
            shipping_total=shipping_total,
            total=total,
            total_display=format_price(total),
        ),
        count=sum(i.quantity for i in items),
        shipping_destination=destination,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Fake Platform
# ═══════════════════════════════════════════════════════════════════════════════


class FakePlatform:
    """
    In-memory platform behind the Transport protocol.

    hold(op) makes the next call of op wait on the returned future;
    fail(op, error) makes the next call of op fail with error.
    """

    def __init__(self, initial: CartSnapshot) -> None:
        self.items: list[CartLineItem] = list(initial.items)
        self.coupons: dict[str, Decimal] = {
            c.code: parse_price(c.discount_display) for c in initial.applied_coupons
        }
        self.shipping: tuple[ShippingMethod, ...] = initial.shipping_methods
        self.destination = initial.shipping_destination
        self.valid_coupons: dict[str, Decimal] = {}
        self.products: dict[int, Product] = {}
        self.variables: dict[int, VariableProduct] = {}
        self.nonce = ""
        self.calls: list[tuple[str, object]] = []
        self.addresses: list[dict[str, str]] = []
        self._gates: dict[str, deque[asyncio.Future[None]]] = {}
        self._failures: dict[str, deque[TransportError]] = {}

    # ── scripting ──

    def hold(self, op: str) -> asyncio.Future[None]:
        gate: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._gates.setdefault(op, deque()).append(gate)
        return gate

    def fail(self, op: str, error: TransportError) -> None:
        self._failures.setdefault(op, deque()).append(error)

    def called(self, op: str) -> list[object]:
        return [args for name, args in self.calls if name == op]

    def snapshot(self) -> CartSnapshot:
        return cart(
            *self.items,
            coupons=self.coupons,
            shipping=self.shipping,
            destination=self.destination,
        )

    # ── plumbing ──

    def _respond[T](
        self,
        op: str,
        args: object,
        compute: Callable[[], Result[T, TransportError]],
    ) -> LazyCoroResult[T, TransportError]:
        self.calls.append((op, args))
        gates = self._gates.get(op)
        gate = gates.popleft() if gates else None
        failures = self._failures.get(op)
        failure = failures.popleft() if failures else None

        async def execute() -> Result[T, TransportError]:
            if gate is not None:
                await gate
            else:
                await asyncio.sleep(0)
            if failure is not None:
                return Error(failure)
            return compute()

        return LazyCoroResult(execute)

    def _line_totals(self) -> LineTotals:
        snap = self.snapshot()
        return LineTotals(
            count=snap.count,
            subtotal=snap.totals.subtotal,
            subtotal_display=snap.totals.subtotal_display,
            total=snap.totals.total,
            total_display=snap.totals.total_display,
        )

    # ── Transport ──

    def set_nonce(self, nonce: str) -> None:
        self.nonce = nonce

    def get_cart(self):
        return self._respond("get_cart", None, lambda: Ok(self.snapshot()))

    def set_quantity(self, key: str, quantity: int):
        def compute():
            for i, line in enumerate(self.items):
                if line.key == key:
                    self.items[i] = line.with_quantity(
                        quantity, format_price(line.unit_price * quantity)
                    )
                    return Ok(self._line_totals())
            return Error(ApplicationError("Invalid cart item"))

        return self._respond("set_quantity", (key, quantity), compute)

    def remove_item(self, key: str):
        def compute():
            before = len(self.items)
            self.items = [line for line in self.items if line.key != key]
            if len(self.items) == before:
                return Error(ApplicationError("Invalid cart item"))
            return Ok(self._line_totals())

        return self._respond("remove_item", key, compute)

    def apply_coupon(self, code: str):
        def compute():
            if code not in self.valid_coupons:
                return Error(ApplicationError(f'Coupon "{code}" does not exist!'))
            self.coupons[code] = self.valid_coupons[code]
            snap = self.snapshot()
            return Ok(
                CouponApplied(
                    code=code,
                    discount_display=format_price(self.valid_coupons[code]),
                    subtotal_display=snap.totals.subtotal_display,
                    total_display=snap.totals.total_display,
                    message="Coupon applied successfully",
                )
            )

        return self._respond("apply_coupon", code, compute)

    def remove_coupon(self, code: str):
        def compute():
            self.coupons.pop(code, None)
            return Ok(code)

        return self._respond("remove_coupon", code, compute)

    def select_shipping(self, method_id: str):
        def compute():
            self.shipping = tuple(
                replace(m, selected=m.id == method_id) for m in self.shipping
            )
            return Ok(method_id)

        return self._respond("select_shipping", method_id, compute)

    def add_to_cart(self, request: AddToCartRequest):
        def compute():
            product = self.products.get(request.product_id)
            if product is None:
                return Error(ApplicationError("Invalid product"))
            key = f"p{request.product_id}-{request.variation_id or 0}"
            price = Decimal(product.price_display.lstrip("$"))
            for i, line in enumerate(self.items):
                if line.key == key:
                    quantity = line.quantity + request.quantity
                    self.items[i] = line.with_quantity(quantity, format_price(price * quantity))
                    break
            else:
                self.items.append(
                    replace(
                        item(key, request.quantity, str(price), product_id=product.id),
                        name=product.name,
                        variation_id=request.variation_id,
                    )
                )
            return Ok(AddedToCart(fragments={}, cart_hash="hash"))

        return self._respond("add_to_cart", request, compute)

    def get_variable_product(self, product_id: int):
        def compute():
            product = self.variables.get(product_id)
            if product is None:
                return Error(ApplicationError("Product not found or not variable"))
            return Ok(product)

        return self._respond("get_variable_product", product_id, compute)

    def get_product(self, product_id: int):
        def compute():
            product = self.products.get(product_id)
            if product is None:
                return Error(ApplicationError("Product not found"))
            return Ok(product)

        return self._respond("get_product", product_id, compute)

    def search_products(self, query: ProductQuery):
        def compute():
            found = [
                p for p in self.products.values()
                if not query.search or query.search.lower() in p.name.lower()
            ]
            start = (query.page - 1) * query.per_page
            return Ok(tuple(found[start:start + query.per_page]))

        return self._respond("search_products", query, compute)

    def save_checkout_address(self, fields: Mapping[str, str]):
        def compute():
            self.addresses.append(dict(fields))
            self.destination = fields.get("billing_city", self.destination)
            return Ok(None)

        return self._respond("save_checkout_address", dict(fields), compute)

    def process_checkout(self, fields: Mapping[str, str]):
        def compute():
            return Ok(CheckoutResult(redirect="https://shop.test/checkout/order-received/101", order_id=101))

        return self._respond("process_checkout", dict(fields), compute)


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def settings() -> Settings:
    return Settings(nonce="n0", quantity_cooldown=0.0)


@pytest.fixture
def platform() -> FakePlatform:
    """One line: k1 x2 at $10.00."""
    return FakePlatform(cart(item("k1", 2)))
