"""
Transport adapter — platform calls as lazy results.

Every call returns LazyCoroResult[T, TransportError]. Nothing raises:
connection failures and malformed bodies become NetworkError at this
edge, rejected nonces become SessionError, and `success: false`
envelopes become ApplicationError.

    transport = HttpTransport(httpx.AsyncClient(base_url=site), settings)

    match await transport.get_cart():
        case Ok(snapshot):
            store.absorb_authoritative(snapshot)
        case Error(e):
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import httpx
from combinators import lift as L

from cartsync._types import Error, Lazy, LazyCoroResult, Ok, Result
from cartsync.config import Settings
from cartsync.snapshot import CartSnapshot
from cartsync.transport._errors import (
    ApplicationError,
    NetworkError,
    SessionError,
    TransportError,
)
from cartsync.transport._payloads import (
    AddedToCartIn,
    CartIn,
    CheckoutResultIn,
    CouponAppliedIn,
    CouponRemovedIn,
    LineTotalsIn,
    ProductIn,
    ShippingSelectedIn,
    VariableProductEnvelopeIn,
)
from cartsync.transport._types import (
    AddedToCart,
    AddToCartRequest,
    CheckoutResult,
    CouponApplied,
    LineTotals,
    Product,
    ProductQuery,
    VariableProduct,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Actions
# ═══════════════════════════════════════════════════════════════════════════════

GET_CART = "qc_get_cart_items"
UPDATE_ITEM = "qc_update_cart_item"
REMOVE_ITEM = "qc_remove_cart_item"
APPLY_COUPON = "qc_apply_coupon"
REMOVE_COUPON = "qc_remove_coupon"
UPDATE_SHIPPING = "qc_update_shipping_method"
ADD_TO_CART = "woocommerce_ajax_add_to_cart"
VARIABLE_PRODUCT = "qc_get_variable_product"
SAVE_ADDRESS = "qc_save_checkout_address"
PROCESS_CHECKOUT = "qc_process_checkout"

_REJECTED_NONCE = frozenset({"-1", "0"})


# ═══════════════════════════════════════════════════════════════════════════════
# Transport Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Transport(Protocol):
    """
    What the coordinator and surfaces need from the platform.

    Implemented by HttpTransport; tests substitute a scripted fake.
    """

    def set_nonce(self, nonce: str) -> None: ...

    def get_cart(self) -> Lazy[CartSnapshot, TransportError]: ...

    def set_quantity(self, key: str, quantity: int) -> Lazy[LineTotals, TransportError]: ...

    def remove_item(self, key: str) -> Lazy[LineTotals, TransportError]: ...

    def apply_coupon(self, code: str) -> Lazy[CouponApplied, TransportError]: ...

    def remove_coupon(self, code: str) -> Lazy[str, TransportError]: ...

    def select_shipping(self, method_id: str) -> Lazy[str, TransportError]: ...

    def add_to_cart(self, request: AddToCartRequest) -> Lazy[AddedToCart, TransportError]: ...

    def get_variable_product(self, product_id: int) -> Lazy[VariableProduct, TransportError]: ...

    def get_product(self, product_id: int) -> Lazy[Product, TransportError]: ...

    def search_products(self, query: ProductQuery) -> Lazy[tuple[Product, ...], TransportError]: ...

    def save_checkout_address(self, fields: Mapping[str, str]) -> Lazy[None, TransportError]: ...

    def process_checkout(self, fields: Mapping[str, str]) -> Lazy[CheckoutResult, TransportError]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Response Interpretation
# ═══════════════════════════════════════════════════════════════════════════════


def interpret(response: httpx.Response) -> Result[Any, TransportError]:
    """
    Classify an admin-ajax response and unwrap its envelope.

    403 or a bare -1/0 body: the nonce was rejected.
    5xx or an undecodable body: no usable response.
    success false: the platform refused, with data.message or data.error.
    """
    if response.status_code == 403:
        return Error(SessionError("Security check failed", status=403))

    text = response.text.strip()
    if text in _REJECTED_NONCE:
        return Error(SessionError("Security check failed", status=response.status_code))

    if response.status_code >= 500:
        return Error(NetworkError(f"Server error {response.status_code}"))

    try:
        body = response.json()
    except ValueError as e:
        return Error(NetworkError("Malformed response body", cause=e))

    if not isinstance(body, dict):
        return Error(NetworkError("Unexpected response shape"))

    # Fragment responses skip the envelope
    if "success" not in body:
        if body.get("error"):
            return Error(ApplicationError(_platform_message(body)))
        if "fragments" in body:
            return Ok(body)
        return Error(NetworkError("Response has no envelope"))

    data = body.get("data")
    if not body["success"]:
        return Error(ApplicationError(_platform_message(data)))
    return Ok(data)


def _platform_message(data: Any) -> str | None:
    if isinstance(data, str) and data:
        return data
    if isinstance(data, dict):
        for name in ("message", "error"):
            value = data.get(name)
            if isinstance(value, str) and value:
                return value
    return None


def _decode[T](data: Any, convert: Callable[[Any], T]) -> Result[T, TransportError]:
    try:
        return Ok(convert(data))
    except ValueError as e:
        # pydantic ValidationError and parse_price failures both land here
        logger.warning("Unreadable payload: %s", e)
        return Error(NetworkError("Malformed response payload", cause=e))


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP Transport
# ═══════════════════════════════════════════════════════════════════════════════


class HttpTransport:
    """
    httpx implementation against admin-ajax and the plugin REST namespace.

    The client is owned by the caller (base_url, cookies, lifecycle);
    the transport only adds the action, nonce and timeout.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings
        self._nonce = settings.nonce

    def set_nonce(self, nonce: str) -> None:
        self._nonce = nonce

    # ───────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────

    def get_cart(self) -> Lazy[CartSnapshot, TransportError]:
        fmt = self._settings.price_format
        return self._ajax(
            GET_CART, {}, lambda d: CartIn.model_validate(d).to_domain(fmt)
        )

    def set_quantity(self, key: str, quantity: int) -> Lazy[LineTotals, TransportError]:
        fmt = self._settings.price_format
        return self._ajax(
            UPDATE_ITEM,
            {"cart_item_key": key, "quantity": str(quantity)},
            lambda d: LineTotalsIn.model_validate(d).to_domain(fmt),
        )

    def remove_item(self, key: str) -> Lazy[LineTotals, TransportError]:
        fmt = self._settings.price_format
        return self._ajax(
            REMOVE_ITEM,
            {"cart_item_key": key},
            lambda d: LineTotalsIn.model_validate(d).to_domain(fmt),
        )

    def apply_coupon(self, code: str) -> Lazy[CouponApplied, TransportError]:
        return self._ajax(
            APPLY_COUPON,
            {"coupon_code": code},
            lambda d: CouponAppliedIn.model_validate(d).to_domain(),
        )

    def remove_coupon(self, code: str) -> Lazy[str, TransportError]:
        return self._ajax(
            REMOVE_COUPON,
            {"coupon_code": code},
            lambda d: CouponRemovedIn.model_validate(d).coupon_code,
        )

    def select_shipping(self, method_id: str) -> Lazy[str, TransportError]:
        return self._ajax(
            UPDATE_SHIPPING,
            {"shipping_method": method_id},
            lambda d: ShippingSelectedIn.model_validate(d).shipping_method,
        )

    def add_to_cart(self, request: AddToCartRequest) -> Lazy[AddedToCart, TransportError]:
        form = {
            "product_id": str(request.product_id),
            "quantity": str(request.quantity),
        }
        if request.variation_id is not None:
            form["variation_id"] = str(request.variation_id)
        form.update(request.attributes)
        return self._ajax(
            ADD_TO_CART, form, lambda d: AddedToCartIn.model_validate(d or {}).to_domain()
        )

    def get_variable_product(self, product_id: int) -> Lazy[VariableProduct, TransportError]:
        return self._ajax(
            VARIABLE_PRODUCT,
            {"product_id": str(product_id)},
            lambda d: VariableProductEnvelopeIn.model_validate(d).product.to_domain(),
        )

    # ───────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────

    def save_checkout_address(self, fields: Mapping[str, str]) -> Lazy[None, TransportError]:
        return self._ajax(SAVE_ADDRESS, dict(fields), lambda _: None)

    def process_checkout(self, fields: Mapping[str, str]) -> Lazy[CheckoutResult, TransportError]:
        return self._ajax(
            PROCESS_CHECKOUT,
            dict(fields),
            lambda d: CheckoutResultIn.model_validate(d).to_domain(),
        )

    # ───────────────────────────────────────────────────────────────────────
    # Catalog (REST)
    # ───────────────────────────────────────────────────────────────────────

    def get_product(self, product_id: int) -> Lazy[Product, TransportError]:
        return self._rest(
            f"/products/{product_id}",
            {},
            lambda d: ProductIn.model_validate(d).to_domain(),
        )

    def search_products(self, query: ProductQuery) -> Lazy[tuple[Product, ...], TransportError]:
        params = {"page": str(query.page), "per_page": str(query.per_page)}
        if query.search:
            params["search"] = query.search
        return self._rest(
            "/products",
            params,
            lambda d: tuple(ProductIn.model_validate(p).to_domain() for p in d),
        )

    # ───────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────

    def _ajax[T](
        self,
        action: str,
        form: dict[str, str],
        convert: Callable[[Any], T],
    ) -> LazyCoroResult[T, TransportError]:
        client = self._client
        url = self._settings.ajax_url
        timeout = self._settings.request_timeout
        payload = {"action": action, "nonce": self._nonce, **form}

        async def send() -> httpx.Response:
            return await client.post(url, data=payload, timeout=timeout)

        async def execute() -> Result[T, TransportError]:
            sent = await L.catching_async(
                send,
                on_error=lambda e: NetworkError(f"{action} failed: {e}", cause=e),
            )
            match sent:
                case Ok(response):
                    pass
                case Error(e):
                    logger.warning("Request %s did not complete: %s", action, e.message)
                    return Error(e)

            match interpret(response):
                case Ok(data):
                    return _decode(data, convert)
                case Error(e):
                    logger.debug("Request %s refused: %r", action, e)
                    return Error(e)

        return LazyCoroResult(execute)

    def _rest[T](
        self,
        path: str,
        params: dict[str, str],
        convert: Callable[[Any], T],
    ) -> LazyCoroResult[T, TransportError]:
        client = self._client
        url = f"{self._settings.rest_url}{path}"
        timeout = self._settings.request_timeout
        headers = {"X-WP-Nonce": self._nonce} if self._nonce else {}

        async def send() -> httpx.Response:
            return await client.get(url, params=params, headers=headers, timeout=timeout)

        async def execute() -> Result[T, TransportError]:
            sent = await L.catching_async(
                send,
                on_error=lambda e: NetworkError(f"GET {path} failed: {e}", cause=e),
            )
            match sent:
                case Ok(response):
                    pass
                case Error(e):
                    logger.warning("GET %s did not complete: %s", path, e.message)
                    return Error(e)

            if response.status_code in (401, 403):
                return Error(SessionError("REST request rejected", status=response.status_code))
            if response.status_code == 404:
                return Error(ApplicationError("Product not found"))
            if response.status_code >= 400:
                return Error(NetworkError(f"HTTP {response.status_code} for {path}"))
            try:
                data = response.json()
            except ValueError as e:
                return Error(NetworkError("Malformed response body", cause=e))
            return _decode(data, convert)

        return LazyCoroResult(execute)


__all__ = (
    "Transport",
    "HttpTransport",
    "interpret",
    "GET_CART",
    "UPDATE_ITEM",
    "REMOVE_ITEM",
    "APPLY_COUPON",
    "REMOVE_COUPON",
    "UPDATE_SHIPPING",
    "ADD_TO_CART",
    "VARIABLE_PRODUCT",
    "SAVE_ADDRESS",
    "PROCESS_CHECKOUT",
)
