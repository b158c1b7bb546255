"""
Catalog — read-only product lookups for popups and upsells.
"""

from __future__ import annotations

import logging

from cartsync._types import Error, Lazy, LazyCoroResult, Ok, Result
from cartsync.catalog._cache import Cached, LocalTier, Tier, cached
from cartsync.transport import (
    Product,
    ProductQuery,
    Transport,
    TransportError,
    VariableProduct,
)

logger = logging.getLogger(__name__)


def product_key(product_id: int) -> str:
    return f"product:{product_id}"


def variable_key(product_id: int) -> str:
    return f"variable:{product_id}"


class Catalog:
    """
    Product lookups through the transport.

    Single products and variable products are cached per id; search
    results are always fetched. invalidate() drops both cached forms.

    Example:
        catalog = Catalog(transport)
        match await catalog.product(42):
            case Ok(product):
                print(product.name)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        products: Tier[Product] | None = None,
        variables: Tier[VariableProduct] | None = None,
    ) -> None:
        self._transport = transport
        self._products: Cached[int, Product, TransportError] = cached(
            product_key,
            transport.get_product,
            products if products is not None else LocalTier[Product](),
        )
        self._variables: Cached[int, VariableProduct, TransportError] = cached(
            variable_key,
            transport.get_variable_product,
            variables if variables is not None else LocalTier[VariableProduct](),
        )

    def product(self, product_id: int) -> Lazy[Product, TransportError]:
        return _unwrap(self._products, product_id)

    def variable_product(self, product_id: int) -> Lazy[VariableProduct, TransportError]:
        return _unwrap(self._variables, product_id)

    def search(
        self,
        search: str | None = None,
        page: int = 1,
        per_page: int = 100,
    ) -> Lazy[tuple[Product, ...], TransportError]:
        if page < 1 or per_page < 1:
            raise ValueError("page and per_page must be positive")
        return self._transport.search_products(
            ProductQuery(search=search or None, page=page, per_page=per_page)
        )

    async def invalidate(self, product_id: int) -> bool:
        dropped = await self._products.invalidate(product_id)
        dropped = await self._variables.invalidate(product_id) or dropped
        if dropped:
            logger.debug("Invalidated product %d", product_id)
        return dropped

    async def clear(self) -> int:
        return await self._products.clear() + await self._variables.clear()


def _unwrap[T](lookup: Cached[int, T, TransportError], product_id: int) -> LazyCoroResult[T, TransportError]:
    async def execute() -> Result[T, TransportError]:
        match await lookup.get(product_id):
            case Ok(found):
                if found.hit:
                    logger.debug("Product %d served from %s", product_id, found.tier)
                return Ok(found.value)
            case Error(e):
                return Error(e)

    return LazyCoroResult(execute)


__all__ = ("Catalog", "product_key", "variable_key")
