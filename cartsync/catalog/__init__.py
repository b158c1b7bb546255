"""
Catalog — cached product lookups.

    from cartsync import catalog as K

    catalog = K.Catalog(transport, products=K.LocalTier(max_size=500))

    product = await catalog.product(42)            # cached per id
    results = await catalog.search("hoodie")       # never cached
    await catalog.invalidate(42)
"""

from __future__ import annotations

from cartsync.catalog._cache import (
    Tier,
    LocalTier,
    Lookup,
    Cached,
    cached,
)
from cartsync.catalog._catalog import (
    Catalog,
    product_key,
    variable_key,
)

__all__ = (
    # Cache
    "Tier",
    "LocalTier",
    "Lookup",
    "Cached",
    "cached",
    # Catalog
    "Catalog",
    "product_key",
    "variable_key",
)
