"""
Lookup cache — tiers in front of a lazy fetch.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from cartsync._types import Error, LazyCoroResult, Ok, Result

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Tier Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Tier[T](Protocol):
    """
    One cache layer.

    Example:
        class SessionStorageTier[T]:
            @property
            def name(self) -> str:
                return "session"

            async def get(self, key: str) -> T | None: ...
            async def set(self, key: str, value: T) -> None: ...
            async def delete(self, key: str) -> bool: ...
            async def clear(self) -> int: ...
    """

    @property
    def name(self) -> str: ...

    async def get(self, key: str) -> T | None: ...

    async def set(self, key: str, value: T) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear(self) -> int: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Local Tier — In-Memory LRU
# ═══════════════════════════════════════════════════════════════════════════════


class LocalTier[T]:
    """
    In-memory LRU tier.

    Example:
        products = LocalTier[Product](max_size=200)
    """

    def __init__(self, max_size: int = 256) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._entries: OrderedDict[str, T] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> T | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    async def set(self, key: str, value: T) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count


# ═══════════════════════════════════════════════════════════════════════════════
# Cached Lookup
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Lookup[T]:
    value: T
    hit: bool
    tier: str | None


@dataclass(frozen=True, slots=True)
class Cached[K, T, E]:
    """
    Tiers tried in order, then fetch; a fetched value fills every tier.

    Failures are never cached.
    """

    key_fn: Callable[[K], str]
    fetch: Callable[[K], LazyCoroResult[T, E]]
    tiers: tuple[Tier[T], ...]

    def get(self, key: K) -> LazyCoroResult[Lookup[T], E]:
        cache_key = self.key_fn(key)
        tiers = self.tiers
        fetch = self.fetch

        async def execute() -> Result[Lookup[T], E]:
            for t in tiers:
                try:
                    value = await t.get(cache_key)
                except Exception:
                    logger.warning("Tier %s failed reading %s", t.name, cache_key, exc_info=True)
                    continue
                if value is not None:
                    return Ok(Lookup(value=value, hit=True, tier=t.name))

            match await fetch(key):
                case Ok(value):
                    for t in tiers:
                        try:
                            await t.set(cache_key, value)
                        except Exception:
                            logger.warning(
                                "Tier %s failed writing %s", t.name, cache_key, exc_info=True
                            )
                    return Ok(Lookup(value=value, hit=False, tier=None))
                case Error(e):
                    return Error(e)

        return LazyCoroResult(execute)

    async def invalidate(self, key: K) -> bool:
        cache_key = self.key_fn(key)
        deleted = False
        for t in self.tiers:
            deleted = await t.delete(cache_key) or deleted
        return deleted

    async def clear(self) -> int:
        return sum([await t.clear() for t in self.tiers])


def cached[K, T, E](
    key: Callable[[K], str],
    fetch: Callable[[K], LazyCoroResult[T, E]],
    *tiers: Tier[T],
) -> Cached[K, T, E]:
    """
    Example:
        products = cached(
            lambda pid: f"product:{pid}",
            transport.get_product,
            LocalTier(max_size=200),
        )
        match await products.get(42):
            case Ok(lookup):
                print(lookup.value.name, lookup.hit)
    """
    return Cached(key_fn=key, fetch=fetch, tiers=tiers)


__all__ = ("Tier", "LocalTier", "Lookup", "Cached", "cached")
