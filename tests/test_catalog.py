import asyncio

import pytest
from kungfu import Error, Ok

from cartsync.catalog import Catalog, LocalTier, cached
from cartsync.transport import ApplicationError, NetworkError, Product

from conftest import FakePlatform, cart


async def resolve(lazy):
    return await lazy


def value_of(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(e)


def catalog_with_products():
    platform = FakePlatform(cart())
    platform.products = {
        1: Product(1, "Mug", "$12.00"),
        2: Product(2, "Tee", "$15.00", type="variable"),
        3: Product(3, "Mug Lid", "$3.00"),
    }
    return platform, Catalog(platform)


def test_product_is_fetched_once():
    platform, catalog = catalog_with_products()

    async def scenario():
        first = await catalog.product(1)
        second = await catalog.product(1)
        return first, second

    first, second = asyncio.run(scenario())
    assert value_of(first) == value_of(second) == Product(1, "Mug", "$12.00")
    assert platform.called("get_product") == [1]


def test_failures_are_not_cached():
    platform, catalog = catalog_with_products()
    platform.fail("get_product", NetworkError("timeout"))

    async def scenario():
        first = await catalog.product(1)
        second = await catalog.product(1)
        return first, second

    first, second = asyncio.run(scenario())
    assert isinstance(first, Error)
    assert isinstance(second, Ok)
    assert platform.called("get_product") == [1, 1]


def test_missing_product_is_an_application_error():
    _, catalog = catalog_with_products()
    match asyncio.run(resolve(catalog.product(99))):
        case Error(e):
            assert e == ApplicationError("Product not found")
        case Ok(product):
            raise AssertionError(product)


def test_invalidate_forces_refetch():
    platform, catalog = catalog_with_products()

    async def scenario():
        await catalog.product(1)
        assert await catalog.invalidate(1)
        assert not await catalog.invalidate(1)
        await catalog.product(1)

    asyncio.run(scenario())
    assert platform.called("get_product") == [1, 1]


def test_search_is_never_cached():
    platform, catalog = catalog_with_products()

    async def scenario():
        first = await catalog.search("mug")
        second = await catalog.search("mug")
        return first, second

    first, second = asyncio.run(scenario())
    match first:
        case Ok(products):
            assert [p.name for p in products] == ["Mug", "Mug Lid"]
        case Error(e):
            raise AssertionError(e)
    assert value_of(first) == value_of(second)
    assert len(platform.called("search_products")) == 2


def test_search_paging():
    _, catalog = catalog_with_products()
    products = value_of(asyncio.run(resolve(catalog.search(page=2, per_page=2))))
    assert [p.id for p in products] == [3]


def test_search_rejects_bad_paging():
    _, catalog = catalog_with_products()
    with pytest.raises(ValueError):
        catalog.search(page=0)


def test_local_tier_evicts_least_recently_used():
    async def scenario():
        tier = LocalTier[str](max_size=2)
        await tier.set("a", "A")
        await tier.set("b", "B")
        await tier.get("a")
        await tier.set("c", "C")
        return await tier.get("a"), await tier.get("b"), await tier.get("c"), len(tier)

    assert asyncio.run(scenario()) == ("A", None, "C", 2)


def test_local_tier_rejects_zero_size():
    with pytest.raises(ValueError):
        LocalTier(max_size=0)


class BrokenTier:
    name = "broken"

    async def get(self, key):
        raise ConnectionError("down")

    async def set(self, key, value):
        raise ConnectionError("down")

    async def delete(self, key):
        return False

    async def clear(self):
        return 0


def test_broken_tier_falls_through_to_fetch(caplog):
    platform, _ = catalog_with_products()
    local = LocalTier[Product]()
    lookup = cached(lambda pid: f"product:{pid}", platform.get_product, BrokenTier(), local)

    async def scenario():
        first = await lookup.get(1)
        second = await lookup.get(1)
        return first, second

    first, second = asyncio.run(scenario())
    match first, second:
        case Ok(miss), Ok(hit):
            assert miss.hit is False
            assert hit.hit is True
            assert hit.tier == "local"
        case _:
            raise AssertionError((first, second))
    assert "Tier broken failed" in caplog.text
