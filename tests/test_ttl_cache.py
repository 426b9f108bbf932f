# tests/test_ttl_cache.py

"""Tests for TTLCacheStore freshness, stale fallback and empty results."""

import unittest

from src.storage.ttl_cache import CacheStatus, TTLCacheStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProducer:
    """Async producer that counts calls and can be told to fail."""

    def __init__(self, *values: object) -> None:
        self.values = list(values)
        self.calls = 0
        self.fail = False

    async def __call__(self) -> object:
        self.calls += 1
        if self.fail:
            raise ConnectionError("upstream down")
        return self.values[min(self.calls, len(self.values)) - 1]


class TestTTLCacheStore(unittest.IsolatedAsyncioTestCase):
    """TTLCacheStore.get / fetch behaviour."""

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache = TTLCacheStore(
            ttls={"properties": 60, "zones": 3600}, clock=self.clock,
            default_ttl=10,
        )

    async def test_fresh_hit_skips_producer(self) -> None:
        """Two reads within the TTL run the producer once."""
        producer = CountingProducer(["a"])
        first = await self.cache.get("properties", producer)
        self.clock.advance(59)
        second = await self.cache.get("properties", producer)
        self.assertEqual(first, ["a"])
        self.assertIs(first, second)
        self.assertEqual(producer.calls, 1)

    async def test_expired_entry_is_refreshed(self) -> None:
        producer = CountingProducer(["a"], ["b"])
        await self.cache.get("properties", producer)
        self.clock.advance(61)
        self.assertEqual(await self.cache.get("properties", producer), ["b"])
        self.assertEqual(producer.calls, 2)

    async def test_stale_value_served_when_refresh_fails(self) -> None:
        """After one success, a failing refresh returns the first value."""
        producer = CountingProducer(["first"])
        await self.cache.get("properties", producer)
        self.clock.advance(120)
        producer.fail = True

        result = await self.cache.fetch("properties", producer)
        self.assertEqual(result.value, ["first"])
        self.assertIs(result.status, CacheStatus.STALE)
        self.assertIsInstance(result.error, ConnectionError)
        self.assertEqual(self.cache.entry("properties").status, CacheStatus.STALE)

    async def test_stale_entry_retried_on_next_read(self) -> None:
        """A stale entry is not treated as fresh on the following read."""
        producer = CountingProducer(["first"], ["second"])
        await self.cache.get("properties", producer)
        self.clock.advance(120)
        producer.fail = True
        await self.cache.get("properties", producer)
        producer.fail = False
        self.assertEqual(await self.cache.get("properties", producer), ["second"])
        self.assertEqual(producer.calls, 3)

    async def test_empty_result_when_nothing_cached(self) -> None:
        producer = CountingProducer()
        producer.fail = True
        result = await self.cache.fetch("zones", producer)
        self.assertEqual(result.value, [])
        self.assertIs(result.status, CacheStatus.EMPTY)
        self.assertIsNotNone(result.error)
        self.assertIsNone(self.cache.entry("zones"))

    async def test_custom_empty_factory(self) -> None:
        producer = CountingProducer()
        producer.fail = True
        value = await self.cache.get("post:x", producer, empty_factory=lambda: None)
        self.assertIsNone(value)

    async def test_put_value_served_until_expiry(self) -> None:
        producer = CountingProducer(["fetched"])
        self.cache.put("zones", ["primed"], ttl=30)
        self.assertEqual(await self.cache.get("zones", producer), ["primed"])
        self.assertEqual(producer.calls, 0)
        self.clock.advance(31)
        self.assertEqual(await self.cache.get("zones", producer), ["fetched"])
        self.assertEqual(producer.calls, 1)

    async def test_per_key_and_explicit_ttl(self) -> None:
        producer = CountingProducer("v")
        await self.cache.get("zones", producer)
        await self.cache.get("other", producer)
        await self.cache.get("custom", producer, ttl=500)
        self.assertEqual(self.cache.entry("zones").ttl, 3600)
        self.assertEqual(self.cache.entry("other").ttl, 10)
        self.assertEqual(self.cache.entry("custom").ttl, 500)

    async def test_invalidate_clear_and_info(self) -> None:
        producer = CountingProducer("v")
        await self.cache.get("properties", producer)
        self.clock.advance(15)

        info = self.cache.info("properties")
        self.assertTrue(info.has_value)
        self.assertEqual(info.age, 15)
        self.assertFalse(info.expired)
        self.assertEqual(info.expires_in, 45)

        self.assertTrue(self.cache.invalidate("properties"))
        self.assertFalse(self.cache.invalidate("properties"))
        self.assertFalse(self.cache.info("properties").has_value)

        await self.cache.get("zones", producer)
        await self.cache.get("other", producer)
        self.assertEqual(self.cache.clear(), 2)

    def test_default_ttls_come_from_settings(self) -> None:
        cache = TTLCacheStore()
        self.assertEqual(cache.ttl_for("properties"), 30 * 60)
        self.assertEqual(cache.ttl_for("zones"), 60 * 60)
        self.assertEqual(cache.ttl_for("blog_posts"), 2 * 24 * 60 * 60)


if __name__ == "__main__":
    unittest.main()
