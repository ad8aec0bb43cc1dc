"""
Tests for the deduplicating term cache.
"""

import asyncio

import pytest

from conftest import StubSource
from curriculum.data_source import DataSourceError
from curriculum.term_cache import TermCache
from curriculum.terms import TermKeyError


class SlowSource(StubSource):
    """Stub whose fetches block until released."""

    def __init__(self, tables=None, fail_terms=None):
        super().__init__(tables, fail_terms)
        self.release = None

    async def fetch_term_async(self, term):
        await self.release.wait()
        return await super().fetch_term_async(term)


class TestTermCache:
    def test_fetches_missing_term_once(self):
        source = StubSource({"FA24": {"B": [["A"]]}})
        cache = TermCache(source)

        async def run():
            await cache.ensure_term("FA24")
            await cache.ensure_term("FA24")

        asyncio.run(run())
        assert source.calls == ["FA24"]
        assert cache.get("FA24") == {"B": [["A"]]}
        assert "FA24" in cache
        assert cache.fetch_count == 1

    def test_concurrent_callers_share_fetch(self):
        source = SlowSource({"FA24": {}})
        cache = TermCache(source)

        async def run():
            source.release = asyncio.Event()
            waiters = [asyncio.ensure_future(cache.ensure_term("FA24")) for _ in range(5)]
            await asyncio.sleep(0)
            assert cache.pending_terms == ["FA24"]
            source.release.set()
            await asyncio.gather(*waiters)

        asyncio.run(run())
        assert source.calls == ["FA24"]
        assert cache.pending_terms == []
        assert cache.known_terms == ["FA24"]

    def test_ensure_terms_fetches_each_once(self):
        source = StubSource()
        cache = TermCache(source, initial={"FA24": {}})
        asyncio.run(cache.ensure_terms(["SP25", "FA24", "SP25", "WI25"]))
        assert sorted(source.calls) == ["SP25", "WI25"]
        assert cache.known_terms == ["FA24", "SP25", "WI25"]

    def test_failure_reaches_every_waiter_and_allows_retry(self):
        source = SlowSource(fail_terms={"FA24"})
        cache = TermCache(source)

        async def run():
            source.release = asyncio.Event()
            waiters = [asyncio.ensure_future(cache.ensure_term("FA24")) for _ in range(3)]
            await asyncio.sleep(0)
            source.release.set()
            return await asyncio.gather(*waiters, return_exceptions=True)

        results = asyncio.run(run())
        assert all(isinstance(r, DataSourceError) for r in results)
        assert source.calls == ["FA24"]
        assert "FA24" not in cache
        assert cache.pending_terms == []

        source.fail_terms.clear()

        async def retry():
            source.release = asyncio.Event()
            source.release.set()
            await cache.ensure_term("FA24")

        asyncio.run(retry())
        assert "FA24" in cache
        assert source.calls == ["FA24", "FA24"]

    def test_cancelled_waiter_does_not_cancel_fetch(self):
        source = SlowSource({"FA24": {"X": []}})
        cache = TermCache(source)

        async def run():
            source.release = asyncio.Event()
            first = asyncio.ensure_future(cache.ensure_term("FA24"))
            second = asyncio.ensure_future(cache.ensure_term("FA24"))
            await asyncio.sleep(0)
            first.cancel()
            await asyncio.sleep(0)
            source.release.set()
            await second
            return first.cancelled()

        assert asyncio.run(run()) is True
        assert cache.get("FA24") == {"X": []}

    def test_put_keeps_first_table(self):
        cache = TermCache(StubSource())
        cache.put("FA24", {"A": []})
        cache.put("FA24", {"B": []})
        assert cache.get("FA24") == {"A": []}
        with pytest.raises(TermKeyError):
            cache.put("bogus", {})

    def test_snapshot_is_a_copy(self):
        cache = TermCache(StubSource(), initial={"FA24": {}})
        snap = cache.snapshot()
        snap["SP25"] = {}
        assert "SP25" not in cache

    def test_invalid_term_rejected_before_fetch(self):
        source = StubSource()
        cache = TermCache(source)
        with pytest.raises(TermKeyError):
            asyncio.run(cache.ensure_term("2024"))
        assert source.calls == []
