"""
Tests for record-backed and caching child fetchers.

Covers:
1. Order-preserving, exact-match child lookups
2. Error wrapping into FetchError
3. Variable latency and concurrency limits
4. Caching and coalescing of concurrent fetches
"""

import asyncio
import random

import pytest

from lazytreelib.aio import (
    CachingChildFetcher,
    FetchError,
    InMemoryRecordSource,
    LoadState,
    Record,
    RecordSetFetcher,
)
from lazytreelib.testing import FlakyRecordSource, GatedFetcher


RECORDS = [
    {'id': 'a', 'parentId': None, 'label': 'A'},
    {'id': 'c', 'parentId': 'a', 'label': 'C'},
    {'id': 'b', 'parentId': None, 'label': 'B'},
    {'id': 'd', 'parentId': 'a', 'label': 'D'},
    {'id': 'e', 'parentId': 'b'},
]


class TestRecord:

    def test_from_mapping_accepts_camel_case(self):
        record = Record.from_mapping({'id': 1, 'parentId': None, 'label': 'x'})
        assert record == Record(id=1, parent_id=None, label='x')

    def test_from_mapping_accepts_snake_case(self):
        assert Record.from_mapping({'id': 2, 'parent_id': 1}).parent_id == 1

    def test_missing_label_falls_back_to_id(self):
        assert Record.from_mapping({'id': 2, 'parentId': 1}).label == '2'

    def test_missing_parent_key_is_rejected(self):
        with pytest.raises(KeyError, match="parent"):
            Record.from_mapping({'id': 3, 'label': 'orphan'})

    def test_explicit_none_parent_is_a_root(self):
        assert Record.from_mapping({'id': 3, 'parent_id': None}).parent_id is None


class TestInMemoryRecordSource:

    def test_lookup_preserves_original_order(self):
        source = InMemoryRecordSource(RECORDS)
        assert [r.id for r in source.records_with_parent('a')] == ['c', 'd']
        assert [r.id for r in source.records_with_parent(None)] == ['a', 'b']

    def test_unknown_parent_has_no_records(self):
        source = InMemoryRecordSource(RECORDS)
        assert source.records_with_parent('zzz') == ()
        assert len(source) == 5
        assert 'e' in source


class TestRecordSetFetcher:

    @pytest.mark.asyncio
    async def test_fetch_returns_fresh_unfetched_nodes(self):
        fetcher = RecordSetFetcher(RECORDS)
        children = await fetcher.fetch_children('a')

        assert [(c.id, c.label, c.parent_id) for c in children] == [('c', 'C', 'a'), ('d', 'D', 'a')]
        assert all(c.state == LoadState.UNFETCHED for c in children)
        assert fetcher.fetch_count == 1

    @pytest.mark.asyncio
    async def test_no_children_is_not_an_error(self):
        fetcher = RecordSetFetcher(RECORDS)
        assert await fetcher.fetch_children('e') == []

    @pytest.mark.asyncio
    async def test_source_failure_becomes_fetch_error(self):
        fetcher = RecordSetFetcher(FlakyRecordSource(RECORDS, failing={'a'}))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_children('a')

        assert exc_info.value.parent_id == 'a'
        assert isinstance(exc_info.value.cause, OSError)
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_flaky_source_recovers(self):
        fetcher = RecordSetFetcher(FlakyRecordSource(RECORDS, failing={'a'}, failures=1))
        with pytest.raises(FetchError):
            await fetcher.fetch_children('a')
        assert len(await fetcher.fetch_children('a')) == 2

    def test_invalid_latency_is_rejected(self):
        with pytest.raises(ValueError):
            RecordSetFetcher(RECORDS, latency=(0.5, 0.1))

    @pytest.mark.asyncio
    async def test_latency_is_drawn_from_range(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(asyncio, 'sleep', fake_sleep)
        fetcher = RecordSetFetcher(RECORDS, latency=(0.1, 0.3), rng=random.Random(7))
        for _ in range(20):
            await fetcher.fetch_children('a')

        assert all(0.1 <= d <= 0.3 for d in delays)
        assert len(set(delays)) > 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, monkeypatch):
        active = 0
        peak = 0
        real_sleep = asyncio.sleep

        async def tracking_sleep(delay):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await real_sleep(0.01)
            active -= 1

        monkeypatch.setattr(asyncio, 'sleep', tracking_sleep)
        fetcher = RecordSetFetcher(RECORDS, latency=(0.01, 0.02), max_concurrent=2)
        await asyncio.gather(*(fetcher.fetch_children('a') for _ in range(6)))

        stats = await fetcher.get_stats()
        assert stats['max_concurrent'] == 2
        assert stats['available_permits'] == 2
        assert stats['fetch_count'] == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with RecordSetFetcher(RECORDS) as fetcher:
            assert fetcher.supports_capability('atomic')
            assert not fetcher.supports_capability('streaming')


class TestCachingChildFetcher:

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self):
        base = RecordSetFetcher(RECORDS)
        fetcher = CachingChildFetcher(base)

        first = await fetcher.fetch_children('a')
        second = await fetcher.fetch_children('a')

        assert base.fetch_count == 1
        assert [c.id for c in second] == ['c', 'd']
        # Fresh node objects on every call
        assert first[0] is not second[0]
        assert fetcher.get_cache_stats()['cache_hits'] == 1

    @pytest.mark.asyncio
    async def test_concurrent_fetches_are_coalesced(self):
        base = GatedFetcher(RECORDS)
        fetcher = CachingChildFetcher(base)

        tasks = [asyncio.create_task(fetcher.fetch_children('a')) for _ in range(5)]
        await asyncio.sleep(0)
        base.release('a')
        results = await asyncio.gather(*tasks)

        assert base.call_count('a') == 1
        assert all([c.id for c in r] == ['c', 'd'] for r in results)
        assert fetcher.concurrent_waits == 4

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        base = RecordSetFetcher(FlakyRecordSource(RECORDS, failing={'a'}, failures=1))
        fetcher = CachingChildFetcher(base)

        with pytest.raises(FetchError):
            await fetcher.fetch_children('a')
        assert len(await fetcher.fetch_children('a')) == 2
        assert fetcher.get_cache_stats()['cache_misses'] == 2

    @pytest.mark.asyncio
    async def test_waiters_on_failed_fetch_share_one_retry(self):
        base = GatedFetcher(RECORDS)
        fetcher = CachingChildFetcher(base)

        tasks = [asyncio.create_task(fetcher.fetch_children('a')) for _ in range(4)]
        await asyncio.sleep(0)
        base.fail('a', OSError("down"))
        # Let every waiter see the failure before the retry completes
        for _ in range(5):
            await asyncio.sleep(0)
        base.release('a')
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert base.call_count('a') == 2
        assert isinstance(results[0], OSError)
        assert all([c.id for c in r] == ['c', 'd'] for r in results[1:])
        assert fetcher.get_cache_stats()['cache_misses'] == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self):
        base = RecordSetFetcher(RECORDS)
        fetcher = CachingChildFetcher(base)

        await fetcher.fetch_children('a')
        assert fetcher.invalidate('a')
        assert not fetcher.invalidate('a')
        await fetcher.fetch_children('a')
        assert base.fetch_count == 2

    @pytest.mark.asyncio
    async def test_clear_cache_resets_stats(self):
        fetcher = CachingChildFetcher(RecordSetFetcher(RECORDS), max_size=10, ttl=60)
        await fetcher.fetch_children('a')
        fetcher.clear_cache()

        stats = await fetcher.get_stats()
        assert stats['cache_size'] == 0
        assert stats['cache_misses'] == 0
        assert stats['max_size'] == 10
        assert stats['base']['fetch_count'] == 1
