"""
Caching fetcher implementation for LazyTreeLib.

Provides a transparent caching layer that can wrap any child fetcher,
so several trees (or a tree reopened on the same data) share fetched
results instead of hitting the data source again.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from cachetools import TTLCache

from ..core import AsyncChildFetcher, Record, TreeNode


def _consume_exception(future: asyncio.Future) -> None:
    # Keeps asyncio from reporting failures nobody waited on
    if not future.cancelled():
        future.exception()


class CachingChildFetcher(AsyncChildFetcher):
    """
    Optional caching layer for any child fetcher.

    Caches the immediate children of each parent id. Uses Future-based
    coordination to prevent duplicate concurrent fetches of the same
    parent. Failed fetches are never cached.

    Each call returns fresh ``TreeNode`` objects, so callers can register
    them in their own store without sharing mutable state.

    Example:
        base = RecordSetFetcher(records, latency=(0.1, 0.5))
        fetcher = CachingChildFetcher(base, max_size=50000)
        tree = await LazyTree.open(fetcher)
    """

    def __init__(
        self,
        base_fetcher: AsyncChildFetcher,
        max_size: int = 10000,
        ttl: float = 300.0  # 5 minutes
    ):
        """
        Initialize caching fetcher.

        Args:
            base_fetcher: The underlying fetcher to wrap
            max_size: Maximum number of parents in cache
            ttl: Time-to-live for cache entries in seconds
        """
        super().__init__(max_concurrent=base_fetcher.max_concurrent)
        self._fetcher = base_fetcher
        self._cache = TTLCache(maxsize=max_size, ttl=ttl)
        self._fetches_in_progress: Dict[Any, asyncio.Future] = {}

        # Statistics
        self.cache_hits = 0
        self.cache_misses = 0
        self.concurrent_waits = 0

    async def fetch_children(self, parent_id: Any) -> List[TreeNode]:
        """
        Fetch children with caching and async coordination.

        This method:
        1. Checks if another task is already fetching this parent
        2. Checks the cache for existing results
        3. Performs the fetch if needed
        4. Shares results with all waiting tasks
        """
        self.fetch_count += 1

        # 1. Wait on a fetch already in progress. When it fails, the first
        # waiter to wake up retries and the rest wait on that retry.
        while True:
            in_progress = self._fetches_in_progress.get(parent_id)
            if in_progress is None:
                break
            self.concurrent_waits += 1
            try:
                records = await asyncio.shield(in_progress)
                return self._materialize(records)
            except asyncio.CancelledError:
                if not in_progress.cancelled():
                    raise
            except Exception:
                pass
            if self._fetches_in_progress.get(parent_id) is in_progress:
                del self._fetches_in_progress[parent_id]

        # 2. Check cache
        cached = self._check_cache(parent_id)
        if cached is not None:
            self.cache_hits += 1
            return self._materialize(cached)

        # 3. Cache miss - need to fetch
        self.cache_misses += 1

        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._fetches_in_progress[parent_id] = future

        try:
            children = await self._fetcher.fetch_children(parent_id)
            records = tuple(
                Record(id=child.id, parent_id=child.parent_id, label=child.label)
                for child in children
            )
            self._update_cache(parent_id, records)
            future.set_result(records)
            return self._materialize(records)
        except Exception as e:
            future.set_exception(e)
            raise
        finally:
            if not future.done():
                future.cancel()
            if self._fetches_in_progress.get(parent_id) is future:
                del self._fetches_in_progress[parent_id]

    @staticmethod
    def _materialize(records: Tuple[Record, ...]) -> List[TreeNode]:
        return [TreeNode.from_record(record) for record in records]

    def _check_cache(self, parent_id: Any) -> Optional[Tuple[Record, ...]]:
        """
        Check cache for existing results.

        Returns None if not found or expired.
        """
        return self._cache.get(parent_id)

    def _update_cache(self, parent_id: Any, records: Tuple[Record, ...]) -> None:
        self._cache[parent_id] = records

    def invalidate(self, parent_id: Any) -> bool:
        """
        Drop the cached children of one parent.

        Returns:
            True if an entry was removed
        """
        return self._cache.pop(parent_id, None) is not None

    def get_cache_stats(self) -> dict:
        """
        Get cache statistics for monitoring and debugging.
        """
        total_requests = self.cache_hits + self.cache_misses
        hit_rate = self.cache_hits / total_requests if total_requests > 0 else 0

        return {
            'cache_hits': self.cache_hits,
            'cache_misses': self.cache_misses,
            'hit_rate': hit_rate,
            'concurrent_waits': self.concurrent_waits,
            'cache_size': len(self._cache),
            'max_size': self._cache.maxsize,
            'ttl': self._cache.ttl
        }

    async def get_stats(self) -> dict:
        stats = await super().get_stats()
        stats.update(self.get_cache_stats())
        stats['base'] = await self._fetcher.get_stats()
        return stats

    def clear_cache(self) -> None:
        """
        Clear all cached entries.
        """
        self._cache.clear()
        self.cache_hits = 0
        self.cache_misses = 0
        self.concurrent_waits = 0

    async def close(self):
        await self._fetcher.close()
