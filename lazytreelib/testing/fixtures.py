"""Test fixtures for LazyTreeLib consumers.

These fixtures give tests control over when and how fetches finish, so
interleavings that are rare against a real data source can be forced
deterministically.
"""

import asyncio
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..aio.adapters.records import InMemoryRecordSource, RecordLike, RecordSource
from ..aio.core import AsyncChildFetcher, Record, TreeNode


class GatedFetcher(AsyncChildFetcher):
    """Fetcher whose fetches wait until the test releases or fails them.

    Each parent id has one gate at a time. ``release`` and ``fail`` may be
    called before or after the fetch reaches the gate.

    Example:
        fetcher = GatedFetcher(records)
        task = controller.request_expand(2)
        assert store.get_node(2).loading
        fetcher.release(2)
        await task
    """

    def __init__(self, records: Iterable[RecordLike], max_concurrent: int = 100):
        super().__init__(max_concurrent=max_concurrent)
        self.source = InMemoryRecordSource(records)
        self.calls: List[Any] = []
        self._gates: Dict[Any, asyncio.Future] = {}

    def _gate(self, parent_id: Any) -> asyncio.Future:
        gate = self._gates.get(parent_id)
        if gate is None:
            gate = asyncio.get_running_loop().create_future()
            self._gates[parent_id] = gate
        return gate

    async def fetch_children(self, parent_id: Any) -> List[TreeNode]:
        self.fetch_count += 1
        self.calls.append(parent_id)
        gate = self._gate(parent_id)
        try:
            await gate
        finally:
            if self._gates.get(parent_id) is gate:
                del self._gates[parent_id]
        return [TreeNode.from_record(record) for record in self.source.records_with_parent(parent_id)]

    def release(self, parent_id: Any) -> None:
        """Let the pending (or next) fetch of ``parent_id`` succeed."""
        self._gate(parent_id).set_result(None)

    def fail(self, parent_id: Any, error: Optional[Exception] = None) -> None:
        """Make the pending (or next) fetch of ``parent_id`` raise ``error``."""
        self._gate(parent_id).set_exception(error or OSError("backing store unavailable"))

    def call_count(self, parent_id: Any) -> int:
        return self.calls.count(parent_id)


class FlakyRecordSource(RecordSource):
    """In-memory record source that raises for chosen parent ids.

    Args:
        records: Records to serve
        failing: Parent ids whose lookups raise
        failures: How many lookups per id raise before it recovers
            (None to fail forever)
    """

    def __init__(self, records: Iterable[RecordLike], failing: Iterable[Any], failures: Optional[int] = None):
        self._source = InMemoryRecordSource(records)
        self.failing = set(failing)
        self.failures = failures
        self.lookups: Counter = Counter()

    def records_with_parent(self, parent_id: Any) -> Sequence[Record]:
        self.lookups[parent_id] += 1
        if parent_id in self.failing:
            if self.failures is None or self.lookups[parent_id] <= self.failures:
                raise OSError(f"lookup of {parent_id!r} failed")
        return self._source.records_with_parent(parent_id)
