"""Record-set backed child fetcher.

Serves children out of a flat list of ``{id, parent_id, label}`` records,
the shape tree data usually arrives in from a database table or a JSON
export. Simulated latency stands in for a real network round trip.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..core import AsyncChildFetcher, Record, TreeNode
from ..error_handling import FetchError


RecordLike = Union[Record, Mapping[str, Any]]


def _as_record(item: RecordLike) -> Record:
    if isinstance(item, Record):
        return item
    return Record.from_mapping(item)


class RecordSource(ABC):
    """Backing record capability consumed by ``RecordSetFetcher``."""

    @abstractmethod
    def records_with_parent(self, parent_id: Any) -> Sequence[Record]:
        """Return records whose parent is ``parent_id``, in original order.

        Implementations raise whatever their storage raises on failure;
        the fetcher turns it into a ``FetchError``.
        """
        pass


class InMemoryRecordSource(RecordSource):
    """Record source over an in-memory list.

    Records are indexed by parent once at construction, so each lookup
    is proportional to the number of children rather than the data set.
    """

    def __init__(self, records: Iterable[RecordLike]):
        self._by_parent: Dict[Any, List[Record]] = defaultdict(list)
        self._ids: Set[Any] = set()
        for item in records:
            record = _as_record(item)
            self._by_parent[record.parent_id].append(record)
            self._ids.add(record.id)

    def records_with_parent(self, parent_id: Any) -> Sequence[Record]:
        # .get() so lookups of leaves don't grow the defaultdict
        return tuple(self._by_parent.get(parent_id, ()))

    def __contains__(self, record_id: Any) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class RecordSetFetcher(AsyncChildFetcher):
    """Fetch children from a ``RecordSource`` with simulated latency.

    Example:
        source = InMemoryRecordSource(records)
        fetcher = RecordSetFetcher(source, latency=(0.05, 0.5))
        children = await fetcher.fetch_children(node_id)
    """

    def __init__(
        self,
        source: Union[RecordSource, Iterable[RecordLike]],
        latency: Tuple[float, float] = (0.0, 0.0),
        max_concurrent: int = 100,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize record-set fetcher.

        Args:
            source: A RecordSource, or an iterable of records to index in memory
            latency: (min, max) seconds of simulated delay per fetch
            max_concurrent: Maximum concurrent source accesses
            rng: Random generator for latency (seedable in tests)
        """
        super().__init__(max_concurrent=max_concurrent)
        if not isinstance(source, RecordSource):
            source = InMemoryRecordSource(source)
        min_latency, max_latency = latency
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError(f"Invalid latency range: {latency!r}")
        self.source = source
        self.latency = (min_latency, max_latency)
        self._rng = rng or random.Random()

    async def fetch_children(self, parent_id: Any) -> List[TreeNode]:
        """Fetch children of ``parent_id`` from the record source.

        Raises:
            FetchError: The source raised while being read
        """
        self.fetch_count += 1
        async with self.semaphore:
            await asyncio.sleep(self._next_delay())
            try:
                records = self.source.records_with_parent(parent_id)
            except FetchError:
                raise
            except Exception as e:
                raise FetchError(parent_id, e) from e
        return [TreeNode.from_record(record) for record in records]

    def _next_delay(self) -> float:
        min_latency, max_latency = self.latency
        if max_latency <= 0:
            return 0
        return self._rng.uniform(min_latency, max_latency)

    async def get_stats(self) -> dict:
        stats = await super().get_stats()
        stats['latency'] = self.latency
        return stats
