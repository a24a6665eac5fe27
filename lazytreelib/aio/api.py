"""High-level async API for LazyTreeLib.

This module wires a store, an expansion controller and a projector into
one ``LazyTree`` object whose operations each return the updated
projection, ready to hand to a virtualized list renderer.
"""

import asyncio
from typing import Any, Iterable, List, Optional

from ..config import ExpandAllMode, TreeConfig
from .adapters import InMemoryRecordSource, RecordSetFetcher
from .adapters.records import RecordLike
from .caching import CachingChildFetcher
from .core import AsyncChildFetcher, TreeNode
from .error_handling import LazyTreeError
from .error_policies import ContinueOnErrorsPolicy, ErrorPolicy
from .expansion import ExpansionController
from .projector import ProjectedRow, TreeProjector
from .store import TreeNodeStore


class LazyTree:
    """
    A lazily populated tree and its visible rows.

    Example:
        >>> tree = await open_tree(records)
        >>> rows = await tree.expand(1)
        >>> for row in rows:
        ...     print(f"{'  ' * row.depth}{row.label}")
    """

    def __init__(
        self,
        fetcher: AsyncChildFetcher,
        config: Optional[TreeConfig] = None,
        policy: Optional[ErrorPolicy] = None,
        expanded: Optional[Iterable[Any]] = None,
    ):
        """
        Build an empty tree. Use ``LazyTree.open`` to also load the roots.

        Args:
            fetcher: Source of children (the root sentinel fetches roots)
            config: Tree configuration (defaults to TreeConfig())
            policy: Error policy for failed fetches
            expanded: Node ids to start expanded

        Raises:
            ValueError: The configuration is inconsistent
        """
        self.config = config or TreeConfig()
        errors = self.config.validate()
        if errors:
            raise ValueError(f"Invalid tree configuration: {'; '.join(errors)}")

        self.fetcher = fetcher
        self.store = TreeNodeStore(root_id=self.config.root_id)
        self.controller = ExpansionController(
            self.store,
            fetcher,
            policy=policy or ContinueOnErrorsPolicy(verbose=self.config.verbose_errors),
            expanded=expanded,
        )
        self.projector = TreeProjector(self.store, self.controller, self.config.loading_label)
        self._closed = False

    @classmethod
    async def open(cls, fetcher: AsyncChildFetcher, config: Optional[TreeConfig] = None, **kwargs) -> 'LazyTree':
        """Build a tree and load its root batch.

        Raises:
            FetchError: The roots could not be fetched
        """
        tree = cls(fetcher, config, **kwargs)
        await tree.load_roots()
        return tree

    async def load_roots(self) -> List[TreeNode]:
        """Fetch and register the roots, then load seeded expansions.

        Seeded ids below the roots are fetched as their ancestors' children
        arrive, whether that happens here or in a later ``expand``. Failed
        seeded nodes are not retried.
        """
        roots = await self.fetcher.fetch_children(self.config.root_id)
        self.store.add_roots(roots)
        await self.controller.load_missing(retry_failed=False)
        return self.store.roots

    # User-facing operations

    async def expand(self, node_id: Any) -> List[ProjectedRow]:
        self._check_open()
        await self.controller.expand(node_id)
        return self.rows

    def collapse(self, node_id: Any) -> List[ProjectedRow]:
        self._check_open()
        self.controller.collapse(node_id)
        return self.rows

    async def toggle(self, node_id: Any) -> List[ProjectedRow]:
        self._check_open()
        await self.controller.toggle(node_id)
        return self.rows

    def request_toggle(self, node_id: Any) -> Optional[asyncio.Task]:
        """Click handler form of ``toggle``: changes state now, fetches in the background.

        Returns:
            The fetch task, or None if nothing needs fetching
        """
        self._check_open()
        return self.controller.request_toggle(node_id)

    async def expand_all(self) -> List[ProjectedRow]:
        """Expand everything, as far as ``config.expand_all_mode`` allows."""
        self._check_open()
        if self.config.expand_all_mode == ExpandAllMode.FETCH_MISSING:
            await self.controller.expand_all_deep()
        else:
            self.controller.expand_all()
        return self.rows

    def collapse_all(self) -> List[ProjectedRow]:
        self._check_open()
        self.controller.collapse_all()
        return self.rows

    # Rendering

    @property
    def rows(self) -> List[ProjectedRow]:
        self._check_open()
        return self.projector.rows

    def slice(self, start: int, stop: int) -> List[ProjectedRow]:
        self._check_open()
        return self.projector.slice(start, stop)

    def __len__(self) -> int:
        return len(self.projector)

    def get_node(self, node_id: Any) -> Optional[TreeNode]:
        return self.store.get_node(node_id)

    async def get_stats(self) -> dict:
        """Combined statistics of the store, controller and fetcher."""
        stats = self.store.get_stats()
        stats['expanded_nodes'] = len(self.controller.expanded)
        stats['pending_fetches'] = len(self.controller.pending)
        stats['visible_rows'] = len(self.projector)
        stats['fetcher'] = await self.fetcher.get_stats()
        return stats

    async def close(self):
        """Stop the projector and close the fetcher.

        In-flight fetches are left to finish. Row-returning operations
        raise ``LazyTreeError`` afterwards.
        """
        if self._closed:
            return
        self._closed = True
        self.projector.close()
        await self.fetcher.close()

    def _check_open(self) -> None:
        if self._closed:
            raise LazyTreeError("LazyTree is closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def create_record_fetcher(
    records: Iterable[RecordLike],
    config: Optional[TreeConfig] = None,
    cached: bool = False,
) -> AsyncChildFetcher:
    """
    Build the fetcher stack for an in-memory record set.

    Args:
        records: Records or ``{id, parentId, label}`` mappings
        config: Supplies latency, concurrency and cache settings
        cached: Wrap the fetcher in a CachingChildFetcher

    Returns:
        A ready-to-use fetcher
    """
    config = config or TreeConfig()
    fetcher = RecordSetFetcher(
        InMemoryRecordSource(records),
        latency=(config.min_latency, config.max_latency),
        max_concurrent=config.max_concurrent,
    )
    if cached:
        return CachingChildFetcher(fetcher, max_size=config.cache_size, ttl=config.cache_ttl)
    return fetcher


async def open_tree(
    records: Iterable[RecordLike],
    config: Optional[TreeConfig] = None,
    cached: bool = False,
    **kwargs
) -> LazyTree:
    """
    Open a lazy tree over an in-memory record set.

    Args:
        records: Records or ``{id, parentId, label}`` mappings
        config: Tree configuration
        cached: Cache fetched children across trees sharing the fetcher
        **kwargs: Passed to LazyTree (policy, expanded)

    Returns:
        A LazyTree with its roots loaded
    """
    fetcher = create_record_fetcher(records, config, cached=cached)
    return await LazyTree.open(fetcher, config, **kwargs)
