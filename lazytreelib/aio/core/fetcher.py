"""Async child fetcher abstraction.

Defines how a data source hands the tree the children of one node.
Key feature: a fetch is atomic - callers get the whole child list or an
exception, never a partial result.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Set

from .node import TreeNode


class AsyncChildFetcher(ABC):
    """Abstract base class for async child fetchers.

    Fetchers bridge between the expansion engine and a specific data
    source (an in-memory record set, a database, a remote API). Latency
    is treated as unbounded and variable; nothing in the engine assumes
    a fetch completes within a fixed time.
    """

    def __init__(self, max_concurrent: int = 100):
        """Initialize fetcher with concurrency control.

        Args:
            max_concurrent: Maximum concurrent accesses to the data source
        """
        self.max_concurrent = max_concurrent
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.fetch_count = 0
        self._capabilities = self._define_capabilities()

    @abstractmethod
    async def fetch_children(self, parent_id: Any) -> List[TreeNode]:
        """Fetch the children of a node.

        Args:
            parent_id: Id of the parent node (the root sentinel fetches roots)

        Returns:
            Fresh, unfetched child nodes in the source's original order.
            An empty list when the node has no children.

        Raises:
            FetchError: The backing data source could not be read
        """
        pass

    def supports_capability(self, capability: str) -> bool:
        """Check if fetcher supports a specific capability.

        Args:
            capability: Capability name

        Returns:
            True if capability is supported
        """
        return capability in self._capabilities

    def _define_capabilities(self) -> Set[str]:
        """Define fetcher capabilities.

        Override in subclasses to declare supported features.
        """
        return {
            'fetch_children',
            'atomic',  # All children or an error, never a subset
        }

    async def get_stats(self) -> dict:
        """Get fetcher statistics.

        Returns:
            Dictionary of statistics (fetch count, available permits, etc.)
        """
        return {
            'fetch_count': self.fetch_count,
            'max_concurrent': self.max_concurrent,
            'available_permits': self.semaphore._value if hasattr(self.semaphore, '_value') else None,
        }

    async def close(self):
        """Clean up fetcher resources.

        Override if the fetcher holds connections or file handles.
        """
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
