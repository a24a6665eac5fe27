"""Core abstractions for the lazy tree engine.

This module defines the node data model and the fetcher interface.
Fetching is async so data sources can perform non-blocking I/O.
"""

from .node import LoadState, Record, TreeNode
from .fetcher import AsyncChildFetcher

__all__ = [
    # Node
    'LoadState',
    'Record',
    'TreeNode',
    # Fetcher
    'AsyncChildFetcher',
]
