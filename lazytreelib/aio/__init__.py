"""Asynchronous implementation of LazyTreeLib.

This package contains the asyncio-based lazy tree engine. Fetches are
the only suspension points; every store and expansion change is a
synchronous step between them.
"""

# Core abstractions
from .core import (
    AsyncChildFetcher,
    LoadState,
    Record,
    TreeNode,
)

# Fetchers
from .adapters import (
    RecordSource,
    InMemoryRecordSource,
    RecordSetFetcher,
)
from .caching import CachingChildFetcher

# Engine
from .store import StoreEvent, StoreEventKind, TreeNodeStore
from .expansion import ExpansionController, ExpansionEvent, ExpansionEventKind
from .projector import ProjectedRow, TreeProjector, project

# Errors
from .error_handling import (
    LazyTreeError,
    FetchError,
    InvariantViolation,
    UnknownNodeError,
)
from .error_policies import (
    ErrorPolicy,
    ContinueOnErrorsPolicy,
    CollectErrorsPolicy,
    ThresholdPolicy,
)

# High-level API
from .api import LazyTree, create_record_fetcher, open_tree

# Configuration (re-exported)
from ..config import ExpandAllMode, TreeConfig

__all__ = [
    # Core abstractions
    'AsyncChildFetcher',
    'LoadState',
    'Record',
    'TreeNode',
    # Fetchers
    'RecordSource',
    'InMemoryRecordSource',
    'RecordSetFetcher',
    'CachingChildFetcher',
    # Engine
    'StoreEvent',
    'StoreEventKind',
    'TreeNodeStore',
    'ExpansionController',
    'ExpansionEvent',
    'ExpansionEventKind',
    'ProjectedRow',
    'TreeProjector',
    'project',
    # Errors
    'LazyTreeError',
    'FetchError',
    'InvariantViolation',
    'UnknownNodeError',
    # Error policies
    'ErrorPolicy',
    'ContinueOnErrorsPolicy',
    'CollectErrorsPolicy',
    'ThresholdPolicy',
    # High-level API
    'LazyTree',
    'create_record_fetcher',
    'open_tree',
    # Configuration
    'ExpandAllMode',
    'TreeConfig',
]
