"""
Exception types for LazyTreeLib.

Fetch failures are contained at the node they belong to; the store and
controller raise the remaining types when a caller asks for a transition
that would break the tree's invariants.
"""

from typing import Any, Optional


class LazyTreeError(Exception):
    """Base class for all LazyTreeLib errors."""


class FetchError(LazyTreeError):
    """
    Raised by a child fetcher when the backing record access fails.

    Attributes:
        parent_id: Id of the node whose children could not be fetched
        cause: The underlying exception, if any
    """

    def __init__(self, parent_id: Any, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.parent_id = parent_id
        self.cause = cause
        if message is None:
            message = f"Failed to fetch children of {parent_id!r}"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)


class InvariantViolation(LazyTreeError):
    """Raised when a store transition would break a tree invariant."""


class UnknownNodeError(LazyTreeError, KeyError):
    """Raised when an operation names a node id the store has never seen."""

    def __init__(self, node_id: Any):
        self.node_id = node_id
        super().__init__(node_id)

    def __str__(self) -> str:
        return f"Unknown node {self.node_id!r}"
