"""Authoritative structural state of a lazy tree.

The store maps node ids to ``TreeNode`` entries and owns every mutation
of them. Each transition is a synchronous step, so under a single event
loop no two mutations interleave.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .core import TreeNode
from .error_handling import InvariantViolation, UnknownNodeError


class StoreEventKind(Enum):
    """Kinds of structural change reported to observers."""
    ROOTS_ADDED = "roots_added"
    LOAD_STARTED = "load_started"
    LOAD_COMPLETED = "load_completed"
    LOAD_FAILED = "load_failed"


@dataclass(frozen=True)
class StoreEvent:
    """One structural change; ``node_id`` is None for ROOTS_ADDED."""
    kind: StoreEventKind
    node_id: Any = None


StoreObserver = Callable[[StoreEvent], None]


class TreeNodeStore:
    """
    Keyed store of every node discovered so far.

    Nodes are created when first discovered (root batch or fetch result)
    and never removed while the tree is live, so fetched state survives
    collapse and re-expansion.

    Example:
        store = TreeNodeStore()
        store.add_roots(await fetcher.fetch_children(None))
        store.begin_load(node_id)
        store.complete_load(node_id, await fetcher.fetch_children(node_id))
    """

    def __init__(self, root_id: Any = None):
        """
        Initialize an empty store.

        Args:
            root_id: Parent value carried by root nodes
        """
        self.root_id = root_id
        self._nodes: Dict[Any, TreeNode] = {}
        self._roots: List[TreeNode] = []
        self._observers: List[StoreObserver] = []
        self.errors: List[dict] = []

    # Queries

    def get_node(self, node_id: Any) -> Optional[TreeNode]:
        """Return the node for ``node_id`` or None if unknown."""
        return self._nodes.get(node_id)

    def require(self, node_id: Any) -> TreeNode:
        """Return the node for ``node_id``.

        Raises:
            UnknownNodeError: The id was never discovered
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    @property
    def roots(self) -> List[TreeNode]:
        return list(self._roots)

    def __contains__(self, node_id: Any) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def walk_loaded(self) -> Iterator[TreeNode]:
        """Depth-first pre-order walk through every loaded subtree.

        Nodes whose children are not loaded are yielded but not entered.
        """
        stack = list(reversed(self._roots))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    # Mutations

    def add_roots(self, nodes: Iterable[TreeNode]) -> List[TreeNode]:
        """Register the initial root batch.

        Roots already registered are kept as they are.

        Returns:
            The registered root entries, in the given order

        Raises:
            InvariantViolation: A node's parent is not the root sentinel
        """
        nodes = list(nodes)
        for node in nodes:
            if node.parent_id != self.root_id:
                raise InvariantViolation(
                    f"Node {node.id!r} has parent {node.parent_id!r}, expected root {self.root_id!r}"
                )
        added = []
        for node in nodes:
            existing = self._nodes.get(node.id)
            if existing is None:
                self._nodes[node.id] = node
                self._roots.append(node)
                existing = node
            added.append(existing)
        self._notify(StoreEvent(StoreEventKind.ROOTS_ADDED))
        return added

    def begin_load(self, node_id: Any) -> TreeNode:
        """Mark a node's children as being fetched.

        Clears any error from a previous attempt.

        Raises:
            UnknownNodeError: The id was never discovered
            InvariantViolation: A fetch for this node is already in flight
        """
        node = self.require(node_id)
        if node.loading:
            raise InvariantViolation(f"Node {node_id!r} is already loading")
        node.loading = True
        node.error = None
        self._notify(StoreEvent(StoreEventKind.LOAD_STARTED, node_id))
        return node

    def complete_load(self, node_id: Any, children: Iterable[TreeNode]) -> TreeNode:
        """Store fetched children and end the load.

        Children already known to the store keep their existing entry
        (and with it any fetched grandchildren).

        Raises:
            UnknownNodeError: The id was never discovered
            InvariantViolation: The node is not loading, or a child belongs
                to another parent
        """
        node = self.require(node_id)
        if not node.loading:
            raise InvariantViolation(f"Node {node_id!r} completed a load it never started")
        children = list(children)
        for child in children:
            if child.parent_id != node_id:
                raise InvariantViolation(
                    f"Child {child.id!r} has parent {child.parent_id!r}, expected {node_id!r}"
                )
            existing = self._nodes.get(child.id)
            if existing is not None and existing.parent_id != node_id:
                raise InvariantViolation(
                    f"Child {child.id!r} is already registered under {existing.parent_id!r}"
                )
        registered = []
        for child in children:
            existing = self._nodes.get(child.id)
            if existing is None:
                self._nodes[child.id] = child
                existing = child
            registered.append(existing)
        node.children = tuple(registered)
        node.loading = False
        self._notify(StoreEvent(StoreEventKind.LOAD_COMPLETED, node_id))
        return node

    def fail_load(self, node_id: Any, error: Exception) -> TreeNode:
        """End a load without children and record the error.

        The node stays eligible for a later retry.

        Raises:
            UnknownNodeError: The id was never discovered
            InvariantViolation: The node is not loading
        """
        node = self.require(node_id)
        if not node.loading:
            raise InvariantViolation(f"Node {node_id!r} failed a load it never started")
        node.loading = False
        node.children = None
        node.error = error
        self.errors.append({
            'node_id': node_id,
            'error': error,
            'error_type': type(error).__name__,
            'error_message': str(error),
        })
        self._notify(StoreEvent(StoreEventKind.LOAD_FAILED, node_id))
        return node

    # Observers

    def subscribe(self, observer: StoreObserver) -> Callable[[], None]:
        """Register an observer called after every mutation.

        Returns:
            A callable that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for observer in list(self._observers):
            observer(event)

    def get_stats(self) -> dict:
        """Counts of nodes per load state, for monitoring and debugging."""
        stats = {'total_nodes': len(self._nodes), 'root_nodes': len(self._roots)}
        for node in self._nodes.values():
            key = f"{node.state.value}_nodes"
            stats[key] = stats.get(key, 0) + 1
        stats['errors'] = len(self.errors)
        return stats


__all__ = [
    'StoreEventKind',
    'StoreEvent',
    'TreeNodeStore',
]
