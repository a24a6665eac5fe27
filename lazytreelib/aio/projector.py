"""Flattened view of a lazy tree for virtualized renderers.

A projection lists the visible rows in display order, each tagged with
its depth. Only expanded, loaded subtrees are entered, so building one
costs time proportional to the rows it returns, not to the number of
nodes discovered so far.
"""

from dataclasses import dataclass
from typing import Any, Callable, Container, List, Optional

from .core import TreeNode
from .expansion import ExpansionController
from .store import TreeNodeStore


DEFAULT_LOADING_LABEL = "Loading..."


@dataclass(frozen=True)
class ProjectedRow:
    """One visible row.

    Placeholder rows stand in for the children of an expanded node whose
    fetch is still running; they carry the owning node's id and have no
    ``node``.
    """

    node_id: Any
    label: str
    depth: int
    expanded: bool = False
    loading: bool = False
    error: Optional[Exception] = None
    has_children: bool = True  # False only once a fetch found no children
    is_placeholder: bool = False
    node: Optional[TreeNode] = None

    @property
    def failed(self) -> bool:
        """True for a node whose last fetch failed and was not retried yet."""
        return self.error is not None and not self.loading


def project(
    store: TreeNodeStore,
    expanded: Container[Any],
    loading_label: str = DEFAULT_LOADING_LABEL,
) -> List[ProjectedRow]:
    """Flatten ``store`` into visible rows, depth-first pre-order.

    A row is emitted for every root and for every child of an expanded,
    loaded node. An expanded node whose children are still loading is
    followed by one placeholder row; an expanded node with no children
    loaded and no fetch running is followed by nothing.

    Args:
        store: Structural state to read
        expanded: Ids of expanded nodes (a set, or the controller itself)
        loading_label: Label of placeholder rows

    Returns:
        Rows in display order
    """
    rows: List[ProjectedRow] = []
    stack = [(root, 0) for root in reversed(store.roots)]

    while stack:
        node, depth = stack.pop()

        is_expanded = node.id in expanded
        rows.append(ProjectedRow(
            node_id=node.id,
            label=node.label,
            depth=depth,
            expanded=is_expanded,
            loading=node.loading,
            error=node.error,
            has_children=node.children is None or len(node.children) > 0,
            node=node,
        ))

        if not is_expanded:
            continue
        if node.children is not None:
            stack.extend((child, depth + 1) for child in reversed(node.children))
        elif node.loading:
            # Nothing was pushed for this node, so the placeholder lands right after it
            rows.append(ProjectedRow(
                node_id=node.id,
                label=loading_label,
                depth=depth + 1,
                loading=True,
                has_children=False,
                is_placeholder=True,
            ))

    return rows


class TreeProjector:
    """
    Cached projection that follows store and expansion changes.

    The projector subscribes to both the store and the controller and
    rebuilds its rows lazily, on the first read after a change.

    Example:
        projector = TreeProjector(store, controller)
        for row in projector.slice(first_visible, last_visible + 1):
            paint(row)
    """

    def __init__(
        self,
        store: TreeNodeStore,
        controller: ExpansionController,
        loading_label: str = DEFAULT_LOADING_LABEL,
    ):
        self.store = store
        self.controller = controller
        self.loading_label = loading_label
        self._rows: Optional[List[ProjectedRow]] = None
        self.rebuild_count = 0
        self._unsubscribers: List[Callable[[], None]] = [
            store.subscribe(self._invalidate),
            controller.subscribe(self._invalidate),
        ]

    def _invalidate(self, event: Any = None) -> None:
        self._rows = None

    def project(self) -> List[ProjectedRow]:
        """Build a fresh projection, bypassing the cache."""
        return project(self.store, self.controller, self.loading_label)

    def _current(self) -> List[ProjectedRow]:
        if self._rows is None:
            self._rows = self.project()
            self.rebuild_count += 1
        return self._rows

    @property
    def rows(self) -> List[ProjectedRow]:
        """Current projection, rebuilt only after a change."""
        return list(self._current())

    def slice(self, start: int, stop: int) -> List[ProjectedRow]:
        """Rows in the contiguous index range ``[start, stop)``.

        Out-of-range bounds are clamped, as with list slicing.
        """
        return self._current()[max(start, 0):max(stop, 0)]

    def index_of(self, node_id: Any) -> Optional[int]:
        """Index of a node's own row, or None if it is not visible."""
        for index, row in enumerate(self.rows):
            if row.node_id == node_id and not row.is_placeholder:
                return index
        return None

    def __len__(self) -> int:
        return len(self._current())

    def close(self) -> None:
        """Stop following store and controller changes."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
