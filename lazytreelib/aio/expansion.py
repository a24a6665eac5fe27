"""Expansion state and lazy fetch coordination.

The controller owns the set of expanded node ids. Expanding a node whose
children were never fetched starts exactly one fetch for it; concurrent
requests for the same node share that fetch instead of starting another.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from .core import AsyncChildFetcher, TreeNode
from .error_handling import FetchError, InvariantViolation
from .error_policies import ContinueOnErrorsPolicy, ErrorPolicy
from .store import TreeNodeStore


class ExpansionEventKind(Enum):
    """Kinds of expansion change reported to observers."""
    EXPANDED = "expanded"
    COLLAPSED = "collapsed"
    EXPANDED_ALL = "expanded_all"
    COLLAPSED_ALL = "collapsed_all"


@dataclass(frozen=True)
class ExpansionEvent:
    kind: ExpansionEventKind
    node_id: Any = None


ExpansionObserver = Callable[[ExpansionEvent], None]


class ExpansionController:
    """
    Expand/collapse operations over a ``TreeNodeStore``.

    Load state and expansion are independent: a node may be expanded
    while its children are still loading, or after its fetch failed.
    Failed nodes stay expanded and are retried by the next ``expand``
    (or ``load_missing``) call; nothing retries on its own.

    In-flight fetches are never cancelled. Collapsing a loading node, or
    cancelling the coroutine awaiting ``expand``, leaves the fetch running
    and its result is still applied to the store.

    Example:
        controller = ExpansionController(store, fetcher)
        await controller.expand(node_id)
        controller.collapse(node_id)
        await controller.expand(node_id)  # no second fetch
    """

    def __init__(
        self,
        store: TreeNodeStore,
        fetcher: AsyncChildFetcher,
        policy: Optional[ErrorPolicy] = None,
        expanded: Optional[Iterable[Any]] = None,
    ):
        """
        Initialize the controller.

        Args:
            store: Store holding the tree's structure
            fetcher: Source of children for unfetched nodes
            policy: Error policy for failed fetches (defaults to ContinueOnErrorsPolicy)
            expanded: Node ids to seed the expansion set with
        """
        self.store = store
        self.fetcher = fetcher
        self._policy = policy or ContinueOnErrorsPolicy()
        self._expanded = set(expanded or ())
        self._pending: Dict[Any, asyncio.Task] = {}
        self._observers: List[ExpansionObserver] = []

    # Queries

    @property
    def expanded(self) -> FrozenSet[Any]:
        """Snapshot of the expansion set."""
        return frozenset(self._expanded)

    @property
    def pending(self) -> FrozenSet[Any]:
        """Ids of nodes with a fetch started by this controller still running."""
        return frozenset(self._pending)

    def is_expanded(self, node_id: Any) -> bool:
        return node_id in self._expanded

    def __contains__(self, node_id: Any) -> bool:
        return node_id in self._expanded

    # Single-node operations

    async def expand(self, node_id: Any) -> TreeNode:
        """Expand a node, fetching its children if they are not loaded.

        Returns once the node's fetch (new or already in flight) has
        settled. A failed fetch is recorded on the node and reported to
        the error policy; it is not raised here unless the policy raises.

        Expanded descendants whose children arrive with this fetch (seeded
        ids, for instance) are fetched too before this returns.

        Raises:
            UnknownNodeError: The id was never discovered
            asyncio.CancelledError: The shared fetch task itself was
                cancelled, e.g. at loop shutdown. The node is left failed
                and the next ``expand`` retries it.
        """
        task = self.request_expand(node_id)
        if task is not None:
            await asyncio.shield(task)
        return self.store.require(node_id)

    def request_expand(self, node_id: Any) -> Optional[asyncio.Task]:
        """Expand a node without waiting for its children.

        Meant for UI event handlers. The node is in the expansion set when
        this returns.

        Returns:
            The fetch task to await, or None if nothing is being fetched
        """
        node = self.store.require(node_id)
        task = self._ensure_loading(node)
        if node_id not in self._expanded:
            self._expanded.add(node_id)
            self._notify(ExpansionEvent(ExpansionEventKind.EXPANDED, node_id))
        return task

    def collapse(self, node_id: Any) -> None:
        """Hide a node's children. Fetched children are kept."""
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            self._notify(ExpansionEvent(ExpansionEventKind.COLLAPSED, node_id))

    async def toggle(self, node_id: Any) -> bool:
        """Collapse an expanded node, expand a collapsed one.

        An expanded node with no children and no fetch running (a failed
        load, or a node expanded by ``expand_all`` before it was fetched)
        is fetched instead of collapsed.

        Returns:
            True if the node is expanded afterwards
        """
        task = self.request_toggle(node_id)
        if task is not None:
            await asyncio.shield(task)
        return node_id in self._expanded

    def request_toggle(self, node_id: Any) -> Optional[asyncio.Task]:
        """Click handler form of ``toggle``: changes state now, fetches in the background.

        Returns:
            The fetch task, or None if nothing needs fetching
        """
        node = self.store.require(node_id)
        if node_id in self._expanded and not self._awaiting_fetch(node):
            self.collapse(node_id)
            return None
        return self.request_expand(node_id)

    @staticmethod
    def _awaiting_fetch(node: TreeNode) -> bool:
        return node.children is None and not node.loading

    # Bulk operations

    def expand_all(self) -> int:
        """Expand every node reachable through loaded subtrees.

        Branches whose children were never fetched are expanded but not
        fetched, so children revealed by later fetches stay collapsed
        until this is called again.

        Returns:
            Number of nodes newly added to the expansion set
        """
        reachable = {node.id for node in self.store.walk_loaded()}
        added = len(reachable - self._expanded)
        self._expanded = self._expanded | reachable
        self._notify(ExpansionEvent(ExpansionEventKind.EXPANDED_ALL))
        return added

    def collapse_all(self) -> None:
        """Clear the expansion set."""
        self._expanded = set()
        self._notify(ExpansionEvent(ExpansionEventKind.COLLAPSED_ALL))

    async def expand_deep(self, node_id: Any, max_depth: Optional[int] = None) -> None:
        """Expand a node and, recursively, every descendant.

        Unlike ``expand_all`` this fetches unloaded branches, one fetch per
        branch. Siblings are fetched concurrently, bounded by the fetcher's
        semaphore.

        Args:
            node_id: Node to start from
            max_depth: Levels below ``node_id`` to expand (None for no limit,
                0 for the node alone)
        """
        await self._expand_deep(node_id, max_depth, 0)

    async def _expand_deep(self, node_id: Any, max_depth: Optional[int], depth: int) -> None:
        node = await self.expand(node_id)
        if not node.children:
            return
        if max_depth is not None and depth >= max_depth:
            return
        await asyncio.gather(*(
            self._expand_deep(child.id, max_depth, depth + 1)
            for child in node.children
        ))

    async def expand_all_deep(self, max_depth: Optional[int] = None) -> None:
        """Run ``expand_deep`` from every root."""
        await asyncio.gather(*(
            self._expand_deep(root.id, max_depth, 0)
            for root in self.store.roots
        ))

    async def load_missing(self, retry_failed: bool = True) -> int:
        """Fetch children of expanded nodes that have none loaded.

        Covers seeded expansion ids and, unless ``retry_failed`` is False,
        nodes whose last fetch failed. Ids unknown to the store are skipped.

        Returns:
            Number of fetches started
        """
        tasks = []
        for node_id in list(self._expanded):
            node = self.store.get_node(node_id)
            if node is None or node.loading or node.children is not None:
                continue
            if node.error is not None and not retry_failed:
                continue
            tasks.append(self._ensure_loading(node))
        if tasks:
            await asyncio.gather(*(asyncio.shield(task) for task in tasks))
        return len(tasks)

    # Fetch coordination

    def _ensure_loading(self, node: TreeNode) -> Optional[asyncio.Task]:
        if node.loading:
            return self._pending.get(node.id)
        if node.children is not None:
            return None

        loop = asyncio.get_running_loop()
        self.store.begin_load(node.id)
        task = loop.create_task(self._fetch(node.id))
        self._pending[node.id] = task

        def settle(done: asyncio.Task, node_id: Any = node.id) -> None:
            if self._pending.get(node_id) is done:
                del self._pending[node_id]
            if done.cancelled():
                # Also covers tasks cancelled before their first step
                pending_node = self.store.get_node(node_id)
                if pending_node is not None and pending_node.loading:
                    self.store.fail_load(
                        node_id, FetchError(node_id, message=f"Fetch of {node_id!r} was cancelled")
                    )
            else:
                # Tasks from request_expand may never be awaited
                done.exception()

        task.add_done_callback(settle)
        return task

    async def _fetch(self, node_id: Any) -> None:
        try:
            children = await self.fetcher.fetch_children(node_id)
        except Exception as e:
            error = e if isinstance(e, FetchError) else FetchError(node_id, e)
            await self._record_failure(node_id, error)
            return

        try:
            node = self.store.complete_load(node_id, children)
        except InvariantViolation as e:
            # Fetcher returned children the store refuses; node must not stay loading
            await self._record_failure(node_id, FetchError(node_id, e))
            return

        # Children that were expanded before they were discovered
        tasks = [
            self._ensure_loading(child)
            for child in node.children
            if child.id in self._expanded and self._awaiting_fetch(child) and child.error is None
        ]
        if tasks:
            await asyncio.gather(*(asyncio.shield(task) for task in tasks))

    async def _record_failure(self, node_id: Any, error: FetchError) -> None:
        self.store.fail_load(node_id, error)
        await self._policy.handle(error, 'fetch_children', node_id)

    # Policy and observers

    def get_policy(self) -> ErrorPolicy:
        return self._policy

    def set_policy(self, policy: ErrorPolicy) -> None:
        self._policy = policy

    def subscribe(self, observer: ExpansionObserver) -> Callable[[], None]:
        """Register an observer called after every expansion change.

        Returns:
            A callable that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, event: ExpansionEvent) -> None:
        for observer in list(self._observers):
            observer(event)
