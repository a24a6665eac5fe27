"""Tree node data model.

Defines the records handed out by a data source and the nodes the store
keeps for them. A node's ``children`` is ``None`` until a fetch has
completed; an empty tuple means the fetch completed and found nothing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class LoadState(Enum):
    """Structural state of a node's children."""
    UNFETCHED = "unfetched"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class Record:
    """One raw entry from the backing record set."""

    id: Any
    parent_id: Any
    label: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'Record':
        """Build a record from a dict.

        Accepts both ``parent_id`` and the camel-cased ``parentId`` key
        used by JSON data sets. A missing label falls back to the id.

        Args:
            data: Mapping with at least ``id`` and a parent key

        Returns:
            Record instance

        Raises:
            KeyError: ``id`` or both parent keys are missing. Roots must
                carry an explicit ``None`` (or the configured root id)
        """
        if 'parent_id' in data:
            parent_id = data['parent_id']
        elif 'parentId' in data:
            parent_id = data['parentId']
        else:
            raise KeyError(f"Record {data.get('id')!r} has no parent_id or parentId")
        label = data.get('label')
        if label is None:
            label = str(data['id'])
        return cls(id=data['id'], parent_id=parent_id, label=label)


@dataclass(eq=False)
class TreeNode:
    """A node discovered by the store.

    Nodes are mutated only through ``TreeNodeStore`` operations. Identity
    comparison is deliberate: two nodes with the same id are never both
    registered in one store.
    """

    id: Any
    label: str
    parent_id: Any
    children: Optional[Tuple['TreeNode', ...]] = None
    loading: bool = False
    error: Optional[Exception] = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: Record) -> 'TreeNode':
        """Create an unfetched node for a record."""
        return cls(id=record.id, label=record.label, parent_id=record.parent_id)

    @property
    def is_loaded(self) -> bool:
        return self.children is not None

    @property
    def state(self) -> LoadState:
        """Derived load state.

        ``LOADING`` wins over everything else, so a retry in flight after a
        failure reports as loading.
        """
        if self.loading:
            return LoadState.LOADING
        if self.children is not None:
            return LoadState.LOADED
        if self.error is not None:
            return LoadState.FAILED
        return LoadState.UNFETCHED

    def child_ids(self) -> Tuple[Any, ...]:
        """Ids of loaded children, empty if not loaded."""
        if self.children is None:
            return ()
        return tuple(child.id for child in self.children)

    def __repr__(self) -> str:
        return f"TreeNode(id={self.id!r}, label={self.label!r}, state={self.state.value})"
