"""LazyTreeLib - Lazy Tree Expansion Engine.

LazyTreeLib keeps track of which nodes of a large hierarchical data set
have been fetched, which are loading and which are expanded, and flattens
that state into the rows a virtualized list should display.

Usage:
━━━━━━━━━━━━━━━━━━━━━━━━━━
    from lazytreelib.aio import open_tree

    tree = await open_tree(records)
    rows = await tree.expand(node_id)
━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

__version__ = "0.3.0"

from . import aio
from .config import ExpandAllMode, TreeConfig

__all__ = [
    "__version__",
    "aio",
    "ExpandAllMode",
    "TreeConfig",
]
