#!/usr/bin/env python3
"""
Basic lazy tree example showing on-demand child loading.

This example demonstrates:
- Opening a tree over a flat record set with simulated network latency
- Expanding nodes while their children are still loading
- Bulk expand and collapse
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from lazytreelib.aio import TreeConfig, open_tree


def build_records(breadth=4, depth=3):
    """Generate a balanced tree as flat {id, parentId, label} records."""
    records = []
    level = [None]
    for d in range(depth):
        next_level = []
        for parent in level:
            for i in range(breadth):
                node_id = f"{parent}.{i}" if parent else str(i)
                records.append({'id': node_id, 'parentId': parent, 'label': f"Item {node_id}"})
                next_level.append(node_id)
        level = next_level
    return records


def show(rows, title):
    print(f"\n{title} ({len(rows)} rows)")
    print("-" * 50)
    for row in rows:
        marker = "-" if row.expanded else "+"
        if row.is_placeholder:
            marker = " "
        elif row.failed:
            marker = "!"
        print(f"{'  ' * row.depth}{marker} {row.label}")


async def main():
    """Demonstrate lazy expansion."""
    config = TreeConfig.simulated_network(min_latency=0.05, max_latency=0.3)
    tree = await open_tree(build_records(), config)
    show(tree.rows, "Roots")

    # Start an expansion without waiting, the way a click handler would
    task = tree.request_toggle("0")
    show(tree.rows, "While loading")
    await task
    show(tree.rows, "After loading")

    await tree.expand("0.1")
    show(tree.rows, "Expanded 0.1")

    show(await tree.expand_all(), "Expand all (loaded branches only)")
    show(tree.collapse_all(), "Collapse all")

    stats = await tree.get_stats()
    print(f"\nNodes discovered: {stats['total_nodes']}, fetches: {stats['fetcher']['fetch_count']}")
    await tree.close()


if __name__ == "__main__":
    asyncio.run(main())
