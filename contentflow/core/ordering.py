"""
Depth and ordering - Root-first ordering of container nodes.

The renderer needs every container before anything it contains, so
containers are bucketed by depth and emitted shallowest first.
"""

from collections import defaultdict
from typing import Iterable, Optional

from .models import Node


def depth_of(node_map: dict[str, Node], node_id: str) -> int:
    """
    Count parent hops from a node up to its topmost ancestor.

    A missing parent ends the walk. Re-entering a node already seen in this
    walk also ends it, so a parent_id cycle yields a shallow depth instead of
    looping; the cycle itself is left in place.
    """
    visited = {node_id}
    node = node_map.get(node_id)
    depth = 0
    while node is not None and node.parent_id and node.parent_id in node_map:
        depth += 1
        if node.parent_id in visited:
            break
        visited.add(node.parent_id)
        node = node_map[node.parent_id]
    return depth


def organize_containers(
    container_children: dict[str, set[str]],
    node_map: dict[str, Node],
) -> list[Node]:
    """
    Order every visible container root-first.

    Example: for a tree root->a->b the order is [root, a, b]. Containers
    at the same depth come out in iteration order.
    """
    buckets: dict[int, list[Node]] = defaultdict(list)
    for container_id in container_children:
        node = node_map.get(container_id)
        if node is None or node.hidden:
            continue
        buckets[depth_of(node_map, container_id)].append(node)

    ordered: list[Node] = []
    for depth in sorted(buckets):
        ordered.extend(buckets[depth])
    return ordered


def pure_leaves(
    pure_leaf_ids: Iterable[str],
    node_map: dict[str, Node],
    exclude: Optional[set[str]] = None,
) -> list[Node]:
    """Visible leaf nodes, skipping ids already emitted as containers."""
    exclude = exclude or set()
    leaves = []
    for leaf_id in pure_leaf_ids:
        node = node_map.get(leaf_id)
        if node is None or node.hidden or leaf_id in exclude:
            continue
        leaves.append(node)
    return leaves
