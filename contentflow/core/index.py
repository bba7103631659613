"""
Hierarchy index - Lookup structures derived from a flat node list.

Three structures are maintained together:
- node_map: node_id -> Node
- container_children: container_id -> set of direct child ids, plus the
  synthetic "no-parent" bucket holding root ids
- pure_leaf_ids: ids of nodes that are not containers

A full rebuild is just `add_single_node` applied to every node, so the
incremental and bulk paths cannot drift apart.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import Node, NO_PARENT
from .node_types import NodeTypeRegistry, is_container

logger = logging.getLogger(__name__)


@dataclass
class IndexMaps:
    """The mutable index triple used while building a new state."""
    node_map: dict[str, Node] = field(default_factory=dict)
    container_children: dict[str, set[str]] = field(
        default_factory=lambda: {NO_PARENT: set()}
    )
    pure_leaf_ids: set[str] = field(default_factory=set)

    def copy(self) -> "IndexMaps":
        """Copy deep enough that mutating the copy never touches self."""
        return IndexMaps(
            node_map=dict(self.node_map),
            container_children={k: set(v) for k, v in self.container_children.items()},
            pure_leaf_ids=set(self.pure_leaf_ids),
        )


def add_single_node(
    node: Node,
    node_map: dict[str, Node],
    container_children: dict[str, set[str]],
    pure_leaf_ids: set[str],
    node_types: Optional[NodeTypeRegistry] = None,
) -> None:
    """Index one node into existing mutable structures."""
    node_map[node.id] = node
    attach_to_parent(node.id, node.parent_key, container_children)

    # Containers own an entry even before they have children
    if is_container(node, node_types):
        container_children.setdefault(node.id, set())
        pure_leaf_ids.discard(node.id)
    else:
        pure_leaf_ids.add(node.id)


def attach_to_parent(node_id: str, parent_key: str, container_children: dict[str, set[str]]) -> None:
    container_children.setdefault(parent_key, set()).add(node_id)


def detach_from_parent(node_id: str, parent_key: str, container_children: dict[str, set[str]]) -> None:
    child_set = container_children.get(parent_key)
    if child_set is not None:
        child_set.discard(node_id)


def adopt_orphans(maps: IndexMaps) -> list[str]:
    """
    Demote nodes whose parent_id names no indexed node.

    Their buckets are dropped and the nodes move to the "no-parent" bucket
    with parent_id cleared.

    Returns:
        Ids of the demoted nodes
    """
    demoted: list[str] = []
    for parent_key in list(maps.container_children):
        if parent_key == NO_PARENT or parent_key in maps.node_map:
            continue
        orphan_ids = maps.container_children.pop(parent_key)
        for child_id in orphan_ids:
            child = maps.node_map.get(child_id)
            if child is None:
                continue
            logger.warning(
                "Parent node %s not found for child %s. Setting child to top-level.",
                parent_key, child_id,
            )
            maps.node_map[child_id] = child.model_copy(update={"parent_id": None})
            maps.container_children[NO_PARENT].add(child_id)
            demoted.append(child_id)
    return demoted


def rebuild_index(nodes: Iterable[Node], node_types: Optional[NodeTypeRegistry] = None) -> IndexMaps:
    """
    Build all indexes from a flat node list in a single pass.

    Later duplicates of an id are skipped. Parents may appear after their
    children; dangling parent references are resolved once every node is in.
    """
    maps = IndexMaps()
    for node in nodes:
        if node.id in maps.node_map:
            logger.warning("Duplicate node id %s in node list, keeping the first", node.id)
            continue
        add_single_node(
            node, maps.node_map, maps.container_children, maps.pure_leaf_ids, node_types
        )
    adopt_orphans(maps)
    return maps
