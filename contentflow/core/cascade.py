"""
Cascade algorithms - Operations that follow containment downwards.

- remove_subtrees: delete nodes together with everything they contain
- propagate_visibility: expand/collapse through nested expanded containers
"""

import logging
from typing import Iterable, Union

from .models import Node, NO_PARENT

logger = logging.getLogger(__name__)

NodeRef = Union[Node, str]


def _node_id(ref: NodeRef) -> str:
    return ref if isinstance(ref, str) else ref.id


def remove_subtrees(
    node_map: dict[str, Node],
    container_children: dict[str, set[str]],
    pure_leaf_ids: set[str],
    nodes_to_remove: Iterable[NodeRef],
) -> list[str]:
    """
    Remove nodes and, depth-first, everything they contain.

    The structures are mutated in place. Ids that are already gone are
    skipped, so overlapping or repeated calls are harmless. The walk uses
    an explicit stack, so nesting depth is not limited by the interpreter.

    Returns:
        Ids actually removed, in removal order
    """
    removed: list[str] = []

    for ref in nodes_to_remove:
        stack = [_node_id(ref)]
        while stack:
            node_id = stack.pop()
            node = node_map.pop(node_id, None)
            if node is None:
                continue
            removed.append(node_id)

            parent_set = container_children.get(node.parent_id or NO_PARENT)
            if parent_set is not None:
                parent_set.discard(node_id)

            # Children are popped by id; any already removed are skipped above
            stack.extend(container_children.pop(node_id, ()))
            pure_leaf_ids.discard(node_id)

    return removed


def propagate_visibility(
    container: NodeRef,
    node_map: dict[str, Node],
    container_children: dict[str, set[str]],
    show: bool,
) -> list[Node]:
    """
    Compute the visibility changes caused by expanding or collapsing a container.

    Direct children always flip. The walk continues only into child
    containers whose own `expanded` flag is set; a collapsed child container
    shields its subtree, which is neither inspected nor returned.
    `expanded` itself is never changed.

    Args:
        container: The node being expanded or collapsed (or its id)
        node_map: node_id -> Node
        container_children: container_id -> direct child ids
        show: True when expanding, False when collapsing

    Returns:
        Copies of the affected nodes with `hidden` set to `not show`
    """
    container_id = _node_id(container)
    if container_id not in container_children:
        return []

    updated: list[Node] = []
    visited = {container_id}
    stack = [container_id]

    while stack:
        parent_id = stack.pop()
        for child_id in container_children.get(parent_id, ()):
            child = node_map.get(child_id)
            if child is None:
                logger.warning("Child node with ID %s not found in node map.", child_id)
                continue
            if child_id in visited:
                continue
            visited.add(child_id)
            updated.append(child.model_copy(update={"hidden": not show}))
            if child_id in container_children and child.expanded:
                stack.append(child_id)

    return updated
