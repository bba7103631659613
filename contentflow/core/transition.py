"""
State transition function - The single place where indexes change.

`transition(state, request)` maps the current HierarchyState and a mutation
request to a new HierarchyState. It never mutates its input: every request
works on a copy of the indexes, and a rejected request returns the input
state object itself.

Requests:
- ReplaceAll: rebuild everything from a new node list
- Insert: add one node
- Remove: cascade-delete nodes and their contents
- PatchOne / PatchMany: replace node content, re-linking containment
- Rehydrate: rebuild from a persisted snapshot
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import ValidationError

from .cascade import NodeRef, remove_subtrees
from .errors import (
    HierarchyError,
    InvalidNodesError,
    DuplicateNodeError,
    NodeNotFoundError,
    ContainmentCycleError,
)
from .index import IndexMaps, add_single_node, attach_to_parent, detach_from_parent, rebuild_index
from .models import Node, Snapshot, NO_PARENT, normalize_expanded_state
from .node_types import NodeTypeRegistry, is_container
from .ordering import depth_of, organize_containers, pure_leaves

logger = logging.getLogger(__name__)


@dataclass
class HierarchyState:
    """
    An indexed snapshot of the forest.

    `containers` and `leaves` are the visible render order: every container
    root-first, then the remaining visible nodes.
    """
    node_map: dict[str, Node] = field(default_factory=dict)
    container_children: dict[str, set[str]] = field(
        default_factory=lambda: {NO_PARENT: set()}
    )
    pure_leaf_ids: set[str] = field(default_factory=set)
    containers: list[Node] = field(default_factory=list)
    leaves: list[Node] = field(default_factory=list)

    @property
    def nodes(self) -> list[Node]:
        """Visible nodes in render order."""
        return [*self.containers, *self.leaves]

    @property
    def root_ids(self) -> set[str]:
        return set(self.container_children.get(NO_PARENT, set()))

    def get(self, node_id: str) -> Optional[Node]:
        return self.node_map.get(node_id)

    def children_of(self, node_id: str) -> list[Node]:
        """Direct children of a node (empty for leaves and unknown ids)."""
        return [
            self.node_map[child_id]
            for child_id in self.container_children.get(node_id, ())
            if child_id in self.node_map
        ]

    def all_nodes(self) -> list[Node]:
        """Every indexed node, hidden ones included, shallowest first."""
        return sorted(self.node_map.values(), key=lambda n: depth_of(self.node_map, n.id))

    def index(self) -> IndexMaps:
        """A private, mutable copy of the indexes."""
        return IndexMaps(
            node_map=self.node_map,
            container_children=self.container_children,
            pure_leaf_ids=self.pure_leaf_ids,
        ).copy()

    def to_snapshot(self) -> Snapshot:
        return Snapshot(nodes=self.all_nodes())


def build_state(maps: IndexMaps) -> HierarchyState:
    """Wrap finished indexes and compute the render order."""
    containers = organize_containers(maps.container_children, maps.node_map)
    leaves = pure_leaves(
        maps.pure_leaf_ids, maps.node_map, exclude={n.id for n in containers}
    )
    return HierarchyState(
        node_map=maps.node_map,
        container_children=maps.container_children,
        pure_leaf_ids=maps.pure_leaf_ids,
        containers=containers,
        leaves=leaves,
    )


def empty_state() -> HierarchyState:
    return build_state(IndexMaps())


# --- Requests ---

@dataclass(frozen=True)
class ReplaceAll:
    """Replace the whole forest."""
    nodes: Any


@dataclass(frozen=True)
class Insert:
    """Insert a single node."""
    node: Any


@dataclass(frozen=True)
class Remove:
    """Remove nodes and everything they contain."""
    nodes: Any


@dataclass(frozen=True)
class PatchOne:
    """Replace one existing node."""
    node: Any


@dataclass(frozen=True)
class PatchMany:
    """Replace several existing nodes as one transition."""
    nodes: Any


@dataclass(frozen=True)
class Rehydrate:
    """Rebuild from a persisted snapshot ({"nodes": [...]})."""
    snapshot: Any


Request = Union[ReplaceAll, Insert, Remove, PatchOne, PatchMany, Rehydrate]


# --- Input coercion ---

def _coerce_node(value: Any) -> Node:
    if isinstance(value, Node):
        return value
    try:
        return Node.model_validate(value)
    except ValidationError as e:
        raise InvalidNodesError(f"Invalid node value: {e}") from e


def _coerce_nodes(value: Any) -> list[Node]:
    if not isinstance(value, (list, tuple)):
        raise InvalidNodesError(f"Invalid nodes value: {value!r}")
    return [_coerce_node(v) for v in value]


def _coerce_refs(value: Any) -> list[NodeRef]:
    if not isinstance(value, (list, tuple)):
        raise InvalidNodesError(f"Invalid nodes value: {value!r}")
    refs: list[NodeRef] = []
    for v in value:
        if isinstance(v, (Node, str)):
            refs.append(v)
        elif isinstance(v, dict) and isinstance(v.get("id"), str):
            refs.append(v["id"])
        else:
            raise InvalidNodesError(f"Invalid node reference: {v!r}")
    return refs


def _snapshot_nodes(snapshot: Any) -> list[Node]:
    if isinstance(snapshot, Snapshot):
        return list(snapshot.nodes)
    if isinstance(snapshot, dict) and "nodes" in snapshot:
        return _coerce_nodes(snapshot["nodes"])
    raise InvalidNodesError(f"Invalid snapshot: {snapshot!r}")


# --- Request handlers ---

def _replace_all(nodes: list[Node], node_types: Optional[NodeTypeRegistry]) -> HierarchyState:
    normalized = [normalize_expanded_state(n) for n in nodes]
    return build_state(rebuild_index(normalized, node_types))


def _insert(
    state: HierarchyState,
    node: Node,
    node_types: Optional[NodeTypeRegistry],
) -> HierarchyState:
    node = normalize_expanded_state(node)
    if node.id in state.node_map:
        raise DuplicateNodeError(node.id)

    maps = state.index()
    if node.parent_id is not None and node.parent_id not in maps.node_map:
        logger.warning(
            "Parent node %s not found for child %s. Setting child to top-level.",
            node.parent_id, node.id,
        )
        node = node.model_copy(update={"parent_id": None})

    add_single_node(node, maps.node_map, maps.container_children, maps.pure_leaf_ids, node_types)
    return build_state(maps)


def _remove(state: HierarchyState, refs: list[NodeRef]) -> HierarchyState:
    maps = state.index()
    removed = remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, refs)
    if not removed:
        return state
    logger.debug("Removed %d nodes", len(removed))
    return build_state(maps)


def _would_create_cycle(node_map: dict[str, Node], node_id: str, parent_id: str) -> bool:
    """True if node_id is parent_id or one of its ancestors."""
    seen: set[str] = set()
    current: Optional[str] = parent_id
    while current is not None and current not in seen:
        if current == node_id:
            return True
        seen.add(current)
        parent = node_map.get(current)
        current = parent.parent_id if parent is not None else None
    return False


def _reparent_to_root(maps: IndexMaps, child_ids: set[str]) -> None:
    for child_id in child_ids:
        child = maps.node_map.get(child_id)
        if child is None:
            continue
        maps.node_map[child_id] = child.model_copy(update={"parent_id": None})
        attach_to_parent(child_id, NO_PARENT, maps.container_children)


def _apply_patch(
    maps: IndexMaps,
    node: Node,
    node_types: Optional[NodeTypeRegistry],
    reject_cycles: bool,
) -> None:
    """Apply one patch to mutable indexes. Raises before touching them."""
    node = normalize_expanded_state(node)
    old_node = maps.node_map.get(node.id)
    if old_node is None:
        raise NodeNotFoundError(node.id)

    if node.parent_id is not None and node.parent_id not in maps.node_map:
        logger.warning(
            "Parent node %s not found for child %s. Setting child to top-level.",
            node.parent_id, node.id,
        )
        node = node.model_copy(update={"parent_id": None})

    if (
        reject_cycles
        and node.parent_id is not None
        and _would_create_cycle(maps.node_map, node.id, node.parent_id)
    ):
        raise ContainmentCycleError(node.id, node.parent_id)

    maps.node_map[node.id] = node

    if old_node.parent_key != node.parent_key:
        detach_from_parent(node.id, old_node.parent_key, maps.container_children)
        attach_to_parent(node.id, node.parent_key, maps.container_children)

    was_container = is_container(old_node, node_types)
    now_container = is_container(node, node_types)
    if was_container and not now_container:
        former_children = maps.container_children.pop(node.id, set())
        if former_children:
            logger.warning(
                "Node %s is no longer a container; moving %d children to top-level",
                node.id, len(former_children),
            )
            _reparent_to_root(maps, former_children)
        maps.pure_leaf_ids.add(node.id)
    elif not was_container and now_container:
        maps.container_children.setdefault(node.id, set())
        maps.pure_leaf_ids.discard(node.id)


def _patch_one(
    state: HierarchyState,
    node: Node,
    node_types: Optional[NodeTypeRegistry],
    reject_cycles: bool,
) -> HierarchyState:
    maps = state.index()
    _apply_patch(maps, node, node_types, reject_cycles)
    return build_state(maps)


def _patch_many(
    state: HierarchyState,
    nodes: list[Node],
    node_types: Optional[NodeTypeRegistry],
    reject_cycles: bool,
) -> HierarchyState:
    maps = state.index()
    applied = 0
    for node in nodes:
        try:
            _apply_patch(maps, node, node_types, reject_cycles)
        except HierarchyError as e:
            # Skip this entry, keep the rest of the batch
            logger.error("Skipping patch: %s", e)
            continue
        applied += 1
    if not applied:
        return state
    return build_state(maps)


def apply_request(
    state: HierarchyState,
    request: Request,
    node_types: Optional[NodeTypeRegistry] = None,
    *,
    reject_cycles: bool = False,
) -> HierarchyState:
    """
    Apply a request, raising HierarchyError if it is rejected.

    Args:
        state: The current state (never mutated)
        request: One of the request dataclasses
        node_types: Registry used to classify containers
        reject_cycles: Reject patches that would create a containment cycle

    Returns:
        The new state (or `state` itself when nothing changed)
    """
    if isinstance(request, ReplaceAll):
        return _replace_all(_coerce_nodes(request.nodes), node_types)
    elif isinstance(request, Insert):
        return _insert(state, _coerce_node(request.node), node_types)
    elif isinstance(request, Remove):
        return _remove(state, _coerce_refs(request.nodes))
    elif isinstance(request, PatchOne):
        return _patch_one(state, _coerce_node(request.node), node_types, reject_cycles)
    elif isinstance(request, PatchMany):
        return _patch_many(state, _coerce_nodes(request.nodes), node_types, reject_cycles)
    elif isinstance(request, Rehydrate):
        return _replace_all(_snapshot_nodes(request.snapshot), node_types)
    raise TypeError(f"Unknown request type: {type(request).__name__}")


def transition(
    state: HierarchyState,
    request: Request,
    node_types: Optional[NodeTypeRegistry] = None,
    *,
    reject_cycles: bool = False,
) -> HierarchyState:
    """
    Total form of apply_request: rejected requests are logged and the
    unchanged input state is returned.
    """
    try:
        return apply_request(state, request, node_types, reject_cycles=reject_cycles)
    except HierarchyError as e:
        logger.error("%s rejected: %s", type(request).__name__, e)
        return state
