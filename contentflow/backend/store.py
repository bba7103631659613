"""
Node Store - Owner of the current hierarchy state.

This module implements:
- The mutation API used by collaborators (set_all, insert, remove, patch_one,
  patch_many, get, toggle_expanded)
- Dispatch of every mutation through the pure transition function
- Edge bookkeeping (connect/disconnect, cleanup after cascade deletes)
- Snapshot persistence and rehydration
- Change callbacks for real-time sync
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol

from ..core.analysis import HierarchySummary, summarize_hierarchy
from ..core.cascade import NodeRef, propagate_visibility
from ..core.edges import EdgeState, add_edge, rebuild_edges, remove_edges, remove_edges_for_nodes
from ..core.errors import NodeNotFoundError
from ..core.handles import ConnectionCompatibility, HandleRegistry
from ..core.models import Edge, Node, Snapshot, EXPANDED_KEY
from ..core.node_types import NodeTypeRegistry
from ..core.transition import (
    HierarchyState,
    Request,
    ReplaceAll,
    Insert,
    Remove,
    PatchOne,
    PatchMany,
    Rehydrate,
    apply_request,
    empty_state,
    transition,
)
from ..core.validation import ValidationIssue, validate_hierarchy

logger = logging.getLogger(__name__)

NODE_STORAGE_KEY = "node-context-storage"
EDGE_STORAGE_KEY = "edge-context-storage"


class Storage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...


@dataclass(frozen=True)
class StateChange:
    """What one accepted change did, handed to every on_change callback."""
    version: int
    node_count: int = 0
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    edges_changed: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "node_count": self.node_count,
            "added": self.added,
            "removed": self.removed,
            "updated": self.updated,
            "edges_changed": self.edges_changed,
        }


class NodeStore:
    """
    Holds the hierarchy state and applies mutation requests to it.

    Collaborators never touch the maps directly: they call the mutation
    API and read the returned (new) state. Rejected requests are logged and
    leave the state unchanged, unless `raise_errors=True` is passed, in
    which case the HierarchyError propagates.

    Persistence works via snapshots:
    - After every accepted change the flat node list is written to storage
    - A failed write is logged and never fails the mutation
    - On load the indexes are rebuilt from the stored list
    """

    def __init__(
        self,
        node_types: Optional[NodeTypeRegistry] = None,
        handles: Optional[HandleRegistry] = None,
        storage: Optional[Storage] = None,
        default_nodes: Optional[Iterable[Node]] = None,
        reject_cycles: bool = False,
    ):
        self._node_types = node_types if node_types is not None else NodeTypeRegistry()
        self._handles = handles if handles is not None else HandleRegistry()
        self._storage = storage
        self._default_nodes = list(default_nodes or [])
        self._reject_cycles = reject_cycles
        self._on_change_callbacks: list[Callable[[StateChange], None]] = []
        self._version = 0

        self._state = self._load_nodes()
        self._edges = self._load_edges()

    # --- Loading ---

    def _load_nodes(self) -> HierarchyState:
        """Rehydrate from storage, falling back to the default nodes."""
        fallback = transition(empty_state(), ReplaceAll(self._default_nodes), self._node_types)
        if self._storage is None:
            return fallback

        try:
            saved = self._storage.get_item(NODE_STORAGE_KEY)
            if saved is None:
                logger.info("No saved state found, using default initial state.")
                return fallback
            state = apply_request(empty_state(), Rehydrate(json.loads(saved)), self._node_types)
            logger.info("Rehydrated %d nodes from storage.", len(state.node_map))
            return state
        except (OSError, ValueError) as e:
            logger.error("Failed to load state from storage, falling back to defaults: %s", e)
            return fallback

    def _load_edges(self) -> EdgeState:
        if self._storage is None:
            return EdgeState()
        try:
            saved = self._storage.get_item(EDGE_STORAGE_KEY)
            if saved is None:
                return EdgeState()
            edges = [Edge.model_validate(e) for e in json.loads(saved).get("edges", [])]
        except (OSError, ValueError, AttributeError) as e:
            logger.error("Failed to load edges from storage: %s", e)
            return EdgeState()
        # Drop edges whose endpoints did not survive the node load
        node_map = self._state.node_map
        return rebuild_edges(e for e in edges if e.source in node_map and e.target in node_map)

    # --- Properties ---

    @property
    def state(self) -> HierarchyState:
        return self._state

    @property
    def nodes(self) -> list[Node]:
        """Visible nodes in render order (containers root-first, then leaves)."""
        return self._state.nodes

    @property
    def edges(self) -> list[Edge]:
        return self._edges.edges

    @property
    def edge_state(self) -> EdgeState:
        return self._edges

    @property
    def node_types(self) -> NodeTypeRegistry:
        return self._node_types

    @property
    def handles(self) -> HandleRegistry:
        return self._handles

    # --- Change Callbacks ---

    @property
    def version(self) -> int:
        """Number of accepted changes since the store was created."""
        return self._version

    def on_change(self, callback: Callable[[StateChange], None]):
        """Register a callback for state changes."""
        self._on_change_callbacks.append(callback)

    def off_change(self, callback: Callable[[StateChange], None]) -> bool:
        """Unregister a callback. Returns False if it was not registered."""
        try:
            self._on_change_callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def _notify_change(self, change: StateChange):
        """Notify all registered callbacks; a failing callback never fails the mutation."""
        for callback in list(self._on_change_callbacks):
            try:
                callback(change)
            except Exception:
                logger.exception("Change callback failed for version %d", change.version)

    # --- Persistence ---

    def snapshot(self) -> Snapshot:
        """The persistable form of the current state (hidden nodes included)."""
        return self._state.to_snapshot()

    def _persist(self):
        if self._storage is None:
            return
        try:
            self._storage.set_item(NODE_STORAGE_KEY, json.dumps(self.snapshot().to_json_dict()))
            self._storage.set_item(
                EDGE_STORAGE_KEY,
                json.dumps({"edges": [e.to_json_dict() for e in self._edges.edges]}),
            )
        except Exception:
            logger.exception("Failed to save state to storage")

    # --- Dispatch ---

    def _commit(self, state: HierarchyState, edges: Optional[EdgeState] = None) -> HierarchyState:
        edges = edges if edges is not None else self._edges
        if state is self._state and edges is self._edges:
            return state

        old_map = self._state.node_map
        removed = old_map.keys() - state.node_map.keys()
        if removed:
            edges = remove_edges_for_nodes(edges, removed)

        # Untouched nodes are shared between states, so identity marks an update
        change = StateChange(
            version=self._version + 1,
            node_count=len(state.node_map),
            added=sorted(state.node_map.keys() - old_map.keys()),
            removed=sorted(removed),
            updated=sorted(
                nid for nid, node in state.node_map.items()
                if nid in old_map and old_map[nid] is not node
            ),
            edges_changed=edges is not self._edges,
        )

        self._state = state
        self._edges = edges
        self._version = change.version
        self._persist()
        self._notify_change(change)
        return state

    def dispatch(self, request: Request, raise_errors: bool = False) -> HierarchyState:
        """Run a request through the transition function and keep the result."""
        if raise_errors:
            new_state = apply_request(
                self._state, request, self._node_types, reject_cycles=self._reject_cycles
            )
        else:
            new_state = transition(
                self._state, request, self._node_types, reject_cycles=self._reject_cycles
            )
        return self._commit(new_state)

    # --- Mutation API ---

    def get(self, node_id: str) -> Optional[Node]:
        return self._state.node_map.get(node_id)

    def set_all(self, nodes: Any, raise_errors: bool = False) -> HierarchyState:
        return self.dispatch(ReplaceAll(nodes), raise_errors)

    def insert(self, node: Any, raise_errors: bool = False) -> HierarchyState:
        return self.dispatch(Insert(node), raise_errors)

    def remove(self, nodes: list[NodeRef], raise_errors: bool = False) -> HierarchyState:
        """Remove nodes (a list of ids or nodes) and everything they contain."""
        return self.dispatch(Remove(nodes), raise_errors)

    def patch_one(self, node: Any, raise_errors: bool = False) -> HierarchyState:
        return self.dispatch(PatchOne(node), raise_errors)

    def patch_many(self, nodes: Any, raise_errors: bool = False) -> HierarchyState:
        return self.dispatch(PatchMany(nodes), raise_errors)

    def rehydrate(self, snapshot: Any, raise_errors: bool = False) -> HierarchyState:
        return self.dispatch(Rehydrate(snapshot), raise_errors)

    def set_expanded(self, node_id: str, expanded: bool, raise_errors: bool = False) -> HierarchyState:
        """
        Expand or collapse a node.

        The node's own `expanded` flag and the resulting visibility changes
        of its contents are applied as one batch.
        """
        node = self.get(node_id)
        if node is None:
            if raise_errors:
                raise NodeNotFoundError(node_id)
            logger.error("Node not found in the store: %s", node_id)
            return self._state

        data = dict(node.data)
        data[EXPANDED_KEY] = expanded
        updated = node.model_copy(update={"data": data})
        visibility = propagate_visibility(
            node, self._state.node_map, self._state.container_children, show=expanded
        )
        return self.dispatch(PatchMany([updated, *visibility]), raise_errors)

    def toggle_expanded(self, node_id: str, raise_errors: bool = False) -> HierarchyState:
        node = self.get(node_id)
        expanded = not node.expanded if node is not None else True
        return self.set_expanded(node_id, expanded, raise_errors)

    # --- Connections ---

    def can_connect(
        self,
        source_id: str,
        source_handle: str,
        target_id: str,
        target_handle: str,
    ) -> ConnectionCompatibility:
        """Validate a connection between two existing nodes."""
        source = self.get(source_id)
        target = self.get(target_id)
        if source is None or target is None:
            missing = source_id if source is None else target_id
            return ConnectionCompatibility(valid=False, reason=f"Node not found: {missing}")
        return self._handles.can_connect(source.type, source_handle, target.type, target_handle)

    def connect(
        self,
        source_id: str,
        source_handle: str,
        target_id: str,
        target_handle: str,
    ) -> tuple[Optional[Edge], ConnectionCompatibility]:
        """
        Create an edge if the handles are compatible.

        Returns:
            (edge, compatibility); edge is None when the connection is
            rejected or already exists
        """
        result = self.can_connect(source_id, source_handle, target_id, target_handle)
        if not result.valid:
            logger.info(
                "Connection %s:%s -> %s:%s rejected: %s",
                source_id, source_handle, target_id, target_handle, result.reason,
            )
            return None, result

        edge = Edge(
            source=source_id,
            target=target_id,
            source_handle=source_handle,
            target_handle=target_handle,
            type=result.connection_kind,
        )
        new_edges = add_edge(self._edges, edge)
        if new_edges is self._edges:
            return None, ConnectionCompatibility(valid=False, reason="Edge already exists")
        self._commit(self._state, new_edges)
        return edge, result

    def disconnect(self, edge_ids: Iterable[str]) -> list[str]:
        """Remove edges by id. Returns the ids that were actually removed."""
        edge_ids = [eid for eid in edge_ids if eid in self._edges.edge_map]
        if edge_ids:
            self._commit(self._state, remove_edges(self._edges, edge_ids))
        return edge_ids

    # --- Analysis ---

    def validate(self) -> list[ValidationIssue]:
        return validate_hierarchy(self._state, self._edges)

    def summary(self) -> HierarchySummary:
        return summarize_hierarchy(self._state, self._edges)
