"""
Edge index - Connections between nodes, looked up by id and by node.

Like the node transitions, these functions return a new EdgeState and
leave their input untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .models import Edge

logger = logging.getLogger(__name__)


@dataclass
class EdgeState:
    """Edges by id plus the ids of the edges touching each node."""
    edge_map: dict[str, Edge] = field(default_factory=dict)
    edges_by_node: dict[str, set[str]] = field(default_factory=dict)

    @property
    def edges(self) -> list[Edge]:
        return list(self.edge_map.values())

    def edges_for_node(self, node_id: str) -> list[Edge]:
        return [
            self.edge_map[eid]
            for eid in self.edges_by_node.get(node_id, ())
            if eid in self.edge_map
        ]

    def find(self, source: str, source_handle: str | None, target: str, target_handle: str | None) -> Edge | None:
        """Find an existing edge between the same two handles."""
        for edge in self.edges_for_node(source):
            if (
                edge.source == source
                and edge.target == target
                and edge.source_handle == source_handle
                and edge.target_handle == target_handle
            ):
                return edge
        return None

    def copy(self) -> "EdgeState":
        return EdgeState(
            edge_map=dict(self.edge_map),
            edges_by_node={k: set(v) for k, v in self.edges_by_node.items()},
        )


def _index_edge(state: EdgeState, edge: Edge) -> None:
    state.edge_map[edge.id] = edge
    state.edges_by_node.setdefault(edge.source, set()).add(edge.id)
    state.edges_by_node.setdefault(edge.target, set()).add(edge.id)


def _unindex_edge(state: EdgeState, edge: Edge) -> None:
    state.edge_map.pop(edge.id, None)
    for node_id in (edge.source, edge.target):
        edge_ids = state.edges_by_node.get(node_id)
        if edge_ids is not None:
            edge_ids.discard(edge.id)
            if not edge_ids:
                del state.edges_by_node[node_id]


def rebuild_edges(edges: Iterable[Edge]) -> EdgeState:
    """Index a flat edge list; later duplicates of an id are skipped."""
    state = EdgeState()
    for edge in edges:
        if edge.id in state.edge_map:
            logger.warning("Duplicate edge id %s in edge list, keeping the first", edge.id)
            continue
        _index_edge(state, edge)
    return state


def add_edge(state: EdgeState, edge: Edge) -> EdgeState:
    """Add an edge; an existing id or an identical handle pair is a no-op."""
    if edge.id in state.edge_map:
        logger.warning("Edge with id %s already exists.", edge.id)
        return state
    if state.find(edge.source, edge.source_handle, edge.target, edge.target_handle) is not None:
        logger.warning("Edge already exists.")
        return state
    new_state = state.copy()
    _index_edge(new_state, edge)
    return new_state


def remove_edges(state: EdgeState, edge_ids: Iterable[str]) -> EdgeState:
    """Remove edges by id; unknown ids are ignored."""
    to_remove = [state.edge_map[eid] for eid in edge_ids if eid in state.edge_map]
    if not to_remove:
        return state
    new_state = state.copy()
    for edge in to_remove:
        _unindex_edge(new_state, edge)
    return new_state


def remove_edges_for_nodes(state: EdgeState, node_ids: Iterable[str]) -> EdgeState:
    """Drop every edge touching one of the given nodes."""
    edge_ids: set[str] = set()
    for node_id in node_ids:
        edge_ids |= state.edges_by_node.get(node_id, set())
    return remove_edges(state, edge_ids)
