"""
Hierarchy analysis - Structural summaries of a node forest.

Provides read-only analysis used by the API to describe the current
hierarchy and its connections.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .ordering import depth_of

if TYPE_CHECKING:
    from .edges import EdgeState
    from .transition import HierarchyState


@dataclass
class ConnectedComponent:
    """A group of nodes linked by edges (treated as undirected)."""
    node_ids: list[str] = field(default_factory=list)
    edge_count: int = 0

    @property
    def size(self) -> int:
        return len(self.node_ids)


@dataclass
class ContainerInfo:
    """Size information for a single container."""
    node_id: str
    label: str
    child_count: int = 0        # Direct children
    descendant_count: int = 0   # Everything contained, transitively


@dataclass
class HierarchySummary:
    """Complete summary of a hierarchy's structure."""
    total_nodes: int
    total_edges: int
    container_count: int
    leaf_count: int
    root_count: int
    hidden_count: int
    max_depth: int
    nodes_by_type: dict[str, int]
    edges_by_type: dict[str, int]
    largest_containers: list[ContainerInfo]
    connected_components: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "container_count": self.container_count,
            "leaf_count": self.leaf_count,
            "root_count": self.root_count,
            "hidden_count": self.hidden_count,
            "max_depth": self.max_depth,
            "nodes_by_type": self.nodes_by_type,
            "edges_by_type": self.edges_by_type,
            "largest_containers": [
                {
                    "id": c.node_id,
                    "label": c.label,
                    "children": c.child_count,
                    "descendants": c.descendant_count
                }
                for c in self.largest_containers
            ],
            "connected_components": self.connected_components
        }


def descendant_ids(state: "HierarchyState", node_id: str) -> list[str]:
    """
    Collect every id contained (transitively) by a node using BFS.

    The node itself is not included. Cycles are tolerated.
    """
    visited: set[str] = {node_id}
    result: list[str] = []
    queue = [node_id]

    while queue:
        current = queue.pop(0)
        for child_id in state.container_children.get(current, ()):
            if child_id in visited or child_id not in state.node_map:
                continue
            visited.add(child_id)
            result.append(child_id)
            queue.append(child_id)

    return result


def find_connected_components(state: "HierarchyState", edges: "EdgeState") -> list[ConnectedComponent]:
    """
    Find all connected components of the edge graph using BFS.

    Every indexed node belongs to exactly one component; nodes without
    edges form components of size one.
    """
    if not state.node_map:
        return []

    node_ids = list(state.node_map)

    # Build adjacency list (undirected)
    adjacency: dict[str, set[str]] = {nid: set() for nid in node_ids}
    for edge in edges.edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].add(edge.target)
            adjacency[edge.target].add(edge.source)

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start_node in node_ids:
        if start_node in visited:
            continue

        component_nodes: list[str] = []
        queue = [start_node]

        while queue:
            current = queue.pop(0)
            if current in visited:
                continue

            visited.add(current)
            component_nodes.append(current)

            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    queue.append(neighbor)

        members = set(component_nodes)
        edge_count = sum(1 for e in edges.edges if e.source in members and e.target in members)
        components.append(ConnectedComponent(node_ids=component_nodes, edge_count=edge_count))

    return components


def summarize_hierarchy(
    state: "HierarchyState",
    edges: Optional["EdgeState"] = None,
    top_n: int = 5
) -> HierarchySummary:
    """
    Generate a summary of a hierarchy.

    Args:
        state: The hierarchy to summarize
        edges: Optional edge index
        top_n: Number of largest containers to include

    Returns:
        HierarchySummary object with all analysis results
    """
    node_map = state.node_map
    edge_list = edges.edges if edges is not None else []

    type_counts: dict[str, int] = defaultdict(int)
    for node in node_map.values():
        type_counts[node.type] += 1

    edge_type_counts: dict[str, int] = defaultdict(int)
    for edge in edge_list:
        edge_type_counts[edge.type] += 1

    container_ids = [
        k for k in state.container_children
        if k in node_map and k not in state.pure_leaf_ids
    ]
    containers = [
        ContainerInfo(
            node_id=cid,
            label=str(node_map[cid].data.get("label", "")),
            child_count=len(state.container_children[cid]),
            descendant_count=len(descendant_ids(state, cid))
        )
        for cid in container_ids
    ]
    largest = sorted(containers, key=lambda c: c.descendant_count, reverse=True)[:top_n]

    max_depth = max((depth_of(node_map, nid) for nid in node_map), default=0)

    components = find_connected_components(state, edges) if edges is not None else []

    return HierarchySummary(
        total_nodes=len(node_map),
        total_edges=len(edge_list),
        container_count=len(container_ids),
        leaf_count=len(state.pure_leaf_ids),
        root_count=len(state.root_ids),
        hidden_count=sum(1 for n in node_map.values() if n.hidden),
        max_depth=max_depth,
        nodes_by_type=dict(type_counts),
        edges_by_type=dict(edge_type_counts),
        largest_containers=largest,
        connected_components=len(components)
    )
