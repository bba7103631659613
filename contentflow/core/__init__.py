"""
contentflow Core - Hierarchy index, transitions and connection rules.

This module provides the engine used by the backend store and API, so all
containment and connection logic lives in one place.
"""

from .models import (
    # Constants
    NO_PARENT,
    # Core models
    Position,
    Node,
    Edge,
    Snapshot,
    normalize_expanded_state,
    # Request models (for API)
    NodePatchRequest,
    RemoveNodesRequest,
    ConnectRequest,
    ConnectionCheckRequest,
)
from .errors import (
    HierarchyError,
    InvalidNodesError,
    DuplicateNodeError,
    NodeNotFoundError,
    ContainmentCycleError,
)
from .node_types import NodeTypeRegistry, is_container
from .index import IndexMaps, add_single_node, rebuild_index
from .ordering import depth_of, organize_containers, pure_leaves
from .cascade import remove_subtrees, propagate_visibility
from .transition import (
    HierarchyState,
    ReplaceAll,
    Insert,
    Remove,
    PatchOne,
    PatchMany,
    Rehydrate,
    apply_request,
    transition,
    empty_state,
)
from .handles import (
    HandlePosition,
    HandleDirection,
    DataFlowType,
    HandleDefinition,
    NodeHandleConfiguration,
    ConnectionCompatibility,
    HandleRegistry,
)
from .edges import EdgeState
from .validation import validate_hierarchy, ValidationIssue, IssueSeverity
from .analysis import summarize_hierarchy, find_connected_components
from .defaults import build_registries, default_nodes

__all__ = [
    "NO_PARENT",
    # Models
    "Position",
    "Node",
    "Edge",
    "Snapshot",
    "normalize_expanded_state",
    # Request models
    "NodePatchRequest",
    "RemoveNodesRequest",
    "ConnectRequest",
    "ConnectionCheckRequest",
    # Errors
    "HierarchyError",
    "InvalidNodesError",
    "DuplicateNodeError",
    "NodeNotFoundError",
    "ContainmentCycleError",
    # Index
    "NodeTypeRegistry",
    "is_container",
    "IndexMaps",
    "add_single_node",
    "rebuild_index",
    "depth_of",
    "organize_containers",
    "pure_leaves",
    "remove_subtrees",
    "propagate_visibility",
    # Transitions
    "HierarchyState",
    "ReplaceAll",
    "Insert",
    "Remove",
    "PatchOne",
    "PatchMany",
    "Rehydrate",
    "apply_request",
    "transition",
    "empty_state",
    # Connections
    "HandlePosition",
    "HandleDirection",
    "DataFlowType",
    "HandleDefinition",
    "NodeHandleConfiguration",
    "ConnectionCompatibility",
    "HandleRegistry",
    "EdgeState",
    # Validation
    "validate_hierarchy",
    "ValidationIssue",
    "IssueSeverity",
    # Analysis
    "summarize_hierarchy",
    "find_connected_components",
    # Defaults
    "build_registries",
    "default_nodes",
]
