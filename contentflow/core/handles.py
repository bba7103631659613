"""
Handle registry - Connection points per node type and their compatibility.

Each node type declares a category and a list of handles. A handle has a
position, a direction (source/target/both), a data-flow category and
optional allow-lists restricting which categories may sit on the other end.
`can_connect` validates a proposed connection and picks its edge type.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .models import DEFAULT_EDGE_TYPE


class HandlePosition(str, Enum):
    """Side of the node a handle sits on."""
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class HandleDirection(str, Enum):
    """Which end of a connection a handle may be."""
    SOURCE = "source"   # outgoing only
    TARGET = "target"   # incoming only
    BOTH = "both"

    @property
    def can_send(self) -> bool:
        return self is not HandleDirection.TARGET

    @property
    def can_receive(self) -> bool:
        return self is not HandleDirection.SOURCE


class DataFlowType(str, Enum):
    """What travels over a connection."""
    DATA = "data"
    CONTROL = "control"
    REFERENCE = "reference"
    DEPENDENCY = "dependency"
    ANALYTICS = "analytics"
    UTILITY = "utility"
    STATISTICS = "statistics"
    VIEW = "view"


class HandleDefinition(BaseModel):
    """A named attachment point on a node type."""
    position: HandlePosition
    direction: HandleDirection
    data_flow: DataFlowType
    id: Optional[str] = None  # defaults to the position
    accepts_from: Optional[list[str]] = None  # allowed source categories
    connects_to: Optional[list[str]] = None   # allowed target categories
    edge_type: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    @property
    def handle_id(self) -> str:
        return self.id or self.position.value


class NodeHandleConfiguration(BaseModel):
    """All handle declarations for one node type."""
    node_type: str
    category: str
    handles: list[HandleDefinition] = Field(default_factory=list)


@dataclass
class ConnectionCompatibility:
    """Result of validating a proposed connection."""
    valid: bool
    connection_kind: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result: dict = {"valid": self.valid}
        if self.connection_kind:
            result["connection_kind"] = self.connection_kind
        if self.reason:
            result["reason"] = self.reason
        return result


INVALID_DIRECTION = "Invalid handle direction for connection"
NOT_FOUND = "Handle or node category not found"


class HandleRegistry:
    """
    Handle declarations for every node type.

    Build one at application startup and pass it to whatever needs it.
    Re-registering a node type replaces its previous declaration.
    """

    def __init__(self):
        self._configurations: dict[str, NodeHandleConfiguration] = {}

    # --- Registration ---

    def register_configuration(self, config: NodeHandleConfiguration) -> None:
        self._configurations[config.node_type] = config

    def register_type(self, node_type: str, category: str, handles: list[HandleDefinition]) -> None:
        """Register (or overwrite) the handles of a node type."""
        self.register_configuration(
            NodeHandleConfiguration(node_type=node_type, category=category, handles=list(handles))
        )

    def clear(self) -> None:
        self._configurations.clear()

    # --- Lookup ---

    def registered_node_types(self) -> list[str]:
        return list(self._configurations)

    def get_node_handles(self, node_type: str) -> list[HandleDefinition]:
        config = self._configurations.get(node_type)
        return list(config.handles) if config else []

    def get_node_category(self, node_type: str) -> Optional[str]:
        config = self._configurations.get(node_type)
        return config.category if config else None

    def get_handle(self, node_type: str, handle_id: str) -> Optional[HandleDefinition]:
        for handle in self.get_node_handles(node_type):
            if handle.handle_id == handle_id:
                return handle
        return None

    # --- Validation ---

    def can_connect(
        self,
        source_type: str,
        source_handle: str,
        target_type: str,
        target_handle: str,
    ) -> ConnectionCompatibility:
        """
        Check whether two handles can be connected.

        Checks, in order:
        - both handles and both node categories resolve
        - the source handle's allow-list contains the target category
        - the target handle's allow-list contains the source category
        - the source handle can send and the target handle can receive

        Returns:
            ConnectionCompatibility; on success the kind is the source
            handle's edge type, else the target's, else "default"
        """
        source_def = self.get_handle(source_type, source_handle)
        target_def = self.get_handle(target_type, target_handle)
        source_category = self.get_node_category(source_type)
        target_category = self.get_node_category(target_type)

        if source_def is None or target_def is None or source_category is None or target_category is None:
            return ConnectionCompatibility(valid=False, reason=NOT_FOUND)

        if source_def.connects_to is not None and target_category not in source_def.connects_to:
            return ConnectionCompatibility(
                valid=False,
                reason=f"Source handle cannot connect to {target_category} nodes",
            )

        if target_def.accepts_from is not None and source_category not in target_def.accepts_from:
            return ConnectionCompatibility(
                valid=False,
                reason=f"Target handle cannot accept connections from {source_category} nodes",
            )

        if not source_def.direction.can_send or not target_def.direction.can_receive:
            return ConnectionCompatibility(valid=False, reason=INVALID_DIRECTION)

        kind = source_def.edge_type or target_def.edge_type or DEFAULT_EDGE_TYPE
        return ConnectionCompatibility(valid=True, connection_kind=kind)

    def get_edge_kind_for_connection(
        self,
        source_type: str,
        source_handle: str,
        target_type: str,
        target_handle: str,
    ) -> str:
        """Edge type for a connection, "default" when it is not valid."""
        result = self.can_connect(source_type, source_handle, target_type, target_handle)
        return result.connection_kind or DEFAULT_EDGE_TYPE

    def get_compatible_targets(self, node_type: str, handle_id: str) -> list[str]:
        """Target categories an outgoing handle may reach."""
        handle = self.get_handle(node_type, handle_id)
        if handle is None or not handle.direction.can_send:
            return []
        return list(handle.connects_to or [])
