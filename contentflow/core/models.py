"""
Core data models for the node forest.

These models define the canonical schema shared by the engine and the API:
- Nodes with a type tag, an optional containment link and an opaque payload
- Edges connecting two node handles
- The persisted snapshot shape ({"nodes": [...]})

Field Naming Convention:
- Containment uses `parent_id`
- For compatibility with editor exports, `parentId` is accepted on input and converted
"""

from typing import Optional, Any
from pydantic import BaseModel, Field, model_validator
import uuid


NO_PARENT = "no-parent"
DEFAULT_NODE_TYPE = "default"
DEFAULT_EDGE_TYPE = "default"

# Payload keys the engine reads; everything else in `data` is opaque
EXPANDED_KEY = "expanded"
CONTAINER_MARKER_KEY = "isParent"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


class Position(BaseModel):
    """Canvas position, owned by the layout collaborator."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    """
    A node in the forest.

    `parent_id` means visual containment. `hidden` only removes the node from
    the render set; it stays indexed.
    """
    id: str = Field(default_factory=generate_node_id)
    type: str = DEFAULT_NODE_TYPE
    parent_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    hidden: bool = False
    position: Position = Field(default_factory=Position)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert editor-style 'parentId' to 'parent_id'."""
        if isinstance(data, dict):
            data = dict(data)
            if 'parentId' in data and 'parent_id' not in data:
                data['parent_id'] = data.pop('parentId')
            # Editor exports may carry an explicit null type
            if data.get('type') is None:
                data.pop('type', None)
        return data

    @property
    def expanded(self) -> bool:
        """True only when the payload explicitly marks the node expanded."""
        return self.data.get(EXPANDED_KEY) is True

    @property
    def parent_key(self) -> str:
        """Bucket this node belongs to in the container index."""
        return self.parent_id or NO_PARENT

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")


def normalize_expanded_state(node: Node) -> Node:
    """
    Return a copy whose `expanded` payload flag is a concrete boolean.

    Anything that is not already a bool becomes False. The input node is
    never modified.
    """
    expanded = node.data.get(EXPANDED_KEY)
    data = dict(node.data)
    data[EXPANDED_KEY] = expanded if isinstance(expanded, bool) else False
    return node.model_copy(update={"data": data})


class Edge(BaseModel):
    """
    A connection between two node handles.

    `type` is the connection kind decided by the handle registry.
    """
    id: str = Field(default_factory=generate_edge_id)
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    type: str = DEFAULT_EDGE_TYPE

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert editor-style 'sourceHandle'/'targetHandle' fields."""
        if isinstance(data, dict):
            data = dict(data)
            if 'sourceHandle' in data and 'source_handle' not in data:
                data['source_handle'] = data.pop('sourceHandle')
            if 'targetHandle' in data and 'target_handle' not in data:
                data['target_handle'] = data.pop('targetHandle')
        return data

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
        }
        # Only include handles if they're set
        if self.source_handle:
            result["source_handle"] = self.source_handle
        if self.target_handle:
            result["target_handle"] = self.target_handle
        return result


class Snapshot(BaseModel):
    """
    The persisted state.

    Only the flat node list is stored; every index is rebuilt on load.
    """
    nodes: list[Node] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {"nodes": [n.to_json_dict() for n in self.nodes]}


# --- API Request Models ---

class NodePatchRequest(BaseModel):
    """Request to replace a node's content (full node, id taken from the path)."""
    type: str = DEFAULT_NODE_TYPE
    parent_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    hidden: bool = False
    position: Position = Field(default_factory=Position)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert editor-style 'parentId' to 'parent_id'."""
        if isinstance(data, dict) and 'parentId' in data and 'parent_id' not in data:
            data = dict(data)
            data['parent_id'] = data.pop('parentId')
        return data


class RemoveNodesRequest(BaseModel):
    """Request to remove nodes (and everything they contain)."""
    node_ids: list[str]


class ConnectRequest(BaseModel):
    """Request to connect two node handles."""
    source: str
    source_handle: str
    target: str
    target_handle: str


class ConnectionCheckRequest(BaseModel):
    """Request to check a connection between two node types."""
    source_type: str
    source_handle: str
    target_type: str
    target_handle: str
