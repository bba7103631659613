"""
Node type registry - Which node types act as containers.

A node is a container when its type is registered with `is_parent=True`.
Unregistered types fall back to the payload marker `data["isParent"]`.
"""

from dataclasses import dataclass, field
from typing import Optional

from .models import Node, CONTAINER_MARKER_KEY


@dataclass
class NodeTypeEntry:
    """Registration info for one node type."""
    node_type: str
    is_parent: bool = False
    default_width: float = 300
    default_height: float = 200


@dataclass
class NodeTypeRegistry:
    """Registered node types, built once at startup and passed to consumers."""
    _entries: dict[str, NodeTypeEntry] = field(default_factory=dict)

    def register(
        self,
        node_type: str,
        is_parent: bool = False,
        default_width: float = 300,
        default_height: float = 200,
    ) -> NodeTypeEntry:
        """Register (or overwrite) a node type."""
        entry = NodeTypeEntry(node_type, is_parent, default_width, default_height)
        self._entries[node_type] = entry
        return entry

    def unregister(self, node_type: str) -> bool:
        return self._entries.pop(node_type, None) is not None

    def get(self, node_type: str) -> Optional[NodeTypeEntry]:
        return self._entries.get(node_type)

    def registered_types(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._entries


def is_container(node: Optional[Node], node_types: Optional[NodeTypeRegistry] = None) -> bool:
    """Check whether a node is classified as a container."""
    if node is None:
        return False
    entry = node_types.get(node.type) if node_types is not None else None
    if entry is not None:
        return entry.is_parent
    return bool(node.data.get(CONTAINER_MARKER_KEY, False))
