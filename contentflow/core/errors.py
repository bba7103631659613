"""
Hierarchy errors - Failures raised by the state transition function.

All of them are ValueErrors so API layers can treat them like any other
bad request; `transition()` catches them, logs them and keeps the prior state.
"""


class HierarchyError(ValueError):
    """Base class for rejected mutation requests."""


class InvalidNodesError(HierarchyError):
    """A bulk request did not carry a well-formed list of nodes."""


class DuplicateNodeError(HierarchyError):
    """An insert used an id that is already present."""

    def __init__(self, node_id: str):
        super().__init__(f"Node already exists in the store: {node_id}")
        self.node_id = node_id


class NodeNotFoundError(HierarchyError):
    """A patch referenced an id that is not present."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found in the store: {node_id}")
        self.node_id = node_id


class ContainmentCycleError(HierarchyError):
    """A patch would make a node its own ancestor."""

    def __init__(self, node_id: str, parent_id: str):
        super().__init__(
            f"Moving {node_id} under {parent_id} would create a containment cycle"
        )
        self.node_id = node_id
        self.parent_id = parent_id
