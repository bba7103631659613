"""
Hierarchy validation - Check a state for structural issues.

The transition function keeps going in the face of cycles and odd
containment; this module reports them so callers can decide what to do.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .models import NO_PARENT

if TYPE_CHECKING:
    from .edges import EdgeState
    from .models import Node
    from .transition import HierarchyState


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a hierarchy."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def find_cycles(node_map: dict[str, "Node"]) -> list[list[str]]:
    """
    Find parent_id cycles.

    Each cycle is reported once, as the list of ids along the loop,
    starting from the first member encountered.
    """
    cycles: list[list[str]] = []
    done: set[str] = set()

    for start_id in node_map:
        if start_id in done:
            continue
        path: list[str] = []
        on_path: dict[str, int] = {}
        current: Optional[str] = start_id
        while current is not None and current in node_map and current not in done:
            if current in on_path:
                cycles.append(path[on_path[current]:])
                break
            on_path[current] = len(path)
            path.append(current)
            current = node_map[current].parent_id
        done.update(path)

    return cycles


def validate_hierarchy(state: "HierarchyState", edges: Optional["EdgeState"] = None) -> list[ValidationIssue]:
    """
    Validate a hierarchy and return a list of issues.

    Checks for:
    - Empty forest - INFO
    - Containment cycles - ERROR
    - Dangling parent references - ERROR
    - Nodes not counted exactly once across child sets - ERROR
    - Nodes contained by a non-container node - WARNING
    - Edges referencing missing nodes - ERROR

    Args:
        state: The hierarchy state to validate
        edges: Optional edge index to check against the nodes

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    node_map = state.node_map

    if not node_map:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Hierarchy has no nodes"
        ))
        return issues

    for cycle in find_cycles(node_map):
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Containment cycle: {' -> '.join(cycle + cycle[:1])}",
            node_id=cycle[0]
        ))

    for node in node_map.values():
        if node.parent_id and node.parent_id not in node_map:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node references non-existent parent: {node.parent_id}",
                node_id=node.id
            ))

    # Every node must sit in exactly one child set: its parent's
    counts: dict[str, int] = {}
    for child_ids in state.container_children.values():
        for child_id in child_ids:
            counts[child_id] = counts.get(child_id, 0) + 1
    for node_id in node_map:
        if counts.get(node_id, 0) != 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node is listed in {counts.get(node_id, 0)} child sets",
                node_id=node_id
            ))
    for node_id in counts:
        if node_id not in node_map:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Child set references removed node: {node_id}",
                node_id=node_id
            ))

    for parent_key, child_ids in state.container_children.items():
        if parent_key == NO_PARENT or not child_ids:
            continue
        if parent_key in state.pure_leaf_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Non-container node has {len(child_ids)} children",
                node_id=parent_key
            ))

    if edges is not None:
        for edge in edges.edges:
            if edge.source not in node_map:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Edge references non-existent source node: {edge.source}",
                    edge_id=edge.id
                ))
            if edge.target not in node_map:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Edge references non-existent target node: {edge.target}",
                    edge_id=edge.id
                ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
