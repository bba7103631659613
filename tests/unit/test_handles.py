"""
Unit tests for the connection compatibility registry.
"""

import pytest

from contentflow.core.handles import (
    HandleDefinition,
    HandleDirection,
    HandlePosition,
    DataFlowType,
    HandleRegistry,
    INVALID_DIRECTION,
    NOT_FOUND,
)


@pytest.fixture
def registry():
    registry = HandleRegistry()
    registry.register_type("datanode", "data", [
        HandleDefinition(
            position=HandlePosition.RIGHT,
            direction=HandleDirection.SOURCE,
            data_flow=DataFlowType.DATA,
            connects_to=["view"],
            edge_type="package",
        ),
        HandleDefinition(
            position=HandlePosition.TOP,
            direction=HandleDirection.TARGET,
            data_flow=DataFlowType.CONTROL,
        ),
    ])
    registry.register_type("viewnode", "view", [
        HandleDefinition(
            position=HandlePosition.LEFT,
            direction=HandleDirection.TARGET,
            data_flow=DataFlowType.DATA,
            accepts_from=["data"],
        ),
        HandleDefinition(
            position=HandlePosition.TOP,
            direction=HandleDirection.TARGET,
            data_flow=DataFlowType.CONTROL,
        ),
        HandleDefinition(
            id="out",
            position=HandlePosition.BOTTOM,
            direction=HandleDirection.BOTH,
            data_flow=DataFlowType.CONTROL,
            edge_type="flow",
        ),
    ])
    return registry


class TestCanConnect:
    def test_valid_connection_uses_source_edge_type(self, registry):
        result = registry.can_connect("datanode", "right", "viewnode", "left")
        assert result.valid
        assert result.connection_kind == "package"
        assert result.to_dict() == {"valid": True, "connection_kind": "package"}

    def test_incoming_only_handles_fail_on_direction(self, registry):
        result = registry.can_connect("datanode", "top", "viewnode", "top")
        assert not result.valid
        assert "direction" in result.reason
        assert result.reason == INVALID_DIRECTION

    def test_unknown_handle(self, registry):
        result = registry.can_connect("datanode", "bottom", "viewnode", "left")
        assert not result.valid
        assert result.reason == NOT_FOUND

    def test_unknown_node_type(self, registry):
        assert registry.can_connect("ghost", "right", "viewnode", "left").reason == NOT_FOUND

    def test_source_allow_list(self, registry):
        result = registry.can_connect("datanode", "right", "datanode", "top")
        assert not result.valid
        assert "data" in result.reason

    def test_target_allow_list(self, registry):
        result = registry.can_connect("viewnode", "out", "viewnode", "left")
        assert not result.valid
        assert "view" in result.reason

    def test_target_edge_type_used_when_source_has_none(self):
        registry = HandleRegistry()
        registry.register_type("a", "x", [
            HandleDefinition(position="right", direction="source", data_flow="data"),
        ])
        registry.register_type("b", "y", [
            HandleDefinition(position="left", direction="target", data_flow="data", edge_type="special"),
        ])
        assert registry.can_connect("a", "right", "b", "left").connection_kind == "special"

    def test_default_kind(self):
        registry = HandleRegistry()
        registry.register_type("a", "x", [
            HandleDefinition(position="right", direction="source", data_flow="data"),
            HandleDefinition(position="left", direction="target", data_flow="data"),
        ])
        assert registry.can_connect("a", "right", "a", "left").connection_kind == "default"

    def test_explicit_handle_id(self, registry):
        result = registry.can_connect("viewnode", "out", "datanode", "top")
        assert result.valid
        assert result.connection_kind == "flow"


class TestLookup:
    def test_handle_id_defaults_to_position(self, registry):
        assert registry.get_handle("viewnode", "left").position == HandlePosition.LEFT
        assert registry.get_handle("viewnode", "bottom") is None
        assert registry.get_handle("viewnode", "out") is not None

    def test_category(self, registry):
        assert registry.get_node_category("datanode") == "data"
        assert registry.get_node_category("ghost") is None

    def test_handles_for_unknown_type(self, registry):
        assert registry.get_node_handles("ghost") == []

    def test_reregister_overwrites(self, registry):
        registry.register_type("datanode", "storage", [])
        assert registry.get_node_category("datanode") == "storage"
        assert registry.get_node_handles("datanode") == []

    def test_clear(self, registry):
        registry.clear()
        assert registry.registered_node_types() == []


class TestEdgeKindAndTargets:
    def test_edge_kind(self, registry):
        assert registry.get_edge_kind_for_connection("datanode", "right", "viewnode", "left") == "package"

    def test_edge_kind_for_invalid_connection(self, registry):
        assert registry.get_edge_kind_for_connection("datanode", "top", "viewnode", "top") == "default"

    def test_compatible_targets(self, registry):
        assert registry.get_compatible_targets("datanode", "right") == ["view"]

    def test_compatible_targets_for_incoming_handle(self, registry):
        assert registry.get_compatible_targets("datanode", "top") == []

    def test_compatible_targets_unknown(self, registry):
        assert registry.get_compatible_targets("ghost", "right") == []


class TestBuiltInRegistry:
    def test_datanode_to_viewnode(self, registries):
        _, handles = registries
        result = handles.can_connect("datanode", "right", "viewnode", "left")
        assert result.valid
        assert result.connection_kind == "package"

    def test_allow_lists_checked_before_direction(self, registries):
        _, handles = registries
        result = handles.can_connect("datanode", "top", "viewnode", "top")
        assert not result.valid
        assert result.reason == "Target handle cannot accept connections from data nodes"

    def test_course_bottom_to_module_top(self, registries):
        _, handles = registries
        result = handles.can_connect("coursenode", "bottom", "modulenode", "top")
        assert result.valid
        assert result.connection_kind == "default"

    def test_container_types(self, registries):
        node_types, _ = registries
        assert node_types.get("coursenode").is_parent
        assert not node_types.get("cellnode").is_parent
