"""
Built-in node types, handle declarations and the starter forest.

`build_registries()` is called once at application startup; the resulting
registries are passed by reference to the store and the API.
"""

from .handles import (
    HandleRegistry,
    HandleDefinition,
    NodeHandleConfiguration,
    HandlePosition as P,
    HandleDirection as D,
    DataFlowType as F,
)
from .models import Node
from .node_types import NodeTypeRegistry


# (node_type, is_parent)
BASIC_NODE_TYPES = [
    ("cellnode", False),
    ("coursenode", True),
    ("modulenode", True),
    ("datanode", True),
    ("pagenode", True),
    ("contentnode", True),
    ("conditionalnode", False),
    ("invisiblenode", True),
    ("statisticsnode", True),
    ("restnode", False),
    ("viewnode", False),
]


def _handle(position, direction, data_flow, edge_type=None, icon=None, **allow) -> HandleDefinition:
    return HandleDefinition(
        position=position,
        direction=direction,
        data_flow=data_flow,
        edge_type=edge_type,
        icon=icon,
        **allow,
    )


BASIC_HANDLE_CONFIGURATIONS = [
    NodeHandleConfiguration(node_type="datanode", category="data", handles=[
        _handle(P.RIGHT, D.SOURCE, F.DATA, "package", "package", connects_to=["view", "logic", "page"]),
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["logic", "container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "container", "page"]),
        _handle(P.LEFT, D.TARGET, F.REFERENCE, icon="link", accepts_from=["logic"]),
    ]),
    NodeHandleConfiguration(node_type="contentnode", category="view", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["logic", "container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "container", "page"]),
        _handle(P.LEFT, D.TARGET, F.DATA, "package", "package", accepts_from=["data"]),
        _handle(P.RIGHT, D.SOURCE, F.ANALYTICS, icon="chart", connects_to=["statistics"]),
    ]),
    NodeHandleConfiguration(node_type="viewnode", category="view", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["logic", "container"]),
        _handle(P.LEFT, D.TARGET, F.DATA, "package", "package", accepts_from=["data"]),
    ]),
    NodeHandleConfiguration(node_type="conditionalnode", category="logic", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["view", "logic", "container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "container", "page"]),
    ]),
    NodeHandleConfiguration(node_type="pagenode", category="page", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["logic", "container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "container", "page"]),
        _handle(P.LEFT, D.TARGET, F.DATA, "package", "package", accepts_from=["data"]),
        _handle(P.RIGHT, D.SOURCE, F.ANALYTICS, icon="chart", connects_to=["statistics"]),
    ]),
    NodeHandleConfiguration(node_type="coursenode", category="container", handles=[
        _handle(P.TOP, D.TARGET, F.DEPENDENCY, icon="link", accepts_from=["container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["container", "logic", "page"]),
    ]),
    NodeHandleConfiguration(node_type="modulenode", category="container", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "view"]),
    ]),
    NodeHandleConfiguration(node_type="cellnode", category="logic", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, icon="arrow-down", accepts_from=["logic", "container"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, icon="arrow-down", connects_to=["logic", "page"]),
        _handle(P.LEFT, D.TARGET, F.REFERENCE, icon="link", accepts_from=["logic"]),
        _handle(P.RIGHT, D.SOURCE, F.REFERENCE, icon="link", connects_to=["logic"]),
    ]),
    NodeHandleConfiguration(node_type="invisiblenode", category="container", handles=[
        _handle(P.TOP, D.TARGET, F.CONTROL, accepts_from=["container", "logic"]),
        _handle(P.BOTTOM, D.SOURCE, F.CONTROL, connects_to=["container", "logic"]),
    ]),
    NodeHandleConfiguration(node_type="statisticsnode", category="statistics", handles=[
        _handle(P.LEFT, D.TARGET, F.ANALYTICS, icon="chart", accepts_from=["page"]),
    ]),
    NodeHandleConfiguration(node_type="restnode", category="integration", handles=[
        _handle(P.LEFT, D.TARGET, F.DATA, accepts_from=["data"]),
        _handle(P.RIGHT, D.SOURCE, F.DATA, connects_to=["view", "data", "integration"]),
    ]),
]


def register_basic_node_types(registry: NodeTypeRegistry) -> NodeTypeRegistry:
    for node_type, is_parent in BASIC_NODE_TYPES:
        registry.register(node_type, is_parent=is_parent)
    return registry


def register_basic_handle_types(registry: HandleRegistry) -> HandleRegistry:
    for config in BASIC_HANDLE_CONFIGURATIONS:
        registry.register_configuration(config)
    return registry


def build_registries() -> tuple[NodeTypeRegistry, HandleRegistry]:
    """Create both registries with the built-in declarations."""
    node_types = register_basic_node_types(NodeTypeRegistry())
    handles = register_basic_handle_types(HandleRegistry())
    return node_types, handles


def default_nodes() -> list[Node]:
    """Starter forest used when nothing has been persisted yet."""
    def page(node_id, label, parent_id=None, x=50, y=50):
        return Node(id=node_id, type="pagenode", parent_id=parent_id,
                    data={"label": label, "expanded": True}, position={"x": x, "y": y})

    def topic(node_id, label, parent_id, x, y):
        return Node(id=node_id, type="viewnode", parent_id=parent_id,
                    data={"label": label}, position={"x": x, "y": y})

    return [
        page("course-1", "Course Group"),
        page("module1", "Module 1: Introduction to Testing", "course-1", 100, 100),
        page("module2", "Module 2: Advanced Testing Techniques", "course-1", 550, 100),
        topic("module1-topic1", "What is Testing?", "module1", 20, 60),
        topic("module1-topic2", "Static vs Dynamic Testing", "module1", 20, 120),
        topic("module1-topic3", "Tools for Testing", "module1", 20, 180),
        topic("module2-topic1", "Test Planning", "module2", 20, 60),
        topic("module2-topic2", "Test Execution", "module2", 20, 120),
        topic("module2-topic3", "Test Reporting", "module2", 20, 180),
        Node(id="topic4", type="viewnode", data={"label": "Test Automation"}, position={"x": 900, "y": 50}),
    ]
