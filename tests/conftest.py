"""Shared fixtures: small registries and forests used across the test suite."""

import pytest

from contentflow.core.defaults import build_registries
from contentflow.core.models import Node
from contentflow.core.node_types import NodeTypeRegistry


def group(node_id, parent_id=None, expanded=False, hidden=False, **data):
    """A container node."""
    return Node(
        id=node_id,
        type="group",
        parent_id=parent_id,
        hidden=hidden,
        data={"label": node_id, "expanded": expanded, **data},
    )


def item(node_id, parent_id=None, hidden=False, **data):
    """A leaf node."""
    return Node(
        id=node_id,
        type="item",
        parent_id=parent_id,
        hidden=hidden,
        data={"label": node_id, **data},
    )


def group_chain(length, expanded=True):
    """Containers nested `length` deep: c0 contains c1, which contains c2, and so on."""
    return [
        group(f"c{i}", f"c{i - 1}" if i else None, expanded=expanded)
        for i in range(length)
    ]


@pytest.fixture
def node_types():
    registry = NodeTypeRegistry()
    registry.register("group", is_parent=True)
    registry.register("item", is_parent=False)
    return registry


@pytest.fixture
def registries():
    return build_registries()


@pytest.fixture
def visibility_forest():
    """
    root (expanded)
      child1 (expanded) -> g1, g2
      child2 (collapsed) -> g3, g4
    """
    return [
        group("root", expanded=True),
        group("child1", "root", expanded=True),
        group("child2", "root", expanded=False),
        item("g1", "child1"),
        item("g2", "child1"),
        item("g3", "child2", hidden=True),
        item("g4", "child2", hidden=True),
    ]
