"""
Unit tests for the node store: mutation API, persistence, expand/collapse
and connections.
"""

import json

import pytest

from contentflow.backend.storage import JsonFileStorage, MemoryStorage
from contentflow.backend.store import EDGE_STORAGE_KEY, NODE_STORAGE_KEY, NodeStore
from contentflow.core.defaults import default_nodes
from contentflow.core.errors import DuplicateNodeError, InvalidNodesError, NodeNotFoundError
from contentflow.core.models import Node, NO_PARENT

from conftest import group, group_chain, item


class FailingStorage:
    """Reads find nothing, writes always fail."""

    def get_item(self, key):
        return None

    def set_item(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def store(node_types, visibility_forest):
    return NodeStore(node_types=node_types, storage=MemoryStorage(), default_nodes=visibility_forest)


@pytest.fixture
def flow_store(registries):
    node_types, handles = registries
    return NodeStore(
        node_types=node_types,
        handles=handles,
        storage=MemoryStorage(),
        default_nodes=default_nodes(),
    )


class TestLoading:
    def test_defaults_without_storage(self, node_types, visibility_forest):
        store = NodeStore(node_types=node_types, default_nodes=visibility_forest)
        assert set(store.state.node_map) == {n.id for n in visibility_forest}

    def test_empty_without_defaults(self):
        assert NodeStore().state.node_map == {}

    def test_rehydrates_saved_snapshot(self, node_types):
        saved = {"nodes": [group("p").to_json_dict(), item("c", "p").to_json_dict()]}
        storage = MemoryStorage({NODE_STORAGE_KEY: json.dumps(saved)})

        store = NodeStore(node_types=node_types, storage=storage, default_nodes=[item("default")])

        assert set(store.state.node_map) == {"p", "c"}
        assert store.state.container_children["p"] == {"c"}

    def test_corrupt_snapshot_falls_back_to_defaults(self, node_types):
        storage = MemoryStorage({NODE_STORAGE_KEY: "{not json"})
        store = NodeStore(node_types=node_types, storage=storage, default_nodes=[item("default")])
        assert set(store.state.node_map) == {"default"}

    def test_wrong_shape_falls_back_to_defaults(self, node_types):
        storage = MemoryStorage({NODE_STORAGE_KEY: json.dumps({"nodes": "oops"})})
        store = NodeStore(node_types=node_types, storage=storage, default_nodes=[item("default")])
        assert set(store.state.node_map) == {"default"}

    def test_dangling_edges_dropped(self, node_types):
        storage = MemoryStorage({
            NODE_STORAGE_KEY: json.dumps({"nodes": [item("a").to_json_dict(), item("b").to_json_dict()]}),
            EDGE_STORAGE_KEY: json.dumps({"edges": [
                {"id": "e1", "source": "a", "target": "b"},
                {"id": "e2", "source": "a", "target": "gone"},
            ]}),
        })
        store = NodeStore(node_types=node_types, storage=storage)
        assert [e.id for e in store.edges] == ["e1"]


class TestMutationApi:
    def test_insert_and_get(self, store):
        store.insert(item("new", "child1"))
        assert store.get("new").parent_id == "child1"
        assert "new" in store.state.container_children["child1"]

    def test_rejected_insert_keeps_state(self, store):
        before = store.state
        assert store.insert(item("g1")) is before
        assert store.state is before

    def test_raise_errors(self, store):
        with pytest.raises(DuplicateNodeError):
            store.insert(item("g1"), raise_errors=True)
        with pytest.raises(NodeNotFoundError):
            store.patch_one(item("ghost"), raise_errors=True)

    def test_remove_cascades(self, store):
        store.remove(["root"])
        assert store.state.node_map == {}
        assert store.state.container_children == {NO_PARENT: set()}

    def test_remove_twice(self, store):
        store.remove(["child2"])
        after_first = store.state
        store.remove(["child2"])
        assert store.state is after_first

    def test_remove_rejects_bare_string(self, store):
        before = store.state
        assert store.remove("root") is before
        assert store.get("root") is not None
        with pytest.raises(InvalidNodesError):
            store.remove("root", raise_errors=True)

    def test_patch_many(self, store):
        store.patch_many([
            store.get("g1").model_copy(update={"hidden": True}),
            store.get("g2").model_copy(update={"parent_id": "child2"}),
        ])
        assert store.get("g1").hidden
        assert "g2" in store.state.container_children["child2"]

    def test_set_all(self, store):
        store.set_all([item("only")])
        assert [n.id for n in store.nodes] == ["only"]

    def test_rehydrate(self, store):
        snapshot = store.snapshot()
        store.set_all([])
        store.rehydrate(snapshot)
        assert len(store.state.node_map) == 7


class TestPersistence:
    def test_writes_snapshot_after_change(self, node_types):
        storage = MemoryStorage()
        store = NodeStore(node_types=node_types, storage=storage)
        store.insert(item("a"))

        saved = json.loads(storage.get_item(NODE_STORAGE_KEY))
        assert [n["id"] for n in saved["nodes"]] == ["a"]
        assert saved["nodes"][0]["data"]["expanded"] is False

    def test_no_write_for_rejected_request(self, node_types):
        storage = MemoryStorage()
        store = NodeStore(node_types=node_types, storage=storage)
        store.patch_one(item("ghost"))
        assert storage.get_item(NODE_STORAGE_KEY) is None

    def test_write_failure_does_not_break_mutation(self, node_types):
        store = NodeStore(node_types=node_types, storage=FailingStorage())
        store.insert(item("a"))
        assert store.get("a") is not None

    def test_file_storage_round_trip(self, node_types, tmp_path, visibility_forest):
        first = NodeStore(node_types=node_types, storage=JsonFileStorage(tmp_path), default_nodes=visibility_forest)
        first.remove(["child2"])

        second = NodeStore(node_types=node_types, storage=JsonFileStorage(tmp_path))
        assert set(second.state.node_map) == {"root", "child1", "g1", "g2"}
        assert (tmp_path / f"{NODE_STORAGE_KEY}.json").exists()


class TestExpandCollapse:
    def test_collapse_hides_expanded_branch(self, store):
        store.toggle_expanded("root")

        hidden = {nid for nid, n in store.state.node_map.items() if n.hidden}
        assert hidden == {"child1", "child2", "g1", "g2", "g3", "g4"}
        assert store.get("root").data["expanded"] is False
        assert [n.id for n in store.nodes] == ["root"]

    def test_expand_restores_same_nodes(self, store):
        store.toggle_expanded("root")
        store.toggle_expanded("root")

        visible = {n.id for n in store.nodes}
        assert visible == {"root", "child1", "child2", "g1", "g2"}
        assert store.get("child1").data["expanded"] is True
        assert store.get("child2").data["expanded"] is False
        assert store.get("g3").hidden and store.get("g4").hidden

    def test_toggle_unknown(self, store):
        before = store.state
        assert store.toggle_expanded("ghost") is before
        with pytest.raises(NodeNotFoundError):
            store.toggle_expanded("ghost", raise_errors=True)

    def test_expand_leaf_only_sets_flag(self, store):
        store.set_expanded("g1", True)
        assert store.get("g1").data["expanded"] is True

    def test_collapse_deep_chain(self, node_types):
        store = NodeStore(node_types=node_types, default_nodes=group_chain(2000))
        store.toggle_expanded("c0")

        assert store.get("c0").data["expanded"] is False
        assert all(store.get(f"c{i}").hidden for i in range(1, 2000))
        assert [n.id for n in store.nodes] == ["c0"]


class TestConnections:
    def test_connect_uses_connection_kind(self, flow_store):
        flow_store.insert(Node(id="source", type="datanode"))
        edge, result = flow_store.connect("source", "right", "topic4", "left")

        assert result.valid
        assert edge.type == "package"
        assert flow_store.edge_state.edges_for_node("topic4") == [edge]

    def test_rejected_connection(self, flow_store):
        flow_store.insert(Node(id="source", type="datanode"))
        edge, result = flow_store.connect("source", "top", "topic4", "top")

        assert edge is None
        assert not result.valid
        assert flow_store.edges == []

    def test_duplicate_connection(self, flow_store):
        flow_store.insert(Node(id="source", type="datanode"))
        flow_store.connect("source", "right", "topic4", "left")
        edge, result = flow_store.connect("source", "right", "topic4", "left")

        assert edge is None
        assert result.reason == "Edge already exists"
        assert len(flow_store.edges) == 1

    def test_unknown_node(self, flow_store):
        edge, result = flow_store.connect("ghost", "right", "topic4", "left")
        assert edge is None
        assert "ghost" in result.reason

    def test_remove_drops_edges(self, flow_store):
        flow_store.insert(Node(id="source", type="datanode"))
        flow_store.connect("source", "right", "module1-topic1", "left")

        flow_store.remove(["module1"])
        assert flow_store.edges == []

    def test_disconnect(self, flow_store):
        flow_store.insert(Node(id="source", type="datanode"))
        edge, _ = flow_store.connect("source", "right", "topic4", "left")

        assert flow_store.disconnect([edge.id, "nope"]) == [edge.id]
        assert flow_store.edges == []


class TestChangeCallbacks:
    def test_called_on_change_only(self, store):
        changes = []
        store.on_change(changes.append)

        store.insert(item("a"))
        store.insert(item("a"))
        store.remove(["nope"])

        assert [c.version for c in changes] == [1]
        assert store.version == 1

    def test_change_lists_affected_ids(self, store):
        changes = []
        store.on_change(changes.append)

        store.insert(item("a", "child2"))
        store.remove(["child1"])
        store.toggle_expanded("child2")

        inserted, removed, toggled = changes
        assert inserted.added == ["a"]
        assert inserted.removed == [] and inserted.updated == []
        assert removed.removed == ["child1", "g1", "g2"]
        assert toggled.updated == ["a", "child2", "g3", "g4"]
        assert toggled.version == 3

    def test_edge_changes_flagged(self, flow_store):
        changes = []
        flow_store.on_change(changes.append)
        flow_store.insert(Node(id="d1", type="datanode"))
        flow_store.connect("d1", "right", "topic4", "left")

        assert changes[-1].edges_changed is True
        assert changes[-1].to_dict() == {
            "version": 2,
            "node_count": 11,
            "added": [],
            "removed": [],
            "updated": [],
            "edges_changed": True,
        }

    def test_failing_callback_does_not_break_mutation(self, store, caplog):
        def broken(change):
            raise RuntimeError("listener gone")

        changes = []
        store.on_change(broken)
        store.on_change(changes.append)

        store.insert(item("a"))

        assert store.get("a") is not None
        assert len(changes) == 1
        assert "Change callback failed" in caplog.text

    def test_off_change(self, store):
        changes = []
        store.on_change(changes.append)

        assert store.off_change(changes.append) is True
        assert store.off_change(changes.append) is False
        store.insert(item("a"))
        assert changes == []


class TestDefaultForest:
    def test_course_contains_modules(self, flow_store):
        assert flow_store.state.container_children["course-1"] == {"module1", "module2"}
        assert flow_store.state.root_ids == {"course-1", "topic4"}
        assert flow_store.validate() == []
