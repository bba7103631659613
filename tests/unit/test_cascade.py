"""
Unit tests for cascade delete and the visibility cascade.
"""

from contentflow.core.cascade import propagate_visibility, remove_subtrees
from contentflow.core.index import rebuild_index
from contentflow.core.models import NO_PARENT

from conftest import group, group_chain, item


def _tree(node_types):
    return rebuild_index([
        group("root"),
        group("a", "root"),
        group("b", "a"),
        item("b1", "b"),
        item("a1", "a"),
        item("other"),
    ], node_types)


class TestRemoveSubtrees:
    def test_removes_transitive_descendants(self, node_types):
        maps = _tree(node_types)
        removed = remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["a"])

        assert sorted(removed) == ["a", "a1", "b", "b1"]
        assert set(maps.node_map) == {"root", "other"}
        assert "a" not in maps.container_children
        assert "b" not in maps.container_children
        assert maps.pure_leaf_ids == {"other"}

    def test_no_dangling_child_references(self, node_types):
        maps = _tree(node_types)
        remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["a"])

        for child_ids in maps.container_children.values():
            assert child_ids <= set(maps.node_map)
        assert maps.container_children["root"] == set()

    def test_second_call_is_noop(self, node_types):
        maps = _tree(node_types)
        remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["a"])
        snapshot = maps.copy()

        removed = remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["a"])

        assert removed == []
        assert maps.node_map == snapshot.node_map
        assert maps.container_children == snapshot.container_children
        assert maps.pure_leaf_ids == snapshot.pure_leaf_ids

    def test_overlapping_targets(self, node_types):
        maps = _tree(node_types)
        removed = remove_subtrees(
            maps.node_map, maps.container_children, maps.pure_leaf_ids, ["a", "b", "b1"]
        )
        assert sorted(removed) == ["a", "a1", "b", "b1"]

    def test_accepts_node_objects(self, node_types):
        maps = _tree(node_types)
        removed = remove_subtrees(
            maps.node_map, maps.container_children, maps.pure_leaf_ids, [maps.node_map["other"]]
        )
        assert removed == ["other"]
        assert "other" not in maps.container_children[NO_PARENT]

    def test_unknown_id_ignored(self, node_types):
        maps = _tree(node_types)
        assert remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["nope"]) == []

    def test_deep_chain(self, node_types):
        maps = rebuild_index(group_chain(2000), node_types)
        removed = remove_subtrees(maps.node_map, maps.container_children, maps.pure_leaf_ids, ["c0"])

        assert len(removed) == 2000
        assert maps.node_map == {}
        assert maps.container_children == {NO_PARENT: set()}


class TestPropagateVisibility:
    def test_collapse_hides_expanded_branch_only(self, node_types, visibility_forest):
        maps = rebuild_index(visibility_forest, node_types)
        changes = propagate_visibility("root", maps.node_map, maps.container_children, show=False)

        assert {n.id for n in changes} == {"child1", "child2", "g1", "g2"}
        assert all(n.hidden for n in changes)

    def test_expand_shows_same_set(self, node_types, visibility_forest):
        maps = rebuild_index(visibility_forest, node_types)
        changes = propagate_visibility("root", maps.node_map, maps.container_children, show=True)

        assert {n.id for n in changes} == {"child1", "child2", "g1", "g2"}
        assert not any(n.hidden for n in changes)

    def test_expanded_flags_untouched(self, node_types, visibility_forest):
        maps = rebuild_index(visibility_forest, node_types)
        changes = {
            n.id: n for n in propagate_visibility(maps.node_map["root"], maps.node_map, maps.container_children, False)
        }

        assert changes["child1"].data["expanded"] is True
        assert changes["child2"].data["expanded"] is False

    def test_inputs_not_mutated(self, node_types, visibility_forest):
        maps = rebuild_index(visibility_forest, node_types)
        propagate_visibility("root", maps.node_map, maps.container_children, show=False)
        assert not maps.node_map["child1"].hidden

    def test_truthy_non_bool_does_not_recurse(self, node_types):
        maps = rebuild_index([
            group("root"),
            group("c", "root", expanded="yes"),
            item("gc", "c"),
        ], node_types)
        changes = propagate_visibility("root", maps.node_map, maps.container_children, show=False)
        assert {n.id for n in changes} == {"c"}

    def test_no_entry_returns_empty(self, node_types, visibility_forest):
        maps = rebuild_index(visibility_forest, node_types)
        assert propagate_visibility("g1", maps.node_map, maps.container_children, show=False) == []
        assert propagate_visibility("unknown", maps.node_map, maps.container_children, show=False) == []

    def test_missing_child_skipped(self, node_types):
        maps = rebuild_index([group("root"), item("a", "root")], node_types)
        maps.container_children["root"].add("ghost")

        changes = propagate_visibility("root", maps.node_map, maps.container_children, show=False)
        assert [n.id for n in changes] == ["a"]

    def test_deep_chain(self, node_types):
        maps = rebuild_index(group_chain(2000), node_types)
        changes = propagate_visibility("c0", maps.node_map, maps.container_children, show=False)

        assert len(changes) == 1999
        assert all(n.hidden for n in changes)
