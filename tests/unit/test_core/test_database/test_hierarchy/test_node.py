"""Tests for TreeNode change tracking."""

from __future__ import annotations

import pytest

from pathtree.core.database.hierarchy import PathCodec, TreeNode


def test_new_node_tracks_assignments():
    node = TreeNode({"name": "Dann"})
    assert node.is_new
    assert not node.is_modified()

    node.name = "Danny"
    assert node.is_modified("name")
    assert node["name"] == "Danny"


def test_parent_accepts_node_or_id():
    carol = TreeNode({"id": "carol"}, is_new=False)
    dann = TreeNode({"id": "dann"}, is_new=False)

    dann.parent = carol
    assert dann.parent == "carol"
    assert dann.is_modified("parent")

    dann.mark_clean()
    dann["parent"] = "carol"
    assert not dann.is_modified("parent")


def test_saved_node_id_is_immutable():
    node = TreeNode({"id": "a"}, is_new=False)
    with pytest.raises(AttributeError):
        node.id = "b"


def test_mark_persisted():
    node = TreeNode({"id": "a"})
    node.path = "a"
    node.mark_persisted()
    assert not node.is_new
    assert node.modified_fields == []


def test_level_uses_codec():
    node = TreeNode({"path": "a.b.c"}, codec=PathCodec("."))
    assert node.level == 3
    assert TreeNode().level == 0


def test_missing_attribute():
    with pytest.raises(AttributeError):
        _ = TreeNode().colour


def test_to_dict_includes_children_and_transform():
    root = TreeNode({"id": "a", "name": "A"})
    child = TreeNode({"id": "b", "name": "B"})
    child.children = []
    root.children = [child]

    assert root.to_dict() == {"id": "a", "name": "A", "children": [{"id": "b", "name": "B", "children": []}]}
    assert root.to_dict(lambda value: value["name"]) == "A"
    assert "children" not in root.to_document()


def test_equality_by_id():
    assert TreeNode({"id": "a"}) == TreeNode({"id": "a"}, is_new=False)
    assert TreeNode() != TreeNode()
