"""Unit tests for mind-map tree helpers (title lookup and path addressing)"""

from __future__ import annotations

import pytest

from daper.ideas.mindmap import (
    CannotDeleteRootError,
    NodeNotFoundError,
    PathMismatchError,
    append_children_by_title,
    find_node_by_title,
    remove_at_path,
    rename_at_path,
    split_path,
    tree_depth,
    walk_path,
)
from daper.ideas.models import MindMapNode


def titles(node: MindMapNode) -> list[str]:
    return [child.title for child in node.children]


def test_tree_depth(mind_map):
    assert tree_depth(MindMapNode(title="Solo")) == 1
    assert tree_depth(mind_map) == 3


def test_null_children_become_empty_list():
    node = MindMapNode.model_validate({"title": "Leaf", "children": None})
    assert node.children == []


def test_find_node_by_title_is_depth_first_first_match():
    """With duplicate titles, the first in document order wins"""
    tree = MindMapNode(
        title="Root",
        children=[
            MindMapNode(title="A", children=[MindMapNode(title="Dup", children=[MindMapNode(title="deep")])]),
            MindMapNode(title="Dup"),
        ],
    )

    found = find_node_by_title(tree, "Dup")

    assert found is tree.children[0].children[0]
    assert find_node_by_title(tree, "missing") is None


def test_append_children_by_title(mind_map):
    parent = append_children_by_title(mind_map, "Marketing", [MindMapNode(title="SEO")])

    assert parent.title == "Marketing"
    assert titles(mind_map.children[0]) == ["Channels", "SEO"]


def test_append_copies_nodes(mind_map):
    """Appended nodes are copies; later edits to the input do not leak in"""
    node = MindMapNode(title="Pricing")
    append_children_by_title(mind_map, "Idea", [node])
    node.title = "changed"

    assert titles(mind_map)[-1] == "Pricing"


def test_append_to_missing_parent(mind_map):
    with pytest.raises(NodeNotFoundError) as exc_info:
        append_children_by_title(mind_map, "Nowhere", [MindMapNode(title="X")])
    assert exc_info.value.title == "Nowhere"


def test_split_path_keeps_whitespace():
    assert split_path("Idea>Marketing") == ["Idea", "Marketing"]
    assert split_path("Idea> Marketing") == ["Idea", " Marketing"]


def test_walk_path_returns_trail(mind_map):
    trail = walk_path(mind_map, ["Idea", "Marketing", "Channels"])
    assert [n.title for n in trail] == ["Idea", "Marketing", "Channels"]


def test_rename_keeps_children(mind_map):
    renamed = rename_at_path(mind_map, "Idea>Marketing", "Growth")

    assert renamed.title == "Growth"
    assert titles(mind_map) == ["Growth", "Product"]
    assert titles(mind_map.children[0]) == ["Channels"]


def test_rename_root(mind_map):
    rename_at_path(mind_map, "Idea", "Better Idea")
    assert mind_map.title == "Better Idea"


def test_path_with_wrong_root(mind_map):
    with pytest.raises(PathMismatchError) as exc_info:
        rename_at_path(mind_map, "Other>Marketing", "X")
    assert str(exc_info.value) == "Root node doesn't match path"


def test_path_with_missing_segment(mind_map):
    with pytest.raises(NodeNotFoundError) as exc_info:
        rename_at_path(mind_map, "Idea>Sales>Leads", "X")
    assert str(exc_info.value) == "Node not found at path segment: Sales"


def test_remove_at_path(mind_map):
    removed = remove_at_path(mind_map, "Idea>Marketing")

    assert removed.title == "Marketing"
    assert titles(removed) == ["Channels"]
    assert titles(mind_map) == ["Product"]


def test_remove_nested_leaf(mind_map):
    remove_at_path(mind_map, "Idea>Marketing>Channels")
    assert mind_map.children[0].children == []


def test_remove_root_refused(mind_map):
    with pytest.raises(CannotDeleteRootError):
        remove_at_path(mind_map, "Idea")
    assert titles(mind_map) == ["Marketing", "Product"]


def test_remove_missing_leaf(mind_map):
    with pytest.raises(NodeNotFoundError):
        remove_at_path(mind_map, "Idea>Marketing>Ads")


def test_remove_first_of_duplicate_siblings():
    tree = MindMapNode(
        title="Root",
        children=[MindMapNode(title="Twin", children=[MindMapNode(title="a")]), MindMapNode(title="Twin")],
    )

    removed = remove_at_path(tree, "Root>Twin")

    assert titles(removed) == ["a"]
    assert len(tree.children) == 1
