"""
Mind-map tree helpers.

Nodes are identified by title. `add` and `expand` look up the parent by title
anywhere in the tree (depth-first, children in list order, first match wins).
`edit` and `delete` take a root-to-node path of titles joined by ">", e.g.
"Idea>Marketing>Channels". Sibling titles are not required to be unique; a
path segment resolves to the first child with that title.

All helpers mutate the tree passed in. Callers load a fresh copy, mutate it,
and write the whole tree back.
"""

from __future__ import annotations

from collections.abc import Iterable

from daper.ideas.models import MindMapNode

PATH_SEPARATOR = ">"


class MindMapError(Exception):
    """Base class for tree addressing failures."""


class NodeNotFoundError(MindMapError):
    def __init__(self, title: str, message: str | None = None):
        self.title = title
        super().__init__(message or f"Node not found: {title}")


class PathMismatchError(MindMapError):
    def __init__(self, expected_root: str, actual_root: str):
        self.expected_root = expected_root
        self.actual_root = actual_root
        super().__init__("Root node doesn't match path")


class CannotDeleteRootError(MindMapError):
    def __init__(self) -> None:
        super().__init__("Cannot delete the root node.")


def split_path(path: str) -> list[str]:
    """Split a ">"-joined path. Segments are compared verbatim (no trimming)."""
    return path.split(PATH_SEPARATOR)


def tree_depth(node: MindMapNode) -> int:
    """Depth of the tree rooted at node; a lone root has depth 1."""
    if not node.children:
        return 1
    return 1 + max(tree_depth(child) for child in node.children)


def find_node_by_title(root: MindMapNode, title: str) -> MindMapNode | None:
    """First node titled `title` in depth-first document order."""
    if root.title == title:
        return root
    for child in root.children:
        found = find_node_by_title(child, title)
        if found is not None:
            return found
    return None


def append_children_by_title(
    root: MindMapNode,
    parent_title: str,
    new_nodes: Iterable[MindMapNode],
) -> MindMapNode:
    """Append copies of new_nodes under the first node titled parent_title.

    Returns the parent node.

    Raises:
        NodeNotFoundError: no node carries parent_title
    """
    parent = find_node_by_title(root, parent_title)
    if parent is None:
        raise NodeNotFoundError(parent_title)

    parent.children.extend(node.model_copy(deep=True) for node in new_nodes)
    return parent


def walk_path(root: MindMapNode, segments: list[str]) -> list[MindMapNode]:
    """Resolve a path and return every node along it, root first.

    Raises:
        PathMismatchError: first segment is not the root title
        NodeNotFoundError: a later segment has no matching child
    """
    if not segments or segments[0] != root.title:
        raise PathMismatchError(segments[0] if segments else "", root.title)

    trail = [root]
    current = root
    for segment in segments[1:]:
        child = next((c for c in current.children if c.title == segment), None)
        if child is None:
            raise NodeNotFoundError(segment, f"Node not found at path segment: {segment}")
        trail.append(child)
        current = child
    return trail


def rename_at_path(root: MindMapNode, path: str, new_title: str) -> MindMapNode:
    """Overwrite the title of the node at path; its children are kept."""
    target = walk_path(root, split_path(path))[-1]
    target.title = new_title
    return target


def remove_at_path(root: MindMapNode, path: str) -> MindMapNode:
    """Detach the node at path from its parent and return it.

    Raises:
        CannotDeleteRootError: path has a single segment
    """
    segments = split_path(path)
    if len(segments) <= 1:
        raise CannotDeleteRootError()

    parent = walk_path(root, segments[:-1])[-1]
    title = segments[-1]
    for index, child in enumerate(parent.children):
        if child.title == title:
            return parent.children.pop(index)

    raise NodeNotFoundError(title, f"Node not found at path segment: {title}")
