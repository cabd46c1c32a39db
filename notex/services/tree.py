"""
Helpers over scanned trees: lookup by id, title search, flattening.
"""

from typing import Iterator, List, Optional, Sequence

from notex.schemas.tree import FolderNode, TreeNode


def iter_nodes(nodes: Sequence[TreeNode]) -> Iterator[TreeNode]:
    """Depth-first, parents before children"""
    for node in nodes:
        yield node
        if isinstance(node, FolderNode):
            yield from iter_nodes(node.children)


def find_node(nodes: Sequence[TreeNode], node_id: str) -> Optional[TreeNode]:
    for node in iter_nodes(nodes):
        if node.id == node_id:
            return node
    return None


def filter_tree(nodes: Sequence[TreeNode], term: Optional[str]) -> List[TreeNode]:
    """
    Case-insensitive title search.

    A folder whose title matches is kept whole; otherwise it is kept only if
    some descendant matches, with its children narrowed to the matches.
    Leaves are kept when their title matches.

    Args:
        nodes: Tree to search
        term: Search text; empty or None returns the tree unchanged

    Returns:
        Filtered copy of the tree (input nodes are not modified)
    """
    if not term:
        return list(nodes)

    needle = term.casefold()
    result: List[TreeNode] = []

    for node in nodes:
        matches = needle in node.title.casefold()
        if isinstance(node, FolderNode):
            if matches:
                result.append(node)
                continue
            children = filter_tree(node.children, term)
            if children:
                result.append(node.model_copy(update={"children": children}))
        elif matches:
            result.append(node)

    return result
