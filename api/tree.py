"""Category hierarchy helpers.

Categories are stored flat with a `parent_id` link. The tree is rebuilt on
every read: one pass indexes the rows by id, a second attaches each node to
its parent. Rows whose parent is missing (deleted, or owned by someone else)
become roots.
"""

from __future__ import annotations

from typing import Iterable, Mapping
from uuid import UUID

from .schemas import Category, CategoryNode, CategoryOption

# Indentation per level in option labels
OPTION_INDENT = "    "


def build_category_tree(
    categories: Iterable[Category],
    product_counts: Mapping[UUID, int] | None = None,
) -> list[CategoryNode]:
    """Turn flat category rows into a forest.

    Siblings keep their input order. Parent links that form a cycle would
    leave every node of the cycle without a root; such nodes are promoted to
    roots (first one in input order) so nothing is dropped.

    Args:
        categories: Flat rows, in the order siblings should appear.
        product_counts: Optional number of products per category id.

    Returns:
        Root nodes with `children` and `level` filled in.
    """
    counts = product_counts or {}
    nodes: dict[UUID, CategoryNode] = {}
    for category in categories:
        nodes[category.id] = CategoryNode(
            **category.model_dump(exclude={"level", "children", "product_count"}),
            product_count=counts.get(category.id, 0),
        )

    roots: list[CategoryNode] = []
    parent_of: dict[UUID, UUID] = {}
    for node in nodes.values():
        if node.parent_id and node.parent_id in nodes and node.parent_id != node.id:
            nodes[node.parent_id].children.append(node)
            parent_of[node.id] = node.parent_id
        else:
            roots.append(node)

    reached = _assign_levels(roots)
    for node in nodes.values():
        if node.id in reached:
            continue
        # Part of a parent cycle: detach and promote
        siblings = nodes[parent_of[node.id]].children
        siblings[:] = [child for child in siblings if child.id != node.id]
        roots.append(node)
        reached |= _assign_levels([node])

    return roots


def _assign_levels(roots: list[CategoryNode]) -> set[UUID]:
    """Set `level` depth first; returns the ids reached."""
    reached: set[UUID] = set()
    stack = [(root, 0) for root in reversed(roots)]
    while stack:
        node, level = stack.pop()
        if node.id in reached:
            continue
        reached.add(node.id)
        node.level = level
        stack.extend((child, level + 1) for child in reversed(node.children))
    return reached


def flatten_tree(roots: Iterable[CategoryNode]) -> list[CategoryNode]:
    """Depth-first, pre-order list of every node in the forest."""
    result: list[CategoryNode] = []
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result


def category_options(categories: Iterable[Category]) -> list[CategoryOption]:
    """Options for a parent picker, indented by depth."""
    return [
        CategoryOption(
            id=node.id,
            name=node.name,
            level=node.level,
            label=f"{OPTION_INDENT * node.level}{node.name}",
        )
        for node in flatten_tree(build_category_tree(categories))
    ]


def descendant_ids(categories: Iterable[Category], category_id: UUID) -> set[UUID]:
    """Ids of every category below `category_id` (not including it)."""
    children: dict[UUID, list[UUID]] = {}
    for category in categories:
        if category.parent_id is not None:
            children.setdefault(category.parent_id, []).append(category.id)

    found: set[UUID] = set()
    stack = list(children.get(category_id, []))
    while stack:
        current = stack.pop()
        if current in found or current == category_id:
            continue
        found.add(current)
        stack.extend(children.get(current, []))
    return found


def valid_parents(categories: Iterable[Category], category_id: UUID) -> list[Category]:
    """Categories that may become the parent of `category_id`.

    Excludes the category itself and its whole subtree.
    """
    rows = list(categories)
    excluded = descendant_ids(rows, category_id) | {category_id}
    return [c for c in rows if c.id not in excluded]


def creates_cycle(
    categories: Iterable[Category], category_id: UUID, parent_id: UUID | None
) -> bool:
    """Whether re-parenting `category_id` under `parent_id` would form a loop."""
    if parent_id is None:
        return False
    if parent_id == category_id:
        return True
    return parent_id in descendant_ids(categories, category_id)


def category_path(categories: Iterable[Category], category_id: UUID) -> list[Category]:
    """Ancestors of `category_id` from the root down, ending with the category.

    Returns an empty list when the id is unknown.
    """
    by_id = {c.id: c for c in categories}
    path: list[Category] = []
    seen: set[UUID] = set()
    current = by_id.get(category_id)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        path.append(current)
        current = by_id.get(current.parent_id) if current.parent_id else None
    path.reverse()
    return path
