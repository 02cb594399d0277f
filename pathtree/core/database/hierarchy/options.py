"""Per-operation query options for the tree repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from pathtree.core.database.filters import Filter, Projection, Sort


@dataclass(slots=True, frozen=True)
class QueryOptions:
    """Filters, projection and sort applied on top of a tree query.

    Attributes:
        filters: Extra conditions ANDed with the structural filter
        fields: Projection (mapping or sequence of included names)
        sort: Field to direction mapping; None uses the repository default
        lean: True for plain dicts, False for TreeNode objects, None for the
            operation's default
    """

    filters: Filter = field(default_factory=dict)
    fields: Projection | None = None
    sort: Sort | None = None
    lean: bool | None = None


@dataclass(slots=True, frozen=True)
class ChildrenQuery(QueryOptions):
    """Options for ``get_children``; ``recursive`` returns every descendant."""

    recursive: bool = False


@dataclass(slots=True, frozen=True)
class TreeQuery(QueryOptions):
    """Options for ``get_children_tree``.

    Attributes:
        populate: Id-valued fields to replace with the documents they reference
        min_level: Nodes shallower than this are left out, their children lifted
        recursive: False limits the tree to the root's direct children
        allow_empty_children: Give leaf nodes an empty ``children`` list
        objectify: True converts nodes to plain dicts; a callable also
            transforms each one
    """

    populate: tuple[str, ...] = ()
    min_level: int = 1
    recursive: bool = True
    allow_empty_children: bool = True
    objectify: bool | Callable[[dict[str, Any]], Any] = False


__all__ = [
    "ChildrenQuery",
    "QueryOptions",
    "TreeQuery",
]
