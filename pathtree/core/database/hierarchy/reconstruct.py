"""Nested tree reconstruction from a flat record set.

Records are indexed by parent id in one pass, then the tree is read off the
index starting from the root (or from the forest roots when no root is
given). Building never touches the store.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from pathtree.core.database.filters import ID_FIELD
from pathtree.core.database.hierarchy.node import CHILDREN_FIELD, PARENT_FIELD, PATH_FIELD, TreeNode

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pathtree.core.database.hierarchy.paths import PathCodec

Record: TypeAlias = Mapping[str, Any] | TreeNode


def _field(record: Record, name: str) -> Any:
    return record.get(name)


def _key(value: Any) -> str | None:
    return None if value is None else str(value)


class TreeReconstructor:
    """Build parent -> children structures in memory.

    Example:
        >>> tree = TreeReconstructor(codec).build(records, root=adam)
        >>> [child["name"] for child in tree]
        ['Bob', 'Carol', 'Falko']
    """

    def __init__(self, codec: PathCodec) -> None:
        self.codec = codec

    def build(
        self,
        records: Iterable[Record],
        root: Record | Any | None = None,
        *,
        min_level: int = 1,
        allow_empty_children: bool = True,
        objectify: bool | Callable[[dict[str, Any]], Any] = False,
    ) -> list[Any]:
        """Nest ``records`` under ``root``.

        Args:
            records: Dicts or TreeNodes, in the order children should appear
            root: Root record or id; None builds the forest of top-level records
            min_level: Records with a shallower path are left out and their
                children take their place
            allow_empty_children: Give leaves ``children = []``; when False a
                leaf has no ``children`` at all
            objectify: True converts every node to a plain dict; a callable is
                also applied to each plain dict

        Returns:
            The root's children, each carrying its own ``children``
        """
        index: defaultdict[str | None, list[Record]] = defaultdict(list)
        for record in records:
            index[_key(_field(record, PARENT_FIELD))].append(record)

        if root is None:
            root_key = None
        elif isinstance(root, (Mapping, TreeNode)):
            root_key = _key(_field(root, ID_FIELD))
        else:
            root_key = _key(root)

        visited: set[str | None] = {root_key}

        def children_of(parent_key: str | None) -> list[Any]:
            items: list[Any] = []
            for record in index.get(parent_key, ()):
                record_key = _key(_field(record, ID_FIELD))
                # Guards against cycles in inconsistent data
                if record_key in visited:
                    continue
                visited.add(record_key)

                if self.codec.level(_field(record, PATH_FIELD)) < min_level:
                    items.extend(children_of(record_key))
                    continue

                item = self._materialize(record, objectify)
                children = children_of(record_key)
                self._attach(item, children if children or allow_empty_children else None)
                items.append(item)
            return items

        return children_of(root_key)

    def flatten(self, tree: Iterable[Any]) -> list[Any]:
        """Depth-first list of the nodes in ``tree``, children removed."""
        flat: list[Any] = []
        for item in tree:
            if isinstance(item, TreeNode):
                children = item.children or []
                flat.append(item)
            else:
                children = item.get(CHILDREN_FIELD) or []
                flat.append({key: value for key, value in item.items() if key != CHILDREN_FIELD})
            flat.extend(self.flatten(children))
        return flat

    @staticmethod
    def _materialize(record: Record, objectify: bool | Callable[[dict[str, Any]], Any]) -> Any:
        if isinstance(record, TreeNode):
            if not objectify:
                return record
            value = record.to_document()
        else:
            value = dict(record)
        if callable(objectify):
            return objectify(value)
        return value

    @staticmethod
    def _attach(item: Any, children: list[Any] | None) -> None:
        if isinstance(item, TreeNode):
            item.children = children
        elif isinstance(item, dict):
            if children is None:
                item.pop(CHILDREN_FIELD, None)
            else:
                item[CHILDREN_FIELD] = children


__all__ = [
    "TreeReconstructor",
]
