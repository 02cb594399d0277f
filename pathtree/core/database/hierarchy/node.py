"""Wrapped tree record with per-field change tracking.

``TreeNode`` is what the repository hands back when a query is not lean. It
behaves like a small document: fields are reachable as attributes or items,
assignments mark the field dirty, and ``is_new`` tells a record that was
never persisted apart from one loaded from the store. The mutation guard
relies on the dirty flag of ``parent`` (not on comparing paths) to decide
whether a save is a reparent.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from pathtree.core.database.filters import ID_FIELD
from pathtree.core.database.hierarchy.paths import PathCodec

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from pathtree.core.database.filters import Document

PARENT_FIELD = "parent"
PATH_FIELD = "path"
CHILDREN_FIELD = "children"

_INTERNAL = frozenset({"_data", "_modified", "_is_new", "_codec", "children"})
_DEFAULT_CODEC = PathCodec()


class TreeNode:
    """A tree record plus the bookkeeping needed to save it correctly.

    Example:
        >>> node = TreeNode({"name": "Dann"})
        >>> node.parent = carol          # a node or an id
        >>> node.is_modified("parent")
        True
        >>> node.name
        'Dann'
    """

    __slots__ = ("_codec", "_data", "_is_new", "_modified", "children")

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        is_new: bool = True,
        codec: PathCodec | None = None,
    ) -> None:
        object.__setattr__(self, "_data", dict(data or {}))
        object.__setattr__(self, "_modified", set())
        object.__setattr__(self, "_is_new", is_new)
        object.__setattr__(self, "_codec", codec or _DEFAULT_CODEC)
        object.__setattr__(self, "children", None)

    # -- field access -----------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Assign a field, marking it modified when the value changes."""
        if name == ID_FIELD and not self._is_new and value != self._data.get(ID_FIELD):
            raise AttributeError("id is immutable once a node has been saved")
        if name == PARENT_FIELD and isinstance(value, TreeNode):
            value = value.id
        if name not in self._data or self._data[name] != value:
            self._modified.add(name)
        self._data[name] = value

    def __getattr__(self, name: str) -> Any:
        data = object.__getattribute__(self, "_data")
        try:
            return data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _INTERNAL or isinstance(getattr(type(self), name, None), property):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __getitem__(self, name: str) -> Any:
        return self._data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    @property
    def id(self) -> Any:
        return self._data.get(ID_FIELD)

    @id.setter
    def id(self, value: Any) -> None:
        self.set(ID_FIELD, value)

    @property
    def parent(self) -> Any:
        """Id of the parent node, or None for a root."""
        return self._data.get(PARENT_FIELD)

    @parent.setter
    def parent(self, value: TreeNode | Any) -> None:
        self.set(PARENT_FIELD, value)

    @property
    def path(self) -> str | None:
        return self._data.get(PATH_FIELD)

    @path.setter
    def path(self, value: str) -> None:
        self.set(PATH_FIELD, value)

    @property
    def level(self) -> int:
        """Depth of the node (1 for a root, 0 if it has no path yet)."""
        return self._codec.level(self.path)

    # -- change tracking --------------------------------------------------

    @property
    def is_new(self) -> bool:
        return self._is_new

    def is_modified(self, name: str | None = None) -> bool:
        """Whether ``name`` (or any field, when omitted) changed since load."""
        if name is None:
            return bool(self._modified)
        return name in self._modified

    @property
    def modified_fields(self) -> list[str]:
        return sorted(self._modified)

    def mark_clean(self, name: str | None = None) -> None:
        if name is None:
            self._modified.clear()
        else:
            self._modified.discard(name)

    def refresh(self, document: Mapping[str, Any]) -> None:
        """Overwrite fields with stored values and mark them clean."""
        for name, value in document.items():
            self._data[name] = value
            self._modified.discard(name)

    def mark_persisted(self) -> None:
        """Record that the current state now matches the store."""
        self._modified.clear()
        object.__setattr__(self, "_is_new", False)

    # -- conversion -------------------------------------------------------

    def to_document(self) -> Document:
        """Copy of the persisted fields (children are never stored)."""
        return copy.deepcopy(self._data)

    def to_dict(self, transform: Callable[[Document], Any] | None = None) -> Any:
        """Plain value representation, including reconstructed children.

        Args:
            transform: Optional callable applied to each node's plain dict
        """
        value = self.to_document()
        if self.children is not None:
            value[CHILDREN_FIELD] = [
                child.to_dict(transform) if isinstance(child, TreeNode) else child
                for child in self.children
            ]
        return transform(value) if transform else value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeNode):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return bool(self.id == other.id)

    def __hash__(self) -> int:
        return hash(self.id) if self.id is not None else id(self)

    def __repr__(self) -> str:
        state = "new" if self._is_new else "saved"
        return f"TreeNode(id={self.id!r}, parent={self.parent!r}, path={self.path!r}, {state})"


__all__ = [
    "CHILDREN_FIELD",
    "PARENT_FIELD",
    "PATH_FIELD",
    "TreeNode",
]
