"""Column mixins for models stored through SQLAlchemyDocumentStore.

A tree model needs a string primary key named ``id`` (ids are assigned
before the first insert because a node's path contains its own id), an
indexed ``parent`` reference and an indexed ``path``. Ordered trees also
carry an integer ``position``.

Example:
    >>> class Category(Base, OrderedHierarchicalMixin):
    ...     __tablename__ = "categories"
    ...     name: Mapped[str] = mapped_column(String(255))
    >>>
    >>> store = SQLAlchemyDocumentStore(session_factory, Category)
    >>> repo = TreeRepository(store, TreeSettings(tree_ordering=True))

Note:
    - ``path`` is a plain string column; descendant queries use an anchored
      regex, which SQLAlchemy renders as REGEXP on SQLite and ``~`` on
      PostgreSQL
    - ``parent`` is intentionally not a foreign key: deleting with the
      REPARENT policy rewrites children after their parent row is gone
"""

from __future__ import annotations

from typing import ClassVar

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

ID_LENGTH = 64
PATH_LENGTH = 2048


class HierarchicalMixin:
    """Materialized-path columns: ``id``, ``parent`` and ``path``."""

    __allow_unmapped__ = True

    # Fields the tree core always needs in query results
    __tree_fields__: ClassVar[tuple[str, ...]] = ("id", "parent", "path")

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        comment="Node id, part of every descendant path",
    )
    parent: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        index=True,
        default=None,
        comment="Parent node id, NULL for roots",
    )
    path: Mapped[str | None] = mapped_column(
        String(PATH_LENGTH),
        index=True,
        default=None,
        comment="Ancestor ids joined by the path separator, ending in id",
    )


class OrderedHierarchicalMixin(HierarchicalMixin):
    """Materialized-path columns plus a sibling ``position``."""

    __tree_fields__: ClassVar[tuple[str, ...]] = ("id", "parent", "path", "position")

    position: Mapped[int | None] = mapped_column(
        Integer,
        index=True,
        default=None,
        comment="Position among siblings (0-based)",
    )


__all__ = [
    "HierarchicalMixin",
    "OrderedHierarchicalMixin",
]
