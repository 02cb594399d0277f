"""Materialized-path trees over a flat document collection.

Every record stores its ``parent`` id and a ``path`` string holding its
ancestor ids, root first, ending in its own id ("adam#carol#dann"). Subtree
queries become one anchored regex match on ``path``; no recursive query
support is needed from the store.

Components:
    - PathCodec: path building, parsing and regex prefix patterns
    - TreeNode: wrapped record with per-field change tracking
    - MutationGuard: path and position computation before a save
    - CascadePropagator: descendant rewrites with bounded concurrency
    - OrderingManager: sibling positions and positional moves
    - TreeReconstructor: nested trees from flat query results
    - TreeRepository: the caller-facing operations
    - HierarchicalMixin / OrderedHierarchicalMixin: SQLAlchemy columns

Example:
    >>> from pathtree.core.database import MemoryDocumentStore
    >>> from pathtree.core.database.hierarchy import TreeRepository
    >>> from pathtree.core.settings import TreeSettings
    >>>
    >>> repo = TreeRepository(MemoryDocumentStore(), TreeSettings(path_separator="."))
    >>> adam = await repo.create({"id": "adam"})
    >>> bob = await repo.create({"id": "bob", "parent": adam})
    >>> bob.path
    'adam.bob'

Note:
    - Cascades are not transactional; see PartialCascadeError
    - Concurrent reparents of overlapping subtrees are not serialized
"""

from pathtree.core.database.hierarchy.cascade import (
    CascadePropagator,
    CascadeResult,
    CascadeStatus,
)
from pathtree.core.database.hierarchy.guard import MutationGuard
from pathtree.core.database.hierarchy.mixins import (
    HierarchicalMixin,
    OrderedHierarchicalMixin,
)
from pathtree.core.database.hierarchy.node import TreeNode
from pathtree.core.database.hierarchy.options import ChildrenQuery, QueryOptions, TreeQuery
from pathtree.core.database.hierarchy.ordering import OrderingManager
from pathtree.core.database.hierarchy.paths import DEFAULT_SEPARATOR, PathCodec
from pathtree.core.database.hierarchy.reconstruct import TreeReconstructor
from pathtree.core.database.hierarchy.repository import TreeRepository

__all__ = [
    "DEFAULT_SEPARATOR",
    "CascadePropagator",
    "CascadeResult",
    "CascadeStatus",
    "ChildrenQuery",
    "HierarchicalMixin",
    "MutationGuard",
    "OrderedHierarchicalMixin",
    "OrderingManager",
    "PathCodec",
    "QueryOptions",
    "TreeNode",
    "TreeQuery",
    "TreeReconstructor",
    "TreeRepository",
]
