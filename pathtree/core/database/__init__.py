"""Document stores and tree persistence.

Stores implement the DocumentStore protocol; the hierarchy subpackage builds
materialized-path trees on top of any of them.

Example:
    from pathtree.core.database import MemoryDocumentStore, TreeRepository

    repo = TreeRepository(MemoryDocumentStore())
"""

from pathtree.core.database.base import NAMING_CONVENTION, Base
from pathtree.core.database.exceptions import (
    ConfigurationError,
    HierarchyCycleError,
    InvalidFilterError,
    NotFoundError,
    PartialCascadeError,
    RepositoryError,
    StoreError,
)
from pathtree.core.database.hierarchy import (
    CascadeResult,
    CascadeStatus,
    ChildrenQuery,
    HierarchicalMixin,
    OrderedHierarchicalMixin,
    QueryOptions,
    TreeNode,
    TreeQuery,
    TreeRepository,
)
from pathtree.core.database.memory import MemoryDocumentStore
from pathtree.core.database.sql import SQLAlchemyDocumentStore
from pathtree.core.database.store import DocumentStore, collect

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "CascadeResult",
    "CascadeStatus",
    "ChildrenQuery",
    "ConfigurationError",
    "DocumentStore",
    "HierarchicalMixin",
    "HierarchyCycleError",
    "InvalidFilterError",
    "MemoryDocumentStore",
    "NotFoundError",
    "OrderedHierarchicalMixin",
    "PartialCascadeError",
    "QueryOptions",
    "RepositoryError",
    "SQLAlchemyDocumentStore",
    "StoreError",
    "TreeNode",
    "TreeQuery",
    "TreeRepository",
    "collect",
]
