"""Pre-save step that keeps a node's path and position consistent.

Runs before a node reaches the store. For a new node, or one whose
``parent`` field was changed since it was loaded, it computes the path from
the parent's stored path. It assigns a default sibling position when
ordering is on, and rewrites descendant paths when an existing path changed.

On failure the node's ``path`` and position may already be modified in
memory; callers should discard or reload it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pathtree.core.database.exceptions import HierarchyCycleError, NotFoundError, RepositoryError
from pathtree.core.database.filters import ID_FIELD
from pathtree.core.database.hierarchy.cascade import CascadeResult
from pathtree.core.database.hierarchy.node import PARENT_FIELD, PATH_FIELD
from pathtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from pathtree.core.database.hierarchy.cascade import CascadePropagator
    from pathtree.core.database.hierarchy.node import TreeNode
    from pathtree.core.database.hierarchy.ordering import OrderingManager
    from pathtree.core.database.hierarchy.paths import PathCodec
    from pathtree.core.database.store import DocumentStore

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


class MutationGuard:
    """Compute path and position for a node about to be saved.

    Args:
        store: Document store holding the tree
        codec: Path codec matching the tree's separator
        cascade: Propagator used when a saved node's path changes
        ordering: Sibling position manager
        model_name: Record kind used in NotFoundError messages
    """

    def __init__(
        self,
        store: DocumentStore,
        codec: PathCodec,
        cascade: CascadePropagator,
        ordering: OrderingManager,
        *,
        model_name: str = "Node",
    ) -> None:
        self.store = store
        self.codec = codec
        self.cascade = cascade
        self.ordering = ordering
        self.model_name = model_name

    async def before_save(self, node: TreeNode) -> CascadeResult:
        """Prepare ``node`` for its own insert or update.

        Returns:
            Result of the descendant path rewrite (NOT_ATTEMPTED unless a
            saved node changed parent)

        Raises:
            NotFoundError: If the parent id does not resolve
            HierarchyCycleError: If the new parent is the node or a descendant
            PartialCascadeError: If the descendant rewrite failed part way
        """
        reparented = not node.is_new and node.is_modified(PARENT_FIELD)
        if reparented:
            # Cascades from ancestors may have rewritten the stored path
            stored = await self.store.find_one({ID_FIELD: node.id}, fields=[PATH_FIELD])
            if stored is not None and stored.get(PATH_FIELD):
                node.refresh({PATH_FIELD: stored[PATH_FIELD]})
        previous_path = node.path or ""
        new_path = previous_path

        if node.is_new or reparented:
            new_path = await self._compute_path(node)
            node.path = new_path

        if self.ordering.enabled and (node.get(self.ordering.field) is None or reparented):
            await self.ordering.assign_default_position(node)

        if previous_path and previous_path != new_path:
            _lazy.debug(lambda: f"guard.before_save: {node.id} moved {previous_path} -> {new_path}")
            return await self.cascade.rewrite_paths(previous_path, new_path)
        return CascadeResult.skipped("rewrite_paths")

    async def _compute_path(self, node: TreeNode) -> str:
        parent_id = node.parent
        if parent_id is None:
            return self.codec.build_path("", node.id)
        if parent_id == node.id:
            raise HierarchyCycleError(node.id, parent_id)

        parent = await self.store.find_one({ID_FIELD: parent_id}, fields=[PATH_FIELD])
        if parent is None:
            logger.info(
                "Parent not found",
                extra={"entity": self.model_name, "id": str(parent_id), "operation": "guard.before_save"},
            )
            raise NotFoundError(self.model_name, {ID_FIELD: parent_id})

        parent_path = parent.get(PATH_FIELD)
        if not parent_path:
            raise RepositoryError(
                "Parent has no path; save it before its children",
                details={"parent_id": parent_id},
            )
        if not node.is_new and str(node.id) in self.codec.segments(parent_path):
            raise HierarchyCycleError(node.id, parent_id)

        return self.codec.build_path(parent_path, node.id)


__all__ = [
    "MutationGuard",
]
