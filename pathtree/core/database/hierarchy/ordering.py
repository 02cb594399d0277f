"""Sibling positions.

When tree ordering is enabled every node carries an integer position among
the nodes sharing its parent. New and reparented nodes go after their
current siblings (highest position + 1). ``move_to_position`` shifts the
contiguous range of siblings between the old and new slot by one and is the
only operation that restores a dense 0..k-1 sequence after deletions.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from pathtree.core.database.exceptions import ConfigurationError, NotFoundError, RepositoryError
from pathtree.core.database.filters import DESCENDING, ID_FIELD
from pathtree.core.database.hierarchy.node import PARENT_FIELD
from pathtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from pathtree.core.database.filters import Filter
    from pathtree.core.database.hierarchy.node import TreeNode
    from pathtree.core.database.store import DocumentStore

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)

ORDERING_DISABLED_MESSAGE = '"tree_ordering" option must be set in order to use move_to_position()'


class OrderingManager:
    """Assign and move sibling positions.

    Args:
        store: Document store holding the tree
        field: Position field name, or None when ordering is disabled
        model_name: Record kind used in NotFoundError
    """

    def __init__(self, store: DocumentStore, field: str | None, *, model_name: str = "Node") -> None:
        self.store = store
        self.field = field
        self.model_name = model_name

    @property
    def enabled(self) -> bool:
        return self.field is not None

    def _siblings(self, node: TreeNode) -> dict[str, Any]:
        return {PARENT_FIELD: node.parent, ID_FIELD: {"$ne": node.id}}

    async def assign_default_position(self, node: TreeNode) -> int | None:
        """Place ``node`` after its current siblings.

        Sets the position to the highest sibling position plus one, or 0 for
        an only child. Gaps left by deleted siblings are not filled.

        Returns:
            The assigned position, or None when ordering is disabled
        """
        if self.field is None:
            return None

        filters: Filter = {**self._siblings(node), self.field: {"$ne": None}}
        last = None
        async with contextlib.aclosing(
            self.store.find(filters, fields=[self.field], sort={self.field: DESCENDING}),
        ) as siblings:
            async for sibling in siblings:
                last = sibling
                break

        position = 0 if last is None else int(last[self.field]) + 1
        node[self.field] = position
        _lazy.debug(lambda: f"ordering.assign_default_position: {node.id} -> {position}")
        return position

    async def move_to_position(self, node: TreeNode, target: int) -> TreeNode:
        """Move ``node`` to ``target`` among its siblings and persist its position.

        The target is clamped to ``[0, count - 1]`` where count includes the
        node. The current slot and parent are read from the store rather
        than from ``node``. Siblings between the old and the new slot shift
        by one in a single bulk update issued before the node's own update.

        Raises:
            ConfigurationError: If ordering is disabled (before any store access)
            RepositoryError: If the node was never saved or has an unsaved
                parent change
            NotFoundError: If the node is no longer in the store
        """
        if self.field is None:
            raise ConfigurationError(ORDERING_DISABLED_MESSAGE, option="tree_ordering")
        if node.is_new:
            raise RepositoryError("Cannot move a node that was never saved", details={"node_id": node.id})
        if node.is_modified(PARENT_FIELD):
            raise RepositoryError(
                "Save the parent change before moving the node",
                details={"node_id": node.id},
            )

        field = self.field
        # Earlier shifts may have moved this node in the store
        stored = await self.store.find_one({ID_FIELD: node.id}, fields=[field, PARENT_FIELD])
        if stored is None:
            raise NotFoundError(self.model_name, {ID_FIELD: node.id})
        node.refresh({PARENT_FIELD: stored.get(PARENT_FIELD), field: stored.get(field)})

        count = await self.store.count({PARENT_FIELD: node.parent})
        target = max(0, min(int(target), count - 1))
        current = node.get(field)

        if current == target:
            return node

        siblings = self._siblings(node)
        if current is None:
            shifted = await self.store.update_many(
                {**siblings, field: {"$gte": target}},
                {"$inc": {field: 1}},
            )
        elif target > current:
            shifted = await self.store.update_many(
                {**siblings, field: {"$gt": current, "$lte": target}},
                {"$inc": {field: -1}},
            )
        else:
            shifted = await self.store.update_many(
                {**siblings, field: {"$gte": target, "$lt": current}},
                {"$inc": {field: 1}},
            )

        node[field] = target
        await self.store.update_one({ID_FIELD: node.id}, {"$set": {field: target}})
        node.mark_clean(field)

        logger.info(
            "Node moved",
            extra={
                "operation": "move_to_position",
                "node_id": str(node.id),
                "from_position": current,
                "to_position": target,
                "shifted": shifted,
            },
        )
        return node


__all__ = [
    "ORDERING_DISABLED_MESSAGE",
    "OrderingManager",
]
