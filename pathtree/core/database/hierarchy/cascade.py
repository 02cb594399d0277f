"""Cascading updates applied to descendants after a structural change.

Three cascades exist:

- rewrite_paths: a node moved, so every descendant path swaps its prefix
- delete_subtree: a node is being deleted together with everything below it
- reparent_children: a node is being deleted and its children move up a level

Per-document rewrites stream the affected records from the store and fan
the updates out to at most ``num_workers`` concurrent tasks. There is no
multi-document transaction: when one update fails, the stream stops being
dispatched, updates already in flight are awaited, and the caller gets a
``PartialCascadeError`` whose ``CascadeResult`` lists the ids left behind.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pathtree.core.database.exceptions import PartialCascadeError
from pathtree.core.database.filters import ID_FIELD
from pathtree.core.database.hierarchy.node import PARENT_FIELD, PATH_FIELD
from pathtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from pathtree.core.database.filters import Document
    from pathtree.core.database.hierarchy.node import TreeNode
    from pathtree.core.database.hierarchy.paths import PathCodec
    from pathtree.core.database.store import DocumentStore

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


class CascadeStatus(StrEnum):
    """How far a cascade got."""

    APPLIED = "applied"
    PARTIAL = "partial"
    NOT_ATTEMPTED = "not_attempted"


@dataclass
class CascadeResult:
    """Outcome of a cascade.

    Attributes:
        operation: Cascade name (rewrite_paths, delete_subtree, reparent_children)
        status: APPLIED, PARTIAL or NOT_ATTEMPTED
        matched: Descendant records the cascade selected
        updated: Records rewritten or removed
        relinked: Direct children re-pointed to a new parent (reparent_children)
        unresolved_ids: Ids of matched records that were not updated
    """

    operation: str
    status: CascadeStatus = CascadeStatus.NOT_ATTEMPTED
    matched: int = 0
    updated: int = 0
    relinked: int = 0
    unresolved_ids: list[Any] = field(default_factory=list)

    @classmethod
    def skipped(cls, operation: str) -> CascadeResult:
        """Result for a cascade that had nothing to do."""
        return cls(operation=operation)

    @property
    def fully_applied(self) -> bool:
        return self.status is CascadeStatus.APPLIED

    @property
    def attempted(self) -> bool:
        return self.status is not CascadeStatus.NOT_ATTEMPTED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for log records."""
        return {
            "operation": self.operation,
            "status": str(self.status),
            "matched": self.matched,
            "updated": self.updated,
            "relinked": self.relinked,
            "unresolved": len(self.unresolved_ids),
        }


class CascadePropagator:
    """Apply descendant updates with bounded concurrency.

    Args:
        store: Document store holding the tree
        codec: Path codec matching the tree's separator
        num_workers: Maximum in-flight per-document updates
    """

    def __init__(self, store: DocumentStore, codec: PathCodec, num_workers: int = 5) -> None:
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self.store = store
        self.codec = codec
        self.num_workers = num_workers

    async def rewrite_paths(self, previous_path: str, new_path: str) -> CascadeResult:
        """Swap the ``previous_path`` prefix for ``new_path`` on every descendant.

        Args:
            previous_path: Path of the moved node before the move
            new_path: Path of the moved node after the move

        Returns:
            CascadeResult (NOT_ATTEMPTED when there was no previous path or it
            did not change)

        Raises:
            PartialCascadeError: If any per-document update failed
        """
        result = CascadeResult(operation="rewrite_paths")
        if not previous_path or previous_path == new_path:
            return result

        stream = self.store.find(
            {PATH_FIELD: {"$regex": self.codec.prefix_pattern(previous_path)}},
            fields=[PATH_FIELD],
        )
        await self._fan_out(
            result,
            stream,
            lambda path: self.codec.rebase(path, previous_path, new_path),
        )
        self._log_completed(result, previous_path=previous_path, new_path=new_path)
        return result

    async def delete_subtree(self, node: TreeNode) -> CascadeResult:
        """Remove every descendant of ``node`` (the node itself is left to the caller)."""
        result = CascadeResult(operation="delete_subtree")
        if not node.path:
            return result

        removed = await self.store.remove_many(
            {PATH_FIELD: {"$regex": self.codec.prefix_pattern(node.path)}},
        )
        result.matched = result.updated = removed
        result.status = CascadeStatus.APPLIED
        self._log_completed(result, node_id=node.id)
        return result

    async def reparent_children(self, node: TreeNode) -> CascadeResult:
        """Promote the children of ``node`` to its parent and compact their paths.

        Direct children are re-pointed with one bulk update. Every record
        whose path holds ``node.id`` as an interior segment then has that
        segment removed, one update per record.

        Raises:
            PartialCascadeError: If any per-document path update failed
        """
        result = CascadeResult(operation="reparent_children")
        if not node.path:
            return result

        result.relinked = await self.store.update_many(
            {PARENT_FIELD: node.id},
            {"$set": {PARENT_FIELD: node.parent}},
        )
        stream = self.store.find(
            {PATH_FIELD: {"$regex": self.codec.segment_pattern(node.id)}},
            fields=[PATH_FIELD],
        )
        await self._fan_out(
            result,
            stream,
            lambda path: self.codec.strip_segment(path, node.id),
        )
        self._log_completed(result, node_id=node.id)
        return result

    async def _fan_out(
        self,
        result: CascadeResult,
        stream: AsyncIterator[Document],
        rewrite: Callable[[str], str],
    ) -> None:
        semaphore = asyncio.Semaphore(self.num_workers)
        pending: set[asyncio.Task[None]] = set()
        failures: list[Exception] = []
        started = 0

        async def update_one(document: Document) -> None:
            doc_id = document[ID_FIELD]
            try:
                new_path = rewrite(document[PATH_FIELD])
                await self.store.update_one({ID_FIELD: doc_id}, {"$set": {PATH_FIELD: new_path}})
            except Exception as exc:
                failures.append(exc)
                result.unresolved_ids.append(doc_id)
            else:
                result.updated += 1
                _lazy.debug(lambda: f"cascade.{result.operation}: {doc_id} -> {new_path}")
            finally:
                semaphore.release()

        try:
            async with contextlib.aclosing(stream) as documents:
                async for document in documents:
                    result.matched += 1
                    if not failures:
                        await semaphore.acquire()
                        # A worker may have failed while this one waited for a slot
                        if failures:
                            semaphore.release()
                    if failures:
                        result.unresolved_ids.append(document[ID_FIELD])
                        continue
                    started += 1
                    task = asyncio.create_task(update_one(document))
                    pending.add(task)
                    task.add_done_callback(pending.discard)
        except Exception as exc:
            failures.append(exc)
        finally:
            if pending:
                await asyncio.gather(*pending)

        if failures:
            # NOT_ATTEMPTED when the stream failed before anything was written
            written = started or result.relinked
            result.status = CascadeStatus.PARTIAL if written else CascadeStatus.NOT_ATTEMPTED
            logger.warning(
                "Cascade failed",
                extra={**result.to_dict(), "error": str(failures[0])},
            )
            raise PartialCascadeError(
                f"Cascade {result.operation} stopped after {result.updated} of "
                f"{result.matched} updates",
                result,
            ) from failures[0]

        result.status = CascadeStatus.APPLIED

    def _log_completed(self, result: CascadeResult, **context: Any) -> None:
        logger.info(
            "Cascade completed",
            extra={**result.to_dict(), **{key: str(value) for key, value in context.items()}},
        )


__all__ = [
    "CascadePropagator",
    "CascadeResult",
    "CascadeStatus",
]
