"""In-memory document store.

Keeps documents in an insertion-ordered dict and evaluates the filter
vocabulary in Python. Streams are snapshots taken when iteration starts and
yield control to the event loop between documents, so concurrent writers
interleave with readers the way they would against a networked store.

Example:
    store = MemoryDocumentStore()
    repo = TreeRepository(store, TreeSettings(path_separator="."))
    adam = await repo.create({"name": "Adam"})
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from typing import TYPE_CHECKING, Any

from pathtree.core.database.exceptions import StoreError
from pathtree.core.database.filters import (
    ID_FIELD,
    apply_projection,
    apply_update,
    matches,
    sort_documents,
)
from pathtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from pathtree.core.database.filters import Document, Filter, Projection, Sort, Update

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


def _uuid_id() -> str:
    return str(uuid.uuid4())


class MemoryDocumentStore:
    """Dict-backed DocumentStore.

    Args:
        id_factory: Callable producing new ids (default: uuid4 strings)
        name: Collection name used in log records and errors
    """

    def __init__(
        self,
        *,
        id_factory: Callable[[], Any] | None = None,
        name: str = "documents",
    ) -> None:
        self.name = name
        self._id_factory = id_factory or _uuid_id
        self._documents: dict[Any, Document] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def new_id(self) -> Any:
        return self._id_factory()

    def _select(self, filters: Filter | None) -> list[Document]:
        return [doc for doc in self._documents.values() if matches(doc, filters)]

    async def insert_one(self, document: Document) -> Document:
        await asyncio.sleep(0)
        stored = copy.deepcopy(dict(document))
        if stored.get(ID_FIELD) is None:
            stored[ID_FIELD] = self.new_id()
        if stored[ID_FIELD] in self._documents:
            raise StoreError(
                "Duplicate id",
                details={"collection": self.name, "id": stored[ID_FIELD]},
            )
        self._documents[stored[ID_FIELD]] = stored
        _lazy.debug(lambda: f"memory.insert_one: {self.name}({stored[ID_FIELD]})")
        return copy.deepcopy(stored)

    async def find_one(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
    ) -> Document | None:
        await asyncio.sleep(0)
        for doc in self._documents.values():
            if matches(doc, filters):
                return copy.deepcopy(apply_projection(doc, fields))
        return None

    async def find(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
        sort: Sort | None = None,
    ) -> AsyncIterator[Document]:
        snapshot = sort_documents([copy.deepcopy(doc) for doc in self._select(filters)], sort)
        _lazy.debug(lambda: f"memory.find: {self.name}({filters!r}) -> {len(snapshot)} documents")
        for doc in snapshot:
            await asyncio.sleep(0)
            yield apply_projection(doc, fields)

    async def update_one(self, filters: Filter, update: Update) -> int:
        await asyncio.sleep(0)
        for doc in self._documents.values():
            if matches(doc, filters):
                apply_update(doc, update)
                return 1
        return 0

    async def update_many(self, filters: Filter, update: Update) -> int:
        await asyncio.sleep(0)
        targets = self._select(filters)
        for doc in targets:
            apply_update(doc, update)
        _lazy.debug(lambda: f"memory.update_many: {self.name}({filters!r}) -> {len(targets)} updated")
        return len(targets)

    async def remove_many(self, filters: Filter) -> int:
        await asyncio.sleep(0)
        targets = [doc[ID_FIELD] for doc in self._select(filters)]
        for doc_id in targets:
            del self._documents[doc_id]

        if len(targets) > 10:
            logger.warning(
                "Bulk delete executed",
                extra={"collection": self.name, "deleted": len(targets), "operation": "memory.remove_many"},
            )
        else:
            _lazy.debug(lambda: f"memory.remove_many: {self.name} -> {len(targets)} removed")
        return len(targets)

    async def count(self, filters: Filter) -> int:
        await asyncio.sleep(0)
        return len(self._select(filters))


__all__ = [
    "MemoryDocumentStore",
]
