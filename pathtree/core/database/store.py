"""Abstract document store used by the tree core.

The hierarchy code never touches a driver directly. It issues filter and
update specifications (see ``pathtree.core.database.filters``) to an object
implementing ``DocumentStore`` and consumes the resulting documents, either
one at a time or as an async stream.

Implementations:
    - MemoryDocumentStore: dict-backed, for tests and embedded use
    - SQLAlchemyDocumentStore: async SQLAlchemy over a mapped model

Every method is a suspension point; no implementation is expected to offer
multi-document transactions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pathtree.core.database.filters import Document, Filter, Projection, Sort, Update


@runtime_checkable
class DocumentStore(Protocol):
    """Contract between the tree core and a flat document collection."""

    def new_id(self) -> Any:
        """Return a fresh unique id for a record about to be created."""
        ...

    async def insert_one(self, document: Document) -> Document:
        """Persist a new document and return it as stored."""
        ...

    async def find_one(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
    ) -> Document | None:
        """Return the first document matching ``filters`` or None."""
        ...

    def find(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
        sort: Sort | None = None,
    ) -> AsyncIterator[Document]:
        """Stream every document matching ``filters``."""
        ...

    async def update_one(self, filters: Filter, update: Update) -> int:
        """Apply ``update`` to the first matching document; return 0 or 1."""
        ...

    async def update_many(self, filters: Filter, update: Update) -> int:
        """Apply ``update`` to every matching document; return the count."""
        ...

    async def remove_many(self, filters: Filter) -> int:
        """Delete every matching document; return the count."""
        ...

    async def count(self, filters: Filter) -> int:
        """Count matching documents."""
        ...


async def collect(stream: AsyncIterator[Document]) -> list[Document]:
    """Drain a document stream into a list."""
    return [document async for document in stream]


__all__ = [
    "DocumentStore",
    "collect",
]
