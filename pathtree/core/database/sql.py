"""Document store over an async SQLAlchemy model.

Each store call opens a short-lived session from the given
``async_sessionmaker`` and commits before returning, so the store never
holds a connection between calls. Filters, updates and sorts are compiled
with ``pathtree.core.database.filters``.

Unsorted streams are read in primary-key keyset batches, one session per
batch; sorted streams are read in a single query. Either way no cursor stays
open while the caller writes.

SQLite allows a single writer at a time, so on that dialect every statement
goes through one in-process lock.

Example:
    engine = create_async_engine("sqlite+aiosqlite:///tree.db")
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    store = SQLAlchemyDocumentStore(session_factory, Category)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, inspect, select, update
from sqlalchemy.exc import SQLAlchemyError

from pathtree.core.database.exceptions import ConfigurationError, StoreError
from pathtree.core.database.filters import (
    ID_FIELD,
    compile_filter,
    compile_sort,
    compile_update,
    is_inclusion,
    normalize_projection,
)
from pathtree.infra.logging import get_lazy_logger, lazy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql import Executable

    from pathtree.core.database.filters import Document, Filter, Projection, Sort, Update

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


def _uuid_id() -> str:
    return str(uuid.uuid4())


class SQLAlchemyDocumentStore:
    """DocumentStore backed by one mapped table.

    Args:
        session_factory: Factory for AsyncSession objects
        model: Declarative model using HierarchicalMixin or OrderedHierarchicalMixin
        id_factory: Callable producing new ids (default: uuid4 strings)
        batch_size: Rows per keyset batch when streaming unsorted results
        serialize_writes: Serialize statements in-process; None enables it
            for SQLite only

    Raises:
        ConfigurationError: If the model lacks the tree columns
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[Any],
        *,
        id_factory: Callable[[], Any] | None = None,
        batch_size: int = 500,
        serialize_writes: bool | None = None,
    ) -> None:
        mapper = inspect(model)
        self._fields = [attr.key for attr in mapper.column_attrs]
        missing = [name for name in getattr(model, "__tree_fields__", (ID_FIELD,)) if name not in self._fields]
        if missing or ID_FIELD not in self._fields:
            raise ConfigurationError(
                f"{model.__name__} is missing tree columns: {', '.join(missing or [ID_FIELD])}",
                option="model",
            )

        self.model = model
        self.batch_size = batch_size
        self._session_factory = session_factory
        self._id_factory = id_factory or _uuid_id
        self._pk = getattr(model, ID_FIELD)

        if serialize_writes is None:
            bind = session_factory.kw.get("bind")
            serialize_writes = bind is not None and bind.dialect.name == "sqlite"
        self._lock: asyncio.Lock | None = asyncio.Lock() if serialize_writes else None

    @property
    def name(self) -> str:
        return self.model.__name__

    def new_id(self) -> Any:
        return self._id_factory()

    def _serialized(self) -> contextlib.AbstractAsyncContextManager[Any]:
        return self._lock if self._lock is not None else contextlib.nullcontext()

    def _columns(self, fields: Projection | None) -> tuple[list[str], bool]:
        """Columns to select for a projection, and whether to drop the id afterwards."""
        projection = normalize_projection(fields)
        if not projection:
            return list(self._fields), False

        drop_id = projection.get(ID_FIELD, True) is False
        if is_inclusion(projection):
            names = [name for name in self._fields if projection.get(name)]
        else:
            names = [name for name in self._fields if projection.get(name, True)]
        if ID_FIELD not in names:
            names.insert(0, ID_FIELD)
        return names, drop_id

    @staticmethod
    def _shape(row: Any, drop_id: bool) -> Document:
        document = dict(row)
        if drop_id:
            document.pop(ID_FIELD, None)
        return document

    async def _read(self, operation: str, stmt: Executable) -> list[Any]:
        logger.debug("%s: %s", operation, lazy(lambda: stmt))
        async with self._serialized():
            try:
                async with self._session_factory() as session:
                    result = await session.execute(stmt)
                    return list(result.mappings().all())
            except SQLAlchemyError as exc:
                raise StoreError(
                    f"{operation} failed",
                    details={"collection": self.name, "operation": operation},
                ) from exc

    async def _write(self, operation: str, stmt: Executable) -> int:
        logger.debug("%s: %s", operation, lazy(lambda: stmt))
        async with self._serialized():
            try:
                async with self._session_factory() as session, session.begin():
                    result = await session.execute(stmt)
                    return int(getattr(result, "rowcount", 0) or 0)
            except SQLAlchemyError as exc:
                raise StoreError(
                    f"{operation} failed",
                    details={"collection": self.name, "operation": operation},
                ) from exc

    async def insert_one(self, document: Document) -> Document:
        stored = dict(document)
        if stored.get(ID_FIELD) is None:
            stored[ID_FIELD] = self.new_id()
        unknown = sorted(set(stored) - set(self._fields))
        if unknown:
            raise StoreError(
                "Document has fields without columns",
                details={"collection": self.name, "fields": unknown},
            )

        await self._write("sql.insert_one", insert(self.model).values(**stored))
        _lazy.debug(lambda: f"sql.insert_one: {self.name}({stored[ID_FIELD]})")
        return stored

    async def find_one(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
    ) -> Document | None:
        names, drop_id = self._columns(fields)
        stmt = (
            select(*(getattr(self.model, name) for name in names))
            .where(*compile_filter(self.model, filters))
            .order_by(self._pk)
            .limit(1)
        )
        rows = await self._read("sql.find_one", stmt)
        return self._shape(rows[0], drop_id) if rows else None

    async def find(
        self,
        filters: Filter,
        *,
        fields: Projection | None = None,
        sort: Sort | None = None,
    ) -> AsyncIterator[Document]:
        names, drop_id = self._columns(fields)
        base = select(*(getattr(self.model, name) for name in names)).where(
            *compile_filter(self.model, filters),
        )

        if sort:
            stmt = base.order_by(*compile_sort(self.model, sort), self._pk)
            rows = await self._read("sql.find", stmt)
            _lazy.debug(lambda: f"sql.find: {self.name}({filters!r}) -> {len(rows)} rows")
            for row in rows:
                yield self._shape(row, drop_id)
            return

        last_id: Any = None
        while True:
            stmt = base.order_by(self._pk).limit(self.batch_size)
            if last_id is not None:
                stmt = stmt.where(self._pk > last_id)
            rows = await self._read("sql.find", stmt)
            _lazy.debug(lambda: f"sql.find: {self.name}({filters!r}) batch -> {len(rows)} rows")
            for row in rows:
                yield self._shape(row, drop_id)
            if len(rows) < self.batch_size:
                return
            last_id = rows[-1][ID_FIELD]

    async def update_one(self, filters: Filter, update_spec: Update) -> int:
        target = (
            select(self._pk)
            .where(*compile_filter(self.model, filters))
            .order_by(self._pk)
            .limit(1)
            .scalar_subquery()
        )
        stmt = (
            update(self.model)
            .where(self._pk == target)
            .values(**compile_update(self.model, update_spec))
            .execution_options(synchronize_session=False)
        )
        return await self._write("sql.update_one", stmt)

    async def update_many(self, filters: Filter, update_spec: Update) -> int:
        stmt = (
            update(self.model)
            .where(*compile_filter(self.model, filters))
            .values(**compile_update(self.model, update_spec))
            .execution_options(synchronize_session=False)
        )
        updated = await self._write("sql.update_many", stmt)
        _lazy.debug(lambda: f"sql.update_many: {self.name}({filters!r}) -> {updated} updated")
        return updated

    async def remove_many(self, filters: Filter) -> int:
        stmt = (
            delete(self.model)
            .where(*compile_filter(self.model, filters))
            .execution_options(synchronize_session=False)
        )
        deleted = await self._write("sql.remove_many", stmt)

        # WARNING level for bulk deletes > 10 (audit-worthy)
        if deleted > 10:
            logger.warning(
                "Bulk delete executed",
                extra={"collection": self.name, "deleted": deleted, "operation": "sql.remove_many"},
            )
        else:
            _lazy.debug(lambda: f"sql.remove_many: {self.name} -> {deleted} removed")
        return deleted

    async def count(self, filters: Filter) -> int:
        stmt = (
            select(func.count().label("total"))
            .select_from(self.model)
            .where(*compile_filter(self.model, filters))
        )
        rows = await self._read("sql.count", stmt)
        return int(rows[0]["total"]) if rows else 0


__all__ = [
    "SQLAlchemyDocumentStore",
]
