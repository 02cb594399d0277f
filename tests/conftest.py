"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: explicit TreeSettings, no environment lookups
    - Store Fixtures: in-memory store and SQLite-backed SQLAlchemy store
    - Tree Fixtures: repositories and the family tree from tests.fixtures.tree
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from pathtree.core.database import (
    Base,
    MemoryDocumentStore,
    SQLAlchemyDocumentStore,
    TreeRepository,
)
from pathtree.core.settings import TreeSettings
from tests.fixtures.tree import Category, build_family

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from pathtree.core.database import TreeNode


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def tree_settings() -> TreeSettings:
    """Dot separator with sibling ordering enabled."""
    return TreeSettings(path_separator=".", tree_ordering=True)


@pytest.fixture
def unordered_settings() -> TreeSettings:
    """Dot separator without sibling ordering."""
    return TreeSettings(path_separator=".", tree_ordering=False)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore(name="family")


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Async engine on a temporary SQLite file with the test tables created.

    A file database (not ``:memory:``) so every pooled connection sees the
    same tables.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tree.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SQLAlchemyDocumentStore:
    return SQLAlchemyDocumentStore(session_factory, Category, batch_size=3)


# ============================================================================
# Tree Fixtures
# ============================================================================


@pytest.fixture
def repo(memory_store: MemoryDocumentStore, tree_settings: TreeSettings) -> TreeRepository:
    return TreeRepository(memory_store, tree_settings, model_name="Person")


@pytest.fixture
async def family(repo: TreeRepository) -> dict[str, TreeNode]:
    """The family tree saved through ``repo``."""
    return await build_family(repo)


@pytest.fixture
def sql_repo(sql_store: SQLAlchemyDocumentStore, tree_settings: TreeSettings) -> TreeRepository:
    return TreeRepository(sql_store, tree_settings, model_name="Category")


@pytest.fixture
async def sql_family(sql_repo: TreeRepository) -> dict[str, TreeNode]:
    """The family tree saved through the SQLite-backed repository."""
    return await build_family(sql_repo)
