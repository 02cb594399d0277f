"""Tests for CascadePropagator: bounded fan-out and partial failure reporting."""

from __future__ import annotations

import asyncio
import logging

import pytest

from pathtree.core.database import MemoryDocumentStore, PartialCascadeError, StoreError, collect
from pathtree.core.database.hierarchy import (
    CascadePropagator,
    CascadeResult,
    CascadeStatus,
    PathCodec,
    TreeNode,
)


class InstrumentedStore(MemoryDocumentStore):
    """Memory store that records update concurrency and can fail chosen ids."""

    def __init__(self, fail_ids: set[str] | None = None, delay: float = 0.001) -> None:
        super().__init__()
        self.fail_ids = fail_ids or set()
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def update_one(self, filters, update):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if filters.get("id") in self.fail_ids:
                raise StoreError("write timeout", details={"id": filters["id"]})
            return await super().update_one(filters, update)
        finally:
            self.in_flight -= 1


class BrokenCursorStore(MemoryDocumentStore):
    """Memory store whose find fails before yielding anything."""

    async def find(self, filters, *, fields=None, sort=None):
        raise StoreError("cursor lost")
        yield


async def _subtree(store: MemoryDocumentStore, size: int) -> None:
    """Root "r" with child "m" holding ``size`` leaves."""
    await store.insert_one({"id": "r", "parent": None, "path": "r"})
    await store.insert_one({"id": "m", "parent": "r", "path": "r#m"})
    for index in range(size):
        await store.insert_one({"id": f"l{index:02d}", "parent": "m", "path": f"r#m#l{index:02d}"})


@pytest.mark.asyncio
async def test_rewrite_paths_moves_every_descendant():
    store = MemoryDocumentStore()
    await _subtree(store, 4)
    await store.insert_one({"id": "x", "parent": None, "path": "x"})
    cascade = CascadePropagator(store, PathCodec("#"))

    result = await cascade.rewrite_paths("r#m", "x#m")

    assert result.status is CascadeStatus.APPLIED
    assert result.matched == result.updated == 4
    paths = sorted(doc["path"] async for doc in store.find({"parent": "m"}))
    assert paths == [f"x#m#l{index:02d}" for index in range(4)]
    # The moved node itself is the caller's job
    assert (await store.find_one({"id": "m"}))["path"] == "r#m"


@pytest.mark.asyncio
async def test_rewrite_paths_without_previous_path_is_not_attempted():
    cascade = CascadePropagator(MemoryDocumentStore(), PathCodec("#"))
    result = await cascade.rewrite_paths("", "a")
    assert result.status is CascadeStatus.NOT_ATTEMPTED
    assert not result.attempted


@pytest.mark.asyncio
async def test_concurrency_is_bounded_by_num_workers():
    store = InstrumentedStore()
    await _subtree(store, 20)
    cascade = CascadePropagator(store, PathCodec("#"), num_workers=3)

    result = await cascade.rewrite_paths("r", "z")

    assert result.updated == 21
    assert store.peak == 3
    assert store.in_flight == 0


@pytest.mark.asyncio
async def test_single_worker_runs_sequentially():
    store = InstrumentedStore()
    await _subtree(store, 5)
    cascade = CascadePropagator(store, PathCodec("#"), num_workers=1)

    await cascade.rewrite_paths("r", "z")

    assert store.peak == 1


@pytest.mark.asyncio
async def test_failure_reports_partial_result(caplog):
    store = InstrumentedStore(fail_ids={"l03"})
    await _subtree(store, 10)
    cascade = CascadePropagator(store, PathCodec("#"), num_workers=2)

    with caplog.at_level(logging.WARNING), pytest.raises(PartialCascadeError) as exc_info:
        await cascade.rewrite_paths("r#m", "q#m")

    result = exc_info.value.result
    assert result.status is CascadeStatus.PARTIAL
    assert isinstance(exc_info.value.__cause__, StoreError)
    assert "l03" in result.unresolved_ids
    assert result.matched == 10
    assert result.updated + len(result.unresolved_ids) == result.matched
    # Updates already applied stay applied
    rewritten = await store.count({"path": {"$regex": r"^q\#m\#"}})
    assert rewritten == result.updated
    # Every started update finished before the error surfaced
    assert store.in_flight == 0
    assert any(record.getMessage() == "Cascade failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_stream_failure_before_any_update_is_not_attempted():
    store = BrokenCursorStore()
    await _subtree(store, 3)
    cascade = CascadePropagator(store, PathCodec("#"))

    with pytest.raises(PartialCascadeError) as exc_info:
        await cascade.rewrite_paths("r#m", "q#m")

    result = exc_info.value.result
    assert result.status is CascadeStatus.NOT_ATTEMPTED
    assert result.matched == 0
    assert result.updated == 0
    assert isinstance(exc_info.value.__cause__, StoreError)
    assert (await store.find_one({"id": "l00"}))["path"] == "r#m#l00"


@pytest.mark.asyncio
async def test_stream_failure_after_relink_is_partial():
    store = BrokenCursorStore()
    await _subtree(store, 2)
    cascade = CascadePropagator(store, PathCodec("#"))
    node = TreeNode({"id": "m", "parent": "r", "path": "r#m"}, is_new=False)

    with pytest.raises(PartialCascadeError) as exc_info:
        await cascade.reparent_children(node)

    result = exc_info.value.result
    assert result.status is CascadeStatus.PARTIAL
    assert result.relinked == 2
    assert (await store.find_one({"id": "l00"}))["parent"] == "r"


@pytest.mark.asyncio
async def test_delete_subtree_removes_descendants_only():
    store = MemoryDocumentStore()
    await _subtree(store, 3)
    await store.insert_one({"id": "rm", "parent": None, "path": "rm"})
    cascade = CascadePropagator(store, PathCodec("#"))
    node = TreeNode({"id": "r", "parent": None, "path": "r"}, is_new=False)

    result = await cascade.delete_subtree(node)

    assert result.status is CascadeStatus.APPLIED
    assert result.updated == 4
    remaining = sorted(doc["id"] for doc in await collect(store.find({})))
    assert remaining == ["r", "rm"]


@pytest.mark.asyncio
async def test_reparent_children_promotes_and_compacts():
    store = MemoryDocumentStore()
    await _subtree(store, 2)
    await store.insert_one({"id": "g", "parent": "l00", "path": "r#m#l00#g"})
    cascade = CascadePropagator(store, PathCodec("#"))
    node = TreeNode({"id": "m", "parent": "r", "path": "r#m"}, is_new=False)

    result = await cascade.reparent_children(node)

    assert result.relinked == 2
    assert result.updated == 3
    docs = {doc["id"]: doc for doc in await collect(store.find({}))}
    assert docs["l00"]["parent"] == "r"
    assert docs["l00"]["path"] == "r#l00"
    assert docs["g"]["parent"] == "l00"
    assert docs["g"]["path"] == "r#l00#g"


@pytest.mark.asyncio
async def test_reparent_children_of_root_makes_them_roots():
    store = MemoryDocumentStore()
    await _subtree(store, 1)
    cascade = CascadePropagator(store, PathCodec("#"))
    node = TreeNode({"id": "r", "parent": None, "path": "r"}, is_new=False)

    await cascade.reparent_children(node)

    m = await store.find_one({"id": "m"})
    assert m["parent"] is None
    assert m["path"] == "m"
    assert (await store.find_one({"id": "l00"}))["path"] == "m#l00"


@pytest.mark.asyncio
async def test_unsaved_node_cascades_are_skipped():
    cascade = CascadePropagator(MemoryDocumentStore(), PathCodec("#"))
    node = TreeNode({"id": "n"})
    assert (await cascade.delete_subtree(node)).status is CascadeStatus.NOT_ATTEMPTED
    assert (await cascade.reparent_children(node)).status is CascadeStatus.NOT_ATTEMPTED


def test_num_workers_must_be_positive():
    with pytest.raises(ValueError):
        CascadePropagator(MemoryDocumentStore(), PathCodec(), num_workers=0)


def test_result_to_dict():
    result = CascadeResult("rewrite_paths", CascadeStatus.APPLIED, matched=2, updated=2)
    assert result.fully_applied
    assert result.to_dict()["status"] == "applied"
