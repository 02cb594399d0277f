"""Tests for sibling positions and positional moves."""

from __future__ import annotations

import pytest

from pathtree.core.database import (
    ConfigurationError,
    MemoryDocumentStore,
    NotFoundError,
    RepositoryError,
    TreeRepository,
    collect,
)
from pathtree.core.database.hierarchy.ordering import ORDERING_DISABLED_MESSAGE
from tests.fixtures.tree import build_family


async def _positions(repo: TreeRepository, parent: str | None) -> dict[str, int]:
    docs = await collect(repo.store.find({"parent": parent}))
    return {doc["id"]: doc["position"] for doc in docs}


@pytest.mark.asyncio
async def test_default_positions_follow_save_order(repo, family):
    assert await _positions(repo, "Adam") == {"Bob": 0, "Carol": 1, "Falko": 2}
    assert await _positions(repo, None) == {"Adam": 0, "Eden": 1}
    assert family["Dann"].position == 0


@pytest.mark.asyncio
async def test_default_position_skips_gaps(repo, family):
    await repo.delete(family["Bob"])
    gus = await repo.create({"id": "Gus", "parent": family["Adam"]})
    # Highest + 1; the gap left by Bob stays
    assert gus.position == 3
    assert await _positions(repo, "Adam") == {"Carol": 1, "Falko": 2, "Gus": 3}


@pytest.mark.asyncio
async def test_move_backward_shifts_range_up(repo, family):
    """Three siblings at 0,1,2; moving the one at 2 to 1."""
    falko = family["Falko"]
    await repo.move_to_position(falko, 1)

    assert falko.position == 1
    assert not falko.is_modified()
    assert await _positions(repo, "Adam") == {"Bob": 0, "Falko": 1, "Carol": 2}


@pytest.mark.asyncio
async def test_move_forward_shifts_range_down(repo, family):
    await repo.move_to_position(family["Bob"], 2)
    assert await _positions(repo, "Adam") == {"Carol": 0, "Falko": 1, "Bob": 2}


@pytest.mark.asyncio
async def test_move_clamps_target(repo, family):
    await repo.move_to_position(family["Bob"], 100500)
    assert family["Bob"].position == 2

    await repo.move_to_position(family["Bob"], -4)
    assert family["Bob"].position == 0
    assert sorted((await _positions(repo, "Adam")).values()) == [0, 1, 2]


@pytest.mark.asyncio
async def test_move_to_same_position_is_noop(repo, family):
    before = await _positions(repo, "Adam")
    await repo.move_to_position(family["Carol"], 1)
    assert await _positions(repo, "Adam") == before


@pytest.mark.asyncio
async def test_move_restores_density_after_gap(repo, family):
    await repo.delete(family["Bob"])
    await repo.move_to_position(family["Falko"], 0)
    assert await _positions(repo, "Adam") == {"Falko": 0, "Carol": 2}
    # The held Carol still says 1; the store says 2
    await repo.move_to_position(family["Carol"], 1)
    assert sorted((await _positions(repo, "Adam")).values()) == [0, 1]


@pytest.mark.asyncio
async def test_successive_moves_on_held_nodes(repo, family):
    await repo.move_to_position(family["Falko"], 0)
    await repo.move_to_position(family["Carol"], 0)

    assert await _positions(repo, "Adam") == {"Carol": 0, "Falko": 1, "Bob": 2}
    assert family["Carol"].position == 0


@pytest.mark.asyncio
async def test_move_deleted_node_raises_not_found(repo, family):
    falko = family["Falko"]
    await repo.delete(falko)
    with pytest.raises(NotFoundError):
        await repo.move_to_position(falko, 0)


@pytest.mark.asyncio
async def test_move_unpositioned_node_inserts(repo, family):
    await repo.store.update_one({"id": "Falko"}, {"$set": {"position": None}})
    falko = await repo.get("Falko")

    await repo.move_to_position(falko, 0)

    assert await _positions(repo, "Adam") == {"Falko": 0, "Bob": 1, "Carol": 2}


@pytest.mark.asyncio
async def test_move_requires_ordering(unordered_settings):
    """moveToPosition on a tree without ordering fails and changes nothing."""
    store = MemoryDocumentStore()
    repo = TreeRepository(store, unordered_settings)
    nodes = await build_family(repo)
    before = await collect(store.find({}))

    with pytest.raises(ConfigurationError) as exc_info:
        await repo.move_to_position(nodes["Falko"], 0)

    assert exc_info.value.message == ORDERING_DISABLED_MESSAGE
    assert exc_info.value.details == {"option": "tree_ordering"}
    assert await collect(store.find({})) == before
    assert all("position" not in doc for doc in before)


@pytest.mark.asyncio
async def test_move_rejects_unsaved_node(repo):
    with pytest.raises(RepositoryError):
        await repo.move_to_position(repo.new(id="ghost"), 0)


@pytest.mark.asyncio
async def test_move_rejects_pending_reparent(repo, family):
    bob = family["Bob"]
    bob.parent = family["Eden"]
    with pytest.raises(RepositoryError, match="parent change"):
        await repo.move_to_position(bob, 0)
