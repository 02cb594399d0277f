"""TreeRepository against the SQLAlchemy store on SQLite."""

from __future__ import annotations

import pytest

from pathtree.core.database import (
    CascadeStatus,
    ChildrenQuery,
    HierarchyCycleError,
    NotFoundError,
    TreeQuery,
    collect,
)
from pathtree.core.settings import OnDelete


async def _rows(repo) -> dict[str, dict]:
    return {doc["id"]: doc for doc in await collect(repo.store.find({}))}


@pytest.mark.asyncio
async def test_paths_on_create(sql_repo, sql_family):
    rows = await _rows(sql_repo)
    assert rows["Dann"]["path"] == "Adam.Carol.Dann"
    assert rows["Emily"]["path"] == "Adam.Carol.Dann.Emily"
    assert rows["Eden"]["path"] == "Eden"
    assert sql_repo.level(sql_family["Dann"]) == 3


@pytest.mark.asyncio
async def test_delete_subtree(sql_repo, sql_family):
    result = await sql_repo.delete(sql_family["Carol"])

    assert result.status is CascadeStatus.APPLIED
    assert sorted(await _rows(sql_repo)) == ["Adam", "Bob", "Eden", "Falko"]


@pytest.mark.asyncio
async def test_delete_with_reparent_policy(sql_repo, sql_family):
    await sql_repo.delete(sql_family["Carol"], policy=OnDelete.REPARENT)

    rows = await _rows(sql_repo)
    assert len(rows) == 6
    assert rows["Dann"]["parent"] == "Adam"
    assert rows["Dann"]["path"] == "Adam.Dann"
    assert rows["Emily"]["path"] == "Adam.Dann.Emily"


@pytest.mark.asyncio
async def test_reparent_rewrites_descendants(sql_repo, sql_family):
    result = await sql_repo.reparent(sql_family["Carol"], sql_family["Bob"])

    assert result.updated == 2
    rows = await _rows(sql_repo)
    assert rows["Carol"]["path"] == "Adam.Bob.Carol"
    assert rows["Carol"]["position"] == 0
    assert rows["Dann"]["path"] == "Adam.Bob.Carol.Dann"
    assert rows["Emily"]["path"] == "Adam.Bob.Carol.Dann.Emily"


@pytest.mark.asyncio
async def test_cycle_is_rejected(sql_repo, sql_family):
    with pytest.raises(HierarchyCycleError):
        await sql_repo.reparent(sql_family["Adam"], sql_family["Dann"])
    assert (await _rows(sql_repo))["Adam"]["parent"] is None


@pytest.mark.asyncio
async def test_unknown_parent(sql_repo):
    with pytest.raises(NotFoundError):
        await sql_repo.create({"id": "Orphan", "parent": "Ghost"})
    assert await sql_repo.store.count({}) == 0


@pytest.mark.asyncio
async def test_move_to_position(sql_repo, sql_family):
    await sql_repo.move_to_position(sql_family["Falko"], 1)

    siblings = await sql_repo.get_children(sql_family["Adam"])
    assert [node.id for node in siblings] == ["Bob", "Falko", "Carol"]
    assert [node.position for node in siblings] == [0, 1, 2]


@pytest.mark.asyncio
async def test_navigation(sql_repo, sql_family):
    ancestors = await sql_repo.get_ancestors(sql_family["Emily"])
    assert [node.id for node in ancestors] == ["Adam", "Carol", "Dann"]

    siblings = await sql_repo.get_siblings(sql_family["Bob"])
    assert [node.id for node in siblings] == ["Carol", "Falko"]

    descendants = await sql_repo.get_children(sql_family["Carol"], ChildrenQuery(recursive=True))
    assert sorted(node.id for node in descendants) == ["Dann", "Emily"]


@pytest.mark.asyncio
async def test_children_tree(sql_repo, sql_family):
    tree = await sql_repo.get_children_tree(query=TreeQuery(sort={"name": -1}, fields=["name"]))

    assert [node["name"] for node in tree] == ["Eden", "Adam"]
    adam = tree[1]
    assert [node["name"] for node in adam["children"]] == ["Falko", "Carol", "Bob"]
    assert adam["children"][1]["children"][0]["path"] == "Adam.Carol.Dann"
