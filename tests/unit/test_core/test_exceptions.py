"""Tests for repository exceptions."""

from pathtree.core.database import exceptions as exc
from pathtree.core.database.hierarchy.cascade import CascadeResult, CascadeStatus


def test_repository_error_str_includes_details() -> None:
    error = exc.RepositoryError("boom", details={"node_id": "a"})
    assert str(error) == "boom (node_id='a')"
    assert error.message == "boom"


def test_repository_error_without_details() -> None:
    error = exc.RepositoryError("boom")
    assert str(error) == "boom"
    assert error.details == {}


def test_not_found_error_fields() -> None:
    error = exc.NotFoundError("Person", {"id": "ghost"})
    assert error.model_name == "Person"
    assert error.identifier == {"id": "ghost"}
    assert "Person not found with id='ghost'" in str(error)
    assert error.details == {"model": "Person", "id": "ghost"}


def test_configuration_error_records_option() -> None:
    error = exc.ConfigurationError("ordering is off", option="tree_ordering")
    assert error.details == {"option": "tree_ordering"}
    assert isinstance(error, exc.RepositoryError)


def test_partial_cascade_error_is_store_error() -> None:
    result = CascadeResult(
        operation="rewrite_paths",
        status=CascadeStatus.PARTIAL,
        matched=4,
        updated=2,
        unresolved_ids=["c", "d"],
    )
    error = exc.PartialCascadeError("stopped", result)
    assert isinstance(error, exc.StoreError)
    assert error.result is result
    assert error.details == {"operation": "rewrite_paths", "updated": 2, "unresolved": 2}


def test_invalid_filter_error_names_filter() -> None:
    error = exc.InvalidFilterError("bad operator", "path")
    assert error.details == {"filter": "path"}


def test_hierarchy_cycle_error_fields() -> None:
    error = exc.HierarchyCycleError("Carol", "Dann")
    assert error.node_id == "Carol"
    assert error.parent_id == "Dann"
    assert "descendants" in error.message
