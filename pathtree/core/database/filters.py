"""Filter, update, projection and sort specifications for document stores.

The tree core talks to its store in a small, Mongo-flavoured vocabulary so
the same cascade and ordering code runs against any backend:

    {"parent": node_id}                                exact match
    {"id": {"$ne": node_id}, "parent": parent_id}      not-equal
    {"id": {"$in": [a, b, c]}}                         set membership
    {"position": {"$gt": 1, "$lte": 4}}                range
    {"path": {"$regex": "^a\\#b\\#"}}                  anchored regex

Updates use ``$set`` and ``$inc``. Projections map field names to truthy
(include) or falsy (exclude) values. Sorts map field names to ``1``/``-1``.

Helpers come in two flavours: pure-Python evaluation for in-memory documents
(``matches``, ``apply_update``, ``apply_projection``, ``sort_documents``) and
SQLAlchemy compilation for mapped models (``compile_filter``,
``compile_update``, ``compile_sort``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeAlias

from sqlalchemy import or_

from pathtree.core.database.exceptions import InvalidFilterError

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

Document: TypeAlias = dict[str, Any]
Filter: TypeAlias = Mapping[str, Any]
Update: TypeAlias = Mapping[str, Mapping[str, Any]]
Projection: TypeAlias = Mapping[str, Any] | Sequence[str]
Sort: TypeAlias = Mapping[str, int]

ID_FIELD = "id"
ASCENDING = 1
DESCENDING = -1

COMPARISON_OPERATORS = frozenset({"$in", "$ne", "$gt", "$gte", "$lt", "$lte", "$regex"})
UPDATE_OPERATORS = frozenset({"$set", "$inc"})


def _is_operator_spec(condition: Any) -> bool:
    return isinstance(condition, Mapping) and any(
        isinstance(key, str) and key.startswith("$") for key in condition
    )


def _check_operators(field: str, condition: Mapping[str, Any]) -> None:
    for operator in condition:
        if operator not in COMPARISON_OPERATORS:
            raise InvalidFilterError(f"Unsupported filter operator {operator!r}", field)


def _compare(operator: str, value: Any, operand: Any) -> bool:
    if operator == "$in":
        return value in operand
    if operator == "$ne":
        return value != operand
    if operator == "$regex":
        return isinstance(value, str) and re.search(operand, value) is not None
    # Range operators never match missing values
    if value is None or operand is None:
        return False
    try:
        if operator == "$gt":
            return value > operand
        if operator == "$gte":
            return value >= operand
        if operator == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        return False


def matches(document: Mapping[str, Any], filters: Filter | None) -> bool:
    """Evaluate a filter against an in-memory document.

    Args:
        document: Document to test
        filters: Filter specification (None or empty matches everything)

    Returns:
        True if every condition holds

    Raises:
        InvalidFilterError: If an unknown operator is used
    """
    if not filters:
        return True

    for field, condition in filters.items():
        value = document.get(field)
        if _is_operator_spec(condition):
            _check_operators(field, condition)
            if not all(_compare(op, value, operand) for op, operand in condition.items()):
                return False
        elif value != condition:
            return False
    return True


def apply_update(document: Document, update: Update) -> Document:
    """Apply ``$set``/``$inc`` operators to a document in place.

    Args:
        document: Document to modify
        update: Update specification

    Returns:
        The same document, modified

    Raises:
        InvalidFilterError: If an unknown update operator is used
    """
    for operator, fields in update.items():
        if operator not in UPDATE_OPERATORS:
            raise InvalidFilterError(f"Unsupported update operator {operator!r}")
        for field, value in fields.items():
            if operator == "$set":
                document[field] = value
            else:
                document[field] = (document.get(field) or 0) + value
    return document


def normalize_projection(fields: Projection | None) -> dict[str, bool] | None:
    """Turn a projection into a ``{field: included}`` mapping.

    A sequence of names is an inclusion projection.
    """
    if fields is None:
        return None
    if isinstance(fields, str):
        raise InvalidFilterError("Projection must be a mapping or a sequence of field names")
    if isinstance(fields, Mapping):
        return {name: bool(flag) for name, flag in fields.items()}
    return dict.fromkeys(fields, True)


def is_inclusion(projection: Mapping[str, bool]) -> bool:
    """Whether a normalized projection selects fields rather than dropping them.

    The id flag decides only when it is the sole entry: ``{"id": 1}`` selects
    the id alone, ``{"id": 0}`` drops it.
    """
    flags = [flag for name, flag in projection.items() if name != ID_FIELD]
    if flags:
        return any(flags)
    return bool(projection.get(ID_FIELD))


def apply_projection(document: Mapping[str, Any], fields: Projection | None) -> Document:
    """Return a copy of a document restricted by a projection.

    The id is always kept unless it is excluded explicitly.
    """
    projection = normalize_projection(fields)
    if not projection:
        return dict(document)

    if is_inclusion(projection):
        keep = {name for name, flag in projection.items() if flag}
        if projection.get(ID_FIELD, True):
            keep.add(ID_FIELD)
        return {name: value for name, value in document.items() if name in keep}

    drop = {name for name, flag in projection.items() if not flag}
    return {name: value for name, value in document.items() if name not in drop}


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Nulls first, like the document stores this vocabulary comes from
    return (value is not None, value)


def sort_documents(documents: list[Document], sort: Sort | None) -> list[Document]:
    """Sort documents in place by one or more fields.

    Args:
        documents: Documents to sort
        sort: Mapping of field to direction, most significant first

    Returns:
        The same list, sorted
    """
    if not sort:
        return documents
    # Stable sorts applied least significant first
    for field, direction in reversed(list(sort.items())):
        documents.sort(key=lambda doc: _sort_key(doc.get(field)), reverse=direction < 0)
    return documents


def _column(model: type[Any], field: str) -> Any:
    column = getattr(model, field, None)
    if column is None or not hasattr(column, "expression"):
        raise InvalidFilterError(f"{model.__name__} has no column {field!r}", field)
    return column


def compile_filter(model: type[Any], filters: Filter | None) -> list[ColumnElement[bool]]:
    """Compile a filter into SQLAlchemy WHERE clauses for a mapped model.

    Example:
        stmt = select(Category).where(*compile_filter(Category, {"parent": None}))

    Raises:
        InvalidFilterError: For unknown columns or operators
    """
    clauses: list[ColumnElement[bool]] = []
    if not filters:
        return clauses

    for field, condition in filters.items():
        column = _column(model, field)
        if not _is_operator_spec(condition):
            clauses.append(column.is_(None) if condition is None else column == condition)
            continue

        _check_operators(field, condition)
        for operator, operand in condition.items():
            if operator == "$in":
                clauses.append(column.in_(list(operand)))
            elif operator == "$ne":
                if operand is None:
                    clauses.append(column.is_not(None))
                else:
                    clauses.append(or_(column != operand, column.is_(None)))
            elif operator == "$regex":
                clauses.append(column.regexp_match(operand))
            elif operator == "$gt":
                clauses.append(column > operand)
            elif operator == "$gte":
                clauses.append(column >= operand)
            elif operator == "$lt":
                clauses.append(column < operand)
            else:
                clauses.append(column <= operand)
    return clauses


def compile_update(model: type[Any], update: Update) -> dict[str, Any]:
    """Compile ``$set``/``$inc`` into an ``UPDATE ... SET`` values mapping."""
    values: dict[str, Any] = {}
    for operator, fields in update.items():
        if operator not in UPDATE_OPERATORS:
            raise InvalidFilterError(f"Unsupported update operator {operator!r}")
        for field, value in fields.items():
            column = _column(model, field)
            values[field] = value if operator == "$set" else column + value
    return values


def compile_sort(model: type[Any], sort: Sort | None) -> list[Any]:
    """Compile a sort mapping into ORDER BY expressions (nulls first)."""
    if not sort:
        return []
    order_by = []
    for field, direction in sort.items():
        column = _column(model, field)
        if direction < 0:
            order_by.append(column.desc().nulls_last())
        else:
            order_by.append(column.asc().nulls_first())
    return order_by


__all__ = [
    "ASCENDING",
    "DESCENDING",
    "ID_FIELD",
    "Document",
    "Filter",
    "Projection",
    "Sort",
    "Update",
    "apply_projection",
    "apply_update",
    "compile_filter",
    "compile_sort",
    "compile_update",
    "is_inclusion",
    "matches",
    "normalize_projection",
    "sort_documents",
]
