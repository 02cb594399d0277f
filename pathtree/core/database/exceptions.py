"""Tree repository exceptions.

Custom exceptions for store and hierarchy operations that provide better
error messages and typing than raw driver exceptions.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathtree.core.database.hierarchy.cascade import CascadeResult


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.

    This is distinct from data-related errors (NotFoundError) and
    indicates a problem with the repository itself.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Record not found in the store.

    Raised when a referenced id (typically a parent) does not resolve
    to an existing record. The save that needed it is aborted.

    Attributes:
        model_name: Name of the record kind that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the record kind (e.g., "Category")
            identifier: Key-value pairs used in the search (e.g., {"id": "abc"})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class ConfigurationError(RepositoryError):
    """Operation unavailable under the current tree configuration.

    Raised before any store access, e.g. when sibling ordering is
    requested on a tree that was configured without it.
    """

    def __init__(self, message: str, option: str | None = None):
        """Initialize configuration error.

        Args:
            message: Error description
            option: Name of the setting that must be changed (if applicable)
        """
        details = {"option": option} if option else {}
        super().__init__(message, details=details)


class StoreError(RepositoryError):
    """Failure reported by the underlying document store.

    Connectivity problems, constraint violations and timeouts all surface
    as StoreError. The driver exception, when there is one, is chained as
    ``__cause__``. Nothing is retried at this layer.
    """


class PartialCascadeError(StoreError):
    """A cascade stopped after some of the affected records were updated.

    Records already rewritten by other workers stay rewritten; there is
    no rollback. ``result`` lists what was applied and which ids were left
    unresolved so callers can re-validate or repair the subtree before
    trusting path-prefix queries again.

    Attributes:
        result: CascadeResult describing the partial application
    """

    def __init__(self, message: str, result: CascadeResult):
        """Initialize partial cascade error.

        Args:
            message: Error description
            result: Outcome of the interrupted cascade
        """
        self.result = result
        super().__init__(
            message,
            details={
                "operation": result.operation,
                "updated": result.updated,
                "unresolved": len(result.unresolved_ids),
            },
        )


class InvalidFilterError(RepositoryError):
    """Invalid filter, projection or update specification.

    Raised when filter parameters are malformed, reference non-existent
    fields, or use operators the store does not understand.
    """

    def __init__(self, message: str, filter_name: str | None = None):
        """Initialize invalid filter error.

        Args:
            message: Error description
            filter_name: Name of the problematic filter (if applicable)
        """
        details = {"filter": filter_name} if filter_name else {}
        super().__init__(message, details=details)


class HierarchyCycleError(RepositoryError):
    """Reparenting would make a node its own ancestor."""

    def __init__(self, node_id: Any, parent_id: Any):
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(
            "Cannot move a node under itself or one of its descendants",
            details={"node_id": node_id, "parent_id": parent_id},
        )


__all__ = [
    "ConfigurationError",
    "HierarchyCycleError",
    "InvalidFilterError",
    "NotFoundError",
    "PartialCascadeError",
    "RepositoryError",
    "StoreError",
]
