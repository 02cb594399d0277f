"""Tree behavior settings.

Controls how materialized paths are encoded, what happens to a subtree when
its root is deleted, how wide cascades fan out, and whether siblings carry
an explicit position.

Environment variables use TREE_ prefix.
Example: TREE_PATH_SEPARATOR=., TREE_ON_DELETE=REPARENT, TREE_TREE_ORDERING=true
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OnDelete(StrEnum):
    """What happens to the descendants of a deleted node."""

    DELETE = "DELETE"
    """Remove the whole subtree."""

    REPARENT = "REPARENT"
    """Promote direct children to the deleted node's parent."""


class TreeSettings(BaseSettings):
    """Materialized-path tree configuration.

    Attributes:
        path_separator: Single character joining ids inside a path.
        on_delete: Default delete policy.
        num_workers: Maximum in-flight per-document updates during a cascade.
        tree_ordering: Track a dense position among siblings.
        position_field: Name of the position field when ordering is enabled.
        wrap_children_tree: Return TreeNode objects from tree queries instead of dicts.

    Example:
        settings = TreeSettings(path_separator=".", tree_ordering=True)
        repo = TreeRepository(store, settings)
    """

    path_separator: str = Field(
        default="#",
        min_length=1,
        max_length=1,
        description="Delimiter between ids in a materialized path",
    )
    on_delete: OnDelete = Field(
        default=OnDelete.DELETE,
        description="Delete policy: DELETE removes the subtree, REPARENT promotes children",
    )
    num_workers: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Concurrency bound for cascading per-document updates",
    )
    tree_ordering: bool = Field(
        default=False,
        description="Maintain a position among siblings",
    )
    position_field: str = Field(
        default="position",
        min_length=1,
        description="Field holding the sibling position when tree_ordering is enabled",
    )
    wrap_children_tree: bool = Field(
        default=False,
        description="Tree queries return wrapped TreeNode objects instead of plain dicts",
    )

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def ordering_field(self) -> str | None:
        """Position field name, or None when ordering is disabled."""
        return self.position_field if self.tree_ordering else None
