"""Materialized path encoding and prefix patterns.

A materialized path is the chain of ancestor ids, root first, joined by a
single separator character and ending in the node's own id:

- "adam"                  root node
- "adam#carol#dann"       grandchild of adam

Paths are plain strings so any store with an anchored regex (or prefix)
match can answer "every descendant of X" with one query. Ids are generated
by the store and the separator is configurable, so both are regex-escaped
before they go into a pattern.
"""

from __future__ import annotations

import re
from typing import Any

DEFAULT_SEPARATOR = "#"


class PathCodec:
    """Build, parse and pattern-match materialized paths.

    Example:
        >>> codec = PathCodec(".")
        >>> codec.build_path("adam.carol", "dann")
        'adam.carol.dann'
        >>> codec.level("adam.carol.dann")
        3
        >>> codec.prefix_pattern("adam.carol")
        '^adam\\\\.carol\\\\.'
        >>> codec.rebase("adam.carol.dann", "adam.carol", "adam.bob.carol")
        'adam.bob.carol.dann'
    """

    __slots__ = ("separator",)

    def __init__(self, separator: str = DEFAULT_SEPARATOR) -> None:
        """Initialize codec.

        Args:
            separator: Single character placed between ids

        Raises:
            ValueError: If the separator is not exactly one character
        """
        if len(separator) != 1:
            raise ValueError(f"Path separator must be a single character, got {separator!r}")
        self.separator = separator

    def build_path(self, ancestor_path: str | None, node_id: Any) -> str:
        """Path of a node given its parent's path.

        Args:
            ancestor_path: Parent path, empty or None for a root
            node_id: The node's own id

        Returns:
            ``ancestor_path + separator + node_id``, or just the id for a root
        """
        if not ancestor_path:
            return str(node_id)
        return f"{ancestor_path}{self.separator}{node_id}"

    def segments(self, path: str | None) -> list[str]:
        """Ids in a path, root first. Empty for an empty path."""
        if not path:
            return []
        return path.split(self.separator)

    def level(self, path: str | None) -> int:
        """Number of segments (0 for an empty path, 1 for a root)."""
        return len(self.segments(path))

    def ancestor_ids(self, path: str | None) -> list[str]:
        """Ids of every ancestor, root first, excluding the node itself."""
        return self.segments(path)[:-1]

    def escape_for_regex(self, value: Any) -> str:
        """Backslash-escape regex metacharacters in ``value``."""
        return re.escape(str(value))

    def prefix_pattern(self, path: str) -> str:
        """Anchored pattern matching every descendant path of ``path``.

        The trailing separator keeps the path itself (and unrelated paths
        sharing a textual prefix, like "ab" for "a") out of the match.
        """
        return f"^{self.escape_for_regex(path)}{self.escape_for_regex(self.separator)}"

    def segment_pattern(self, node_id: Any) -> str:
        """Pattern matching paths that contain ``node_id`` as an interior segment."""
        sep = self.escape_for_regex(self.separator)
        return f"(?:^|{sep}){self.escape_for_regex(node_id)}{sep}"

    def is_descendant_path(self, path: str | None, ancestor_path: str) -> bool:
        """Whether ``path`` lies strictly below ``ancestor_path``."""
        return bool(path) and path.startswith(f"{ancestor_path}{self.separator}")

    def rebase(self, path: str, previous_prefix: str, new_prefix: str) -> str:
        """Replace the ``previous_prefix`` of ``path`` with ``new_prefix``.

        Raises:
            ValueError: If ``path`` is not a descendant of ``previous_prefix``
        """
        if not self.is_descendant_path(path, previous_prefix):
            raise ValueError(f"{path!r} is not below {previous_prefix!r}")
        return f"{new_prefix}{path[len(previous_prefix):]}"

    def strip_segment(self, path: str, node_id: Any) -> str:
        """Drop the ``node_id`` segment from ``path``, leaving the rest intact."""
        target = str(node_id)
        return self.separator.join(segment for segment in self.segments(path) if segment != target)

    def __repr__(self) -> str:
        return f"PathCodec({self.separator!r})"


__all__ = [
    "DEFAULT_SEPARATOR",
    "PathCodec",
]
