"""Cached settings loaders.

Each loader builds its settings object once per process. Tests that need a
different configuration construct settings directly or call
``cache_clear()`` on the loader.
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .tree import TreeSettings


@lru_cache(maxsize=1)
def get_tree_settings() -> TreeSettings:
    """Get cached tree settings.

    Returns:
        Validated and frozen TreeSettings instance.
    """
    return TreeSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear every cached settings object (tests use this after changing env vars)."""
    get_tree_settings.cache_clear()
    get_logging_settings.cache_clear()
