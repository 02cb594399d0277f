"""Pydantic Settings v2 configuration.

Import settings via cached loaders:
    from pathtree.core.settings import get_tree_settings

    settings = get_tree_settings()
    print(settings.path_separator)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .loader import clear_all_caches, get_logging_settings, get_tree_settings
from .logs import LoggingSettings, LogLevel
from .tree import OnDelete, TreeSettings

__all__ = [
    "LogLevel",
    "LoggingSettings",
    "OnDelete",
    "TreeSettings",
    "clear_all_caches",
    "get_logging_settings",
    "get_tree_settings",
]
