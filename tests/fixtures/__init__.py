"""Test fixtures for pytest.

This module re-exports the shared tree model and family builder.
"""

from .tree import FAMILY, Category, build_family

__all__ = [
    "FAMILY",
    "Category",
    "build_family",
]
