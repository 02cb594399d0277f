"""Logging infrastructure.

Basic usage:
    import logging

    logger = logging.getLogger(__name__)
    logger.info("Cascade completed", extra={"operation": "rewrite_paths", "updated": 3})

    # Lazy evaluation for expensive debug output
    from pathtree.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Subtree: {dump(subtree)}")  # Only runs if DEBUG enabled

    # Configure output once, at the application entrypoint
    from pathtree.infra.logging import setup_logging

    setup_logging()
"""

from pathtree.infra.logging.config import configure_logging, setup_logging
from pathtree.infra.logging.formatters import JSONFormatter
from pathtree.infra.logging.lazy import (
    LazyLoggerAdapter,
    LazyString,
    get_lazy_logger,
    lazy,
)

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "configure_logging",
    "get_lazy_logger",
    "lazy",
    "setup_logging",
]
