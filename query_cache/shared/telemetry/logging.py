"""Logging configuration for the query cache."""

import logging
import sys

from query_cache.core.config import get_settings

# Root logger of the package; cache events log under query_cache.*
PACKAGE_LOGGER = "query_cache"


def setup_logging(level: int | None = None) -> None:
    """Configure logging for the query_cache logger hierarchy.

    Level is DEBUG when settings.debug is True (cache GET/HIT/MISS/SET/DELETE
    lines become visible), otherwise INFO. Output goes to stdout. Only the
    package logger is configured so host applications keep their own setup.

    Args:
        level: Explicit level; overrides the settings-derived level.
    """
    if level is None:
        level = logging.DEBUG if get_settings().debug else logging.INFO
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_query_cache_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handler._query_cache_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
