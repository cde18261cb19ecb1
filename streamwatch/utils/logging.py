"""
Category-aware logging for streamwatch

Every module logs under one of four categories: twitch, telegram, monitor,
system. LOG_CATEGORIES (comma-separated) narrows output to the listed ones;
LOG_LEVEL sets verbosity (DEBUG, INFO, WARN, ERROR).

Usage:
    from streamwatch.utils.logging import get_logger

    logger = get_logger(__name__, category='telegram')
    logger.info('Start notification sent')
"""

import logging
from typing import FrozenSet, Optional

from streamwatch.config import settings

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_CATEGORY = "system"
PACKAGE_LOGGER = "streamwatch"


def _resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.upper(), logging.INFO)


def _parse_categories(value: Optional[str]) -> Optional[FrozenSet[str]]:
    if not value:
        return None
    categories = frozenset(part.strip().lower() for part in value.split(",") if part.strip())
    return categories or None


# None shows every category
_allowed_categories = _parse_categories(settings.log_categories)


class CategoryFilter(logging.Filter):
    """Drop records whose logger category is not in LOG_CATEGORIES."""

    def __init__(self, category: Optional[str] = None):
        super().__init__()
        self.category = category.lower() if category else DEFAULT_CATEGORY

    def filter(self, record: logging.LogRecord) -> bool:
        return _allowed_categories is None or self.category in _allowed_categories


def configure_logging(level: str, categories: Optional[str] = None) -> None:
    """
    Set up the root handler and apply level/category settings.

    Loggers created before this call (module-level `logger = get_logger(...)`)
    are re-levelled so the values passed here take effect everywhere.
    """
    global _allowed_categories
    _allowed_categories = _parse_categories(categories)

    resolved = _resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)

    for name, existing in logging.root.manager.loggerDict.items():
        if name.startswith(PACKAGE_LOGGER) and isinstance(existing, logging.Logger):
            existing.setLevel(resolved)


def get_logger(name: str, category: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with category filtering support.

    Args:
        name: Logger name (typically __name__)
        category: 'twitch', 'telegram', 'monitor' or 'system' (the default)

    Returns:
        Logger with exactly one CategoryFilter attached
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(settings.log_level))

    logger.filters = [f for f in logger.filters if not isinstance(f, CategoryFilter)]
    logger.addFilter(CategoryFilter(category))
    return logger
