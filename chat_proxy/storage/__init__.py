"""Storage module with factory for creating repository instances."""

from loguru import logger

from ..config import settings
from .protocols import Repository
from .sqlite import SQLiteRepository


def create_repository(database_url: str | None = None) -> Repository:
    """Create repository instance based on database URL.

    Args:
        database_url: Database URL. Uses settings if not provided.

    Returns:
        Repository instance.
    """
    url = database_url or settings.database_url
    logger.info("Creating SQL repository")
    return SQLiteRepository(url)


__all__ = [
    "Repository",
    "SQLiteRepository",
    "create_repository",
]
