"""Repository package for database access."""

from .sessions import SqliteSessionRepository
from .analytics import SqliteAnalyticsRepository
from .metadata import SqliteMetadataRepository

__all__ = [
    "SqliteSessionRepository",
    "SqliteAnalyticsRepository",
    "SqliteMetadataRepository",
]
