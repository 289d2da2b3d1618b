"""Expose storage client wrappers."""

from .mongodb import MongoAccessTokenRepository, MongoDBClient, MongoRefreshTokenRepository
from .sqlite_store import (
    SQLiteAccessTokenRepository,
    SQLiteRefreshTokenRepository,
    SQLiteTokenDatabase,
)
from .token_codec import TokenDecodeError

__all__ = [
    "MongoAccessTokenRepository",
    "MongoDBClient",
    "MongoRefreshTokenRepository",
    "SQLiteAccessTokenRepository",
    "SQLiteRefreshTokenRepository",
    "SQLiteTokenDatabase",
    "TokenDecodeError",
]
