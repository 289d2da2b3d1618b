"""Service layer exports."""

from .authentication_key import AuthenticationKeyGenerator, extract_key
from .token_store import (
    MongoTokenStore,
    RepositoryTokenStore,
    SQLiteTokenStore,
    TokenStore,
)

__all__ = [
    "AuthenticationKeyGenerator",
    "MongoTokenStore",
    "RepositoryTokenStore",
    "SQLiteTokenStore",
    "TokenStore",
    "extract_key",
]
