"""
Factory functions providing shared clients and the configured token store.
"""

from functools import lru_cache

from passport.clients import MongoDBClient
from passport.core.config import get_settings
from passport.services import MongoTokenStore, SQLiteTokenStore, TokenStore


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_mongodb_client() -> MongoDBClient:
    """Create a singleton MongoDB client, creating indexes when configured."""
    settings = _settings()
    client = MongoDBClient(settings.mongodb)
    if settings.token_store.ensure_indexes:
        client.ensure_indexes()
    return client


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the token store for the configured backend."""
    settings = _settings()
    if settings.token_store.backend == "sqlite":
        return SQLiteTokenStore(settings.token_store.sqlite_path)
    return MongoTokenStore.from_client(get_mongodb_client())


__all__ = ["get_mongodb_client", "get_token_store"]
