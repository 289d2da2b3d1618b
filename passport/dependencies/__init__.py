"""Expose shared client and service factories."""

from .clients import get_mongodb_client, get_token_store

__all__ = ["get_mongodb_client", "get_token_store"]
