"""
MongoDB-backed repositories for OAuth2 access and refresh token records.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from passport.core.config import MongoSettings
from passport.models.oauth import AccessTokenRecord, RefreshTokenRecord
from passport.clients.token_codec import (
    decode_access_record,
    decode_refresh_record,
    encode_access_record,
    encode_refresh_record,
)

logger = logging.getLogger(__name__)

_NEWEST_FIRST = [("storedAt", DESCENDING)]


class MongoDBClient:
    """Owns the pymongo connection and the two token collections."""

    def __init__(self, settings: MongoSettings, client: Optional[MongoClient] = None) -> None:
        self._settings = settings
        self._client = client if client is not None else MongoClient(
            settings.uri,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
        self._database = self._client[settings.database]

    @property
    def access_tokens(self) -> Collection:
        return self._database[self._settings.access_token_collection]

    @property
    def refresh_tokens(self) -> Collection:
        return self._database[self._settings.refresh_token_collection]

    def ensure_indexes(self) -> None:
        """Create the secondary indexes the token lookups rely on."""
        access = self.access_tokens
        access.create_index([("tokenId", ASCENDING)], unique=True, name="tokenId_unique")
        access.create_index([("refreshToken", ASCENDING)], name="refreshToken")
        access.create_index([("authenticationId", ASCENDING)], name="authenticationId")
        access.create_index(
            [("clientId", ASCENDING), ("userName", ASCENDING)],
            name="clientId_userName",
        )
        self.refresh_tokens.create_index(
            [("tokenId", ASCENDING)], unique=True, name="tokenId_unique"
        )
        logger.info(
            "Ensured token indexes on %s.%s and %s.%s",
            self._settings.database,
            self._settings.access_token_collection,
            self._settings.database,
            self._settings.refresh_token_collection,
        )

    def close(self) -> None:
        self._client.close()


class MongoAccessTokenRepository:
    """Access token records keyed by ``_id == tokenId``."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def put(self, record: AccessTokenRecord) -> None:
        document = encode_access_record(record)
        self._collection.replace_one({"_id": record.token_id}, document, upsert=True)

    def _find_one(self, query: Dict[str, Any]) -> Optional[AccessTokenRecord]:
        document = self._collection.find_one(query, sort=_NEWEST_FIRST)
        if not document:
            return None
        return decode_access_record(document)

    def _find(self, query: Dict[str, Any]) -> List[AccessTokenRecord]:
        return [decode_access_record(document) for document in self._collection.find(query)]

    def get_by_token_id(self, token_id: str) -> Optional[AccessTokenRecord]:
        return self._find_one({"_id": token_id})

    def get_by_refresh_token_value(self, value: str) -> Optional[AccessTokenRecord]:
        return self._find_one({"refreshToken": value})

    def find_by_refresh_token_value(self, value: str) -> List[AccessTokenRecord]:
        return self._find({"refreshToken": value})

    def get_by_authentication_id(self, authentication_id: str) -> Optional[AccessTokenRecord]:
        return self._find_one({"authenticationId": authentication_id})

    def get_by_client_id(self, client_id: str) -> List[AccessTokenRecord]:
        return self._find({"clientId": client_id})

    def get_by_client_id_and_user_name(
        self, client_id: str, user_name: str
    ) -> List[AccessTokenRecord]:
        return self._find({"clientId": client_id, "userName": user_name})

    def delete(self, record: AccessTokenRecord) -> None:
        self._collection.delete_one({"_id": record.token_id})


class MongoRefreshTokenRepository:
    """Refresh token records keyed by ``_id == tokenId``."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def put(self, record: RefreshTokenRecord) -> None:
        document = encode_refresh_record(record)
        self._collection.replace_one({"_id": record.token_id}, document, upsert=True)

    def get_by_token_id(self, token_id: str) -> Optional[RefreshTokenRecord]:
        document = self._collection.find_one({"_id": token_id})
        if not document:
            return None
        return decode_refresh_record(document)

    def delete(self, record: RefreshTokenRecord) -> None:
        self._collection.delete_one({"_id": record.token_id})


__all__ = [
    "MongoAccessTokenRepository",
    "MongoDBClient",
    "MongoRefreshTokenRepository",
]
