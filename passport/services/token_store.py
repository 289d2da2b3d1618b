"""
OAuth2 token store contract and its repository-backed implementations.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol, Union

from passport.clients import (
    MongoAccessTokenRepository,
    MongoDBClient,
    MongoRefreshTokenRepository,
    SQLiteAccessTokenRepository,
    SQLiteRefreshTokenRepository,
    SQLiteTokenDatabase,
)
from passport.models.oauth import (
    AccessTokenRecord,
    OAuth2AccessToken,
    OAuth2Authentication,
    OAuth2RefreshToken,
    RefreshTokenRecord,
)
from passport.services.authentication_key import AuthenticationKeyGenerator

logger = logging.getLogger(__name__)

AccessTokenRef = Union[OAuth2AccessToken, str]
RefreshTokenRef = Union[OAuth2RefreshToken, str]


def _value_of(token: Union[OAuth2AccessToken, OAuth2RefreshToken, str]) -> str:
    return token if isinstance(token, str) else token.value


class AccessTokenRepository(Protocol):
    """Persistence operations for access token records."""

    def put(self, record: AccessTokenRecord) -> None:
        ...

    def get_by_token_id(self, token_id: str) -> Optional[AccessTokenRecord]:
        ...

    def get_by_refresh_token_value(self, value: str) -> Optional[AccessTokenRecord]:
        ...

    def find_by_refresh_token_value(self, value: str) -> List[AccessTokenRecord]:
        ...

    def get_by_authentication_id(self, authentication_id: str) -> Optional[AccessTokenRecord]:
        ...

    def get_by_client_id(self, client_id: str) -> List[AccessTokenRecord]:
        ...

    def get_by_client_id_and_user_name(
        self, client_id: str, user_name: str
    ) -> List[AccessTokenRecord]:
        ...

    def delete(self, record: AccessTokenRecord) -> None:
        ...


class RefreshTokenRepository(Protocol):
    """Persistence operations for refresh token records."""

    def put(self, record: RefreshTokenRecord) -> None:
        ...

    def get_by_token_id(self, token_id: str) -> Optional[RefreshTokenRecord]:
        ...

    def delete(self, record: RefreshTokenRecord) -> None:
        ...


class TokenStore(ABC):
    """Persistence contract an OAuth2 authorization server issues tokens against."""

    @abstractmethod
    def store_access_token(
        self, token: OAuth2AccessToken, authentication: OAuth2Authentication
    ) -> None:
        """Persist an access token together with the authentication it was issued for."""

    @abstractmethod
    def read_access_token(self, token_value: str) -> Optional[OAuth2AccessToken]:
        """Return the stored access token, or ``None`` when unknown."""

    @abstractmethod
    def read_authentication(self, token: AccessTokenRef) -> Optional[OAuth2Authentication]:
        """Return the authentication behind an access token or raw token value."""

    @abstractmethod
    def remove_access_token(self, token: AccessTokenRef) -> None:
        """Delete an access token; unknown tokens are ignored."""

    @abstractmethod
    def store_refresh_token(
        self, refresh_token: OAuth2RefreshToken, authentication: OAuth2Authentication
    ) -> None:
        """Persist a refresh token with its full authentication context."""

    @abstractmethod
    def read_refresh_token(self, token_value: str) -> Optional[OAuth2RefreshToken]:
        """Return the stored refresh token, or ``None`` when unknown."""

    @abstractmethod
    def read_authentication_for_refresh_token(
        self, token: RefreshTokenRef
    ) -> Optional[OAuth2Authentication]:
        """Return the authentication stored alongside a refresh token."""

    @abstractmethod
    def remove_refresh_token(self, token: RefreshTokenRef) -> None:
        """Delete a refresh token; unknown tokens are ignored."""

    @abstractmethod
    def remove_access_token_using_refresh_token(self, refresh_token: RefreshTokenRef) -> None:
        """Delete the access tokens that embed the given refresh token."""

    @abstractmethod
    def get_access_token(
        self, authentication: OAuth2Authentication
    ) -> Optional[OAuth2AccessToken]:
        """Return a previously issued access token for an equivalent authentication."""

    @abstractmethod
    def find_tokens_by_client_id(self, client_id: str) -> List[OAuth2AccessToken]:
        """Return every access token issued to a client."""

    @abstractmethod
    def find_tokens_by_client_id_and_user_name(
        self, client_id: str, user_name: str
    ) -> List[OAuth2AccessToken]:
        """Return every access token issued to a client for one user."""


class RepositoryTokenStore(TokenStore):
    """
    Token store composed from an access and a refresh token repository.

    Multi-step operations (lookup then delete) are not transactional: a token
    issued concurrently with a removal for the same refresh token may survive
    or be removed.
    """

    def __init__(
        self,
        access_tokens: AccessTokenRepository,
        refresh_tokens: RefreshTokenRepository,
        key_generator: Optional[AuthenticationKeyGenerator] = None,
    ) -> None:
        self._access = access_tokens
        self._refresh = refresh_tokens
        self._keys = key_generator or AuthenticationKeyGenerator()

    def store_access_token(
        self, token: OAuth2AccessToken, authentication: OAuth2Authentication
    ) -> None:
        authentication_id = self._keys.extract_key(authentication)
        self._access.put(AccessTokenRecord.build(token, authentication, authentication_id))
        logger.debug(
            "Stored access token for client %s (authentication %s)",
            authentication.client_id,
            authentication_id,
        )

    def read_access_token(self, token_value: str) -> Optional[OAuth2AccessToken]:
        record = self._access.get_by_token_id(token_value)
        return record.token if record else None

    def read_authentication(self, token: AccessTokenRef) -> Optional[OAuth2Authentication]:
        record = self._access.get_by_token_id(_value_of(token))
        return record.authentication if record else None

    def remove_access_token(self, token: AccessTokenRef) -> None:
        record = self._access.get_by_token_id(_value_of(token))
        if record is not None:
            self._access.delete(record)
            logger.debug("Removed access token for client %s", record.client_id)

    def store_refresh_token(
        self, refresh_token: OAuth2RefreshToken, authentication: OAuth2Authentication
    ) -> None:
        self._refresh.put(RefreshTokenRecord.build(refresh_token, authentication))
        logger.debug("Stored refresh token for client %s", authentication.client_id)

    def read_refresh_token(self, token_value: str) -> Optional[OAuth2RefreshToken]:
        record = self._refresh.get_by_token_id(token_value)
        return record.token if record else None

    def read_authentication_for_refresh_token(
        self, token: RefreshTokenRef
    ) -> Optional[OAuth2Authentication]:
        record = self._refresh.get_by_token_id(_value_of(token))
        return record.authentication if record else None

    def remove_refresh_token(self, token: RefreshTokenRef) -> None:
        record = self._refresh.get_by_token_id(_value_of(token))
        if record is not None:
            self._refresh.delete(record)
            logger.debug("Removed refresh token for client %s", record.authentication.client_id)

    def remove_access_token_using_refresh_token(self, refresh_token: RefreshTokenRef) -> None:
        records = self._access.find_by_refresh_token_value(_value_of(refresh_token))
        if len(records) > 1:
            logger.warning(
                "Found %d access tokens sharing one refresh token; removing all of them",
                len(records),
            )
        for record in records:
            self._access.delete(record)

    def get_access_token(
        self, authentication: OAuth2Authentication
    ) -> Optional[OAuth2AccessToken]:
        key = self._keys.extract_key(authentication)
        record = self._keys.lookup_by_key(self._access, key)
        return record.token if record else None

    def find_tokens_by_client_id(self, client_id: str) -> List[OAuth2AccessToken]:
        return [record.token for record in self._access.get_by_client_id(client_id)]

    def find_tokens_by_client_id_and_user_name(
        self, client_id: str, user_name: str
    ) -> List[OAuth2AccessToken]:
        records = self._access.get_by_client_id_and_user_name(client_id, user_name)
        return [record.token for record in records]


class MongoTokenStore(RepositoryTokenStore):
    """A MongoDB implementation of the token store."""

    @classmethod
    def from_client(
        cls,
        client: MongoDBClient,
        key_generator: Optional[AuthenticationKeyGenerator] = None,
    ) -> "MongoTokenStore":
        return cls(
            MongoAccessTokenRepository(client.access_tokens),
            MongoRefreshTokenRepository(client.refresh_tokens),
            key_generator,
        )


class SQLiteTokenStore(RepositoryTokenStore):
    """A SQLite implementation of the token store."""

    def __init__(
        self,
        db_path: str,
        key_generator: Optional[AuthenticationKeyGenerator] = None,
    ) -> None:
        database = SQLiteTokenDatabase(db_path)
        super().__init__(
            SQLiteAccessTokenRepository(database),
            SQLiteRefreshTokenRepository(database),
            key_generator,
        )


__all__ = [
    "AccessTokenRepository",
    "MongoTokenStore",
    "RefreshTokenRepository",
    "RepositoryTokenStore",
    "SQLiteTokenStore",
    "TokenStore",
]
