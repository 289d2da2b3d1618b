"""Pytest configuration and fakes shared across the suite."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from passport.models.oauth import (
    OAuth2AccessToken,
    OAuth2Authentication,
    OAuth2RefreshToken,
)


class FakeMongoCollection:
    """Implements the subset of pymongo's Collection API the repositories use."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: dict[Any, dict] = {}
        self.indexes: list[dict] = []

    def _matches(self, query: dict) -> list[dict]:
        return [
            document
            for document in self.documents.values()
            if all(document.get(key) == value for key, value in query.items())
        ]

    def replace_one(self, query: dict, document: dict, upsert: bool = False) -> None:
        matches = self._matches(query)
        if not matches and not upsert:
            return
        key = matches[0]["_id"] if matches else document["_id"]
        self.documents[key] = copy.deepcopy(document)

    def find_one(self, query: dict, sort: list | None = None) -> dict | None:
        matches = self._matches(query)
        for field, direction in reversed(sort or []):
            matches.sort(key=lambda doc: doc.get(field), reverse=direction < 0)
        return copy.deepcopy(matches[0]) if matches else None

    def find(self, query: dict) -> list[dict]:
        return [copy.deepcopy(document) for document in self._matches(query)]

    def delete_one(self, query: dict) -> None:
        matches = self._matches(query)
        if matches:
            del self.documents[matches[0]["_id"]]

    def create_index(self, keys: list, unique: bool = False, name: str | None = None) -> str:
        self.indexes.append({"keys": keys, "unique": unique, "name": name})
        return name or "_".join(field for field, _ in keys)


class FakeMongoDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, FakeMongoCollection] = {}

    def __getitem__(self, name: str) -> FakeMongoCollection:
        return self.collections.setdefault(name, FakeMongoCollection(name))


class FakeMongoClient:
    def __init__(self) -> None:
        self.databases: dict[str, FakeMongoDatabase] = {}
        self.closed = False

    def __getitem__(self, name: str) -> FakeMongoDatabase:
        return self.databases.setdefault(name, FakeMongoDatabase(name))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_mongo_client() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def sqlite_path(tmp_path: Path) -> str:
    return str(tmp_path / "tokens" / "passport.db")


@pytest.fixture
def expiration() -> datetime:
    return (datetime.now(timezone.utc) + timedelta(hours=1)).replace(microsecond=0)


@pytest.fixture
def user_authentication() -> OAuth2Authentication:
    return OAuth2Authentication(
        client_id="web-portal",
        user_name="alice",
        authorities=["ROLE_USER", "ROLE_ADMIN"],
        scope={"read", "write"},
        resource_ids={"passport"},
        grant_type="password",
        request_parameters={"grant_type": "password", "username": "alice"},
    )


@pytest.fixture
def client_authentication() -> OAuth2Authentication:
    return OAuth2Authentication(
        client_id="batch-job",
        authorities=["ROLE_CLIENT"],
        scope={"read"},
        grant_type="client_credentials",
    )


@pytest.fixture
def refresh_token(expiration: datetime) -> OAuth2RefreshToken:
    return OAuth2RefreshToken(value="refresh-1", expiration=expiration + timedelta(days=30))


@pytest.fixture
def access_token(expiration: datetime, refresh_token: OAuth2RefreshToken) -> OAuth2AccessToken:
    return OAuth2AccessToken(
        value="access-1",
        expiration=expiration,
        scope={"read", "write"},
        additional_information={"jti": "a1b2", "tenant": {"id": 7, "tags": ["x"]}},
        refresh_token=refresh_token,
    )
