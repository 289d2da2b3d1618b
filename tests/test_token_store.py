from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from passport.clients import (
    MongoAccessTokenRepository,
    MongoDBClient,
    MongoRefreshTokenRepository,
    SQLiteAccessTokenRepository,
    SQLiteRefreshTokenRepository,
    SQLiteTokenDatabase,
)
from passport.core.config import MongoSettings
from passport.models.oauth import (
    AccessTokenRecord,
    OAuth2AccessToken,
    OAuth2Authentication,
    OAuth2RefreshToken,
)
from passport.services import MongoTokenStore, RepositoryTokenStore, SQLiteTokenStore, TokenStore
from passport.services.authentication_key import extract_key


@pytest.fixture(params=["mongodb", "sqlite"])
def store(request, fake_mongo_client, sqlite_path) -> TokenStore:
    if request.param == "sqlite":
        return SQLiteTokenStore(sqlite_path)
    client = MongoDBClient(MongoSettings(), client=fake_mongo_client)
    return MongoTokenStore.from_client(client)


def _token(value: str, refresh: str | None = None, **kwargs) -> OAuth2AccessToken:
    refresh_token = OAuth2RefreshToken(value=refresh) if refresh else None
    return OAuth2AccessToken(value=value, refresh_token=refresh_token, **kwargs)


def test_read_access_token_returns_equal_token(store, access_token, user_authentication) -> None:
    store.store_access_token(access_token, user_authentication)

    assert store.read_access_token("access-1") == access_token


def test_unknown_tokens_read_as_none(store) -> None:
    assert store.read_access_token("missing") is None
    assert store.read_authentication("missing") is None
    assert store.read_refresh_token("missing") is None
    assert store.read_authentication_for_refresh_token("missing") is None
    assert store.find_tokens_by_client_id("nobody") == []
    assert store.find_tokens_by_client_id_and_user_name("nobody", "alice") == []


def test_read_authentication_accepts_token_or_value(
    store, access_token, user_authentication
) -> None:
    store.store_access_token(access_token, user_authentication)

    assert store.read_authentication(access_token) == user_authentication
    assert store.read_authentication("access-1") == user_authentication


def test_store_is_last_write_wins(store, user_authentication, client_authentication) -> None:
    store.store_access_token(_token("t1", scope={"read"}), user_authentication)
    store.store_access_token(_token("t1", scope={"admin"}), client_authentication)

    assert store.read_access_token("t1").scope == {"admin"}
    assert store.read_authentication("t1") == client_authentication
    assert store.find_tokens_by_client_id("web-portal") == []


def test_get_access_token_by_equivalent_authentication(
    store, access_token, user_authentication
) -> None:
    store.store_access_token(access_token, user_authentication)
    equivalent = OAuth2Authentication(
        client_id="web-portal",
        user_name="alice",
        scope=["write", "read"],
    )

    found = store.get_access_token(equivalent)

    assert found is not None
    assert found.value == access_token.value
    assert store.get_access_token(equivalent.model_copy(update={"scope": {"read"}})) is None


def test_reissued_tokens_for_same_authentication(store, user_authentication) -> None:
    store.store_access_token(_token("first"), user_authentication)
    store.store_access_token(_token("second"), user_authentication)

    assert store.read_access_token("first") is not None
    assert store.read_access_token("second") is not None
    # Either token may be returned when two share an authentication key.
    assert store.get_access_token(user_authentication).value in {"first", "second"}


def test_remove_access_token(store, access_token, user_authentication) -> None:
    store.store_access_token(access_token, user_authentication)

    store.remove_access_token(access_token)

    assert store.read_access_token("access-1") is None
    assert store.get_access_token(user_authentication) is None
    store.remove_access_token("access-1")


def test_refresh_token_lifecycle(store, refresh_token, user_authentication) -> None:
    store.store_refresh_token(refresh_token, user_authentication)

    assert store.read_refresh_token("refresh-1") == refresh_token
    assert store.read_authentication_for_refresh_token(refresh_token) == user_authentication

    store.remove_refresh_token(refresh_token)

    assert store.read_refresh_token("refresh-1") is None
    store.remove_refresh_token("refresh-1")


def test_remove_access_token_using_refresh_token_is_targeted(
    store, user_authentication, client_authentication
) -> None:
    store.store_access_token(_token("a1", refresh="r1"), user_authentication)
    store.store_access_token(_token("a2", refresh="r2"), user_authentication)
    store.store_access_token(_token("a3"), client_authentication)

    store.remove_access_token_using_refresh_token(OAuth2RefreshToken(value="r1"))

    assert store.read_access_token("a1") is None
    assert store.read_access_token("a2") is not None
    assert store.read_access_token("a3") is not None


def test_remove_access_token_using_refresh_token_removes_duplicates(
    store, user_authentication, client_authentication
) -> None:
    store.store_access_token(_token("a1", refresh="shared"), user_authentication)
    store.store_access_token(_token("a2", refresh="shared"), client_authentication)

    store.remove_access_token_using_refresh_token("shared")

    assert store.read_access_token("a1") is None
    assert store.read_access_token("a2") is None
    store.remove_access_token_using_refresh_token("shared")


def test_find_tokens_by_client(store, user_authentication, expiration) -> None:
    bob = user_authentication.model_copy(update={"user_name": "bob"})
    other_client = user_authentication.model_copy(update={"client_id": "mobile"})
    store.store_access_token(_token("alice-1", expiration=expiration), user_authentication)
    store.store_access_token(
        _token("alice-2", expiration=expiration + timedelta(hours=1)),
        user_authentication.model_copy(update={"scope": {"read"}}),
    )
    store.store_access_token(_token("bob-1"), bob)
    store.store_access_token(_token("mobile-1"), other_client)

    by_client = {token.value for token in store.find_tokens_by_client_id("web-portal")}
    by_user = {
        token.value
        for token in store.find_tokens_by_client_id_and_user_name("web-portal", "alice")
    }

    assert by_client == {"alice-1", "alice-2", "bob-1"}
    assert by_user == {"alice-1", "alice-2"}


def test_client_only_tokens_are_not_found_by_user(store, client_authentication) -> None:
    store.store_access_token(_token("c1"), client_authentication)

    assert [token.value for token in store.find_tokens_by_client_id("batch-job")] == ["c1"]
    assert store.find_tokens_by_client_id_and_user_name("batch-job", "alice") == []
    assert store.get_access_token(client_authentication).value == "c1"


@pytest.fixture(params=["mongodb", "sqlite"])
def repositories(request, fake_mongo_client, sqlite_path):
    if request.param == "sqlite":
        database = SQLiteTokenDatabase(sqlite_path)
        return (
            SQLiteAccessTokenRepository(database),
            SQLiteRefreshTokenRepository(database),
        )
    client = MongoDBClient(MongoSettings(), client=fake_mongo_client)
    return (
        MongoAccessTokenRepository(client.access_tokens),
        MongoRefreshTokenRepository(client.refresh_tokens),
    )


def _record(
    value: str, authentication: OAuth2Authentication, refresh: str, stored_at: datetime
) -> AccessTokenRecord:
    record = AccessTokenRecord.build(
        _token(value, refresh=refresh), authentication, extract_key(authentication)
    )
    return record.model_copy(update={"stored_at": stored_at})


@pytest.mark.parametrize("newer_first", [True, False])
def test_newest_record_wins_for_shared_keys(
    repositories, user_authentication, newer_first: bool
) -> None:
    access, refresh = repositories
    older_at = datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    older = _record("older", user_authentication, "shared-refresh", older_at)
    newer = _record(
        "newer", user_authentication, "shared-refresh", older_at + timedelta(seconds=1)
    )
    for record in ([newer, older] if newer_first else [older, newer]):
        access.put(record)

    key = extract_key(user_authentication)
    assert access.get_by_authentication_id(key).token_id == "newer"
    assert access.get_by_refresh_token_value("shared-refresh").token_id == "newer"
    shared = access.find_by_refresh_token_value("shared-refresh")
    assert {record.token_id for record in shared} == {"older", "newer"}

    store = RepositoryTokenStore(access, refresh)
    assert store.get_access_token(user_authentication).value == "newer"
