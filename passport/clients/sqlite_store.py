"""SQLite-backed token repositories for local development and tests."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from passport.models.oauth import AccessTokenRecord, RefreshTokenRecord
from passport.clients.token_codec import (
    decode_access_record,
    decode_refresh_record,
    encode_access_record,
    encode_refresh_record,
)


def _default_json_serializer(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Type {type(value)!r} not serializable")


class SQLiteTokenDatabase:
    """Shared connection factory and schema for the token tables."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth2_access_tokens (
                    token_id TEXT PRIMARY KEY,
                    authentication_id TEXT NOT NULL,
                    refresh_token TEXT,
                    client_id TEXT NOT NULL,
                    user_name TEXT,
                    stored_at TEXT NOT NULL,
                    document TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth2_refresh_tokens (
                    token_id TEXT PRIMARY KEY,
                    stored_at TEXT NOT NULL,
                    document TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_access_refresh_token "
                "ON oauth2_access_tokens (refresh_token)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_access_authentication_id "
                "ON oauth2_access_tokens (authentication_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_access_client_user "
                "ON oauth2_access_tokens (client_id, user_name)"
            )


def _dump(document: Dict[str, Any]) -> str:
    return json.dumps(document, default=_default_json_serializer)


class SQLiteAccessTokenRepository:
    """Access token records stored as JSON documents with indexed lookup columns."""

    _SELECT = "SELECT document FROM oauth2_access_tokens"

    def __init__(self, database: SQLiteTokenDatabase) -> None:
        self._db = database

    def put(self, record: AccessTokenRecord) -> None:
        document = encode_access_record(record)
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth2_access_tokens (
                    token_id, authentication_id, refresh_token,
                    client_id, user_name, stored_at, document
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(token_id) DO UPDATE SET
                    authentication_id = excluded.authentication_id,
                    refresh_token = excluded.refresh_token,
                    client_id = excluded.client_id,
                    user_name = excluded.user_name,
                    stored_at = excluded.stored_at,
                    document = excluded.document
                """,
                (
                    record.token_id,
                    record.authentication_id,
                    record.refresh_token,
                    record.client_id,
                    record.user_name,
                    document["storedAt"].isoformat(timespec="milliseconds"),
                    _dump(document),
                ),
            )

    def _fetch_one(self, where: str, params: tuple) -> Optional[AccessTokenRecord]:
        with self._db.connect() as conn:
            row = conn.execute(
                f"{self._SELECT} WHERE {where} ORDER BY stored_at DESC LIMIT 1",
                params,
            ).fetchone()
        if not row:
            return None
        return decode_access_record(json.loads(row["document"]))

    def _fetch_all(self, where: str, params: tuple) -> List[AccessTokenRecord]:
        with self._db.connect() as conn:
            rows = conn.execute(f"{self._SELECT} WHERE {where}", params).fetchall()
        return [decode_access_record(json.loads(row["document"])) for row in rows]

    def get_by_token_id(self, token_id: str) -> Optional[AccessTokenRecord]:
        return self._fetch_one("token_id = ?", (token_id,))

    def get_by_refresh_token_value(self, value: str) -> Optional[AccessTokenRecord]:
        return self._fetch_one("refresh_token = ?", (value,))

    def find_by_refresh_token_value(self, value: str) -> List[AccessTokenRecord]:
        return self._fetch_all("refresh_token = ?", (value,))

    def get_by_authentication_id(self, authentication_id: str) -> Optional[AccessTokenRecord]:
        return self._fetch_one("authentication_id = ?", (authentication_id,))

    def get_by_client_id(self, client_id: str) -> List[AccessTokenRecord]:
        return self._fetch_all("client_id = ?", (client_id,))

    def get_by_client_id_and_user_name(
        self, client_id: str, user_name: str
    ) -> List[AccessTokenRecord]:
        return self._fetch_all("client_id = ? AND user_name = ?", (client_id, user_name))

    def delete(self, record: AccessTokenRecord) -> None:
        with self._db.connect() as conn:
            conn.execute(
                "DELETE FROM oauth2_access_tokens WHERE token_id = ?",
                (record.token_id,),
            )


class SQLiteRefreshTokenRepository:
    """Refresh token records stored as JSON documents."""

    def __init__(self, database: SQLiteTokenDatabase) -> None:
        self._db = database

    def put(self, record: RefreshTokenRecord) -> None:
        document = encode_refresh_record(record)
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth2_refresh_tokens (token_id, stored_at, document)
                VALUES (?, ?, ?)
                ON CONFLICT(token_id) DO UPDATE SET
                    stored_at = excluded.stored_at,
                    document = excluded.document
                """,
                (
                    record.token_id,
                    document["storedAt"].isoformat(timespec="milliseconds"),
                    _dump(document),
                ),
            )

    def get_by_token_id(self, token_id: str) -> Optional[RefreshTokenRecord]:
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT document FROM oauth2_refresh_tokens WHERE token_id = ?",
                (token_id,),
            ).fetchone()
        if not row:
            return None
        return decode_refresh_record(json.loads(row["document"]))

    def delete(self, record: RefreshTokenRecord) -> None:
        with self._db.connect() as conn:
            conn.execute(
                "DELETE FROM oauth2_refresh_tokens WHERE token_id = ?",
                (record.token_id,),
            )


__all__ = [
    "SQLiteAccessTokenRepository",
    "SQLiteRefreshTokenRepository",
    "SQLiteTokenDatabase",
]
