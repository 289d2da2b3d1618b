"""
Conversion between token models and their stored document shape.

Documents use camelCase keys and share one shape across backends::

    {tokenId, token: {value, tokenType, expiration, scope, additionalInformation,
     refreshToken: {value, expiration}}, authenticationId, authentication,
     refreshToken, clientId, userName, storedAt}
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from pydantic import ValidationError

from passport.models.oauth import (
    AccessTokenRecord,
    OAuth2AccessToken,
    OAuth2Authentication,
    OAuth2RefreshToken,
    RefreshTokenRecord,
    normalize_timestamp,
    normalize_value,
)


class TokenDecodeError(Exception):
    """Raised when a stored document cannot be turned back into a token model."""


def _require(document: Mapping[str, Any], key: str, context: str) -> Any:
    if key not in document:
        raise TokenDecodeError(f"{context} document is missing required field '{key}'.")
    return document[key]


def _encode_datetime(value: Optional[datetime]) -> Optional[datetime]:
    # BSON dates carry millisecond precision; truncate so reads compare equal.
    return normalize_timestamp(value) if value is not None else None


def _decode_string_list(value: Any, context: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise TokenDecodeError(f"{context} must be a sequence of strings, got {value!r}.")
    return list(value)


def _decode_string_set(value: Any, context: str) -> Set[str]:
    try:
        return set(_decode_string_list(value, context))
    except TypeError as exc:
        raise TokenDecodeError(f"{context} holds unhashable entries: {exc}") from exc


def _decode_mapping(value: Any, context: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TokenDecodeError(f"{context} must be a mapping, got {value!r}.")
    return dict(value)


def _decode_datetime(value: Any, context: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            raise TokenDecodeError(f"{context} has an invalid timestamp {value!r}.") from exc
    if not isinstance(value, datetime):
        raise TokenDecodeError(f"{context} has a non-date timestamp {value!r}.")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_refresh_token(token: OAuth2RefreshToken) -> Dict[str, Any]:
    return {"value": token.value, "expiration": _encode_datetime(token.expiration)}


def decode_refresh_token(document: Mapping[str, Any]) -> OAuth2RefreshToken:
    if not isinstance(document, Mapping):
        raise TokenDecodeError("Refresh token document must be a mapping.")
    value = _require(document, "value", "Refresh token")
    if not value:
        raise TokenDecodeError("Refresh token document has an empty value.")
    try:
        return OAuth2RefreshToken(
            value=value,
            expiration=_decode_datetime(document.get("expiration"), "Refresh token"),
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Refresh token document is malformed: {exc}") from exc


def encode_access_token(token: OAuth2AccessToken) -> Dict[str, Any]:
    return {
        "value": token.value,
        "tokenType": token.token_type,
        "expiration": _encode_datetime(token.expiration),
        "scope": sorted(token.scope),
        "additionalInformation": normalize_value(token.additional_information),
        "refreshToken": (
            encode_refresh_token(token.refresh_token) if token.refresh_token else None
        ),
    }


def decode_access_token(document: Mapping[str, Any]) -> OAuth2AccessToken:
    """
    Rebuild an access token from its stored document.

    The ``refreshToken`` key must be present; an explicit ``None`` marks a
    token issued without a refresh token. Missing scope or additional
    information decode to empty containers.
    """
    if not isinstance(document, Mapping):
        raise TokenDecodeError("Access token document must be a mapping.")
    value = _require(document, "value", "Access token")
    refresh_document = _require(document, "refreshToken", "Access token")
    refresh_token = (
        decode_refresh_token(refresh_document) if refresh_document is not None else None
    )
    try:
        return OAuth2AccessToken(
            value=value,
            token_type=document.get("tokenType") or "bearer",
            expiration=_decode_datetime(document.get("expiration"), "Access token"),
            scope=_decode_string_set(document.get("scope"), "Access token scope"),
            additional_information=_decode_mapping(
                document.get("additionalInformation"), "Access token additionalInformation"
            ),
            refresh_token=refresh_token,
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Access token document is malformed: {exc}") from exc


def encode_authentication(authentication: OAuth2Authentication) -> Dict[str, Any]:
    return {
        "clientId": authentication.client_id,
        "userName": authentication.user_name,
        "authorities": list(authentication.authorities),
        "scope": sorted(authentication.scope),
        "resourceIds": sorted(authentication.resource_ids),
        "grantType": authentication.grant_type,
        "approved": authentication.approved,
        "requestParameters": normalize_value(authentication.request_parameters),
    }


def decode_authentication(document: Mapping[str, Any]) -> OAuth2Authentication:
    if not isinstance(document, Mapping):
        raise TokenDecodeError("Authentication document must be a mapping.")
    try:
        return OAuth2Authentication(
            client_id=_require(document, "clientId", "Authentication"),
            user_name=document.get("userName"),
            authorities=_decode_string_list(
                document.get("authorities"), "Authentication authorities"
            ),
            scope=_decode_string_set(document.get("scope"), "Authentication scope"),
            resource_ids=_decode_string_set(
                document.get("resourceIds"), "Authentication resourceIds"
            ),
            grant_type=document.get("grantType"),
            approved=document.get("approved", True),
            request_parameters=_decode_mapping(
                document.get("requestParameters"), "Authentication requestParameters"
            ),
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Authentication document is malformed: {exc}") from exc


def encode_access_record(record: AccessTokenRecord) -> Dict[str, Any]:
    return {
        "_id": record.token_id,
        "tokenId": record.token_id,
        "token": encode_access_token(record.token),
        "authenticationId": record.authentication_id,
        "authentication": encode_authentication(record.authentication),
        "refreshToken": record.refresh_token,
        "clientId": record.client_id,
        "userName": record.user_name,
        "storedAt": _encode_datetime(record.stored_at),
    }


def decode_access_record(document: Mapping[str, Any]) -> AccessTokenRecord:
    token = decode_access_token(_require(document, "token", "Access token record"))
    try:
        return AccessTokenRecord(
            token_id=_require(document, "tokenId", "Access token record"),
            token=token,
            authentication_id=_require(
                document, "authenticationId", "Access token record"
            ),
            authentication=decode_authentication(
                _require(document, "authentication", "Access token record")
            ),
            refresh_token=document.get("refreshToken"),
            client_id=_require(document, "clientId", "Access token record"),
            user_name=document.get("userName"),
            stored_at=_decode_datetime(document.get("storedAt"), "Access token record")
            or datetime.now(timezone.utc),
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Access token record is malformed: {exc}") from exc


def encode_refresh_record(record: RefreshTokenRecord) -> Dict[str, Any]:
    return {
        "_id": record.token_id,
        "tokenId": record.token_id,
        "token": encode_refresh_token(record.token),
        "authentication": encode_authentication(record.authentication),
        "storedAt": _encode_datetime(record.stored_at),
    }


def decode_refresh_record(document: Mapping[str, Any]) -> RefreshTokenRecord:
    token = decode_refresh_token(_require(document, "token", "Refresh token record"))
    try:
        return RefreshTokenRecord(
            token_id=_require(document, "tokenId", "Refresh token record"),
            token=token,
            authentication=decode_authentication(
                _require(document, "authentication", "Refresh token record")
            ),
            stored_at=_decode_datetime(document.get("storedAt"), "Refresh token record")
            or datetime.now(timezone.utc),
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Refresh token record is malformed: {exc}") from exc


__all__ = [
    "TokenDecodeError",
    "decode_access_record",
    "decode_access_token",
    "decode_authentication",
    "decode_refresh_record",
    "decode_refresh_token",
    "encode_access_record",
    "encode_access_token",
    "encode_authentication",
    "encode_refresh_record",
    "encode_refresh_token",
]
