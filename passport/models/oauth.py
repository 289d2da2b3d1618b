"""
Domain models for OAuth2 token persistence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return normalize_timestamp(datetime.now(timezone.utc))


def normalize_timestamp(value: datetime) -> datetime:
    """Coerce to UTC at millisecond precision, the resolution BSON dates keep."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def normalize_value(value: Any) -> Any:
    """Normalize timestamps nested in open-ended maps; sets become sorted lists."""
    if isinstance(value, datetime):
        return normalize_timestamp(value)
    if isinstance(value, dict):
        return {key: normalize_value(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((normalize_value(item) for item in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    return value


class OAuth2RefreshToken(BaseModel):
    """Refresh credential, optionally expiring."""

    value: str
    expiration: Optional[datetime] = None

    @field_validator("expiration")
    @classmethod
    def _normalize_expiration(cls, value: Optional[datetime]) -> Optional[datetime]:
        return normalize_timestamp(value) if value is not None else None


class OAuth2AccessToken(BaseModel):
    """Access credential issued to a client on behalf of an authentication."""

    value: str
    token_type: str = "bearer"
    expiration: Optional[datetime] = None
    scope: Set[str] = Field(default_factory=set)
    additional_information: Dict[str, Any] = Field(default_factory=dict)
    refresh_token: Optional[OAuth2RefreshToken] = None

    @field_validator("expiration")
    @classmethod
    def _normalize_expiration(cls, value: Optional[datetime]) -> Optional[datetime]:
        return normalize_timestamp(value) if value is not None else None

    @field_validator("additional_information")
    @classmethod
    def _normalize_information(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return normalize_value(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Report whether the expiration has passed; tokens without one never expire."""
        if self.expiration is None:
            return False
        current = normalize_timestamp(now) if now is not None else _utcnow()
        return self.expiration <= current


class OAuth2Authentication(BaseModel):
    """Authentication context a token was issued for."""

    client_id: str
    user_name: Optional[str] = Field(
        None,
        description="Principal name; absent for client-credentials authentications.",
    )
    authorities: List[str] = Field(default_factory=list)
    scope: Set[str] = Field(default_factory=set)
    resource_ids: Set[str] = Field(default_factory=set)
    grant_type: Optional[str] = None
    approved: bool = True
    request_parameters: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_client_only(self) -> bool:
        return self.user_name is None


class AccessTokenRecord(BaseModel):
    """Represents an access token row in the token collection."""

    token_id: str = Field(..., description="Raw access token value.")
    token: OAuth2AccessToken
    authentication_id: str = Field(..., description="Derived authentication key.")
    authentication: OAuth2Authentication
    refresh_token: Optional[str] = None
    client_id: str
    user_name: Optional[str] = None
    stored_at: datetime = Field(default_factory=_utcnow)

    @field_validator("stored_at")
    @classmethod
    def _normalize_stored_at(cls, value: datetime) -> datetime:
        return normalize_timestamp(value)

    @classmethod
    def build(
        cls,
        token: OAuth2AccessToken,
        authentication: OAuth2Authentication,
        authentication_id: str,
    ) -> "AccessTokenRecord":
        refresh_value = token.refresh_token.value if token.refresh_token else None
        return cls(
            token_id=token.value,
            token=token,
            authentication_id=authentication_id,
            authentication=authentication,
            refresh_token=refresh_value,
            client_id=authentication.client_id,
            user_name=authentication.user_name,
        )


class RefreshTokenRecord(BaseModel):
    """Represents a refresh token row together with its authentication."""

    token_id: str
    token: OAuth2RefreshToken
    authentication: OAuth2Authentication
    stored_at: datetime = Field(default_factory=_utcnow)

    @field_validator("stored_at")
    @classmethod
    def _normalize_stored_at(cls, value: datetime) -> datetime:
        return normalize_timestamp(value)

    @classmethod
    def build(
        cls, token: OAuth2RefreshToken, authentication: OAuth2Authentication
    ) -> "RefreshTokenRecord":
        return cls(token_id=token.value, token=token, authentication=authentication)


__all__ = [
    "AccessTokenRecord",
    "OAuth2AccessToken",
    "OAuth2Authentication",
    "OAuth2RefreshToken",
    "RefreshTokenRecord",
]
