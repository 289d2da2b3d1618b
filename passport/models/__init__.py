"""Domain model exports."""

from .oauth import (
    AccessTokenRecord,
    OAuth2AccessToken,
    OAuth2Authentication,
    OAuth2RefreshToken,
    RefreshTokenRecord,
)

__all__ = [
    "AccessTokenRecord",
    "OAuth2AccessToken",
    "OAuth2Authentication",
    "OAuth2RefreshToken",
    "RefreshTokenRecord",
]
