"""Derive stable lookup keys from OAuth2 authentication contexts."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Optional, Protocol

from passport.models.oauth import AccessTokenRecord, OAuth2Authentication

CLIENT_ID = "client_id"
SCOPE = "scope"
USERNAME = "username"


def _canonical_values(authentication: OAuth2Authentication) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if not authentication.is_client_only:
        values[USERNAME] = authentication.user_name or ""
    values[CLIENT_ID] = authentication.client_id
    if authentication.scope:
        values[SCOPE] = sorted(authentication.scope)
    return values


def extract_key(authentication: OAuth2Authentication) -> str:
    """
    Return the SHA-256 fingerprint of (user name, client id, scope set).

    Scope order never affects the key, and scopes are serialized as a list so
    a scope containing a space cannot alias two separate scopes. Client-only
    authentications omit the user name entirely, so they never collide with a
    user named "".
    """
    serialized = json.dumps(
        _canonical_values(authentication), separators=(",", ":"), sort_keys=True
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class AuthenticationIdLookup(Protocol):
    def get_by_authentication_id(
        self, authentication_id: str
    ) -> Optional[AccessTokenRecord]:
        ...


class AuthenticationKeyGenerator:
    """Pluggable key generator used by the token store facade."""

    def extract_key(self, authentication: OAuth2Authentication) -> str:
        return extract_key(authentication)

    def lookup_by_key(
        self, repository: AuthenticationIdLookup, key: str
    ) -> Optional[AccessTokenRecord]:
        return repository.get_by_authentication_id(key)


__all__ = ["AuthenticationKeyGenerator", "extract_key"]
