"""Operator tool for inspecting and revoking persisted OAuth2 tokens.

Works against whichever backend ``TOKEN_STORE_BACKEND`` selects.

Example usages::

    # List every access token issued to a client, optionally for one user.
    python -m scripts.token_admin list --client-id web-portal --user-name alice

    # Show a single access token and the authentication it was issued for.
    python -m scripts.token_admin show 1f6c0b7e-...

    # Revoke an access token.
    python -m scripts.token_admin revoke 1f6c0b7e-...

    # Revoke a refresh token and every access token issued from it.
    python -m scripts.token_admin revoke-refresh 9a2d4e11-...
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable

from pydantic import ValidationError

from passport.clients import TokenDecodeError
from passport.core.config import get_settings
from passport.core.logging import configure_logging
from passport.models.oauth import OAuth2AccessToken
from passport.services import TokenStore

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_VALIDATION_ERROR = 2
EXIT_DECODE_ERROR = 4
EXIT_RUNTIME_ERROR = 5

logger = logging.getLogger(__name__)


def _describe(token: OAuth2AccessToken) -> str:
    expiration = token.expiration.isoformat() if token.expiration else "never"
    scope = " ".join(sorted(token.scope)) or "-"
    status = "expired" if token.is_expired() else "active"
    return f"{token.value}\t{token.token_type}\t{status}\texpires={expiration}\tscope={scope}"


def _list_tokens(store: TokenStore, client_id: str, user_name: str | None) -> int:
    if user_name:
        tokens = store.find_tokens_by_client_id_and_user_name(client_id, user_name)
    else:
        tokens = store.find_tokens_by_client_id(client_id)
    for token in tokens:
        print(_describe(token))
    print(f"{len(tokens)} token(s) found.")
    return EXIT_OK


def _show_token(store: TokenStore, value: str) -> int:
    token = store.read_access_token(value)
    if token is None:
        print(f"No access token stored for {value}.", file=sys.stderr)
        return EXIT_NOT_FOUND
    authentication = store.read_authentication(token)
    payload = {
        "token": token.model_dump(mode="json"),
        "authentication": (
            authentication.model_dump(mode="json") if authentication else None
        ),
    }
    print(json.dumps(payload, indent=2, sort_keys=True))
    return EXIT_OK


def _revoke_token(store: TokenStore, value: str) -> int:
    if store.read_access_token(value) is None:
        print(f"No access token stored for {value}.", file=sys.stderr)
        return EXIT_NOT_FOUND
    store.remove_access_token(value)
    logger.info("Revoked access token via operator tool")
    print("Access token revoked.")
    return EXIT_OK


def _revoke_refresh_token(store: TokenStore, value: str) -> int:
    refresh_token = store.read_refresh_token(value)
    if refresh_token is None:
        print(f"No refresh token stored for {value}.", file=sys.stderr)
        return EXIT_NOT_FOUND
    store.remove_access_token_using_refresh_token(refresh_token)
    store.remove_refresh_token(refresh_token)
    logger.info("Revoked refresh token via operator tool")
    print("Refresh token and derived access tokens revoked.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and revoke persisted OAuth2 tokens."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser(
        "list",
        help="List access tokens issued to a client.",
    )
    list_parser.add_argument("--client-id", required=True, help="OAuth2 client id.")
    list_parser.add_argument(
        "--user-name",
        default=None,
        help="Restrict the listing to tokens issued for this user.",
    )

    for name, help_text in (
        ("show", "Print an access token and its authentication as JSON."),
        ("revoke", "Remove an access token."),
        ("revoke-refresh", "Remove a refresh token and the access tokens using it."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument("token", help="Raw token value.")

    return parser


def _default_store() -> TokenStore:
    from passport.dependencies import get_token_store

    return get_token_store()


def main(argv: list[str] | None = None, store: TokenStore | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(get_settings().log_level)
        token_store = store or _default_store()
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "list": lambda: _list_tokens(token_store, args.client_id, args.user_name),
        "show": lambda: _show_token(token_store, args.token),
        "revoke": lambda: _revoke_token(token_store, args.token),
        "revoke-refresh": lambda: _revoke_refresh_token(token_store, args.token),
    }
    try:
        return handlers[command]()
    except TokenDecodeError as exc:
        print(f"Stored token document is corrupt: {exc}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error while running {command}: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
