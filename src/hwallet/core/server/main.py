"""Health Wallet entry points.

``hwallet-server`` runs the MCP server; ``hwallet-add-user`` registers a
user and prints a bearer token for them.
"""

from __future__ import annotations

import argparse
import logging
from ipaddress import ip_address

from hwallet.core.config.settings import get_settings
from hwallet.core.identity.tokens import FernetTokenProvider
from hwallet.core.server.app import build_services, create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the Health Wallet MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.wallet_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.wallet_allow_insecure_bind and not _is_loopback_host(settings.wallet_host):
        raise RuntimeError(
            "Refusing to bind the wallet server to a non-loopback host. "
            "Set WALLET_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Health Wallet server on %s:%d",
        settings.wallet_host,
        settings.wallet_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.wallet_host,
        port=settings.wallet_port,
    )


def add_user(argv: list[str] | None = None) -> None:
    """Register a user (or reuse an existing one by email) and print a token."""
    parser = argparse.ArgumentParser(description="Register a Health Wallet user.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.wallet_log_level.upper(), logging.INFO))
    if not settings.token_key:
        parser.error("TOKEN_KEY must be set so the printed token outlives this command")

    repository = build_services(settings).repository
    tokens = FernetTokenProvider(
        repository, settings.token_key, ttl_seconds=settings.token_ttl_seconds or None
    )
    user = repository.find_user_by_email(args.email)
    if user is None:
        user = repository.create_user(args.username, args.email)
    print(tokens.issue_token(user.id))


if __name__ == "__main__":
    run()
