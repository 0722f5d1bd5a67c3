"""Fernet-sealed bearer tokens.

A token is a Fernet token wrapping ``{"sub": user_id}``. Fernet embeds the
issue timestamp, so expiry is checked with ``ttl`` on decrypt. Tokens of
deleted users stop resolving immediately because every resolve looks the
user up again.
"""

from __future__ import annotations

import json
import logging

from cryptography.fernet import Fernet, InvalidToken

from hwallet.core.errors import UnauthenticatedError
from hwallet.core.identity import Identity
from hwallet.core.storage.repository import WalletRepository

logger = logging.getLogger(__name__)


class TokenKeyError(Exception):
    """Raised when the configured token key is unusable."""


class FernetTokenProvider:
    """Issues and verifies bearer tokens for registered users.

    Usage::

        provider = FernetTokenProvider(repository, key=FernetTokenProvider.generate_key())
        token = provider.issue_token(user.id)
        identity = provider.resolve(token)
    """

    def __init__(
        self,
        repository: WalletRepository,
        key: str,
        *,
        ttl_seconds: int | None = 86400,
    ) -> None:
        """Initialize with a Fernet key.

        Args:
            repository: Used to re-resolve the user on every request.
            key: A valid Fernet key string.
            ttl_seconds: Token lifetime; None disables expiry.

        Raises:
            TokenKeyError: If the key is empty or invalid.
        """
        if not key or not key.strip():
            raise TokenKeyError("Token key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise TokenKeyError(f"Invalid token key: {exc}") from exc
        self._repo = repository
        self._ttl = ttl_seconds

    def issue_token(self, user_id: str) -> str:
        """Issue a bearer token for an existing user."""
        payload = json.dumps({"sub": user_id}, separators=(",", ":")).encode("utf-8")
        return self._fernet.encrypt(payload).decode("utf-8")

    def resolve(self, token: str | None) -> Identity:
        if not token or not token.strip():
            raise UnauthenticatedError("Missing access token")

        raw = token.strip()
        if raw.lower().startswith("bearer "):
            raw = raw[7:].strip()

        try:
            plaintext = self._fernet.decrypt(raw.encode("utf-8"), ttl=self._ttl)
            user_id = json.loads(plaintext)["sub"]
        except InvalidToken as exc:
            raise UnauthenticatedError("Invalid or expired access token") from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise UnauthenticatedError("Malformed access token") from exc

        user = self._repo.get_user(user_id)
        if user is None:
            logger.info("Rejected token for unknown user %s", user_id)
            raise UnauthenticatedError("Unknown user")
        return Identity(user_id=user.id, username=user.username, email=user.email)

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode("utf-8")
