"""Identity resolution — maps a bearer credential to a wallet user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of an operation."""

    user_id: str
    username: str
    email: str


@runtime_checkable
class IdentityProvider(Protocol):
    """Abstract interface for credential verification.

    Tools call :meth:`resolve` on every request without knowing how the
    credential was issued.
    """

    def resolve(self, token: str | None) -> Identity:
        """Return the caller's identity.

        Raises:
            UnauthenticatedError: If the credential is absent or invalid.
        """
        ...
