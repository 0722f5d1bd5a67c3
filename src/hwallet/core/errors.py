"""Error taxonomy shared by every wallet component.

Core operations raise only :class:`WalletError` subclasses. The tool layer
turns them into JSON error envelopes keyed by ``code``.

Authorization failures on record-scoped operations are raised as
:class:`NotFoundError` so a caller cannot tell a foreign record from a
missing one.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for errors surfaced to callers."""

    code = "error"


class ValidationError(WalletError):
    """Missing or malformed input, rejected before persistence."""

    code = "validation"


class UnauthenticatedError(WalletError):
    """Bearer credential missing, malformed, expired or unknown."""

    code = "unauthenticated"


class NotFoundError(WalletError):
    """Record does not exist, or the caller may not see it."""

    code = "not_found"


class StoreFailure(WalletError):
    """Database or blob store failure. The message is always generic."""

    code = "store_failure"

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message)
