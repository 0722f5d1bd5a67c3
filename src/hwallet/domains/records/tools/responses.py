"""JSON envelopes shared by the wallet MCP tools."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from hwallet.core.errors import StoreFailure, WalletError
from hwallet.core.identity import Identity, IdentityProvider

logger = logging.getLogger(__name__)


def ok(payload: dict[str, Any], status: str = "ok") -> str:
    return json.dumps({"status": status, **payload}, indent=2)


def error(exc: WalletError) -> str:
    """Render a wallet error. Store failures never carry internal detail."""
    message = str(StoreFailure()) if isinstance(exc, StoreFailure) else str(exc)
    return json.dumps({"status": "error", "error": exc.code, "message": message})


def as_caller(
    identity: IdentityProvider,
    access_token: str,
    operation: Callable[[Identity], str],
) -> str:
    """Resolve the bearer token, run ``operation`` and render any wallet error."""
    try:
        caller = identity.resolve(access_token)
        return operation(caller)
    except WalletError as exc:
        logger.info("Tool call rejected: %s (%s)", exc.code, type(exc).__name__)
        return error(exc)
