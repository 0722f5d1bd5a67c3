"""Health Wallet MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- build_services() for wiring the store, blob store and identity provider
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastmcp import FastMCP

from hwallet.core.config.settings import Settings, get_settings
from hwallet.core.identity import IdentityProvider
from hwallet.core.identity.tokens import FernetTokenProvider
from hwallet.core.storage.blobs import BlobStore, LocalBlobStore
from hwallet.core.storage.database import WalletDatabase
from hwallet.core.storage.repository import WalletRepository
from hwallet.domains.records.domain_logic.access_control import AccessControl
from hwallet.domains.records.domain_logic.report_registry import ReportRegistry
from hwallet.domains.records.domain_logic.trend_engine import VitalsTrendEngine
from hwallet.domains.records.tools.report_tools import register_report_tools
from hwallet.domains.records.tools.share_tools import register_share_tools
from hwallet.domains.records.tools.vitals_tools import register_vitals_tools

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@dataclass
class WalletServices:
    """The explicitly wired components behind the tool surface."""

    repository: WalletRepository
    blob_store: BlobStore
    identity: IdentityProvider
    access: AccessControl
    registry: ReportRegistry
    vitals: VitalsTrendEngine


def build_services(
    settings: Settings,
    *,
    repository_override: WalletRepository | None = None,
    blob_store_override: BlobStore | None = None,
    identity_override: IdentityProvider | None = None,
) -> WalletServices:
    """Construct the store references once and pass them to each component."""
    if repository_override is not None:
        repository = repository_override
    else:
        database = WalletDatabase(settings.db_path)
        database.initialize()
        repository = WalletRepository(database)
        logger.info(
            "Wallet store initialized: %s (schema v%d)",
            settings.db_path,
            database.get_schema_version(),
        )

    if blob_store_override is not None:
        blob_store = blob_store_override
    else:
        blob_store = LocalBlobStore(settings.blob_dir)
        logger.info("Blob store directory: %s", settings.blob_dir)

    if identity_override is not None:
        identity = identity_override
    else:
        key = settings.token_key
        if not key:
            key = FernetTokenProvider.generate_key()
            logger.warning(
                "No TOKEN_KEY configured; using an ephemeral key. "
                "Issued tokens stop working when the process exits."
            )
        identity = FernetTokenProvider(
            repository, key, ttl_seconds=settings.token_ttl_seconds or None
        )

    access = AccessControl(repository)
    return WalletServices(
        repository=repository,
        blob_store=blob_store,
        identity=identity,
        access=access,
        registry=ReportRegistry(
            repository, access, blob_store, max_upload_bytes=settings.max_upload_bytes
        ),
        vitals=VitalsTrendEngine(repository),
    )


def create_app(
    *,
    repository_override: WalletRepository | None = None,
    blob_store_override: BlobStore | None = None,
    identity_override: IdentityProvider | None = None,
) -> FastMCP:
    """Create and configure the Health Wallet MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Wires the relational store, blob store and identity provider
    3. Builds access control, the report registry and the vitals engine
    4. Registers all tools
    """
    settings = get_settings()

    server = FastMCP(
        "Health Wallet",
        instructions=(
            "Personal health-record vault. Upload medical reports, record "
            "vitals, chart vitals trends, and share individual reports with "
            "other registered users as viewers or editors. Every tool except "
            "health_check needs your bearer token in `access_token`."
        ),
    )

    services = build_services(
        settings,
        repository_override=repository_override,
        blob_store_override=blob_store_override,
        identity_override=identity_override,
    )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "Health Wallet",
            "version": VERSION,
            "max_upload_bytes": settings.max_upload_bytes,
        }

    register_report_tools(server, services.identity, services.registry)
    register_share_tools(server, services.identity, services.access)
    register_vitals_tools(server, services.identity, services.vitals)
    logger.info("Report, share and vitals tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
