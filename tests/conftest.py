"""Shared test fixtures for Health Wallet tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

# A tiny but valid-looking PDF payload
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("BLOB_DIR", str(tmp_path / "blobs"))
    monkeypatch.setenv("TOKEN_KEY", "")


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wallet_db():
    """Create an in-memory WalletDatabase for testing."""
    from hwallet.core.storage.database import WalletDatabase

    db = WalletDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def wallet_repository(wallet_db):
    """Create a WalletRepository backed by in-memory SQLite."""
    from hwallet.core.storage.repository import WalletRepository

    return WalletRepository(wallet_db)


@pytest.fixture
def blob_store():
    from hwallet.core.storage.blobs import InMemoryBlobStore

    return InMemoryBlobStore()


@pytest.fixture
def token_provider(wallet_repository):
    from hwallet.core.identity.tokens import FernetTokenProvider

    return FernetTokenProvider(wallet_repository, FernetTokenProvider.generate_key())


@pytest.fixture
def access_control(wallet_repository):
    from hwallet.domains.records.domain_logic.access_control import AccessControl

    return AccessControl(wallet_repository)


@pytest.fixture
def trend_engine(wallet_repository):
    from hwallet.domains.records.domain_logic.trend_engine import VitalsTrendEngine

    return VitalsTrendEngine(wallet_repository)


@pytest.fixture
def report_registry(wallet_repository, access_control, blob_store):
    from hwallet.domains.records.domain_logic.report_registry import ReportRegistry

    return ReportRegistry(wallet_repository, access_control, blob_store)


# ---------------------------------------------------------------------------
# Seeded users
# ---------------------------------------------------------------------------

@pytest.fixture
def alice(wallet_repository):
    return wallet_repository.create_user("alice", "alice@example.com")


@pytest.fixture
def bob(wallet_repository):
    return wallet_repository.create_user("bob", "bob@example.com")


@pytest.fixture
def carol(wallet_repository):
    return wallet_repository.create_user("carol", "carol@example.com")


@pytest.fixture
def upload_pdf(report_registry):
    """Upload a PDF report for a user and return the stored Report."""

    def _upload(user, *, report_type="Blood Test", date="2024-03-01", vitals=None):
        detail = report_registry.upload(
            user.id,
            "results.pdf",
            "application/pdf",
            PDF_BYTES,
            report_type=report_type,
            date=date,
            vitals=vitals,
        )
        return detail.report

    return _upload


# ---------------------------------------------------------------------------
# MCP server fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wallet_app(wallet_repository, blob_store, token_provider):
    """A FastMCP server wired to the in-memory store and a test token key."""
    from hwallet.core.server.app import create_app

    return create_app(
        repository_override=wallet_repository,
        blob_store_override=blob_store,
        identity_override=token_provider,
    )
