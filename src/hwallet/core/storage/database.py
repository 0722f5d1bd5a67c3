"""SQLite database management for the Health Wallet.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    username    TEXT NOT NULL UNIQUE,
    email       TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);

-- Report metadata; file bytes live in the blob store under storage_key
CREATE TABLE IF NOT EXISTS reports (
    id             TEXT PRIMARY KEY,
    owner_id       TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    storage_key    TEXT NOT NULL UNIQUE,
    original_name  TEXT NOT NULL,
    file_type      TEXT NOT NULL,
    report_type    TEXT NOT NULL,
    date           TEXT NOT NULL,
    created_at     TEXT NOT NULL
);

-- One row per measurement session; every measurement column is optional
CREATE TABLE IF NOT EXISTS vitals (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    report_id           TEXT REFERENCES reports(id) ON DELETE SET NULL,
    systolic            INTEGER,
    diastolic           INTEGER,
    fasting_sugar       REAL,
    postprandial_sugar  REAL,
    heart_rate          INTEGER,
    temperature         REAL,
    weight              REAL,
    height              REAL,
    cholesterol         REAL,
    date                TEXT NOT NULL,
    created_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS grants (
    id               TEXT PRIMARY KEY,
    report_id        TEXT NOT NULL REFERENCES reports(id) ON DELETE CASCADE,
    owner_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    grantee_user_id  TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    grantee_email    TEXT NOT NULL,
    role             TEXT NOT NULL CHECK (role IN ('viewer', 'editor')),
    created_at       TEXT NOT NULL,
    UNIQUE (report_id, grantee_user_id),
    CHECK (grantee_user_id <> owner_id)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Indexes for common query patterns
CREATE INDEX IF NOT EXISTS idx_reports_owner_date  ON reports(owner_id, date);
CREATE INDEX IF NOT EXISTS idx_vitals_user_date    ON vitals(user_id, date);
CREATE INDEX IF NOT EXISTS idx_vitals_report       ON vitals(report_id);
CREATE INDEX IF NOT EXISTS idx_grants_grantee      ON grants(grantee_user_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class WalletDatabase:
    """SQLite database manager for the Health Wallet.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = WalletDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        # Cascades (grants, vitals.report_id) depend on this being on
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Wallet database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and record the schema version."""
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Wallet database closed")

    def __enter__(self) -> WalletDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
