"""Wallet repository — row-level CRUD over users, reports, vitals and grants.

The repository only moves rows in and out of SQLite. Authorization lives in
:mod:`hwallet.domains.records.domain_logic.access_control`; callers pass
already-authorized identifiers.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from hwallet.core.errors import StoreFailure, ValidationError, WalletError
from hwallet.core.storage.database import WalletDatabase
from hwallet.core.storage.models import (
    VITAL_FIELDS,
    Grant,
    GrantView,
    OwnedReport,
    Report,
    SharedReport,
    User,
    VitalsRecord,
)

logger = logging.getLogger(__name__)


class RepositoryError(StoreFailure):
    """Raised when a store round-trip fails."""


class GrantConflictError(RepositoryError):
    """A grant for (report, grantee) already exists."""


class WalletRepository:
    """CRUD repository for the wallet tables.

    Usage::

        db = WalletDatabase(":memory:")
        db.initialize()
        repo = WalletRepository(db)

        user = repo.create_user("alice", "alice@example.com")
        rows = repo.query_vitals(user.id, since="2024-01-01")
    """

    def __init__(self, database: WalletDatabase) -> None:
        self._db = database

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield the connection; roll back on any failure.

        Wallet errors propagate unchanged; anything else is wrapped in a
        generic :class:`RepositoryError`.
        """
        conn = self._db.connection
        try:
            yield conn
        except WalletError:
            conn.rollback()
            raise
        except Exception as exc:
            conn.rollback()
            logger.exception("Store failure during %s", operation)
            raise RepositoryError() from exc

    @staticmethod
    def _non_null_clause(fields: tuple[str, ...], alias: str = "") -> str:
        """SQL predicate: at least one of ``fields`` is non-null."""
        for name in fields:
            if name not in VITAL_FIELDS:
                # Column names are interpolated; only known columns pass
                raise RepositoryError(f"Invalid vitals column: {name!r}")
        prefix = f"{alias}." if alias else ""
        return "(" + " OR ".join(f"{prefix}{name} IS NOT NULL" for name in fields) + ")"

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: str) -> User:
        """Register a user. Emails are stored trimmed and lower-cased.

        Raises:
            ValidationError: If the username or email is empty or taken.
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email:
            raise ValidationError("Username and email are required")

        user = User(id=self._new_id(), username=username, email=email, created_at=self._now_iso())
        with self._guard("create user") as conn:
            try:
                conn.execute(
                    "INSERT INTO users (id, username, email, created_at) VALUES (?, ?, ?, ?)",
                    (user.id, user.username, user.email, user.created_at),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ValidationError("Username or email already registered") from exc
            conn.commit()
        logger.info("Created user %s", user.id)
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._guard("get user") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row is not None else None

    def find_user_by_email(self, email: str) -> User | None:
        """Look up a registered user by email (case-insensitive)."""
        normalized = (email or "").strip().lower()
        if not normalized:
            return None
        with self._guard("find user by email") as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (normalized,)).fetchone()
        return self._row_to_user(row) if row is not None else None

    def delete_user(self, user_id: str) -> bool:
        """Delete a user; reports, vitals and grants cascade in the store."""
        with self._guard("delete user") as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted user %s", user_id)
        return deleted

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def insert_report(
        self,
        *,
        owner_id: str,
        storage_key: str,
        original_name: str,
        file_type: str,
        report_type: str,
        date: str,
        vitals: dict[str, Any] | None = None,
    ) -> tuple[Report, VitalsRecord | None]:
        """Insert a report row, and optionally its vitals row, in one transaction."""
        report = Report(
            id=self._new_id(),
            owner_id=owner_id,
            storage_key=storage_key,
            original_name=original_name,
            file_type=file_type,
            report_type=report_type,
            date=date,
            created_at=self._now_iso(),
        )
        record: VitalsRecord | None = None
        with self._guard("insert report") as conn:
            conn.execute(
                """INSERT INTO reports
                   (id, owner_id, storage_key, original_name, file_type, report_type, date, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    report.id,
                    report.owner_id,
                    report.storage_key,
                    report.original_name,
                    report.file_type,
                    report.report_type,
                    report.date,
                    report.created_at,
                ),
            )
            if vitals is not None:
                # Vitals attach under the report owner, never anyone else
                record = self._insert_vital_row(conn, owner_id, date, report.id, vitals)
            conn.commit()
        logger.info("Saved report %s (owner=%s, type=%s)", report.id, owner_id, file_type)
        return report, record

    def get_report(self, report_id: str) -> Report | None:
        with self._guard("get report") as conn:
            row = conn.execute("SELECT * FROM reports WHERE id = ?", (report_id,)).fetchone()
        return self._row_to_report(row) if row is not None else None

    def delete_report(self, report_id: str) -> bool:
        """Delete a report row. Grants cascade; linked vitals keep their row."""
        with self._guard("delete report") as conn:
            cursor = conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
            conn.commit()
        return cursor.rowcount > 0

    def list_storage_keys(self, owner_id: str) -> list[str]:
        """Blob keys of every report owned by ``owner_id``."""
        with self._guard("list storage keys") as conn:
            rows = conn.execute(
                "SELECT storage_key FROM reports WHERE owner_id = ?", (owner_id,)
            ).fetchall()
        return [row[0] for row in rows]

    def query_owned_reports(
        self,
        owner_id: str,
        *,
        date: str | None = None,
        report_type: str | None = None,
        vital_fields: tuple[str, ...] | None = None,
    ) -> list[OwnedReport]:
        """Query a user's own reports with optional filters.

        Args:
            owner_id: The owning user.
            date: Exact report date.
            report_type: Exact report type.
            vital_fields: Keep only reports with a linked vitals row where at
                least one of these columns is non-null.

        Returns:
            Reports with their grant counts, newest date first.
        """
        conditions = ["r.owner_id = ?"]
        params: list[Any] = [owner_id]

        if date:
            conditions.append("r.date = ?")
            params.append(date)
        if report_type:
            conditions.append("r.report_type = ?")
            params.append(report_type)
        if vital_fields:
            conditions.append(
                "EXISTS (SELECT 1 FROM vitals v WHERE v.report_id = r.id AND "
                f"{self._non_null_clause(vital_fields, 'v')})"
            )

        query = (
            "SELECT r.*, "
            "(SELECT COUNT(*) FROM grants g WHERE g.report_id = r.id) AS grant_count "
            f"FROM reports r WHERE {' AND '.join(conditions)} "
            "ORDER BY r.date DESC, r.created_at DESC, r.rowid DESC"
        )
        with self._guard("query owned reports") as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            OwnedReport(report=self._row_to_report(row), grant_count=row["grant_count"])
            for row in rows
        ]

    def query_shared_reports(self, grantee_id: str) -> list[SharedReport]:
        """Reports granted to ``grantee_id``, most recently shared first."""
        with self._guard("query shared reports") as conn:
            rows = conn.execute(
                """SELECT r.*, g.id AS grant_id, g.role AS role,
                          g.created_at AS shared_at, u.username AS owner_username
                   FROM grants g
                   INNER JOIN reports r ON r.id = g.report_id
                   LEFT JOIN users u ON u.id = r.owner_id
                   WHERE g.grantee_user_id = ?
                   ORDER BY g.created_at DESC, g.rowid DESC""",
                (grantee_id,),
            ).fetchall()
        return [
            SharedReport(
                report=self._row_to_report(row),
                grant_id=row["grant_id"],
                role=row["role"],
                owner_username=row["owner_username"] or "",
                shared_at=row["shared_at"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Vitals
    # ------------------------------------------------------------------

    def _insert_vital_row(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        date: str,
        report_id: str | None,
        values: dict[str, Any],
    ) -> VitalsRecord:
        record = VitalsRecord(
            id=self._new_id(),
            user_id=user_id,
            date=date,
            report_id=report_id,
            created_at=self._now_iso(),
            **{name: values.get(name) for name in VITAL_FIELDS},
        )
        columns = ", ".join(VITAL_FIELDS)
        placeholders = ", ".join("?" for _ in VITAL_FIELDS)
        conn.execute(
            f"""INSERT INTO vitals (id, user_id, report_id, {columns}, date, created_at)
                VALUES (?, ?, ?, {placeholders}, ?, ?)""",
            (
                record.id,
                record.user_id,
                record.report_id,
                *(getattr(record, name) for name in VITAL_FIELDS),
                record.date,
                record.created_at,
            ),
        )
        return record

    def insert_vital(
        self,
        user_id: str,
        date: str,
        values: dict[str, Any],
        *,
        report_id: str | None = None,
    ) -> VitalsRecord:
        """Insert one vitals row. Missing measurement keys are stored as NULL."""
        with self._guard("insert vitals") as conn:
            record = self._insert_vital_row(conn, user_id, date, report_id, values)
            conn.commit()
        logger.info("Saved vitals %s (user=%s)", record.id, user_id)
        return record

    def get_vital(self, vital_id: str) -> VitalsRecord | None:
        with self._guard("get vitals") as conn:
            row = conn.execute("SELECT * FROM vitals WHERE id = ?", (vital_id,)).fetchone()
        return self._row_to_vital(row) if row is not None else None

    def get_report_vital(self, report_id: str) -> VitalsRecord | None:
        """The first vitals row linked to a report, if any."""
        with self._guard("get report vitals") as conn:
            row = conn.execute(
                """SELECT * FROM vitals WHERE report_id = ?
                   ORDER BY created_at ASC, rowid ASC LIMIT 1""",
                (report_id,),
            ).fetchone()
        return self._row_to_vital(row) if row is not None else None

    def update_vital(
        self,
        vital_id: str,
        values: dict[str, Any],
        *,
        date: str | None = None,
    ) -> None:
        """Replace only the given measurement columns (and date, if given)."""
        assignments: list[str] = []
        params: list[Any] = []
        for name, value in values.items():
            if name not in VITAL_FIELDS:
                raise RepositoryError(f"Invalid vitals column: {name!r}")
            assignments.append(f"{name} = ?")
            params.append(value)
        if date is not None:
            assignments.append("date = ?")
            params.append(date)
        if not assignments:
            return

        params.append(vital_id)
        with self._guard("update vitals") as conn:
            conn.execute(f"UPDATE vitals SET {', '.join(assignments)} WHERE id = ?", params)
            conn.commit()

    def delete_vital(self, vital_id: str) -> bool:
        with self._guard("delete vitals") as conn:
            cursor = conn.execute("DELETE FROM vitals WHERE id = ?", (vital_id,))
            conn.commit()
        return cursor.rowcount > 0

    def query_vitals(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
        vital_fields: tuple[str, ...] | None = None,
    ) -> list[VitalsRecord]:
        """Query a user's vitals rows.

        Args:
            user_id: The owning user.
            since: Inclusive lower date bound.
            until: Inclusive upper date bound.
            vital_fields: Keep only rows where one of these columns is non-null.

        Returns:
            Rows oldest first, ties in insertion order.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if since:
            conditions.append("date >= ?")
            params.append(since)
        if until:
            conditions.append("date <= ?")
            params.append(until)
        if vital_fields:
            conditions.append(self._non_null_clause(vital_fields))

        query = (
            f"SELECT * FROM vitals WHERE {' AND '.join(conditions)} "
            "ORDER BY date ASC, created_at ASC, rowid ASC"
        )
        with self._guard("query vitals") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_vital(row) for row in rows]

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def find_grant(self, report_id: str, grantee_id: str) -> Grant | None:
        with self._guard("find grant") as conn:
            row = conn.execute(
                "SELECT * FROM grants WHERE report_id = ? AND grantee_user_id = ?",
                (report_id, grantee_id),
            ).fetchone()
        return self._row_to_grant(row) if row is not None else None

    def find_grant_owned_by(self, grant_id: str, owner_id: str) -> Grant | None:
        """A grant whose report is currently owned by ``owner_id``."""
        with self._guard("find owned grant") as conn:
            row = conn.execute(
                """SELECT g.* FROM grants g
                   INNER JOIN reports r ON r.id = g.report_id
                   WHERE g.id = ? AND r.owner_id = ?""",
                (grant_id, owner_id),
            ).fetchone()
        return self._row_to_grant(row) if row is not None else None

    def insert_grant(
        self,
        *,
        report_id: str,
        owner_id: str,
        grantee_user_id: str,
        grantee_email: str,
        role: str,
    ) -> Grant:
        """Insert a grant.

        Raises:
            GrantConflictError: A grant for (report, grantee) already exists.
        """
        grant = Grant(
            id=self._new_id(),
            report_id=report_id,
            owner_id=owner_id,
            grantee_user_id=grantee_user_id,
            grantee_email=grantee_email,
            role=role,  # type: ignore[arg-type]
            created_at=self._now_iso(),
        )
        with self._guard("insert grant") as conn:
            try:
                conn.execute(
                    """INSERT INTO grants
                       (id, report_id, owner_id, grantee_user_id, grantee_email, role, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        grant.id,
                        grant.report_id,
                        grant.owner_id,
                        grant.grantee_user_id,
                        grant.grantee_email,
                        grant.role,
                        grant.created_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                if "UNIQUE" not in str(exc):
                    raise
                raise GrantConflictError("Grant already exists") from exc
            conn.commit()
        return grant

    def update_grant_role(self, grant_id: str, role: str) -> None:
        with self._guard("update grant") as conn:
            conn.execute("UPDATE grants SET role = ? WHERE id = ?", (role, grant_id))
            conn.commit()

    def delete_grant(self, grant_id: str) -> bool:
        with self._guard("delete grant") as conn:
            cursor = conn.execute("DELETE FROM grants WHERE id = ?", (grant_id,))
            conn.commit()
        return cursor.rowcount > 0

    def list_report_grants(self, report_id: str) -> list[GrantView]:
        """Grants on a report with the grantee's username when resolvable."""
        with self._guard("list report grants") as conn:
            rows = conn.execute(
                """SELECT g.*, u.username AS grantee_username
                   FROM grants g
                   LEFT JOIN users u ON u.id = g.grantee_user_id
                   WHERE g.report_id = ?
                   ORDER BY g.created_at DESC, g.rowid DESC""",
                (report_id,),
            ).fetchall()
        return [
            GrantView(
                grant=self._row_to_grant(row),
                grantee_name=row["grantee_username"] or row["grantee_email"],
            )
            for row in rows
        ]

    def list_received_grants(self, grantee_id: str) -> list[GrantView]:
        """Grants held by ``grantee_id``, with report and owner details."""
        with self._guard("list received grants") as conn:
            rows = conn.execute(
                """SELECT g.*, gu.username AS grantee_username,
                          ou.username AS owner_username, ou.email AS owner_email,
                          r.storage_key AS r_storage_key, r.original_name AS r_original_name,
                          r.file_type AS r_file_type, r.report_type AS r_report_type,
                          r.date AS r_date, r.created_at AS r_created_at
                   FROM grants g
                   INNER JOIN reports r ON r.id = g.report_id
                   LEFT JOIN users gu ON gu.id = g.grantee_user_id
                   LEFT JOIN users ou ON ou.id = r.owner_id
                   WHERE g.grantee_user_id = ?
                   ORDER BY g.created_at DESC, g.rowid DESC""",
                (grantee_id,),
            ).fetchall()

        views = []
        for row in rows:
            grant = self._row_to_grant(row)
            report = Report(
                id=grant.report_id,
                owner_id=grant.owner_id,
                storage_key=row["r_storage_key"],
                original_name=row["r_original_name"],
                file_type=row["r_file_type"],
                report_type=row["r_report_type"],
                date=row["r_date"],
                created_at=row["r_created_at"],
            )
            views.append(
                GrantView(
                    grant=grant,
                    grantee_name=row["grantee_username"] or grant.grantee_email,
                    owner_username=row["owner_username"] or row["owner_email"] or "",
                    report=report,
                )
            )
        return views

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row: Any) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_report(row: Any) -> Report:
        return Report(
            id=row["id"],
            owner_id=row["owner_id"],
            storage_key=row["storage_key"],
            original_name=row["original_name"],
            file_type=row["file_type"],
            report_type=row["report_type"],
            date=row["date"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_vital(row: Any) -> VitalsRecord:
        return VitalsRecord(
            id=row["id"],
            user_id=row["user_id"],
            report_id=row["report_id"],
            date=row["date"],
            created_at=row["created_at"],
            **{name: row[name] for name in VITAL_FIELDS},
        )

    @staticmethod
    def _row_to_grant(row: Any) -> Grant:
        return Grant(
            id=row["id"],
            report_id=row["report_id"],
            owner_id=row["owner_id"],
            grantee_user_id=row["grantee_user_id"],
            grantee_email=row["grantee_email"],
            role=row["role"],
            created_at=row["created_at"],
        )
