"""Vitals trend engine — per-category time series from stored vitals rows.

Rows are sparse: a blood-pressure reading has no sugar values and vice
versa. Filtering and projection both go through the category table in
:mod:`hwallet.domains.records.domain_logic.categories`, and absent values
are left out of a point rather than filled in.
"""

from __future__ import annotations

import logging
from typing import Any

from hwallet.core.errors import NotFoundError, ValidationError
from hwallet.core.storage.models import VitalsRecord
from hwallet.core.storage.repository import WalletRepository
from hwallet.domains.records.domain_logic.categories import (
    ALL_PROJECTION,
    resolve_category,
)
from hwallet.domains.records.domain_logic.validation import (
    coerce_measurements,
    optional_date,
    require_date,
)

logger = logging.getLogger(__name__)

_VITAL_NOT_FOUND = "Vital entry not found or access denied"


class VitalsTrendEngine:
    """Records, filters and projects a user's vitals.

    All operations are scoped to rows owned by the caller.

    Usage::

        engine = VitalsTrendEngine(repository)
        engine.record_vital(user_id, {"heart_rate": 72}, "2024-01-01")
        points = engine.trend(user_id, category="heart_rate")
    """

    def __init__(self, repository: WalletRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_vitals(
        self,
        user_id: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
    ) -> list[VitalsRecord]:
        """The user's rows within an inclusive date range, oldest first.

        Args:
            user_id: The caller.
            start_date: Inclusive lower bound (optional).
            end_date: Inclusive upper bound (optional).
            category: Keep rows with a non-null value for this category;
                "all" or None keeps every row.

        Raises:
            ValidationError: Malformed dates or unknown category.
        """
        since = optional_date(start_date, field_name="start_date")
        until = optional_date(end_date, field_name="end_date")
        resolved = resolve_category(category)
        return self._repo.query_vitals(
            user_id,
            since=since,
            until=until,
            vital_fields=resolved.defining_fields if resolved else None,
        )

    def trend(
        self,
        user_id: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
    ) -> list[dict[str, Any]]:
        """One projected point per stored row, oldest first.

        Points are never merged by day. Each point has ``date`` plus the
        category's non-null values under their point names, e.g.
        ``{"date": "2024-01-01", "fasting": 95.0}``.
        """
        resolved = resolve_category(category)
        projection = resolved.projection if resolved else ALL_PROJECTION
        rows = self.list_vitals(
            user_id, start_date=start_date, end_date=end_date, category=category
        )
        return [_project(row, projection) for row in rows]

    def get_vital(self, user_id: str, vital_id: str) -> VitalsRecord:
        record = self._repo.get_vital(vital_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError(_VITAL_NOT_FOUND)
        return record

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_vital(
        self,
        user_id: str,
        fields: dict[str, Any] | None,
        date: str | None,
        *,
        report_id: str | None = None,
    ) -> VitalsRecord:
        """Store a new vitals row for the user.

        Raises:
            ValidationError: Missing date, bad fields, or a ``report_id``
                that is not one of the user's own reports.
        """
        day = require_date(date)
        values = coerce_measurements(fields)
        if report_id:
            report = self._repo.get_report(report_id)
            if report is None or report.owner_id != user_id:
                raise ValidationError("Vitals can only be attached to your own reports")
        return self._repo.insert_vital(user_id, day, values, report_id=report_id or None)

    def update_vital(
        self,
        user_id: str,
        vital_id: str,
        partial_fields: dict[str, Any] | None,
        date: str | None = None,
    ) -> VitalsRecord:
        """Replace only the supplied fields; ``None`` clears a field.

        Raises:
            NotFoundError: The row does not exist or belongs to someone else.
            ValidationError: Bad fields or date.
        """
        self.get_vital(user_id, vital_id)
        values = coerce_measurements(partial_fields)
        day = optional_date(date, field_name="date")
        self._repo.update_vital(vital_id, values, date=day)
        logger.info("Updated vitals %s (%d fields)", vital_id, len(values))
        return self.get_vital(user_id, vital_id)

    def delete_vital(self, user_id: str, vital_id: str) -> None:
        self.get_vital(user_id, vital_id)
        self._repo.delete_vital(vital_id)
        logger.info("Deleted vitals %s", vital_id)


def _project(row: VitalsRecord, projection: tuple[tuple[str, str], ...]) -> dict[str, Any]:
    point: dict[str, Any] = {"date": row.date}
    for column, name in projection:
        value = getattr(row, column)
        if value is not None:
            point[name] = value
    return point
