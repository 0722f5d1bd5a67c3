"""MCP tools for recording vitals and charting them over time.

Vitals are private to their owner. A grantee only ever sees the single row
linked to a shared report, through ``get_report``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from hwallet.core.identity import Identity
from hwallet.domains.records.tools.responses import as_caller, ok

if TYPE_CHECKING:
    from hwallet.core.identity import IdentityProvider
    from hwallet.domains.records.domain_logic.trend_engine import VitalsTrendEngine

logger = logging.getLogger(__name__)


def register_vitals_tools(
    mcp: FastMCP,
    identity: IdentityProvider,
    engine: VitalsTrendEngine,
) -> None:
    """Register vitals tools on the MCP server."""

    @mcp.tool
    async def record_vitals(
        ctx: Context,
        access_token: str,
        date: str,
        report_id: str | None = None,
        systolic: float | None = None,
        diastolic: float | None = None,
        fasting_sugar: float | None = None,
        postprandial_sugar: float | None = None,
        heart_rate: float | None = None,
        temperature: float | None = None,
        weight: float | None = None,
        height: float | None = None,
        cholesterol: float | None = None,
    ) -> str:
        """Record vital signs from a doctor visit or home measurement.

        Only the values you pass are stored; the rest stay empty.

        Args:
            access_token: Your bearer token.
            date: Date of the reading (YYYY-MM-DD).
            report_id: Optional report of yours to attach the reading to.
            systolic: Systolic blood pressure (whole number).
            diastolic: Diastolic blood pressure (whole number).
            fasting_sugar: Fasting blood sugar.
            postprandial_sugar: Post-meal blood sugar.
            heart_rate: Heart rate in BPM (whole number).
            temperature: Body temperature.
            weight: Body weight.
            height: Height.
            cholesterol: Total cholesterol.
        """
        supplied = {
            "systolic": systolic,
            "diastolic": diastolic,
            "fasting_sugar": fasting_sugar,
            "postprandial_sugar": postprandial_sugar,
            "heart_rate": heart_rate,
            "temperature": temperature,
            "weight": weight,
            "height": height,
            "cholesterol": cholesterol,
        }

        def _op(caller: Identity) -> str:
            fields = {k: v for k, v in supplied.items() if v is not None}
            record = engine.record_vital(caller.user_id, fields, date, report_id=report_id)
            return ok({"vitals": record.to_dict()}, status="created")

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def list_vitals(
        ctx: Context,
        access_token: str,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
    ) -> str:
        """List your vitals entries, oldest first.

        Args:
            access_token: Your bearer token.
            start_date: Inclusive lower date bound (YYYY-MM-DD).
            end_date: Inclusive upper date bound (YYYY-MM-DD).
            category: 'blood_pressure', 'blood_sugar', 'heart_rate',
                'cholesterol', 'weight', 'temperature' or 'all'.
        """
        def _op(caller: Identity) -> str:
            rows = engine.list_vitals(
                caller.user_id, start_date=start_date, end_date=end_date, category=category
            )
            return ok({"count": len(rows), "vitals": [r.to_dict() for r in rows]})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def vitals_trend(
        ctx: Context,
        access_token: str,
        category: str = "all",
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> str:
        """Chart-ready time series of your vitals, one point per entry.

        Points only contain the values that were recorded.

        Args:
            access_token: Your bearer token.
            category: Category to chart, or 'all' for every recorded value.
            start_date: Inclusive lower date bound (YYYY-MM-DD).
            end_date: Inclusive upper date bound (YYYY-MM-DD).
        """
        def _op(caller: Identity) -> str:
            points = engine.trend(
                caller.user_id, start_date=start_date, end_date=end_date, category=category
            )
            return ok({"category": category, "count": len(points), "points": points})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def update_vitals(
        ctx: Context,
        access_token: str,
        vital_id: str,
        fields: dict[str, float | None] | None = None,
        date: str | None = None,
    ) -> str:
        """Change some values of a vitals entry.

        Only the keys present in ``fields`` change; pass null to clear one.

        Args:
            access_token: Your bearer token.
            vital_id: The entry to update.
            fields: Values to replace, e.g. {"heart_rate": 70, "weight": null}.
            date: New date (YYYY-MM-DD), if it should change.
        """
        def _op(caller: Identity) -> str:
            record = engine.update_vital(caller.user_id, vital_id, fields, date)
            return ok({"vitals": record.to_dict()}, status="updated")

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def delete_vitals(ctx: Context, access_token: str, vital_id: str) -> str:
        """Delete one of your vitals entries.

        Args:
            access_token: Your bearer token.
            vital_id: The entry to delete.
        """
        def _op(caller: Identity) -> str:
            engine.delete_vital(caller.user_id, vital_id)
            return ok({"vital_id": vital_id}, status="deleted")

        return as_caller(identity, access_token, _op)
