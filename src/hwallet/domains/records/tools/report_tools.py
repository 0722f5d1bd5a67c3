"""MCP tools for report upload, listing, detail, download and deletion.

File bytes travel as base64 in both directions. Every tool requires the
caller's bearer token in ``access_token``.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from hwallet.core.errors import ValidationError
from hwallet.core.identity import Identity
from hwallet.domains.records.tools.responses import as_caller, ok

if TYPE_CHECKING:
    from hwallet.core.identity import IdentityProvider
    from hwallet.domains.records.domain_logic.report_registry import ReportRegistry

logger = logging.getLogger(__name__)


def _decode_file(file_base64: str) -> bytes:
    try:
        return base64.b64decode(file_base64 or "", validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("File content must be valid base64") from None


def register_report_tools(
    mcp: FastMCP,
    identity: IdentityProvider,
    registry: ReportRegistry,
) -> None:
    """Register report tools on the MCP server."""

    @mcp.tool
    async def upload_report(
        ctx: Context,
        access_token: str,
        filename: str,
        content_type: str,
        file_base64: str,
        report_type: str,
        date: str,
        vitals: dict[str, float | None] | None = None,
    ) -> str:
        """Upload a medical report (PDF or image, up to 10 MB).

        Args:
            access_token: Your bearer token.
            filename: Original file name, including extension.
            content_type: Declared MIME type (e.g., 'application/pdf').
            file_base64: File content, base64-encoded.
            report_type: Kind of report (e.g., 'Blood Test', 'X-Ray').
            date: Report date (YYYY-MM-DD).
            vitals: Optional measurements from the report, e.g.
                {"systolic": 120, "diastolic": 80, "fasting_sugar": 95}.
        """
        def _op(caller: Identity) -> str:
            data = _decode_file(file_base64)
            detail = registry.upload(
                caller.user_id,
                filename,
                content_type,
                data,
                report_type=report_type,
                date=date,
                vitals=vitals,
            )
            return ok({"report": detail.to_dict()}, status="created")

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def list_reports(
        ctx: Context,
        access_token: str,
        date: str | None = None,
        report_type: str | None = None,
        vital_category: str | None = None,
    ) -> str:
        """List your own reports, newest first, with how many people each is shared with.

        Args:
            access_token: Your bearer token.
            date: Only reports on this exact date (YYYY-MM-DD).
            report_type: Only reports of this type.
            vital_category: Only reports with linked vitals of this category
                ('blood_pressure', 'blood_sugar', 'heart_rate', 'cholesterol',
                'weight', 'temperature').
        """
        def _op(caller: Identity) -> str:
            reports = registry.list_owned(
                caller.user_id,
                date=date,
                report_type=report_type,
                vital_category=vital_category,
            )
            return ok({"count": len(reports), "reports": [r.to_dict() for r in reports]})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def list_shared_reports(ctx: Context, access_token: str) -> str:
        """List reports other people have shared with you, with your role and the owner."""
        def _op(caller: Identity) -> str:
            reports = registry.list_shared(caller.user_id)
            return ok({"count": len(reports), "reports": [r.to_dict() for r in reports]})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def get_report(ctx: Context, access_token: str, report_id: str) -> str:
        """Show a report's details and its linked vitals, if any.

        Args:
            access_token: Your bearer token.
            report_id: The report to show (yours or shared with you).
        """
        def _op(caller: Identity) -> str:
            detail = registry.detail(caller.user_id, report_id)
            return ok({"report": detail.to_dict()})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def download_report(ctx: Context, access_token: str, report_id: str) -> str:
        """Download a report file (base64) under its original filename.

        Args:
            access_token: Your bearer token.
            report_id: The report to download (yours or shared with you).
        """
        def _op(caller: Identity) -> str:
            downloaded = registry.download(caller.user_id, report_id)
            payload: dict[str, Any] = {
                "filename": downloaded.filename,
                "content_type": downloaded.content_type,
                "size_bytes": len(downloaded.data),
                "file_base64": base64.b64encode(downloaded.data).decode("ascii"),
            }
            return ok(payload)

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def delete_report(ctx: Context, access_token: str, report_id: str) -> str:
        """Permanently delete one of your reports.

        Its shares are removed; vitals recorded with it are kept but unlinked.

        Args:
            access_token: Your bearer token.
            report_id: The report to delete.
        """
        def _op(caller: Identity) -> str:
            report = registry.delete(caller.user_id, report_id)
            return ok({"report_id": report.id}, status="deleted")

        return as_caller(identity, access_token, _op)
