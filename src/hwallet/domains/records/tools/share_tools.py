"""MCP tools for sharing reports with other registered users."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from hwallet.core.identity import Identity
from hwallet.domains.records.tools.responses import as_caller, ok

if TYPE_CHECKING:
    from hwallet.core.identity import IdentityProvider
    from hwallet.domains.records.domain_logic.access_control import AccessControl

logger = logging.getLogger(__name__)


def register_share_tools(
    mcp: FastMCP,
    identity: IdentityProvider,
    access: AccessControl,
) -> None:
    """Register grant management tools on the MCP server."""

    @mcp.tool
    async def share_report(
        ctx: Context,
        access_token: str,
        report_id: str,
        email: str,
        role: str = "viewer",
    ) -> str:
        """Share one of your reports with a registered user, or change their role.

        Sharing again with the same person updates their role instead of
        adding a second share.

        Args:
            access_token: Your bearer token.
            report_id: The report to share.
            email: Email of the registered user to share with.
            role: 'viewer' (read-only) or 'editor'.
        """
        def _op(caller: Identity) -> str:
            outcome = access.create_or_update_grant(caller.user_id, report_id, email, role)
            return ok(
                {
                    "grant_id": outcome.grant.id,
                    "report_id": outcome.grant.report_id,
                    "grantee_email": outcome.grant.grantee_email,
                    "role": outcome.grant.role,
                },
                status=outcome.status,
            )

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def list_report_grants(ctx: Context, access_token: str, report_id: str) -> str:
        """List who one of your reports is shared with.

        Args:
            access_token: Your bearer token.
            report_id: The report whose shares to list.
        """
        def _op(caller: Identity) -> str:
            grants = access.list_grants_for_report(caller.user_id, report_id)
            return ok({"count": len(grants), "grants": [g.to_dict() for g in grants]})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def list_grants_received(ctx: Context, access_token: str) -> str:
        """List the shares you have received, with report and owner details."""
        def _op(caller: Identity) -> str:
            grants = access.list_grants_received(caller.user_id)
            return ok({"count": len(grants), "grants": [g.to_dict() for g in grants]})

        return as_caller(identity, access_token, _op)

    @mcp.tool
    async def revoke_grant(ctx: Context, access_token: str, grant_id: str) -> str:
        """Revoke a share on one of your reports.

        Args:
            access_token: Your bearer token.
            grant_id: The share to revoke.
        """
        def _op(caller: Identity) -> str:
            grant = access.revoke_grant(caller.user_id, grant_id)
            return ok({"grant_id": grant.id, "report_id": grant.report_id}, status="revoked")

        return as_caller(identity, access_token, _op)
