"""Access control — the single authority on who may touch which report.

Every record-scoped operation goes through :meth:`AccessControl.require_read`
or :meth:`AccessControl.require_owner`. Permission is recomputed from the
store on each call; grants can be revoked between requests.

A failed check surfaces as :class:`NotFoundError`, the same error a missing
report produces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from hwallet.core.errors import NotFoundError, ValidationError
from hwallet.core.storage.models import Grant, GrantView, OwnedReport, Report, SharedReport
from hwallet.core.storage.repository import GrantConflictError, WalletRepository
from hwallet.domains.records.domain_logic.categories import resolve_category

logger = logging.getLogger(__name__)

VALID_ROLES = ("viewer", "editor")

_REPORT_NOT_FOUND = "Report not found or access denied"


@dataclass
class GrantOutcome:
    """Result of a share call."""

    grant: Grant
    status: Literal["created", "updated"]


class AccessControl:
    """Resolves read/write permission and owns the grant lifecycle.

    Usage::

        access = AccessControl(repository)
        report = access.require_read(user_id, report_id)
        outcome = access.create_or_update_grant(owner_id, report_id, "b@x.org", "viewer")
    """

    def __init__(self, repository: WalletRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def authorize_read(self, user_id: str, report_id: str) -> bool:
        """True iff the user owns the report or holds a grant on it."""
        return self._readable_report(user_id, report_id) is not None

    def authorize_owner_only(self, user_id: str, report_id: str) -> bool:
        """True iff the user owns the report."""
        report = self._repo.get_report(report_id)
        return report is not None and report.owner_id == user_id

    def authorize_write(self, user_id: str, report_id: str) -> bool:
        """True iff the user owns the report or holds an editor grant."""
        report = self._repo.get_report(report_id)
        if report is None:
            return False
        if report.owner_id == user_id:
            return True
        grant = self._repo.find_grant(report_id, user_id)
        return grant is not None and grant.role == "editor"

    def require_read(self, user_id: str, report_id: str) -> Report:
        """Return the report if readable by the user, else raise NotFound."""
        report = self._readable_report(user_id, report_id)
        if report is None:
            raise NotFoundError(_REPORT_NOT_FOUND)
        return report

    def require_owner(self, user_id: str, report_id: str) -> Report:
        """Return the report if owned by the user, else raise NotFound."""
        report = self._repo.get_report(report_id)
        if report is None or report.owner_id != user_id:
            raise NotFoundError(_REPORT_NOT_FOUND)
        return report

    def _readable_report(self, user_id: str, report_id: str) -> Report | None:
        report = self._repo.get_report(report_id)
        if report is None:
            return None
        if report.owner_id == user_id:
            return report
        if self._repo.find_grant(report_id, user_id) is not None:
            return report
        return None

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def resolve_owned_reports(
        self,
        user_id: str,
        *,
        date: str | None = None,
        report_type: str | None = None,
        vital_category: str | None = None,
    ) -> list[OwnedReport]:
        """The user's own reports, newest date first.

        Raises:
            ValidationError: For an unknown vital category.
        """
        category = resolve_category(vital_category)
        return self._repo.query_owned_reports(
            user_id,
            date=date or None,
            report_type=report_type or None,
            vital_fields=category.defining_fields if category else None,
        )

    def resolve_shared_reports(self, user_id: str) -> list[SharedReport]:
        """Reports shared with the user, most recently shared first."""
        return self._repo.query_shared_reports(user_id)

    def list_grants_for_report(self, owner_id: str, report_id: str) -> list[GrantView]:
        """Grants on an owned report."""
        self.require_owner(owner_id, report_id)
        return self._repo.list_report_grants(report_id)

    def list_grants_received(self, user_id: str) -> list[GrantView]:
        """Grants where the user is the grantee."""
        return self._repo.list_received_grants(user_id)

    # ------------------------------------------------------------------
    # Grant lifecycle
    # ------------------------------------------------------------------

    def create_or_update_grant(
        self,
        owner_id: str,
        report_id: str,
        email: str,
        role: str = "viewer",
    ) -> GrantOutcome:
        """Share a report with a registered user, or change their role.

        Raises:
            NotFoundError: The report is not owned by ``owner_id``, or no
                registered user has ``email``.
            ValidationError: Missing email, self-share or invalid role.
        """
        self.require_owner(owner_id, report_id)
        if not email or not email.strip():
            raise ValidationError("Email address is required")

        grantee = self._repo.find_user_by_email(email)
        if grantee is None:
            raise NotFoundError("User with this email not found")
        if grantee.id == owner_id:
            raise ValidationError("Cannot share report with yourself")
        if role not in VALID_ROLES:
            raise ValidationError("Invalid role. Must be viewer or editor")

        existing = self._repo.find_grant(report_id, grantee.id)
        if existing is None:
            try:
                grant = self._repo.insert_grant(
                    report_id=report_id,
                    owner_id=owner_id,
                    grantee_user_id=grantee.id,
                    grantee_email=grantee.email,
                    role=role,
                )
            except GrantConflictError:
                # A concurrent share inserted first; fall through to update
                existing = self._repo.find_grant(report_id, grantee.id)
                if existing is None:
                    raise
            else:
                logger.info("Created grant %s on report %s", grant.id, report_id)
                return GrantOutcome(grant=grant, status="created")

        self._repo.update_grant_role(existing.id, role)
        existing.role = role  # type: ignore[assignment]
        logger.info("Updated grant %s on report %s", existing.id, report_id)
        return GrantOutcome(grant=existing, status="updated")

    def revoke_grant(self, owner_id: str, grant_id: str) -> Grant:
        """Delete a grant on one of the owner's reports.

        Ownership is checked against the report at call time.

        Raises:
            NotFoundError: No such grant, or its report is not owned by
                ``owner_id``.
        """
        grant = self._repo.find_grant_owned_by(grant_id, owner_id)
        if grant is None or not self._repo.delete_grant(grant.id):
            raise NotFoundError("Grant not found or access denied")
        logger.info("Revoked grant %s on report %s", grant.id, grant.report_id)
        return grant
