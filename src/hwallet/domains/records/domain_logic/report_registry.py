"""Report registry — upload, listing, detail, download and deletion.

Authorization is delegated to :class:`AccessControl` and file bytes to the
blob store. Blob writes happen before the metadata commit, so a failed
commit removes the blob it just wrote.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from hwallet.core.errors import NotFoundError, StoreFailure, ValidationError, WalletError
from hwallet.core.storage.blobs import BlobStore, BlobStoreError, new_blob_key
from hwallet.core.storage.models import OwnedReport, Report, SharedReport, VitalsRecord
from hwallet.core.storage.repository import WalletRepository
from hwallet.domains.records.domain_logic.access_control import AccessControl
from hwallet.domains.records.domain_logic.validation import coerce_measurements, require_date

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Allowed extension -> accepted declared content types
ALLOWED_FILE_TYPES: dict[str, frozenset[str]] = {
    "jpeg": frozenset({"image/jpeg", "image/jpg"}),
    "jpg": frozenset({"image/jpeg", "image/jpg"}),
    "png": frozenset({"image/png"}),
    "gif": frozenset({"image/gif"}),
    "pdf": frozenset({"application/pdf"}),
}

_CONTENT_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "pdf": "application/pdf",
}


@dataclass
class ReportDetail:
    """A report and the single vitals row linked to it, if any."""

    report: Report
    vitals: VitalsRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.report.to_dict(),
            "vitals": self.vitals.to_dict() if self.vitals is not None else None,
        }


@dataclass
class DownloadedFile:
    filename: str
    content_type: str
    data: bytes


def check_upload(
    filename: str | None,
    content_type: str | None,
    data: bytes | None,
    *,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> str:
    """Validate an uploaded file and return its normalized extension.

    Raises:
        ValidationError: Empty/oversized file, or an extension or declared
            content type outside the allowed set.
    """
    if not data:
        raise ValidationError("No file uploaded")
    if len(data) > max_bytes:
        raise ValidationError(f"File exceeds the {max_bytes} byte limit")

    name = PurePath(filename or "").name
    extension = PurePath(name).suffix.lstrip(".").lower()
    declared = (content_type or "").split(";", 1)[0].strip().lower()

    accepted = ALLOWED_FILE_TYPES.get(extension)
    if not name or accepted is None or declared not in accepted:
        raise ValidationError("Only PDF and image files are allowed")
    return extension


class ReportRegistry:
    """Orchestrates report operations for an authenticated caller.

    Usage::

        registry = ReportRegistry(repository, access, blob_store)
        report = registry.upload(user_id, "cbc.pdf", "application/pdf", data,
                                 report_type="Blood Test", date="2024-03-01")
        detail = registry.detail(other_user_id, report.id)  # NotFound unless shared
    """

    def __init__(
        self,
        repository: WalletRepository,
        access: AccessControl,
        blob_store: BlobStore,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self._repo = repository
        self._access = access
        self._blobs = blob_store
        self._max_upload_bytes = max_upload_bytes

    def upload(
        self,
        user_id: str,
        filename: str | None,
        content_type: str | None,
        data: bytes | None,
        *,
        report_type: str | None,
        date: str | None,
        vitals: dict[str, Any] | None = None,
    ) -> ReportDetail:
        """Store a report file and its metadata, plus optional vitals.

        Nothing is persisted unless every input is valid.
        """
        extension = check_upload(filename, content_type, data, max_bytes=self._max_upload_bytes)
        if not report_type or not report_type.strip():
            raise ValidationError("Report type and date are required")
        if not date or not str(date).strip():
            raise ValidationError("Report type and date are required")
        day = require_date(date)
        measurements = coerce_measurements(vitals)
        has_vitals = any(value is not None for value in measurements.values())

        key = new_blob_key(extension)
        try:
            self._blobs.put(key, data)  # type: ignore[arg-type]
        except BlobStoreError as exc:
            logger.exception("Failed to store upload blob for user %s", user_id)
            raise StoreFailure() from exc

        try:
            report, record = self._repo.insert_report(
                owner_id=user_id,
                storage_key=key,
                original_name=PurePath(filename or "").name,
                file_type=extension,
                report_type=report_type.strip(),
                date=day,
                vitals=measurements if has_vitals else None,
            )
        except Exception as exc:
            self._discard_blob(key)
            if isinstance(exc, WalletError):
                raise
            raise StoreFailure() from exc

        return ReportDetail(report=report, vitals=record)

    def list_owned(
        self,
        user_id: str,
        *,
        date: str | None = None,
        report_type: str | None = None,
        vital_category: str | None = None,
    ) -> list[OwnedReport]:
        return self._access.resolve_owned_reports(
            user_id, date=date, report_type=report_type, vital_category=vital_category
        )

    def list_shared(self, user_id: str) -> list[SharedReport]:
        return self._access.resolve_shared_reports(user_id)

    def detail(self, user_id: str, report_id: str) -> ReportDetail:
        """Report metadata plus its linked vitals row; owner or grantee only."""
        report = self._access.require_read(user_id, report_id)
        return ReportDetail(report=report, vitals=self._repo.get_report_vital(report.id))

    def download(self, user_id: str, report_id: str) -> DownloadedFile:
        """The report's bytes under its original filename."""
        report = self._access.require_read(user_id, report_id)
        try:
            data = self._blobs.get(report.storage_key)
        except BlobStoreError as exc:
            logger.exception("Failed to read blob for report %s", report.id)
            raise StoreFailure() from exc
        if data is None:
            logger.warning("Blob missing for report %s", report.id)
            raise NotFoundError("File not found")
        return DownloadedFile(
            filename=report.original_name,
            content_type=_CONTENT_TYPES.get(report.file_type, "application/octet-stream"),
            data=data,
        )

    def delete(self, user_id: str, report_id: str) -> Report:
        """Owner-only delete. Grants cascade; linked vitals are unlinked."""
        report = self._access.require_owner(user_id, report_id)
        self._repo.delete_report(report.id)
        self._discard_blob(report.storage_key)
        logger.info("Deleted report %s", report.id)
        return report

    def delete_account(self, user_id: str) -> bool:
        """Delete a user with everything they own, including report blobs."""
        keys = self._repo.list_storage_keys(user_id)
        if not self._repo.delete_user(user_id):
            return False
        for key in keys:
            self._discard_blob(key)
        return True

    def _discard_blob(self, key: str) -> None:
        try:
            self._blobs.delete(key)
        except BlobStoreError:
            logger.exception("Failed to delete blob %s; it is now orphaned", key)
