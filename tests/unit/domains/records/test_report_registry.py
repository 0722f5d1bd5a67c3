"""Tests for ReportRegistry — upload checks, blob compensation and reads."""

from __future__ import annotations

import sqlite3

import pytest

from hwallet.core.errors import NotFoundError, StoreFailure, ValidationError
from hwallet.core.storage.blobs import BlobStoreError, InMemoryBlobStore
from hwallet.core.storage.repository import RepositoryError
from hwallet.domains.records.domain_logic.report_registry import (
    ReportRegistry,
    check_upload,
)

PDF = b"%PDF-1.4 test"


def _upload(registry, user, *, filename="cbc.pdf", content_type="application/pdf",
            data=PDF, report_type="Blood Test", date="2024-03-01", vitals=None):
    return registry.upload(
        user.id, filename, content_type, data,
        report_type=report_type, date=date, vitals=vitals,
    )


class TestCheckUpload:
    @pytest.mark.parametrize(
        "filename,content_type",
        [
            ("scan.png", "image/png"),
            ("photo.JPG", "image/jpeg"),
            ("photo.jpeg", "image/jpg"),
            ("anim.gif", "image/gif"),
            ("lab.pdf", "application/pdf; charset=binary"),
        ],
    )
    def test_allowed(self, filename, content_type):
        check_upload(filename, content_type, b"x")

    @pytest.mark.parametrize(
        "filename,content_type",
        [
            ("notes.txt", "text/plain"),
            ("lab.pdf", "image/png"),
            ("lab.exe", "application/pdf"),
            ("noext", "application/pdf"),
        ],
    )
    def test_rejected(self, filename, content_type):
        with pytest.raises(ValidationError, match="Only PDF and image files"):
            check_upload(filename, content_type, b"x")

    def test_empty(self):
        with pytest.raises(ValidationError, match="No file uploaded"):
            check_upload("lab.pdf", "application/pdf", b"")

    def test_size_limit(self):
        with pytest.raises(ValidationError, match="byte limit"):
            check_upload("lab.pdf", "application/pdf", b"x" * 11, max_bytes=10)


class TestUpload:
    def test_stores_blob_and_row(self, report_registry, blob_store, wallet_repository, alice):
        detail = _upload(report_registry, alice)

        report = detail.report
        assert report.owner_id == alice.id
        assert report.original_name == "cbc.pdf"
        assert report.file_type == "pdf"
        assert report.date == "2024-03-01"
        assert blob_store.blobs[report.storage_key] == PDF
        assert wallet_repository.get_report(report.id) is not None
        assert detail.vitals is None

    def test_storage_key_independent_of_filename(self, report_registry, alice):
        first = _upload(report_registry, alice).report
        second = _upload(report_registry, alice).report
        assert first.storage_key != second.storage_key
        assert "cbc" not in first.storage_key

    def test_path_in_filename_is_stripped(self, report_registry, alice):
        report = _upload(report_registry, alice, filename="../../etc/lab.pdf").report
        assert report.original_name == "lab.pdf"

    def test_with_vitals(self, report_registry, alice):
        detail = _upload(report_registry, alice, vitals={"systolic": 120, "diastolic": 80})
        assert detail.vitals.report_id == detail.report.id
        assert detail.vitals.user_id == alice.id
        assert detail.vitals.date == "2024-03-01"

    def test_all_null_vitals_create_no_row(self, report_registry, trend_engine, alice):
        detail = _upload(report_registry, alice, vitals={"systolic": None})
        assert detail.vitals is None
        assert trend_engine.list_vitals(alice.id) == []

    def test_disallowed_type_persists_nothing(
        self, report_registry, blob_store, wallet_repository, alice
    ):
        with pytest.raises(ValidationError):
            _upload(report_registry, alice, filename="notes.txt", content_type="text/plain")
        assert blob_store.blobs == {}
        assert wallet_repository.query_owned_reports(alice.id) == []

    @pytest.mark.parametrize("field", ["report_type", "date"])
    def test_type_and_date_required(self, report_registry, blob_store, alice, field):
        with pytest.raises(ValidationError, match="Report type and date are required"):
            _upload(report_registry, alice, **{field: ""})
        assert blob_store.blobs == {}

    def test_bad_vitals_persist_nothing(self, report_registry, blob_store, alice):
        with pytest.raises(ValidationError):
            _upload(report_registry, alice, vitals={"systolic": "high"})
        assert blob_store.blobs == {}

    def test_out_of_range_vitals_persist_nothing(
        self, report_registry, trend_engine, blob_store, alice
    ):
        with pytest.raises(ValidationError, match="out of range"):
            _upload(report_registry, alice, vitals={"systolic": 1e20})
        # A later commit on the shared connection must not publish a partial upload
        trend_engine.record_vital(alice.id, {"weight": 70}, "2024-03-02")
        assert report_registry.list_owned(alice.id) == []
        assert blob_store.blobs == {}

    def test_vitals_row_failure_rolls_back_report(
        self, report_registry, trend_engine, wallet_repository, blob_store, alice, monkeypatch
    ):
        def overflow(*args, **kwargs):
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

        with monkeypatch.context() as patched:
            patched.setattr(wallet_repository, "_insert_vital_row", overflow)
            with pytest.raises(StoreFailure):
                _upload(report_registry, alice, vitals={"systolic": 120})

        trend_engine.record_vital(alice.id, {"weight": 70}, "2024-03-02")
        assert report_registry.list_owned(alice.id) == []
        assert blob_store.blobs == {}

    def test_failed_commit_removes_blob(
        self, report_registry, blob_store, wallet_repository, alice, monkeypatch
    ):
        def broken_insert(**kwargs):
            raise RepositoryError()

        monkeypatch.setattr(wallet_repository, "insert_report", broken_insert)
        with pytest.raises(StoreFailure):
            _upload(report_registry, alice)
        assert blob_store.blobs == {}

    def test_unexpected_failure_is_generic(
        self, report_registry, blob_store, wallet_repository, alice, monkeypatch
    ):
        def broken_insert(**kwargs):
            raise sqlite3.OperationalError("disk I/O error at /var/lib/db")

        monkeypatch.setattr(wallet_repository, "insert_report", broken_insert)
        with pytest.raises(StoreFailure) as excinfo:
            _upload(report_registry, alice)
        assert "/var/lib" not in str(excinfo.value)
        assert blob_store.blobs == {}

    def test_blob_write_failure(self, wallet_repository, access_control, alice):
        class FullStore(InMemoryBlobStore):
            def put(self, key, data):
                raise BlobStoreError("disk full")

        registry = ReportRegistry(wallet_repository, access_control, FullStore())
        with pytest.raises(StoreFailure):
            _upload(registry, alice)
        assert wallet_repository.query_owned_reports(alice.id) == []


class TestReads:
    def test_detail_for_grantee_has_linked_vitals_only(
        self, report_registry, access_control, trend_engine, alice, bob
    ):
        detail = _upload(report_registry, alice, vitals={"heart_rate": 70})
        trend_engine.record_vital(alice.id, {"weight": 60.0}, "2024-03-02")
        access_control.create_or_update_grant(alice.id, detail.report.id, bob.email, "viewer")

        seen = report_registry.detail(bob.id, detail.report.id)

        assert seen.vitals.id == detail.vitals.id
        assert seen.vitals.weight is None
        assert "storage_key" not in seen.to_dict()

    def test_detail_stranger_not_found(self, report_registry, alice, bob):
        report = _upload(report_registry, alice).report
        with pytest.raises(NotFoundError):
            report_registry.detail(bob.id, report.id)

    def test_download(self, report_registry, access_control, alice, bob):
        report = _upload(report_registry, alice).report
        access_control.create_or_update_grant(alice.id, report.id, bob.email, "viewer")

        downloaded = report_registry.download(bob.id, report.id)

        assert downloaded.data == PDF
        assert downloaded.filename == "cbc.pdf"
        assert downloaded.content_type == "application/pdf"

    def test_download_missing_blob(self, report_registry, blob_store, alice):
        report = _upload(report_registry, alice).report
        blob_store.delete(report.storage_key)
        with pytest.raises(NotFoundError, match="File not found"):
            report_registry.download(alice.id, report.id)

    def test_list_owned_and_shared(self, report_registry, access_control, alice, bob):
        report = _upload(report_registry, alice).report
        access_control.create_or_update_grant(alice.id, report.id, bob.email, "viewer")

        assert [o.report.id for o in report_registry.list_owned(alice.id)] == [report.id]
        assert [s.report.id for s in report_registry.list_shared(bob.id)] == [report.id]
        assert report_registry.list_owned(bob.id) == []


class TestDelete:
    def test_owner_delete_cascades(
        self, report_registry, access_control, trend_engine, blob_store, alice, bob
    ):
        detail = _upload(report_registry, alice, vitals={"heart_rate": 70})
        access_control.create_or_update_grant(alice.id, detail.report.id, bob.email, "viewer")

        report_registry.delete(alice.id, detail.report.id)

        assert blob_store.blobs == {}
        assert report_registry.list_shared(bob.id) == []
        [row] = trend_engine.list_vitals(alice.id)
        assert row.report_id is None
        assert row.heart_rate == 70

    def test_grantee_cannot_delete(self, report_registry, access_control, blob_store, alice, bob):
        report = _upload(report_registry, alice).report
        access_control.create_or_update_grant(alice.id, report.id, bob.email, "editor")
        with pytest.raises(NotFoundError):
            report_registry.delete(bob.id, report.id)
        assert report.storage_key in blob_store.blobs

    def test_blob_delete_failure_does_not_fail_delete(
        self, wallet_repository, access_control, alice
    ):
        class StickyStore(InMemoryBlobStore):
            def delete(self, key):
                raise BlobStoreError("read-only")

        registry = ReportRegistry(wallet_repository, access_control, StickyStore())
        report = _upload(registry, alice).report
        registry.delete(alice.id, report.id)
        assert wallet_repository.get_report(report.id) is None

    def test_delete_account(self, report_registry, blob_store, wallet_repository, alice, bob):
        _upload(report_registry, alice)
        _upload(report_registry, alice)
        kept = _upload(report_registry, bob).report

        assert report_registry.delete_account(alice.id) is True

        assert list(blob_store.blobs) == [kept.storage_key]
        assert wallet_repository.get_user(alice.id) is None
        assert report_registry.delete_account(alice.id) is False
