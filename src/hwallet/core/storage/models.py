"""Data models for the wallet persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

Role = Literal["viewer", "editor"]

# Measurement columns of the vitals table, in storage order
VITAL_FIELDS: tuple[str, ...] = (
    "systolic",
    "diastolic",
    "fasting_sugar",
    "postprandial_sugar",
    "heart_rate",
    "temperature",
    "weight",
    "height",
    "cholesterol",
)

INTEGER_VITAL_FIELDS = frozenset({"systolic", "diastolic", "heart_rate"})


@dataclass
class User:
    """A registered identity. Immutable once created."""

    id: str
    username: str
    email: str
    created_at: str = ""


@dataclass
class Report:
    """Metadata for an uploaded report file.

    The owner is fixed at creation; the file bytes live in the blob store
    under ``storage_key``.
    """

    id: str
    owner_id: str
    storage_key: str
    original_name: str
    file_type: str  # extension without the dot: 'pdf', 'png', ...
    report_type: str
    date: str  # ISO 8601 date
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "original_name": self.original_name,
            "file_type": self.file_type,
            "report_type": self.report_type,
            "date": self.date,
            "created_at": self.created_at,
        }


@dataclass
class VitalsRecord:
    """One measurement session. Absent measurements stay ``None``."""

    id: str
    user_id: str
    date: str
    report_id: str | None = None
    systolic: int | None = None
    diastolic: int | None = None
    fasting_sugar: float | None = None
    postprandial_sugar: float | None = None
    heart_rate: int | None = None
    temperature: float | None = None
    weight: float | None = None
    height: float | None = None
    cholesterol: float | None = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "report_id": self.report_id,
            "date": self.date,
            "created_at": self.created_at,
        }
        for name in VITAL_FIELDS:
            data[name] = getattr(self, name)
        return data


@dataclass
class Grant:
    """Gives one user a role on one report."""

    id: str
    report_id: str
    owner_id: str
    grantee_user_id: str
    grantee_email: str
    role: Role
    created_at: str = ""


@dataclass
class OwnedReport:
    """An owned report together with how many grants it carries."""

    report: Report
    grant_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {**self.report.to_dict(), "grant_count": self.grant_count}


@dataclass
class SharedReport:
    """A report visible to the caller through a grant."""

    report: Report
    grant_id: str
    role: Role
    owner_username: str
    shared_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.report.to_dict(),
            "grant_id": self.grant_id,
            "role": self.role,
            "owner_username": self.owner_username,
            "shared_at": self.shared_at,
        }


@dataclass
class GrantView:
    """A grant annotated with display names for listings."""

    grant: Grant
    grantee_name: str
    owner_username: str = ""
    report: Report | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.grant.id,
            "report_id": self.grant.report_id,
            "owner_id": self.grant.owner_id,
            "grantee_user_id": self.grant.grantee_user_id,
            "grantee_email": self.grant.grantee_email,
            "grantee_name": self.grantee_name,
            "role": self.grant.role,
            "created_at": self.grant.created_at,
        }
        if self.owner_username:
            data["owner_username"] = self.owner_username
        if self.report is not None:
            data["report"] = self.report.to_dict()
        return data
