"""Data models shared by the sanitiser, validator, detector, resolver and committer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import InvalidInput


# --- Field enumeration ---

class LeadField(str, Enum):
    """Caller-supplied lead attributes that an import may write."""

    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    STUDIO_NAME = "studio_name"
    LEAD_SOURCE = "lead_source"
    CURRENT_PLATFORM = "current_platform"
    CITY = "city"
    STATE = "state"
    COUNTRY_CODE = "country_code"

    def read(self, record: Union["Lead", "ValidRecord"]) -> str:
        """Return the attribute value, treating ``None`` as an empty string."""

        return getattr(record, self.value) or ""


LEAD_ATTRIBUTES: Tuple[LeadField, ...] = tuple(LeadField)


def is_blank(value: Optional[str]) -> bool:
    """Strings are blank when empty after trimming; ``None`` is blank too."""

    return value is None or not value.strip()


class ConflictStrategy(str, Enum):
    """How an incoming record is applied to a lead that already exists."""

    SKIP = "skip"
    REPLACE = "replace"
    UPDATE = "update"
    MERGE = "merge"

    @classmethod
    def parse(cls, value: Union[str, "ConflictStrategy"]) -> "ConflictStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(strategy.value for strategy in cls)
            raise InvalidInput(f"Unknown conflict strategy '{value}'. Expected one of: {choices}") from exc


# --- Input Models ---

class RawLeadRecord(BaseModel):
    """Lead-like payload as received from a spreadsheet or API caller."""

    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    studio_name: Optional[str] = None
    lead_source: Optional[str] = None
    current_platform: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country_code: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        # Spreadsheet cells arrive as NaN or numbers; booleans and containers stay invalid.
        if value is None:
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


@dataclass(frozen=True)
class ValidationIssue:
    """A single field-level validation problem."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class ValidRecord:
    """Sanitised and normalised incoming lead; every attribute defaults to ``""``."""

    email: str
    first_name: str = ""
    last_name: str = ""
    studio_name: str = ""
    lead_source: str = ""
    current_platform: str = ""
    city: str = ""
    state: str = ""
    country_code: str = ""

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"email": self.email}
        row.update({attribute.value: attribute.read(self) for attribute in LEAD_ATTRIBUTES})
        return row


@dataclass(frozen=True)
class Valid:
    record: ValidRecord


@dataclass(frozen=True)
class Invalid:
    reasons: Tuple[ValidationIssue, ...]

    @property
    def first_reason(self) -> str:
        if not self.reasons:
            return "Validation failed"
        return self.reasons[0].message


ValidationOutcome = Union[Valid, Invalid]


# --- Stored Models ---

Timestamp = Union[datetime, str]


def _parse_timestamp(value: Any) -> Optional[Timestamp]:
    """Parse an ISO timestamp from the store, keeping the raw text when it is not one."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return str(value)


def _format_timestamp(value: Optional[Timestamp]) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return value.isoformat()


@dataclass(slots=True)
class Lead:
    """A lead row as held by the store."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    studio_name: str = ""
    lead_source: str = ""
    current_platform: str = ""
    city: str = ""
    state: str = ""
    country_code: str = ""
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Lead":
        attributes = {attribute.value: row.get(attribute.value) or "" for attribute in LEAD_ATTRIBUTES}
        return cls(
            id=str(row["id"]),
            email=str(row.get("email") or ""),
            created_at=_parse_timestamp(row.get("created_at")),
            updated_at=_parse_timestamp(row.get("updated_at")),
            **attributes,
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"id": self.id, "email": self.email}
        row.update({attribute.value: attribute.read(self) for attribute in LEAD_ATTRIBUTES})
        row["created_at"] = _format_timestamp(self.created_at)
        row["updated_at"] = _format_timestamp(self.updated_at)
        return row

    def update_patch(self) -> Dict[str, Any]:
        """Columns written by an update; ``id``, ``email`` and ``created_at`` are never sent."""

        patch: Dict[str, Any] = {attribute.value: attribute.read(self) for attribute in LEAD_ATTRIBUTES}
        patch["updated_at"] = _format_timestamp(self.updated_at)
        return patch


@dataclass(frozen=True)
class ConflictRecord:
    """An incoming record paired with the existing lead that shares its email."""

    email: str
    existing: Lead
    incoming: ValidRecord
    index: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "existing": self.existing.to_row(),
            "incoming": self.incoming.to_row(),
        }


# --- Results ---

@dataclass(frozen=True)
class SkippedRecord:
    position: int
    email: str
    reason: str

    def as_dict(self) -> Dict[str, Any]:
        return {"position": self.position, "email": self.email, "reason": self.reason}


@dataclass(frozen=True)
class ErrorDetail:
    email: str
    error: str

    def as_dict(self) -> Dict[str, Any]:
        return {"email": self.email, "error": self.error}


@dataclass
class CommitResult:
    """Outcome of writing updates and inserts to the store."""

    inserted: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[ErrorDetail] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.inserted + self.updated

    def record_failure(self, email: str, message: str) -> None:
        self.failed += 1
        self.errors.append(ErrorDetail(email=email, error=message))

    def sample_errors(self, limit: int = 10) -> List[ErrorDetail]:
        return self.errors[:limit]


@dataclass
class ImportSummary:
    """Per-request summary returned by :meth:`ImportOrchestrator.import_leads`."""

    total_records: int = 0
    inserted_count: int = 0
    updated_count: int = 0
    skipped_policy_count: int = 0
    skipped_invalid_count: int = 0
    failed_count: int = 0
    conflicts_detected_count: int = 0
    sample_skipped: List[SkippedRecord] = field(default_factory=list)
    sample_errors: List[ErrorDetail] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.skipped_policy_count + self.skipped_invalid_count

    @property
    def total_processed(self) -> int:
        return self.inserted_count + self.updated_count + self.skipped_count + self.failed_count

    @property
    def message(self) -> str:
        succeeded = self.inserted_count + self.updated_count
        text = f"Successfully processed {succeeded} leads"
        if self.updated_count:
            text += f" ({self.updated_count} updated)"
        if self.skipped_count:
            text += f", {self.skipped_count} skipped"
        if self.failed_count:
            text += f", {self.failed_count} failed"
        return text

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "inserted_count": self.inserted_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "skipped_policy_count": self.skipped_policy_count,
            "skipped_invalid_count": self.skipped_invalid_count,
            "failed_count": self.failed_count,
            "conflicts_detected_count": self.conflicts_detected_count,
            "sample_skipped": [skipped.as_dict() for skipped in self.sample_skipped],
            "sample_errors": [error.as_dict() for error in self.sample_errors],
            "message": self.message,
        }


@dataclass
class ConflictReport:
    """Read-only conflict preview, produced without writing anything."""

    conflicts: List[ConflictRecord] = field(default_factory=list)
    total_leads: int = 0
    skipped_invalid: List[SkippedRecord] = field(default_factory=list)

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    @property
    def new_lead_count(self) -> int:
        return self.total_leads - self.conflict_count

    def as_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [conflict.as_dict() for conflict in self.conflicts],
            "total_leads": self.total_leads,
            "conflict_count": self.conflict_count,
            "new_lead_count": self.new_lead_count,
            "skipped_invalid": [skipped.as_dict() for skipped in self.skipped_invalid],
        }


__all__ = [
    "LeadField",
    "LEAD_ATTRIBUTES",
    "is_blank",
    "ConflictStrategy",
    "RawLeadRecord",
    "ValidationIssue",
    "ValidRecord",
    "Valid",
    "Invalid",
    "ValidationOutcome",
    "Lead",
    "ConflictRecord",
    "SkippedRecord",
    "ErrorDetail",
    "CommitResult",
    "ImportSummary",
    "ConflictReport",
]
