"""Bulk lead import with conflict detection and field-level merge resolution."""

from .commit import BatchCommitter
from .conflicts import detect_conflicts
from .errors import (
    DetectionFailed,
    InvalidInput,
    LeadImportError,
    StoreError,
    Unauthorized,
    UniqueViolation,
    ValidationFailed,
    WriteFailed,
)
from .merge import resolve, resolve_strategy
from .models import (
    CommitResult,
    ConflictRecord,
    ConflictReport,
    ConflictStrategy,
    ImportSummary,
    Invalid,
    Lead,
    LeadField,
    RawLeadRecord,
    Valid,
    ValidRecord,
)
from .orchestrator import ImportOrchestrator
from .sanitize import sanitize_email
from .validation import validate_record

__all__ = [
    "BatchCommitter",
    "CommitResult",
    "ConflictRecord",
    "ConflictReport",
    "ConflictStrategy",
    "DetectionFailed",
    "ImportOrchestrator",
    "ImportSummary",
    "Invalid",
    "InvalidInput",
    "Lead",
    "LeadField",
    "LeadImportError",
    "RawLeadRecord",
    "StoreError",
    "Unauthorized",
    "UniqueViolation",
    "Valid",
    "ValidRecord",
    "ValidationFailed",
    "WriteFailed",
    "detect_conflicts",
    "resolve",
    "resolve_strategy",
    "sanitize_email",
    "validate_record",
]
