"""Exception hierarchy for the lead import pipeline."""
from __future__ import annotations

from typing import List, Optional, Sequence


class LeadImportError(RuntimeError):
    """Base class for every error raised by :mod:`lead_importer`."""


class ConfigurationError(LeadImportError):
    """Raised when configuration files are missing or malformed."""


class InvalidInput(LeadImportError):
    """Raised when the import request itself is malformed."""


class Unauthorized(LeadImportError):
    """Raised when the caller is not allowed to import leads."""


class ValidationFailed(LeadImportError):
    """Raised when a single record fails sanitisation or schema validation."""

    def __init__(self, reasons: Sequence[object]) -> None:
        self.reasons: List[object] = list(reasons)
        super().__init__("; ".join(str(reason) for reason in self.reasons) or "Validation failed")


class DetectionFailed(LeadImportError):
    """Raised when the store cannot be queried for existing leads."""


class StoreError(LeadImportError):
    """Typed error surfaced by :class:`~lead_importer.store.LeadStore` implementations."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class UniqueViolation(StoreError):
    """The store rejected a write because the email already exists."""


class WriteFailed(LeadImportError):
    """A single insert or update was rejected by the store."""

    def __init__(self, email: str, message: str) -> None:
        super().__init__(f"{email}: {message}")
        self.email = email
        self.message = message


__all__ = [
    "LeadImportError",
    "ConfigurationError",
    "InvalidInput",
    "Unauthorized",
    "ValidationFailed",
    "DetectionFailed",
    "StoreError",
    "UniqueViolation",
    "WriteFailed",
]
