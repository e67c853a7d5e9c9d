"""Schema validation turning raw lead payloads into :class:`ValidRecord` objects."""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from .errors import ValidationFailed
from .models import (
    LEAD_ATTRIBUTES,
    Invalid,
    RawLeadRecord,
    Valid,
    ValidationIssue,
    ValidationOutcome,
    ValidRecord,
)
from .sanitize import sanitize_email

LOGGER = logging.getLogger(__name__)

MISSING_EMAIL_MESSAGE = "Invalid or missing email address"
INVALID_EMAIL_MESSAGE = "Invalid email address"

# Stricter than the sanitiser's shape check; rejects e.g. unicode or a one-letter TLD.
_ADDRESS_REGEX = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$")


def _issues_from_error(error: ValidationError) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "record"
        issues.append(ValidationIssue(field=location, message=detail.get("msg", "Invalid value")))
    return issues


def _is_valid_address(email: str) -> bool:
    if ".." in email or email.startswith(".") or ".@" in email:
        return False
    return bool(_ADDRESS_REGEX.match(email))


def validate_record(
    raw: Union[RawLeadRecord, Mapping[str, Any], Any],
    *,
    strict: bool = False,
) -> ValidationOutcome:
    """Validate a single raw record.

    All problems are collected rather than stopping at the first one; the
    email issue, when present, is always reported first. With ``strict=True``
    an :class:`Invalid` outcome is raised as :class:`ValidationFailed`.
    """

    outcome = _validate(raw)
    if strict and isinstance(outcome, Invalid):
        raise ValidationFailed(outcome.reasons)
    return outcome


def _validate(raw: Any) -> ValidationOutcome:
    if isinstance(raw, RawLeadRecord):
        data = raw.model_dump()
    elif isinstance(raw, Mapping):
        data = dict(raw)
    else:
        return Invalid(reasons=(ValidationIssue("record", "Lead record must be an object"),))

    parsed: Optional[RawLeadRecord] = None
    issues: List[ValidationIssue] = []
    try:
        parsed = RawLeadRecord.model_validate(data)
    except ValidationError as exc:
        issues = [issue for issue in _issues_from_error(exc) if issue.field != "email"]

    raw_email = parsed.email if parsed is not None else data.get("email")
    email = sanitize_email(raw_email)
    if email is None:
        issues.insert(0, ValidationIssue("email", MISSING_EMAIL_MESSAGE))
    elif not _is_valid_address(email):
        issues.insert(0, ValidationIssue("email", INVALID_EMAIL_MESSAGE))

    if issues or parsed is None or email is None:
        return Invalid(reasons=tuple(issues))

    if email != raw_email:
        LOGGER.debug("Sanitised email %r -> %r", raw_email, email)

    attributes = {
        attribute.value: (getattr(parsed, attribute.value) or "").strip()
        for attribute in LEAD_ATTRIBUTES
    }
    return Valid(record=ValidRecord(email=email, **attributes))


__all__ = ["validate_record", "MISSING_EMAIL_MESSAGE", "INVALID_EMAIL_MESSAGE"]
