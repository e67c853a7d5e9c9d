"""Email clean-up for addresses scraped or pasted from free text."""
from __future__ import annotations

import re
from typing import Any, Optional

_TRAILING_JUNK = re.compile(r"[.\s,>]+$")
_EDGE_BRACKETS = re.compile(r"^[<>\s]+|[<>\s]+$")
_DISALLOWED_CHARS = re.compile(r"[^\w@.\-+]", re.ASCII)
_EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DIGITS_ONLY = re.compile(r"^\d+$")


def sanitize_email(raw: Any) -> Optional[str]:
    """Return the canonical form of ``raw`` or ``None`` when it is not an email.

    ``" John.Doe+CRM@Example.com. "`` becomes ``"john.doe+crm@example.com"``.
    Values that look like phone numbers are rejected even if they contain an
    ``@``.
    """

    if not raw or not isinstance(raw, str):
        return None

    cleaned = raw.strip().lower()
    cleaned = _TRAILING_JUNK.sub("", cleaned)
    cleaned = _EDGE_BRACKETS.sub("", cleaned)
    cleaned = _DISALLOWED_CHARS.sub("", cleaned)

    if not _EMAIL_SHAPE.match(cleaned):
        return None

    if _DIGITS_ONLY.match(cleaned.replace("@", "", 1)):
        return None

    return cleaned


__all__ = ["sanitize_email"]
