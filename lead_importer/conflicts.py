"""Detect incoming records whose email already belongs to a stored lead."""
from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .errors import DetectionFailed
from .models import ConflictRecord, Lead, ValidRecord
from .store.base import LeadStore

LOGGER = logging.getLogger(__name__)

DEFAULT_LOOKUP_BATCH_SIZE = 100


def _unique_emails(records: Sequence[ValidRecord]) -> List[str]:
    emails: List[str] = []
    seen = set()
    for record in records:
        email = record.email.strip()
        if email not in seen:
            seen.add(email)
            emails.append(email)
    return emails


async def fetch_existing(
    store: LeadStore,
    emails: Sequence[str],
    *,
    table: str = "leads",
    batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
) -> Dict[str, Lead]:
    """Look ``emails`` up in sequential batches and return existing leads keyed by email."""

    if batch_size <= 0:
        raise ValueError("batch_size must be a positive integer")

    existing_by_email: Dict[str, Lead] = {}
    for start in range(0, len(emails), batch_size):
        batch = list(emails[start : start + batch_size])
        LOGGER.debug("Looking up %s emails (batch %s)", len(batch), start // batch_size + 1)
        try:
            rows = await store.find_by_keys(table, "email", batch)
        except Exception as exc:
            raise DetectionFailed(f"Failed to check for conflicts: {exc}") from exc
        for row in rows:
            try:
                lead = Lead.from_row(row)
            except (KeyError, TypeError, ValueError) as exc:
                raise DetectionFailed(f"Failed to check for conflicts: unreadable lead row ({exc!r})") from exc
            existing_by_email[lead.email] = lead
    return existing_by_email


async def detect_conflicts(
    store: LeadStore,
    records: Sequence[ValidRecord],
    *,
    table: str = "leads",
    batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
) -> List[ConflictRecord]:
    """Return one :class:`ConflictRecord` per record whose email is already stored.

    Conflicts keep the relative order of ``records``; ``ConflictRecord.index``
    is the record's position in ``records``. Any lookup failure raises
    :class:`DetectionFailed` and no partial result is returned.
    """

    existing_by_email = await fetch_existing(
        store, _unique_emails(records), table=table, batch_size=batch_size
    )

    conflicts: List[ConflictRecord] = []
    for index, record in enumerate(records):
        email = record.email.strip()
        existing = existing_by_email.get(email)
        if existing is not None:
            conflicts.append(ConflictRecord(email=email, existing=existing, incoming=record, index=index))

    LOGGER.info("Found %s conflicts among %s records", len(conflicts), len(records))
    return conflicts


__all__ = ["DEFAULT_LOOKUP_BATCH_SIZE", "detect_conflicts", "fetch_existing"]
