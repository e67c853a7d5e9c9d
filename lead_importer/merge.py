"""Field-level resolution of an incoming record against an existing lead."""
from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Union

from .models import LEAD_ATTRIBUTES, ConflictStrategy, Lead, ValidRecord, is_blank


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_strategy(
    email: str,
    default: Union[str, ConflictStrategy],
    overrides: Optional[Mapping[str, ConflictStrategy]] = None,
) -> ConflictStrategy:
    """Per-email overrides take precedence over the batch-wide default."""

    if overrides and email in overrides:
        return ConflictStrategy.parse(overrides[email])
    return ConflictStrategy.parse(default)


def _replace(existing: Lead, incoming: ValidRecord, now: datetime) -> Lead:
    values = {attribute.value: attribute.read(incoming) for attribute in LEAD_ATTRIBUTES}
    return dataclasses.replace(existing, updated_at=now, **values)


def _update(existing: Lead, incoming: ValidRecord, now: datetime) -> Lead:
    values: Dict[str, str] = {}
    for attribute in LEAD_ATTRIBUTES:
        value = attribute.read(incoming)
        values[attribute.value] = attribute.read(existing) if is_blank(value) else value
    return dataclasses.replace(existing, updated_at=now, **values)


def _merge(existing: Lead, incoming: ValidRecord, now: datetime) -> Optional[Lead]:
    filled: Dict[str, str] = {}
    for attribute in LEAD_ATTRIBUTES:
        value = attribute.read(incoming)
        if is_blank(attribute.read(existing)) and not is_blank(value):
            filled[attribute.value] = value
    if not filled:
        return None
    return dataclasses.replace(existing, updated_at=now, **filled)


def resolve(
    existing: Lead,
    incoming: ValidRecord,
    strategy: Union[str, ConflictStrategy],
    *,
    now: Optional[datetime] = None,
) -> Optional[Lead]:
    """Return the lead to write, or ``None`` when nothing should be written.

    ``id``, ``email`` and ``created_at`` always come from ``existing``.

    * ``skip`` never writes.
    * ``replace`` takes every attribute from ``incoming``, blanks included.
    * ``update`` takes the non-blank attributes of ``incoming``.
    * ``merge`` only fills attributes that are blank on ``existing`` and
      returns ``None`` if that changes nothing.
    """

    strategy = ConflictStrategy.parse(strategy)
    timestamp = now or utcnow()

    if strategy is ConflictStrategy.SKIP:
        return None
    if strategy is ConflictStrategy.REPLACE:
        return _replace(existing, incoming, timestamp)
    if strategy is ConflictStrategy.UPDATE:
        return _update(existing, incoming, timestamp)
    return _merge(existing, incoming, timestamp)


__all__ = ["resolve", "resolve_strategy", "utcnow"]
