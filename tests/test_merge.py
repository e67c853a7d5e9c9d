"""Unit tests for :mod:`lead_importer.merge`."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lead_importer.errors import InvalidInput
from lead_importer.merge import resolve, resolve_strategy
from lead_importer.models import ConflictStrategy, Lead, ValidRecord

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def existing() -> Lead:
    return Lead(
        id="lead-1",
        email="a@x.com",
        first_name="Jo",
        studio_name="Flow Studio",
        city="",
        created_at=CREATED,
        updated_at=CREATED,
    )


@pytest.fixture
def incoming() -> ValidRecord:
    return ValidRecord(email="a@x.com", first_name="Joanna", city="Berlin")


def test_skip_never_writes(existing: Lead, incoming: ValidRecord) -> None:
    assert resolve(existing, incoming, ConflictStrategy.SKIP, now=NOW) is None


def test_replace_takes_everything_from_incoming(existing: Lead, incoming: ValidRecord) -> None:
    merged = resolve(existing, incoming, "replace", now=NOW)

    assert merged is not None
    assert (merged.first_name, merged.city) == ("Joanna", "Berlin")
    assert merged.studio_name == ""
    assert (merged.id, merged.email, merged.created_at) == ("lead-1", "a@x.com", CREATED)
    assert merged.updated_at == NOW


def test_update_lets_incoming_win_where_present(existing: Lead, incoming: ValidRecord) -> None:
    merged = resolve(existing, incoming, "update", now=NOW)

    assert merged is not None
    assert (merged.first_name, merged.city) == ("Joanna", "Berlin")
    assert merged.studio_name == "Flow Studio"
    assert (merged.id, merged.email) == ("lead-1", "a@x.com")
    assert merged.updated_at == NOW


def test_merge_only_fills_blank_fields(existing: Lead, incoming: ValidRecord) -> None:
    merged = resolve(existing, incoming, "merge", now=NOW)

    assert merged is not None
    assert (merged.first_name, merged.city) == ("Jo", "Berlin")
    assert merged.studio_name == "Flow Studio"
    assert merged.updated_at == NOW


def test_merge_is_idempotent(existing: Lead, incoming: ValidRecord) -> None:
    first = resolve(existing, incoming, "merge", now=NOW)
    assert first is not None

    assert resolve(first, incoming, "merge", now=NOW) is None


def test_merge_treats_whitespace_as_blank(incoming: ValidRecord) -> None:
    existing = Lead(id="lead-2", email="a@x.com", first_name="Jo", city="   ")

    merged = resolve(existing, incoming, "merge", now=NOW)

    assert merged is not None
    assert merged.city == "Berlin"


def test_merge_without_new_information_is_noop(existing: Lead) -> None:
    incoming = ValidRecord(email="a@x.com", first_name="Someone Else")

    assert resolve(existing, incoming, "merge", now=NOW) is None


def test_resolve_does_not_mutate_existing(existing: Lead, incoming: ValidRecord) -> None:
    resolve(existing, incoming, "replace", now=NOW)

    assert existing.first_name == "Jo"
    assert existing.updated_at == CREATED


def test_per_email_override_beats_default() -> None:
    overrides = {"a@x.com": ConflictStrategy.MERGE}

    assert resolve_strategy("a@x.com", "skip", overrides) is ConflictStrategy.MERGE
    assert resolve_strategy("b@x.com", "skip", overrides) is ConflictStrategy.SKIP


def test_unknown_strategy_is_invalid_input(existing: Lead, incoming: ValidRecord) -> None:
    with pytest.raises(InvalidInput):
        resolve(existing, incoming, "overwrite")
