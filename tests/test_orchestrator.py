"""End-to-end tests for :class:`lead_importer.orchestrator.ImportOrchestrator`."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from lead_importer.auth import StaticAdminAuthorizer
from lead_importer.config import ImportSettings
from lead_importer.errors import DetectionFailed, InvalidInput, Unauthorized
from lead_importer.orchestrator import ImportOrchestrator
from lead_importer.store import InMemoryLeadStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
EXISTING = {"id": "lead-1", "email": "a@x.com", "first_name": "Jo", "city": "", "created_at": "2024-01-01T00:00:00Z"}
INCOMING = {"email": "A@X.com", "first_name": "Joanna", "city": "Berlin"}


def _orchestrator(store: InMemoryLeadStore, **kwargs) -> ImportOrchestrator:
    return ImportOrchestrator(store, clock=lambda: NOW, **kwargs)


def _run(orchestrator: ImportOrchestrator, records, strategy=None, overrides=None, **kwargs):
    return asyncio.run(orchestrator.import_leads(records, strategy, overrides, **kwargs))


@pytest.fixture
def store() -> InMemoryLeadStore:
    return InMemoryLeadStore({"leads": [dict(EXISTING)]})


@pytest.mark.parametrize(
    "strategy, expected",
    [
        ("replace", ("Joanna", "Berlin")),
        ("update", ("Joanna", "Berlin")),
        ("merge", ("Jo", "Berlin")),
    ],
)
def test_conflict_strategies_write_expected_values(store: InMemoryLeadStore, strategy: str, expected) -> None:
    summary = _run(_orchestrator(store), [INCOMING], strategy)

    row = store.get_by_email("a@x.com")
    assert (row["first_name"], row["city"]) == expected
    assert row["id"] == "lead-1"
    assert row["updated_at"] == NOW.isoformat()
    assert summary.updated_count == 1
    assert summary.conflicts_detected_count == 1


def test_skip_strategy_counts_policy_skip(store: InMemoryLeadStore) -> None:
    summary = _run(_orchestrator(store), [INCOMING], "skip")

    assert summary.skipped_policy_count == 1
    assert summary.updated_count == 0
    assert store.get_by_email("a@x.com")["first_name"] == "Jo"
    assert summary.sample_skipped[0].position == 1
    assert summary.sample_skipped[0].email == "a@x.com"


def test_second_merge_import_is_a_skip(store: InMemoryLeadStore) -> None:
    orchestrator = _orchestrator(store)

    first = _run(orchestrator, [INCOMING], "merge")
    second = _run(orchestrator, [INCOMING], "merge")

    assert first.updated_count == 1
    assert second.updated_count == 0
    assert second.skipped_policy_count == 1


def test_every_record_gets_exactly_one_disposition(store: InMemoryLeadStore) -> None:
    store.failing_emails = {"broken@x.com"}
    records = [
        INCOMING,
        {"email": "new@x.com", "first_name": "New"},
        {"email": "5551234567"},
        {"first_name": "No Email"},
        {"email": "broken@x.com"},
        {"email": "other@x.com", "city": ["not", "a", "string"]},
    ]

    summary = _run(_orchestrator(store), records, "update")

    assert summary.inserted_count == 1
    assert summary.updated_count == 1
    assert summary.skipped_invalid_count == 3
    assert summary.skipped_policy_count == 0
    assert summary.failed_count == 1
    assert (
        summary.inserted_count
        + summary.updated_count
        + summary.skipped_policy_count
        + summary.skipped_invalid_count
        + summary.failed_count
        == len(records)
    )
    assert summary.total_processed == summary.total_records == len(records)
    assert [skipped.position for skipped in summary.sample_skipped] == [3, 4, 6]
    assert summary.sample_skipped[1].email == "(empty)"
    assert [error.email for error in summary.sample_errors] == ["broken@x.com"]


def test_per_email_override_beats_default(store: InMemoryLeadStore) -> None:
    summary = _run(_orchestrator(store), [INCOMING], "skip", {" A@x.com ": "merge"})

    assert summary.updated_count == 1
    assert store.get_by_email("a@x.com")["city"] == "Berlin"


def test_invalid_records_never_reach_the_store() -> None:
    store = InMemoryLeadStore()

    summary = _run(_orchestrator(store), [{"email": "nope"}, {"email": ""}])

    assert store.lookup_calls == []
    assert summary.skipped_invalid_count == 2
    assert summary.total_processed == 2


def test_lookups_follow_configured_batch_size() -> None:
    store = InMemoryLeadStore()
    settings = ImportSettings(lookup_batch_size=100, insert_batch_size=100)
    records = [{"email": f"lead{index}@example.com"} for index in range(250)]

    summary = _run(_orchestrator(store, settings=settings), records)

    assert [len(call) for call in store.lookup_calls] == [100, 100, 50]
    assert summary.inserted_count == 250
    assert store.bulk_insert_calls == 3


def test_summary_samples_are_bounded() -> None:
    store = InMemoryLeadStore()
    settings = ImportSettings(sample_limit=5)
    records = [{"email": f"bad-{index}"} for index in range(20)] + [{"email": "ok@example.com"}]

    summary = _run(_orchestrator(store, settings=settings), records)

    assert summary.skipped_invalid_count == 20
    assert len(summary.sample_skipped) == 5
    assert summary.inserted_count == 1


def test_empty_request_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        _run(_orchestrator(InMemoryLeadStore()), [])


def test_unknown_default_strategy_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        _run(_orchestrator(InMemoryLeadStore()), [INCOMING], "overwrite")


def test_unknown_override_strategy_is_rejected(store: InMemoryLeadStore) -> None:
    with pytest.raises(InvalidInput):
        _run(_orchestrator(store), [INCOMING], "skip", {"a@x.com": "clobber"})
    assert store.lookup_calls == []


def test_unauthorized_principal_is_rejected_before_any_work(store: InMemoryLeadStore) -> None:
    orchestrator = _orchestrator(store, authorizer=StaticAdminAuthorizer(["admin-1"]))

    with pytest.raises(Unauthorized):
        _run(orchestrator, [INCOMING], "update", principal="intern-7")

    assert store.lookup_calls == []
    summary = _run(orchestrator, [INCOMING], "update", principal="admin-1")
    assert summary.updated_count == 1


def test_detection_failure_is_fatal_and_writes_nothing(store: InMemoryLeadStore) -> None:
    store.fail_lookup = True

    with pytest.raises(DetectionFailed):
        _run(_orchestrator(store), [INCOMING, {"email": "new@x.com"}], "replace")

    assert len(store.rows()) == 1
    assert store.get_by_email("a@x.com")["first_name"] == "Jo"


def test_summary_as_dict_and_message(store: InMemoryLeadStore) -> None:
    summary = _run(_orchestrator(store), [INCOMING, {"email": "new@x.com"}, {"email": "bad"}], "update")

    payload = summary.as_dict()
    assert payload["inserted_count"] == 1
    assert payload["updated_count"] == 1
    assert payload["skipped_count"] == 1
    assert payload["sample_skipped"] == [{"position": 3, "email": "bad", "reason": "Invalid or missing email address"}]
    assert summary.message == "Successfully processed 2 leads (1 updated), 1 skipped"


def test_preview_reports_conflicts_without_writing(store: InMemoryLeadStore) -> None:
    orchestrator = _orchestrator(store)

    report = asyncio.run(orchestrator.preview([INCOMING, {"email": "new@x.com"}, {"email": "bad"}]))

    assert report.total_leads == 2
    assert report.conflict_count == 1
    assert report.new_lead_count == 1
    assert report.conflicts[0].existing.first_name == "Jo"
    assert report.as_dict()["skipped_invalid"][0]["position"] == 3
    assert len(store.rows()) == 1


@pytest.mark.parametrize(
    "created_at",
    ["2024-05-01T12:34:56.12345+00:00", "01/05/2024 12:00"],
)
def test_existing_rows_with_irregular_timestamps_still_import(created_at: str) -> None:
    store = InMemoryLeadStore(
        {"leads": [{"id": "lead-1", "email": "a@x.com", "created_at": created_at, "updated_at": created_at}]}
    )

    summary = _run(_orchestrator(store), [{"email": "a@x.com", "city": "Berlin"}], "merge")

    assert summary.updated_count == 1
    row = store.get_by_email("a@x.com")
    assert row["city"] == "Berlin"
    assert row["created_at"] == created_at
    assert row["updated_at"] == NOW.isoformat()


def test_resolution_error_fails_only_that_record(monkeypatch: pytest.MonkeyPatch) -> None:
    from lead_importer.orchestrator import service

    store = InMemoryLeadStore(
        {
            "leads": [
                dict(EXISTING),
                {"id": "lead-2", "email": "b@x.com", "first_name": "Bo"},
            ]
        }
    )
    real_resolve = service.resolve

    def flaky_resolve(existing, incoming, strategy, *, now=None):
        if incoming.email == "b@x.com":
            raise RuntimeError("resolver exploded")
        return real_resolve(existing, incoming, strategy, now=now)

    monkeypatch.setattr(service, "resolve", flaky_resolve)
    records = [INCOMING, {"email": "b@x.com", "first_name": "Bob"}, {"email": "new@x.com"}]

    summary = _run(_orchestrator(store), records, "update")

    assert summary.failed_count == 1
    assert summary.updated_count == 1
    assert summary.inserted_count == 1
    assert summary.total_processed == len(records)
    assert [error.email for error in summary.sample_errors] == ["b@x.com"]
    assert summary.sample_errors[0].error.startswith("Unexpected error preparing update for b@x.com")
    assert "resolver exploded" in summary.sample_errors[0].error
    assert store.get_by_email("b@x.com")["first_name"] == "Bo"
    assert store.get_by_email("a@x.com")["first_name"] == "Joanna"
    assert store.get_by_email("new@x.com") is not None
