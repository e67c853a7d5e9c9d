"""Import orchestrator sequencing validation, detection, resolution and commit."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..auth import AllowAllAuthorizer, Authorizer
from ..commit import BatchCommitter
from ..config import ImportSettings
from ..conflicts import detect_conflicts
from ..errors import InvalidInput, Unauthorized
from ..merge import resolve, resolve_strategy, utcnow
from ..models import (
    ConflictReport,
    ConflictStrategy,
    ErrorDetail,
    ImportSummary,
    Invalid,
    Lead,
    SkippedRecord,
    ValidRecord,
)
from ..sanitize import sanitize_email
from ..store.base import LeadStore
from ..validation import validate_record

LOGGER = logging.getLogger(__name__)

StrategyLike = Union[str, ConflictStrategy]


class ImportStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    CONFLICTS_DETECTED = "conflicts-detected"
    MERGES_RESOLVED = "merges-resolved"
    COMMITTED = "committed"
    SUMMARIZED = "summarized"


@dataclass
class _ValidationPass:
    # (1-based input position, record) for every record that survived validation
    valid: List[Tuple[int, ValidRecord]] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)

    @property
    def records(self) -> List[ValidRecord]:
        return [record for _, record in self.valid]


def _display_email(raw: Any) -> str:
    email = raw.get("email") if isinstance(raw, Mapping) else getattr(raw, "email", None)
    if email is None or email == "":
        return "(empty)"
    return str(email)


class ImportOrchestrator:
    """Runs the bulk import pipeline for one request at a time."""

    def __init__(
        self,
        store: LeadStore,
        *,
        authorizer: Optional[Authorizer] = None,
        settings: Optional[ImportSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._authorizer = authorizer or AllowAllAuthorizer()
        self._settings = settings or ImportSettings()
        self._clock = clock
        self._committer = BatchCommitter(
            store,
            table=self._settings.table,
            update_batch_size=self._settings.update_batch_size,
            insert_batch_size=self._settings.insert_batch_size,
            clock=clock,
        )

    @property
    def settings(self) -> ImportSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def import_leads(
        self,
        records: Sequence[Any],
        default_strategy: Optional[StrategyLike] = None,
        overrides: Optional[Mapping[str, StrategyLike]] = None,
        *,
        principal: Any = None,
    ) -> ImportSummary:
        """Import ``records`` and return a summary covering every one of them.

        Raises :class:`Unauthorized`, :class:`InvalidInput` or
        :class:`~lead_importer.errors.DetectionFailed`; nothing has been
        written when any of these is raised.
        """

        await self._authorize(principal)
        self._check_records(records)
        strategy = ConflictStrategy.parse(default_strategy or self._settings.default_strategy)
        decisions = self._normalise_overrides(overrides)
        self._log_stage(
            ImportStage.RECEIVED,
            "%s records, default strategy %s, %s overrides",
            len(records),
            strategy.value,
            len(decisions),
        )

        summary = ImportSummary(total_records=len(records))
        validation = self._validate_all(records)
        summary.skipped_invalid_count = len(validation.skipped)
        skipped: List[SkippedRecord] = list(validation.skipped)
        self._log_stage(ImportStage.VALIDATED, "%s valid, %s skipped", len(validation.valid), len(validation.skipped))

        if not validation.valid:
            LOGGER.warning("No valid leads to import; all %s records were skipped", len(records))
            return self._finish(summary, skipped, [])

        conflicts = await detect_conflicts(
            self._store,
            validation.records,
            table=self._settings.table,
            batch_size=self._settings.lookup_batch_size,
        )
        summary.conflicts_detected_count = len(conflicts)
        self._log_stage(ImportStage.CONFLICTS_DETECTED, "%s conflicts", len(conflicts))

        conflicting = {conflict.index for conflict in conflicts}
        inserts = [record for index, record in enumerate(validation.records) if index not in conflicting]

        updates: List[Lead] = []
        errors: List[ErrorDetail] = []
        for conflict in conflicts:
            position = validation.valid[conflict.index][0]
            chosen = resolve_strategy(conflict.email, strategy, decisions)
            LOGGER.debug("Resolving conflict for %s with %s", conflict.email, chosen.value)
            try:
                merged = resolve(conflict.existing, conflict.incoming, chosen, now=self._clock())
            except Exception as exc:
                LOGGER.exception("Error preparing update for %s", conflict.email)
                summary.failed_count += 1
                errors.append(ErrorDetail(conflict.email, f"Unexpected error preparing update for {conflict.email}: {exc}"))
                continue

            if merged is None:
                summary.skipped_policy_count += 1
                skipped.append(SkippedRecord(position, conflict.email, self._policy_reason(chosen)))
            else:
                updates.append(merged)
        self._log_stage(
            ImportStage.MERGES_RESOLVED,
            "%s updates, %s inserts, %s skipped by policy",
            len(updates),
            len(inserts),
            summary.skipped_policy_count,
        )

        result = await self._committer.commit(updates, inserts)
        summary.inserted_count = result.inserted
        summary.updated_count = result.updated
        summary.failed_count += result.failed
        errors.extend(result.errors)
        self._log_stage(ImportStage.COMMITTED, "%s succeeded, %s failed", result.succeeded, result.failed)

        return self._finish(summary, skipped, errors)

    async def preview(self, records: Sequence[Any], *, principal: Any = None) -> ConflictReport:
        """Report which records would conflict without writing anything."""

        await self._authorize(principal)
        self._check_records(records)
        validation = self._validate_all(records)
        report = ConflictReport(
            total_leads=len(validation.valid),
            skipped_invalid=validation.skipped[: self._settings.sample_limit],
        )
        if validation.valid:
            report.conflicts = await detect_conflicts(
                self._store,
                validation.records,
                table=self._settings.table,
                batch_size=self._settings.lookup_batch_size,
            )
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _authorize(self, principal: Any) -> None:
        if not await self._authorizer.is_authorized_admin(principal):
            LOGGER.error("Principal %s is not a global admin", principal)
            raise Unauthorized("Forbidden - Global admin access required")

    @staticmethod
    def _check_records(records: Any) -> None:
        if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
            raise InvalidInput("Records must be provided as a list")
        if not records:
            raise InvalidInput("At least one lead is required")

    @staticmethod
    def _normalise_overrides(overrides: Optional[Mapping[str, StrategyLike]]) -> Dict[str, ConflictStrategy]:
        if overrides is None:
            return {}
        if not isinstance(overrides, Mapping):
            raise InvalidInput("Conflict decisions must map emails to strategies")
        decisions: Dict[str, ConflictStrategy] = {}
        for email, strategy in overrides.items():
            if not isinstance(email, str):
                raise InvalidInput(f"Conflict decision key {email!r} is not an email")
            key = sanitize_email(email) or email.strip().lower()
            decisions[key] = ConflictStrategy.parse(strategy)
        return decisions

    def _validate_all(self, records: Sequence[Any]) -> _ValidationPass:
        outcome = _ValidationPass()
        for position, raw in enumerate(records, start=1):
            result = validate_record(raw)
            if isinstance(result, Invalid):
                LOGGER.debug("Skipping lead at position %s: %s", position, result.first_reason)
                outcome.skipped.append(SkippedRecord(position, _display_email(raw), result.first_reason))
            else:
                outcome.valid.append((position, result.record))
        return outcome

    @staticmethod
    def _policy_reason(strategy: ConflictStrategy) -> str:
        if strategy is ConflictStrategy.SKIP:
            return "Email already exists; skipped by conflict strategy"
        return "Email already exists; nothing new to merge"

    def _finish(
        self,
        summary: ImportSummary,
        skipped: List[SkippedRecord],
        errors: List[ErrorDetail],
    ) -> ImportSummary:
        limit = self._settings.sample_limit
        summary.sample_skipped = sorted(skipped, key=lambda item: item.position)[:limit]
        summary.sample_errors = errors[:limit]
        self._log_stage(
            ImportStage.SUMMARIZED,
            "%s inserted, %s updated, %s skipped, %s failed, %s conflicts",
            summary.inserted_count,
            summary.updated_count,
            summary.skipped_count,
            summary.failed_count,
            summary.conflicts_detected_count,
        )
        if summary.total_processed != summary.total_records:
            LOGGER.error(
                "Import summary does not reconcile: %s processed for %s records",
                summary.total_processed,
                summary.total_records,
            )
        return summary

    @staticmethod
    def _log_stage(stage: ImportStage, message: str, *args: Any) -> None:
        LOGGER.info("[%s] " + message, stage.value, *args)


__all__ = ["ImportOrchestrator", "ImportStage"]
