"""Best-effort batched writes of resolved updates and new leads."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .errors import StoreError, WriteFailed
from .merge import utcnow
from .models import CommitResult, Lead, ValidRecord
from .store.base import LeadStore

LOGGER = logging.getLogger(__name__)

DEFAULT_UPDATE_BATCH_SIZE = 50
DEFAULT_INSERT_BATCH_SIZE = 100


def _batches(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class BatchCommitter:
    """Writes updates one row at a time and inserts in bulk with a per-row fallback.

    Failures never abort the commit: each one is recorded against the email
    it concerns and the remaining writes carry on.
    """

    def __init__(
        self,
        store: LeadStore,
        *,
        table: str = "leads",
        update_batch_size: int = DEFAULT_UPDATE_BATCH_SIZE,
        insert_batch_size: int = DEFAULT_INSERT_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if update_batch_size <= 0 or insert_batch_size <= 0:
            raise ValueError("Batch sizes must be positive integers")
        self._store = store
        self._table = table
        self._update_batch_size = update_batch_size
        self._insert_batch_size = insert_batch_size
        self._clock = clock

    async def commit(self, updates: Sequence[Lead], inserts: Sequence[ValidRecord]) -> CommitResult:
        result = CommitResult()
        await self._apply_updates(updates, result)
        await self._apply_inserts(inserts, result)
        LOGGER.info(
            "Commit finished: %s inserted, %s updated, %s failed",
            result.inserted,
            result.updated,
            result.failed,
        )
        return result

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    async def _apply_updates(self, updates: Sequence[Lead], result: CommitResult) -> None:
        batches = _batches(updates, self._update_batch_size)
        LOGGER.info("Processing %s updates in %s batches", len(updates), len(batches))
        for number, batch in enumerate(batches, start=1):
            LOGGER.debug("Update batch %s (%s items)", number, len(batch))
            for lead in batch:
                try:
                    await self._write(
                        lambda: self._store.update_one(self._table, lead.id, lead.update_patch()),
                        lead.email,
                        "update",
                    )
                except WriteFailed as exc:
                    result.record_failure(exc.email, exc.message)
                else:
                    result.updated += 1

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------
    def _insert_row(self, record: ValidRecord, now: datetime) -> Dict[str, Any]:
        row = record.to_row()
        row["created_at"] = now.isoformat()
        row["updated_at"] = now.isoformat()
        return row

    async def _apply_inserts(self, inserts: Sequence[ValidRecord], result: CommitResult) -> None:
        now = self._clock()
        rows = [self._insert_row(record, now) for record in inserts]
        batches = _batches(rows, self._insert_batch_size)
        LOGGER.info("Processing %s inserts in %s batches", len(rows), len(batches))
        for number, batch in enumerate(batches, start=1):
            try:
                await self._store.insert_many(self._table, batch)
            except StoreError as exc:
                LOGGER.warning("Batch insert %s failed (%s); falling back to individual inserts", number, exc)
            except Exception:
                LOGGER.exception("Unexpected error with batch insert %s; falling back to individual inserts", number)
            else:
                result.inserted += len(batch)
                LOGGER.debug("Batch inserted %s leads", len(batch))
                continue

            for row in batch:
                try:
                    await self._write(lambda: self._store.insert_one(self._table, row), row["email"], "insert")
                except WriteFailed as exc:
                    result.record_failure(exc.email, exc.message)
                else:
                    result.inserted += 1

    async def _write(
        self,
        operation: Callable[[], Awaitable[Dict[str, Any]]],
        email: str,
        action: str,
    ) -> Optional[Dict[str, Any]]:
        try:
            return await operation()
        except StoreError as exc:
            LOGGER.warning("Failed to %s %s: %s", action, email, exc)
            raise WriteFailed(email, f"Failed to {action} {email}: {exc}") from exc
        except Exception as exc:
            LOGGER.exception("Unexpected error during %s of %s", action, email)
            raise WriteFailed(email, f"Unexpected error during {action} of {email}: {exc}") from exc


__all__ = ["BatchCommitter", "DEFAULT_INSERT_BATCH_SIZE", "DEFAULT_UPDATE_BATCH_SIZE"]
