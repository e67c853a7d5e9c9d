"""Dictionary backed :class:`LeadStore` used for dry runs and tests."""
from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..errors import StoreError, UniqueViolation
from .base import Row

LOGGER = logging.getLogger(__name__)

UNIQUE_FIELDS = {"email"}


class InMemoryLeadStore:
    """Keeps rows per table in memory and enforces a unique ``email`` column.

    The ``fail_*`` attributes inject store errors so callers can exercise the
    pipeline's failure handling without a database.
    """

    def __init__(self, seed_rows: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None) -> None:
        self._tables: Dict[str, Dict[str, Row]] = {}
        self.lookup_calls: List[List[str]] = []
        self.bulk_insert_calls: int = 0
        self.fail_lookup: bool = False
        self.fail_bulk_insert: bool = False
        self.failing_emails: Set[str] = set()
        for table, rows in (seed_rows or {}).items():
            for row in rows:
                self._add(table, dict(row))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def rows(self, table: str = "leads") -> List[Row]:
        return [copy.deepcopy(row) for row in self._tables.get(table, {}).values()]

    def get_by_email(self, email: str, table: str = "leads") -> Optional[Row]:
        for row in self._tables.get(table, {}).values():
            if row.get("email") == email:
                return copy.deepcopy(row)
        return None

    def _add(self, table: str, row: Row) -> Row:
        rows = self._tables.setdefault(table, {})
        self._check_unique(table, row)
        row_id = str(row.get("id") or uuid.uuid4())
        row["id"] = row_id
        rows[row_id] = row
        return copy.deepcopy(row)

    def _check_unique(self, table: str, row: Mapping[str, Any], *, ignore_id: Optional[str] = None) -> None:
        for column in UNIQUE_FIELDS:
            value = row.get(column)
            if value is None:
                continue
            for existing in self._tables.get(table, {}).values():
                if existing["id"] != ignore_id and existing.get(column) == value:
                    raise UniqueViolation(
                        f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        code="23505",
                    )

    def _check_injected_failure(self, row: Mapping[str, Any]) -> None:
        email = row.get("email")
        if email in self.failing_emails:
            raise StoreError(f"Injected write failure for {email}")

    # ------------------------------------------------------------------
    # LeadStore
    # ------------------------------------------------------------------
    async def find_by_keys(self, table: str, field: str, keys: Sequence[str]) -> List[Row]:
        self.lookup_calls.append(list(keys))
        if self.fail_lookup:
            raise StoreError("Injected lookup failure")
        wanted = set(keys)
        return [copy.deepcopy(row) for row in self._tables.get(table, {}).values() if row.get(field) in wanted]

    async def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        self.bulk_insert_calls += 1
        if self.fail_bulk_insert:
            raise StoreError("Injected bulk insert failure")
        seen: Set[Any] = set()
        for row in rows:
            self._check_injected_failure(row)
            self._check_unique(table, row)
            if row.get("email") in seen:
                raise UniqueViolation("duplicate email within insert batch", code="23505")
            seen.add(row.get("email"))
        return [self._add(table, dict(row)) for row in rows]

    async def insert_one(self, table: str, row: Mapping[str, Any]) -> Row:
        self._check_injected_failure(row)
        return self._add(table, dict(row))

    async def update_one(self, table: str, id: str, patch: Mapping[str, Any]) -> Row:
        existing = self._tables.get(table, {}).get(str(id))
        if existing is None:
            raise StoreError(f"No row with id {id} in {table}")
        self._check_injected_failure(existing)
        self._check_unique(table, patch, ignore_id=existing["id"])
        existing.update({key: value for key, value in patch.items() if key != "id"})
        LOGGER.debug("Updated %s row %s", table, id)
        return copy.deepcopy(existing)


__all__ = ["InMemoryLeadStore"]
