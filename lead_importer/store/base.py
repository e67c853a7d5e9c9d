"""Protocol describing the row store the import pipeline writes to."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol, Sequence

Row = Dict[str, Any]


class LeadStore(Protocol):
    """Keyed lookup, batched ``IN`` queries, insert, and update by primary key.

    Implementations raise :class:`~lead_importer.errors.StoreError` (or
    :class:`~lead_importer.errors.UniqueViolation`) instead of returning error
    payloads.
    """

    async def find_by_keys(self, table: str, field: str, keys: Sequence[str]) -> List[Row]:  # pragma: no cover - protocol
        """Return every row of ``table`` whose ``field`` is one of ``keys``."""

    async def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:  # pragma: no cover - protocol
        """Insert all ``rows`` in a single call, or none of them."""

    async def insert_one(self, table: str, row: Mapping[str, Any]) -> Row:  # pragma: no cover - protocol
        """Insert a single row."""

    async def update_one(self, table: str, id: str, patch: Mapping[str, Any]) -> Row:  # pragma: no cover - protocol
        """Apply ``patch`` to the row whose primary key is ``id``."""
