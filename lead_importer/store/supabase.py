"""Supabase implementation of :class:`LeadStore` using the async client."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from ..errors import ConfigurationError, StoreError, UniqueViolation
from .base import Row

LOGGER = logging.getLogger(__name__)

UNIQUE_VIOLATION_CODE = "23505"


@dataclass
class DatabaseConfig:
    """Supabase connection configuration."""

    url: str
    key: str

    @classmethod
    def from_env(cls, url: Optional[str] = None, key: Optional[str] = None) -> "DatabaseConfig":
        url = url or os.getenv("SUPABASE_URL")
        key = key or os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise ConfigurationError(
                "Missing Supabase credentials. Set SUPABASE_URL and SUPABASE_KEY environment variables."
            )
        return cls(url=url, key=key)


def translate_error(exc: Exception) -> StoreError:
    """Map client exceptions onto the typed store errors."""

    if isinstance(exc, APIError):
        code = str(exc.code) if exc.code is not None else None
        message = exc.message or str(exc)
        if code == UNIQUE_VIOLATION_CODE:
            return UniqueViolation(message, code=code)
        return StoreError(message, code=code)
    return StoreError(str(exc) or exc.__class__.__name__)


async def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> AsyncClient:
    config = DatabaseConfig.from_env(url, key)
    return await acreate_client(config.url, config.key)


class SupabaseLeadStore:
    """Row store backed by a Supabase (PostgREST) project."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    @classmethod
    async def connect(cls, url: Optional[str] = None, key: Optional[str] = None) -> "SupabaseLeadStore":
        return cls(await create_supabase_client(url, key))

    async def find_by_keys(self, table: str, field: str, keys: Sequence[str]) -> List[Row]:
        try:
            response = await self.client.table(table).select("*").in_(field, list(keys)).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise translate_error(exc) from exc
        return list(response.data or [])

    async def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        try:
            response = await self.client.table(table).insert([dict(row) for row in rows]).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise translate_error(exc) from exc
        return list(response.data or [])

    async def insert_one(self, table: str, row: Mapping[str, Any]) -> Row:
        try:
            response = await self.client.table(table).insert(dict(row)).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise translate_error(exc) from exc
        return response.data[0] if response.data else {}

    async def update_one(self, table: str, id: str, patch: Mapping[str, Any]) -> Row:
        try:
            response = await self.client.table(table).update(dict(patch)).eq("id", id).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise translate_error(exc) from exc
        if not response.data:
            LOGGER.debug("Update of %s row %s returned no data", table, id)
            return {}
        return response.data[0]


__all__ = ["DatabaseConfig", "SupabaseLeadStore", "create_supabase_client", "translate_error"]
