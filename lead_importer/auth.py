"""Authorization checks gating the import pipeline."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from .cache import TTLCache

LOGGER = logging.getLogger(__name__)


class Authorizer(Protocol):
    """Decides whether ``principal`` is a global admin allowed to import leads."""

    async def is_authorized_admin(self, principal: Any) -> bool:  # pragma: no cover - protocol
        """Return ``True`` when the principal may run imports."""


class AllowAllAuthorizer:
    """Grants every principal; intended for local command line runs."""

    async def is_authorized_admin(self, principal: Any) -> bool:
        return True


class StaticAdminAuthorizer:
    """Grants the principals listed in configuration."""

    def __init__(self, admin_ids: Iterable[str] = ()) -> None:
        self._admin_ids = {str(admin_id) for admin_id in admin_ids}

    async def is_authorized_admin(self, principal: Any) -> bool:
        return principal is not None and str(principal) in self._admin_ids


class SupabaseAdminAuthorizer:
    """Looks the principal up in the ``global_admins`` table.

    Any error while querying is treated as a denial. Decisions are cached for
    ``ttl_seconds``.
    """

    def __init__(
        self,
        client: Any,
        *,
        table: str = "global_admins",
        ttl_seconds: float = 60.0,
        cache: Optional[TTLCache[str, bool]] = None,
    ) -> None:
        self.client = client
        self._table = table
        self._cache: TTLCache[str, bool] = cache if cache is not None else TTLCache(ttl_seconds)

    @classmethod
    async def connect(
        cls,
        url: Optional[str] = None,
        key: Optional[str] = None,
        **options: Any,
    ) -> "SupabaseAdminAuthorizer":
        from .store.supabase import create_supabase_client

        return cls(await create_supabase_client(url, key), **options)

    async def is_authorized_admin(self, principal: Any) -> bool:
        if principal is None:
            return False
        key = str(principal)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            response = await (
                self.client.table(self._table)
                .select("profile_id")
                .eq("profile_id", key)
                .eq("is_active", True)
                .maybe_single()
                .execute()
            )
        except Exception:
            LOGGER.exception("Error checking global admin status for user %s", key)
            return False

        allowed = bool(response is not None and getattr(response, "data", None))
        self._cache.set(key, allowed)
        return allowed


__all__ = ["Authorizer", "AllowAllAuthorizer", "StaticAdminAuthorizer", "SupabaseAdminAuthorizer"]
