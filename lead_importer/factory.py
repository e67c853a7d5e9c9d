"""Factory helpers for constructing stores and authorizers from configuration."""
from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any, Dict, Mapping, Optional

from .auth import AllowAllAuthorizer, Authorizer
from .errors import ConfigurationError
from .store.base import LeadStore
from .store.memory import InMemoryLeadStore

LOGGER = logging.getLogger(__name__)


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid class path '{path}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


async def _instantiate(section: Mapping[str, Any], name: str) -> Any:
    class_path = section.get("class")
    if not class_path:
        raise ConfigurationError(f"'{name}' configuration missing required 'class' field")

    options: Dict[str, Any] = dict(section.get("options") or {})
    target_cls = _load_class(class_path)

    # Classes that need network setup expose an async ``connect`` constructor.
    connect = getattr(target_cls, "connect", None)
    if connect is not None and inspect.iscoroutinefunction(connect):
        LOGGER.debug("Connecting %s via %s.connect", name, class_path)
        return await connect(**options)
    return target_cls(**options)


async def build_store(config: Optional[Mapping[str, Any]]) -> LeadStore:
    """Instantiate the lead store named in the configuration.

    Without a ``store`` section an :class:`InMemoryLeadStore` is returned so the
    pipeline can be dry-run against spreadsheets.
    """

    section = (config or {}).get("store")
    if not section:
        LOGGER.warning("No store configured - using an in-memory store (dry run)")
        return InMemoryLeadStore()
    return await _instantiate(section, "store")


async def build_authorizer(config: Optional[Mapping[str, Any]]) -> Authorizer:
    section = (config or {}).get("authorizer")
    if not section:
        return AllowAllAuthorizer()
    return await _instantiate(section, "authorizer")


__all__ = ["build_store", "build_authorizer"]
