"""Configuration helpers for the lead import pipeline."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .commit import DEFAULT_INSERT_BATCH_SIZE, DEFAULT_UPDATE_BATCH_SIZE
from .conflicts import DEFAULT_LOOKUP_BATCH_SIZE
from .errors import ConfigurationError, InvalidInput
from .models import ConflictStrategy

LOGGER = logging.getLogger(__name__)

_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}

DEFAULT_SAMPLE_LIMIT = 10


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file '{file_path}' could not be parsed: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def _positive_int(section: Mapping[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{key}' must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"'{key}' must be greater than zero, got {number}")
    return number


@dataclass(frozen=True)
class ImportSettings:
    """Tunables for a single import run."""

    table: str = "leads"
    lookup_batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE
    update_batch_size: int = DEFAULT_UPDATE_BATCH_SIZE
    insert_batch_size: int = DEFAULT_INSERT_BATCH_SIZE
    sample_limit: int = DEFAULT_SAMPLE_LIMIT
    default_strategy: ConflictStrategy = ConflictStrategy.SKIP

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "ImportSettings":
        section = (config or {}).get("import") or {}
        if not isinstance(section, Mapping):
            raise ConfigurationError("The 'import' section must be a mapping")

        try:
            strategy = ConflictStrategy.parse(section.get("default_strategy", ConflictStrategy.SKIP))
        except InvalidInput as exc:
            raise ConfigurationError(str(exc)) from exc

        settings = cls(
            table=str(section.get("table", "leads")),
            lookup_batch_size=_positive_int(section, "lookup_batch_size", DEFAULT_LOOKUP_BATCH_SIZE),
            update_batch_size=_positive_int(section, "update_batch_size", DEFAULT_UPDATE_BATCH_SIZE),
            insert_batch_size=_positive_int(section, "insert_batch_size", DEFAULT_INSERT_BATCH_SIZE),
            sample_limit=_positive_int(section, "sample_limit", DEFAULT_SAMPLE_LIMIT),
            default_strategy=strategy,
        )
        LOGGER.debug("Loaded import settings %s", settings)
        return settings


__all__ = ["ImportSettings", "ConfigurationError", "load_configuration", "DEFAULT_SAMPLE_LIMIT"]
