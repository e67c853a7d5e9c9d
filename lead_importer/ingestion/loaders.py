"""Utilities for loading raw lead records from spreadsheets."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]
RawRecord = Dict[str, Optional[str]]

CRM_FIELDS: Sequence[str] = (
    "email",
    "first_name",
    "last_name",
    "studio_name",
    "lead_source",
    "current_platform",
    "city",
    "state",
    "country_code",
)

# Fields that may be filled from a per-import default when the cell is blank.
DEFAULTABLE_FIELDS = frozenset({"lead_source", "current_platform", "city", "state", "country_code"})


def _matches_country_code(header: str) -> bool:
    return "country" in header and ("code" in header or len(header) == 2)


# Checked in order; the first matching rule claims the column.
_HEADER_RULES: Sequence[tuple[str, Callable[[str], bool]]] = (
    ("email", lambda header: "email" in header),
    ("first_name", lambda header: "first" in header and "name" in header),
    ("last_name", lambda header: "last" in header and "name" in header),
    ("studio_name", lambda header: "studio" in header),
    ("lead_source", lambda header: "source" in header),
    ("current_platform", lambda header: "platform" in header),
    ("city", lambda header: "city" in header),
    ("state", lambda header: "state" in header or "region" in header or "province" in header),
    ("country_code", _matches_country_code),
)


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


def load_raw_records(
    path: PathLike,
    *,
    column_mapping: Optional[Mapping[str, str]] = None,
    defaults: Optional[Mapping[str, str]] = None,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[RawRecord]:
    """Load lead-like records from a spreadsheet.

    Parameters
    ----------
    path:
        Path to the CSV/TSV/XLSX file to be loaded.
    column_mapping:
        Optional mapping of CRM field names to column names. Fields that are not
        mapped explicitly are matched against the headers by keyword.
    defaults:
        Values used for blank cells of ``lead_source``, ``current_platform``,
        ``city``, ``state`` and ``country_code``.
    sheet_name:
        Sheet selector passed to :func:`pandas.read_excel`. Ignored for CSV files.
    loader_kwargs:
        Extra keyword arguments forwarded to :func:`pandas.read_csv` or
        :func:`pandas.read_excel`.
    """

    defaults = dict(defaults or {})
    unsupported = sorted(set(defaults) - DEFAULTABLE_FIELDS)
    if unsupported:
        raise ValueError(f"Default values are not allowed for: {', '.join(unsupported)}")

    dataframe = _read_dataframe(path, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
    mapping = resolve_columns(dataframe.columns, column_mapping)
    if "email" not in mapping:
        LOGGER.warning("No email column found in %s; every record will be skipped", path)

    records: List[RawRecord] = []
    for _, row in dataframe.iterrows():
        if _row_is_empty(row):
            continue
        records.append(_row_to_record(row, mapping, defaults))

    LOGGER.info("Loaded %s records from %s", len(records), path)
    return records


def resolve_columns(
    columns: Iterable[Any],
    column_mapping: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Return a CRM field -> column name mapping; each column is claimed at most once."""

    available = [str(column) for column in columns]
    resolved: Dict[str, str] = {}

    for crm_field, column in (column_mapping or {}).items():
        if crm_field not in CRM_FIELDS:
            raise ValueError(f"Unknown CRM field '{crm_field}'")
        if column not in available:
            raise ValueError(f"Column '{column}' is not present in the file")
        resolved[crm_field] = column

    claimed = set(resolved.values())
    for column in available:
        if column in claimed:
            continue
        header = column.strip().lower()
        for crm_field, matches in _HEADER_RULES:
            if crm_field in resolved or not matches(header):
                continue
            resolved[crm_field] = column
            claimed.add(column)
            break

    return resolved


def _read_dataframe(
    path: PathLike,
    *,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    loader_kwargs.setdefault("dtype", str)
    path_obj = Path(path)
    suffix = path_obj.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        loader_kwargs.setdefault("encoding", "utf-8-sig")
        return pd.read_csv(path_obj, **loader_kwargs)

    if suffix in {".xls", ".xlsx", ".xlsm", ".xlsb"}:
        return pd.read_excel(path_obj, sheet_name=sheet_name, engine=loader_kwargs.pop("engine", None) or "openpyxl", **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")


def _row_is_empty(row: pd.Series) -> bool:
    return all(pd.isna(value) or (isinstance(value, str) and not value.strip()) for value in row.values)


def _row_to_record(row: pd.Series, mapping: Mapping[str, str], defaults: Mapping[str, str]) -> RawRecord:
    record: RawRecord = {}
    for crm_field in CRM_FIELDS:
        column = mapping.get(crm_field)
        value = _clean_text(row[column]) if column is not None else None
        if value is None and crm_field in defaults:
            value = _clean_text(defaults[crm_field])
        if value is not None:
            record[crm_field] = value
    return record


def _clean_text(value: Any) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


__all__ = ["load_raw_records", "resolve_columns", "UnsupportedFileTypeError", "CRM_FIELDS", "DEFAULTABLE_FIELDS"]
