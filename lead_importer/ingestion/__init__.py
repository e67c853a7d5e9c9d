"""Spreadsheet loading and report export for lead imports."""

from .exporters import export_summary, summary_to_dataframe
from .loaders import UnsupportedFileTypeError, load_raw_records, resolve_columns

__all__ = [
    "export_summary",
    "summary_to_dataframe",
    "load_raw_records",
    "resolve_columns",
    "UnsupportedFileTypeError",
]
