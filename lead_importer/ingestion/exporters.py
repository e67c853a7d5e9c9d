"""Export import summaries for review in a spreadsheet."""
from __future__ import annotations

from pathlib import Path
from typing import List, MutableMapping, Optional, Union

import pandas as pd

from ..models import ImportSummary

PathLike = Union[str, Path]

REPORT_COLUMNS = ["outcome", "position", "email", "reason"]


def summary_to_dataframe(summary: ImportSummary) -> pd.DataFrame:
    """One row per sampled skip or failure, skips first."""

    rows: List[MutableMapping[str, object]] = []
    for skipped in summary.sample_skipped:
        rows.append({"outcome": "skipped", "position": skipped.position, "email": skipped.email, "reason": skipped.reason})
    for error in summary.sample_errors:
        rows.append({"outcome": "failed", "position": None, "email": error.email, "reason": error.error})
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def export_summary(
    summary: ImportSummary,
    path: PathLike,
    *,
    sheet_name: str = "Import",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write the sampled skips and failures of ``summary`` to CSV or Excel."""

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(summary_to_dataframe(summary), output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xls", ".xlsx", ".xlsm", ".xlsb"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["export_summary", "summary_to_dataframe"]
