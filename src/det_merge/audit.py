"""Merge report persistence: JSON counts and a tabular change log."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter

from det_merge.io import write_json
from det_merge.models import MergeReport

CHANGE_COLUMNS: list[str] = ["row", "column", "cell", "band", "before", "after"]


def write_merge_report(out_dir: Path, report: MergeReport) -> Path:
    """Write ``merge_report.json`` into *out_dir* and return the path."""
    return write_json(Path(out_dir) / "merge_report.json", report.to_dict())


def changes_frame(report: MergeReport) -> pd.DataFrame:
    """Return one row per written cell, in traversal order."""
    if not report.changes:
        return pd.DataFrame(columns=CHANGE_COLUMNS)
    records = [
        {
            **change.to_dict(),
            "cell": f"{get_column_letter(change.column)}{change.row}",
        }
        for change in report.changes
    ]
    return pd.DataFrame.from_records(records, columns=CHANGE_COLUMNS)


def band_summary(report: MergeReport) -> pd.DataFrame:
    """Count written cells per band and column letter."""
    df = changes_frame(report)
    if df.empty:
        return pd.DataFrame(columns=["band", "column", "cells"])
    summary = (
        df.groupby(["band", "column"], as_index=False, sort=False)
        .agg(cells=("cell", "count"))
        .sort_values(["band", "column"], ascending=[False, True])
        .reset_index(drop=True)
    )
    summary["column"] = summary["column"].map(get_column_letter)
    return summary


def write_changes_csv(out_dir: Path, report: MergeReport) -> Path:
    """Write ``merge_changes.csv`` (atomic) and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / "merge_changes.csv"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    changes_frame(report).to_csv(tmp_path, index=False, encoding="utf-8")
    tmp_path.replace(path)
    return path
