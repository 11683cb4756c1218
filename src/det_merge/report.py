"""Excel audit writer: produces Merge_Audit.xlsx."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from det_merge.audit import band_summary, changes_frame
from det_merge.models import MergeReport

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)

PARAM_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
DATA_FILL = PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid")
COUNT_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")

INT_FMT = '#,##0'

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 40)


def _excel_value(val: Any) -> Any:
    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            # merged cell text may look like a formula; keep it inert
            return f"'{val}"
        return val
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val
    item = getattr(val, "item", None)
    return item() if callable(item) else val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame) -> Worksheet:
    ws = wb.create_sheet(title=name)
    col_names = list(df.columns)

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    if df.empty:
        ws.cell(row=2, column=1, value="No changes").font = VALUE_FONT
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    ws.freeze_panes = "A2"
    if len(df) > 0:
        ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)
    return ws


def _shade_bands(ws: Worksheet, band_col: int) -> None:
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        band = row[band_col - 1].value
        fill = PARAM_FILL if band == "parameter" else DATA_FILL if band == "data" else None
        if fill is None:
            continue
        for cell in row:
            cell.fill = fill


def _write_summary(wb: Workbook, report: MergeReport, det_name: str, master_name: str) -> None:
    ws = wb.create_sheet(title="Summary")

    ws.cell(row=1, column=1, value="det-merge — Merge Audit").font = TITLE_FONT
    ws.merge_cells("A1:C1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:C2")

    rows: list[tuple[str, Any, str | None]] = [
        ("DET file", det_name, None),
        ("Master file", master_name, None),
        ("Template", report.template_name, None),
        ("Header row", report.header_row, INT_FMT),
        ("Rows", report.end_row, INT_FMT),
        ("Columns", report.end_column, INT_FMT),
        ("Cells visited", report.cells_visited, INT_FMT),
        ("Parameters overwritten", report.cells_overwritten, INT_FMT),
        ("Blank cells filled", report.cells_filled, INT_FMT),
        ("Master values kept", report.cells_preserved, INT_FMT),
    ]
    row = 4
    for label, value, fmt in rows:
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = COUNT_FILL
        val_cell = ws.cell(row=row, column=2, value=_excel_value(value))
        val_cell.font = VALUE_FONT
        val_cell.fill = COUNT_FILL
        if fmt:
            val_cell.number_format = fmt
            val_cell.alignment = Alignment(horizontal="right")
        row += 1

    ws.column_dimensions["A"].width = 26
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 12


# ── Public API ───────────────────────────────────────────────────


def write_audit_workbook(
    out_dir: Path,
    report: MergeReport,
    *,
    det_name: str = "",
    master_name: str = "",
) -> Path:
    """Write ``Merge_Audit.xlsx`` and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    audit_path = out_dir / "Merge_Audit.xlsx"

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_summary(wb, report, det_name, master_name)

    changes = changes_frame(report)
    changes_ws = _df_to_sheet(wb, "Changes", changes)
    _shade_bands(changes_ws, changes.columns.get_loc("band") + 1)

    _df_to_sheet(wb, "By_Column", band_summary(report))

    tmp_path = out_dir / "Merge_Audit.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(audit_path)
    return audit_path
