"""Tests for the Merge_Audit.xlsx writer."""

from __future__ import annotations

from pathlib import Path

from openpyxl import load_workbook

from det_merge.models import CellChange, MergeReport
from det_merge.report import DATA_FILL, PARAM_FILL, write_audit_workbook


def _report(changes: list[CellChange] | None = None) -> MergeReport:
    return MergeReport(
        end_row=8,
        end_column=3,
        header_row=6,
        template_name="TypeX",
        cells_visited=24,
        cells_overwritten=15,
        cells_filled=2,
        cells_preserved=7,
        changes=changes or [],
    )


def test_write_audit_workbook_creates_expected_sheets(tmp_path: Path) -> None:
    report = _report([
        CellChange(row=2, column=2, band="parameter", before="1", after="5"),
        CellChange(row=7, column=2, band="data", before="", after="a"),
    ])

    path = write_audit_workbook(tmp_path, report, det_name="det.xlsx", master_name="master.xlsx")

    assert path == tmp_path / "Merge_Audit.xlsx"
    assert not (tmp_path / "Merge_Audit.tmp.xlsx").exists()
    wb = load_workbook(path)
    assert wb.sheetnames == ["Summary", "Changes", "By_Column"]

    summary = wb["Summary"]
    labels = {summary.cell(row=r, column=1).value: summary.cell(row=r, column=2).value for r in range(4, 14)}
    assert labels["DET file"] == "det.xlsx"
    assert labels["Master file"] == "master.xlsx"
    assert labels["Template"] == "TypeX"
    assert labels["Parameters overwritten"] == 15
    assert labels["Blank cells filled"] == 2
    assert labels["Master values kept"] == 7


def test_changes_sheet_lists_cells_and_shades_bands(tmp_path: Path) -> None:
    report = _report([
        CellChange(row=2, column=2, band="parameter", before="1", after="5"),
        CellChange(row=7, column=2, band="data", before="", after="a"),
    ])

    wb = load_workbook(write_audit_workbook(tmp_path, report))
    ws = wb["Changes"]

    header = [ws.cell(row=1, column=c).value for c in range(1, ws.max_column + 1)]
    assert header == ["row", "column", "cell", "band", "before", "after"]
    assert ws.cell(row=2, column=3).value == "B2"
    assert ws.cell(row=3, column=3).value == "B7"
    assert ws.cell(row=2, column=1).fill.start_color.rgb.endswith(PARAM_FILL.start_color.rgb[-6:])
    assert ws.cell(row=3, column=1).fill.start_color.rgb.endswith(DATA_FILL.start_color.rgb[-6:])
    assert ws.freeze_panes == "A2"


def test_changes_sheet_neutralizes_formula_like_text(tmp_path: Path) -> None:
    report = _report([CellChange(row=7, column=1, band="data", before="", after="=SUM(A1:A3)")])

    ws = load_workbook(write_audit_workbook(tmp_path, report))["Changes"]

    assert ws.cell(row=2, column=6).value == "'=SUM(A1:A3)"


def test_audit_without_changes_says_so(tmp_path: Path) -> None:
    wb = load_workbook(write_audit_workbook(tmp_path, _report()))

    assert wb["Changes"].cell(row=2, column=1).value == "No changes"
    assert wb["By_Column"].cell(row=1, column=1).value == "band"
