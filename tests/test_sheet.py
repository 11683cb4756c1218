from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from openpyxl import Workbook

from det_merge.sheet import GridSheet, WorksheetSheet, display_text


@pytest.mark.parametrize(
    ("value", "number_format", "expected"),
    [
        (None, None, ""),
        ("TypeX", None, "TypeX"),
        (" TypeX ", None, " TypeX "),
        (True, None, "TRUE"),
        (False, None, "FALSE"),
        (4, None, "4"),
        (4.0, "General", "4"),
        (2.5, "General", "2.5"),
        (1 / 3, None, "0.33333333333"),
        (123456.789012345, "General", "123456.78901"),
        (Decimal("2.5"), "0.00", "2.50"),
        (1234.5, "#,##0.00", "1,234.50"),
        (-3.14159, "0.00", "-3.14"),
        (0.25, "0%", "25%"),
        (0.256, "0.0%", "25.6%"),
        (12, '"$"#,##0', "$12"),
        (5, "@", "5"),
    ],
)
def test_display_text_renders_scalars(value: object, number_format: str | None, expected: str) -> None:
    assert display_text(value, number_format) == expected


@pytest.mark.parametrize(
    ("value", "number_format", "expected"),
    [
        (datetime(2019, 8, 5), "mm/dd/yyyy", "08/05/2019"),
        (date(2019, 8, 5), "m/d/yy", "8/5/19"),
        (datetime(2019, 8, 5, 14, 7), "h:mm AM/PM", "2:07 PM"),
        (datetime(2019, 8, 5, 9, 3, 4), "General", "2019-08-05 9:03:04"),
        (date(2019, 8, 5), "General", "2019-08-05"),
        (datetime(2019, 8, 5), "d-mmm-yy", "5-Aug-19"),
        (time(6, 30), "hh:mm", "06:30"),
    ],
)
def test_display_text_renders_dates(value: object, number_format: str, expected: str) -> None:
    assert display_text(value, number_format) == expected


def test_worksheet_sheet_extent_is_the_used_range() -> None:
    wb = Workbook()
    ws = wb.active
    ws["A1"] = "TypeX"
    ws["B2"] = "x"
    ws.cell(row=5, column=6).number_format = "0.00"  # formatted but empty

    assert WorksheetSheet(ws).extent() == (5, 6)


def test_worksheet_sheet_with_only_formatting_is_empty() -> None:
    wb = Workbook()
    ws = wb.active
    ws.cell(row=3, column=2).number_format = "0.00"
    ws["A1"] = ""

    assert WorksheetSheet(ws).extent() == (0, 0)


def test_worksheet_sheet_extent_of_empty_sheet_is_zero() -> None:
    wb = Workbook()

    assert WorksheetSheet(wb.active).extent() == (0, 0)


def test_worksheet_sheet_reads_beyond_used_range_without_creating_cells() -> None:
    wb = Workbook()
    ws = wb.active
    ws.append(["TypeX", "a"])
    sheet = WorksheetSheet(ws)

    assert sheet.text(40, 12) == ""
    assert sheet.value(40, 12) is None
    assert ws.max_row == 1
    assert ws.max_column == 2


def test_worksheet_sheet_text_uses_cell_number_format() -> None:
    wb = Workbook()
    ws = wb.active
    ws["A1"] = 0.5
    ws["A1"].number_format = "0%"

    assert WorksheetSheet(ws).text(1, 1) == "50%"


def test_worksheet_sheet_set_value_skips_merged_cover_cells() -> None:
    wb = Workbook()
    ws = wb.active
    ws.append(["TypeX", "Site", None])
    ws.merge_cells("B1:C1")
    sheet = WorksheetSheet(ws)

    assert sheet.set_value(1, 3, "ignored") is False
    assert sheet.set_value(1, 2, "Plot") is True

    assert ws["B1"].value == "Plot"
    assert ws["C1"].value is None


def test_grid_sheet_round_trips_rows() -> None:
    sheet = GridSheet([["TypeX", None], [None, 3]])

    assert sheet.extent() == (2, 2)
    assert sheet.text(2, 2) == "3"
    assert sheet.value(9, 9) is None
    assert sheet.to_rows() == [["TypeX", None], [None, 3]]


def test_grid_sheet_rejects_non_positive_coordinates() -> None:
    with pytest.raises(ValueError, match=">= 1"):
        GridSheet().set_value(0, 1, "x")


def test_grid_sheet_keeps_cells_cleared_to_empty_text_in_extent() -> None:
    sheet = GridSheet([["TypeX", "a"], ["b", "c"]])

    sheet.set_value(2, 2, "")

    assert sheet.extent() == (2, 2)
    assert sheet.text(2, 2) == ""
