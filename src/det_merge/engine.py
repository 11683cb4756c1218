"""Merge engine: fold DET values into Master, pure functions, no side effects.

Rows above ``header_row`` (the parameter band) are always refreshed from
DET. Rows from ``header_row`` on (the data band) only receive DET values
where Master is blank, so Master never loses a recorded observation.
"""

from __future__ import annotations

from collections.abc import Callable

from det_merge.errors import EmptyInputError, TemplateMismatchError
from det_merge.io import BlobSource, as_bytes, open_workbook, workbook_to_bytes
from det_merge.models import (
    Band,
    CellChange,
    Compatibility,
    MergeOptions,
    MergeReport,
    MergeResult,
)
from det_merge.sheet import SheetAccess, WorksheetSheet

UpdateStrategy = Callable[[SheetAccess, SheetAccess, int, int], bool]

# ── Cell strategies ──────────────────────────────────────────────


def update_with_overwrite(master: SheetAccess, det: SheetAccess, row: int, col: int) -> bool:
    """Copy DET's cell into Master unconditionally.

    A blank DET cell is written as ``""`` so the cell stays part of Master's
    used range. Returns False only when Master's cell cannot take a value.
    """
    value = det.value(row, col)
    return master.set_value(row, col, "" if value is None else value)


def update_without_overwrite(master: SheetAccess, det: SheetAccess, row: int, col: int) -> bool:
    """Copy DET's cell into Master only if Master is blank and DET is not.

    Returns True when Master was written.
    """
    if master.text(row, col):
        return False
    if not det.text(row, col):
        return False
    return master.set_value(row, col, det.value(row, col))


_STRATEGIES: dict[bool, tuple[Band, UpdateStrategy]] = {
    True: ("parameter", update_with_overwrite),
    False: ("data", update_without_overwrite),
}


def select_strategy(row: int, header_row: int) -> tuple[Band, UpdateStrategy]:
    """Return the band name and update strategy for *row*."""
    return _STRATEGIES[row < header_row]


# ── Validation ───────────────────────────────────────────────────


def verify_templates_match(
    det: SheetAccess,
    master: SheetAccess,
    template_name_row: int = 1,
    template_name_col: int = 1,
) -> bool:
    """Return True if both sheets share column width and template name."""
    columns_match = det.extent()[1] == master.extent()[1]
    names_match = det.text(template_name_row, template_name_col) == master.text(
        template_name_row, template_name_col
    )
    return columns_match and names_match


def _require_data(*sheets: SheetAccess) -> None:
    for sheet in sheets:
        end_row, end_col = sheet.extent()
        if end_row == 0 or end_col == 0:
            raise EmptyInputError()


def compare_sheets(
    det: SheetAccess,
    master: SheetAccess,
    template_name_row: int = 1,
    template_name_col: int = 1,
) -> Compatibility:
    """Describe both sheets' extents and template names without merging."""
    _require_data(det, master)
    det_rows, det_cols = det.extent()
    master_rows, master_cols = master.extent()
    return Compatibility(
        det_rows=det_rows,
        det_columns=det_cols,
        det_template=det.text(template_name_row, template_name_col),
        master_rows=master_rows,
        master_columns=master_cols,
        master_template=master.text(template_name_row, template_name_col),
    )


# ── Sheet-level merge ────────────────────────────────────────────


def merge_sheets(det: SheetAccess, master: SheetAccess, options: MergeOptions) -> MergeReport:
    """Merge *det* into *master* in place and return what happened.

    Raises
    ------
    EmptyInputError
        If either sheet has no populated cell.
    TemplateMismatchError
        If the sheets differ in column count or template name. Nothing is
        written in that case.
    """
    _require_data(det, master)
    if not verify_templates_match(
        det, master, options.template_name_row, options.template_name_col
    ):
        raise TemplateMismatchError()

    end_row, end_col = master.extent()
    report = MergeReport(
        end_row=end_row,
        end_column=end_col,
        header_row=options.header_row,
        template_name=master.text(options.template_name_row, options.template_name_col),
        cells_visited=end_row * end_col,
    )

    for row in range(1, end_row + 1):
        band, update = select_strategy(row, options.header_row)
        for col in range(1, end_col + 1):
            before = master.text(row, col)
            if update(master, det, row, col):
                if band == "parameter":
                    report.cells_overwritten += 1
                else:
                    report.cells_filled += 1
                report.changes.append(
                    CellChange(row=row, column=col, band=band, before=before, after=det.text(row, col))
                )
            elif band == "data" and before:
                report.cells_preserved += 1

    report.validate()
    return report


# ── Workbook-level merge ─────────────────────────────────────────


def merge_workbooks(det: BlobSource, master: BlobSource, options: MergeOptions) -> MergeResult:
    """Merge two workbook blobs and return the merged bytes plus the report.

    Only the first worksheet of each workbook takes part. Errors from the
    workbook parser are not caught here.
    """
    det_blob = as_bytes(det)
    master_blob = as_bytes(master)
    if not det_blob or not master_blob:
        raise EmptyInputError()

    # DET is read for its cached values; Master keeps its own formulas.
    with open_workbook(det_blob, data_only=True) as det_wb, open_workbook(master_blob) as master_wb:
        det_sheet = WorksheetSheet(det_wb.worksheets[0])
        master_sheet = WorksheetSheet(master_wb.worksheets[0])
        report = merge_sheets(det_sheet, master_sheet, options)
        content = workbook_to_bytes(master_wb)

    return MergeResult(content=content, report=report)


def merge_tables(
    det: BlobSource,
    master: BlobSource,
    header_row: int,
    template_name_row: int = 1,
    template_name_col: int = 1,
) -> bytes:
    """Merge DET into Master and return the merged workbook as bytes.

    Parameter-band rows (``row < header_row``) are overwritten from DET;
    data-band rows only take DET values where Master is blank. The result
    covers exactly Master's extent.
    """
    options = MergeOptions(
        header_row=header_row,
        template_name_row=template_name_row,
        template_name_col=template_name_col,
    )
    return merge_workbooks(det, master, options).content


def check_workbooks(
    det: BlobSource,
    master: BlobSource,
    template_name_row: int = 1,
    template_name_col: int = 1,
) -> Compatibility:
    """Open both workbooks and compare them, leaving both untouched."""
    det_blob = as_bytes(det)
    master_blob = as_bytes(master)
    if not det_blob or not master_blob:
        raise EmptyInputError()

    with open_workbook(det_blob, data_only=True) as det_wb, open_workbook(master_blob) as master_wb:
        return compare_sheets(
            WorksheetSheet(det_wb.worksheets[0]),
            WorksheetSheet(master_wb.worksheets[0]),
            template_name_row,
            template_name_col,
        )
