"""det-merge: Fold new DET field data into an accumulating Master workbook."""

__version__ = "0.1.0"

SUPPORTED_SUFFIXES: tuple[str, ...] = (".xlsx", ".xlsm", ".xltx", ".xltm")

from det_merge.engine import merge_sheets, merge_tables, merge_workbooks  # noqa: E402
from det_merge.errors import EmptyInputError, MergeError, TemplateMismatchError  # noqa: E402

__all__ = [
    "EmptyInputError",
    "MergeError",
    "SUPPORTED_SUFFIXES",
    "TemplateMismatchError",
    "__version__",
    "merge_sheets",
    "merge_tables",
    "merge_workbooks",
]
