"""Data models used across the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Integral
from typing import Any, Literal

Band = Literal["parameter", "data"]


def _to_int(value: Any, field_name: str, *, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    return result


def _to_optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    return _to_int(value, field_name, minimum=0)


@dataclass(frozen=True)
class MergeOptions:
    """Where the parameter band ends and where the template name lives.

    Rows ``1 .. header_row - 1`` form the parameter band; rows from
    ``header_row`` on form the data band.
    """

    header_row: int
    template_name_row: int = 1
    template_name_col: int = 1

    def __post_init__(self) -> None:
        # frozen: go through object.__setattr__ to store the normalised ints
        object.__setattr__(self, "header_row", _to_int(self.header_row, "header_row", minimum=1))
        object.__setattr__(
            self,
            "template_name_row",
            _to_int(self.template_name_row, "template_name_row", minimum=1),
        )
        object.__setattr__(
            self,
            "template_name_col",
            _to_int(self.template_name_col, "template_name_col", minimum=1),
        )


@dataclass(frozen=True)
class CellChange:
    """A single Master cell written during a merge."""

    row: int
    column: int
    band: Band
    before: str
    after: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "column": self.column,
            "band": self.band,
            "before": self.before,
            "after": self.after,
        }


@dataclass
class MergeReport:
    """Audit of one merge.

    Contract invariants: ``cells_visited == end_row * end_column`` and the
    three outcome counters never add up to more than ``cells_visited``.
    """

    end_row: int = 0
    end_column: int = 0
    header_row: int = 1
    template_name: str = ""
    cells_visited: int = 0
    cells_overwritten: int = 0
    cells_filled: int = 0
    cells_preserved: int = 0
    changes: list[CellChange] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.end_row = _to_int(self.end_row, "end_row", minimum=0)
        self.end_column = _to_int(self.end_column, "end_column", minimum=0)
        self.header_row = _to_int(self.header_row, "header_row", minimum=1)
        self.cells_visited = _to_int(self.cells_visited, "cells_visited", minimum=0)
        self.cells_overwritten = _to_int(self.cells_overwritten, "cells_overwritten", minimum=0)
        self.cells_filled = _to_int(self.cells_filled, "cells_filled", minimum=0)
        self.cells_preserved = _to_int(self.cells_preserved, "cells_preserved", minimum=0)
        if not isinstance(self.template_name, str):
            raise TypeError("template_name must be a string")
        self.changes = list(self.changes or [])
        for change in self.changes:
            if not isinstance(change, CellChange):
                raise TypeError("changes items must be CellChange")
        self.validate()

    def validate(self) -> None:
        """Raise ``ValueError`` if the counters contradict each other."""
        if self.cells_visited != self.end_row * self.end_column:
            raise ValueError("cells_visited must equal end_row * end_column")
        outcomes = self.cells_overwritten + self.cells_filled + self.cells_preserved
        if outcomes > self.cells_visited:
            raise ValueError("cells_overwritten + cells_filled + cells_preserved exceeds cells_visited")

    @property
    def cells_written(self) -> int:
        return self.cells_overwritten + self.cells_filled

    def to_dict(self, *, include_changes: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "end_row": self.end_row,
            "end_column": self.end_column,
            "header_row": self.header_row,
            "template_name": self.template_name,
            "cells_visited": self.cells_visited,
            "cells_overwritten": self.cells_overwritten,
            "cells_filled": self.cells_filled,
            "cells_preserved": self.cells_preserved,
        }
        if include_changes:
            payload["changes"] = [change.to_dict() for change in self.changes]
        return payload


@dataclass(frozen=True)
class Compatibility:
    """Side-by-side view of the two signatures the merge gate compares."""

    det_rows: int
    det_columns: int
    det_template: str
    master_rows: int
    master_columns: int
    master_template: str

    @property
    def columns_match(self) -> bool:
        return self.det_columns == self.master_columns

    @property
    def templates_match(self) -> bool:
        return self.det_template == self.master_template

    @property
    def compatible(self) -> bool:
        return self.columns_match and self.templates_match

    def to_dict(self) -> dict[str, Any]:
        return {
            "det_rows": self.det_rows,
            "det_columns": self.det_columns,
            "det_template": self.det_template,
            "master_rows": self.master_rows,
            "master_columns": self.master_columns,
            "master_template": self.master_template,
            "compatible": self.compatible,
        }


@dataclass(frozen=True)
class MergeResult:
    """Serialized merged workbook plus the audit of how it was produced."""

    content: bytes
    report: MergeReport


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "det-merge"
    version: str = ""
    run_id: str = ""
    created_at_utc: str = ""
    det_path: str = ""
    master_path: str = ""
    output_path: str = ""
    det_sha256: str = ""
    master_sha256: str = ""
    header_row: int | None = None
    cells_overwritten: int = 0
    cells_filled: int = 0
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.header_row = _to_optional_int(self.header_row, "header_row")
        self.cells_overwritten = _to_int(self.cells_overwritten, "cells_overwritten", minimum=0)
        self.cells_filled = _to_int(self.cells_filled, "cells_filled", minimum=0)
        self.error_code = _to_optional_int(self.error_code, "error_code")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "created_at_utc": self.created_at_utc,
            "det_path": self.det_path,
            "master_path": self.master_path,
            "output_path": self.output_path,
            "det_sha256": self.det_sha256,
            "master_sha256": self.master_sha256,
            "header_row": self.header_row,
            "cells_overwritten": self.cells_overwritten,
            "cells_filled": self.cells_filled,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
