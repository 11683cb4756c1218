"""Sheet access: the cell-level interface the merge engine talks to.

Two implementations live here: :class:`WorksheetSheet` wraps the first
worksheet of an openpyxl workbook, and :class:`GridSheet` is a sparse
in-memory grid for callers (and tests) that have no real document.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from numbers import Real
from typing import Any, Protocol

from openpyxl.cell.cell import MergedCell
from openpyxl.styles.numbers import is_date_format
from openpyxl.worksheet.worksheet import Worksheet

Extent = tuple[int, int]

# ── Displayed text ──────────────────────────────────────────────

_GENERAL_FORMATS = {"", "general", "@"}
_DEFAULT_DATETIME_FMT = "yyyy-mm-dd h:mm:ss"
_DEFAULT_DATE_FMT = "yyyy-mm-dd"
_DEFAULT_TIME_FMT = "h:mm:ss"

_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_DATE_TOKEN_RE = re.compile(
    r'"[^"]*"|\\.|yyyy|yy|mmmm|mmm|mm|m|dddd|ddd|dd|d|hh|h|ss|s|am/pm|a/p|.',
    re.IGNORECASE,
)
_DECIMALS_RE = re.compile(r"\.([0#?]+)")
_PLACEHOLDER_RE = re.compile(r"[0#?]")
_MONTHS = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
]
_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _first_section(number_format: str) -> str:
    # Only the positive-number section is rendered; sign is carried by the value.
    return number_format.split(";", 1)[0]


def _literal(fragment: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(fragment):
        ch = fragment[i]
        if ch == '"':
            end = fragment.find('"', i + 1)
            end = len(fragment) if end == -1 else end
            out.append(fragment[i + 1 : end])
            i = end + 1
            continue
        if ch == "\\" and i + 1 < len(fragment):
            out.append(fragment[i + 1])
            i += 2
            continue
        if ch in "_*" and i + 1 < len(fragment):
            i += 2  # spacing / fill directives occupy two characters
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _format_general(value: float | int) -> str:
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.11g}"


def _format_number(value: float | int, number_format: str) -> str:
    fmt = _BRACKET_RE.sub("", _first_section(number_format))
    if fmt.strip().lower() in _GENERAL_FORMATS:
        return _format_general(value)

    placeholders = [m.start() for m in _PLACEHOLDER_RE.finditer(fmt)]
    if not placeholders:
        return _format_general(value)

    first, last = placeholders[0], placeholders[-1]
    prefix = _literal(fmt[:first])
    body = fmt[first : last + 1]
    suffix = _literal(fmt[last + 1 :])

    if "%" in prefix or "%" in suffix:
        value = value * 100

    match = _DECIMALS_RE.search(body)
    decimals = len(match.group(1)) if match else 0
    integer_part = body.split(".", 1)[0]
    grouping = "," if "," in integer_part else ""

    rendered = f"{abs(value):{grouping}.{decimals}f}"
    sign = "-" if value < 0 and float(rendered.replace(",", "")) != 0 else ""
    return f"{sign}{prefix}{rendered}{suffix}"


def _format_temporal(value: date | time, number_format: str) -> str:
    fmt = _BRACKET_RE.sub("", _first_section(number_format))
    if fmt.strip().lower() in _GENERAL_FORMATS or not is_date_format(fmt):
        if isinstance(value, datetime):
            fmt = _DEFAULT_DATETIME_FMT
        elif isinstance(value, date):
            fmt = _DEFAULT_DATE_FMT
        else:
            fmt = _DEFAULT_TIME_FMT

    tokens = _DATE_TOKEN_RE.findall(fmt)
    twelve_hour = any(t.lower() in {"am/pm", "a/p"} for t in tokens)

    year = getattr(value, "year", 1900)
    month = getattr(value, "month", 1)
    day = getattr(value, "day", 1)
    hour = getattr(value, "hour", 0)
    minute = getattr(value, "minute", 0)
    second = getattr(value, "second", 0)
    weekday = value.weekday() if isinstance(value, date) else 0
    shown_hour = (hour % 12 or 12) if twelve_hour else hour

    out: list[str] = []
    for idx, token in enumerate(tokens):
        low = token.lower()
        if low in {"m", "mm"}:
            # "m" means minutes right after an hour or right before a second token
            prev = next((t.lower() for t in reversed(tokens[:idx]) if t.strip(" :.")), "")
            nxt = next((t.lower() for t in tokens[idx + 1 :] if t.strip(" :.")), "")
            is_minute = prev in {"h", "hh"} or nxt in {"s", "ss"}
            number = minute if is_minute else month
            out.append(f"{number:02d}" if low == "mm" else str(number))
        elif low == "yyyy":
            out.append(f"{year:04d}")
        elif low == "yy":
            out.append(f"{year % 100:02d}")
        elif low == "mmmm":
            out.append(_MONTHS[month - 1])
        elif low == "mmm":
            out.append(_MONTHS[month - 1][:3])
        elif low == "dddd":
            out.append(_WEEKDAYS[weekday])
        elif low == "ddd":
            out.append(_WEEKDAYS[weekday][:3])
        elif low == "dd":
            out.append(f"{day:02d}")
        elif low == "d":
            out.append(str(day))
        elif low == "hh":
            out.append(f"{shown_hour:02d}")
        elif low == "h":
            out.append(str(shown_hour))
        elif low == "ss":
            out.append(f"{second:02d}")
        elif low == "s":
            out.append(str(second))
        elif low == "am/pm":
            out.append("AM" if hour < 12 else "PM")
        elif low == "a/p":
            out.append("A" if hour < 12 else "P")
        else:
            out.append(_literal(token))
    return "".join(out)


def display_text(value: Any, number_format: str | None = None) -> str:
    """Return *value* the way a spreadsheet would display it.

    ``None`` renders as ``""``; strings are returned unchanged, so template
    names compare exactly (case and surrounding whitespace included).
    """
    number_format = number_format or "General"
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time)):
        return _format_temporal(value, number_format)
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, Decimal):
        return _format_number(float(value), number_format)
    if isinstance(value, Real):
        number = value if isinstance(value, int) else float(value)
        return _format_number(number, number_format)
    return str(value)


# ── Access protocol ─────────────────────────────────────────────


class SheetAccess(Protocol):
    """Minimal table access needed by the merge engine."""

    def extent(self) -> Extent:
        """Return ``(end_row, end_column)`` of the used region, ``(0, 0)`` if empty."""
        ...

    def text(self, row: int, col: int) -> str:
        ...

    def value(self, row: int, col: int) -> Any:
        ...

    def set_value(self, row: int, col: int, value: Any) -> bool:
        """Store *value*; return False if the cell cannot take a value."""
        ...


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _has_values(rows: Iterable[Sequence[Any]]) -> bool:
    return any(not _is_blank(value) for row in rows for value in row)


# ── openpyxl adapter ────────────────────────────────────────────


class WorksheetSheet:
    """:class:`SheetAccess` over an openpyxl worksheet.

    The extent is the worksheet's used range (``max_row`` x ``max_column``),
    so cells that exist without a value, such as formatted cells or cells
    cleared to ``""``, still count. A sheet without a single non-blank
    value is empty.
    """

    def __init__(self, ws: Worksheet) -> None:
        self.ws = ws
        # max_row / max_column rescan every cell, so take them once
        self._max_row = ws.max_row
        self._max_col = ws.max_column

    def _in_bounds(self, row: int, col: int) -> bool:
        # ws.cell() materialises cells, so never call it outside the used range
        return 1 <= row <= self._max_row and 1 <= col <= self._max_col

    def extent(self) -> Extent:
        if not _has_values(self.ws.iter_rows(values_only=True)):
            return 0, 0
        return self._max_row, self._max_col

    def text(self, row: int, col: int) -> str:
        if not self._in_bounds(row, col):
            return ""
        cell = self.ws.cell(row=row, column=col)
        return display_text(cell.value, cell.number_format)

    def value(self, row: int, col: int) -> Any:
        if not self._in_bounds(row, col):
            return None
        return self.ws.cell(row=row, column=col).value

    def set_value(self, row: int, col: int, value: Any) -> bool:
        cell = self.ws.cell(row=row, column=col)
        if isinstance(cell, MergedCell):
            # covered by a merged range; only its anchor cell holds a value
            return False
        cell.value = value
        self._max_row = max(self._max_row, row)
        self._max_col = max(self._max_col, col)
        return True


# ── In-memory grid ──────────────────────────────────────────────


class GridSheet:
    """Sparse 1-indexed grid implementing :class:`SheetAccess`.

    Blank entries in *rows* are not stored; anything passed to
    :meth:`set_value` is, so a cell cleared to ``""`` stays inside the extent.

    >>> sheet = GridSheet([["TypeX", None], [None, 3]])
    >>> sheet.extent(), sheet.text(2, 2)
    ((2, 2), '3')
    """

    def __init__(self, rows: Sequence[Sequence[Any]] = ()) -> None:
        self._cells: dict[tuple[int, int], Any] = {}
        for r_idx, row in enumerate(rows, 1):
            for c_idx, value in enumerate(row, 1):
                if not _is_blank(value):
                    self._cells[(r_idx, c_idx)] = value

    def extent(self) -> Extent:
        if not any(not _is_blank(value) for value in self._cells.values()):
            return 0, 0
        return max(r for r, _ in self._cells), max(c for _, c in self._cells)

    def text(self, row: int, col: int) -> str:
        return display_text(self._cells.get((row, col)))

    def value(self, row: int, col: int) -> Any:
        return self._cells.get((row, col))

    def set_value(self, row: int, col: int, value: Any) -> bool:
        if row < 1 or col < 1:
            raise ValueError(f"Cell coordinates must be >= 1, got ({row}, {col})")
        self._cells[(row, col)] = value
        return True

    def to_rows(self) -> list[list[Any]]:
        """Return the used region as a list of row lists."""
        end_row, end_col = self.extent()
        return [
            [self._cells.get((r, c)) for c in range(1, end_col + 1)]
            for r in range(1, end_row + 1)
        ]
