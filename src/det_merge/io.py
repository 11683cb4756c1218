"""I/O helpers: read workbook blobs, open/serialize workbooks, write artifacts."""

from __future__ import annotations

import json
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, Union

from openpyxl import Workbook, load_workbook

from det_merge import SUPPORTED_SUFFIXES

BlobSource = Union[bytes, bytearray, memoryview, BinaryIO]

_VBA_PART = "xl/vbaProject.bin"

# ── Loading ──────────────────────────────────────────────────────


def read_blob(path: Path) -> bytes:
    """Read a workbook file from disk and return its raw bytes.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If *path* is a directory or its extension is not a supported workbook.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is a directory, not a file: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported file type: {suffix!r}. Use {', '.join(SUPPORTED_SUFFIXES)}"
        )
    return path.read_bytes()


def as_bytes(source: BlobSource) -> bytes:
    """Return the full content of *source* (bytes-like or binary stream)."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    getvalue = getattr(source, "getvalue", None)
    if callable(getvalue):
        return bytes(getvalue())
    return source.read()


def has_vba_project(blob: bytes) -> bool:
    """Return True when *blob* is a macro-enabled package (``.xlsm``/``.xltm``)."""
    with zipfile.ZipFile(BytesIO(blob)) as archive:
        return _VBA_PART in archive.namelist()


@contextmanager
def open_workbook(blob: bytes, *, data_only: bool = False) -> Iterator[Workbook]:
    """Open *blob* as an openpyxl workbook and close it on exit.

    Macro-enabled packages keep their VBA parts so that saving produces the
    same container format. Parser errors (``zipfile.BadZipFile``,
    ``KeyError`` for missing parts, ...) propagate unchanged.
    """
    wb = load_workbook(BytesIO(blob), data_only=data_only, keep_vba=has_vba_project(blob))
    try:
        yield wb
    finally:
        wb.close()


# ── Writing ──────────────────────────────────────────────────────


def workbook_to_bytes(wb: Workbook) -> bytes:
    """Serialize *wb* into a fresh byte string."""
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def write_bytes(path: Path, data: bytes) -> Path:
    """Write *data* to *path* atomically and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)
    return path


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
