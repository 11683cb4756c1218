from __future__ import annotations

import zipfile
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import Workbook

from det_merge.io import (
    as_bytes,
    has_vba_project,
    open_workbook,
    read_blob,
    workbook_to_bytes,
    write_bytes,
    write_json,
)


def _xlsx_bytes() -> bytes:
    wb = Workbook()
    wb.active["A1"] = "TypeX"
    return workbook_to_bytes(wb)


def test_read_blob_returns_file_bytes(tmp_path: Path) -> None:
    path = tmp_path / "master.xlsx"
    path.write_bytes(b"payload")

    assert read_blob(path) == b"payload"


def test_read_blob_accepts_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.xlsx"
    path.write_bytes(b"")

    assert read_blob(path) == b""


def test_read_blob_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="not found"):
        read_blob(tmp_path / "nope.xlsx")


def test_read_blob_rejects_directory_path(tmp_path: Path) -> None:
    input_dir = tmp_path / "fake.xlsx"
    input_dir.mkdir()

    with pytest.raises(ValueError, match="not a file"):
        read_blob(input_dir)


def test_read_blob_rejects_unsupported_suffix(tmp_path: Path) -> None:
    path = tmp_path / "data.csv"
    path.write_text("a,b\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported file type"):
        read_blob(path)


def test_read_blob_accepts_macro_enabled_suffix(tmp_path: Path) -> None:
    path = tmp_path / "Harvest01.XLSM"
    path.write_bytes(b"x")

    assert read_blob(path) == b"x"


def test_as_bytes_handles_bytes_and_streams() -> None:
    assert as_bytes(b"abc") == b"abc"
    assert as_bytes(bytearray(b"abc")) == b"abc"

    stream = BytesIO(b"abc")
    stream.seek(2)
    assert as_bytes(stream) == b"abc"


def test_has_vba_project_detects_macro_part() -> None:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("xl/vbaProject.bin", b"\x00")

    assert has_vba_project(buffer.getvalue()) is True
    assert has_vba_project(_xlsx_bytes()) is False


def test_open_workbook_yields_loaded_workbook() -> None:
    with open_workbook(_xlsx_bytes()) as wb:
        assert wb.worksheets[0]["A1"].value == "TypeX"


def test_open_workbook_propagates_parser_errors() -> None:
    with pytest.raises(zipfile.BadZipFile):
        with open_workbook(b"garbage"):
            pass


def test_write_bytes_is_atomic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "merged.xlsx"

    out = write_bytes(path, b"content")

    assert out == path
    assert path.read_bytes() == b"content"
    assert not (tmp_path / "nested" / "merged.tmp.xlsx").exists()


def test_write_json_is_atomic_and_deterministic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "artifact.json"
    payload = {
        "b": 1,
        "a": datetime(2024, 1, 2, 3, 4, 5),
        "path": Path("foo/bar"),
    }

    out = write_json(path, payload)

    assert out == path
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert '"a": "2024-01-02T03:04:05"' in text
    assert '"path": "foo/bar"' in text
    assert text.index('"a"') < text.index('"b"') < text.index('"path"')
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_json_serializes_item_scalar(tmp_path: Path) -> None:
    path = tmp_path / "artifact.json"
    value = pd.Series([7], dtype="int64").iloc[0]

    write_json(path, {"value": value})

    assert '"value": 7' in path.read_text(encoding="utf-8")


def test_write_json_raises_on_unknown_type(tmp_path: Path) -> None:
    class Unknown:
        pass

    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "artifact.json", {"x": Unknown()})
