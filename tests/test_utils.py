from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path

from det_merge.errors import EmptyInputError, MergeError, TemplateMismatchError
from det_merge.utils import merged_output_name, sha256_bytes, utcnow_iso


def test_sha256_bytes_matches_hashlib() -> None:
    assert sha256_bytes(b"abc") == hashlib.sha256(b"abc").hexdigest()


def test_utcnow_iso_is_timezone_aware() -> None:
    assert datetime.fromisoformat(utcnow_iso()).tzinfo is not None


def test_merged_output_name_keeps_container_suffix() -> None:
    assert merged_output_name(Path("in/Harvest01_INT.xlsm")) == "Harvest01_INT_merged.xlsm"
    assert merged_output_name(Path("master.xlsx")) == "master_merged.xlsx"


def test_merge_errors_carry_fixed_messages() -> None:
    assert str(EmptyInputError()) == "One or more input tables have no data"
    assert str(TemplateMismatchError()) == "DET file does not match Master file"
    assert str(TemplateMismatchError("custom")) == "custom"
    assert issubclass(EmptyInputError, MergeError)
    assert issubclass(TemplateMismatchError, ValueError)
