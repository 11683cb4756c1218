"""Shared helpers: hashing, timestamps, output naming."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path


def sha256_bytes(data: bytes) -> str:
    """Return the hex SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def merged_output_name(master_path: Path) -> str:
    """Default file name for the merged copy of *master_path* (same suffix)."""
    master_path = Path(master_path)
    return f"{master_path.stem}_merged{master_path.suffix}"
