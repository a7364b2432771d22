"""
Helpers for the `snapshot_date=YYYYMMDD` partition segment shared by the
raw, processed and curated layouts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from adapters import StorageAdapter


def snapshot_date_today() -> str:
    """Current UTC date formatted as YYYYMMDD."""
    return datetime.now(timezone.utc).strftime("%Y%m%d")


def extract_snapshot_date(key: str) -> Optional[str]:
    """Best-effort extraction of snapshot_date=YYYYMMDD from a key/path.

    Works for both local file paths and S3 keys. Returns the 8-digit
    snapshot date or None when not found.
    """
    parts = str(key).replace("\\", "/").split("/")
    for p in parts:
        if p.startswith("snapshot_date="):
            return p.split("=", 1)[1]
    return None


def snapshot_key(prefix: str, filename: str, snapshot_date: Optional[str] = None) -> str:
    snapshot_date = snapshot_date or snapshot_date_today()
    return f"{prefix.rstrip('/')}/snapshot_date={snapshot_date}/{filename}"


def latest_snapshot_key(storage: StorageAdapter, prefix: str, filename: str) -> Optional[str]:
    """Return the key of `filename` under the highest snapshot_date, or None."""
    keys = [
        k
        for k in storage.list_keys(prefix)
        if k.endswith("/" + filename) and extract_snapshot_date(k)
    ]
    if not keys:
        return None
    keys.sort(key=lambda k: extract_snapshot_date(k) or "")
    return keys[-1]


__all__ = [
    "snapshot_date_today",
    "extract_snapshot_date",
    "snapshot_key",
    "latest_snapshot_key",
]
