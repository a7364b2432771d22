"""
RAW ingestion of flat files (CSV/ZIP) over HTTP.

Every source in this project publishes a complete file rather than an
incremental API, so ingestion is "download once, reuse afterwards":

- The checkpoint for a source stores the keys written by the last
  successful download together with the SHA1 of the payload.
- When those keys still exist in storage, a new run reuses them instead of
  downloading again (unless `force=True`).
- Otherwise the payload is fetched (with retries), optionally split into
  several files by a `transform` (e.g. ZIP extraction) and written under
  `<key_prefix>/snapshot_date=<YYYYMMDD>/`.

Runs are registered through the MetadataAdapter whether they succeed or fail.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from adapters import MetadataAdapter, StorageAdapter
from common.retry import http_get_with_retries
from common.snapshots import snapshot_date_today, snapshot_key
from env_loader import env_int, load_dotenv_if_present

load_dotenv_if_present()

HTTP_TIMEOUT_SECONDS = env_int("HTTP_TIMEOUT_SECONDS", 120)
USER_AGENT = os.getenv("HTTP_USER_AGENT", "public-data-pipeline/1.0")

FileTransform = Callable[[bytes], Dict[str, bytes]]


@dataclass
class RawIngestionResult:
    keys: Dict[str, str] = field(default_factory=dict)
    content_hash: Optional[str] = None
    reused: bool = False


def compute_content_hash(content: bytes) -> str:
    """SHA1 of the downloaded payload, used to detect unchanged re-downloads."""
    return hashlib.sha1(content).hexdigest()


def count_data_rows(content: bytes) -> int:
    """Number of non-empty lines after the header of a text payload."""
    lines = [line for line in content.splitlines() if line.strip()]
    return max(0, len(lines) - 1)


def fetch_bytes(url: str, *, timeout: int = HTTP_TIMEOUT_SECONDS) -> bytes:
    """Download `url` and return the response body."""
    response = http_get_with_retries(
        url,
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.content


def _reusable_keys(storage: StorageAdapter, checkpoint: Any) -> Optional[Dict[str, str]]:
    if not isinstance(checkpoint, dict):
        return None
    keys = checkpoint.get("keys")
    if not isinstance(keys, dict) or not keys:
        return None
    if not all(storage.exists(k) for k in keys.values()):
        return None
    return {str(name): str(key) for name, key in keys.items()}


def ingest_raw_file(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    *,
    url: str,
    key_prefix: str,
    filename: str,
    run_scope: str,
    checkpoint_key: str,
    force: bool = False,
    transform: Optional[FileTransform] = None,
    timeout: int = HTTP_TIMEOUT_SECONDS,
) -> RawIngestionResult:
    """
    Download `url` into the RAW layer (or reuse the previous download).

    The payload itself is stored as `filename`; files produced by
    `transform(payload)` are stored next to it under their own names.
    Returns the keys by file name.
    """
    run_id = metadata.start_run(run_scope)

    try:
        checkpoint = metadata.load_checkpoint(checkpoint_key)
        if not force:
            reusable = _reusable_keys(storage, checkpoint)
            if reusable is not None:
                content_hash = checkpoint.get("content_hash")
                print(f"[ingestion] {run_scope}: reusing download from {checkpoint.get('ingestion_ts')}")
                metadata.end_run(
                    run_id,
                    status="SUCCESS",
                    rows_processed=0,
                    last_checkpoint=content_hash,
                )
                return RawIngestionResult(keys=reusable, content_hash=content_hash, reused=True)

        print(f"[ingestion] {run_scope}: downloading {url}")
        content = fetch_bytes(url, timeout=timeout)
        content_hash = compute_content_hash(content)
        if isinstance(checkpoint, dict) and checkpoint.get("content_hash") == content_hash:
            print(f"[ingestion] {run_scope}: payload unchanged since last download")

        files: Dict[str, bytes] = {filename: content}
        if transform is not None:
            files.update(transform(content))

        snapshot_date = snapshot_date_today()
        keys: Dict[str, str] = {}
        for name, payload in files.items():
            key = snapshot_key(key_prefix, name, snapshot_date)
            location = storage.write_raw(key, payload)
            keys[name] = key
            print(f"[ingestion] {run_scope}: wrote {len(payload):,} bytes to {location}")

        metadata.save_checkpoint(
            checkpoint_key,
            {
                "keys": keys,
                "content_hash": content_hash,
                "source_url": url,
                "ingestion_ts": datetime.now(timezone.utc).isoformat(),
            },
        )

        rows = sum(count_data_rows(p) for n, p in files.items() if n.endswith(".csv"))
        metadata.end_run(
            run_id,
            status="SUCCESS",
            rows_processed=rows,
            last_checkpoint=content_hash,
        )
        return RawIngestionResult(keys=keys, content_hash=content_hash, reused=False)
    except Exception as exc:  # noqa: BLE001
        metadata.end_run(run_id, status="FAILED", error_message=str(exc))
        raise


__all__ = [
    "HTTP_TIMEOUT_SECONDS",
    "RawIngestionResult",
    "compute_content_hash",
    "count_data_rows",
    "fetch_bytes",
    "ingest_raw_file",
]
