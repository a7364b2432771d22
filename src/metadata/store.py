from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4


# Environment variable to override the local JSON path (useful for tests)
METADATA_LOCAL_FILE_ENV = "METADATA_LOCAL_FILE"

# Default local JSON file holding runs and download checkpoints
DEFAULT_METADATA_FILE = Path("local_metadata.json")

RUN_STATUSES = ("RUNNING", "SUCCESS", "FAILED")


def _now_utc_iso() -> str:
    """Return current UTC time in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def resolve_metadata_file(path: Optional[Path | str] = None) -> Path:
    """Explicit path > METADATA_LOCAL_FILE > local_metadata.json in CWD."""
    if path is not None:
        return Path(path)
    env_value = os.getenv(METADATA_LOCAL_FILE_ENV)
    if env_value:
        return Path(env_value)
    return DEFAULT_METADATA_FILE


def _load_store(path: Optional[Path | str] = None) -> Dict[str, Any]:
    """
    Load the metadata store from the local JSON file.

    Structure:
    {
      "runs": [
        {
          "run_id": str,
          "run_scope": str,
          "start_ts": str,
          "end_ts": Optional[str],
          "status": "RUNNING" | "SUCCESS" | "FAILED",
          "rows_processed": Optional[int],
          "last_checkpoint": Optional[str],
          "error_message": Optional[str]
        },
        ...
      ],
      "checkpoints": {
        "<source>": <JSON value>
      }
    }
    """
    store_path = resolve_metadata_file(path)
    if not store_path.exists():
        return {"runs": [], "checkpoints": {}}

    with store_path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Metadata file {store_path} is corrupted") from exc

    if not isinstance(data, dict):
        raise RuntimeError(f"Metadata file {store_path} has invalid format (expected object)")

    data.setdefault("runs", [])
    data.setdefault("checkpoints", {})
    if not isinstance(data["runs"], list) or not isinstance(data["checkpoints"], dict):
        raise RuntimeError(f"Metadata file {store_path} has invalid structure")

    return data


def _save_store(store: Dict[str, Any], path: Optional[Path | str] = None) -> None:
    """Persist the metadata store atomically (write temp file, then rename)."""
    store_path = resolve_metadata_file(path)
    store_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = store_path.with_suffix(store_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(store, f, indent=2, ensure_ascii=False, default=str)

    tmp_path.replace(store_path)


def start_run(run_scope: str, *, path: Optional[Path | str] = None) -> str:
    """
    Register the start of a run and return its identifier.

    `run_scope` names the pipeline step, e.g. "jhu_covid", "world_bank_gdp",
    "nypd_shootings" or "curated_covid_gdp".
    """
    store = _load_store(path)

    run_id = str(uuid4())
    store["runs"].append(
        {
            "run_id": run_id,
            "run_scope": run_scope,
            "start_ts": _now_utc_iso(),
            "end_ts": None,
            "status": "RUNNING",
            "rows_processed": None,
            "last_checkpoint": None,
            "error_message": None,
        }
    )
    _save_store(store, path)
    return run_id


def end_run(
    run_id: str,
    status: str = "SUCCESS",
    *,
    rows_processed: Optional[int] = None,
    last_checkpoint: Optional[str] = None,
    error_message: Optional[str] = None,
    path: Optional[Path | str] = None,
) -> Dict[str, Any]:
    """
    Mark a run as finished and return the updated run record.

    Raises KeyError when `run_id` is unknown and ValueError for a status
    outside RUN_STATUSES.
    """
    if status not in RUN_STATUSES:
        raise ValueError(f"Invalid run status {status!r}; expected one of {RUN_STATUSES}")

    store = _load_store(path)
    runs: List[Dict[str, Any]] = store["runs"]

    target_run = next((r for r in reversed(runs) if r.get("run_id") == run_id), None)
    if target_run is None:
        raise KeyError(f"No run found with id={run_id!r}")

    target_run["end_ts"] = _now_utc_iso()
    target_run["status"] = status
    if rows_processed is not None:
        target_run["rows_processed"] = int(rows_processed)
    if last_checkpoint is not None:
        target_run["last_checkpoint"] = str(last_checkpoint)
    if error_message is not None:
        target_run["error_message"] = error_message

    _save_store(store, path)
    return target_run


def save_checkpoint(source: str, value: Any, *, path: Optional[Path | str] = None) -> None:
    """Persist a JSON-serialisable checkpoint value for a given source."""
    store = _load_store(path)
    store["checkpoints"][source] = value
    _save_store(store, path)


def load_checkpoint(source: str, default: Optional[Any] = None, *, path: Optional[Path | str] = None) -> Any:
    """Load the checkpoint value for a given source, or `default`."""
    return _load_store(path)["checkpoints"].get(source, default)


def list_runs(run_scope: Optional[str] = None, *, path: Optional[Path | str] = None) -> List[Dict[str, Any]]:
    runs: List[Dict[str, Any]] = _load_store(path)["runs"]
    if run_scope is None:
        return list(runs)
    return [r for r in runs if r.get("run_scope") == run_scope]
