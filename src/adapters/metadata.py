from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from metadata import (
    end_run as local_end_run,
    list_runs as local_list_runs,
    load_checkpoint as local_load_checkpoint,
    save_checkpoint as local_save_checkpoint,
    start_run as local_start_run,
)


class MetadataAdapter(ABC):
    """
    Abstraction over the run/checkpoint store.
    """

    @abstractmethod
    def start_run(self, run_scope: str) -> str:
        """Register the start of a run and return its identifier."""

    @abstractmethod
    def end_run(
        self,
        run_id: str,
        status: str = "SUCCESS",
        *,
        rows_processed: Optional[int] = None,
        last_checkpoint: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Mark a run as finished and persist its final state."""

    @abstractmethod
    def save_checkpoint(self, source: str, value: Any) -> None:
        """Persist a checkpoint value for a given logical source."""

    @abstractmethod
    def load_checkpoint(self, source: str, default: Optional[Any] = None) -> Any:
        """Load the checkpoint value for the given source."""

    @abstractmethod
    def list_runs(self, run_scope: Optional[str] = None) -> List[Dict[str, Any]]:
        """List runs, optionally filtered by scope."""


class LocalMetadataAdapter(MetadataAdapter):
    """
    Adapter backed by the local JSON store in `metadata.store`.

    `path` pins the JSON file; when omitted the store resolves it from
    METADATA_LOCAL_FILE or falls back to ./local_metadata.json.
    """

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path) if path is not None else None

    def start_run(self, run_scope: str) -> str:
        return local_start_run(run_scope, path=self.path)

    def end_run(
        self,
        run_id: str,
        status: str = "SUCCESS",
        *,
        rows_processed: Optional[int] = None,
        last_checkpoint: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        return local_end_run(
            run_id,
            status=status,
            rows_processed=rows_processed,
            last_checkpoint=last_checkpoint,
            error_message=error_message,
            path=self.path,
        )

    def save_checkpoint(self, source: str, value: Any) -> None:
        local_save_checkpoint(source, value, path=self.path)

    def load_checkpoint(self, source: str, default: Optional[Any] = None) -> Any:
        return local_load_checkpoint(source, default, path=self.path)

    def list_runs(self, run_scope: Optional[str] = None) -> List[Dict[str, Any]]:
        return local_list_runs(run_scope, path=self.path)
