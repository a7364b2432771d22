"""
Writers for analysis artefacts.

Charts and summary tables are written through the StorageAdapter under

    analysis/<analysis_name>/<YYYYMMDD>/<artefact>

so the same code serves the local filesystem and S3.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd

from adapters import StorageAdapter

ANALYSIS_BASE_PREFIX = "analysis"


def analysis_key(analysis_name: str, artefact: str, run_date: Optional[str] = None) -> str:
    run_date = run_date or datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{ANALYSIS_BASE_PREFIX}/{analysis_name}/{run_date}/{artefact}"


def save_current_figure(storage: StorageAdapter, key: str, *, dpi: int = 150) -> str:
    """Render the active matplotlib figure to PNG, close it and store it."""
    buf = io.BytesIO()
    plt.savefig(buf, format="png", dpi=dpi)
    plt.close()
    buf.seek(0)
    return storage.write_raw(key, buf.getvalue())


def write_summary_table(
    storage: StorageAdapter,
    df: pd.DataFrame,
    csv_key: str,
    *,
    write_xlsx: bool = False,
    sheet_name: str = "summary",
) -> str:
    """
    Store `df` as CSV (and optionally as XLSX next to it).

    The XLSX export is best effort: failures are reported and the CSV
    location is still returned.
    """
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    location = storage.write_raw(csv_key, buf.getvalue().encode("utf-8"))

    if write_xlsx:
        try:
            bbuf = io.BytesIO()
            with pd.ExcelWriter(bbuf, engine="openpyxl") as writer:
                df.to_excel(writer, index=False, sheet_name=sheet_name)
            bbuf.seek(0)
            xlsx_key = csv_key.rsplit(".", 1)[0] + ".xlsx"
            storage.write_raw(xlsx_key, bbuf.getvalue())
        except Exception as e:  # noqa: BLE001
            print(f"[analysis] Skipping XLSX export to storage: {e}")
    return location


__all__ = [
    "ANALYSIS_BASE_PREFIX",
    "analysis_key",
    "save_current_figure",
    "write_summary_table",
]
