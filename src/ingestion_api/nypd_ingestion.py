"""
RAW ingestion of the NYPD Shooting Incident Data (Historic) from NYC Open Data.

One row per shooting victim; several rows can share an INCIDENT_KEY.
"""

from __future__ import annotations

import os

from adapters import MetadataAdapter, StorageAdapter
from env_loader import load_dotenv_if_present
from metadata import NYPD_SHOOTINGS_SCOPE

from .downloads import ingest_raw_file

load_dotenv_if_present()

NYPD_SHOOTINGS_URL = os.getenv(
    "NYPD_SHOOTINGS_URL",
    "https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv?accessType=DOWNLOAD",
)
NYPD_SHOOTINGS_FILE = "nypd_shooting_incidents.csv"

RAW_BASE_PREFIX = "raw/nypd_shootings"


def ingest_nypd_shootings_raw(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    *,
    force: bool = False,
) -> str:
    """Download (or reuse) the historic shootings CSV and return its key."""
    result = ingest_raw_file(
        storage,
        metadata,
        url=NYPD_SHOOTINGS_URL,
        key_prefix=RAW_BASE_PREFIX,
        filename=NYPD_SHOOTINGS_FILE,
        run_scope=NYPD_SHOOTINGS_SCOPE,
        checkpoint_key=NYPD_SHOOTINGS_SCOPE,
        force=force,
    )
    return result.keys[NYPD_SHOOTINGS_FILE]


__all__ = [
    "NYPD_SHOOTINGS_URL",
    "NYPD_SHOOTINGS_FILE",
    "RAW_BASE_PREFIX",
    "ingest_nypd_shootings_raw",
]
