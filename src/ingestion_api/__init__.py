"""
RAW ingestion layer
-------------------

Downloads the public source files (JHU CSSE COVID-19, World Bank GDP,
NYPD shootings) into storage under `raw/`.
"""

from .downloads import RawIngestionResult, ingest_raw_file  # noqa: F401
from .jhu_covid_ingestion import ingest_jhu_covid_raw  # noqa: F401
from .nypd_ingestion import ingest_nypd_shootings_raw  # noqa: F401
from .world_bank_ingestion import (  # noqa: F401
    extract_world_bank_zip,
    ingest_world_bank_gdp_raw,
    ingest_world_bank_indicator_raw,
)

__all__ = [
    "RawIngestionResult",
    "ingest_raw_file",
    "ingest_jhu_covid_raw",
    "ingest_nypd_shootings_raw",
    "extract_world_bank_zip",
    "ingest_world_bank_gdp_raw",
    "ingest_world_bank_indicator_raw",
]
