"""
RAW ingestion of the JHU CSSE COVID-19 global time series.

Files:
- time_series_covid19_confirmed_global.csv  (cumulative confirmed cases)
- time_series_covid19_deaths_global.csv     (cumulative deaths)
- UID_ISO_FIPS_LookUp_Table.csv             (ISO3 codes and population)

The time series are "wide": one row per province/country and one column
per reporting date (e.g. "1/22/20").
"""

from __future__ import annotations

import os
from typing import Dict

from adapters import MetadataAdapter, StorageAdapter
from env_loader import load_dotenv_if_present
from metadata import JHU_COVID_SCOPE

from .downloads import ingest_raw_file

load_dotenv_if_present()

JHU_COVID_BASE_URL = os.getenv(
    "JHU_COVID_BASE_URL",
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/csse_covid_19_time_series",
)
JHU_LOOKUP_URL = os.getenv(
    "JHU_LOOKUP_URL",
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/UID_ISO_FIPS_LookUp_Table.csv",
)

JHU_CONFIRMED_FILE = "time_series_covid19_confirmed_global.csv"
JHU_DEATHS_FILE = "time_series_covid19_deaths_global.csv"
JHU_LOOKUP_FILE = "UID_ISO_FIPS_LookUp_Table.csv"

RAW_BASE_PREFIX = "raw/jhu_covid"


def jhu_source_urls() -> Dict[str, str]:
    """Logical dataset name -> download URL."""
    base = JHU_COVID_BASE_URL.rstrip("/")
    return {
        "confirmed": f"{base}/{JHU_CONFIRMED_FILE}",
        "deaths": f"{base}/{JHU_DEATHS_FILE}",
        "lookup": JHU_LOOKUP_URL,
    }


_FILENAMES = {
    "confirmed": JHU_CONFIRMED_FILE,
    "deaths": JHU_DEATHS_FILE,
    "lookup": JHU_LOOKUP_FILE,
}


def ingest_jhu_covid_raw(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    *,
    force: bool = False,
) -> Dict[str, str]:
    """
    Download (or reuse) the three JHU files.

    Returns
    -------
    {"confirmed": key, "deaths": key, "lookup": key}
    """
    keys: Dict[str, str] = {}
    for name, url in jhu_source_urls().items():
        filename = _FILENAMES[name]
        result = ingest_raw_file(
            storage,
            metadata,
            url=url,
            key_prefix=RAW_BASE_PREFIX,
            filename=filename,
            run_scope=JHU_COVID_SCOPE,
            checkpoint_key=f"{JHU_COVID_SCOPE}:{name}",
            force=force,
        )
        keys[name] = result.keys[filename]
    return keys


__all__ = [
    "JHU_COVID_BASE_URL",
    "JHU_LOOKUP_URL",
    "JHU_CONFIRMED_FILE",
    "JHU_DEATHS_FILE",
    "JHU_LOOKUP_FILE",
    "RAW_BASE_PREFIX",
    "jhu_source_urls",
    "ingest_jhu_covid_raw",
]
