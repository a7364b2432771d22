"""
RAW ingestion of World Bank indicators (GDP) via the bulk CSV download.

The endpoint

    https://api.worldbank.org/v2/en/indicator/<INDICATOR>?downloadformat=csv

returns a ZIP archive with three CSV members:

- API_<INDICATOR>_DS2_en_csv_v2_<n>.csv              (the data, one column per year)
- Metadata_Country_API_<INDICATOR>_DS2_en_csv_v2_<n>.csv   (region / income group)
- Metadata_Indicator_API_<INDICATOR>_DS2_en_csv_v2_<n>.csv (ignored)

The archive is stored as-is for traceability, and the two useful members
are extracted next to it as `data.csv` and `country_metadata.csv`.
"""

from __future__ import annotations

import io
import os
import zipfile
from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import Dict, Iterable, List

from adapters import MetadataAdapter, StorageAdapter
from env_loader import load_dotenv_if_present
from metadata import WORLD_BANK_GDP_SCOPE

from .downloads import ingest_raw_file

# Carrega .env se existir (para WORLD_BANK_GDP_INDICATORS, entre outros).
load_dotenv_if_present()

WORLD_BANK_ZIP_URL_TEMPLATE = os.getenv(
    "WORLD_BANK_ZIP_URL_TEMPLATE",
    "https://api.worldbank.org/v2/en/indicator/{indicator_id}?downloadformat=csv",
)

GDP_INDICATOR_ID = "NY.GDP.MKTP.CD"
GDP_PER_CAPITA_INDICATOR_ID = "NY.GDP.PCAP.CD"


def _parse_indicator_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


WORLD_BANK_GDP_INDICATORS = _parse_indicator_list(
    os.getenv(
        "WORLD_BANK_GDP_INDICATORS",
        f"{GDP_INDICATOR_ID},{GDP_PER_CAPITA_INDICATOR_ID}",
    )
)

DATA_MEMBER_PATTERN = "API_*.csv"
COUNTRY_METADATA_MEMBER_PATTERN = "Metadata_Country_*.csv"

DATA_FILE = "data.csv"
COUNTRY_METADATA_FILE = "country_metadata.csv"

RAW_BASE_PREFIX = "raw/world_bank"


def build_world_bank_zip_url(indicator_id: str) -> str:
    return WORLD_BANK_ZIP_URL_TEMPLATE.format(indicator_id=indicator_id)


def extract_world_bank_zip(content: bytes) -> Dict[str, bytes]:
    """
    Extract the data and country-metadata CSVs from a World Bank ZIP.

    Returns {"data.csv": bytes, "country_metadata.csv": bytes}; the metadata
    entry is omitted when the archive does not carry one.

    Raises ValueError when the payload is not a ZIP or has no data member.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as exc:
        raise ValueError("World Bank download is not a valid ZIP archive") from exc

    extracted: Dict[str, bytes] = {}
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            basename = PurePosixPath(info.filename).name
            if fnmatch(basename, COUNTRY_METADATA_MEMBER_PATTERN):
                extracted.setdefault(COUNTRY_METADATA_FILE, archive.read(info))
            elif fnmatch(basename, DATA_MEMBER_PATTERN):
                extracted.setdefault(DATA_FILE, archive.read(info))

    if DATA_FILE not in extracted:
        raise ValueError(
            f"World Bank ZIP has no member matching {DATA_MEMBER_PATTERN!r}: "
            f"{[i.filename for i in archive.infolist()]}"
        )
    if COUNTRY_METADATA_FILE not in extracted:
        print("[world_bank] ZIP has no country metadata; aggregates cannot be flagged")
    return extracted


def ingest_world_bank_indicator_raw(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    *,
    indicator_id: str,
    force: bool = False,
) -> Dict[str, str]:
    """
    Download (or reuse) one indicator ZIP and extract it.

    Returns the keys by file name: "<indicator>.zip", "data.csv" and,
    when present, "country_metadata.csv".
    """
    result = ingest_raw_file(
        storage,
        metadata,
        url=build_world_bank_zip_url(indicator_id),
        key_prefix=f"{RAW_BASE_PREFIX}/{indicator_id}",
        filename=f"{indicator_id}.zip",
        run_scope=WORLD_BANK_GDP_SCOPE,
        checkpoint_key=f"{WORLD_BANK_GDP_SCOPE}:{indicator_id}",
        force=force,
        transform=extract_world_bank_zip,
    )
    return result.keys


def ingest_world_bank_gdp_raw(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    *,
    indicators: Iterable[str] = WORLD_BANK_GDP_INDICATORS,
    force: bool = False,
) -> Dict[str, Dict[str, str]]:
    """Ingest every configured GDP indicator; returns {indicator_id: keys}."""
    return {
        indicator_id: ingest_world_bank_indicator_raw(
            storage,
            metadata,
            indicator_id=indicator_id,
            force=force,
        )
        for indicator_id in indicators
    }


__all__ = [
    "WORLD_BANK_ZIP_URL_TEMPLATE",
    "WORLD_BANK_GDP_INDICATORS",
    "GDP_INDICATOR_ID",
    "GDP_PER_CAPITA_INDICATOR_ID",
    "DATA_FILE",
    "COUNTRY_METADATA_FILE",
    "RAW_BASE_PREFIX",
    "build_world_bank_zip_url",
    "extract_world_bank_zip",
    "ingest_world_bank_indicator_raw",
    "ingest_world_bank_gdp_raw",
]
