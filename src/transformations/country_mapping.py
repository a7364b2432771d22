"""
Country mapping
---------------

Maps the country names used by JHU CSSE ("Korea, South", "Taiwan*", ...)
to ISO3 codes and population, so COVID data can be joined with the World
Bank indicators on `country_code`.

- The base comes from the JHU UID/ISO/FIPS lookup table: country-level
  rows only (no Province_State, no Admin2).
- Manual overrides from `country_mapping_overrides.csv` take precedence
  (e.g. Kosovo is "XKS" in JHU but "XKX" in the World Bank).
- Persisted as:

    processed/country_mapping/snapshot_date=<YYYYMMDD>/country_mapping.parquet

Schema:
    country_name_normalized: string (PK)
    country_name:            string (JHU name)
    country_code:            string (ISO3, may be missing e.g. cruise ships)
    population:              float
    source_precedence:       string ("jhu_lookup" or "override")
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from adapters import StorageAdapter
from common.snapshots import latest_snapshot_key, snapshot_key

COUNTRY_MAPPING_BASE_PREFIX = "processed/country_mapping"
COUNTRY_MAPPING_FILE = "country_mapping.parquet"

# Caminho padrão para o CSV de overrides manuais
COUNTRY_MAPPING_OVERRIDES_CSV = Path(__file__).with_name("country_mapping_overrides.csv")

MAPPING_COLUMNS = [
    "country_name_normalized",
    "country_name",
    "country_code",
    "population",
    "source_precedence",
]


def normalize_country_name(name: Optional[str]) -> str:
    """
    Normalize country names to make joins robust.

    - lower case
    - accents removed
    - non alphanumeric characters (except space) replaced by spaces
    - whitespace collapsed and trimmed
    """
    if name is None or (isinstance(name, float) and np.isnan(name)) or name is pd.NA:
        return ""

    s = str(name).lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^a-z0-9 ]", " ", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def _empty_mapping() -> pd.DataFrame:
    return pd.DataFrame(columns=MAPPING_COLUMNS).astype(
        {
            "country_name_normalized": "string",
            "country_name": "string",
            "country_code": "string",
            "population": "float64",
            "source_precedence": "string",
        }
    )


def _is_blank(series: pd.Series) -> pd.Series:
    return series.isna() | (series.astype("string").str.strip() == "")


def build_country_mapping_from_jhu_lookup(lookup_df: pd.DataFrame) -> pd.DataFrame:
    """
    Build the base mapping from the JHU UID/ISO/FIPS lookup table.

    Raises ValueError when Country_Region or iso3 are missing.
    """
    lookup = lookup_df.rename(columns=lambda c: str(c).strip())
    missing = {"Country_Region", "iso3"} - set(lookup.columns)
    if missing:
        raise ValueError(f"JHU lookup table is missing required columns: {sorted(missing)}")

    if lookup.empty:
        return _empty_mapping()

    country_level = pd.Series(True, index=lookup.index)
    for col in ("Province_State", "Admin2"):
        if col in lookup.columns:
            country_level &= _is_blank(lookup[col])

    df = lookup.loc[country_level].copy()
    df["country_name"] = df["Country_Region"].astype("string").str.strip()
    df["country_code"] = df["iso3"].astype("string").str.strip().replace("", pd.NA)
    if "Population" in df.columns:
        df["population"] = pd.to_numeric(df["Population"], errors="coerce")
    else:
        df["population"] = np.nan

    df = df.dropna(subset=["country_name"])
    df["country_name_normalized"] = df["country_name"].map(normalize_country_name).astype("string")
    df["source_precedence"] = "jhu_lookup"

    df = df[df["country_name_normalized"] != ""]
    df = df[MAPPING_COLUMNS].drop_duplicates(subset=["country_name_normalized"])
    df["source_precedence"] = df["source_precedence"].astype("string")
    return df.reset_index(drop=True)


def apply_overrides(
    base_mapping: pd.DataFrame,
    overrides_path: Path | str = COUNTRY_MAPPING_OVERRIDES_CSV,
) -> pd.DataFrame:
    """
    Apply manual overrides on top of the base mapping.

    Expected CSV:
        country_name_normalized,country_code,country_name[,population]

    Overrides win over the base; rows they touch get
    source_precedence="override". Names that only exist in the overrides
    are added.
    """
    overrides_file = Path(overrides_path)
    if not overrides_file.exists():
        return base_mapping.copy()

    overrides = pd.read_csv(overrides_file, dtype={"country_code": "string", "country_name": "string"})
    if overrides.empty:
        return base_mapping.copy()

    required_cols = {"country_name_normalized", "country_code", "country_name"}
    missing = required_cols - set(overrides.columns)
    if missing:
        raise ValueError(
            f"Overrides file {overrides_file} is missing required columns: {sorted(missing)}",
        )

    overrides = overrides.copy()
    overrides["country_name_normalized"] = (
        overrides["country_name_normalized"].map(normalize_country_name).astype("string")
    )
    if "population" not in overrides.columns:
        overrides["population"] = np.nan
    overrides["population"] = pd.to_numeric(overrides["population"], errors="coerce")
    overrides = overrides[
        ["country_name_normalized", "country_code", "country_name", "population"]
    ].drop_duplicates(subset=["country_name_normalized"], keep="last")

    merged = base_mapping.merge(
        overrides,
        how="outer",
        on="country_name_normalized",
        suffixes=("", "_override"),
        indicator=True,
    )

    has_override = merged["_merge"] != "left_only"
    for col in ("country_code", "country_name", "population"):
        merged[col] = merged[f"{col}_override"].combine_first(merged[col])

    merged["source_precedence"] = np.where(
        has_override,
        "override",
        merged["source_precedence"].fillna("jhu_lookup"),
    )

    merged = merged[MAPPING_COLUMNS].dropna(subset=["country_name_normalized"])
    for col in ("country_name_normalized", "country_name", "country_code", "source_precedence"):
        merged[col] = merged[col].astype("string")
    merged["population"] = pd.to_numeric(merged["population"], errors="coerce")
    return merged.reset_index(drop=True)


def build_country_mapping(
    storage: StorageAdapter,
    lookup_key: str,
    overrides_path: Path | str = COUNTRY_MAPPING_OVERRIDES_CSV,
) -> pd.DataFrame:
    """Base mapping from the RAW lookup table at `lookup_key`, plus overrides."""
    lookup_df = storage.read_csv(lookup_key, dtype={"iso3": "string", "Admin2": "string"})
    base = build_country_mapping_from_jhu_lookup(lookup_df)
    return apply_overrides(base, overrides_path=overrides_path)


def save_country_mapping(
    storage: StorageAdapter,
    mapping_df: pd.DataFrame,
    *,
    snapshot_date: Optional[str] = None,
) -> str:
    key = snapshot_key(COUNTRY_MAPPING_BASE_PREFIX, COUNTRY_MAPPING_FILE, snapshot_date)
    storage.write_parquet(mapping_df, key)
    return key


def load_country_mapping(storage: StorageAdapter) -> pd.DataFrame:
    """Load the latest persisted mapping; RuntimeError if none exists yet."""
    key = latest_snapshot_key(storage, COUNTRY_MAPPING_BASE_PREFIX, COUNTRY_MAPPING_FILE)
    if key is None:
        raise RuntimeError("No country mapping available; run build_country_mapping first")
    return storage.read_parquet(key)


__all__ = [
    "COUNTRY_MAPPING_BASE_PREFIX",
    "COUNTRY_MAPPING_FILE",
    "COUNTRY_MAPPING_OVERRIDES_CSV",
    "normalize_country_name",
    "build_country_mapping_from_jhu_lookup",
    "apply_overrides",
    "build_country_mapping",
    "save_country_mapping",
    "load_country_mapping",
]
