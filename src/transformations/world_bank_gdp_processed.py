"""
Processing of the World Bank bulk CSV (GDP indicators) for the PROCESSED layer.

The data CSV extracted from the ZIP starts with a few preamble lines
("Data Source", "Last Updated Date", blanks) before the real header, and
the number of preamble lines has changed over time. The header row is
therefore located by content (first field == "Country Name") instead of
a fixed `skiprows`.

Steps:
- Locate the header row and read the table (one column per year).
- Melt the year columns to long format (country_code, year, value).
- Flag aggregates (World, regions, income groups): in the country
  metadata file they have an empty Region. Aggregates are dropped unless
  `include_aggregates=True`.
- Persist all indicators together as:

    processed/world_bank_gdp/snapshot_date=<YYYYMMDD>/processed_world_bank_gdp.parquet
"""

from __future__ import annotations

import csv
import io
from typing import Dict, List, Mapping, Optional

import pandas as pd

from adapters import StorageAdapter
from common.snapshots import latest_snapshot_key, snapshot_key
from ingestion_api.world_bank_ingestion import (
    COUNTRY_METADATA_FILE,
    DATA_FILE,
    GDP_INDICATOR_ID,
    GDP_PER_CAPITA_INDICATOR_ID,
)

PROCESSED_BASE_PREFIX = "processed/world_bank_gdp"
PROCESSED_FILE = "processed_world_bank_gdp.parquet"

# Indicator id -> column name in wide (pivoted) frames
INDICATOR_COLUMNS: Dict[str, str] = {
    GDP_INDICATOR_ID: "gdp_usd",
    GDP_PER_CAPITA_INDICATOR_ID: "gdp_per_capita_usd",
}

PROCESSED_COLUMNS = [
    "country_code",
    "country_name",
    "indicator_id",
    "indicator_name",
    "year",
    "value",
    "region",
    "income_group",
    "is_aggregate",
]

_REQUIRED_HEADERS = ["Country Name", "Country Code", "Indicator Name", "Indicator Code"]


def find_header_row(text: str) -> int:
    """
    Return the 0-based line index of the "Country Name,Country Code,..." header.

    Raises ValueError when no such line exists.
    """
    for idx, line in enumerate(text.splitlines()):
        if not line.strip():
            continue
        first_field = next(csv.reader([line]), [""])[0]
        if first_field.strip().lstrip("\ufeff") == "Country Name":
            return idx
    raise ValueError("World Bank CSV has no header row starting with 'Country Name'")


def _read_country_metadata(country_metadata_csv: bytes) -> pd.DataFrame:
    meta = pd.read_csv(io.BytesIO(country_metadata_csv), encoding="utf-8-sig", dtype="string")
    meta = meta.rename(columns=lambda c: str(c).strip())
    if "Country Code" not in meta.columns:
        raise ValueError("World Bank country metadata is missing the 'Country Code' column")
    if "Region" not in meta.columns:
        meta["Region"] = pd.NA
    if "IncomeGroup" not in meta.columns:
        meta["IncomeGroup"] = pd.NA

    meta = meta[["Country Code", "Region", "IncomeGroup"]].rename(
        columns={
            "Country Code": "country_code",
            "Region": "region",
            "IncomeGroup": "income_group",
        }
    )
    meta["region"] = meta["region"].str.strip().replace("", pd.NA)
    return meta.drop_duplicates(subset=["country_code"])


def build_world_bank_indicator_dataframe(
    data_csv: bytes,
    country_metadata_csv: Optional[bytes] = None,
    *,
    include_aggregates: bool = False,
) -> pd.DataFrame:
    """
    Build the long PROCESSED DataFrame for one indicator file.

    Schema:
        country_code, country_name, indicator_id, indicator_name: string
        year: int64
        value: float (rows with an empty value are dropped)
        region, income_group: string (missing without country metadata)
        is_aggregate: bool
    """
    text = data_csv.decode("utf-8-sig")
    header_idx = find_header_row(text)
    df = pd.read_csv(io.StringIO(text), skiprows=header_idx)
    df = df.rename(columns=lambda c: str(c).strip())

    missing = [c for c in _REQUIRED_HEADERS if c not in df.columns]
    if missing:
        raise ValueError(f"World Bank CSV is missing required columns: {missing}")

    year_cols: List[str] = [c for c in df.columns if c.isdigit() and len(c) == 4]
    if not year_cols:
        raise ValueError("World Bank CSV has no year columns")

    long_df = df.melt(
        id_vars=_REQUIRED_HEADERS,
        value_vars=year_cols,
        var_name="year",
        value_name="value",
    ).rename(
        columns={
            "Country Name": "country_name",
            "Country Code": "country_code",
            "Indicator Name": "indicator_name",
            "Indicator Code": "indicator_id",
        }
    )
    long_df["year"] = long_df["year"].astype("int64")
    long_df["value"] = pd.to_numeric(long_df["value"], errors="coerce")
    long_df = long_df.dropna(subset=["value", "country_code"])

    if country_metadata_csv is not None:
        meta = _read_country_metadata(country_metadata_csv)
        long_df["country_code"] = long_df["country_code"].astype("string")
        long_df = long_df.merge(meta, on="country_code", how="left")
        long_df["is_aggregate"] = long_df["region"].isna()
    else:
        long_df["region"] = pd.NA
        long_df["income_group"] = pd.NA
        long_df["is_aggregate"] = False

    if not include_aggregates:
        aggregates = long_df.loc[long_df["is_aggregate"], "country_code"].nunique()
        if aggregates:
            print(f"[world_bank] Dropping {aggregates} aggregate entries (regions, income groups, World)")
        long_df = long_df[~long_df["is_aggregate"]]

    for col in ("country_code", "country_name", "indicator_id", "indicator_name", "region", "income_group"):
        long_df[col] = long_df[col].astype("string")
    long_df["is_aggregate"] = long_df["is_aggregate"].astype(bool)

    return long_df[PROCESSED_COLUMNS].sort_values(["country_code", "year"]).reset_index(drop=True)


def pivot_indicators(
    df: pd.DataFrame,
    column_map: Mapping[str, str] = INDICATOR_COLUMNS,
) -> pd.DataFrame:
    """
    Long (one row per indicator) -> wide (one column per indicator).

    Returns country_code, country_name, year and one column per entry of
    `column_map` (NaN when the indicator was not ingested).
    """
    out_cols = ["country_code", "country_name", "year", *column_map.values()]
    if df.empty:
        return pd.DataFrame(columns=out_cols)

    subset = df[df["indicator_id"].isin(list(column_map))]
    wide = subset.pivot_table(
        index=["country_code", "country_name", "year"],
        columns="indicator_id",
        values="value",
        aggfunc="last",
    ).reset_index()
    wide.columns.name = None
    wide = wide.rename(columns=dict(column_map))
    for col in column_map.values():
        if col not in wide.columns:
            wide[col] = float("nan")
    return wide[out_cols]


def process_world_bank_gdp_raw(
    storage: StorageAdapter,
    raw_keys_by_indicator: Mapping[str, Mapping[str, str]],
    *,
    include_aggregates: bool = False,
    snapshot_date: Optional[str] = None,
) -> str:
    """
    RAW -> PROCESSED for every ingested indicator.

    `raw_keys_by_indicator` is the output of `ingest_world_bank_gdp_raw`.
    Returns the key of the written Parquet.
    """
    frames: List[pd.DataFrame] = []
    for indicator_id, keys in raw_keys_by_indicator.items():
        if DATA_FILE not in keys:
            raise ValueError(f"No {DATA_FILE} ingested for indicator {indicator_id}")
        data_csv = storage.read_raw(keys[DATA_FILE])
        meta_csv = storage.read_raw(keys[COUNTRY_METADATA_FILE]) if COUNTRY_METADATA_FILE in keys else None
        df = build_world_bank_indicator_dataframe(
            data_csv,
            meta_csv,
            include_aggregates=include_aggregates,
        )
        print(f"[world_bank] {indicator_id}: {len(df):,} country-year values")
        frames.append(df)

    df_all = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=PROCESSED_COLUMNS)
    key = snapshot_key(PROCESSED_BASE_PREFIX, PROCESSED_FILE, snapshot_date)
    storage.write_parquet(df_all, key)
    return key


def load_latest_world_bank_gdp(storage: StorageAdapter) -> pd.DataFrame:
    key = latest_snapshot_key(storage, PROCESSED_BASE_PREFIX, PROCESSED_FILE)
    if key is None:
        return pd.DataFrame(columns=PROCESSED_COLUMNS)
    return storage.read_parquet(key)


__all__ = [
    "PROCESSED_BASE_PREFIX",
    "PROCESSED_FILE",
    "INDICATOR_COLUMNS",
    "find_header_row",
    "build_world_bank_indicator_dataframe",
    "pivot_indicators",
    "process_world_bank_gdp_raw",
    "load_latest_world_bank_gdp",
]
