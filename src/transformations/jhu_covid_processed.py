"""
Processing of the JHU CSSE COVID-19 global time series (PROCESSED layer).

- Read the wide RAW tables (one column per reporting date).
- Pivot wide-to-long: one row per (province, country, date).
- Sum provinces into countries.
- Join confirmed and deaths, attach ISO3 + population from the country
  mapping and derive:
    new_confirmed / new_deaths  - daily differences (corrections clipped to 0)
    confirmed_per_thousand      - confirmed * 1e3 / population
    deaths_per_million          - deaths * 1e6 / population
    case_fatality_rate          - deaths / confirmed
- Persist as:

    processed/jhu_covid/snapshot_date=<YYYYMMDD>/processed_jhu_covid_country_daily.parquet
"""

from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from adapters import StorageAdapter
from common.snapshots import latest_snapshot_key, snapshot_key
from .country_mapping import normalize_country_name

PROCESSED_BASE_PREFIX = "processed/jhu_covid"
PROCESSED_FILE = "processed_jhu_covid_country_daily.parquet"

JHU_DATE_FORMAT = "%m/%d/%y"

# Header variants seen across JHU file revisions
_COLUMN_ALIASES = {
    "Country_Region": "Country/Region",
    "Province_State": "Province/State",
    "Long_": "Long",
}

PROCESSED_COLUMNS = [
    "country_name",
    "country_code",
    "date",
    "population",
    "confirmed",
    "deaths",
    "new_confirmed",
    "new_deaths",
    "confirmed_per_thousand",
    "deaths_per_million",
    "case_fatality_rate",
]


def normalize_jhu_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Strip header whitespace and map known header variants to one spelling."""
    renamed = df.rename(columns=lambda c: str(c).strip())
    return renamed.rename(columns=_COLUMN_ALIASES)


def _date_columns(columns: List[str]) -> Dict[str, pd.Timestamp]:
    parsed = pd.to_datetime(pd.Series(columns, dtype="string"), format=JHU_DATE_FORMAT, errors="coerce")
    return {col: ts for col, ts in zip(columns, parsed) if pd.notna(ts)}


def melt_time_series(wide_df: pd.DataFrame, value_name: str) -> pd.DataFrame:
    """
    Pivot a JHU wide table to long format.

    Every header that parses as %m/%d/%y is a date column; everything else
    is an identifier. Non-numeric counts are coerced to NaN and filled
    with 0.

    Returns columns: province, country_name, date, <value_name>.
    """
    df = normalize_jhu_columns(wide_df)
    if "Country/Region" not in df.columns:
        raise ValueError("JHU time series is missing the Country/Region column")
    if "Province/State" not in df.columns:
        df["Province/State"] = pd.NA

    date_map = _date_columns([str(c) for c in df.columns])
    if not date_map:
        raise ValueError("JHU time series has no date columns (expected headers like '1/22/20')")

    long_df = df.melt(
        id_vars=["Province/State", "Country/Region"],
        value_vars=list(date_map),
        var_name="date_header",
        value_name=value_name,
    )
    long_df["date"] = long_df["date_header"].map(date_map)
    long_df[value_name] = pd.to_numeric(long_df[value_name], errors="coerce").fillna(0)

    long_df = long_df.rename(columns={"Province/State": "province", "Country/Region": "country_name"})
    long_df["country_name"] = long_df["country_name"].astype("string").str.strip()
    return long_df[["province", "country_name", "date", value_name]]


def aggregate_by_country(long_df: pd.DataFrame, value_name: str) -> pd.DataFrame:
    """Sum provinces/states into one row per (country_name, date)."""
    return (
        long_df.groupby(["country_name", "date"], as_index=False)[value_name]
        .sum()
        .sort_values(["country_name", "date"])
        .reset_index(drop=True)
    )


def per_capita(counts: pd.Series, population: pd.Series, scale: float) -> pd.Series:
    """counts * scale / population, NaN where population is missing or <= 0."""
    pop = pd.to_numeric(population, errors="coerce")
    valid = pop.notna() & (pop > 0)
    result = pd.Series(np.nan, index=counts.index, dtype="float64")
    result[valid] = counts[valid].astype("float64") * scale / pop[valid]
    return result


def _daily_new(df: pd.DataFrame, cumulative_col: str) -> pd.Series:
    diff = df.groupby("country_name")[cumulative_col].diff()
    # The first report of each country counts as new in full.
    diff = diff.fillna(df[cumulative_col])
    return diff.clip(lower=0)


def build_jhu_covid_dataframe(
    confirmed_wide: pd.DataFrame,
    deaths_wide: pd.DataFrame,
    country_mapping: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Build the PROCESSED country-daily DataFrame from the two wide tables.

    Countries absent from `country_mapping` keep a missing country_code and
    population (and therefore NaN per-capita values).
    """
    confirmed = aggregate_by_country(melt_time_series(confirmed_wide, "confirmed"), "confirmed")
    deaths = aggregate_by_country(melt_time_series(deaths_wide, "deaths"), "deaths")

    df = confirmed.merge(deaths, on=["country_name", "date"], how="outer")
    df[["confirmed", "deaths"]] = df[["confirmed", "deaths"]].fillna(0)
    df = df.sort_values(["country_name", "date"]).reset_index(drop=True)

    df["country_name_normalized"] = df["country_name"].map(normalize_country_name)
    if country_mapping is not None and not country_mapping.empty:
        mapping = country_mapping[["country_name_normalized", "country_code", "population"]].copy()
        mapping["country_name_normalized"] = mapping["country_name_normalized"].astype(str)
        mapping = mapping.drop_duplicates(subset=["country_name_normalized"])
        df = df.merge(mapping, on="country_name_normalized", how="left")

        unmatched = df.loc[df["country_code"].isna(), "country_name"].unique()
        if len(unmatched):
            print(
                f"[jhu_covid] {len(unmatched)} countries without ISO3/population in the mapping: "
                f"{', '.join(sorted(map(str, unmatched))[:10])}"
            )
    else:
        df["country_code"] = pd.NA
        df["population"] = np.nan

    df["new_confirmed"] = _daily_new(df, "confirmed")
    df["new_deaths"] = _daily_new(df, "deaths")
    df["confirmed_per_thousand"] = per_capita(df["confirmed"], df["population"], 1_000)
    df["deaths_per_million"] = per_capita(df["deaths"], df["population"], 1_000_000)

    has_cases = df["confirmed"] > 0
    df["case_fatality_rate"] = np.nan
    df.loc[has_cases, "case_fatality_rate"] = df.loc[has_cases, "deaths"] / df.loc[has_cases, "confirmed"]

    df["country_name"] = df["country_name"].astype("string")
    df["country_code"] = df["country_code"].astype("string")
    df["date"] = pd.to_datetime(df["date"])
    df["population"] = pd.to_numeric(df["population"], errors="coerce")
    for col in ("confirmed", "deaths", "new_confirmed", "new_deaths"):
        df[col] = df[col].astype("int64")

    return df[PROCESSED_COLUMNS]


def process_jhu_covid_raw(
    storage: StorageAdapter,
    raw_keys: Dict[str, str],
    *,
    country_mapping: Optional[pd.DataFrame] = None,
    snapshot_date: Optional[str] = None,
) -> str:
    """
    RAW -> PROCESSED for JHU COVID.

    `raw_keys` is the output of `ingest_jhu_covid_raw` ("confirmed" and
    "deaths" are required). Returns the key of the written Parquet.
    """
    missing = {"confirmed", "deaths"} - set(raw_keys)
    if missing:
        raise ValueError(f"Missing JHU raw keys: {sorted(missing)}")

    confirmed_wide = storage.read_csv(raw_keys["confirmed"])
    deaths_wide = storage.read_csv(raw_keys["deaths"])
    df = build_jhu_covid_dataframe(confirmed_wide, deaths_wide, country_mapping)

    key = snapshot_key(PROCESSED_BASE_PREFIX, PROCESSED_FILE, snapshot_date)
    storage.write_parquet(df, key)
    print(
        f"[jhu_covid] {df['country_name'].nunique()} countries x "
        f"{df['date'].nunique()} dates -> {key}"
    )
    return key


def load_latest_jhu_covid(storage: StorageAdapter) -> pd.DataFrame:
    key = latest_snapshot_key(storage, PROCESSED_BASE_PREFIX, PROCESSED_FILE)
    if key is None:
        return pd.DataFrame(columns=PROCESSED_COLUMNS)
    return storage.read_parquet(key)


__all__ = [
    "PROCESSED_BASE_PREFIX",
    "PROCESSED_FILE",
    "JHU_DATE_FORMAT",
    "normalize_jhu_columns",
    "melt_time_series",
    "aggregate_by_country",
    "per_capita",
    "build_jhu_covid_dataframe",
    "process_jhu_covid_raw",
    "load_latest_jhu_covid",
]
