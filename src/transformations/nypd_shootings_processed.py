"""
Processing of the NYPD Shooting Incident Data (Historic) for the PROCESSED layer.

The RAW file has one row per victim; rows sharing INCIDENT_KEY belong to
the same shooting. Throughout this module:

- an *incident* is a distinct `incident_key`
- a *victim* is a row
- a *murder victim* is a row with STATISTICAL_MURDER_FLAG set

Header spelling has drifted between releases ("Latitude" vs "LATITUDE",
"Lon_Lat"), so column names are normalised before use.

Layout:

    processed/nypd_shootings/snapshot_date=<YYYYMMDD>/processed_nypd_shootings.parquet
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from adapters import StorageAdapter
from common.snapshots import latest_snapshot_key, snapshot_key

PROCESSED_BASE_PREFIX = "processed/nypd_shootings"
PROCESSED_FILE = "processed_nypd_shootings.parquet"

NYPD_DATE_FORMAT = "%m/%d/%Y"

REQUIRED_COLUMNS = ["INCIDENT_KEY", "OCCUR_DATE", "BORO", "STATISTICAL_MURDER_FLAG"]

# 2020 decennial census, by borough
BOROUGH_POPULATION_2020: Dict[str, int] = {
    "BRONX": 1_472_654,
    "BROOKLYN": 2_736_074,
    "MANHATTAN": 1_694_251,
    "QUEENS": 2_405_464,
    "STATEN ISLAND": 495_747,
}

_TRUE_FLAGS = {"TRUE", "T", "Y", "YES", "1"}
_FALSE_FLAGS = {"FALSE", "F", "N", "NO", "0"}

# Normalised RAW header -> PROCESSED column (optional columns)
_OPTIONAL_COLUMNS = {
    "PRECINCT": "precinct",
    "VIC_AGE_GROUP": "vic_age_group",
    "VIC_SEX": "vic_sex",
    "VIC_RACE": "vic_race",
    "PERP_AGE_GROUP": "perp_age_group",
    "LATITUDE": "latitude",
    "LONGITUDE": "longitude",
}

PROCESSED_COLUMNS = [
    "incident_key",
    "occur_date",
    "occur_hour",
    "year",
    "month",
    "boro",
    "precinct",
    "is_murder",
    "vic_age_group",
    "vic_sex",
    "vic_race",
    "perp_age_group",
    "latitude",
    "longitude",
]


def normalize_nypd_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Upper-case header names, trim them and replace inner spaces with "_"."""
    return df.rename(columns=lambda c: "_".join(str(c).strip().upper().split()))


def parse_murder_flag(series: pd.Series) -> pd.Series:
    """
    Map the murder flag to a nullable boolean.

    true/false, Y/N, yes/no and 1/0 (any case) are recognised; anything
    else becomes <NA>.
    """
    text = series.astype("string").str.strip().str.upper()
    result = pd.Series(pd.NA, index=series.index, dtype="boolean")
    result[text.isin(_TRUE_FLAGS).fillna(False)] = True
    result[text.isin(_FALSE_FLAGS).fillna(False)] = False
    return result


def _parse_hour(series: pd.Series) -> pd.Series:
    times = pd.to_datetime(series.astype("string").str.strip(), format="%H:%M:%S", errors="coerce")
    return times.dt.hour.astype("Int64")


def build_nypd_shootings_dataframe(raw_df: pd.DataFrame) -> pd.DataFrame:
    """
    Build the victim-level PROCESSED DataFrame.

    Rows whose OCCUR_DATE does not parse are dropped (and counted).
    Raises ValueError when a required column is missing.
    """
    df = normalize_nypd_columns(raw_df)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"NYPD shootings CSV is missing required columns: {missing}")

    out = pd.DataFrame(index=df.index)
    out["incident_key"] = df["INCIDENT_KEY"].astype("string").str.strip()
    out["occur_date"] = pd.to_datetime(
        df["OCCUR_DATE"].astype("string").str.strip(),
        format=NYPD_DATE_FORMAT,
        errors="coerce",
    )
    if "OCCUR_TIME" in df.columns:
        out["occur_hour"] = _parse_hour(df["OCCUR_TIME"])
    else:
        out["occur_hour"] = pd.Series(pd.NA, index=df.index, dtype="Int64")

    out["boro"] = df["BORO"].astype("string").str.strip().str.upper()
    out["is_murder"] = parse_murder_flag(df["STATISTICAL_MURDER_FLAG"])

    for raw_col, col in _OPTIONAL_COLUMNS.items():
        if raw_col in df.columns:
            out[col] = df[raw_col]
        else:
            out[col] = np.nan

    bad_dates = out["occur_date"].isna().sum()
    if bad_dates:
        print(f"[nypd] Dropping {bad_dates} rows with an unparseable OCCUR_DATE")
    out = out[out["occur_date"].notna()].copy()

    unknown_flags = out["is_murder"].isna().sum()
    if unknown_flags:
        print(f"[nypd] {unknown_flags} rows with an unrecognised STATISTICAL_MURDER_FLAG")

    out["year"] = out["occur_date"].dt.year.astype("int64")
    out["month"] = out["occur_date"].dt.month.astype("int64")
    out["precinct"] = pd.to_numeric(out["precinct"], errors="coerce").astype("Int64")
    out["latitude"] = pd.to_numeric(out["latitude"], errors="coerce")
    out["longitude"] = pd.to_numeric(out["longitude"], errors="coerce")
    for col in ("vic_age_group", "vic_sex", "vic_race", "perp_age_group"):
        out[col] = out[col].astype("string").str.strip()

    return out[PROCESSED_COLUMNS].sort_values(["occur_date", "incident_key"]).reset_index(drop=True)


def _summarize(df: pd.DataFrame, by: list) -> pd.DataFrame:
    grouped = df.groupby(by)
    summary = pd.DataFrame(
        {
            "incidents": grouped["incident_key"].nunique(),
            "victims": grouped.size(),
            "murder_victims": grouped["is_murder"].sum(),
        }
    ).reset_index()
    summary["murder_victims"] = summary["murder_victims"].astype("int64")
    return summary


def _year_span(df: pd.DataFrame) -> range:
    return range(int(df["year"].min()), int(df["year"].max()) + 1)


def summarize_by_year(df: pd.DataFrame) -> pd.DataFrame:
    """
    year, incidents, victims, murder_victims.

    Every year between the first and last one in `df` is present; years
    without incidents count as 0.
    """
    if df.empty:
        return pd.DataFrame(columns=["year", "incidents", "victims", "murder_victims"])
    years = pd.Index(_year_span(df), name="year")
    return _summarize(df, ["year"]).set_index("year").reindex(years, fill_value=0).reset_index()


def summarize_by_boro_year(
    df: pd.DataFrame,
    populations: Mapping[str, int] = BOROUGH_POPULATION_2020,
) -> pd.DataFrame:
    """
    boro, year, incidents, victims, murder_victims, population, incidents_per_100k.

    Each borough gets a row for every year in `df`'s span (zero filled).
    Boroughs without a population (e.g. blank BORO) get NaN rates.
    """
    cols = ["boro", "year", "incidents", "victims", "murder_victims", "population", "incidents_per_100k"]
    if df.empty:
        return pd.DataFrame(columns=cols)

    summary = _summarize(df.dropna(subset=["boro"]), ["boro", "year"])
    full = pd.MultiIndex.from_product(
        [sorted(summary["boro"].unique()), _year_span(df)],
        names=["boro", "year"],
    )
    summary = summary.set_index(["boro", "year"]).reindex(full, fill_value=0).reset_index()
    summary["population"] = summary["boro"].map(dict(populations)).astype("float64")
    summary["incidents_per_100k"] = np.where(
        summary["population"] > 0,
        summary["incidents"] * 100_000 / summary["population"],
        np.nan,
    )
    return summary[cols].sort_values(["boro", "year"]).reset_index(drop=True)


def summarize_by_hour(df: pd.DataFrame) -> pd.DataFrame:
    """hour (0-23, zero filled), incidents."""
    hours = pd.Index(range(24), name="hour")
    if df.empty:
        counts = pd.Series(0, index=hours)
    else:
        counts = (
            df.dropna(subset=["occur_hour"])
            .groupby("occur_hour")["incident_key"]
            .nunique()
        )
        counts.index = counts.index.astype("int64")
        counts = counts.reindex(hours, fill_value=0)
        counts.index.name = "hour"
    return counts.rename("incidents").reset_index()


def summarize_by_month(df: pd.DataFrame) -> pd.DataFrame:
    """month_start (first day of month), incidents, victims, murder_victims."""
    if df.empty:
        return pd.DataFrame(columns=["month_start", "incidents", "victims", "murder_victims"])
    tmp = df.assign(month_start=df["occur_date"].dt.to_period("M").dt.to_timestamp())
    return _summarize(tmp, ["month_start"]).sort_values("month_start").reset_index(drop=True)


def process_nypd_shootings_raw(
    storage: StorageAdapter,
    raw_key: str,
    *,
    snapshot_date: Optional[str] = None,
) -> str:
    """RAW -> PROCESSED for NYPD shootings; returns the Parquet key."""
    raw_df = storage.read_csv(raw_key, dtype="string")
    df = build_nypd_shootings_dataframe(raw_df)
    key = snapshot_key(PROCESSED_BASE_PREFIX, PROCESSED_FILE, snapshot_date)
    storage.write_parquet(df, key)
    print(
        f"[nypd] {df['incident_key'].nunique():,} incidents / {len(df):,} victims "
        f"({df['year'].min()}-{df['year'].max()}) -> {key}"
        if not df.empty
        else f"[nypd] No valid rows -> {key}"
    )
    return key


def load_latest_nypd_shootings(storage: StorageAdapter) -> pd.DataFrame:
    key = latest_snapshot_key(storage, PROCESSED_BASE_PREFIX, PROCESSED_FILE)
    if key is None:
        return pd.DataFrame(columns=PROCESSED_COLUMNS)
    return storage.read_parquet(key)


__all__ = [
    "PROCESSED_BASE_PREFIX",
    "PROCESSED_FILE",
    "BOROUGH_POPULATION_2020",
    "REQUIRED_COLUMNS",
    "normalize_nypd_columns",
    "parse_murder_flag",
    "build_nypd_shootings_dataframe",
    "summarize_by_year",
    "summarize_by_boro_year",
    "summarize_by_hour",
    "summarize_by_month",
    "process_nypd_shootings_raw",
    "load_latest_nypd_shootings",
]
