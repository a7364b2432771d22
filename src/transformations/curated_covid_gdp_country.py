"""
Curated dataset: COVID-19 burden vs GDP, one row per country.

Join between the PROCESSED datasets:
  - JHU COVID country-daily (cumulative counts + per-capita rates)
  - World Bank GDP indicators (GDP, GDP per capita)

- Logical key: country_code (ISO3)
- COVID values are taken at `as_of_date` (default: last reported date).
- GDP values are taken at `gdp_year` (default 2019, the last pre-pandemic
  year); when a country has no value for that year, the latest earlier
  year is used and recorded in `gdp_year`.
- Fields:
    country_code               - string (key)
    country_name               - string (World Bank name)
    as_of_date                 - date
    population                 - float (JHU lookup)
    confirmed, deaths          - int
    confirmed_per_thousand     - float
    deaths_per_million         - float
    case_fatality_rate         - float
    gdp_year                   - int
    gdp_usd                    - float
    gdp_per_capita_usd         - float (derived as gdp_usd / population when not ingested)
    curated_run_id             - string
    last_update_ts             - timestamp

Layout:

    curated/covid_gdp_country/snapshot_date=<YYYYMMDD>/curated_covid_gdp_country.parquet
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

import pandas as pd

from adapters import LocalMetadataAdapter, MetadataAdapter, StorageAdapter
from common.snapshots import latest_snapshot_key, snapshot_key
from metadata import CURATED_COVID_GDP_SCOPE
from .jhu_covid_processed import load_latest_jhu_covid
from .world_bank_gdp_processed import load_latest_world_bank_gdp, pivot_indicators

CURATED_BASE_PREFIX = "curated/covid_gdp_country"
CURATED_FILE = "curated_covid_gdp_country.parquet"

DEFAULT_GDP_YEAR = 2019

CURATED_COLUMNS = [
    "country_code",
    "country_name",
    "as_of_date",
    "population",
    "confirmed",
    "deaths",
    "confirmed_per_thousand",
    "deaths_per_million",
    "case_fatality_rate",
    "gdp_year",
    "gdp_usd",
    "gdp_per_capita_usd",
    "curated_run_id",
    "last_update_ts",
]


def _empty_curated() -> pd.DataFrame:
    return pd.DataFrame(columns=CURATED_COLUMNS)


def select_gdp_for_year(gdp_wide: pd.DataFrame, gdp_year: int) -> pd.DataFrame:
    """
    One row per country: the latest year <= `gdp_year` that has any GDP value.

    `gdp_wide` is the output of `pivot_indicators`.
    """
    value_cols = [c for c in ("gdp_usd", "gdp_per_capita_usd") if c in gdp_wide.columns]
    df = gdp_wide.copy()
    df["year"] = pd.to_numeric(df["year"], errors="coerce")
    df = df[(df["year"] <= gdp_year) & df[value_cols].notna().any(axis=1)]
    if df.empty:
        return pd.DataFrame(columns=["country_code", "country_name", "gdp_year", *value_cols])

    df = df.sort_values(["country_code", "year"]).groupby("country_code", as_index=False).tail(1)
    df = df.rename(columns={"year": "gdp_year"})
    df["gdp_year"] = df["gdp_year"].astype("int64")

    fallback = (df["gdp_year"] != gdp_year).sum()
    if fallback:
        print(f"[curated] {fallback} countries use GDP from a year earlier than {gdp_year}")
    return df[["country_code", "country_name", "gdp_year", *value_cols]].reset_index(drop=True)


def _covid_snapshot(covid_df: pd.DataFrame, as_of_date: Optional[date | str]) -> pd.DataFrame:
    df = covid_df.copy()
    df["date"] = pd.to_datetime(df["date"])
    if as_of_date is None:
        target = df["date"].max()
    else:
        target = pd.Timestamp(as_of_date)
        if target not in set(df["date"]):
            available = df.loc[df["date"] <= target, "date"]
            if available.empty:
                raise ValueError(f"No COVID data on or before {target.date()}")
            target = available.max()
            print(f"[curated] No COVID report on {as_of_date}; using {target.date()}")

    snap = df[(df["date"] == target) & df["country_code"].notna()]
    return snap.drop_duplicates(subset=["country_code"], keep="last").copy()


def build_curated_covid_gdp_dataframe(
    covid_df: pd.DataFrame,
    world_bank_df: pd.DataFrame,
    *,
    curated_run_id: str,
    snapshot_ts: datetime,
    as_of_date: Optional[date | str] = None,
    gdp_year: int = DEFAULT_GDP_YEAR,
) -> pd.DataFrame:
    """
    Join the COVID snapshot with GDP and derive the curated columns.

    `world_bank_df` is the long PROCESSED World Bank frame.
    """
    if covid_df.empty or world_bank_df.empty:
        return _empty_curated()

    covid = _covid_snapshot(covid_df, as_of_date)
    gdp = select_gdp_for_year(pivot_indicators(world_bank_df), gdp_year)

    covid["country_code"] = covid["country_code"].astype("string")
    gdp["country_code"] = gdp["country_code"].astype("string")

    joined = covid.merge(gdp, on="country_code", how="inner", suffixes=("_jhu", ""))

    unmatched_covid = len(covid) - len(joined)
    if unmatched_covid:
        missing = sorted(set(covid["country_code"].dropna()) - set(joined["country_code"]))
        print(
            f"[curated] {unmatched_covid} COVID countries without GDP for <= {gdp_year}; "
            f"dropped from curated: {', '.join(missing[:10])}"
        )

    if joined.empty:
        return _empty_curated()

    if "gdp_usd" not in joined.columns:
        joined["gdp_usd"] = float("nan")
    if "gdp_per_capita_usd" not in joined.columns:
        joined["gdp_per_capita_usd"] = float("nan")

    # Derive GDP per capita when only total GDP was ingested.
    population = pd.to_numeric(joined["population"], errors="coerce")
    derivable = joined["gdp_per_capita_usd"].isna() & joined["gdp_usd"].notna() & (population > 0)
    joined.loc[derivable, "gdp_per_capita_usd"] = joined.loc[derivable, "gdp_usd"] / population[derivable]

    joined["country_name"] = joined["country_name"].fillna(joined["country_name_jhu"])
    joined["as_of_date"] = joined["date"].dt.date
    joined["curated_run_id"] = curated_run_id
    joined["last_update_ts"] = pd.to_datetime(snapshot_ts, utc=True)

    joined["country_code"] = joined["country_code"].astype("string")
    joined["country_name"] = joined["country_name"].astype("string")
    joined["curated_run_id"] = joined["curated_run_id"].astype("string")
    joined["gdp_usd"] = pd.to_numeric(joined["gdp_usd"], errors="coerce")
    joined["gdp_per_capita_usd"] = pd.to_numeric(joined["gdp_per_capita_usd"], errors="coerce")

    return joined[CURATED_COLUMNS].sort_values("country_code").reset_index(drop=True)


def save_curated_covid_gdp(
    storage: StorageAdapter,
    df: pd.DataFrame,
    *,
    snapshot_date: Optional[str] = None,
) -> str:
    key = snapshot_key(CURATED_BASE_PREFIX, CURATED_FILE, snapshot_date)
    storage.write_parquet(df, key)
    return key


def build_and_save_curated_covid_gdp(
    storage: StorageAdapter,
    metadata: Optional[MetadataAdapter] = None,
    *,
    as_of_date: Optional[date | str] = None,
    gdp_year: int = DEFAULT_GDP_YEAR,
    run_scope: str = CURATED_COVID_GDP_SCOPE,
) -> str:
    """
    Orchestrate build + save of the curated layer, registering the run.
    """
    meta = metadata or LocalMetadataAdapter()
    run_id = meta.start_run(run_scope)
    snapshot_ts = datetime.now(timezone.utc)
    snapshot_date = snapshot_ts.strftime("%Y%m%d")

    try:
        df = build_curated_covid_gdp_dataframe(
            load_latest_jhu_covid(storage),
            load_latest_world_bank_gdp(storage),
            curated_run_id=run_id,
            snapshot_ts=snapshot_ts,
            as_of_date=as_of_date,
            gdp_year=gdp_year,
        )
        key = save_curated_covid_gdp(storage, df, snapshot_date=snapshot_date)

        meta.end_run(
            run_id,
            status="SUCCESS",
            rows_processed=int(df.shape[0]),
            last_checkpoint=f"snapshot_date={snapshot_date}",
        )
        return key
    except Exception as exc:  # noqa: BLE001
        meta.end_run(run_id, status="FAILED", error_message=str(exc))
        raise


def load_latest_curated_covid_gdp(storage: StorageAdapter) -> pd.DataFrame:
    key = latest_snapshot_key(storage, CURATED_BASE_PREFIX, CURATED_FILE)
    if key is None:
        return _empty_curated()
    return storage.read_parquet(key)


__all__ = [
    "CURATED_BASE_PREFIX",
    "CURATED_FILE",
    "DEFAULT_GDP_YEAR",
    "select_gdp_for_year",
    "build_curated_covid_gdp_dataframe",
    "save_curated_covid_gdp",
    "build_and_save_curated_covid_gdp",
    "load_latest_curated_covid_gdp",
]
