"""
Analytical outputs for NYPD shooting incidents.

Artefacts, written under analysis/nypd_shootings/<YYYYMMDD>/:

- nypd_yearly_incidents.png       incidents and murder victims per year, OLS trend
- nypd_borough_incidents_per_100k.png
- nypd_incidents_by_hour.png
- nypd_shooting_trend_summary.csv  OLS of yearly incidents on year, city-wide and per borough
"""

from __future__ import annotations

from typing import Mapping, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from adapters import StorageAdapter
from transformations import (
    BOROUGH_POPULATION_2020,
    load_latest_nypd_shootings,
    summarize_by_boro_year,
    summarize_by_hour,
    summarize_by_year,
)
from .outputs import analysis_key, save_current_figure, write_summary_table
from .regression import fit_linear_regression

ANALYSIS_NAME = "nypd_shootings"
YEARLY_PNG_NAME = "nypd_yearly_incidents.png"
BOROUGH_PNG_NAME = "nypd_borough_incidents_per_100k.png"
HOURLY_PNG_NAME = "nypd_incidents_by_hour.png"
TREND_CSV_NAME = "nypd_shooting_trend_summary.csv"

ALL_SCOPE = "ALL"

TREND_COLUMNS = [
    "scope",
    "n_obs",
    "slope",
    "intercept",
    "r_squared",
    "p_value",
    "first_year",
    "last_year",
    "total_incidents",
    "murder_share",
]


def _year_bounds_label(min_year: Optional[int], max_year: Optional[int]) -> str:
    if min_year is None and max_year is None:
        return ""
    return f" ({min_year or '...'}-{max_year or '...'})"


def _load_shootings(
    storage: StorageAdapter,
    *,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> pd.DataFrame:
    df = load_latest_nypd_shootings(storage)
    if df.empty:
        raise RuntimeError("No processed NYPD shootings data available; run the processing step first")

    if min_year is not None:
        df = df[df["year"] >= min_year]
    if max_year is not None:
        df = df[df["year"] <= max_year]
    if df.empty:
        raise RuntimeError(
            f"No NYPD shootings data available between {min_year} and {max_year}"
        )
    return df


def build_yearly_trend_chart(
    storage: StorageAdapter,
    *,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> str:
    """
    Incidents and murder victims per year, with the OLS trend of incidents.
    """
    yearly = summarize_by_year(_load_shootings(storage, min_year=min_year, max_year=max_year))

    plt.figure(figsize=(10, 6))
    plt.plot(yearly["year"], yearly["incidents"], marker="o", linewidth=2, label="Incidents")
    plt.plot(
        yearly["year"],
        yearly["murder_victims"],
        marker="s",
        linewidth=1.5,
        label="Murder victims",
    )

    try:
        fit = fit_linear_regression(yearly, "year", "incidents")
    except ValueError as e:
        print(f"[analysis] Trend fit skipped: {e}")
    else:
        years = yearly["year"].to_numpy(dtype="float64")
        plt.plot(
            years,
            fit.predict(years),
            color="crimson",
            linestyle="--",
            linewidth=2,
            label=f"OLS trend ({fit.slope:+.1f}/year, R²={fit.r_squared:.2f})",
        )

    plt.xticks(yearly["year"].astype(int).tolist(), rotation=45)
    plt.xlabel("Year")
    plt.ylabel("Count")
    plt.title("NYPD shooting incidents per year" + _year_bounds_label(min_year, max_year))
    plt.legend(frameon=False)
    plt.grid(True, linestyle="--", alpha=0.3)
    plt.tight_layout()

    return save_current_figure(storage, analysis_key(ANALYSIS_NAME, YEARLY_PNG_NAME))


def build_borough_rate_chart(
    storage: StorageAdapter,
    *,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    populations: Mapping[str, int] = BOROUGH_POPULATION_2020,
) -> str:
    """Incidents per 100k residents, one line per borough."""
    by_boro = summarize_by_boro_year(
        _load_shootings(storage, min_year=min_year, max_year=max_year),
        populations,
    )
    by_boro = by_boro.dropna(subset=["incidents_per_100k"])
    if by_boro.empty:
        raise RuntimeError("No borough with a known population available for the rate chart")

    plt.figure(figsize=(10, 6))
    for boro, group in by_boro.groupby("boro"):
        plt.plot(group["year"], group["incidents_per_100k"], marker="o", linewidth=1.5, label=str(boro).title())

    plt.xlabel("Year")
    plt.ylabel("Incidents per 100k residents")
    plt.title("NYPD shooting incidents per 100k residents by borough" + _year_bounds_label(min_year, max_year))
    plt.legend(frameon=False)
    plt.grid(True, linestyle="--", alpha=0.3)
    plt.tight_layout()

    return save_current_figure(storage, analysis_key(ANALYSIS_NAME, BOROUGH_PNG_NAME))


def build_hourly_distribution_chart(
    storage: StorageAdapter,
    *,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> str:
    hourly = summarize_by_hour(_load_shootings(storage, min_year=min_year, max_year=max_year))

    plt.figure(figsize=(10, 6))
    plt.bar(hourly["hour"], hourly["incidents"], color="steelblue")
    plt.xticks(range(24))
    plt.xlabel("Hour of day")
    plt.ylabel("Incidents")
    plt.title("NYPD shooting incidents by hour of day" + _year_bounds_label(min_year, max_year))
    plt.grid(True, axis="y", linestyle="--", alpha=0.3)
    plt.tight_layout()

    return save_current_figure(storage, analysis_key(ANALYSIS_NAME, HOURLY_PNG_NAME))


def _trend_row(scope: str, yearly: pd.DataFrame) -> dict:
    victims = yearly["victims"].sum()
    row = {
        "scope": scope,
        "n_obs": len(yearly),
        "slope": np.nan,
        "intercept": np.nan,
        "r_squared": np.nan,
        "p_value": np.nan,
        "first_year": int(yearly["year"].min()),
        "last_year": int(yearly["year"].max()),
        "total_incidents": int(yearly["incidents"].sum()),
        "murder_share": float(yearly["murder_victims"].sum() / victims) if victims else np.nan,
    }
    try:
        fit = fit_linear_regression(yearly, "year", "incidents")
    except ValueError as e:
        print(f"[analysis] {scope}: trend fit skipped ({e})")
    else:
        row.update(
            n_obs=fit.n_obs,
            slope=fit.slope,
            intercept=fit.intercept,
            r_squared=fit.r_squared,
            p_value=fit.p_value,
        )
    return row


def build_shooting_trend_summary(
    storage: StorageAdapter,
    *,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    write_xlsx: bool = False,
) -> str:
    """
    One row for the whole city (scope "ALL") and one per borough.

    `slope` is the fitted change in incidents per year; `murder_share` is
    murder victims over all victims.
    """
    df = _load_shootings(storage, min_year=min_year, max_year=max_year)

    rows = [_trend_row(ALL_SCOPE, summarize_by_year(df))]
    by_boro = summarize_by_boro_year(df)
    for boro, group in by_boro.groupby("boro"):
        rows.append(_trend_row(str(boro), group.reset_index(drop=True)))

    result_df = pd.DataFrame(rows, columns=TREND_COLUMNS)
    location = write_summary_table(
        storage,
        result_df,
        analysis_key(ANALYSIS_NAME, TREND_CSV_NAME),
        write_xlsx=write_xlsx,
    )
    print(f"[analysis] Shooting trend summary ({len(result_df)} scopes) -> {location}")
    return location


__all__ = [
    "ANALYSIS_NAME",
    "YEARLY_PNG_NAME",
    "BOROUGH_PNG_NAME",
    "HOURLY_PNG_NAME",
    "TREND_CSV_NAME",
    "ALL_SCOPE",
    "build_yearly_trend_chart",
    "build_borough_rate_chart",
    "build_hourly_distribution_chart",
    "build_shooting_trend_summary",
]
