"""
Analytical outputs for the curated COVID-19 x GDP dataset.

Artefacts, written under analysis/covid_gdp/<YYYYMMDD>/:

- covid_vs_gdp_scatter.png
    X axis: gdp_per_capita_usd (log scale by default)
    Y axis: one COVID burden measure (default deaths_per_million)
    Colour: log10 population; OLS line with R² in the legend and the
    countries with the largest residuals annotated.

- covid_new_cases_top_countries.png
    Rolling average of daily new confirmed cases for the countries with
    the most confirmed cases at the last reported date.

- covid_gdp_regression_summary.csv
    One row per response: OLS of the response on GDP per capita, Pearson
    correlation and the five countries with the highest/lowest values.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from adapters import StorageAdapter
from transformations import load_latest_curated_covid_gdp, load_latest_jhu_covid
from .outputs import analysis_key, save_current_figure, write_summary_table
from .regression import fit_linear_regression

ANALYSIS_NAME = "covid_gdp"
SCATTER_PNG_NAME = "covid_vs_gdp_scatter.png"
TIME_SERIES_PNG_NAME = "covid_new_cases_top_countries.png"
REGRESSION_CSV_NAME = "covid_gdp_regression_summary.csv"

PREDICTOR = "gdp_per_capita_usd"
DEFAULT_RESPONSES = ("deaths_per_million", "confirmed_per_thousand", "case_fatality_rate")

RESPONSE_LABELS: Dict[str, str] = {
    "deaths_per_million": "Deaths per million",
    "confirmed_per_thousand": "Confirmed cases per thousand",
    "case_fatality_rate": "Case fatality rate",
    "confirmed": "Confirmed cases",
    "deaths": "Deaths",
}

SUMMARY_COLUMNS = [
    "response",
    "predictor",
    "log_x",
    "n_obs",
    "slope",
    "intercept",
    "r_squared",
    "p_value",
    "slope_stderr",
    "pearson_r",
    "top5_highest",
    "top5_lowest",
]

_NUMERIC_COLUMNS = [
    "population",
    "confirmed",
    "deaths",
    "confirmed_per_thousand",
    "deaths_per_million",
    "case_fatality_rate",
    "gdp_usd",
    "gdp_per_capita_usd",
]


def _load_curated(storage: StorageAdapter) -> pd.DataFrame:
    df = load_latest_curated_covid_gdp(storage)
    if df.empty:
        raise RuntimeError("No curated COVID x GDP data available; run the curated step first")
    df = df.copy()
    for col in _NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    df["country_name"] = df["country_name"].astype("string")
    return df


def _valid_rows(df: pd.DataFrame, response: str, log_x: bool) -> pd.DataFrame:
    if response not in df.columns:
        raise ValueError(f"Unknown response column: {response}")
    valid = df.replace([np.inf, -np.inf], np.nan).dropna(subset=[PREDICTOR, response])
    if log_x:
        valid = valid[valid[PREDICTOR] > 0]
    return valid.reset_index(drop=True)


def build_covid_vs_gdp_scatter(
    storage: StorageAdapter,
    *,
    response: str = "deaths_per_million",
    log_x: bool = True,
    annotate_outliers: bool = True,
    outliers_top_n: int = 5,
) -> str:
    """
    Scatter of a COVID burden measure against GDP per capita.
    """
    df = _valid_rows(_load_curated(storage), response, log_x)
    if df.empty:
        raise RuntimeError(f"No valid rows available for the {response} scatter plot")

    as_of = str(df["as_of_date"].iloc[0]) if "as_of_date" in df.columns else ""
    gdp_year = int(df["gdp_year"].max()) if "gdp_year" in df.columns else None

    plt.figure(figsize=(10, 6))

    x = df[PREDICTOR].to_numpy(dtype="float64")
    y = df[response].to_numpy(dtype="float64")
    colour = np.log10(df["population"].where(df["population"] > 0))

    scatter = plt.scatter(
        x,
        y,
        c=colour,
        cmap="viridis",
        alpha=0.8,
        edgecolors="none",
    )
    plt.colorbar(scatter, label="log10 population")
    if log_x:
        plt.xscale("log")
    plt.xlabel(f"GDP per capita (USD, {gdp_year})" if gdp_year else "GDP per capita (USD)")
    plt.ylabel(RESPONSE_LABELS.get(response, response))

    try:
        fit = fit_linear_regression(df, PREDICTOR, response, log_x=log_x)
    except ValueError as e:
        print(f"[analysis] Regression fit skipped: {e}")
    else:
        if log_x:
            x_line = np.logspace(np.log10(x.min()), np.log10(x.max()), 200)
        else:
            x_line = np.linspace(x.min(), x.max(), 200)
        plt.plot(
            x_line,
            fit.predict(x_line),
            color="crimson",
            linewidth=2,
            label=f"OLS fit (R²={fit.r_squared:.2f}, p={fit.p_value:.3g})",
        )

        if annotate_outliers and outliers_top_n > 0:
            resid = np.abs(y - fit.predict(x))
            for i in np.argsort(-resid)[:outliers_top_n]:
                plt.annotate(
                    str(df.loc[i, "country_name"]),
                    (x[i], y[i]),
                    textcoords="offset points",
                    xytext=(5, 5),
                    fontsize=8,
                    color="black",
                    alpha=0.8,
                )
        plt.legend(frameon=False)

    title = f"{RESPONSE_LABELS.get(response, response)} vs GDP per capita"
    if as_of:
        title += f" (COVID data as of {as_of})"
    plt.title(title)
    plt.grid(True, linestyle="--", alpha=0.3)
    plt.tight_layout()

    location = save_current_figure(storage, analysis_key(ANALYSIS_NAME, SCATTER_PNG_NAME))
    print(f"[analysis] Scatter ({len(df)} countries) -> {location}")
    return location


def build_covid_time_series_chart(
    storage: StorageAdapter,
    *,
    top_n: int = 6,
    rolling_days: int = 7,
) -> str:
    """
    Line chart of the rolling mean of daily new cases for the `top_n`
    countries by cumulative confirmed cases.
    """
    df = load_latest_jhu_covid(storage)
    if df.empty:
        raise RuntimeError("No processed JHU COVID data available for the time series chart")

    df = df.copy()
    df["date"] = pd.to_datetime(df["date"])
    latest = df[df["date"] == df["date"].max()]
    top_countries: List[str] = (
        latest.sort_values("confirmed", ascending=False)["country_name"].head(top_n).astype(str).tolist()
    )

    plt.figure(figsize=(10, 6))
    for name in top_countries:
        series = df[df["country_name"] == name].sort_values("date")
        smoothed = (
            pd.to_numeric(series["new_confirmed"], errors="coerce")
            .rolling(rolling_days, min_periods=1)
            .mean()
        )
        plt.plot(series["date"], smoothed, linewidth=1.5, label=name)

    plt.xlabel("Date")
    plt.ylabel(f"New confirmed cases ({rolling_days}-day average)")
    plt.title(f"Daily new COVID-19 cases, top {len(top_countries)} countries by confirmed cases")
    plt.legend(frameon=False)
    plt.grid(True, linestyle="--", alpha=0.3)
    plt.tight_layout()

    location = save_current_figure(storage, analysis_key(ANALYSIS_NAME, TIME_SERIES_PNG_NAME))
    print(f"[analysis] Time series ({', '.join(top_countries)}) -> {location}")
    return location


def _format_top5_countries(df: pd.DataFrame, column: str, *, ascending: bool) -> str:
    """
    Top five countries by `column` as "Country: value" joined with ";".
    """
    df_valid = df.dropna(subset=[column, "country_name"])
    if df_valid.empty:
        return ""
    df_sorted = df_valid.sort_values(by=column, ascending=ascending).head(5)
    return ";".join(
        f"{name}: {val:.3f}"
        for name, val in zip(
            df_sorted["country_name"].astype(str).tolist(),
            df_sorted[column].astype(float).tolist(),
        )
    )


def build_covid_gdp_regression_summary(
    storage: StorageAdapter,
    *,
    responses: Sequence[str] = DEFAULT_RESPONSES,
    log_x: bool = True,
    write_xlsx: bool = False,
) -> str:
    df_all = _load_curated(storage)

    rows = []
    for response in responses:
        df = _valid_rows(df_all, response, log_x)
        row = {
            "response": response,
            "predictor": PREDICTOR,
            "log_x": log_x,
            "n_obs": len(df),
            "slope": np.nan,
            "intercept": np.nan,
            "r_squared": np.nan,
            "p_value": np.nan,
            "slope_stderr": np.nan,
            "pearson_r": np.nan,
            "top5_highest": _format_top5_countries(df, response, ascending=False),
            "top5_lowest": _format_top5_countries(df, response, ascending=True),
        }
        try:
            fit = fit_linear_regression(df, PREDICTOR, response, log_x=log_x)
        except ValueError as e:
            print(f"[analysis] {response}: regression skipped ({e})")
        else:
            row.update(
                n_obs=fit.n_obs,
                slope=fit.slope,
                intercept=fit.intercept,
                r_squared=fit.r_squared,
                p_value=fit.p_value,
                slope_stderr=fit.slope_stderr,
            )
            row["pearson_r"] = df[PREDICTOR].corr(df[response], method="pearson")
        rows.append(row)

    result_df = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    location = write_summary_table(
        storage,
        result_df,
        analysis_key(ANALYSIS_NAME, REGRESSION_CSV_NAME),
        write_xlsx=write_xlsx,
    )
    print(f"[analysis] Regression summary ({len(result_df)} responses) -> {location}")
    return location


__all__ = [
    "ANALYSIS_NAME",
    "SCATTER_PNG_NAME",
    "TIME_SERIES_PNG_NAME",
    "REGRESSION_CSV_NAME",
    "DEFAULT_RESPONSES",
    "build_covid_vs_gdp_scatter",
    "build_covid_time_series_chart",
    "build_covid_gdp_regression_summary",
]
