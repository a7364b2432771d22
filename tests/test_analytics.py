from pathlib import Path

import pandas as pd
import pytest

from analysis import (
    build_borough_rate_chart,
    build_covid_gdp_regression_summary,
    build_covid_time_series_chart,
    build_covid_vs_gdp_scatter,
    build_hourly_distribution_chart,
    build_shooting_trend_summary,
    build_yearly_trend_chart,
)
from analysis.outputs import analysis_key
from transformations import (
    build_and_save_curated_covid_gdp,
    build_country_mapping,
    process_jhu_covid_raw,
    process_nypd_shootings_raw,
    process_world_bank_gdp_raw,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def covid_storage(storage, metadata, jhu_raw_keys, world_bank_raw_keys):
    mapping = build_country_mapping(storage, jhu_raw_keys["lookup"])
    process_jhu_covid_raw(storage, jhu_raw_keys, country_mapping=mapping)
    process_world_bank_gdp_raw(storage, world_bank_raw_keys)
    build_and_save_curated_covid_gdp(storage, metadata)
    return storage


@pytest.fixture
def nypd_storage(storage, nypd_raw_key):
    process_nypd_shootings_raw(storage, nypd_raw_key)
    return storage


def _assert_png(location):
    path = Path(location)
    assert path.exists()
    assert path.read_bytes().startswith(PNG_SIGNATURE)


def test_analysis_key_layout():
    assert analysis_key("covid_gdp", "chart.png", "20240101") == "analysis/covid_gdp/20240101/chart.png"


def test_covid_scatter_is_written(covid_storage):
    location = build_covid_vs_gdp_scatter(covid_storage)

    _assert_png(location)
    assert "analysis/covid_gdp/" in Path(location).as_posix()


def test_covid_scatter_other_response_linear_axis(covid_storage):
    _assert_png(build_covid_vs_gdp_scatter(covid_storage, response="case_fatality_rate", log_x=False))


def test_covid_scatter_rejects_unknown_response(covid_storage):
    with pytest.raises(ValueError):
        build_covid_vs_gdp_scatter(covid_storage, response="hospitalisations")


def test_covid_time_series_is_written(covid_storage):
    _assert_png(build_covid_time_series_chart(covid_storage, top_n=3, rolling_days=2))


def test_covid_regression_summary(covid_storage):
    location = build_covid_gdp_regression_summary(covid_storage, write_xlsx=True)

    summary = pd.read_csv(location)
    assert summary["response"].tolist() == [
        "deaths_per_million",
        "confirmed_per_thousand",
        "case_fatality_rate",
    ]
    assert (summary["n_obs"] == 5).all()
    assert summary["r_squared"].between(0, 1).all()
    assert summary["pearson_r"].notna().all()
    top = summary.set_index("response").loc["confirmed_per_thousand", "top5_highest"]
    # Betaland: 100 cases per 2,000,000 residents
    assert top.split(";")[0] == "Betaland: 0.050"
    assert Path(location).with_suffix(".xlsx").exists()


def test_covid_outputs_need_curated_data(storage):
    with pytest.raises(RuntimeError):
        build_covid_vs_gdp_scatter(storage)
    with pytest.raises(RuntimeError):
        build_covid_gdp_regression_summary(storage)
    with pytest.raises(RuntimeError):
        build_covid_time_series_chart(storage)


def test_nypd_charts_are_written(nypd_storage):
    _assert_png(build_yearly_trend_chart(nypd_storage))
    _assert_png(build_borough_rate_chart(nypd_storage))
    _assert_png(build_hourly_distribution_chart(nypd_storage))


def test_nypd_trend_summary(nypd_storage):
    location = build_shooting_trend_summary(nypd_storage)

    summary = pd.read_csv(location).set_index("scope")
    assert summary.index.tolist() == ["ALL", "BRONX", "BROOKLYN", "QUEENS"]

    city = summary.loc["ALL"]
    assert city["n_obs"] == 4
    assert city["first_year"] == 2018
    assert city["last_year"] == 2021
    assert city["total_incidents"] == 11
    assert city["murder_share"] == pytest.approx(4 / 12)
    # incidents 2, 3, 4, 2 over 2018-2021
    assert city["slope"] == pytest.approx(0.1)

    assert summary.loc["BRONX", "total_incidents"] == 5
    # QUEENS has no incident in 2018; the gap year counts as 0
    assert summary.loc["QUEENS", "n_obs"] == 4
    assert summary.loc["QUEENS", "slope"] > 0
    assert summary["r_squared"].dropna().between(0, 1).all()


def test_nypd_year_bounds(nypd_storage):
    location = build_shooting_trend_summary(nypd_storage, min_year=2019, max_year=2020)

    city = pd.read_csv(location).set_index("scope").loc["ALL"]
    assert city["first_year"] == 2019
    assert city["last_year"] == 2020
    assert city["total_incidents"] == 7

    with pytest.raises(RuntimeError):
        build_yearly_trend_chart(nypd_storage, min_year=2030)


def test_nypd_outputs_need_processed_data(storage):
    with pytest.raises(RuntimeError):
        build_shooting_trend_summary(storage)
