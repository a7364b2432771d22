from datetime import datetime, timezone

import pandas as pd
import pytest

from transformations.country_mapping import build_country_mapping
from transformations.curated_covid_gdp_country import (
    CURATED_COLUMNS,
    build_and_save_curated_covid_gdp,
    build_curated_covid_gdp_dataframe,
    load_latest_curated_covid_gdp,
    select_gdp_for_year,
)
from transformations.jhu_covid_processed import load_latest_jhu_covid, process_jhu_covid_raw
from transformations.world_bank_gdp_processed import (
    load_latest_world_bank_gdp,
    pivot_indicators,
    process_world_bank_gdp_raw,
)

SNAPSHOT_TS = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def processed(storage, jhu_raw_keys, world_bank_raw_keys):
    mapping = build_country_mapping(storage, jhu_raw_keys["lookup"])
    process_jhu_covid_raw(storage, jhu_raw_keys, country_mapping=mapping)
    process_world_bank_gdp_raw(storage, world_bank_raw_keys)
    return load_latest_jhu_covid(storage), load_latest_world_bank_gdp(storage)


def test_select_gdp_falls_back_to_latest_earlier_year(processed):
    _, world_bank = processed

    gdp = select_gdp_for_year(pivot_indicators(world_bank), 2019).set_index("country_code")

    assert gdp.loc["ALP", "gdp_year"] == 2019
    assert gdp.loc["DEL", "gdp_year"] == 2018
    assert gdp.loc["DEL", "gdp_per_capita_usd"] == pytest.approx(10000)

    gdp_2020 = select_gdp_for_year(pivot_indicators(world_bank), 2020).set_index("country_code")
    assert gdp_2020.loc["BET", "gdp_year"] == 2019
    assert gdp_2020.loc["GAM", "gdp_year"] == 2020


def test_curated_join_one_row_per_matched_country(processed):
    covid, world_bank = processed

    df = build_curated_covid_gdp_dataframe(
        covid,
        world_bank,
        curated_run_id="run-1",
        snapshot_ts=SNAPSHOT_TS,
    )

    assert df.columns.tolist() == CURATED_COLUMNS
    assert df["country_code"].tolist() == ["ALP", "BET", "DEL", "GAM", "XKX"]
    assert set(df["curated_run_id"]) == {"run-1"}

    alp = df.set_index("country_code").loc["ALP"]
    assert str(alp["as_of_date"]) == "2020-01-24"
    assert alp["confirmed"] == 20
    assert alp["deaths_per_million"] == pytest.approx(2.0)
    assert alp["gdp_usd"] == pytest.approx(1.1e10)
    assert alp["gdp_per_capita_usd"] == pytest.approx(11000)
    assert alp["country_name"] == "Alphaland"


def test_curated_as_of_date_uses_latest_report_on_or_before(processed):
    covid, world_bank = processed

    df = build_curated_covid_gdp_dataframe(
        covid,
        world_bank,
        curated_run_id="run-2",
        snapshot_ts=SNAPSHOT_TS,
        as_of_date="2020-01-23",
    )
    assert df.set_index("country_code").loc["ALP", "confirmed"] == 8

    later = build_curated_covid_gdp_dataframe(
        covid,
        world_bank,
        curated_run_id="run-3",
        snapshot_ts=SNAPSHOT_TS,
        as_of_date="2021-06-30",
    )
    assert str(later["as_of_date"].iloc[0]) == "2020-01-24"

    with pytest.raises(ValueError):
        build_curated_covid_gdp_dataframe(
            covid,
            world_bank,
            curated_run_id="run-4",
            snapshot_ts=SNAPSHOT_TS,
            as_of_date="2019-12-31",
        )


def test_curated_derives_gdp_per_capita_when_only_total_gdp_exists(processed):
    covid, world_bank = processed
    totals_only = world_bank[world_bank["indicator_id"] == "NY.GDP.MKTP.CD"]

    df = build_curated_covid_gdp_dataframe(
        covid,
        totals_only,
        curated_run_id="run-5",
        snapshot_ts=SNAPSHOT_TS,
    ).set_index("country_code")

    # 1.1e10 USD / 1,000,000 residents
    assert df.loc["ALP", "gdp_per_capita_usd"] == pytest.approx(11000)
    assert df.loc["XKX", "gdp_per_capita_usd"] == pytest.approx(7.5e9 / 1_800_000)


def test_curated_is_empty_without_inputs():
    empty = build_curated_covid_gdp_dataframe(
        pd.DataFrame(),
        pd.DataFrame(),
        curated_run_id="run-6",
        snapshot_ts=SNAPSHOT_TS,
    )
    assert empty.empty
    assert empty.columns.tolist() == CURATED_COLUMNS


def test_build_and_save_registers_run(storage, metadata, processed):
    key = build_and_save_curated_covid_gdp(storage, metadata, gdp_year=2019)

    assert key.startswith("curated/covid_gdp_country/snapshot_date=")
    df = load_latest_curated_covid_gdp(storage)
    assert len(df) == 5

    (run,) = metadata.list_runs("curated_covid_gdp")
    assert run["status"] == "SUCCESS"
    assert run["rows_processed"] == 5
    assert set(df["curated_run_id"]) == {run["run_id"]}


def test_build_and_save_marks_failed_run(storage, metadata, processed):
    with pytest.raises(ValueError):
        build_and_save_curated_covid_gdp(storage, metadata, as_of_date="2000-01-01")

    (run,) = metadata.list_runs("curated_covid_gdp")
    assert run["status"] == "FAILED"
    assert "2000-01-01" in run["error_message"]
