from datetime import date
from pathlib import Path

import pandas as pd
import pytest
import requests

import local_pipeline
from adapters import LocalStorageAdapter
from ingestion_api.nypd_ingestion import NYPD_SHOOTINGS_URL
from local_pipeline import build_arg_parser, build_storage_from_env, main, run_local_pipeline
from transformations import load_latest_curated_covid_gdp


def test_full_run_writes_every_layer(storage, metadata, fake_http, capsys):
    artefacts = run_local_pipeline(storage=storage, metadata=metadata)

    assert set(artefacts) == {
        "jhu_covid_raw",
        "world_bank_raw",
        "country_mapping",
        "jhu_covid_processed",
        "world_bank_processed",
        "curated_covid_gdp",
        "covid_gdp_analysis",
        "nypd_shootings_raw",
        "nypd_shootings_processed",
        "nypd_shootings_analysis",
    }
    assert len(artefacts["covid_gdp_analysis"]) == 3
    assert len(artefacts["nypd_shootings_analysis"]) == 4
    for location in artefacts["covid_gdp_analysis"] + artefacts["nypd_shootings_analysis"]:
        assert Path(location).exists()

    # 3 JHU files, 2 World Bank ZIPs, 1 NYPD CSV
    assert len(fake_http) == 6

    out = capsys.readouterr().out
    assert "[1/10]" in out
    assert "[10/10]" in out
    assert "Pipeline completed successfully." in out


def test_second_run_reuses_downloads(storage, metadata, fake_http):
    run_local_pipeline(storage=storage, metadata=metadata)
    fake_http.clear()

    run_local_pipeline(storage=storage, metadata=metadata)

    assert fake_http == []
    runs = metadata.list_runs("nypd_shootings")
    assert [r["status"] for r in runs] == ["SUCCESS", "SUCCESS"]
    assert runs[-1]["rows_processed"] == 0


def test_force_download_fetches_again(storage, metadata, fake_http):
    run_local_pipeline(storage=storage, metadata=metadata, run_covid=False)
    fake_http.clear()

    run_local_pipeline(storage=storage, metadata=metadata, run_covid=False, force_download=True)

    assert fake_http == [NYPD_SHOOTINGS_URL]


def test_covid_only_run_with_as_of_date(storage, metadata, fake_http):
    artefacts = run_local_pipeline(
        storage=storage,
        metadata=metadata,
        run_nypd=False,
        as_of_date="2020-01-23",
        gdp_year=2020,
    )

    assert "nypd_shootings_raw" not in artefacts
    curated = load_latest_curated_covid_gdp(storage)
    assert set(curated["as_of_date"].astype(str)) == {"2020-01-23"}
    assert curated.set_index("country_code").loc["BET", "gdp_year"] == 2019


def test_failed_download_stops_the_run(storage, metadata, fake_http, http_routes):
    del http_routes[NYPD_SHOOTINGS_URL]

    with pytest.raises(requests.HTTPError):
        run_local_pipeline(storage=storage, metadata=metadata, run_covid=False)

    (run,) = metadata.list_runs("nypd_shootings")
    assert run["status"] == "FAILED"


def test_main_skip_covid(tmp_path, monkeypatch, fake_http, capsys):
    monkeypatch.setenv("METADATA_LOCAL_FILE", str(tmp_path / "meta.json"))
    root = tmp_path / "out"

    assert main(["--skip-covid", "--storage-root", str(root), "--min-year", "2019"]) == 0

    assert fake_http == [NYPD_SHOOTINGS_URL]
    charts = sorted(p.name for p in root.glob("analysis/nypd_shootings/*/*"))
    assert charts == [
        "nypd_borough_incidents_per_100k.png",
        "nypd_incidents_by_hour.png",
        "nypd_shooting_trend_summary.csv",
        "nypd_yearly_incidents.png",
    ]
    summary = pd.read_csv(next(root.glob("analysis/nypd_shootings/*/nypd_shooting_trend_summary.csv")))
    assert summary.loc[summary["scope"] == "ALL", "first_year"].item() == 2019
    assert "[3/3]" in capsys.readouterr().out
    assert (tmp_path / "meta.json").exists()


def test_main_nothing_to_run(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("METADATA_LOCAL_FILE", str(tmp_path / "meta.json"))
    assert main(["--skip-covid", "--skip-nypd", "--storage-root", str(tmp_path)]) == 0
    assert "Nothing to run" in capsys.readouterr().out


def test_arg_parser_parses_dates_and_years():
    args = build_arg_parser().parse_args(["--as-of-date", "2020-01-23", "--gdp-year", "2018"])

    assert args.as_of_date == date(2020, 1, 23)
    assert args.gdp_year == 2018
    assert args.min_year is None
    assert not args.force_download


def test_arg_parser_rejects_bad_date():
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args(["--as-of-date", "23/01/2020"])


def test_storage_from_env_defaults_to_local(tmp_path, monkeypatch):
    monkeypatch.delenv("PIPELINE_S3_BUCKET", raising=False)
    monkeypatch.setenv("PIPELINE_STORAGE_ROOT", str(tmp_path / "env-root"))

    storage = build_storage_from_env()

    assert isinstance(storage, LocalStorageAdapter)
    assert Path(storage.root_dir) == tmp_path / "env-root"


def test_storage_from_env_uses_s3_when_bucket_is_set(monkeypatch):
    created = {}

    def fake_s3(bucket, base_prefix=None):
        created.update(bucket=bucket, base_prefix=base_prefix)
        return "s3-adapter"

    monkeypatch.setattr(local_pipeline, "S3StorageAdapter", fake_s3)
    monkeypatch.setenv("PIPELINE_S3_BUCKET", "my-bucket")
    monkeypatch.setenv("PIPELINE_S3_BASE_PREFIX", "pipeline")

    assert build_storage_from_env() == "s3-adapter"
    assert created == {"bucket": "my-bucket", "base_prefix": "pipeline"}


def test_explicit_root_overrides_s3(tmp_path, monkeypatch):
    monkeypatch.setenv("PIPELINE_S3_BUCKET", "my-bucket")

    storage = build_storage_from_env(str(tmp_path))

    assert isinstance(storage, LocalStorageAdapter)
