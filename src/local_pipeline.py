"""
Orchestration entrypoint for the COVID-19 x GDP and NYPD shootings pipelines.

COVID-19 x GDP:

1. JHU CSSE time series + UID/ISO/FIPS lookup ingestion (RAW)
2. World Bank GDP indicator ZIP ingestion (RAW)
3. Country mapping build (JHU lookup + overrides)
4. JHU processing (PROCESSED, country-daily with per-capita rates)
5. World Bank processing (PROCESSED, long country-year)
6. Curated join (COVID snapshot x GDP reference year)
7. Analytical outputs (scatter, time series, regression summary)

NYPD shootings:

8. NYPD Shooting Incident (Historic) ingestion (RAW)
9. NYPD processing (PROCESSED, victim-level)
10. Analytical outputs (yearly trend, borough rates, hourly, trend summary)

Storage is local (PIPELINE_STORAGE_ROOT, default ./data) unless
PIPELINE_S3_BUCKET is set. Run and checkpoint metadata goes to the local
JSON store (METADATA_LOCAL_FILE).

Intended usage:

    PYTHONPATH=src python -m local_pipeline
    PYTHONPATH=src python -m local_pipeline --skip-covid --min-year 2010
    public-data-pipeline --force-download --as-of-date 2022-12-31
"""

from __future__ import annotations

import argparse
import os
from datetime import date
from typing import Dict, List, Optional, Sequence

from adapters import (
    LocalMetadataAdapter,
    LocalStorageAdapter,
    MetadataAdapter,
    S3StorageAdapter,
    StorageAdapter,
)
from analysis import (
    build_borough_rate_chart,
    build_covid_gdp_regression_summary,
    build_covid_time_series_chart,
    build_covid_vs_gdp_scatter,
    build_hourly_distribution_chart,
    build_shooting_trend_summary,
    build_yearly_trend_chart,
)
from env_loader import load_dotenv_if_present
from ingestion_api import (
    ingest_jhu_covid_raw,
    ingest_nypd_shootings_raw,
    ingest_world_bank_gdp_raw,
)
from transformations import (
    build_and_save_curated_covid_gdp,
    build_country_mapping,
    process_jhu_covid_raw,
    process_nypd_shootings_raw,
    process_world_bank_gdp_raw,
    save_country_mapping,
)
from transformations.curated_covid_gdp_country import DEFAULT_GDP_YEAR

load_dotenv_if_present()

PIPELINE_STORAGE_ROOT_ENV = "PIPELINE_STORAGE_ROOT"
PIPELINE_S3_BUCKET_ENV = "PIPELINE_S3_BUCKET"
PIPELINE_S3_BASE_PREFIX_ENV = "PIPELINE_S3_BASE_PREFIX"
DEFAULT_STORAGE_ROOT = "data"

COVID_STEPS = 7
NYPD_STEPS = 3


def build_storage_from_env(root: Optional[str] = None) -> StorageAdapter:
    """
    Pick the storage backend.

    An explicit `root` always means local storage. Otherwise S3 is used
    when PIPELINE_S3_BUCKET is set, and the local root comes from
    PIPELINE_STORAGE_ROOT (default ./data).
    """
    if root:
        return LocalStorageAdapter(root_dir=root)

    bucket = os.getenv(PIPELINE_S3_BUCKET_ENV)
    if bucket:
        base_prefix = os.getenv(PIPELINE_S3_BASE_PREFIX_ENV) or None
        print(f"[config] Using S3 storage s3://{bucket}/{base_prefix or ''}")
        return S3StorageAdapter(bucket=bucket, base_prefix=base_prefix)

    return LocalStorageAdapter(root_dir=os.getenv(PIPELINE_STORAGE_ROOT_ENV) or DEFAULT_STORAGE_ROOT)


def _run_covid_steps(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    artefacts: Dict[str, List[str]],
    step,
    *,
    force_download: bool,
    as_of_date: Optional[date | str],
    gdp_year: int,
) -> None:
    # 1. JHU ingestion (RAW)
    step("Ingesting JHU CSSE COVID-19 time series RAW...")
    jhu_keys = ingest_jhu_covid_raw(storage, metadata, force=force_download)
    artefacts["jhu_covid_raw"] = list(jhu_keys.values())

    # 2. World Bank ingestion (RAW)
    step("Ingesting World Bank GDP indicator ZIPs RAW...")
    wb_keys = ingest_world_bank_gdp_raw(storage, metadata, force=force_download)
    artefacts["world_bank_raw"] = [k for keys in wb_keys.values() for k in keys.values()]

    # 3. Country mapping
    step("Building country mapping from the JHU lookup table...")
    mapping_df = build_country_mapping(storage, jhu_keys["lookup"])
    mapping_key = save_country_mapping(storage, mapping_df)
    artefacts["country_mapping"] = [mapping_key]
    print(f"      {len(mapping_df)} country names mapped -> {mapping_key}")

    # 4. JHU processing (PROCESSED)
    step("Processing JHU RAW -> PROCESSED parquet...")
    artefacts["jhu_covid_processed"] = [
        process_jhu_covid_raw(storage, jhu_keys, country_mapping=mapping_df)
    ]

    # 5. World Bank processing (PROCESSED)
    step("Processing World Bank RAW -> PROCESSED parquet...")
    artefacts["world_bank_processed"] = [process_world_bank_gdp_raw(storage, wb_keys)]

    # 6. Curated join
    step(f"Building curated covid_gdp_country dataset (GDP year {gdp_year})...")
    artefacts["curated_covid_gdp"] = [
        build_and_save_curated_covid_gdp(
            storage,
            metadata,
            as_of_date=as_of_date,
            gdp_year=gdp_year,
        )
    ]

    # 7. Analytical outputs
    step("Generating COVID x GDP analytical outputs...")
    artefacts["covid_gdp_analysis"] = [
        build_covid_vs_gdp_scatter(storage),
        build_covid_time_series_chart(storage),
        build_covid_gdp_regression_summary(storage),
    ]
    for location in artefacts["covid_gdp_analysis"]:
        print(f"      {location}")


def _run_nypd_steps(
    storage: StorageAdapter,
    metadata: MetadataAdapter,
    artefacts: Dict[str, List[str]],
    step,
    *,
    force_download: bool,
    min_year: Optional[int],
    max_year: Optional[int],
) -> None:
    step("Ingesting NYPD shooting incidents RAW...")
    raw_key = ingest_nypd_shootings_raw(storage, metadata, force=force_download)
    artefacts["nypd_shootings_raw"] = [raw_key]

    step("Processing NYPD RAW -> PROCESSED parquet...")
    artefacts["nypd_shootings_processed"] = [process_nypd_shootings_raw(storage, raw_key)]

    step("Generating NYPD shootings analytical outputs...")
    artefacts["nypd_shootings_analysis"] = [
        build_yearly_trend_chart(storage, min_year=min_year, max_year=max_year),
        build_borough_rate_chart(storage, min_year=min_year, max_year=max_year),
        build_hourly_distribution_chart(storage, min_year=min_year, max_year=max_year),
        build_shooting_trend_summary(storage, min_year=min_year, max_year=max_year),
    ]
    for location in artefacts["nypd_shootings_analysis"]:
        print(f"      {location}")


def run_local_pipeline(
    *,
    storage: Optional[StorageAdapter] = None,
    metadata: Optional[MetadataAdapter] = None,
    run_covid: bool = True,
    run_nypd: bool = True,
    force_download: bool = False,
    as_of_date: Optional[date | str] = None,
    gdp_year: int = DEFAULT_GDP_YEAR,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> Dict[str, List[str]]:
    """
    Run the selected pipelines end-to-end.

    Parameters
    ----------
    storage, metadata:
        Adapters to use; default to `build_storage_from_env()` and the
        local JSON metadata store.
    run_covid, run_nypd:
        Which of the two pipelines to run.
    force_download:
        Re-download source files even when a previous download is on record.
    as_of_date, gdp_year:
        COVID snapshot date (default: last reported) and GDP reference year.
    min_year, max_year:
        Optional inclusive year bounds for the NYPD analysis.

    Returns
    -------
    artefacts:
        Dictionary mapping step names to lists of written keys/locations.
    """
    storage = storage or build_storage_from_env()
    metadata = metadata or LocalMetadataAdapter()

    artefacts: Dict[str, List[str]] = {}
    total = (COVID_STEPS if run_covid else 0) + (NYPD_STEPS if run_nypd else 0)
    counter = {"n": 0}

    def step(message: str) -> None:
        counter["n"] += 1
        print(f"[{counter['n']}/{total}] {message}")

    if run_covid:
        _run_covid_steps(
            storage,
            metadata,
            artefacts,
            step,
            force_download=force_download,
            as_of_date=as_of_date,
            gdp_year=gdp_year,
        )

    if run_nypd:
        _run_nypd_steps(
            storage,
            metadata,
            artefacts,
            step,
            force_download=force_download,
            min_year=min_year,
            max_year=max_year,
        )

    if total == 0:
        print("Nothing to run: both pipelines were skipped.")
    else:
        print("\nPipeline completed successfully.")
    return artefacts


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the COVID-19 x GDP and NYPD shootings pipelines end-to-end.",
    )
    parser.add_argument(
        "--skip-covid",
        action="store_true",
        help="Skip the COVID-19 x GDP pipeline.",
    )
    parser.add_argument(
        "--skip-nypd",
        action="store_true",
        help="Skip the NYPD shootings pipeline.",
    )
    parser.add_argument(
        "--force-download",
        action="store_true",
        help="Download source files again even if a previous download is recorded.",
    )
    parser.add_argument(
        "--as-of-date",
        type=date.fromisoformat,
        default=None,
        help="COVID snapshot date (YYYY-MM-DD). Defaults to the last reported date.",
    )
    parser.add_argument(
        "--gdp-year",
        type=int,
        default=DEFAULT_GDP_YEAR,
        help=f"Reference year for GDP values (default: {DEFAULT_GDP_YEAR}).",
    )
    parser.add_argument(
        "--min-year",
        type=int,
        default=None,
        help="Optional minimum year (inclusive) for the NYPD analysis.",
    )
    parser.add_argument(
        "--max-year",
        type=int,
        default=None,
        help="Optional maximum year (inclusive) for the NYPD analysis.",
    )
    parser.add_argument(
        "--storage-root",
        type=str,
        default=None,
        help="Local storage root directory (overrides PIPELINE_STORAGE_ROOT and S3).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    run_local_pipeline(
        storage=build_storage_from_env(args.storage_root),
        run_covid=not args.skip_covid,
        run_nypd=not args.skip_nypd,
        force_download=args.force_download,
        as_of_date=args.as_of_date,
        gdp_year=args.gdp_year,
        min_year=args.min_year,
        max_year=args.max_year,
    )
    return 0


__all__ = ["build_storage_from_env", "run_local_pipeline", "main"]


if __name__ == "__main__":
    raise SystemExit(main())
