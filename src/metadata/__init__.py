"""
Metadata module
---------------

Local JSON store for run records and download checkpoints.

Example:

    from metadata import start_run, end_run, load_checkpoint, NYPD_SHOOTINGS_SCOPE

    run_id = start_run(NYPD_SHOOTINGS_SCOPE)
    # ... download / process ...
    end_run(run_id, status="SUCCESS", rows_processed=27312)
"""

from .store import (
    DEFAULT_METADATA_FILE,
    METADATA_LOCAL_FILE_ENV,
    RUN_STATUSES,
    end_run,
    list_runs,
    load_checkpoint,
    resolve_metadata_file,
    save_checkpoint,
    start_run,
)

# Run scopes, one per pipeline step that registers runs
JHU_COVID_SCOPE = "jhu_covid"
WORLD_BANK_GDP_SCOPE = "world_bank_gdp"
NYPD_SHOOTINGS_SCOPE = "nypd_shootings"
CURATED_COVID_GDP_SCOPE = "curated_covid_gdp"

__all__ = [
    "DEFAULT_METADATA_FILE",
    "METADATA_LOCAL_FILE_ENV",
    "RUN_STATUSES",
    "JHU_COVID_SCOPE",
    "WORLD_BANK_GDP_SCOPE",
    "NYPD_SHOOTINGS_SCOPE",
    "CURATED_COVID_GDP_SCOPE",
    "resolve_metadata_file",
    "start_run",
    "end_run",
    "save_checkpoint",
    "load_checkpoint",
    "list_runs",
]
