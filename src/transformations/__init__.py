"""
Transformations layer
---------------------

Modules that turn RAW files into typed, normalised PROCESSED tables and
the CURATED COVID x GDP join.
"""

from .country_mapping import (  # noqa: F401
    COUNTRY_MAPPING_OVERRIDES_CSV,
    build_country_mapping,
    build_country_mapping_from_jhu_lookup,
    load_country_mapping,
    normalize_country_name,
    save_country_mapping,
)
from .jhu_covid_processed import (  # noqa: F401
    build_jhu_covid_dataframe,
    load_latest_jhu_covid,
    melt_time_series,
    process_jhu_covid_raw,
)
from .world_bank_gdp_processed import (  # noqa: F401
    build_world_bank_indicator_dataframe,
    load_latest_world_bank_gdp,
    pivot_indicators,
    process_world_bank_gdp_raw,
)
from .curated_covid_gdp_country import (  # noqa: F401
    build_and_save_curated_covid_gdp,
    build_curated_covid_gdp_dataframe,
    load_latest_curated_covid_gdp,
)
from .nypd_shootings_processed import (  # noqa: F401
    BOROUGH_POPULATION_2020,
    build_nypd_shootings_dataframe,
    load_latest_nypd_shootings,
    process_nypd_shootings_raw,
    summarize_by_boro_year,
    summarize_by_hour,
    summarize_by_month,
    summarize_by_year,
)

__all__ = [
    "COUNTRY_MAPPING_OVERRIDES_CSV",
    "BOROUGH_POPULATION_2020",
    "normalize_country_name",
    "build_country_mapping_from_jhu_lookup",
    "build_country_mapping",
    "save_country_mapping",
    "load_country_mapping",
    "melt_time_series",
    "build_jhu_covid_dataframe",
    "process_jhu_covid_raw",
    "load_latest_jhu_covid",
    "build_world_bank_indicator_dataframe",
    "pivot_indicators",
    "process_world_bank_gdp_raw",
    "load_latest_world_bank_gdp",
    "build_curated_covid_gdp_dataframe",
    "build_and_save_curated_covid_gdp",
    "load_latest_curated_covid_gdp",
    "build_nypd_shootings_dataframe",
    "summarize_by_year",
    "summarize_by_boro_year",
    "summarize_by_hour",
    "summarize_by_month",
    "process_nypd_shootings_raw",
    "load_latest_nypd_shootings",
]
