"""
Analysis layer
--------------

Charts, OLS fits and summary tables built from the curated COVID x GDP
dataset and the processed NYPD shootings dataset.
"""

from .regression import LinearFit, fit_linear_regression  # noqa: F401
from .covid_gdp_analytics import (  # noqa: F401
    build_covid_gdp_regression_summary,
    build_covid_time_series_chart,
    build_covid_vs_gdp_scatter,
)
from .nypd_shootings_analytics import (  # noqa: F401
    build_borough_rate_chart,
    build_hourly_distribution_chart,
    build_shooting_trend_summary,
    build_yearly_trend_chart,
)

__all__ = [
    "LinearFit",
    "fit_linear_regression",
    "build_covid_vs_gdp_scatter",
    "build_covid_time_series_chart",
    "build_covid_gdp_regression_summary",
    "build_yearly_trend_chart",
    "build_borough_rate_chart",
    "build_hourly_distribution_chart",
    "build_shooting_trend_summary",
]
