import numpy as np
import pandas as pd
import pytest

from analysis.regression import LinearFit, fit_linear_regression


def test_ols_matches_least_squares_line():
    df = pd.DataFrame({"x": [1, 2, 3, 4, 5], "y": [3.1, 4.9, 7.2, 8.8, 11.1]})

    fit = fit_linear_regression(df, "x", "y")

    slope, intercept = np.polyfit(df["x"], df["y"], 1)
    assert isinstance(fit, LinearFit)
    assert fit.n_obs == 5
    assert fit.slope == pytest.approx(slope)
    assert fit.intercept == pytest.approx(intercept)
    assert fit.r_squared == pytest.approx(df["x"].corr(df["y"]) ** 2)
    assert 0 <= fit.p_value < 0.001
    assert fit.slope_stderr > 0
    assert fit.predict([6])[0] == pytest.approx(intercept + slope * 6)


def test_missing_and_non_numeric_values_are_dropped():
    df = pd.DataFrame(
        {
            "x": [1, 2, None, 4, 5, np.inf, 7],
            "y": [2.0, 4.1, 6.0, "n/a", 9.9, 12.0, 14.2],
        }
    )

    fit = fit_linear_regression(df, "x", "y")

    assert fit.n_obs == 4


def test_log_x_drops_non_positive_values_and_predicts_on_original_scale():
    df = pd.DataFrame({"gdp": [0, -5, 10, 100, 1000, 10000], "rate": [9, 9, 1.0, 2.1, 2.9, 4.0]})

    fit = fit_linear_regression(df, "gdp", "rate", log_x=True)

    assert fit.n_obs == 4
    assert fit.log_x and not fit.log_y
    assert fit.slope == pytest.approx(1.0, abs=0.1)
    assert float(fit.predict(1000)) == pytest.approx(fit.intercept + fit.slope * 3)


def test_log_y_predictions_are_back_transformed():
    df = pd.DataFrame({"x": [1, 2, 3, 4], "y": [10, 110, 900, 10000]})

    fit = fit_linear_regression(df, "x", "y", log_y=True)

    assert fit.slope == pytest.approx(1.0, abs=0.1)
    assert fit.predict([5])[0] == pytest.approx(10 ** (fit.intercept + fit.slope * 5))


def test_to_dict_exposes_all_fields():
    df = pd.DataFrame({"x": [1, 2, 3], "y": [1, 3, 2]})

    record = fit_linear_regression(df, "x", "y").to_dict()

    assert set(record) == {
        "x_column",
        "y_column",
        "n_obs",
        "slope",
        "intercept",
        "r_squared",
        "p_value",
        "slope_stderr",
        "log_x",
        "log_y",
    }
    assert record["x_column"] == "x"


def test_too_few_rows_raise():
    with pytest.raises(ValueError):
        fit_linear_regression(pd.DataFrame({"x": [1.0, None], "y": [1.0, 2.0]}), "x", "y")


def test_constant_predictor_raises():
    with pytest.raises(ValueError):
        fit_linear_regression(pd.DataFrame({"x": [3, 3, 3], "y": [1, 2, 3]}), "x", "y")


def test_constant_response_raises():
    flat = pd.DataFrame({"year": [2018, 2019, 2020], "incidents": [2, 2, 2]})

    with pytest.raises(ValueError, match="constant"):
        fit_linear_regression(flat, "year", "incidents")


def test_unknown_column_raises():
    with pytest.raises(ValueError):
        fit_linear_regression(pd.DataFrame({"x": [1, 2]}), "x", "y")
