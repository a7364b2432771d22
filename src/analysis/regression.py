"""
Single-predictor ordinary least squares, fitted with statsmodels.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

import numpy as np
import pandas as pd
import statsmodels.api as sm


@dataclass(frozen=True)
class LinearFit:
    """Coefficients and fit statistics of y = intercept + slope * x.

    When `log_x`/`log_y` are set, the fit is on log10 of that variable and
    `predict` expects/returns values on the original scale.
    """

    x_column: str
    y_column: str
    n_obs: int
    slope: float
    intercept: float
    r_squared: float
    p_value: float
    slope_stderr: float
    log_x: bool = False
    log_y: bool = False

    def predict(self, x: Any) -> np.ndarray:
        x_arr = np.asarray(x, dtype="float64")
        if self.log_x:
            x_arr = np.log10(x_arr)
        y_hat = self.intercept + self.slope * x_arr
        if self.log_y:
            y_hat = np.power(10.0, y_hat)
        return y_hat

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def fit_linear_regression(
    df: pd.DataFrame,
    x: str,
    y: str,
    *,
    log_x: bool = False,
    log_y: bool = False,
) -> LinearFit:
    """
    Fit `y ~ x` by OLS with an intercept.

    Rows where x or y is missing or non-finite are dropped, and so are
    non-positive values of a log-transformed variable.

    Raises ValueError when fewer than two rows remain or either column is
    constant.
    """
    missing = [c for c in (x, y) if c not in df.columns]
    if missing:
        raise ValueError(f"Columns not found for regression: {missing}")

    data = pd.DataFrame(
        {
            "x": pd.to_numeric(df[x], errors="coerce").astype("float64"),
            "y": pd.to_numeric(df[y], errors="coerce").astype("float64"),
        }
    )
    data = data[np.isfinite(data["x"]) & np.isfinite(data["y"])]

    for col, use_log in (("x", log_x), ("y", log_y)):
        if not use_log:
            continue
        positive = data[col] > 0
        dropped = int((~positive).sum())
        if dropped:
            name = x if col == "x" else y
            print(f"[analysis] Dropping {dropped} non-positive {name} values before log10")
        data = data[positive]
        data[col] = np.log10(data[col])

    if len(data) < 2:
        raise ValueError(f"Need at least two valid observations to fit {y} ~ {x}, got {len(data)}")
    if data["x"].nunique() < 2:
        raise ValueError(f"Predictor {x} is constant; slope is undefined")
    if data["y"].nunique() < 2:
        raise ValueError(f"Response {y} is constant; R² is undefined")

    model = sm.OLS(data["y"].to_numpy(), sm.add_constant(data["x"].to_numpy())).fit()
    params = np.asarray(model.params)
    pvalues = np.asarray(model.pvalues)
    bse = np.asarray(model.bse)

    return LinearFit(
        x_column=x,
        y_column=y,
        n_obs=int(model.nobs),
        slope=float(params[1]),
        intercept=float(params[0]),
        r_squared=float(model.rsquared),
        p_value=float(pvalues[1]),
        slope_stderr=float(bse[1]),
        log_x=log_x,
        log_y=log_y,
    )


__all__ = ["LinearFit", "fit_linear_regression"]
