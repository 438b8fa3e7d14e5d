"""Statistical primitives shared by the pattern detectors."""

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Regression:
    slope: float
    intercept: float
    r_squared: float
    confidence: float  # sqrt(|r_squared|)


def linear_regression(values: Sequence[float]) -> Regression | None:
    """Least-squares fit of values against their index (x = 0..n-1).

    Returns None for fewer than 3 points or a zero denominator.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 3:
        return None

    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_x2 = (x * x).sum()

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    predicted = slope * x + intercept
    ss_total = ((y - y.mean()) ** 2).sum()
    ss_residual = ((y - predicted) ** 2).sum()
    r_squared = 0.0 if ss_total == 0 or np.ptp(y) == 0 else 1 - ss_residual / ss_total

    if not all(math.isfinite(v) for v in (slope, intercept, r_squared)):
        return None

    return Regression(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=float(r_squared),
        confidence=math.sqrt(abs(float(r_squared))),
    )


def correlation(x: Sequence[float], y: Sequence[float]) -> float | None:
    """Pearson correlation coefficient, or None if undefined.

    Requires equal lengths of at least 3 and non-zero variance in both series.
    """
    if len(x) != len(y) or len(x) < 3:
        return None

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if np.ptp(xs) == 0 or np.ptp(ys) == 0:
        return None
    n = len(xs)

    numerator = n * (xs * ys).sum() - xs.sum() * ys.sum()
    var_x = n * (xs * xs).sum() - xs.sum() ** 2
    var_y = n * (ys * ys).sum() - ys.sum() ** 2
    product = var_x * var_y
    if product <= 0:
        return None

    r = float(numerator / math.sqrt(product))
    if not math.isfinite(r):
        return None
    return max(-1.0, min(1.0, r))
