import math

import pytest

from dawnledger.stats import correlation, linear_regression


def test_regression_fits_a_perfect_line():
    result = linear_regression([10, 12, 14, 16, 18])

    assert result.slope == pytest.approx(2.0)
    assert result.intercept == pytest.approx(10.0)
    assert result.r_squared == pytest.approx(1.0)
    assert result.confidence == pytest.approx(1.0)


def test_regression_needs_three_points():
    assert linear_regression([]) is None
    assert linear_regression([1.0]) is None
    assert linear_regression([1.0, 2.0]) is None


def test_regression_on_constant_series_is_finite_with_zero_fit():
    result = linear_regression([5.0, 5.0, 5.0, 5.0])

    assert result.slope == 0
    assert result.r_squared == 0
    assert result.confidence == 0
    assert all(math.isfinite(v) for v in (result.slope, result.intercept))


def test_regression_confidence_is_sqrt_of_r_squared():
    result = linear_regression([1, 3, 2, 5, 4, 6])

    assert 0 < result.r_squared < 1
    assert result.confidence == pytest.approx(math.sqrt(result.r_squared))


def test_correlation_perfect_positive_and_negative():
    xs = [1, 2, 3, 4, 5]

    assert correlation(xs, [2, 4, 6, 8, 10]) == pytest.approx(1.0)
    assert correlation(xs, [10, 8, 6, 4, 2]) == pytest.approx(-1.0)


def test_correlation_of_constant_series_is_none():
    assert correlation([50, 50, 50, 50], [50, 50, 50, 50]) is None
    assert correlation([1, 2, 3, 4], [7, 7, 7, 7]) is None


def test_correlation_requires_equal_lengths_of_three():
    assert correlation([1, 2], [1, 2]) is None
    assert correlation([1, 2, 3], [1, 2]) is None
