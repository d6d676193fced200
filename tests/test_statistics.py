"""Tests for the trimmed-mean price statistics."""

import pytest

from tradein.statistics import percentile_trimmed_average, price_spread, trimmed_mean


def test_trimmed_mean_drops_prices_outside_band():
    result = trimmed_mean([10, 12, 14, 40])

    # mean 19 -> band [9.5, 28.5]
    assert result.kept == [0, 1, 2]
    assert result.average == pytest.approx(12)
    assert result.total == 4


def test_trimmed_mean_band_is_inclusive():
    # mean 20 -> band [10, 30]
    result = trimmed_mean([10, 20, 30])
    assert result.kept_count == 3


def test_trimmed_mean_falls_back_to_full_set_when_nothing_survives():
    # mean 33.25 -> band [16.625, 49.875], every price is outside
    result = trimmed_mean([10, 11, 12, 100])

    assert result.kept == [0, 1, 2, 3]
    assert result.average == pytest.approx(33.25)


def test_trimmed_mean_empty_and_custom_band():
    assert trimmed_mean([]).average == 0
    assert trimmed_mean([]).kept_count == 0

    # mean 12.5, band 0.1 -> [11.25, 13.75]
    assert trimmed_mean([10, 12, 13, 15], band=0.1).kept == [1, 2]


def test_percentile_trim_two_or_fewer_is_simple_average():
    result = percentile_trimmed_average([10, 25])
    assert result.average == 17.5
    assert result.outliers_removed == 0
    assert result.method == "simple_average"


def test_percentile_trim_flags_both_ends():
    result = percentile_trimmed_average([10, 20, 30, 100, 5])

    assert result.outliers == [False, False, False, True, True]
    assert result.average == 20
    assert result.outliers_removed == 2
    assert result.method == "outlier_trimmed_average"


def test_price_spread_ignores_non_positive():
    spread = price_spread([0, 10, 20, 30, None, 40])
    assert (spread.count, spread.low, spread.high) == (4, 10, 40)
    assert spread.median == 25
    assert spread.p25 == 17.5
    assert spread.p75 == 32.5


def test_price_spread_single_and_empty():
    assert price_spread([12.5]).to_dict() == {
        "count": 1, "low": 12.5, "high": 12.5, "median": 12.5, "p25": 12.5, "p75": 12.5, "stdev": 0.0,
    }
    assert price_spread([]).to_dict()["count"] == 0
    assert price_spread([]).median is None
