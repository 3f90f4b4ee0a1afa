import pytest

from repo_vitals.stats import (
    coefficient_of_variation,
    iqr_outliers,
    median,
    percent,
    percentile,
    quartiles,
    round_half_up,
    safe_ratio,
    stddev,
)


def test_round_half_up():
    assert round_half_up(2.5) == 3.0
    assert round_half_up(0.5) == 1.0
    assert round_half_up(-2.5) == -3.0
    assert round_half_up(1.25, 1) == 1.3
    assert round_half_up(0) == 0.0


@pytest.mark.parametrize("p, expected", [(0, 1), (25, 2), (50, 3), (95, 5), (100, 5)])
def test_percentile_nearest_rank(p, expected):
    assert percentile([1, 2, 3, 4, 5], p) == expected


def test_percentile_rounds_half_up():
    # index 0.5 rounds up to 1
    assert percentile([10, 20], 50) == 20


def test_percentile_empty():
    assert percentile([], 95) == 0.0


def test_quartiles_and_outliers():
    values = [1, 2, 3, 4, 100]
    assert quartiles(values) == {"q1": 2, "q2": 3, "q3": 4, "iqr": 2}
    assert iqr_outliers(values) == [100]
    assert iqr_outliers([1, 2, 100]) == []


def test_median():
    assert median([3, 1, 2]) == 2
    assert median([1, 4, 10, 20]) == 7.0
    assert median([]) == 0.0


def test_spread():
    assert stddev([1, 3]) == 1.0
    assert coefficient_of_variation([1, 3]) == 0.5
    assert coefficient_of_variation([0, 0]) == 0.0
    assert stddev([]) == 0.0


def test_percent_and_ratio():
    assert percent(1, 3) == 33.3
    assert percent(1, 3, 2) == 33.33
    assert percent(5, 0) == 0.0
    assert safe_ratio(2, 3) == 0.67
    assert safe_ratio(1, 0) == 0.0
