"""Small statistics helpers shared by the metric algorithms."""

import math
from typing import Dict, List, Sequence


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero, unlike Python's banker's rounding"""
    factor = 10 ** digits
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if value else 0.0


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation"""
    if not values:
        return 0.0
    avg = mean(values)
    variance = sum((value - avg) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """stddev / mean, 0 when the mean is 0"""
    avg = mean(values)
    if avg == 0:
        return 0.0
    return stddev(values) / avg


def median(values: Sequence[float]) -> float:
    """Median with the even-length midpoint average"""
    if not values:
        return 0.0
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


def percentile_index(size: int, p: float) -> int:
    return int(round_half_up(p / 100 * (size - 1)))


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile over an ascending sequence.

    Uses ``index = round(p/100 * (n-1))``; 0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    return sorted_values[percentile_index(len(sorted_values), p)]


def quartiles(sorted_values: Sequence[float]) -> Dict[str, float]:
    q1 = percentile(sorted_values, 25)
    q3 = percentile(sorted_values, 75)
    return {"q1": q1, "q2": percentile(sorted_values, 50), "q3": q3, "iqr": q3 - q1}


def iqr_outliers(sorted_values: Sequence[float]) -> List[float]:
    """Values outside [Q1 - 1.5*IQR, Q3 + 1.5*IQR]; needs at least 4 values"""
    if len(sorted_values) < 4:
        return []
    bounds = quartiles(sorted_values)
    low = bounds["q1"] - 1.5 * bounds["iqr"]
    high = bounds["q3"] + 1.5 * bounds["iqr"]
    return [value for value in sorted_values if value < low or value > high]


def percent(part: float, whole: float, digits: int = 1) -> float:
    """part / whole * 100, 0 when whole is 0"""
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def safe_ratio(part: float, whole: float, digits: int = 2) -> float:
    if not whole:
        return 0.0
    return round(part / whole, digits)
