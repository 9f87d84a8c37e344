"""
IELTS Prep - Band Scoring
Pure functions converting raw results into IELTS band scores.
"""
import math
from typing import Iterable, Optional


# (minimum percentage, band) - checked top to bottom, first match wins
BAND_TABLE: tuple[tuple[float, float], ...] = (
    (95.0, 9.0),
    (87.5, 8.5),
    (80.0, 8.0),
    (72.5, 7.5),
    (65.0, 7.0),
    (57.5, 6.5),
    (50.0, 6.0),
    (42.5, 5.5),
    (35.0, 5.0),
    (27.5, 4.5),
    (20.0, 4.0),
    (12.5, 3.5),
)
FLOOR_BAND = 3.0


def calculate_band_score(percentage: float) -> float:
    """
    Convert a percentage of correct answers into a band estimate.

    Approximates the official IELTS Listening/Reading raw score conversion.
    """
    for threshold, band in BAND_TABLE:
        if percentage >= threshold:
            return band
    return FLOOR_BAND


def percentage_correct(correct: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return (correct / total) * 100


def round_half_band(value: float) -> float:
    """
    Round to the nearest 0.5 band.

    Ties go up (6.25 -> 6.5, 6.75 -> 7.0), which is how IELTS reports
    averaged bands. Python's round() would send ties to even instead.
    """
    return math.floor(value * 2 + 0.5) / 2


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def combine_writing_bands(task1: Optional[float], task2: Optional[float]) -> Optional[float]:
    """Task 2 carries twice the weight of Task 1."""
    if task1 is not None and task2 is not None:
        return round_half_band((task1 + 2 * task2) / 3)
    if task1 is not None:
        return task1
    return task2


def average_speaking_bands(part_bands: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of whichever speaking parts have a band, rounded to 0.5."""
    mean = _mean(part_bands)
    return round_half_band(mean) if mean is not None else None


def calculate_overall_band(module_bands: Iterable[Optional[float]]) -> Optional[float]:
    """
    Overall band from the module bands available right now.

    Modules still waiting on grading contribute nothing; returns None
    when no module has a band yet.
    """
    mean = _mean(module_bands)
    return round_half_band(mean) if mean is not None else None
