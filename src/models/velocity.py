"""
Growth velocity between two dated measurements.

Expected ranges are keyed by chronological age at the current visit.
Weight is judged in g/day; height and head circumference in cm/month
(daily rate x 30.44). Head circumference velocity is informational: it
reports the expected range instead of a verdict.
"""
from typing import List, Optional, Tuple

from config.settings import DAYS_PER_MONTH
from src.models.age import DateLike, age_in_days, to_date
from src.models.data_structures import (
    GrowthVelocity, VelocityAssessment, VelocityStatus,
)

# (max age in days, floor, ceiling); ages past the last band are unconstrained
WEIGHT_GAIN_BANDS: List[Tuple[int, float, float]] = [
    (90, 20, 30),
    (180, 15, 25),
    (270, 10, 20),
    (365, 5, 15),
]

HEIGHT_GROWTH_BANDS: List[Tuple[int, float, float]] = [
    (182, 2, 3),
    (365, 1, 2),
]

CEPHALIC_GROWTH_BANDS: List[Tuple[Optional[int], float, float]] = [
    (90, 1.5, 2.0),
    (180, 0.5, 1.0),
    (365, 0.3, 0.5),
    (None, 0.1, 0.3),
]


def _expected_range(bands, age_days: int) -> Optional[Tuple[float, float]]:
    for max_age, floor, ceiling in bands:
        if max_age is None or age_days <= max_age:
            return floor, ceiling
    return None


def _daily_rate(prev_date: DateLike, prev_val: Optional[float],
                curr_date: DateLike, curr_val: Optional[float]):
    """(status, daily rate) for a pair of measurements."""
    if not prev_val or not curr_val or to_date(prev_date) is None or to_date(curr_date) is None:
        return VelocityStatus.MISSING_INPUT, None
    interval = age_in_days(prev_date, curr_date)
    if interval <= 0:
        return VelocityStatus.DATE_ERROR, None
    return VelocityStatus.OK, (curr_val - prev_val) / interval


def _judge(rate: float, expected: Optional[Tuple[float, float]]) -> VelocityAssessment:
    if expected is None:
        return VelocityAssessment.ADEQUATE
    floor, ceiling = expected
    if rate < floor:
        return VelocityAssessment.BELOW
    if rate > ceiling:
        return VelocityAssessment.ABOVE
    return VelocityAssessment.ADEQUATE


def evaluate_weight_gain(birth_date: DateLike, prev_date: DateLike, prev_weight: Optional[float],
                         curr_date: DateLike, curr_weight: Optional[float]) -> GrowthVelocity:
    """Daily weight gain in grams."""
    status, rate = _daily_rate(prev_date, prev_weight, curr_date, curr_weight)
    if status != VelocityStatus.OK:
        return GrowthVelocity(status)
    expected = _expected_range(WEIGHT_GAIN_BANDS, age_in_days(birth_date, curr_date))
    return GrowthVelocity(status, rate=rate, unit="g/dia",
                          assessment=_judge(rate, expected), expected_range=expected)


def evaluate_height_growth(birth_date: DateLike, prev_date: DateLike, prev_height: Optional[float],
                           curr_date: DateLike, curr_height: Optional[float]) -> GrowthVelocity:
    """Monthly length/height growth in cm."""
    status, rate = _daily_rate(prev_date, prev_height, curr_date, curr_height)
    if status != VelocityStatus.OK:
        return GrowthVelocity(status)
    monthly = rate * DAYS_PER_MONTH
    expected = _expected_range(HEIGHT_GROWTH_BANDS, age_in_days(birth_date, curr_date))
    return GrowthVelocity(status, rate=monthly, unit="cm/mês",
                          assessment=_judge(monthly, expected), expected_range=expected)


def evaluate_cephalic_growth(birth_date: DateLike, prev_date: DateLike, prev_cephalic: Optional[float],
                             curr_date: DateLike, curr_cephalic: Optional[float]) -> GrowthVelocity:
    status, rate = _daily_rate(prev_date, prev_cephalic, curr_date, curr_cephalic)
    if status != VelocityStatus.OK:
        return GrowthVelocity(status)
    monthly = rate * DAYS_PER_MONTH
    expected = _expected_range(CEPHALIC_GROWTH_BANDS, age_in_days(birth_date, curr_date))
    return GrowthVelocity(status, rate=monthly, unit="cm/mês", expected_range=expected)
