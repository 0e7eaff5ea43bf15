"""
Age arithmetic: chronological, post-conceptual and corrected ages.

All ages are whole days. Months are approximated as 30.44 days, the
same constant the reference tables and the vaccine calendar use.
"""
import math
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from config.settings import DAYS_PER_MONTH, TERM_GESTATION_DAYS, TERM_GESTATION_WEEKS
from src.models.data_structures import Prematurity

DateLike = Union[date, datetime, str, None]

INVALID_AGE = "Idade inválida"


def to_date(value: DateLike) -> Optional[date]:
    """Coerce an ISO string / datetime / date to a date; None when empty."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _to_instant(value: DateLike) -> Optional[datetime]:
    """Naive UTC datetime; plain dates and date-only strings are midnight."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime.combine(value, time())
    elif len(str(value)) <= 10:
        instant = datetime.combine(date.fromisoformat(str(value)), time())
    else:
        instant = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant


def age_in_days(birth_date: DateLike, on_date: DateLike) -> int:
    """Elapsed whole days, floored; 0 if either date is missing."""
    birth, on = _to_instant(birth_date), _to_instant(on_date)
    if birth is None or on is None:
        return 0
    # timedelta.days is the floor of the exact difference
    return (on - birth).days


def format_age(days: int) -> str:
    if days < 0:
        return INVALID_AGE
    if days < 30:
        return f"{days} dias"
    months = math.floor(days / DAYS_PER_MONTH)
    remaining_days = math.floor(days % DAYS_PER_MONTH)
    if months >= 12:
        return f"{months // 12} anos e {months % 12} meses"
    return f"{months} meses e {remaining_days} dias"


def _gestation_days(gest_weeks: Optional[int], gest_days: Optional[int]) -> int:
    return (gest_weeks or 0) * 7 + (gest_days or 0)


def post_conceptual_age_days(birth_date: DateLike, on_date: DateLike,
                             gest_weeks: Optional[int],
                             gest_days: Optional[int] = None) -> int:
    """Gestational age at birth plus chronological age, in days."""
    if not gest_weeks or gest_weeks <= 0:
        return 0
    return _gestation_days(gest_weeks, gest_days) + age_in_days(birth_date, on_date)


def corrected_age_days(birth_date: DateLike, on_date: DateLike,
                       gest_weeks: Optional[int],
                       gest_days: Optional[int] = None) -> int:
    """Chronological age minus the prematurity deficit (40w - gestation).

    Term births and births with unknown gestational age are not corrected.
    """
    chronological = age_in_days(birth_date, on_date)
    if not gest_weeks or gest_weeks <= 0 or gest_weeks >= TERM_GESTATION_WEEKS:
        return chronological
    deficit = TERM_GESTATION_DAYS - _gestation_days(gest_weeks, gest_days)
    return max(chronological - deficit, 0)


def prematurity_classification(gest_weeks: Optional[int]) -> Prematurity:
    if not gest_weeks or gest_weeks <= 0 or gest_weeks >= TERM_GESTATION_WEEKS:
        return Prematurity.TERM
    if gest_weeks <= 27:
        return Prematurity.EXTREME
    if gest_weeks <= 31:
        return Prematurity.VERY
    if gest_weeks <= 33:
        return Prematurity.MODERATE
    return Prematurity.LATE
