"""
Reference curves: read-through cache, demonstration fallback and
linear interpolation at an exact age in days.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from config.settings import ENABLE_FALLBACK
from src.ingestion.providers import ReferenceDataError, ReferenceProvider
from src.models.data_structures import (
    DataSource, Measure, ReferenceCurve, ReferenceDataPoint, Sex, Z_FIELDS,
)

logger = logging.getLogger(__name__)

CurveKey = Tuple[Measure, Sex]

# =============================================================================
# Demonstration data (used when the provider errors or has no rows)
# =============================================================================

# WHO weight-for-age, grams
WEIGHT_GIRLS_DEMO = [
    ReferenceDataPoint(age_days=0, z_neg_4=1671, z_neg_3=2033, z_neg_2=2395, z_neg_1=2794,
                       z_0=3232, z_pos_1=3711, z_pos_2=4230, z_pos_3=4793, z_pos_4=5356),
    ReferenceDataPoint(age_days=30, z_neg_4=2671, z_neg_3=3033, z_neg_2=3395, z_neg_1=3794,
                       z_0=4232, z_pos_1=4711, z_pos_2=5230, z_pos_3=5793, z_pos_4=6356),
    ReferenceDataPoint(age_days=365, z_neg_4=4000, z_neg_3=5000, z_neg_2=6000, z_neg_1=7000,
                       z_0=8000, z_pos_1=9000, z_pos_2=10200, z_pos_3=11500, z_pos_4=12900),
]

WEIGHT_BOYS_DEMO = [
    ReferenceDataPoint(age_days=p.age_days,
                       **{f: round(getattr(p, f) * 1.05) for f in Z_FIELDS})
    for p in WEIGHT_GIRLS_DEMO
]

# INTERGROWTH-21 preterm weight, grams, indexed by post-conceptual age in days
PRETERM_WEIGHT_GIRLS_DEMO = [
    ReferenceDataPoint(age_days=168, z_neg_3=340, z_neg_2=410, z_neg_1=500, z_0=600,
                       z_pos_1=730, z_pos_2=890, z_pos_3=1070),
    ReferenceDataPoint(age_days=169, z_neg_3=340, z_neg_2=420, z_neg_1=510, z_0=610,
                       z_pos_1=740, z_pos_2=900, z_pos_3=1100),
    ReferenceDataPoint(age_days=170, z_neg_3=350, z_neg_2=430, z_neg_1=520, z_0=630,
                       z_pos_1=760, z_pos_2=920, z_pos_3=1120),
    ReferenceDataPoint(age_days=171, z_neg_3=360, z_neg_2=430, z_neg_1=530, z_0=640,
                       z_pos_1=770, z_pos_2=940, z_pos_3=1140),
    ReferenceDataPoint(age_days=172, z_neg_3=360, z_neg_2=440, z_neg_1=540, z_0=650,
                       z_pos_1=790, z_pos_2=960, z_pos_3=1160),
]

DEMO_CURVES: Dict[CurveKey, List[ReferenceDataPoint]] = {
    (Measure.WEIGHT, Sex.FEMININO): WEIGHT_GIRLS_DEMO,
    (Measure.WEIGHT, Sex.MASCULINO): WEIGHT_BOYS_DEMO,
    (Measure.PRETERM_WEIGHT, Sex.FEMININO): PRETERM_WEIGHT_GIRLS_DEMO,
}


# =============================================================================
# Interpolation
# =============================================================================

def interpolate(curve: Union[ReferenceCurve, Sequence[ReferenceDataPoint]],
                age_days: int) -> Optional[ReferenceDataPoint]:
    """Reference point at ``age_days``, linear between bracketing rows.

    Ages outside the table return the boundary row unchanged (no
    extrapolation). A field absent on one side (INTERGROWTH ±4) takes the
    other side's value, so the band is held flat across the gap.
    """
    points = curve.points if isinstance(curve, ReferenceCurve) else list(curve)
    if not points:
        return None

    ages = np.array([p.age_days for p in points])
    if age_days <= ages[0]:
        return points[0]
    if age_days >= ages[-1]:
        return points[-1]

    idx = int(np.searchsorted(ages, age_days, side='right'))
    lower, upper = points[idx - 1], points[idx]
    if lower.age_days == age_days or lower.age_days == upper.age_days:
        return lower

    ratio = (age_days - lower.age_days) / (upper.age_days - lower.age_days)
    values = {}
    for name in Z_FIELDS:
        v1, v2 = getattr(lower, name), getattr(upper, name)
        if v1 is None:
            v1 = v2
        if v2 is None:
            v2 = v1
        values[name] = None if v1 is None else v1 + (v2 - v1) * ratio
    return ReferenceDataPoint(age_days=age_days, **values)


# =============================================================================
# Cache and service
# =============================================================================

class ReferenceTableCache:
    """Process- or session-lifetime cache of non-empty curves.

    Entries are never overwritten or expired; reference data is immutable
    per key, so a duplicate concurrent fetch simply loses the race.
    """

    def __init__(self):
        self._curves: Dict[CurveKey, ReferenceCurve] = {}

    def get(self, key: CurveKey) -> Optional[ReferenceCurve]:
        return self._curves.get(key)

    def put(self, key: CurveKey, curve: ReferenceCurve) -> ReferenceCurve:
        if curve.is_empty:
            return curve
        return self._curves.setdefault(key, curve)

    def __contains__(self, key: CurveKey) -> bool:
        return key in self._curves

    def __len__(self) -> int:
        return len(self._curves)


class ReferenceDataService:
    """Resolves curves from a provider, with caching and demo fallback."""

    def __init__(self, provider: ReferenceProvider,
                 cache: ReferenceTableCache = None,
                 use_fallback: bool = ENABLE_FALLBACK,
                 fallback_curves: Dict[CurveKey, List[ReferenceDataPoint]] = None):
        self.provider = provider
        self.cache = cache if cache is not None else ReferenceTableCache()
        self.use_fallback = use_fallback
        self.fallback_curves = DEMO_CURVES if fallback_curves is None else fallback_curves

    def get_curve(self, measure: Measure, sex: Sex) -> ReferenceCurve:
        measure, sex = Measure(measure), Sex(sex)
        key = (measure, sex)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", measure.value, sex.value)
            return cached

        logger.debug("Fetching reference table %s (%s) from %s",
                     measure.value, sex.value, self.provider.name)
        try:
            points = self.provider.fetch(measure, sex)
        except ReferenceDataError as e:
            logger.warning("Reference provider failed for %s (%s): %s",
                           measure.value, sex.value, e)
            points = []
        else:
            if points:
                logger.info("%d reference rows loaded for %s (%s)",
                            len(points), measure.value, sex.value)
                return self.cache.put(key, ReferenceCurve(measure, sex, points,
                                                          DataSource.LIVE))
            logger.warning("No reference rows for %s (%s)", measure.value, sex.value)

        if not self.use_fallback:
            return ReferenceCurve(measure, sex, [], DataSource.LIVE)

        fallback = list(self.fallback_curves.get(key, []))
        if fallback:
            logger.info("Using demonstration data for %s (%s)",
                        measure.value, sex.value)
        return self.cache.put(key, ReferenceCurve(measure, sex, fallback,
                                                  DataSource.FALLBACK))

    def reference_at(self, measure: Measure, sex: Sex,
                     age_days: int) -> Tuple[Optional[ReferenceDataPoint], DataSource]:
        curve = self.get_curve(measure, sex)
        return interpolate(curve, age_days), curve.source

    def check_connection(self) -> bool:
        return self.provider.check()
