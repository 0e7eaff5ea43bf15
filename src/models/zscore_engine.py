"""
Z-band evaluation of anthropometric measurements.

Curve selection:
- preterm infants inside the INTERGROWTH-21 window (0 < PCA <= 280 days)
  are read on the ``preterm_<measure>`` curve at post-conceptual age;
- preterm infants past the window use the WHO curve at corrected age;
- everyone else uses the WHO curve at chronological age.
"""
import math
from typing import Optional, Union

from config.settings import TERM_GESTATION_DAYS
from src.models.age import (
    DateLike, age_in_days, corrected_age_days, post_conceptual_age_days, to_date,
)
from src.models.data_structures import (
    BMIDiagnosis, CephalicDiagnosis, EvaluationStatus, Measure, PatientProfile,
    ReferenceDataPoint, ZBand, ZScoreEvaluation,
)
from src.models.reference_data import ReferenceDataService


def classify(value: float, ref: ReferenceDataPoint) -> ZBand:
    """Band of ``value`` against one reference row; total over all values."""
    if value < ref.z_neg_3:
        return ZBand.BELOW_MINUS_3
    if value < ref.z_neg_2:
        return ZBand.MINUS_3_TO_MINUS_2
    if value < ref.z_neg_1:
        return ZBand.MINUS_2_TO_MINUS_1
    if value < ref.z_0:
        return ZBand.MINUS_1_TO_0
    if value < ref.z_pos_1:
        return ZBand.ZERO_TO_PLUS_1
    if value < ref.z_pos_2:
        return ZBand.PLUS_1_TO_PLUS_2
    if value < ref.z_pos_3:
        return ZBand.PLUS_2_TO_PLUS_3
    return ZBand.ABOVE_PLUS_3


def _is_missing(value: Optional[float]) -> bool:
    return value is None or value == 0 or math.isnan(value)


class ZScoreEngine:
    """Evaluates measurements against the curves of a ReferenceDataService."""

    def __init__(self, reference: ReferenceDataService):
        self.reference = reference

    def resolve_curve(self, profile: PatientProfile, measure: Measure,
                      on_date: DateLike):
        """(curve measure, age in days) to read, or (None, None) if not applicable."""
        measure = Measure(measure).base
        weeks = profile.gestational_age_weeks
        days = profile.gestational_age_days

        if profile.is_premature and weeks and weeks > 0:
            pca = post_conceptual_age_days(profile.birth_date, on_date, weeks, days)
            if 0 < pca <= TERM_GESTATION_DAYS:
                preterm = measure.preterm()
                if preterm is None:
                    return None, None
                return preterm, pca
        if profile.is_premature:
            return measure, corrected_age_days(profile.birth_date, on_date, weeks, days)
        return measure, age_in_days(profile.birth_date, on_date)

    def evaluate(self, profile: PatientProfile, measure: Measure,
                 on_date: DateLike, value: Optional[float]) -> ZScoreEvaluation:
        if (_is_missing(value) or profile.birth_date is None
                or to_date(on_date) is None):
            return ZScoreEvaluation(EvaluationStatus.MISSING_INPUT)

        curve_measure, age = self.resolve_curve(profile, measure, on_date)
        if curve_measure is None:
            return ZScoreEvaluation(EvaluationStatus.NOT_APPLICABLE,
                                    measure=Measure(measure))

        ref, source = self.reference.reference_at(curve_measure, profile.sex, age)
        if ref is None:
            return ZScoreEvaluation(EvaluationStatus.NO_REFERENCE,
                                    measure=curve_measure, age_days=age,
                                    source=source)
        return ZScoreEvaluation(EvaluationStatus.EVALUATED,
                                band=classify(value, ref),
                                measure=curve_measure, age_days=age,
                                source=source)

    def evaluate_label(self, profile: PatientProfile, measure: Measure,
                       on_date: DateLike, value: Optional[float]) -> str:
        return self.evaluate(profile, measure, on_date, value).label


# =============================================================================
# Diagnoses
# =============================================================================

BandLike = Union[ZBand, ZScoreEvaluation, str, None]


def _band(band: BandLike) -> Optional[ZBand]:
    if isinstance(band, ZScoreEvaluation):
        return band.band
    if isinstance(band, ZBand):
        return band
    if band:
        return ZBand.from_label(band)
    return None


def bmi_diagnosis(band: BandLike) -> Optional[BMIDiagnosis]:
    band = _band(band)
    if band is None:
        return None
    if band == ZBand.ABOVE_PLUS_3:
        return BMIDiagnosis.OBESITY
    if band == ZBand.PLUS_2_TO_PLUS_3:
        return BMIDiagnosis.OVERWEIGHT
    if band == ZBand.PLUS_1_TO_PLUS_2:
        return BMIDiagnosis.OVERWEIGHT_RISK
    if band == ZBand.MINUS_3_TO_MINUS_2:
        return BMIDiagnosis.WASTING
    if band == ZBand.BELOW_MINUS_3:
        return BMIDiagnosis.SEVERE_WASTING
    return BMIDiagnosis.EUTROPHIC


def cephalic_diagnosis(band: BandLike) -> Optional[CephalicDiagnosis]:
    band = _band(band)
    if band is None:
        return None
    if band.rank >= ZBand.PLUS_2_TO_PLUS_3.rank:
        return CephalicDiagnosis.MACROCEPHALY
    if band.rank <= ZBand.MINUS_3_TO_MINUS_2.rank:
        return CephalicDiagnosis.MICROCEPHALY
    return CephalicDiagnosis.NORMOCEPHALY


def get_bmi_diagnosis(label: BandLike) -> str:
    diagnosis = bmi_diagnosis(label)
    return diagnosis.value if diagnosis else ""


def get_cephalic_diagnosis(label: BandLike) -> str:
    diagnosis = cephalic_diagnosis(label)
    return diagnosis.value if diagnosis else ""
