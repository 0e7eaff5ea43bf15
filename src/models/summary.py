"""
Visit assessment and the plain-text anthropometric summary for the
medical record ("Dados Antropométricos").
"""
from typing import Optional

from src.models.age import age_in_days, format_age, to_date
from src.models.data_structures import (
    GrowthVelocity, Measure, PatientProfile, VisitAssessment, VisitComparison,
    VisitMeasurement, VelocityStatus, format_decimal,
)
from src.models.velocity import (
    evaluate_cephalic_growth, evaluate_height_growth, evaluate_weight_gain,
)
from src.models.zscore_engine import (
    ZScoreEngine, get_bmi_diagnosis, get_cephalic_diagnosis,
)

MEASURES = (Measure.WEIGHT, Measure.HEIGHT, Measure.CEPHALIC, Measure.BMI)

# label, unit, decimals used for the delta
LINE_FORMAT = {
    Measure.WEIGHT: ("Peso", "g", 0),
    Measure.HEIGHT: ("Altura", "cm", 1),
    Measure.CEPHALIC: ("C. Cefálico", "cm", 1),
    Measure.BMI: ("IMC", "", 2),
}

VELOCITY_EVALUATORS = {
    Measure.WEIGHT: evaluate_weight_gain,
    Measure.HEIGHT: evaluate_height_growth,
    Measure.CEPHALIC: evaluate_cephalic_growth,
}


def format_date(value) -> str:
    d = to_date(value)
    return d.strftime("%d/%m/%Y") if d else ""


def assess_visit(engine: ZScoreEngine, profile: PatientProfile,
                 visit: VisitMeasurement) -> VisitAssessment:
    """Age, BMI and the four Z evaluations of one visit."""
    days = age_in_days(profile.birth_date, visit.date)
    zscores = {
        m: engine.evaluate(profile, m, visit.date, visit.value_of(m))
        for m in MEASURES
    }
    return VisitAssessment(
        date=to_date(visit.date), age_days=days, age_text=format_age(days),
        bmi=visit.bmi, zscores=zscores,
        bmi_diagnosis=get_bmi_diagnosis(zscores[Measure.BMI]),
        cephalic_diagnosis=get_cephalic_diagnosis(zscores[Measure.CEPHALIC]),
    )


def compare_visits(engine: ZScoreEngine, profile: PatientProfile,
                   prev: VisitMeasurement, curr: VisitMeasurement) -> VisitComparison:
    deltas = {}
    for m in MEASURES:
        a, b = prev.value_of(m), curr.value_of(m)
        deltas[m] = (b - a) if a and b else None
    velocities = {
        m: evaluate(profile.birth_date, prev.date, prev.value_of(m),
                    curr.date, curr.value_of(m))
        for m, evaluate in VELOCITY_EVALUATORS.items()
    }
    return VisitComparison(
        prev=assess_visit(engine, profile, prev),
        curr=assess_visit(engine, profile, curr),
        deltas=deltas, velocities=velocities,
    )


# =============================================================================
# Text rendering
# =============================================================================

def _value(value: Optional[float], measure: Measure) -> str:
    if not value:
        return "N/A"
    _, unit, _ = LINE_FORMAT[measure]
    if measure == Measure.BMI:
        return format_decimal(value, 2)
    if float(value).is_integer():
        return f"{int(value)}{unit}"
    return f"{value:g}".replace('.', ',') + unit


def _delta(delta: Optional[float], measure: Measure) -> str:
    if delta is None:
        return "N/A"
    _, unit, digits = LINE_FORMAT[measure]
    sign = '+' if delta > 0 else ''
    return f"{sign}{format_decimal(delta, digits)}{unit}"


def _z(assessment: VisitAssessment, measure: Measure) -> str:
    return assessment.zscores[measure].label or "N/A"


def _comparison_line(comparison: VisitComparison, prev: VisitMeasurement,
                     curr: VisitMeasurement, measure: Measure) -> str:
    label, _, _ = LINE_FORMAT[measure]
    line = (f"{label}: UC: {_value(prev.value_of(measure), measure)} "
            f"(Z: {_z(comparison.prev, measure)}). "
            f"Atual: {_value(curr.value_of(measure), measure)} "
            f"(Z: {_z(comparison.curr, measure)}). "
            f"{_delta(comparison.deltas[measure], measure)}")
    velocity: Optional[GrowthVelocity] = comparison.velocities.get(measure)
    if velocity is not None and velocity.status != VelocityStatus.MISSING_INPUT:
        line += f" ({velocity.text})"
    return line


def generate_summary(engine: ZScoreEngine, profile: PatientProfile,
                     prev: Optional[VisitMeasurement], curr: VisitMeasurement,
                     is_first_consultation: bool = False) -> str:
    """Plain-text summary; single-visit form on a first consultation."""
    if is_first_consultation or prev is None:
        assessment = assess_visit(engine, profile, curr)
        lines = [
            "Dados Antropométricos:",
            f"Atual: {format_date(curr.date)}",
        ]
        for m in MEASURES:
            label, _, _ = LINE_FORMAT[m]
            lines.append(f"{label}: {_value(curr.value_of(m), m)} (Z: {_z(assessment, m)})")
        return "\n".join(lines)

    comparison = compare_visits(engine, profile, prev, curr)
    lines = [
        "Dados Antropométricos:",
        f"Última consulta (UC): {format_date(prev.date) or 'N/A'}",
        f"Atual: {format_date(curr.date)}",
    ]
    lines.extend(_comparison_line(comparison, prev, curr, m) for m in MEASURES)
    return "\n".join(lines)
