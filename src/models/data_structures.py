"""
Data structures for the Puericultura growth assessment core.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Sex(str, Enum):
    MASCULINO = "Masculino"
    FEMININO = "Feminino"


class Measure(str, Enum):
    WEIGHT = "weight"
    HEIGHT = "height"
    CEPHALIC = "cephalic"
    BMI = "bmi"
    PRETERM_WEIGHT = "preterm_weight"
    PRETERM_HEIGHT = "preterm_height"
    PRETERM_CEPHALIC = "preterm_cephalic"

    @property
    def is_preterm(self) -> bool:
        return self.value.startswith("preterm_")

    @property
    def base(self) -> "Measure":
        """WHO measure a preterm curve belongs to (identity for WHO measures)."""
        return Measure(self.value.replace("preterm_", "", 1))

    def preterm(self) -> Optional["Measure"]:
        """INTERGROWTH-21 counterpart, or None (BMI has no preterm curve)."""
        if self.is_preterm:
            return self
        try:
            return Measure("preterm_" + self.value)
        except ValueError:
            return None


class DataSource(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


class ZBand(str, Enum):
    """Half-open Z-score bands, lowest to highest."""
    BELOW_MINUS_3 = "below_-3"
    MINUS_3_TO_MINUS_2 = "-3_to_-2"
    MINUS_2_TO_MINUS_1 = "-2_to_-1"
    MINUS_1_TO_0 = "-1_to_0"
    ZERO_TO_PLUS_1 = "0_to_+1"
    PLUS_1_TO_PLUS_2 = "+1_to_+2"
    PLUS_2_TO_PLUS_3 = "+2_to_+3"
    ABOVE_PLUS_3 = "above_+3"

    @property
    def label(self) -> str:
        return ZBAND_LABELS[self]

    @property
    def rank(self) -> int:
        return ZBAND_ORDER.index(self)

    @classmethod
    def from_label(cls, text: str) -> Optional["ZBand"]:
        """Parse a canonical value or a display label; None if unrecognised."""
        for band in cls:
            if text in (band.value, band.label):
                return band
        return None


ZBAND_ORDER: Tuple[ZBand, ...] = tuple(ZBand)

ZBAND_LABELS = {
    ZBand.BELOW_MINUS_3: "< -3 (Muito Baixo)",
    ZBand.MINUS_3_TO_MINUS_2: "Entre -3 e -2",
    ZBand.MINUS_2_TO_MINUS_1: "Entre -2 e -1",
    ZBand.MINUS_1_TO_0: "Entre -1 e 0",
    ZBand.ZERO_TO_PLUS_1: "Entre 0 e +1",
    ZBand.PLUS_1_TO_PLUS_2: "Entre +1 e +2",
    ZBand.PLUS_2_TO_PLUS_3: "Entre +2 e +3",
    ZBand.ABOVE_PLUS_3: "> +3",
}


class Prematurity(str, Enum):
    EXTREME = "Extreme preterm"
    VERY = "Very preterm"
    MODERATE = "Moderate preterm"
    LATE = "Late preterm"
    TERM = ""


class EvaluationStatus(str, Enum):
    EVALUATED = "evaluated"
    MISSING_INPUT = "missing_input"
    NOT_APPLICABLE = "not_applicable"
    NO_REFERENCE = "no_reference"


class VelocityStatus(str, Enum):
    OK = "ok"
    MISSING_INPUT = "missing_input"
    DATE_ERROR = "date_error"


class VelocityAssessment(str, Enum):
    ADEQUATE = "Adequado"
    BELOW = "Abaixo do esperado"
    ABOVE = "Acima do esperado"


class VaccineState(str, Enum):
    ATRASADO = "Atrasado"
    APLICAR_AGORA = "Aplicar agora"
    AGUARDAR = "Aguardar"
    PROXIMA_APLICACAO = "Próxima aplicação"


# ── Reference tables ──────────────────────────────────────────

Z_FIELDS = (
    'z_neg_4', 'z_neg_3', 'z_neg_2', 'z_neg_1', 'z_0',
    'z_pos_1', 'z_pos_2', 'z_pos_3', 'z_pos_4',
)


@dataclass(frozen=True)
class ReferenceDataPoint:
    age_days: int
    z_neg_3: float
    z_neg_2: float
    z_neg_1: float
    z_0: float
    z_pos_1: float
    z_pos_2: float
    z_pos_3: float
    z_neg_4: Optional[float] = None  # absent in INTERGROWTH-21
    z_pos_4: Optional[float] = None

    @classmethod
    def from_dict(cls, row: dict) -> "ReferenceDataPoint":
        values = {}
        for name in Z_FIELDS:
            v = row.get(name)
            if v is None or v == "" or (isinstance(v, float) and math.isnan(v)):
                values[name] = None
            else:
                values[name] = float(v)
        return cls(age_days=int(row['age_days']), **values)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReferenceCurve:
    measure: Measure
    sex: Sex
    points: List[ReferenceDataPoint] = field(default_factory=list)
    source: DataSource = DataSource.LIVE

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return not self.points


# ── Patient data ──────────────────────────────────────────────

@dataclass(frozen=True)
class PatientProfile:
    birth_date: Optional[date]
    sex: Sex
    is_premature: bool = False
    gestational_age_weeks: Optional[int] = None
    gestational_age_days: Optional[int] = None  # 0-6


@dataclass(frozen=True)
class VisitMeasurement:
    date: Optional[date]
    weight_g: Optional[float] = None
    height_cm: Optional[float] = None
    cephalic_cm: Optional[float] = None

    @property
    def bmi(self) -> float:
        """kg/m², or 0.0 unless both weight and height are present."""
        if not self.weight_g or not self.height_cm:
            return 0.0
        return (self.weight_g / 1000) / (self.height_cm / 100) ** 2

    def value_of(self, measure: Measure) -> Optional[float]:
        measure = measure.base
        if measure == Measure.WEIGHT:
            return self.weight_g
        if measure == Measure.HEIGHT:
            return self.height_cm
        if measure == Measure.CEPHALIC:
            return self.cephalic_cm
        return self.bmi or None


# ── Results ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ZScoreEvaluation:
    status: EvaluationStatus
    band: Optional[ZBand] = None
    measure: Optional[Measure] = None  # curve actually used
    age_days: Optional[int] = None     # age the curve was read at
    source: Optional[DataSource] = None

    @property
    def label(self) -> str:
        if self.status == EvaluationStatus.EVALUATED:
            return self.band.label
        if self.status == EvaluationStatus.NOT_APPLICABLE:
            return "Não se aplica"
        if self.status == EvaluationStatus.NO_REFERENCE:
            return "N/A"
        return ""


@dataclass(frozen=True)
class GrowthVelocity:
    status: VelocityStatus
    rate: Optional[float] = None
    unit: str = ""
    assessment: Optional[VelocityAssessment] = None
    expected_range: Optional[Tuple[float, float]] = None

    @property
    def text(self) -> str:
        if self.status == VelocityStatus.MISSING_INPUT:
            return ""
        if self.status == VelocityStatus.DATE_ERROR:
            return "Erro data"
        rate = format_decimal(self.rate, 1)
        if self.assessment is not None:
            return f"{rate} {self.unit} ({self.assessment.value})"
        lo, hi = self.expected_range
        return (f"{rate} {self.unit} (esperado: {format_decimal(lo, 1)} a "
                f"{format_decimal(hi, 1)} {self.unit})")


@dataclass(frozen=True)
class VaccineRule:
    id: str
    name: str
    dose_label: str
    target_age_days: float
    min_age_days: float
    max_age_days: float
    description: str = ""
    late_after_days: Optional[float] = None   # overrides the window when set
    exempt_from_target_deadline: bool = False


@dataclass(frozen=True)
class VaccineStatus:
    rule: VaccineRule
    status: VaccineState
    days_diff: int
    message: str = ""

    def to_dict(self) -> dict:
        return {
            'id': self.rule.id,
            'name': self.rule.name,
            'dose_label': self.rule.dose_label,
            'description': self.rule.description,
            'status': self.status.value,
            'days_diff': self.days_diff,
            'message': self.message,
        }


def format_decimal(value: float, digits: int) -> str:
    """Fixed-point with a decimal comma, e.g. 49.35 -> '49,4'."""
    return f"{value:.{digits}f}".replace('.', ',')


class BMIDiagnosis(str, Enum):
    OBESITY = "Obesidade"
    OVERWEIGHT = "Sobrepeso"
    OVERWEIGHT_RISK = "Risco de sobrepeso"
    EUTROPHIC = "Eutrofia"
    WASTING = "Magreza"
    SEVERE_WASTING = "Magreza acentuada"


class CephalicDiagnosis(str, Enum):
    MACROCEPHALY = "Macrocefalia"
    MICROCEPHALY = "Microcefalia"
    NORMOCEPHALY = "Normocefalia"


@dataclass
class VisitAssessment:
    date: Optional[date]
    age_days: int
    age_text: str
    bmi: float
    zscores: Dict[Measure, ZScoreEvaluation] = field(default_factory=dict)
    bmi_diagnosis: str = ""
    cephalic_diagnosis: str = ""


@dataclass
class VisitComparison:
    prev: VisitAssessment
    curr: VisitAssessment
    deltas: Dict[Measure, Optional[float]] = field(default_factory=dict)
    velocities: Dict[Measure, GrowthVelocity] = field(default_factory=dict)
