"""
Puericultura Growth Assessment: FastAPI Backend
===============================================

WHO / INTERGROWTH-21 anthropometric assessment and vaccination calendar.

REST API endpoints:
    GET    /health                      Health check + reference data source
    POST   /age                         Chronological, corrected and PCA ages
    POST   /zscore                      Z-band of one measurement
    GET    /diagnosis/{kind}            BMI or cephalic diagnosis of a band
    POST   /velocity/{measure}          Growth velocity between two visits
    POST   /assessments                 Full two-visit assessment
    POST   /summary                     Plain-text medical record summary
    GET    /vaccines                    Vaccination card for a child
    GET    /vaccines/{rule_id}          Status of a single dose
"""
import datetime as dt
import logging
import secrets
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

from config.settings import AUTH_ENABLED, AUTH_PASSWORD, AUTH_USERNAME, HOST, LOG_LEVEL, PORT
from src.ingestion.providers import ReferenceProvider, build_provider
from src.models.age import (
    age_in_days, corrected_age_days, format_age, post_conceptual_age_days,
    prematurity_classification,
)
from src.models.data_structures import (
    GrowthVelocity, Measure, PatientProfile, Sex, VisitMeasurement, ZScoreEvaluation,
)
from src.models.reference_data import ReferenceDataService
from src.models.summary import compare_visits, generate_summary
from src.models.vaccines import get_vaccine_status, vaccination_card
from src.models.velocity import (
    evaluate_cephalic_growth, evaluate_height_growth, evaluate_weight_gain,
)
from src.models.zscore_engine import ZScoreEngine, get_bmi_diagnosis, get_cephalic_diagnosis
from src.utils.logger import configure_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ── Auth ─────────────────────────────────────────────────────────
security = HTTPBasic()

def verify_credentials(credentials: HTTPBasicCredentials = Depends(security)):
    """HTTP Basic Auth, only enforced when AUTH_ENABLED=true."""
    if not AUTH_ENABLED:
        return True
    correct_user = secrets.compare_digest(credentials.username, AUTH_USERNAME)
    correct_pass = secrets.compare_digest(credentials.password, AUTH_PASSWORD)
    if not (correct_user and correct_pass):
        raise HTTPException(
            status_code=401,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return True

# ── Global State ──────────────────────────────────────────────

_reference: ReferenceDataService = None
_engine: ZScoreEngine = None


def _load_system(provider: ReferenceProvider = None):
    """Create the reference service (and its session cache) and the engine."""
    global _reference, _engine
    _reference = ReferenceDataService(provider or build_provider())
    _engine = ZScoreEngine(_reference)


def get_engine() -> ZScoreEngine:
    if _engine is None:
        _load_system()
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(LOG_LEVEL)
    if _engine is None:
        _load_system()
    logger.info("Reference provider: %s", _reference.provider.name)
    yield
    logger.info("Shutting down")


# ── App ──────────────────────────────────────────────────────

_deps = [Depends(verify_credentials)] if AUTH_ENABLED else []

app = FastAPI(
    title="Puericultura Growth Assessment API",
    description=(
        "Z-score banding against WHO and INTERGROWTH-21 reference tables, "
        "growth velocity, nutritional and cephalic diagnoses, and the "
        "Brazilian childhood vaccination calendar."
    ),
    version=VERSION,
    lifespan=lifespan,
    dependencies=_deps,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request / Response Models ─────────────────────────────────

class ProfileRequest(BaseModel):
    birth_date: dt.date
    sex: Sex
    is_premature: bool = False
    gestational_age_weeks: Optional[int] = Field(None, ge=0, le=45)
    gestational_age_days: Optional[int] = Field(None, ge=0, le=6)

    def to_profile(self) -> PatientProfile:
        return PatientProfile(
            birth_date=self.birth_date, sex=self.sex,
            is_premature=self.is_premature,
            gestational_age_weeks=self.gestational_age_weeks,
            gestational_age_days=self.gestational_age_days,
        )

class VisitRequest(BaseModel):
    date: Optional[dt.date] = None
    weight_g: Optional[float] = Field(None, ge=0)
    height_cm: Optional[float] = Field(None, ge=0)
    cephalic_cm: Optional[float] = Field(None, ge=0)

    def to_visit(self) -> VisitMeasurement:
        return VisitMeasurement(date=self.date, weight_g=self.weight_g,
                                height_cm=self.height_cm,
                                cephalic_cm=self.cephalic_cm)

class AgeRequest(BaseModel):
    birth_date: dt.date
    date: dt.date
    gestational_age_weeks: Optional[int] = Field(None, ge=0, le=45)
    gestational_age_days: Optional[int] = Field(None, ge=0, le=6)

class ZScoreRequest(BaseModel):
    profile: ProfileRequest
    measure: Measure = Field(..., description="weight, height, cephalic or bmi")
    date: dt.date
    value: Optional[float] = None

class ZScoreResponse(BaseModel):
    label: str
    band: Optional[str] = None
    status: str
    curve: Optional[str] = None
    age_days: Optional[int] = None
    source: Optional[str] = None

class VelocityRequest(BaseModel):
    birth_date: dt.date
    prev_date: Optional[dt.date] = None
    prev_value: Optional[float] = None
    curr_date: Optional[dt.date] = None
    curr_value: Optional[float] = None

class VelocityResponse(BaseModel):
    text: str
    status: str
    rate: Optional[float] = None
    unit: str = ""
    assessment: Optional[str] = None
    expected_range: Optional[List[float]] = None

class AssessmentRequest(BaseModel):
    profile: ProfileRequest
    prev: Optional[VisitRequest] = None
    curr: VisitRequest
    is_first_consultation: bool = False

class VaccineStatusResponse(BaseModel):
    id: str
    name: str
    dose_label: str
    description: str
    status: str
    days_diff: int
    message: str


# ── Helpers ───────────────────────────────────────────────────

def _zscore_response(evaluation: ZScoreEvaluation) -> ZScoreResponse:
    return ZScoreResponse(
        label=evaluation.label,
        band=evaluation.band.value if evaluation.band else None,
        status=evaluation.status.value,
        curve=evaluation.measure.value if evaluation.measure else None,
        age_days=evaluation.age_days,
        source=evaluation.source.value if evaluation.source else None,
    )

def _velocity_response(velocity: GrowthVelocity) -> VelocityResponse:
    return VelocityResponse(
        text=velocity.text,
        status=velocity.status.value,
        rate=round(velocity.rate, 3) if velocity.rate is not None else None,
        unit=velocity.unit,
        assessment=velocity.assessment.value if velocity.assessment else None,
        expected_range=list(velocity.expected_range) if velocity.expected_range else None,
    )


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/health")
def health_check():
    engine = get_engine()
    reference = engine.reference
    return {
        "status": "healthy",
        "reference_provider": reference.provider.name,
        "data_source": "connected" if reference.check_connection() else "offline",
        "cached_curves": len(reference.cache),
        "version": VERSION,
    }


@app.post("/age")
def compute_age(req: AgeRequest):
    days = age_in_days(req.birth_date, req.date)
    weeks, extra = req.gestational_age_weeks, req.gestational_age_days
    return {
        "age_days": days,
        "age_text": format_age(days),
        "corrected_age_days": corrected_age_days(req.birth_date, req.date, weeks, extra),
        "post_conceptual_age_days": post_conceptual_age_days(req.birth_date, req.date, weeks, extra),
        "prematurity": prematurity_classification(weeks).value,
    }


@app.post("/zscore", response_model=ZScoreResponse)
def evaluate_zscore(req: ZScoreRequest, engine: ZScoreEngine = Depends(get_engine)):
    evaluation = engine.evaluate(req.profile.to_profile(), req.measure, req.date, req.value)
    return _zscore_response(evaluation)


@app.get("/diagnosis/{kind}")
def diagnosis(kind: str, label: str = Query(..., description="Band label or canonical value")):
    if kind == "bmi":
        return {"label": label, "diagnosis": get_bmi_diagnosis(label)}
    if kind == "cephalic":
        return {"label": label, "diagnosis": get_cephalic_diagnosis(label)}
    raise HTTPException(404, f"Unknown diagnosis '{kind}'")


_VELOCITY = {
    "weight": evaluate_weight_gain,
    "height": evaluate_height_growth,
    "cephalic": evaluate_cephalic_growth,
}

@app.post("/velocity/{measure}", response_model=VelocityResponse)
def velocity(measure: str, req: VelocityRequest):
    if measure not in _VELOCITY:
        raise HTTPException(404, f"No velocity evaluator for '{measure}'")
    result = _VELOCITY[measure](req.birth_date, req.prev_date, req.prev_value,
                                req.curr_date, req.curr_value)
    return _velocity_response(result)


@app.post("/assessments")
def assess(req: AssessmentRequest, engine: ZScoreEngine = Depends(get_engine)):
    profile = req.profile.to_profile()
    prev = req.prev.to_visit() if req.prev else VisitMeasurement(date=None)
    comparison = compare_visits(engine, profile, prev, req.curr.to_visit())

    def visit(a) -> Dict:
        return {
            "date": a.date,
            "age_days": a.age_days,
            "age_text": a.age_text,
            "bmi": round(a.bmi, 2) if a.bmi else None,
            "zscores": {m.value: _zscore_response(z) for m, z in a.zscores.items()},
            "bmi_diagnosis": a.bmi_diagnosis,
            "cephalic_diagnosis": a.cephalic_diagnosis,
        }

    return {
        "prev": None if req.is_first_consultation else visit(comparison.prev),
        "curr": visit(comparison.curr),
        "deltas": {} if req.is_first_consultation else {
            m.value: d for m, d in comparison.deltas.items()
        },
        "velocities": {} if req.is_first_consultation else {
            m.value: _velocity_response(v) for m, v in comparison.velocities.items()
        },
    }


@app.post("/summary", response_class=PlainTextResponse)
def summary(req: AssessmentRequest, engine: ZScoreEngine = Depends(get_engine)):
    prev = req.prev.to_visit() if req.prev else None
    return generate_summary(engine, req.profile.to_profile(), prev,
                            req.curr.to_visit(), req.is_first_consultation)


@app.get("/vaccines", response_model=List[VaccineStatusResponse])
def get_vaccination_card(birth_date: dt.date, reference_date: Optional[dt.date] = None):
    return [s.to_dict() for s in vaccination_card(birth_date, reference_date)]


@app.get("/vaccines/{rule_id}", response_model=VaccineStatusResponse)
def get_dose_status(rule_id: str, birth_date: dt.date, reference_date: Optional[dt.date] = None):
    return get_vaccine_status(rule_id, birth_date, reference_date).to_dict()


# ── Run ───────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("src.api.server:app", host=HOST, port=PORT, reload=True)
