from datetime import date

import pytest

from src.ingestion.providers import StaticReferenceProvider
from src.models.data_structures import PatientProfile, Sex
from src.models.reference_data import ReferenceDataService
from src.models.zscore_engine import ZScoreEngine
from sample_curves import TEST_CURVES


@pytest.fixture()
def provider() -> StaticReferenceProvider:
    return StaticReferenceProvider(TEST_CURVES)


@pytest.fixture()
def reference(provider) -> ReferenceDataService:
    return ReferenceDataService(provider, use_fallback=False)


@pytest.fixture()
def engine(reference) -> ZScoreEngine:
    return ZScoreEngine(reference)


@pytest.fixture()
def girl() -> PatientProfile:
    return PatientProfile(birth_date=date(2024, 1, 1), sex=Sex.FEMININO)
