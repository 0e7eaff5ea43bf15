"""
Reference-table providers.

A provider answers ``fetch(measure, sex)`` with the rows of one growth
curve ordered by ``age_days``. WHO curves live in one table
(``reference_curves``) and INTERGROWTH-21 preterm curves in another
(``intergrowth_curves``), where they are stored under the plain measure
name ('weight', 'height', 'cephalic') without the ``preterm_`` prefix.

Providers raise ReferenceDataError on any failure; deciding what to do
about it (fallback, retry) is the caller's business.
"""
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
import requests

from config.settings import (
    REFERENCE_PROVIDER, REFERENCE_DIR, REFERENCE_API_URL, REFERENCE_API_KEY,
    REFERENCE_TIMEOUT, WHO_TABLE, INTERGROWTH_TABLE,
)
from src.models.data_structures import (
    Measure, ReferenceDataPoint, Sex, Z_FIELDS,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS = ['sex', 'measure', 'age_days'] + list(Z_FIELDS)


class ReferenceDataError(Exception):
    """Base exception for reference-table provider failures."""


class ReferenceSourceUnavailable(ReferenceDataError):
    """Raised when the backing store cannot be reached or read."""


class ReferenceFormatError(ReferenceDataError):
    """Raised when the store answers with rows of the wrong shape."""


def _table_for(measure: Measure, who_table: str, intergrowth_table: str) -> Tuple[str, str]:
    """(table, stored measure name) for a measure."""
    if measure.is_preterm:
        return intergrowth_table, measure.base.value
    return who_table, measure.value


def _to_points(rows: Iterable[dict]) -> List[ReferenceDataPoint]:
    try:
        points = [ReferenceDataPoint.from_dict(r) for r in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise ReferenceFormatError(f"Malformed reference row: {e}") from e
    return sorted(points, key=lambda p: p.age_days)


class ReferenceProvider:
    """Interface for a keyed source of reference curves."""

    name = "base"

    def fetch(self, measure: Measure, sex: Sex) -> List[ReferenceDataPoint]:
        raise NotImplementedError

    def check(self) -> bool:
        """True when the backing store answers."""
        return True


class StaticReferenceProvider(ReferenceProvider):
    """In-memory curves keyed by (measure, sex)."""

    name = "static"

    def __init__(self, curves: Optional[Dict[Tuple[Measure, Sex], list]] = None):
        self.curves = {}
        for (measure, sex), rows in (curves or {}).items():
            self.curves[(Measure(measure), Sex(sex))] = _to_points(
                r if isinstance(r, dict) else r.to_dict() for r in rows
            )
        self.calls = 0

    def fetch(self, measure: Measure, sex: Sex) -> List[ReferenceDataPoint]:
        self.calls += 1
        return list(self.curves.get((Measure(measure), Sex(sex)), []))


class CsvReferenceProvider(ReferenceProvider):
    """Curves read from ``<table>.csv`` files in a directory."""

    name = "csv"

    def __init__(self, directory: Path = REFERENCE_DIR,
                 who_table: str = WHO_TABLE,
                 intergrowth_table: str = INTERGROWTH_TABLE):
        self.directory = Path(directory)
        self.who_table = who_table
        self.intergrowth_table = intergrowth_table

    def path_for(self, table: str) -> Path:
        return self.directory / f"{table}.csv"

    def _read(self, table: str) -> pd.DataFrame:
        path = self.path_for(table)
        if not path.exists():
            raise ReferenceSourceUnavailable(f"Reference file not found: {path}")
        try:
            df = pd.read_csv(path)
        except (OSError, UnicodeDecodeError, pd.errors.ParserError,
                pd.errors.EmptyDataError) as e:
            raise ReferenceSourceUnavailable(f"Cannot read {path}: {e}") from e
        missing = {'sex', 'measure', 'age_days'} - set(df.columns)
        if missing:
            raise ReferenceFormatError(f"{path} lacks columns {sorted(missing)}")
        return df

    def fetch(self, measure: Measure, sex: Sex) -> List[ReferenceDataPoint]:
        table, stored = _table_for(Measure(measure), self.who_table,
                                   self.intergrowth_table)
        df = self._read(table)
        rows = df[(df['sex'] == Sex(sex).value) & (df['measure'] == stored)]
        rows = rows.sort_values('age_days')
        # Missing ±4 columns are treated as absent values
        return _to_points(rows.to_dict(orient='records'))

    def check(self) -> bool:
        return self.path_for(self.who_table).exists()


class RestReferenceProvider(ReferenceProvider):
    """Curves served by a PostgREST-style endpoint (e.g. Supabase)."""

    name = "rest"

    def __init__(self, base_url: str = REFERENCE_API_URL,
                 api_key: str = REFERENCE_API_KEY,
                 timeout: int = REFERENCE_TIMEOUT,
                 who_table: str = WHO_TABLE,
                 intergrowth_table: str = INTERGROWTH_TABLE,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.who_table = who_table
        self.intergrowth_table = intergrowth_table
        self.session = session or requests.Session()

    @property
    def headers(self) -> dict:
        return {
            'apikey': self.api_key,
            'Authorization': f"Bearer {self.api_key}",
            'Accept': 'application/json',
        }

    def _get(self, table: str, params: dict) -> list:
        if not self.base_url:
            raise ReferenceSourceUnavailable("REFERENCE_API_URL is not configured")
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            resp = self.session.get(url, params=params, headers=self.headers,
                                    timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ReferenceSourceUnavailable(f"GET {url} failed: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            raise ReferenceFormatError(f"GET {url} returned invalid JSON") from e
        if not isinstance(data, list):
            raise ReferenceFormatError(f"GET {url} returned {type(data).__name__}, expected list")
        return data

    def fetch(self, measure: Measure, sex: Sex) -> List[ReferenceDataPoint]:
        table, stored = _table_for(Measure(measure), self.who_table,
                                   self.intergrowth_table)
        data = self._get(table, {
            'select': '*',
            'sex': f"eq.{Sex(sex).value}",
            'measure': f"eq.{stored}",
            'order': 'age_days.asc',
        })
        return _to_points(data)

    def check(self) -> bool:
        try:
            self._get(self.who_table, {'select': 'age_days', 'limit': 1})
        except ReferenceDataError as e:
            logger.error("Reference store check failed: %s", e)
            return False
        return True


def build_provider(kind: str = REFERENCE_PROVIDER) -> ReferenceProvider:
    """Provider selected by configuration ('csv' or 'rest')."""
    if kind == "csv":
        return CsvReferenceProvider()
    if kind == "rest":
        return RestReferenceProvider()
    raise ValueError(f"Unknown reference provider '{kind}'")
