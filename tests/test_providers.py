"""Tests for the CSV and REST reference-table providers."""
from datetime import date
from unittest.mock import MagicMock

import pandas as pd
import pytest
import requests

from src.ingestion.providers import (
    CsvReferenceProvider, ReferenceFormatError,
    ReferenceSourceUnavailable, RestReferenceProvider, StaticReferenceProvider,
    build_provider,
)
from src.ingestion.seed import curve_frame
from src.models.data_structures import DataSource, Measure, Sex, ZBand
from src.models.reference_data import (
    PRETERM_WEIGHT_GIRLS_DEMO, ReferenceDataService, WEIGHT_GIRLS_DEMO,
)
from src.models.zscore_engine import ZScoreEngine


@pytest.fixture()
def csv_dir(tmp_path):
    who = curve_frame(Measure.WEIGHT, Sex.FEMININO, list(reversed(WEIGHT_GIRLS_DEMO)))
    who.to_csv(tmp_path / "reference_curves.csv", index=False)
    ig = curve_frame(Measure.PRETERM_WEIGHT, Sex.FEMININO, PRETERM_WEIGHT_GIRLS_DEMO)
    ig.to_csv(tmp_path / "intergrowth_curves.csv", index=False)
    return tmp_path


def _response(payload=None, status=200, json_error=None):
    resp = MagicMock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


class TestStaticProvider:

    def test_fetch_counts_calls(self):
        provider = StaticReferenceProvider({("weight", "Feminino"): WEIGHT_GIRLS_DEMO})
        assert len(provider.fetch(Measure.WEIGHT, Sex.FEMININO)) == 3
        assert provider.fetch(Measure.HEIGHT, Sex.FEMININO) == []
        assert provider.calls == 2


class TestCsvProvider:

    def test_fetch_sorted_rows(self, csv_dir):
        provider = CsvReferenceProvider(csv_dir)
        points = provider.fetch(Measure.WEIGHT, Sex.FEMININO)
        assert [p.age_days for p in points] == [0, 30, 365]
        assert points[0].z_0 == 3232
        assert points[0].z_pos_4 == 5356

    def test_preterm_rows_from_intergrowth_table(self, csv_dir):
        points = CsvReferenceProvider(csv_dir).fetch(Measure.PRETERM_WEIGHT, Sex.FEMININO)
        assert [p.age_days for p in points] == [168, 169, 170, 171, 172]
        assert points[2].z_0 == 630
        assert points[2].z_neg_4 is None

    def test_unknown_key_is_empty(self, csv_dir):
        assert CsvReferenceProvider(csv_dir).fetch(Measure.HEIGHT, Sex.MASCULINO) == []

    def test_missing_file(self, tmp_path):
        provider = CsvReferenceProvider(tmp_path)
        with pytest.raises(ReferenceSourceUnavailable):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)
        assert provider.check() is False

    def test_undecodable_file(self, tmp_path):
        (tmp_path / "reference_curves.csv").write_bytes(
            b"sex,measure,age_days,z_0\n\xff\xfe\xfa,weight,0,3232\n")
        with pytest.raises(ReferenceSourceUnavailable):
            CsvReferenceProvider(tmp_path).fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_undecodable_file_falls_back(self, tmp_path, girl):
        (tmp_path / "reference_curves.csv").write_bytes(
            b"sex,measure,age_days,z_0\n\xff\xfe\xfa,weight,0,3232\n")
        service = ReferenceDataService(CsvReferenceProvider(tmp_path), use_fallback=True)
        engine = ZScoreEngine(service)
        result = engine.evaluate(girl, Measure.WEIGHT, date(2024, 1, 1), 3300)
        assert result.source == DataSource.FALLBACK
        assert result.band == ZBand.ZERO_TO_PLUS_1

    def test_missing_columns(self, tmp_path):
        pd.DataFrame({'age_days': [0], 'z_0': [1]}).to_csv(
            tmp_path / "reference_curves.csv", index=False)
        with pytest.raises(ReferenceFormatError):
            CsvReferenceProvider(tmp_path).fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_check(self, csv_dir):
        assert CsvReferenceProvider(csv_dir).check() is True

    def test_custom_table_names(self, csv_dir):
        (csv_dir / "reference_curves.csv").rename(csv_dir / "who.csv")
        provider = CsvReferenceProvider(csv_dir, who_table="who")
        assert len(provider.fetch(Measure.WEIGHT, Sex.FEMININO)) == 3


class TestRestProvider:

    ROWS = [
        {'age_days': 30, 'z_neg_3': 1, 'z_neg_2': 2, 'z_neg_1': 3, 'z_0': 4,
         'z_pos_1': 5, 'z_pos_2': 6, 'z_pos_3': 7, 'z_neg_4': None, 'z_pos_4': None},
        {'age_days': 0, 'z_neg_3': 0.5, 'z_neg_2': 1.5, 'z_neg_1': 2.5, 'z_0': 3.5,
         'z_pos_1': 4.5, 'z_pos_2': 5.5, 'z_pos_3': 6.5},
    ]

    def _provider(self, response):
        session = MagicMock()
        session.get.return_value = response
        return RestReferenceProvider("https://db.example.org/", "secret", timeout=5,
                                     session=session), session

    def test_fetch_query(self):
        provider, session = self._provider(_response(self.ROWS))
        points = provider.fetch(Measure.HEIGHT, Sex.MASCULINO)

        assert [p.age_days for p in points] == [0, 30]
        args, kwargs = session.get.call_args
        assert args[0] == "https://db.example.org/rest/v1/reference_curves"
        assert kwargs['params'] == {
            'select': '*', 'sex': 'eq.Masculino', 'measure': 'eq.height',
            'order': 'age_days.asc',
        }
        assert kwargs['headers']['apikey'] == "secret"
        assert kwargs['headers']['Authorization'] == "Bearer secret"
        assert kwargs['timeout'] == 5

    def test_preterm_query(self):
        provider, session = self._provider(_response([]))
        assert provider.fetch(Measure.PRETERM_CEPHALIC, Sex.FEMININO) == []
        args, kwargs = session.get.call_args
        assert args[0].endswith("/rest/v1/intergrowth_curves")
        assert kwargs['params']['measure'] == 'eq.cephalic'

    def test_connection_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        provider = RestReferenceProvider("https://db.example.org", "k", session=session)
        with pytest.raises(ReferenceSourceUnavailable):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_http_error(self):
        provider, _ = self._provider(_response(status=503))
        with pytest.raises(ReferenceSourceUnavailable):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_invalid_json(self):
        provider, _ = self._provider(_response(json_error=ValueError("bad json")))
        with pytest.raises(ReferenceFormatError):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_non_list_payload(self):
        provider, _ = self._provider(_response({'message': 'nope'}))
        with pytest.raises(ReferenceFormatError):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_malformed_row(self):
        provider, _ = self._provider(_response([{'z_0': 3}]))
        with pytest.raises(ReferenceFormatError):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_unconfigured_url(self):
        provider = RestReferenceProvider("", "", session=MagicMock())
        with pytest.raises(ReferenceSourceUnavailable):
            provider.fetch(Measure.WEIGHT, Sex.FEMININO)

    def test_check(self):
        provider, _ = self._provider(_response([{'age_days': 0}]))
        assert provider.check() is True
        provider, _ = self._provider(_response(status=401))
        assert provider.check() is False


class TestBuildProvider:

    def test_known_kinds(self):
        assert isinstance(build_provider("csv"), CsvReferenceProvider)
        assert isinstance(build_provider("rest"), RestReferenceProvider)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_provider("ftp")
