"""Tests for the vaccination calendar and dose status rules."""
from datetime import date

import pytest

from src.models.data_structures import VaccineState
from src.models.vaccines import (
    RULES_BY_ID, VACCINE_CALENDAR, get_vaccine_status, status_for_age,
    vaccination_card,
)


def status(rule_id, age_days):
    return status_for_age(RULES_BY_ID[rule_id], age_days)


class TestCalendar:

    def test_ids_are_unique(self):
        assert len(RULES_BY_ID) == len(VACCINE_CALENDAR)

    def test_windows_are_ordered(self):
        for rule in VACCINE_CALENDAR:
            assert rule.min_age_days <= rule.max_age_days, rule.id
            assert rule.min_age_days <= rule.target_age_days, rule.id


class TestStatusForAge:

    def test_bcg_at_birth(self):
        result = status('bcg', 0)
        assert result.status == VaccineState.APLICAR_AGORA
        assert result.days_diff == 0
        assert result.message == "No prazo ideal"

    def test_hepatitis_b_hard_limit(self):
        assert status('hepb_birth', 3).status == VaccineState.APLICAR_AGORA
        late = status('hepb_birth', 4)
        assert late.status == VaccineState.ATRASADO
        assert late.days_diff == 1
        assert late.message == "Atrasada há 1 dias"

    def test_upcoming_dose(self):
        result = status('penta_1', 30)
        assert result.status == VaccineState.PROXIMA_APLICACAO
        assert result.days_diff == 15
        assert result.message == "Faltam 15 dias"

    def test_waiting_dose(self):
        result = status('penta_1', 0)
        assert result.status == VaccineState.AGUARDAR
        assert result.days_diff == 45
        assert result.message == "Faltam ~1 meses"

    @pytest.mark.parametrize("age,wait,expected", [
        (15, 30, VaccineState.PROXIMA_APLICACAO),   # penta_1 minimum is day 45
        (14, 31, VaccineState.AGUARDAR),
        (44, 1, VaccineState.PROXIMA_APLICACAO),
    ])
    def test_upcoming_window_edge(self, age, wait, expected):
        result = status('penta_1', age)
        assert result.status == expected
        assert result.days_diff == wait

    def test_due_on_minimum_age(self):
        assert status('penta_1', 45).status == VaccineState.APLICAR_AGORA

    def test_last_due_day_before_target_grace(self):
        result = status('penta_1', 90)
        assert result.status == VaccineState.APLICAR_AGORA
        assert result.days_diff == 0

    def test_late_after_target_grace(self):
        # target 60.88 days + 30 days of grace
        result = status('penta_1', 91)
        assert result.status == VaccineState.ATRASADO
        assert result.days_diff == 1

    def test_late_past_max_age_counts_from_max(self):
        assert status('penta_1', 120).days_diff == 29
        assert status('penta_1', 120).message == "Atrasada há 29 dias"
        assert status('penta_1', 300).message == "Atrasada há ~6 meses"

    def test_exempt_rule_uses_max_age(self):
        assert status('rota_1', 100).status == VaccineState.APLICAR_AGORA
        late = status('rota_1', 107)
        assert late.status == VaccineState.ATRASADO
        assert late.days_diff == 1

    def test_open_ended_rule_still_has_target_deadline(self):
        result = status('covid_1', 250)
        assert result.status == VaccineState.ATRASADO
        assert result.days_diff == 38

    @pytest.mark.parametrize("rule_id", ['hpv_1', 'hpv_2', 'pneumo_23'])
    def test_adolescent_rules_are_exempt(self, rule_id):
        rule = RULES_BY_ID[rule_id]
        result = status_for_age(rule, int(rule.target_age_days) + 200)
        assert result.status == VaccineState.APLICAR_AGORA


class TestGetVaccineStatus:

    def test_by_dates(self):
        result = get_vaccine_status('hepb_birth', date(2024, 1, 1), date(2024, 1, 5))
        assert result.status == VaccineState.ATRASADO
        assert result.days_diff == 1

    def test_iso_strings(self):
        result = get_vaccine_status('penta_1', "2024-01-01", "2024-01-31")
        assert result.status == VaccineState.PROXIMA_APLICACAO

    def test_defaults_to_today(self):
        assert get_vaccine_status('bcg', date.today()).status == VaccineState.APLICAR_AGORA

    def test_unknown_vaccine(self):
        result = get_vaccine_status('nao_existe', date(2024, 1, 1), date(2024, 6, 1))
        assert result.status == VaccineState.AGUARDAR
        assert result.rule.name == "Desconhecida"
        assert result.rule.dose_label == "?"
        assert result.message == "Vacina não encontrada"

    def test_to_dict(self):
        payload = get_vaccine_status('bcg', "2024-01-01", "2024-01-01").to_dict()
        assert payload == {
            'id': 'bcg', 'name': 'BCG', 'dose_label': 'Dose única',
            'description': 'Ao nascer', 'status': 'Aplicar agora',
            'days_diff': 0, 'message': 'No prazo ideal',
        }


class TestVaccinationCard:

    def test_covers_whole_calendar_in_order(self):
        card = vaccination_card("2024-01-01", "2024-03-01")
        assert [s.rule.id for s in card] == [r.id for r in VACCINE_CALENDAR]

    def test_statuses_at_two_months(self):
        card = {s.rule.id: s.status for s in vaccination_card("2024-01-01", "2024-03-01")}
        assert card['penta_1'] == VaccineState.APLICAR_AGORA
        assert card['hepb_birth'] == VaccineState.ATRASADO
        assert card['menc_1'] == VaccineState.PROXIMA_APLICACAO
        assert card['hpv_1'] == VaccineState.AGUARDAR
