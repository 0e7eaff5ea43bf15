"""
Brazilian national childhood vaccination calendar and dose status.

Each rule carries its age window in days, converted from the published
schedule with a 30.44-day month and a 365.25-day year. Status per dose:

- Aguardar / Próxima aplicação: younger than the minimum age (the latter
  when the wait is 30 days or less);
- Aplicar agora: inside the window and not past the administrative limit;
- Atrasado: past the maximum age, past the rule's own hard limit
  (``late_after_days``), or more than 30 days past the target age for
  rules without ``exempt_from_target_deadline``.
"""
import math
from datetime import date
from typing import Dict, List

from config.settings import DAYS_PER_MONTH, DAYS_PER_YEAR
from src.models.age import DateLike, age_in_days, to_date
from src.models.data_structures import VaccineRule, VaccineState, VaccineStatus

M = DAYS_PER_MONTH
Y = DAYS_PER_YEAR

MAX_AGE_CHILDHOOD = 5 * Y - 1   # up to 4 years, 11 months and 29 days
TARGET_GRACE_DAYS = 30
UPCOMING_WINDOW_DAYS = 30

VACCINE_CALENDAR: List[VaccineRule] = [
    # Birth
    VaccineRule('bcg', 'BCG', 'Dose única', 0, 0, MAX_AGE_CHILDHOOD, 'Ao nascer'),
    VaccineRule('hepb_birth', 'Hepatite B', 'Ao nascer', 0, 0, 30,
                'Ao nascer (até 3 dias)', late_after_days=3),

    # 2 months
    VaccineRule('penta_1', 'Penta (DTP+Hib+HB)', '1ª Dose', 2 * M, 45, 3 * M, '2 meses'),
    VaccineRule('vip_1', 'VIP', '1ª Dose', 2 * M, 45, 3 * M, '2 meses'),
    VaccineRule('pneumo_1', 'Pneumocócica 10V', '1ª Dose', 2 * M, 45, 3 * M, '2 meses'),
    VaccineRule('rota_1', 'Rotavírus', '1ª Dose', 2 * M, 45, 3 * M + 15,
                '2 meses (até 3 meses e 15 dias)', exempt_from_target_deadline=True),

    # 3 months
    VaccineRule('menc_1', 'Meningocócica C', '1ª Dose', 3 * M, 75, 4 * M, '3 meses'),

    # 4 months
    VaccineRule('penta_2', 'Penta (DTP+Hib+HB)', '2ª Dose', 4 * M, 105, 5 * M, '4 meses'),
    VaccineRule('vip_2', 'VIP', '2ª Dose', 4 * M, 105, 5 * M, '4 meses'),
    VaccineRule('pneumo_2', 'Pneumocócica 10V', '2ª Dose', 4 * M, 105, 5 * M, '4 meses'),
    VaccineRule('rota_2', 'Rotavírus', '2ª Dose', 4 * M, 105, 7 * M + 29,
                '4 meses (até 7 meses e 29 dias)', exempt_from_target_deadline=True),

    # 5 months
    VaccineRule('menc_2', 'Meningocócica C', '2ª Dose', 5 * M, 135, 6 * M, '5 meses'),

    # 6 months
    VaccineRule('penta_3', 'Penta (DTP+Hib+HB)', '3ª Dose', 6 * M, 165, 7 * M, '6 meses'),
    VaccineRule('vip_3', 'VIP', '3ª Dose', 6 * M, 165, 7 * M, '6 meses'),
    VaccineRule('covid_1', 'Covid-19', '1ª Dose', 6 * M, 180, 9999, '6 meses'),
    VaccineRule('influenza_1', 'Influenza trivalente', '1ª Dose', 6 * M, 150, 12 * M, '6 meses'),

    # 7 months
    VaccineRule('covid_2', 'Covid-19', '2ª Dose', 7 * M, 210, 9999, '7 meses'),
    VaccineRule('influenza_2', 'Influenza trivalente', '2ª Dose', 7 * M, 180, 12 * M,
                '7 meses (30 dias após a 1ª)'),

    # 9 months
    VaccineRule('febre_amarela_1', 'Febre Amarela', 'Dose', 9 * M, 255, 12 * M, '9 meses'),
    VaccineRule('covid_3', 'Covid-19', '3ª Dose', 9 * M, 270, 9999, '9 meses'),

    # 12 months
    VaccineRule('pneumo_ref', 'Pneumocócica 10V', 'Reforço', 12 * M, 365, 15 * M, '12 meses'),
    VaccineRule('menc_ref', 'Meningocócica C', 'Reforço', 12 * M, 365, 15 * M, '12 meses'),
    VaccineRule('triplice_1', 'Tríplice Viral', '1ª Dose', 12 * M, 365, 15 * M, '12 meses'),

    # 15 months
    VaccineRule('dtp_ref1', 'DTP', '1º Reforço', 15 * M, 440, 18 * M, '15 meses'),
    VaccineRule('vop_ref1', 'VOP', '1º Reforço', 15 * M, 440, 18 * M, '15 meses'),
    VaccineRule('hepa_1', 'Hepatite A', 'Uma dose', 15 * M, 440, 24 * M, '15 meses'),
    VaccineRule('tetra_1', 'Tetraviral', 'Uma dose', 15 * M, 440, 24 * M, '15 meses'),

    # 4 years
    VaccineRule('dtp_ref2', 'DTP', '2º Reforço', 4 * Y, 4 * Y - 30, 7 * Y, '4 anos'),
    VaccineRule('vop_ref2', 'VOP', '2º Reforço', 4 * Y, 4 * Y - 30, 7 * Y, '4 anos'),
    VaccineRule('fa_ref', 'Febre Amarela', 'Dose de reforço', 4 * Y, 4 * Y - 30, 7 * Y, '4 anos'),
    VaccineRule('varicela_2', 'Varicela', 'Uma dose', 4 * Y, 4 * Y - 30, 7 * Y, '4 anos'),

    # 5 years
    VaccineRule('pneumo_23', 'Pneumocócica 23V', 'Uma dose', 5 * Y, 5 * Y - 30, 6 * Y,
                '5 anos (indígenas)', exempt_from_target_deadline=True),

    # 9-14 years
    VaccineRule('hpv_1', 'HPV', 'Dose', 9 * Y, 9 * Y, 15 * Y, '9 a 14 anos',
                exempt_from_target_deadline=True),
    VaccineRule('hpv_2', 'HPV', 'Dose', 9.5 * Y, 9 * Y, 15 * Y, '6 meses após a 1ª',
                exempt_from_target_deadline=True),
]

RULES_BY_ID: Dict[str, VaccineRule] = {r.id: r for r in VACCINE_CALENDAR}


def _waiting_message(days: int) -> str:
    if days < 30:
        return f"Faltam {days} dias"
    return f"Faltam ~{math.floor(days / M)} meses"


def _late_message(days: int) -> str:
    if days < 60:
        return f"Atrasada há {days} dias"
    return f"Atrasada há ~{math.floor(days / M)} meses"


def _unknown_rule(rule_id: str) -> VaccineStatus:
    rule = VaccineRule(rule_id, 'Desconhecida', '?', 0, 0, 0)
    return VaccineStatus(rule, VaccineState.AGUARDAR, 0, 'Vacina não encontrada')


def status_for_age(rule: VaccineRule, age_days: int) -> VaccineStatus:
    if age_days < rule.min_age_days:
        wait = math.ceil(rule.min_age_days - age_days)
        state = (VaccineState.PROXIMA_APLICACAO if wait <= UPCOMING_WINDOW_DAYS
                 else VaccineState.AGUARDAR)
        return VaccineStatus(rule, state, wait, _waiting_message(wait))

    if rule.late_after_days is not None:
        deadline = rule.late_after_days
    elif age_days > rule.max_age_days or rule.exempt_from_target_deadline:
        deadline = rule.max_age_days
    else:
        deadline = min(rule.max_age_days, rule.target_age_days + TARGET_GRACE_DAYS)

    if age_days > deadline:
        overdue = math.ceil(age_days - deadline)
        return VaccineStatus(rule, VaccineState.ATRASADO, overdue, _late_message(overdue))
    return VaccineStatus(rule, VaccineState.APLICAR_AGORA, 0, 'No prazo ideal')


def get_vaccine_status(rule_id: str, birth_date: DateLike,
                       reference_date: DateLike = None) -> VaccineStatus:
    """Status of one dose for a child on ``reference_date`` (default: today)."""
    rule = RULES_BY_ID.get(rule_id)
    if rule is None:
        return _unknown_rule(rule_id)
    on = to_date(reference_date) or date.today()
    return status_for_age(rule, age_in_days(birth_date, on))


def vaccination_card(birth_date: DateLike, reference_date: DateLike = None) -> List[VaccineStatus]:
    """Status of every dose of the calendar, in calendar order."""
    on = to_date(reference_date) or date.today()
    age = age_in_days(birth_date, on)
    return [status_for_age(rule, age) for rule in VACCINE_CALENDAR]
