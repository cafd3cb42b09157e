"""Social insurance contributions (Sozialversicherung).

Pension (RV) and unemployment (AV) are assessed up to the region-dependent
pension ceiling, health (KV) and care (PV) up to the nationwide health
ceiling. Each employee and employer amount is rounded to the cent on its own;
totals are sums of the rounded amounts, never a rounding of the raw sum.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..errors import InvalidInput
from ..rates.schemas import CareRate, RateTable
from ..rounding import round_cents, sum_cents, to_decimal
from ..schemas import ContributionSplit, SocialInsuranceBreakdown

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _split(base: Decimal, employee_pct: Decimal, employer_pct: Decimal) -> ContributionSplit:
    employee = round_cents(base * employee_pct / HUNDRED)
    employer = round_cents(base * employer_pct / HUNDRED)
    return ContributionSplit(employee=employee, employer=employer, total=sum_cents(employee, employer))


def care_employee_rate(care: CareRate, age: int, is_childless: bool) -> Decimal:
    """Employee care rate in percent, including the childless surcharge if due.

    The surcharge applies only above the minimum age and never to the
    employer share.
    """
    rate = to_decimal(care.employee)
    if is_childless and age > care.childless_surcharge_min_age:
        rate += to_decimal(care.childless_surcharge)
    return rate


def calc_contributions_on_bases(
    pension_base: float,
    health_base: float,
    age: int,
    is_childless: bool,
    table: RateTable,
    additional_rate: Optional[float] = None,
) -> SocialInsuranceBreakdown:
    """Contributions from explicit assessable bases.

    Used directly by the multi-employment distributor, where the bases come
    from the shared ceiling rather than from one employment's gross.

    Args:
        pension_base: Monthly base for pension and unemployment insurance
        health_base: Monthly base for health and care insurance
        age: Employee age in years
        is_childless: Whether the care childless surcharge may apply
        table: Rate table of the year
        additional_rate: Health insurer's additional rate in percent
            (None for the year's average)
    """
    if pension_base < 0 or health_base < 0:
        raise InvalidInput(f"Assessable bases must not be negative, got {pension_base}/{health_base}")
    if additional_rate is not None and additional_rate < 0:
        raise InvalidInput(f"Additional health rate must not be negative, got {additional_rate}")

    si = table.social_insurance
    if additional_rate is None:
        additional_rate = si.health.average_additional
    half_additional = to_decimal(additional_rate) / 2

    rv_base = to_decimal(pension_base)
    kv_base = to_decimal(health_base)

    pension = _split(rv_base, to_decimal(si.pension.employee), to_decimal(si.pension.employer))
    unemployment = _split(rv_base, to_decimal(si.unemployment.employee), to_decimal(si.unemployment.employer))
    health = _split(
        kv_base,
        to_decimal(si.health.employee) + half_additional,
        to_decimal(si.health.employer) + half_additional,
    )
    care = _split(kv_base, care_employee_rate(si.care, age, is_childless), to_decimal(si.care.employer))

    parts = (pension, unemployment, health, care)
    employee = sum_cents(*(p.employee for p in parts))
    employer = sum_cents(*(p.employer for p in parts))
    total = ContributionSplit(employee=employee, employer=employer, total=sum_cents(employee, employer))

    return SocialInsuranceBreakdown(
        pension=pension,
        unemployment=unemployment,
        health=health,
        care=care,
        total=total,
        pension_base=round_cents(rv_base),
        health_base=round_cents(kv_base),
    )


def calc_social_insurance(
    gross_monthly: float,
    age: int,
    is_east_germany: bool,
    is_childless: bool,
    table: RateTable,
    additional_rate: Optional[float] = None,
) -> SocialInsuranceBreakdown:
    """Monthly contributions for one employment.

    Args:
        gross_monthly: Monthly gross pay
        age: Employee age in years
        is_east_germany: Selects the east pension ceiling
        is_childless: Whether the care childless surcharge may apply
        table: Rate table of the year
        additional_rate: Health insurer's additional rate in percent

    Returns:
        SocialInsuranceBreakdown with per-type and total splits
    """
    if gross_monthly < 0:
        raise InvalidInput(f"Monthly gross must not be negative, got {gross_monthly}")

    pension_ceiling = table.ceilings.pension(is_east_germany)
    health_ceiling = table.ceilings.health
    pension_base = min(gross_monthly, pension_ceiling)
    health_base = min(gross_monthly, health_ceiling)

    if gross_monthly > pension_ceiling:
        logger.debug(f"gross {gross_monthly:.2f} capped at pension ceiling {pension_ceiling:.2f}")
    if gross_monthly > health_ceiling:
        logger.debug(f"gross {gross_monthly:.2f} capped at health ceiling {health_ceiling:.2f}")

    return calc_contributions_on_bases(
        pension_base, health_base, age, is_childless, table, additional_rate=additional_rate
    )
