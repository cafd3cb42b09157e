"""taxes - Income tax and social insurance calculations.

Scope:
- Income tax per § 32a EStG, by tax class (splitting for III, V/VI formula)
- Solidarity surcharge and church tax
- Social insurance contributions with BBG capping
- Flat-bracket income tax estimate for secondary employments

Constraints:
- Pure calculation - no employee master data, no I/O
- Every statutory constant comes from a RateTable (see sdk/rates)

Usage:
    from lohncalc.sdk.rates import rates
    from lohncalc.sdk.schemas import TaxParams
    from lohncalc.sdk.taxes import calc_annual_tax, calc_social_insurance

    table = rates(2025)
    tax = calc_annual_tax(TaxParams(gross_yearly=48000, tax_class="I"), table)
    sv = calc_social_insurance(4000, age=30, is_east_germany=False, is_childless=True, table=table)
"""

from .income_tax import (
    basic_allowance_for,
    calc_annual_tax,
    calc_church_tax,
    calc_income_tax,
    calc_solidarity_tax,
    calc_taxable_income,
    class_v_vi_tariff,
    estimate_income_tax_flat,
    monthly_taxes,
    splitting_tariff,
    tariff,
)
from .social_insurance import (
    calc_contributions_on_bases,
    calc_social_insurance,
    care_employee_rate,
)

__all__ = [
    # Income tax
    "basic_allowance_for",
    "calc_annual_tax",
    "calc_church_tax",
    "calc_income_tax",
    "calc_solidarity_tax",
    "calc_taxable_income",
    "class_v_vi_tariff",
    "estimate_income_tax_flat",
    "monthly_taxes",
    "splitting_tariff",
    "tariff",
    # Social insurance
    "calc_contributions_on_bases",
    "calc_social_insurance",
    "care_employee_rate",
]
