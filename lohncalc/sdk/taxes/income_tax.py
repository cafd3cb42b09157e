"""Income tax, solidarity surcharge and church tax.

Implements the § 32a EStG tariff with the tax-class specific treatment used
for wage tax withholding:

- Classes I, II, IV: plain tariff on zvE (class II also deducts the
  single-parent relief).
- Class III: splitting, twice the tariff on half the zvE.
- Classes V, VI: the § 39b Abs. 2 Satz 7 formula, which doubles the tariff
  difference between 125% and 75% of zvE with a minimum rate. Class VI gets no
  lump sums or allowances at all, so zvE is the yearly gross.

All tariff arithmetic runs on Decimal; zvE and income tax are cut to whole
euros, solidarity surcharge and church tax to the cent.
"""

import logging
from decimal import Decimal
from typing import Union

from ..errors import InvalidInput
from ..rates.schemas import FlatEstimateRules, IncomeTaxRules, RateTable, SolidarityRules
from ..rounding import floor_euro, round_cents, sum_cents, to_decimal, truncate_cents
from ..schemas import AnnualTax, TaxBreakdown, TaxClass, TaxParams, parse_tax_class

logger = logging.getLogger(__name__)

TEN_THOUSAND = Decimal("10000")


def tariff(taxable_income: Union[int, float], rules: IncomeTaxRules) -> int:
    """Income tax per § 32a EStG on a zvE, in whole euros."""
    x = floor_euro(taxable_income)
    if x <= rules.basic_allowance:
        return 0

    lower = rules.basic_allowance
    for zone in rules.progression_zones:
        if x <= zone.up_to:
            y = Decimal(x - lower) / TEN_THOUSAND
            tax = (to_decimal(zone.quadratic) * y + to_decimal(zone.linear)) * y + to_decimal(zone.constant)
            return floor_euro(tax)
        lower = zone.up_to

    for zone in rules.proportional_zones:
        if zone.up_to is None or x <= zone.up_to:
            return floor_euro(to_decimal(zone.rate) * x - to_decimal(zone.deduction))

    raise ValueError(f"zvE {x} is above every tariff zone")


def splitting_tariff(taxable_income: Union[int, float], rules: IncomeTaxRules) -> int:
    """Splitting tariff for class III: twice the tax on half the income."""
    half = floor_euro(to_decimal(floor_euro(taxable_income)) / 2)
    return 2 * tariff(half, rules)


def _class_v_vi_base(x: int, rules: IncomeTaxRules) -> int:
    """Doubled tariff difference between 125% and 75% of x, at least the minimum rate."""
    upper = tariff(floor_euro(to_decimal(x) * Decimal("1.25")), rules)
    lower = tariff(floor_euro(to_decimal(x) * Decimal("0.75")), rules)
    difference = (upper - lower) * 2
    minimum = floor_euro(to_decimal(x) * to_decimal(rules.class_v_vi.minimum_rate))
    return max(difference, minimum)


def class_v_vi_tariff(taxable_income: Union[int, float], rules: IncomeTaxRules) -> int:
    """Tax for classes V and VI per § 39b Abs. 2 Satz 7 EStG."""
    x = floor_euro(taxable_income)
    if x <= 0:
        return 0

    w1, w2, w3 = rules.class_v_vi.thresholds
    mid_rate, top_rate = (to_decimal(r) for r in rules.class_v_vi.upper_rates)

    if x > w2:
        tax = _class_v_vi_base(w2, rules)
        if x > w3:
            tax = floor_euro(tax + (w3 - w2) * mid_rate)
            return floor_euro(tax + (x - w3) * top_rate)
        return floor_euro(tax + (x - w2) * mid_rate)

    tax = _class_v_vi_base(x, rules)
    if x > w1:
        capped = floor_euro(_class_v_vi_base(w1, rules) + (x - w1) * mid_rate)
        tax = min(tax, capped)
    return tax


def basic_allowance_for(tax_class: TaxClass, rules: IncomeTaxRules) -> int:
    """zvE up to which no income tax is due for a tax class."""
    if tax_class == TaxClass.III:
        return 2 * rules.basic_allowance
    if tax_class in (TaxClass.V, TaxClass.VI):
        return 0
    return rules.basic_allowance


def calc_taxable_income(
    gross_yearly: float,
    tax_class: Union[TaxClass, int, str],
    child_allowances: float,
    table: RateTable,
) -> int:
    """Compute zvE from yearly gross.

    Class VI: the yearly gross, no allowances. All other classes deduct the
    work-expense and special-expense lump sums, the simplified provision
    allowance and the child allowances; class II also the single-parent relief.
    """
    if gross_yearly < 0:
        raise InvalidInput(f"Yearly gross must not be negative, got {gross_yearly}")
    if child_allowances < 0:
        raise InvalidInput(f"Child allowances must not be negative, got {child_allowances}")
    tax_class = parse_tax_class(tax_class)

    gross = to_decimal(gross_yearly)
    if tax_class == TaxClass.VI:
        return floor_euro(gross)

    a = table.allowances
    provision = min(gross * to_decimal(a.provision_rate), to_decimal(a.provision_cap))
    deductions = (
        to_decimal(a.work_expenses)
        + to_decimal(a.special_expenses)
        + provision
        + to_decimal(child_allowances) * to_decimal(a.child)
    )
    if tax_class == TaxClass.II:
        deductions += to_decimal(a.single_parent)

    return max(0, floor_euro(gross - deductions))


def calc_income_tax(taxable_income: int, tax_class: Union[TaxClass, int, str], table: RateTable) -> int:
    """Annual income tax on a zvE for a tax class."""
    tax_class = parse_tax_class(tax_class)
    rules = table.income_tax

    if taxable_income <= basic_allowance_for(tax_class, rules):
        return 0
    if tax_class == TaxClass.III:
        return splitting_tariff(taxable_income, rules)
    if tax_class in (TaxClass.V, TaxClass.VI):
        return class_v_vi_tariff(taxable_income, rules)
    return tariff(taxable_income, rules)


def calc_solidarity_tax(income_tax: float, rules: SolidarityRules, splitting: bool = False) -> float:
    """Solidaritätszuschlag on annual income tax.

    Zero up to the exemption (doubled for splitting); above it the full rate,
    but never more than the mitigation rate on the excess over the exemption.
    """
    exemption = to_decimal(rules.exemption) * (2 if splitting else 1)
    tax = to_decimal(income_tax)
    if tax <= exemption:
        return 0.0

    full = tax * to_decimal(rules.rate)
    mitigated = (tax - exemption) * to_decimal(rules.mitigation_rate)
    return max(0.0, truncate_cents(min(full, mitigated)))


def calc_church_tax(income_tax: float, rate: float) -> float:
    """Church tax as a percentage of income tax."""
    if rate < 0:
        raise InvalidInput(f"Church tax rate must not be negative, got {rate}")
    return truncate_cents(to_decimal(income_tax) * to_decimal(rate) / 100)


def calc_annual_tax(params: TaxParams, table: RateTable) -> AnnualTax:
    """Annual income tax, solidarity surcharge and church tax.

    Args:
        params: Yearly gross, tax class, allowances, church tax settings
        table: Rate table of the tax year

    Returns:
        AnnualTax with zvE and the three tax amounts
    """
    taxable_income = calc_taxable_income(
        params.gross_yearly, params.tax_class, params.child_allowances, table
    )
    income_tax = calc_income_tax(taxable_income, params.tax_class, table)

    if income_tax == 0:
        solidarity_tax = 0.0
        church_tax = 0.0
    else:
        solidarity_tax = calc_solidarity_tax(
            income_tax, table.solidarity, splitting=params.tax_class == TaxClass.III
        )
        church_tax = calc_church_tax(income_tax, params.church_tax_rate) if params.church_tax else 0.0

    logger.debug(
        f"tax {table.year} class {params.tax_class.roman}: gross {params.gross_yearly:.2f} "
        f"zvE {taxable_income} ESt {income_tax} SolZ {solidarity_tax:.2f} KiSt {church_tax:.2f}"
    )

    return AnnualTax(
        taxable_income=taxable_income,
        income_tax=float(income_tax),
        solidarity_tax=solidarity_tax,
        church_tax=church_tax,
    )


def monthly_taxes(annual: AnnualTax) -> TaxBreakdown:
    """Spread annual taxes over 12 months, each rounded to the cent."""
    income_tax = round_cents(to_decimal(annual.income_tax) / 12)
    solidarity_tax = round_cents(to_decimal(annual.solidarity_tax) / 12)
    church_tax = round_cents(to_decimal(annual.church_tax) / 12)
    return TaxBreakdown(
        income_tax=income_tax,
        solidarity_tax=solidarity_tax,
        church_tax=church_tax,
        total=sum_cents(income_tax, solidarity_tax, church_tax),
    )


def estimate_income_tax_flat(
    gross_monthly: float,
    tax_class: Union[TaxClass, int, str],
    rules: FlatEstimateRules,
) -> float:
    """Monthly income tax from a flat rate on the whole yearly gross.

    Quick approximation used for secondary employments; class VI has its own
    brackets, other classes share one set scaled by a per-class factor.
    """
    if gross_monthly < 0:
        raise InvalidInput(f"Monthly gross must not be negative, got {gross_monthly}")
    tax_class = parse_tax_class(tax_class)

    yearly = to_decimal(gross_monthly) * 12
    if yearly <= to_decimal(rules.exempt_up_to):
        return 0.0

    brackets = rules.class_vi if tax_class == TaxClass.VI else rules.standard
    lower = to_decimal(rules.exempt_up_to)
    rate = Decimal("0")
    for bracket in brackets:
        if bracket.up_to is None or yearly <= to_decimal(bracket.up_to):
            rate = to_decimal(bracket.rate) + (yearly - lower) * to_decimal(bracket.slope)
            break
        lower = to_decimal(bracket.up_to)

    if tax_class != TaxClass.VI:
        rate *= to_decimal(rules.class_factors.get(int(tax_class), 1))

    return round_cents(yearly * rate / 12)
