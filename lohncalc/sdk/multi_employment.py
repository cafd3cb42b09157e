"""Concurrent employments of one person (Mehrfachbeschäftigung).

The main employment is the one with the highest gross, ties going to the
earliest start date. It keeps its tax class; every other employment is taxed
in class VI. When the combined gross exceeds a contribution ceiling, the
ceiling is shared in proportion to gross, separately for the pension ceiling
(RV/AV) and the health ceiling (KV/PV).

The ceiling split depends on the whole set, so every call recomputes all
employments from scratch.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from .errors import InvalidInput, NoEmploymentError
from .rates.schemas import RateTable
from .rounding import diff_cents, round_cents, sum_cents, to_decimal
from .schemas import (
    CeilingDistribution,
    ContributionSplit,
    EmploymentDetail,
    Employment,
    MinijobCheck,
    MultiEmploymentResult,
    SocialInsuranceBreakdown,
    SocialInsuranceShare,
    TaxClass,
)
from .taxes import (
    calc_church_tax,
    calc_contributions_on_bases,
    calc_income_tax,
    calc_solidarity_tax,
    calc_taxable_income,
    estimate_income_tax_flat,
)

logger = logging.getLogger(__name__)

TaxMethod = Literal["statutory", "flat_estimate"]
TAX_METHODS = ("statutory", "flat_estimate")


def sort_employments(employments: Iterable[Employment]) -> List[Employment]:
    """Employments by gross descending, then start date ascending."""
    return sorted(employments, key=lambda e: (-e.gross_monthly, e.start_date))


def identify_main_employment(employments: Sequence[Employment]) -> Employment:
    """The employment with the highest gross; ties go to the earliest start.

    Raises:
        NoEmploymentError: If ``employments`` is empty
    """
    if not employments:
        raise NoEmploymentError()
    return sort_employments(employments)[0]


def assign_tax_classes(employments: Sequence[Employment]) -> Dict[str, TaxClass]:
    """Tax class per employment id: main keeps its own, all others get VI."""
    main = identify_main_employment(employments)
    return {e.id: (e.tax_class if e.id == main.id else TaxClass.VI) for e in employments}


def distribute_ceiling(
    employments: Sequence[Employment],
    ceiling: float,
) -> Tuple[Dict[str, float], CeilingDistribution]:
    """Share one contribution ceiling across employments.

    Up to the ceiling, each employment is assessed on its own gross. Above it,
    each base is ``ceiling * gross / total`` rounded to the cent, and the main
    employment takes the rounding residue so the bases add up to the ceiling
    exactly.

    Returns:
        Tuple of (assessable base per employment id, distribution summary)
    """
    main = identify_main_employment(employments)
    total = sum_cents(*(e.gross_monthly for e in employments))

    if total <= ceiling:
        bases = {e.id: round_cents(e.gross_monthly) for e in employments}
        return bases, CeilingDistribution(
            ceiling=ceiling, total_gross=total, total_assessable=total, capped=False
        )

    ceiling_d = to_decimal(ceiling)
    total_d = to_decimal(total)
    bases = {
        e.id: round_cents(ceiling_d * to_decimal(e.gross_monthly) / total_d)
        for e in employments
        if e.id != main.id
    }
    bases[main.id] = diff_cents(ceiling, *bases.values())

    return bases, CeilingDistribution(
        ceiling=ceiling, total_gross=total, total_assessable=round_cents(ceiling), capped=True
    )


def check_minijob_limit(incomes: Iterable[float], limit: float) -> MinijobCheck:
    """Check combined minijob earnings against the monthly limit.

    Above the limit every one of the jobs becomes subject to full social
    insurance.
    """
    total = sum_cents(*incomes)
    over = total > limit
    if over:
        message = (
            f"Combined minijob earnings {total:.2f} exceed the {limit:.2f} limit; "
            f"all of them become subject to social insurance"
        )
    else:
        message = f"Minijobs are within the limit, {diff_cents(limit, total):.2f} remaining"
    return MinijobCheck(
        total_income=total,
        limit=limit,
        is_over_limit=over,
        excess_amount=max(0.0, diff_cents(total, limit)),
        message=message,
    )


def _annual_income_tax(
    gross_monthly: float,
    tax_class: TaxClass,
    child_allowances: float,
    table: RateTable,
    tax_method: str,
) -> Decimal:
    if tax_method == "flat_estimate":
        return to_decimal(estimate_income_tax_flat(gross_monthly, tax_class, table.flat_estimate)) * 12
    allowances = child_allowances if tax_class != TaxClass.VI else 0
    taxable = calc_taxable_income(to_decimal(gross_monthly) * 12, tax_class, allowances, table)
    return to_decimal(calc_income_tax(taxable, tax_class, table))


def _monthly_taxes(
    annual_income_tax: Decimal,
    tax_class: TaxClass,
    church_tax_rate: Optional[float],
    table: RateTable,
) -> Tuple[float, float, float]:
    """Monthly income tax, solidarity surcharge and church tax of one employment."""
    solidarity = calc_solidarity_tax(annual_income_tax, table.solidarity, splitting=tax_class == TaxClass.III)
    church = calc_church_tax(annual_income_tax, church_tax_rate) if church_tax_rate is not None else 0.0
    return (
        round_cents(annual_income_tax / 12),
        round_cents(to_decimal(solidarity) / 12),
        round_cents(to_decimal(church) / 12),
    )


def _sum_breakdowns(parts: Sequence[SocialInsuranceBreakdown]) -> SocialInsuranceBreakdown:
    def total_of(attr: str) -> ContributionSplit:
        employee = sum_cents(*(getattr(p, attr).employee for p in parts))
        employer = sum_cents(*(getattr(p, attr).employer for p in parts))
        return ContributionSplit(employee=employee, employer=employer, total=sum_cents(employee, employer))

    return SocialInsuranceBreakdown(
        pension=total_of("pension"),
        unemployment=total_of("unemployment"),
        health=total_of("health"),
        care=total_of("care"),
        total=total_of("total"),
        pension_base=sum_cents(*(p.pension_base for p in parts)),
        health_base=sum_cents(*(p.health_base for p in parts)),
    )


def calculate_multi_employment(
    employments: Sequence[Employment],
    table: RateTable,
    age: int = 30,
    is_childless: bool = True,
    is_east_germany: bool = False,
    additional_rate: Optional[float] = None,
    child_allowances: float = 0,
    tax_method: TaxMethod = "statutory",
    church_tax_rate: Optional[float] = None,
) -> MultiEmploymentResult:
    """Taxes and contributions for all of a person's employments.

    Args:
        employments: The full set of concurrent employments
        table: Rate table of the year
        age: Employee age, for the care childless surcharge
        is_childless: Whether the care childless surcharge may apply
        is_east_germany: Selects the east pension ceiling
        additional_rate: Health insurer's additional rate (None for average)
        child_allowances: Child allowances, applied to the main employment only
        tax_method: "statutory" (§ 32a tariff) or "flat_estimate"
        church_tax_rate: Church tax percent, None for no church tax

    Returns:
        MultiEmploymentResult with per-employment detail in input order

    Raises:
        NoEmploymentError: If ``employments`` is empty
        InvalidInput: On duplicate employment ids or an unknown tax method
    """
    if not employments:
        raise NoEmploymentError()
    if tax_method not in TAX_METHODS:
        raise InvalidInput(f"Unknown tax method '{tax_method}'. Use one of: {', '.join(TAX_METHODS)}")
    ids = [e.id for e in employments]
    if len(set(ids)) != len(ids):
        raise InvalidInput(f"Employment ids must be unique, got {ids}")

    main = identify_main_employment(employments)
    tax_classes = assign_tax_classes(employments)

    pension_ceiling = table.ceilings.pension(is_east_germany)
    health_ceiling = table.ceilings.health
    pension_bases, pension_distribution = distribute_ceiling(employments, pension_ceiling)
    health_bases, health_distribution = distribute_ceiling(employments, health_ceiling)
    total_gross = pension_distribution.total_gross

    details: List[EmploymentDetail] = []
    shares: List[SocialInsuranceShare] = []
    contributions: List[SocialInsuranceBreakdown] = []

    for employment in employments:
        tax_class = tax_classes[employment.id]
        sv = calc_contributions_on_bases(
            pension_bases[employment.id],
            health_bases[employment.id],
            age,
            is_childless,
            table,
            additional_rate=additional_rate,
        )
        annual_tax = _annual_income_tax(
            employment.gross_monthly, tax_class, child_allowances, table, tax_method
        )
        income_tax, solidarity_tax, church_tax = _monthly_taxes(annual_tax, tax_class, church_tax_rate, table)
        net = diff_cents(employment.gross_monthly, sv.total.employee, income_tax, solidarity_tax, church_tax)

        share_percent = 0.0
        if total_gross > 0:
            share_percent = round_cents(to_decimal(employment.gross_monthly) * 100 / to_decimal(total_gross))

        shares.append(SocialInsuranceShare(
            employment_id=employment.id,
            employer_id=employment.employer_id,
            gross=round_cents(employment.gross_monthly),
            share_percent=share_percent,
            contributions=sv,
        ))
        details.append(EmploymentDetail(
            employment=employment,
            tax_class=tax_class,
            is_main_employment=employment.id == main.id,
            gross_monthly=round_cents(employment.gross_monthly),
            income_tax=income_tax,
            solidarity_tax=solidarity_tax,
            church_tax=church_tax,
            social_insurance_employee=sv.total.employee,
            social_insurance_employer=sv.total.employer,
            net_monthly=net,
        ))
        contributions.append(sv)
        logger.debug(
            f"employment {employment.id}: class {tax_class.roman} gross {employment.gross_monthly:.2f} "
            f"RV base {pension_bases[employment.id]:.2f} KV base {health_bases[employment.id]:.2f} "
            f"tax {income_tax:.2f} net {net:.2f}"
        )

    warnings = []
    if len(employments) > 1:
        warnings.append("Multiple employments: every employer must be informed about the others")
    if pension_distribution.capped:
        warnings.append(
            f"Total gross {total_gross:.2f} exceeds the pension ceiling {pension_ceiling:.2f}; "
            f"contributions are distributed proportionally"
        )

    minijob_incomes = [e.gross_monthly for e in employments if e.gross_monthly <= table.minijob_limit]
    minijob_check = None
    if len(minijob_incomes) > 1:
        minijob_check = check_minijob_limit(minijob_incomes, table.minijob_limit)
        if minijob_check.is_over_limit:
            warnings.append(minijob_check.message)

    for warning in warnings:
        logger.debug(f"multi-employment warning: {warning}")

    totals = _sum_breakdowns(contributions)
    total_income_tax = sum_cents(*(d.income_tax for d in details))
    total_solidarity_tax = sum_cents(*(d.solidarity_tax for d in details))
    total_church_tax = sum_cents(*(d.church_tax for d in details))
    total_net = sum_cents(*(d.net_monthly for d in details))

    summary = [
        f"Employments: {len(employments)}",
        f"Main employer: {main.employer_name or main.employer_id}",
        f"Total gross: {total_gross:.2f}",
        f"Total SV (employee): {totals.total.employee:.2f}",
        f"Total net: {total_net:.2f}",
        f"Pension ceiling {'(east)' if is_east_germany else '(west)'}: {pension_ceiling:.2f}",
        f"Health ceiling: {health_ceiling:.2f}",
    ]
    for detail, share in zip(details, shares):
        role = "main" if detail.is_main_employment else "secondary"
        summary.append(
            f"{detail.employment.employer_name or detail.employment.employer_id}: "
            f"class {detail.tax_class.roman} ({role}), gross {detail.gross_monthly:.2f}, "
            f"share {share.share_percent:.1f}%, SV {detail.social_insurance_employee:.2f}, "
            f"tax {detail.income_tax:.2f}, net {detail.net_monthly:.2f}"
        )

    return MultiEmploymentResult(
        total_gross=total_gross,
        total_net=total_net,
        main_employment=main,
        employments=details,
        shares=shares,
        pension_distribution=pension_distribution,
        health_distribution=health_distribution,
        contributions=totals,
        total_income_tax=total_income_tax,
        total_solidarity_tax=total_solidarity_tax,
        total_church_tax=total_church_tax,
        tax_method=tax_method,
        minijob_check=minijob_check,
        warnings=warnings,
        details=summary,
    )
