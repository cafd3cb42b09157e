"""Payroll aggregator: one result per employee per period.

``calculate`` composes overtime, income tax and social insurance into a
SalaryCalculationResult. It is pure: the rate table is the only shared input
and is never mutated, so identical input gives identical output and calls can
run side by side on a worker pool (``run_payroll``). Surcharge schemes come
from the overrides or the packaged general scheme, never from settings.
``calculate_net_to_gross`` inverts the single-employment calculation.

Public entry points never raise for bad employee data. Validation failures
and PayrollError subclasses, unreadable settings or rate files included,
come back as CalculationError values, so a batch keeps going past one
broken record.
"""

import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .errors import InvalidInput, PayrollError
from .multi_employment import calculate_multi_employment, identify_main_employment
from .overtime import AVERAGE_MONTH_HOURS, calc_overtime_for_salary
from .rates import RateTable, RateTableProvider, get_provider
from .rounding import diff_cents, round_cents, sum_cents, to_decimal
from .schemas import (
    Additions,
    CalculationError,
    EmployeeInput,
    MultiEmploymentResult,
    NetToGrossResult,
    PayrollOverrides,
    PayrollPeriod,
    PayrollRun,
    SalaryCalculationResult,
    SurchargeScheme,
    TaxBreakdown,
    TaxParams,
)
from .taxes import calc_annual_tax, calc_social_insurance, calc_taxable_income, monthly_taxes

logger = logging.getLogger(__name__)

EmployeeLike = Union[EmployeeInput, Mapping[str, Any]]
OverridesLike = Union[PayrollOverrides, Mapping[str, Any], None]
PeriodLike = Union[PayrollPeriod, str, tuple, dict]

# Upper bound doublings before net to gross gives up
MAX_NET_TO_GROSS_ITERATIONS = 40


# =============================================================================
# Input coercion and error conversion
# =============================================================================


def _raw_employee_id(employee: Any) -> Optional[str]:
    if isinstance(employee, EmployeeInput):
        return employee.id
    if isinstance(employee, Mapping) and employee.get("id") is not None:
        return str(employee["id"])
    return None


def _validation_message(error: ValidationError) -> str:
    parts = []
    for e in error.errors():
        loc = ".".join(str(p) for p in e["loc"]) or "input"
        parts.append(f"{loc}: {e['msg']}")
    return "; ".join(parts)


def _to_error(exc: Exception, employee_id: Optional[str]) -> CalculationError:
    if isinstance(exc, ValidationError):
        return CalculationError(code="invalid_input", message=_validation_message(exc), employee_id=employee_id)
    return CalculationError(code=exc.code, message=exc.message, employee_id=exc.employee_id or employee_id)


def _coerce(employee: EmployeeLike, period: PeriodLike, overrides: OverridesLike):
    if not isinstance(employee, EmployeeInput):
        employee = EmployeeInput.model_validate(employee)
    period = PayrollPeriod.parse(period)
    if overrides is None:
        overrides = PayrollOverrides()
    elif not isinstance(overrides, PayrollOverrides):
        overrides = PayrollOverrides.model_validate(overrides)
    return employee, period, overrides


def _month_hours(weekly_hours: Optional[float]) -> Decimal:
    if weekly_hours:
        return to_decimal(weekly_hours) * 13 / 3
    return AVERAGE_MONTH_HOURS


def _church_rate(employee: EmployeeInput, table: RateTable) -> float:
    return table.church_tax.default_rate if employee.church_tax_rate is None else employee.church_tax_rate


# =============================================================================
# Single employment
# =============================================================================


def _extra_pay(base_salary: float, overrides: PayrollOverrides, log: List[str]):
    """Overtime/surcharge result and the pay it adds on top of the salary."""
    if overrides.working_time is None:
        return None, 0.0
    overtime = calc_overtime_for_salary(base_salary, overrides.working_time, overrides.scheme)
    # Regular hours are covered by the monthly salary
    surcharge_pay = diff_cents(overtime.total_gross_pay, overtime.regular_pay)
    log.append(
        f"Overtime ({overtime.scheme}): hourly rate {overtime.hourly_rate:.2f}, "
        f"overtime pay {overtime.overtime_pay:.2f}, surcharges {overtime.total_bonuses:.2f}"
    )
    return overtime, surcharge_pay


def _check_minimum_wage(base_salary: float, weekly_hours: Optional[float], table: RateTable, warnings: List[str]) -> None:
    if base_salary <= 0:
        return
    hourly = to_decimal(base_salary) / _month_hours(weekly_hours)
    if hourly < to_decimal(table.minimum_wage):
        warnings.append(
            f"Hourly rate {round_cents(hourly):.2f} is below the minimum wage {table.minimum_wage:.2f}"
        )


def _calculate_single(
    employee: EmployeeInput,
    period: PayrollPeriod,
    overrides: PayrollOverrides,
    table: RateTable,
) -> SalaryCalculationResult:
    log: List[str] = []
    warnings: List[str] = []

    tax_class = overrides.tax_class or employee.tax_class
    base_salary = employee.gross_salary if overrides.gross_salary is None else overrides.gross_salary
    is_childless = employee.child_allowances == 0 if employee.is_childless is None else employee.is_childless
    church_rate = _church_rate(employee, table)

    overtime, surcharge_pay = _extra_pay(base_salary, overrides, log)
    gross = sum_cents(base_salary, surcharge_pay, overrides.bonuses, overrides.one_time_payments)
    log.append(f"Gross: {gross:.2f} (base {round_cents(base_salary):.2f})")

    annual = calc_annual_tax(
        TaxParams(
            gross_yearly=float(to_decimal(gross) * 12),
            tax_class=tax_class,
            child_allowances=employee.child_allowances,
            church_tax=employee.church_tax,
            church_tax_rate=church_rate,
            health_insurance_additional_rate=employee.health_insurance_additional_rate,
            is_east_germany=employee.is_east_germany,
            is_childless=is_childless,
            age=employee.age,
        ),
        table,
    )
    taxes = monthly_taxes(annual)
    log.append(
        f"Tax class {tax_class.roman}: zvE {annual.taxable_income}, annual income tax "
        f"{annual.income_tax:.2f}, monthly {taxes.income_tax:.2f}"
    )
    log.append(f"Solidarity surcharge {taxes.solidarity_tax:.2f}, church tax {taxes.church_tax:.2f}")

    sv = calc_social_insurance(
        gross,
        employee.age,
        employee.is_east_germany,
        is_childless,
        table,
        additional_rate=employee.health_insurance_additional_rate,
    )
    log.append(f"Social insurance: employee {sv.total.employee:.2f}, employer {sv.total.employer:.2f}")

    pension_ceiling = table.ceilings.pension(employee.is_east_germany)
    if gross > pension_ceiling:
        warnings.append(f"Gross {gross:.2f} exceeds the pension ceiling {pension_ceiling:.2f}; RV/AV capped")
    if gross > table.ceilings.health:
        warnings.append(f"Gross {gross:.2f} exceeds the health ceiling {table.ceilings.health:.2f}; KV/PV capped")
    _check_minimum_wage(base_salary, employee.weekly_hours, table, warnings)

    additions = Additions(
        base_salary=round_cents(base_salary),
        overtime=overtime,
        surcharge_pay=surcharge_pay,
        bonuses=round_cents(overrides.bonuses),
        one_time_payments=round_cents(overrides.one_time_payments),
        total=gross,
    )
    return _assemble(
        employee, period, overrides, tax_class, gross, annual.taxable_income,
        taxes, sv, additions, None, log, warnings,
    )


# =============================================================================
# Multiple employments
# =============================================================================


def _calculate_with_employments(
    employee: EmployeeInput,
    period: PayrollPeriod,
    overrides: PayrollOverrides,
    table: RateTable,
) -> SalaryCalculationResult:
    log: List[str] = []
    warnings: List[str] = []

    if overrides.gross_salary is not None:
        raise InvalidInput("gross_salary override does not apply to multiple employments; set gross per employment")

    is_childless = employee.child_allowances == 0 if employee.is_childless is None else employee.is_childless
    main = identify_main_employment(employee.employments)

    # Period pay and a tax class override belong to the main employment
    overtime, surcharge_pay = _extra_pay(main.gross_monthly, overrides, log)
    extra = sum_cents(surcharge_pay, overrides.bonuses, overrides.one_time_payments)
    update: Dict[str, Any] = {}
    if extra:
        update["gross_monthly"] = sum_cents(main.gross_monthly, extra)
    if overrides.tax_class is not None:
        update["tax_class"] = overrides.tax_class
    employments = [e.model_copy(update=update) if e.id == main.id and update else e for e in employee.employments]

    multi = calculate_multi_employment(
        employments,
        table,
        age=employee.age,
        is_childless=is_childless,
        is_east_germany=employee.is_east_germany,
        additional_rate=employee.health_insurance_additional_rate,
        child_allowances=employee.child_allowances,
        tax_method=overrides.tax_method,
        church_tax_rate=_church_rate(employee, table) if employee.church_tax else None,
    )
    log.extend(multi.details)
    warnings.extend(multi.warnings)

    main_detail = next(d for d in multi.employments if d.is_main_employment)
    taxable_income = calc_taxable_income(
        to_decimal(main_detail.gross_monthly) * 12, main_detail.tax_class, employee.child_allowances, table
    )
    taxes = TaxBreakdown(
        income_tax=multi.total_income_tax,
        solidarity_tax=multi.total_solidarity_tax,
        church_tax=multi.total_church_tax,
        total=sum_cents(multi.total_income_tax, multi.total_solidarity_tax, multi.total_church_tax),
    )
    log.append(
        f"Solidarity surcharge {taxes.solidarity_tax:.2f}, church tax {taxes.church_tax:.2f} "
        f"(sum over employments)"
    )
    weekly_hours = sum(e.weekly_hours for e in employments) or employee.weekly_hours
    if weekly_hours:
        _check_minimum_wage(diff_cents(multi.total_gross, extra), weekly_hours, table, warnings)

    additions = Additions(
        base_salary=diff_cents(multi.total_gross, extra),
        overtime=overtime,
        surcharge_pay=surcharge_pay,
        bonuses=round_cents(overrides.bonuses),
        one_time_payments=round_cents(overrides.one_time_payments),
        total=multi.total_gross,
    )
    return _assemble(
        employee, period, overrides, main_detail.tax_class, multi.total_gross, taxable_income,
        taxes, multi.contributions, additions, multi, log, warnings,
    )


# =============================================================================
# Result assembly
# =============================================================================


def _assemble(
    employee, period, overrides, tax_class, gross, taxable_income,
    taxes, sv, additions, multi, log, warnings,
) -> SalaryCalculationResult:
    total_employee = sum_cents(sv.total.employee, taxes.total)
    total_employer = sv.total.employer
    net = diff_cents(gross, total_employee)
    employer_cost = sum_cents(gross, total_employer)
    other_deductions = round_cents(overrides.other_deductions)
    payout = diff_cents(net, other_deductions)

    log.append(f"Net: {net:.2f}, employer cost: {employer_cost:.2f}")
    if other_deductions:
        log.append(f"Other deductions {other_deductions:.2f}, payout {payout:.2f}")
    if payout < 0:
        warnings.append(f"Payout is negative ({payout:.2f}); other deductions exceed net pay")

    return SalaryCalculationResult(
        employee_id=employee.id,
        year=period.year,
        month=period.month,
        tax_class=tax_class,
        gross=gross,
        taxable_income_yearly=taxable_income,
        taxes=taxes,
        social_insurance=sv,
        total_employee_deductions=total_employee,
        total_employer_deductions=total_employer,
        net=net,
        employer_cost=employer_cost,
        additions=additions,
        other_deductions=other_deductions,
        payout=payout,
        multi_employment=multi,
        calculation_log=log,
        warnings=warnings,
    )


def _log_warnings(result: SalaryCalculationResult) -> None:
    for warning in result.warnings:
        logger.warning(f"{result.employee_id or 'employee'} {result.year}-{result.month:02d}: {warning}")


# =============================================================================
# Public entry points
# =============================================================================


def calculate(
    employee: EmployeeLike,
    period: PeriodLike,
    overrides: OverridesLike = None,
    provider: Optional[RateTableProvider] = None,
) -> Union[SalaryCalculationResult, CalculationError]:
    """Monthly payroll for one employee.

    Args:
        employee: EmployeeInput or a dict with snake_case or camelCase keys
        period: (year, month), "YYYY-MM" or a PayrollPeriod; the year
            selects the rate table
        overrides: Per-period adjustments (hours, bonuses, deductions ...)
        provider: Rate table provider (defaults to the process-wide one)

    Returns:
        SalaryCalculationResult, or CalculationError for invalid input, an
        unknown rate year, or an empty employment set
    """
    employee_id = _raw_employee_id(employee)
    try:
        employee, period, overrides = _coerce(employee, period, overrides)
        table = (provider or get_provider()).rates(period.year)
        if employee.employments:
            result = _calculate_with_employments(employee, period, overrides, table)
        else:
            result = _calculate_single(employee, period, overrides, table)
    except (ValidationError, PayrollError) as e:
        error = _to_error(e, employee_id)
        logger.debug(f"{employee_id or 'employee'}: {error.code}: {error.message}")
        return error

    _log_warnings(result)
    logger.debug(f"{employee_id or 'employee'} {period}: gross {result.gross:.2f} net {result.net:.2f}")
    return result


def calculate_multi(
    employee: EmployeeLike,
    period: PeriodLike,
    tax_method: str = "statutory",
    provider: Optional[RateTableProvider] = None,
) -> Union[MultiEmploymentResult, CalculationError]:
    """Multi-employment distribution for an employee's employments.

    Returns:
        MultiEmploymentResult, or CalculationError (``no_employment`` when
        the employee has no employments)
    """
    employee_id = _raw_employee_id(employee)
    try:
        employee, period, _ = _coerce(employee, period, None)
        table = (provider or get_provider()).rates(period.year)
        is_childless = employee.child_allowances == 0 if employee.is_childless is None else employee.is_childless
        return calculate_multi_employment(
            employee.employments,
            table,
            age=employee.age,
            is_childless=is_childless,
            is_east_germany=employee.is_east_germany,
            additional_rate=employee.health_insurance_additional_rate,
            child_allowances=employee.child_allowances,
            tax_method=tax_method,
            church_tax_rate=_church_rate(employee, table) if employee.church_tax else None,
        )
    except (ValidationError, PayrollError) as e:
        return _to_error(e, employee_id)


def _net_for(
    gross_cents: int,
    employee: EmployeeInput,
    period: PayrollPeriod,
    overrides: PayrollOverrides,
    table: RateTable,
) -> SalaryCalculationResult:
    at_gross = overrides.model_copy(update={"gross_salary": float(Decimal(gross_cents) / 100)})
    return _calculate_single(employee, period, at_gross, table)


def calculate_net_to_gross(
    target_net: float,
    employee: EmployeeLike,
    period: PeriodLike,
    overrides: OverridesLike = None,
    provider: Optional[RateTableProvider] = None,
) -> Union[NetToGrossResult, CalculationError]:
    """Smallest monthly gross whose net pay reaches ``target_net``.

    Binary search in whole cents over the single-employment calculation.
    Net never exceeds gross, so the search starts one cent below the target
    and doubles the upper bound until it is reached. The employee's own
    gross_salary is ignored; every other master data field and override
    applies as in ``calculate``.

    Example:
        calculate_net_to_gross(2426.50, {"tax_class": "I"}, (2025, 3))
        -> required_gross close to 4000.00

    Returns:
        NetToGrossResult, or CalculationError for invalid input, an unknown
        rate year, or an employee with multiple employments
    """
    employee_id = _raw_employee_id(employee)
    try:
        employee, period, overrides = _coerce(employee, period, overrides)
        if employee.employments:
            raise InvalidInput("Net to gross is only defined for a single employment")
        if target_net < 0:
            raise InvalidInput(f"Target net must not be negative, got {target_net}")
        table = (provider or get_provider()).rates(period.year)

        target = to_decimal(round_cents(target_net))
        target_cents = int(target * 100)
        iterations = 0

        # Invariant: net(low) < target <= net(high)
        low = target_cents - 1
        high = max(target_cents * 2, 100)
        result = _net_for(high, employee, period, overrides, table)
        iterations += 1
        while to_decimal(result.net) < target:
            if iterations >= MAX_NET_TO_GROSS_ITERATIONS:
                raise InvalidInput(f"No gross found for a net of {target_net:.2f}")
            low, high = high, high * 2
            result = _net_for(high, employee, period, overrides, table)
            iterations += 1

        while high - low > 1:
            middle = (low + high) // 2
            candidate = _net_for(middle, employee, period, overrides, table)
            iterations += 1
            if to_decimal(candidate.net) >= target:
                high, result = middle, candidate
            else:
                low = middle
    except (ValidationError, PayrollError) as e:
        error = _to_error(e, employee_id)
        logger.debug(f"{employee_id or 'employee'}: {error.code}: {error.message}")
        return error

    logger.debug(
        f"{employee_id or 'employee'} {period}: net {target_net:.2f} needs gross "
        f"{result.gross:.2f} ({iterations} iterations)"
    )
    _log_warnings(result)
    return NetToGrossResult(
        target_net=float(target),
        required_gross=result.gross,
        actual_net=result.net,
        difference=diff_cents(result.net, target),
        iterations=iterations,
        result=result,
    )


def _with_default_scheme(
    overrides: OverridesLike,
    scheme: Union[str, SurchargeScheme, None],
) -> OverridesLike:
    if scheme is None or overrides is None:
        return overrides
    if isinstance(overrides, PayrollOverrides):
        if overrides.scheme is None:
            return overrides.model_copy(update={"scheme": scheme})
        return overrides
    if isinstance(overrides, Mapping) and overrides.get("scheme") is None:
        return {**overrides, "scheme": scheme}
    return overrides


def run_payroll(
    employees: Iterable[EmployeeLike],
    period: PeriodLike,
    overrides: Optional[Mapping[str, OverridesLike]] = None,
    max_workers: Optional[int] = None,
    fail_fast: bool = False,
    provider: Optional[RateTableProvider] = None,
    scheme: Union[str, SurchargeScheme, None] = None,
) -> PayrollRun:
    """Run ``calculate`` for many employees on a thread pool.

    Results keep the input order. Failures are collected as CalculationError
    entries; with ``fail_fast`` no further work is submitted after the first
    failure and the run is marked aborted.

    Args:
        employees: Employee inputs
        period: Payroll period for every employee
        overrides: Per-period overrides keyed by employee id
        max_workers: Thread pool size
        fail_fast: Stop submitting after the first failure
        provider: Rate table provider (defaults to the process-wide one)
        scheme: Surcharge scheme for overrides that name none

    Raises:
        InvalidInput: If ``period`` itself is malformed
    """
    period = PayrollPeriod.parse(period)
    employees = list(employees)
    overrides = overrides or {}
    workers = max_workers or min(32, (os.cpu_count() or 1) + 4)

    results: List[Optional[Union[SalaryCalculationResult, CalculationError]]] = [None] * len(employees)
    aborted = False
    queue = iter(enumerate(employees))
    pending: Dict[Future, int] = {}

    with ThreadPoolExecutor(max_workers=workers) as pool:

        def submit_next() -> None:
            for index, employee in queue:
                employee_overrides = _with_default_scheme(overrides.get(_raw_employee_id(employee) or ""), scheme)
                pending[pool.submit(calculate, employee, period, employee_overrides, provider)] = index
                return

        for _ in range(workers):
            submit_next()

        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                results[index] = future.result()
                if fail_fast and isinstance(results[index], CalculationError):
                    aborted = True
            if not aborted:
                for _ in done:
                    submit_next()

    completed = [r for r in results if r is not None]
    failures = sum(1 for r in completed if isinstance(r, CalculationError))
    logger.info(
        f"payroll run {period}: {len(completed)}/{len(employees)} calculated, {failures} failed"
        f"{', aborted' if aborted else ''}"
    )
    return PayrollRun(year=period.year, month=period.month, results=completed, aborted=aborted)
