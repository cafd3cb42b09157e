"""Pydantic schemas for payroll inputs and results.

All schemas use extra='forbid' to reject unknown fields and frozen=True so a
result is never mutated after construction. Input schemas also accept the
camelCase keys used by the web front end (``grossSalary``, ``taxClass`` ...).
"""

from datetime import date
from enum import IntEnum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidInput

# Rounding tolerance for coherence checks (half a cent)
TOLERANCE = 0.005


# =============================================================================
# Tax class
# =============================================================================


class TaxClass(IntEnum):
    """Steuerklasse I-VI."""

    I = 1
    II = 2
    III = 3
    IV = 4
    V = 5
    VI = 6

    @property
    def roman(self) -> str:
        return self.name


_ROMAN = {c.name: c for c in TaxClass}


def parse_tax_class(value: Union[int, str, TaxClass]) -> TaxClass:
    """Parse a tax class from 1-6, "1"-"6" or "I"-"VI".

    Raises:
        InvalidInput: If the value is not a valid tax class
    """
    if isinstance(value, TaxClass):
        return value
    if isinstance(value, bool):
        raise InvalidInput(f"Malformed tax class: {value!r}")
    if isinstance(value, int):
        if 1 <= value <= 6:
            return TaxClass(value)
        raise InvalidInput(f"Malformed tax class: {value!r}")
    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit() and 1 <= int(text) <= 6:
            return TaxClass(int(text))
        if text in _ROMAN:
            return _ROMAN[text]
    raise InvalidInput(f"Malformed tax class: {value!r}")


TaxClassField = Annotated[TaxClass, BeforeValidator(parse_tax_class)]


class InputModel(BaseModel):
    """Base for inputs: snake_case or camelCase keys, immutable."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ResultModel(BaseModel):
    """Base for results."""

    model_config = ConfigDict(extra="forbid", frozen=True)


# =============================================================================
# Tax
# =============================================================================


class TaxParams(InputModel):
    """Inputs to the annual income tax calculation."""

    gross_yearly: float = Field(..., ge=0, description="Yearly taxable gross")
    tax_class: TaxClassField = TaxClass.I
    child_allowances: float = Field(default=0, ge=0, description="Kinderfreibetragszähler")
    church_tax: bool = False
    church_tax_rate: float = Field(default=9, ge=0, le=100, description="Percent of income tax")
    health_insurance_additional_rate: Optional[float] = Field(default=None, ge=0, le=100)
    is_east_germany: bool = False
    is_childless: bool = True
    age: int = Field(default=30, ge=0, le=130)


class AnnualTax(ResultModel):
    """Annual tax amounts from the tax calculator."""

    taxable_income: int = Field(..., ge=0, description="zu versteuerndes Einkommen (zvE)")
    income_tax: float = Field(..., ge=0)
    solidarity_tax: float = Field(..., ge=0)
    church_tax: float = Field(..., ge=0)

    @property
    def total(self) -> float:
        return self.income_tax + self.solidarity_tax + self.church_tax


class TaxBreakdown(ResultModel):
    """Monthly tax amounts."""

    income_tax: float = Field(..., ge=0)
    solidarity_tax: float = Field(..., ge=0)
    church_tax: float = Field(..., ge=0)
    total: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_total(self) -> "TaxBreakdown":
        expected = self.income_tax + self.solidarity_tax + self.church_tax
        if abs(self.total - expected) > TOLERANCE:
            raise ValueError(f"taxes.total ({self.total:.2f}) != sum of taxes ({expected:.2f})")
        return self

    @classmethod
    def zero(cls) -> "TaxBreakdown":
        return cls(income_tax=0, solidarity_tax=0, church_tax=0, total=0)


# =============================================================================
# Social insurance
# =============================================================================


class ContributionSplit(ResultModel):
    """Employee/employer amounts of one insurance type."""

    employee: float = Field(..., ge=0)
    employer: float = Field(..., ge=0)
    total: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_total(self) -> "ContributionSplit":
        if abs(self.total - (self.employee + self.employer)) > TOLERANCE:
            raise ValueError(
                f"total ({self.total:.2f}) != employee + employer "
                f"({self.employee + self.employer:.2f})"
            )
        return self


class SocialInsuranceBreakdown(ResultModel):
    """Monthly contributions for the four insurance types."""

    pension: ContributionSplit
    unemployment: ContributionSplit
    health: ContributionSplit
    care: ContributionSplit
    total: ContributionSplit
    pension_base: float = Field(..., ge=0, description="Assessable base for RV/AV")
    health_base: float = Field(..., ge=0, description="Assessable base for KV/PV")


# =============================================================================
# Overtime and surcharges
# =============================================================================


class SurchargeScheme(ResultModel):
    """Surcharge percentages (as fractions) applied per hour category."""

    name: str = "custom"
    label: Optional[str] = None
    overtime: float = Field(..., ge=0)
    night: float = Field(..., ge=0)
    deep_night: Optional[float] = Field(default=None, ge=0, description="Rate for 0-4 h; night rate when unset")
    sunday: float = Field(..., ge=0)
    holiday: float = Field(..., ge=0)
    base_cap: Optional[float] = Field(default=None, gt=0, description="Hourly base cap for surcharges")


class WorkingTime(InputModel):
    """Hours worked in a period. Categories overlap: a Sunday night hour counts twice."""

    regular_hours: float = Field(default=0, ge=0)
    overtime_hours: float = Field(default=0, ge=0)
    night_hours: float = Field(default=0, ge=0)
    deep_night_hours: float = Field(default=0, ge=0, description="Night hours between 0 and 4 h, not in night_hours")
    sunday_hours: float = Field(default=0, ge=0)
    holiday_hours: float = Field(default=0, ge=0)


class OvertimeCalculation(WorkingTime):
    """Hours worked plus the hourly base rate."""

    hourly_rate: float = Field(..., ge=0)


class OvertimeResult(ResultModel):
    """Pay components from categorized hours."""

    hourly_rate: float
    regular_pay: float = Field(..., ge=0)
    overtime_pay: float = Field(..., ge=0, description="Base rate plus surcharge for overtime hours")
    overtime_surcharge: float = Field(..., ge=0, description="Surcharge part of overtime_pay")
    night_bonus: float = Field(..., ge=0)
    deep_night_bonus: float = Field(default=0, ge=0)
    sunday_bonus: float = Field(..., ge=0)
    holiday_bonus: float = Field(..., ge=0)
    total_bonuses: float = Field(..., ge=0, description="All surcharge components")
    total_gross_pay: float = Field(..., ge=0)
    scheme: str


# =============================================================================
# Multi-employment
# =============================================================================


class Employment(InputModel):
    """One of a person's concurrent employments."""

    id: str
    employer_id: str
    employer_name: Optional[str] = None
    gross_monthly: float = Field(..., ge=0)
    weekly_hours: float = Field(default=0, ge=0)
    tax_class: TaxClassField = TaxClass.I
    start_date: date


class SocialInsuranceShare(ResultModel):
    """Contributions of one employment after ceiling distribution."""

    employment_id: str
    employer_id: str
    gross: float = Field(..., ge=0)
    share_percent: float = Field(..., ge=0, le=100)
    contributions: SocialInsuranceBreakdown


class EmploymentDetail(ResultModel):
    """Per-employment outcome."""

    employment: Employment
    tax_class: TaxClass = Field(..., description="Assigned class (VI for secondary employments)")
    is_main_employment: bool
    gross_monthly: float = Field(..., ge=0)
    income_tax: float = Field(..., ge=0)
    solidarity_tax: float = Field(default=0, ge=0)
    church_tax: float = Field(default=0, ge=0)
    social_insurance_employee: float = Field(..., ge=0)
    social_insurance_employer: float = Field(..., ge=0)
    net_monthly: float


class CeilingDistribution(ResultModel):
    """How one contribution ceiling was shared across employments."""

    ceiling: float = Field(..., gt=0)
    total_gross: float = Field(..., ge=0)
    total_assessable: float = Field(..., ge=0)
    capped: bool


class MinijobCheck(ResultModel):
    """Combined minijob earnings against the monthly minijob limit."""

    total_income: float = Field(..., ge=0)
    limit: float = Field(..., gt=0)
    is_over_limit: bool
    excess_amount: float = Field(..., ge=0)
    message: str


class MultiEmploymentResult(ResultModel):
    """Outcome of distributing one person's concurrent employments."""

    total_gross: float = Field(..., ge=0)
    total_net: float
    main_employment: Employment
    employments: List[EmploymentDetail]
    shares: List[SocialInsuranceShare]
    pension_distribution: CeilingDistribution
    health_distribution: CeilingDistribution
    contributions: SocialInsuranceBreakdown
    total_income_tax: float = Field(..., ge=0)
    total_solidarity_tax: float = Field(default=0, ge=0)
    total_church_tax: float = Field(default=0, ge=0)
    tax_method: Literal["statutory", "flat_estimate"]
    minijob_check: Optional[MinijobCheck] = None
    warnings: List[str] = Field(default_factory=list)
    details: List[str] = Field(default_factory=list)


# =============================================================================
# Payroll aggregate
# =============================================================================


class EmployeeInput(InputModel):
    """Everything the payroll core needs to know about one employee."""

    id: Optional[str] = None
    gross_salary: float = Field(default=0, ge=0, description="Monthly gross")
    tax_class: TaxClassField = TaxClass.I
    child_allowances: float = Field(default=0, ge=0)
    church_tax: bool = False
    church_tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    health_insurance_additional_rate: Optional[float] = Field(default=None, ge=0, le=100)
    is_east_germany: bool = False
    is_childless: Optional[bool] = Field(default=None, description="Defaults to child_allowances == 0")
    age: int = Field(default=30, ge=0, le=130)
    weekly_hours: Optional[float] = Field(default=None, gt=0)
    employments: List[Employment] = Field(default_factory=list)


class PayrollPeriod(InputModel):
    """Calendar month of a payroll run."""

    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def parse(cls, value: Union[str, "PayrollPeriod", tuple, dict]) -> "PayrollPeriod":
        """Accept "2025-03", (2025, 3), a dict, or a PayrollPeriod."""
        if isinstance(value, PayrollPeriod):
            return value
        if isinstance(value, tuple):
            return cls(year=value[0], month=value[1])
        if isinstance(value, dict):
            return cls.model_validate(value)
        if isinstance(value, str):
            parts = value.strip().split("-")
            if len(parts) == 2 and all(p.isdigit() for p in parts):
                return cls(year=int(parts[0]), month=int(parts[1]))
        raise InvalidInput(f"Invalid period '{value}'. Use YYYY-MM.")

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"


class PayrollOverrides(InputModel):
    """Per-period adjustments on top of the employee's master data."""

    gross_salary: Optional[float] = Field(default=None, ge=0)
    tax_class: Optional[TaxClassField] = None
    working_time: Optional[WorkingTime] = None
    scheme: Optional[Union[str, SurchargeScheme]] = None
    bonuses: float = Field(default=0, ge=0)
    one_time_payments: float = Field(default=0, ge=0)
    other_deductions: float = Field(default=0, ge=0, description="Advances, unpaid leave; reduce payout only")
    tax_method: Literal["statutory", "flat_estimate"] = "statutory"


class Additions(ResultModel):
    """Gross components of the period."""

    base_salary: float = Field(..., ge=0)
    overtime: Optional[OvertimeResult] = None
    surcharge_pay: float = Field(default=0, ge=0, description="Overtime pay plus bonuses from hours")
    bonuses: float = Field(default=0, ge=0)
    one_time_payments: float = Field(default=0, ge=0)
    total: float = Field(..., ge=0)


class SalaryCalculationResult(ResultModel):
    """Monthly payroll result for one employee.

    Invariants (half-cent tolerance):
        net + total_employee_deductions == gross
        employer_cost == gross + total_employer_deductions
    """

    employee_id: Optional[str] = None
    year: int
    month: int
    tax_class: TaxClass
    gross: float = Field(..., ge=0)
    taxable_income_yearly: int = Field(..., ge=0)
    taxes: TaxBreakdown
    social_insurance: SocialInsuranceBreakdown
    total_employee_deductions: float = Field(..., ge=0)
    total_employer_deductions: float = Field(..., ge=0)
    net: float = Field(..., ge=0)
    employer_cost: float = Field(..., ge=0)
    additions: Additions
    other_deductions: float = Field(default=0, ge=0)
    payout: float
    multi_employment: Optional[MultiEmploymentResult] = None
    calculation_log: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_coherence(self) -> "SalaryCalculationResult":
        """Validate internal consistency of amounts."""
        errors = []

        expected_employee = self.social_insurance.total.employee + self.taxes.total
        if abs(self.total_employee_deductions - expected_employee) > TOLERANCE:
            errors.append(
                f"total_employee_deductions ({self.total_employee_deductions:.2f}) != "
                f"SV employee + taxes ({expected_employee:.2f})"
            )

        if abs(self.total_employer_deductions - self.social_insurance.total.employer) > TOLERANCE:
            errors.append(
                f"total_employer_deductions ({self.total_employer_deductions:.2f}) != "
                f"SV employer ({self.social_insurance.total.employer:.2f})"
            )

        if abs(self.net + self.total_employee_deductions - self.gross) > TOLERANCE:
            errors.append(
                f"net ({self.net:.2f}) + employee deductions "
                f"({self.total_employee_deductions:.2f}) != gross ({self.gross:.2f})"
            )

        if abs(self.employer_cost - (self.gross + self.total_employer_deductions)) > TOLERANCE:
            errors.append(
                f"employer_cost ({self.employer_cost:.2f}) != gross + employer deductions "
                f"({self.gross + self.total_employer_deductions:.2f})"
            )

        if errors:
            raise ValueError("; ".join(errors))

        return self


class NetToGrossResult(ResultModel):
    """Smallest monthly gross whose net reaches a target net."""

    target_net: float = Field(..., ge=0)
    required_gross: float = Field(..., ge=0)
    actual_net: float = Field(..., ge=0)
    difference: float = Field(..., ge=0, description="actual_net - target_net")
    iterations: int = Field(..., ge=0)
    result: SalaryCalculationResult


class CalculationError(ResultModel):
    """Typed failure for one calculation, returned instead of raised."""

    code: Literal["invalid_input", "unknown_rate_year", "no_employment", "configuration"]
    message: str
    employee_id: Optional[str] = None


class PayrollRun(ResultModel):
    """Outcome of a batch run, in input order."""

    year: int
    month: int
    results: List[Union[SalaryCalculationResult, CalculationError]]
    aborted: bool = False

    @property
    def failures(self) -> List[CalculationError]:
        return [r for r in self.results if isinstance(r, CalculationError)]

    @property
    def succeeded(self) -> List[SalaryCalculationResult]:
        return [r for r in self.results if isinstance(r, SalaryCalculationResult)]
