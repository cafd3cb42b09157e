"""Calculation inputs from an employee master record.

Derives the values the calculators need but a master record does not store
directly: age at the end of the payroll period, east/west region from the
federal state, the state's church tax rate, and the childless flag.
"""

import calendar
from datetime import date
from typing import List, Optional

from pydantic import Field

from .errors import InvalidInput
from .rates.schemas import RateTable
from .schemas import Employment, EmployeeInput, InputModel, PayrollPeriod, TaxClass, TaxClassField

DEFAULT_AGE = 30

# Federal state codes (ISO 3166-2:DE suffix)
STATES = {
    "BW": "Baden-Württemberg",
    "BY": "Bayern",
    "BE": "Berlin",
    "BB": "Brandenburg",
    "HB": "Bremen",
    "HH": "Hamburg",
    "HE": "Hessen",
    "MV": "Mecklenburg-Vorpommern",
    "NI": "Niedersachsen",
    "NW": "Nordrhein-Westfalen",
    "RP": "Rheinland-Pfalz",
    "SL": "Saarland",
    "SN": "Sachsen",
    "ST": "Sachsen-Anhalt",
    "SH": "Schleswig-Holstein",
    "TH": "Thüringen",
}

# Berlin counts as west
EAST_STATES = frozenset({"BB", "MV", "SN", "ST", "TH"})


def _fold(name: str) -> str:
    name = name.strip().lower().replace(" ", "-")
    for umlaut, plain in (("ü", "ue"), ("ö", "oe"), ("ä", "ae"), ("ß", "ss")):
        name = name.replace(umlaut, plain)
    return name


_STATE_NAMES = {_fold(name): code for code, name in STATES.items()}


class EmployeeRecord(InputModel):
    """Employee master data as kept by the HR side."""

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    state: Optional[str] = Field(default=None, description="Federal state code or name")
    tax_class: TaxClassField = TaxClass.I
    child_allowances: float = Field(default=0, ge=0)
    church_tax: bool = False
    health_insurance_additional_rate: Optional[float] = Field(default=None, ge=0, le=100)
    gross_salary: float = Field(default=0, ge=0)
    weekly_hours: Optional[float] = Field(default=None, gt=0)
    employments: List[Employment] = Field(default_factory=list)


def normalize_state(state: Optional[str]) -> Optional[str]:
    """Two-letter state code from a code or a state name.

    Raises:
        InvalidInput: If the state is not recognised
    """
    if not state or not state.strip():
        return None
    code = state.strip().upper()
    if code in STATES:
        return code
    folded = _fold(state)
    if folded in _STATE_NAMES:
        return _STATE_NAMES[folded]
    raise InvalidInput(f"Unknown federal state '{state}'")


def is_east_german_state(state: Optional[str]) -> bool:
    """Whether a state uses the east pension ceiling."""
    return normalize_state(state) in EAST_STATES


def period_end(period: PayrollPeriod) -> date:
    """Last day of the payroll month."""
    return date(period.year, period.month, calendar.monthrange(period.year, period.month)[1])


def age_on(date_of_birth: date, on: date) -> int:
    """Completed years of age on a given day."""
    if date_of_birth > on:
        raise InvalidInput(f"Date of birth {date_of_birth} is after {on}")
    before_birthday = (on.month, on.day) < (date_of_birth.month, date_of_birth.day)
    return on.year - date_of_birth.year - int(before_birthday)


def build_employee_input(record: EmployeeRecord, period: PayrollPeriod, table: RateTable) -> EmployeeInput:
    """Calculation input for one employee and payroll period.

    Age is taken at the end of the period so the same record and period
    always give the same input. Without a date of birth the age defaults
    to 30.
    """
    state = normalize_state(record.state)
    age = age_on(record.date_of_birth, period_end(period)) if record.date_of_birth else DEFAULT_AGE

    return EmployeeInput(
        id=record.id,
        gross_salary=record.gross_salary,
        tax_class=record.tax_class,
        child_allowances=record.child_allowances,
        church_tax=record.church_tax,
        church_tax_rate=table.church_tax.rate_for_state(state) if record.church_tax else None,
        health_insurance_additional_rate=record.health_insurance_additional_rate,
        is_east_germany=state in EAST_STATES,
        is_childless=record.child_allowances == 0,
        age=age,
        weekly_hours=record.weekly_hours,
        employments=record.employments,
    )
