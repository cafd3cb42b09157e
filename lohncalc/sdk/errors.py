"""Error taxonomy for payroll calculations.

Components raise these exceptions. The public entry points in
``lohncalc.sdk.payroll`` catch them and hand back a ``CalculationError``
result instead, so one bad employee never aborts a batch run.
"""

from typing import Optional


class PayrollError(Exception):
    """Base class for all calculation failures."""

    code = "payroll_error"

    def __init__(self, message: str, employee_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.employee_id = employee_id


class InvalidInput(PayrollError, ValueError):
    """Negative gross/hours/rate, malformed tax class, or similar."""

    code = "invalid_input"


class UnknownRateYear(PayrollError):
    """No rate table is registered for the requested year."""

    code = "unknown_rate_year"

    def __init__(self, year: int, available: Optional[list] = None):
        available = sorted(available or [])
        hint = f" (available: {', '.join(str(y) for y in available)})" if available else ""
        super().__init__(f"No rate table registered for year {year}{hint}")
        self.year = year
        self.available = available


class NoEmploymentError(PayrollError):
    """Multi-employment distribution invoked with an empty employment set."""

    code = "no_employment"

    def __init__(self, message: str = "At least one employment is required", employee_id: Optional[str] = None):
        super().__init__(message, employee_id)


class ConfigurationError(PayrollError):
    """Settings, rate tables or surcharge schemes on disk are unusable."""

    code = "configuration"


class RateTableError(ConfigurationError):
    """Raised when a rate table or surcharge scheme file cannot be parsed or validated."""
    pass
