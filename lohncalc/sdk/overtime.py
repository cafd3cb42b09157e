"""Overtime and surcharge pay from categorized hours.

Hour categories overlap: an hour worked on a Sunday night counts as night
hour and as Sunday hour, and earns both surcharges. Only regular and overtime
hours carry base pay; night, Sunday and holiday hours add surcharges alone.
Deep-night hours (0-4 h) are night hours paid at the scheme's deep_night
rate where it has one; they are not repeated in night_hours.

Surcharge percentages always come from a SurchargeScheme. Industry schemes
ship in rate_tables/surcharge_schemes.yaml; a surcharge_schemes.yaml in the
configured rates directory adds or replaces schemes by name. Both files are
read once per process into an immutable registry.
"""

import logging
import threading
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from .config import DEFAULT_SCHEME, get_rates_dir
from .errors import InvalidInput, RateTableError
from .rates import get_packaged_rates_dir
from .rounding import round_cents, sum_cents, to_decimal
from .schemas import OvertimeCalculation, OvertimeResult, SurchargeScheme, WorkingTime

logger = logging.getLogger(__name__)

# Average hours per month for a 40h week (40 * 13 / 3)
AVERAGE_MONTH_HOURS = Decimal("173.33")

SCHEMES_FILENAME = "surcharge_schemes.yaml"


def _read_schemes(path: Path) -> Dict[str, SurchargeScheme]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RateTableError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise RateTableError(f"Surcharge schemes in {path} must be a mapping")

    schemes = {}
    for name, values in data.items():
        key = str(name).strip().lower()
        try:
            schemes[key] = SurchargeScheme(name=key, **(values or {}))
        except (TypeError, ValidationError) as e:
            raise RateTableError(f"Invalid surcharge scheme '{name}' in {path}: {e}") from e
    return schemes


class SurchargeSchemeRegistry:
    """Read-only surcharge schemes by lowercase name."""

    def __init__(self, schemes: Optional[Iterable[SurchargeScheme]] = None):
        self._schemes: Mapping[str, SurchargeScheme] = MappingProxyType(
            {s.name: s for s in (schemes or [])}
        )

    @classmethod
    def from_files(cls, *paths: Optional[Path]) -> "SurchargeSchemeRegistry":
        """Load scheme files in order; later files replace schemes of the same name.

        Paths that are None or do not exist are skipped.
        """
        schemes: Dict[str, SurchargeScheme] = {}
        for path in paths:
            if path is None or not Path(path).exists():
                continue
            loaded = _read_schemes(Path(path))
            logger.debug(f"loaded {len(loaded)} surcharge schemes from {path}")
            schemes.update(loaded)
        return cls(schemes.values())

    def get(self, name: str) -> SurchargeScheme:
        """Get a scheme by name, ignoring case and surrounding blanks.

        Raises:
            InvalidInput: If no scheme of that name exists
        """
        key = name.strip().lower()
        try:
            return self._schemes[key]
        except KeyError:
            raise InvalidInput(
                f"Unknown surcharge scheme '{name}'. Available: {', '.join(sorted(self._schemes))}"
            ) from None

    def all(self) -> Mapping[str, SurchargeScheme]:
        return self._schemes


_packaged: Optional[SurchargeSchemeRegistry] = None
_registry: Optional[SurchargeSchemeRegistry] = None
_registry_lock = threading.Lock()


def get_packaged_schemes() -> SurchargeSchemeRegistry:
    """Schemes shipped with the package only, independent of any settings."""
    global _packaged
    registry = _packaged
    if registry is None:
        with _registry_lock:
            if _packaged is None:
                _packaged = SurchargeSchemeRegistry.from_files(get_packaged_rates_dir() / SCHEMES_FILENAME)
            registry = _packaged
    return registry


def get_scheme_registry() -> SurchargeSchemeRegistry:
    """Packaged schemes plus those of the configured rates directory, loaded on first use."""
    global _registry
    registry = _registry
    if registry is None:
        packaged = get_packaged_schemes()
        with _registry_lock:
            if _registry is None:
                rates_dir = get_rates_dir()
                extra = SurchargeSchemeRegistry.from_files(
                    rates_dir / SCHEMES_FILENAME if rates_dir is not None else None
                )
                _registry = SurchargeSchemeRegistry({**packaged.all(), **extra.all()}.values())
            registry = _registry
    return registry


def reset_scheme_registry() -> None:
    """Drop the loaded schemes so the next access rereads the files."""
    global _packaged, _registry
    with _registry_lock:
        _packaged = None
        _registry = None


def list_surcharge_schemes() -> Dict[str, SurchargeScheme]:
    """All known surcharge schemes by name."""
    return dict(get_scheme_registry().all())


def load_surcharge_scheme(name: str) -> SurchargeScheme:
    """Get a surcharge scheme by name.

    Raises:
        InvalidInput: If no scheme of that name exists
    """
    return get_scheme_registry().get(name)


def resolve_scheme(scheme: Union[str, SurchargeScheme, None]) -> SurchargeScheme:
    """Turn a scheme name or a scheme into a scheme.

    None means the packaged general scheme; settings are never consulted here.
    """
    if isinstance(scheme, SurchargeScheme):
        return scheme
    if scheme is None:
        return get_packaged_schemes().get(DEFAULT_SCHEME)
    return load_surcharge_scheme(scheme)


def hourly_rate_from_monthly(gross_monthly: float, month_hours: Optional[float] = None) -> float:
    """Hourly base rate from a monthly salary.

    Args:
        gross_monthly: Monthly base salary
        month_hours: Hours per month (defaults to the 173.33 average)
    """
    if gross_monthly < 0:
        raise InvalidInput(f"Monthly gross must not be negative, got {gross_monthly}")
    hours = AVERAGE_MONTH_HOURS if month_hours is None else to_decimal(month_hours)
    if hours <= 0:
        raise InvalidInput(f"Hours per month must be positive, got {month_hours}")
    return float(to_decimal(gross_monthly) / hours)


def calc_overtime(calc: OvertimeCalculation, scheme: SurchargeScheme) -> OvertimeResult:
    """Pay components for the hours of one period.

    With a base_cap on the scheme, surcharges are computed on
    min(hourly_rate, base_cap); base pay always uses the full rate.

    Example:
        10 overtime hours at 20.00/h, general scheme:
        overtime_pay = 250.00, overtime_surcharge = 50.00
    """
    rate = to_decimal(calc.hourly_rate)
    surcharge_base = rate
    if scheme.base_cap is not None:
        surcharge_base = min(rate, to_decimal(scheme.base_cap))

    def surcharge(hours: float, pct: float) -> float:
        return round_cents(to_decimal(hours) * surcharge_base * to_decimal(pct))

    regular_pay = round_cents(to_decimal(calc.regular_hours) * rate)
    overtime_base = round_cents(to_decimal(calc.overtime_hours) * rate)
    overtime_surcharge = surcharge(calc.overtime_hours, scheme.overtime)
    overtime_pay = sum_cents(overtime_base, overtime_surcharge)
    night_bonus = surcharge(calc.night_hours, scheme.night)
    deep_night_rate = scheme.night if scheme.deep_night is None else scheme.deep_night
    deep_night_bonus = surcharge(calc.deep_night_hours, deep_night_rate)
    sunday_bonus = surcharge(calc.sunday_hours, scheme.sunday)
    holiday_bonus = surcharge(calc.holiday_hours, scheme.holiday)

    total_bonuses = sum_cents(overtime_surcharge, night_bonus, deep_night_bonus, sunday_bonus, holiday_bonus)
    total_gross_pay = sum_cents(
        regular_pay, overtime_pay, night_bonus, deep_night_bonus, sunday_bonus, holiday_bonus
    )

    logger.debug(
        f"overtime ({scheme.name}): rate {calc.hourly_rate:.4f} "
        f"surcharges {total_bonuses:.2f} total {total_gross_pay:.2f}"
    )

    return OvertimeResult(
        hourly_rate=round_cents(rate),
        regular_pay=regular_pay,
        overtime_pay=overtime_pay,
        overtime_surcharge=overtime_surcharge,
        night_bonus=night_bonus,
        deep_night_bonus=deep_night_bonus,
        sunday_bonus=sunday_bonus,
        holiday_bonus=holiday_bonus,
        total_bonuses=total_bonuses,
        total_gross_pay=total_gross_pay,
        scheme=scheme.name,
    )


def calc_overtime_for_salary(
    gross_monthly: float,
    hours: WorkingTime,
    scheme: Union[str, SurchargeScheme, None] = None,
    month_hours: Optional[float] = None,
) -> OvertimeResult:
    """Overtime and surcharges for a salaried employee.

    The hourly rate is derived from the monthly salary; the salary itself
    already covers the regular hours, so callers add only the extra pay.
    Without a scheme the packaged general scheme applies.
    """
    rate = hourly_rate_from_monthly(gross_monthly, month_hours)
    calc = OvertimeCalculation(hourly_rate=rate, **hours.model_dump())
    return calc_overtime(calc, resolve_scheme(scheme))
