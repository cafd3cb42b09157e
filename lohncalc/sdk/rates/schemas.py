"""Pydantic schemas for rate table validation.

These schemas validate the rate_tables/<year>.yaml files and provide typed,
read-only access to the statutory constants of one year: income tax tariff,
allowances, solidarity surcharge, church tax, social insurance rates and
contribution ceilings.
"""

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProgressionZone(BaseModel):
    """Progressive zone of the § 32a tariff: ``(quadratic * y + linear) * y + constant``.

    ``y`` is the income above the zone's lower bound divided by 10,000.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    up_to: int = Field(..., gt=0, description="Upper bound of the zone (inclusive)")
    quadratic: float = Field(..., ge=0)
    linear: float = Field(..., ge=0)
    constant: float = Field(default=0, ge=0)


class ProportionalZone(BaseModel):
    """Linear zone of the § 32a tariff: ``rate * x - deduction``."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    up_to: Optional[int] = Field(default=None, description="Upper bound (None for the top zone)")
    rate: float = Field(..., gt=0, le=1)
    deduction: float = Field(..., ge=0)


class ClassVVIRules(BaseModel):
    """Parameters of the tax class V/VI formula."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    thresholds: Tuple[int, int, int] = Field(..., description="W1, W2, W3 for classes V/VI")
    minimum_rate: float = Field(..., gt=0, le=1)
    upper_rates: Tuple[float, float] = Field(..., description="Rates above W2 and above W3")


class IncomeTaxRules(BaseModel):
    """§ 32a EStG tariff for one year."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    basic_allowance: int = Field(..., gt=0, description="Grundfreibetrag")
    progression_zones: Tuple[ProgressionZone, ...]
    proportional_zones: Tuple[ProportionalZone, ...]
    class_v_vi: ClassVVIRules

    @model_validator(mode="after")
    def check_zone_order(self) -> "IncomeTaxRules":
        """Zones must be ascending and only the last one may be open-ended."""
        bounds = [self.basic_allowance]
        bounds += [z.up_to for z in self.progression_zones]
        bounds += [z.up_to for z in self.proportional_zones[:-1]]
        if any(b is None for b in bounds):
            raise ValueError("only the top proportional zone may omit up_to")
        if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
            raise ValueError(f"tariff zone bounds must be strictly ascending, got {bounds}")
        if self.proportional_zones and self.proportional_zones[-1].up_to is not None:
            raise ValueError("top proportional zone must be open-ended")
        return self


class AllowanceRules(BaseModel):
    """Lump sums and allowances deducted before the tariff."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    work_expenses: float = Field(..., ge=0, description="Arbeitnehmer-Pauschbetrag")
    special_expenses: float = Field(..., ge=0, description="Sonderausgaben-Pauschbetrag")
    child: float = Field(..., ge=0, description="Kinderfreibetrag per child")
    single_parent: float = Field(..., ge=0, description="Entlastungsbetrag (class II)")
    provision_rate: float = Field(..., ge=0, le=1, description="Simplified Vorsorgepauschale rate")
    provision_cap: float = Field(..., ge=0, description="Simplified Vorsorgepauschale cap")


class SolidarityRules(BaseModel):
    """Solidaritätszuschlag parameters (annual amounts)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    rate: float = Field(..., ge=0, le=1)
    exemption: float = Field(..., ge=0, description="Freigrenze on annual income tax")
    mitigation_rate: float = Field(..., ge=0, le=1, description="Milderungszone rate")


class ChurchTaxRules(BaseModel):
    """Church tax percentages per federal state."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_rate: float = Field(..., ge=0, le=100)
    state_rates: Dict[str, float] = Field(default_factory=dict)

    def rate_for_state(self, state: Optional[str]) -> float:
        """Church tax percentage for a state code (e.g. 'BY'), default otherwise."""
        if not state:
            return self.default_rate
        return self.state_rates.get(state.upper(), self.default_rate)


class ContributionRate(BaseModel):
    """Employee/employer split of one insurance type, in percent."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    employee: float = Field(..., ge=0, le=100)
    employer: float = Field(..., ge=0, le=100)

    @property
    def total(self) -> float:
        return self.employee + self.employer


class HealthRate(ContributionRate):
    """Health insurance rates plus the average additional contribution."""

    average_additional: float = Field(..., ge=0, le=100, description="Durchschnittlicher Zusatzbeitrag")


class CareRate(ContributionRate):
    """Care insurance rates plus the childless surcharge."""

    childless_surcharge: float = Field(..., ge=0, le=100, description="Employee-only surcharge in pp")
    childless_surcharge_min_age: int = Field(..., ge=0, description="Surcharge applies above this age")


class SocialInsuranceRates(BaseModel):
    """Contribution rates for the four insurance types."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    pension: ContributionRate
    unemployment: ContributionRate
    health: HealthRate
    care: CareRate


class Ceilings(BaseModel):
    """Monthly Beitragsbemessungsgrenzen."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    pension_west: float = Field(..., gt=0)
    pension_east: float = Field(..., gt=0)
    health: float = Field(..., gt=0)

    def pension(self, is_east_germany: bool) -> float:
        """RV/AV ceiling for the region."""
        return self.pension_east if is_east_germany else self.pension_west


class FlatBracket(BaseModel):
    """Flat estimate bracket: ``rate + (income - lower) * slope`` on the whole income."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    up_to: Optional[float] = None
    rate: float = Field(..., ge=0, le=1)
    slope: float = Field(default=0, ge=0)


class FlatEstimateRules(BaseModel):
    """Flat-bracket income tax approximation for secondary employments."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    exempt_up_to: float = Field(..., ge=0)
    class_vi: Tuple[FlatBracket, ...]
    standard: Tuple[FlatBracket, ...]
    class_factors: Dict[int, float] = Field(default_factory=dict)


class RateTable(BaseModel):
    """Complete statutory constants for one year."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    year: int = Field(..., ge=2000, le=2100)
    income_tax: IncomeTaxRules
    allowances: AllowanceRules
    solidarity: SolidarityRules
    church_tax: ChurchTaxRules
    social_insurance: SocialInsuranceRates
    ceilings: Ceilings
    minimum_wage: float = Field(..., gt=0, description="Hourly statutory minimum wage")
    minijob_limit: float = Field(..., gt=0, description="Monthly minijob earnings limit")
    flat_estimate: FlatEstimateRules
