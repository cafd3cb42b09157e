"""Lohn Calc SDK - Core functionality for German payroll calculations."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    get_rates_dir,
    get_default_scheme,
    SettingsError,
)

from .errors import (
    PayrollError,
    InvalidInput,
    UnknownRateYear,
    NoEmploymentError,
    ConfigurationError,
    RateTableError,
)

from .rates import (
    RateTable,
    RateTableProvider,
    rates,
    available_years,
    publish,
    get_provider,
    reset_provider,
)

from .schemas import (
    TaxClass,
    parse_tax_class,
    TaxParams,
    AnnualTax,
    TaxBreakdown,
    ContributionSplit,
    SocialInsuranceBreakdown,
    SurchargeScheme,
    WorkingTime,
    OvertimeCalculation,
    OvertimeResult,
    Employment,
    MultiEmploymentResult,
    EmployeeInput,
    PayrollPeriod,
    PayrollOverrides,
    SalaryCalculationResult,
    NetToGrossResult,
    CalculationError,
    PayrollRun,
)

from .taxes import (
    calc_annual_tax,
    calc_social_insurance,
    estimate_income_tax_flat,
)

from .overtime import (
    calc_overtime,
    calc_overtime_for_salary,
    hourly_rate_from_monthly,
    list_surcharge_schemes,
    load_surcharge_scheme,
    SurchargeSchemeRegistry,
    get_scheme_registry,
    reset_scheme_registry,
)

from .multi_employment import (
    calculate_multi_employment,
    check_minijob_limit,
    distribute_ceiling,
    identify_main_employment,
)

from .employee import EmployeeRecord, build_employee_input

from .payroll import calculate, calculate_multi, calculate_net_to_gross, run_payroll

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "get_rates_dir",
    "get_default_scheme",
    "SettingsError",
    # Errors
    "PayrollError",
    "InvalidInput",
    "UnknownRateYear",
    "NoEmploymentError",
    "ConfigurationError",
    "RateTableError",
    # Rate tables
    "RateTable",
    "RateTableProvider",
    "rates",
    "available_years",
    "publish",
    "get_provider",
    "reset_provider",
    # Schemas
    "TaxClass",
    "parse_tax_class",
    "TaxParams",
    "AnnualTax",
    "TaxBreakdown",
    "ContributionSplit",
    "SocialInsuranceBreakdown",
    "SurchargeScheme",
    "WorkingTime",
    "OvertimeCalculation",
    "OvertimeResult",
    "Employment",
    "MultiEmploymentResult",
    "EmployeeInput",
    "PayrollPeriod",
    "PayrollOverrides",
    "SalaryCalculationResult",
    "NetToGrossResult",
    "CalculationError",
    "PayrollRun",
    # Calculators
    "calc_annual_tax",
    "calc_social_insurance",
    "estimate_income_tax_flat",
    "calc_overtime",
    "calc_overtime_for_salary",
    "hourly_rate_from_monthly",
    "list_surcharge_schemes",
    "load_surcharge_scheme",
    "SurchargeSchemeRegistry",
    "get_scheme_registry",
    "reset_scheme_registry",
    "calculate_multi_employment",
    "check_minijob_limit",
    "distribute_ceiling",
    "identify_main_employment",
    "EmployeeRecord",
    "build_employee_input",
    # Payroll
    "calculate",
    "calculate_multi",
    "calculate_net_to_gross",
    "run_payroll",
]
