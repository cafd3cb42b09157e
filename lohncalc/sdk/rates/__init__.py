"""rates - Year-versioned statutory constants.

Scope:
- Rate table schemas (tariff zones, allowances, SV rates, BBG ceilings)
- Loading rate_tables/<year>.yaml and the configured extra directory
- Process-wide provider with atomic hot-publishing

Usage:
    from lohncalc.sdk.rates import rates

    table = rates(2025)
    table.ceilings.pension(is_east_germany=False)  # 8050.0
"""

from .schemas import RateTable
from .provider import (
    RateTableProvider,
    available_years,
    get_packaged_rates_dir,
    get_provider,
    load_rate_table,
    publish,
    rates,
    reset_provider,
)

__all__ = [
    "RateTable",
    "RateTableProvider",
    "available_years",
    "get_packaged_rates_dir",
    "get_provider",
    "load_rate_table",
    "publish",
    "rates",
    "reset_provider",
]
