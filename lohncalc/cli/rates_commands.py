"""Rate table CLI commands for Lohn Calc.

Lists and shows the statutory constants the calculators use.
"""

import json

import click
from rich.console import Console

from lohncalc.sdk import (
    InvalidInput,
    RateTableError,
    UnknownRateYear,
    available_years,
    get_rates_dir,
    list_surcharge_schemes,
    rates as get_rates,
)
from lohncalc.sdk.rates import get_packaged_rates_dir

from .renderers.result_renderer import render_rate_table


@click.group()
def rates():
    """Inspect rate tables (statutory constants per year).

    Tables are loaded from the packaged rate_tables/ directory and, if set,
    from LOHN_CALC_RATES_PATH or the 'rates_dir' setting.
    """
    pass


@rates.command("list")
def rates_list():
    """List the years with a registered rate table."""
    try:
        years = available_years()
    except RateTableError as e:
        raise click.ClickException(str(e))

    click.echo(f"Packaged tables: {get_packaged_rates_dir()}")
    extra = get_rates_dir()
    click.echo(f"Extra tables: {extra if extra else '(none)'}")
    click.echo()
    for year in years:
        click.echo(f"  {year}")


@rates.command("show")
@click.argument("year")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text",
              help="Output format (default: text)")
def rates_show(year, output_format):
    """Show the rate table for YEAR."""
    try:
        table = get_rates(year)
    except (InvalidInput, UnknownRateYear) as e:
        raise click.ClickException(e.message)
    except RateTableError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps(table.model_dump(mode="json"), indent=2))
        return

    render_rate_table(Console(), table)


@rates.command("schemes")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text",
              help="Output format (default: text)")
def rates_schemes(output_format):
    """List the surcharge schemes for overtime, night, Sunday and holiday hours."""
    try:
        schemes = list_surcharge_schemes()
    except RateTableError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps({name: s.model_dump(mode="json") for name, s in schemes.items()}, indent=2))
        return

    for name, scheme in sorted(schemes.items()):
        cap = f", base cap {scheme.base_cap:.2f}/h" if scheme.base_cap else ""
        deep = f" (0-4 h {scheme.deep_night:.0%})" if scheme.deep_night is not None else ""
        click.echo(
            f"{name:<14} {scheme.label or '':<24} overtime {scheme.overtime:.0%}, night {scheme.night:.0%}{deep}, "
            f"sunday {scheme.sunday:.0%}, holiday {scheme.holiday:.0%}{cap}"
        )
