"""Lohn Calc CLI - Command-line interface for German payroll calculations."""

import json
import logging
import os
from datetime import date

import click
from pydantic import ValidationError
from rich.console import Console

from lohncalc import __version__
from lohncalc.sdk import (
    CalculationError,
    PayrollError,
    SettingsError,
    WorkingTime,
    calc_overtime_for_salary,
    calculate,
    calculate_multi,
    calculate_net_to_gross,
    get_default_scheme,
    run_payroll,
)

from .rates_commands import rates as rates_group
from .settings_commands import settings as settings_group
from .renderers.result_renderer import (
    render_multi_result,
    render_net_to_gross,
    render_overtime_result,
    render_payroll_run,
    render_salary_result,
)

FORMAT_OPTION = click.option(
    "--format", "output_format", type=click.Choice(["text", "json"]), default="text",
    help="Output format (default: text)",
)


def _configure_logging(verbose: bool) -> None:
    """Log level from --verbose, else LOG_LEVEL (default WARNING)."""
    level_name = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__, prog_name="lohn-calc")
@click.option("--verbose", "-v", is_flag=True, help="Log every calculation step.")
def cli(verbose):
    """Lohn Calc - German statutory payroll calculations.

    Computes income tax, solidarity surcharge, church tax and social
    insurance for a monthly gross salary, including overtime surcharges
    and multiple concurrent employments.

    Rate tables are loaded from (in order, later wins):

    \b
    1. The packaged rate_tables/ directory
    2. LOHN_CALC_RATES_PATH environment variable, or
    3. settings.json 'rates_dir' key

    Run 'lohn-calc rates list' to see the available years.
    """
    _configure_logging(verbose)


cli.add_command(rates_group)
cli.add_command(settings_group)


def _period(year, month) -> tuple:
    today = date.today()
    return (year or today.year, month or today.month)


def _load_json(path: str):
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {path}: {e}")


def _scheme_or_default(scheme):
    """The --scheme value, else the default_scheme setting."""
    try:
        return scheme or get_default_scheme()
    except SettingsError as e:
        raise click.ClickException(str(e))


def _fail(error: CalculationError):
    who = f"{error.employee_id}: " if error.employee_id else ""
    raise click.ClickException(f"{who}{error.code}: {error.message}")


def _echo_json(model) -> None:
    click.echo(json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False))


def _employee(tax_class, children, church_tax_rate, additional_rate, east, childless, age, weekly_hours) -> dict:
    return {
        "tax_class": tax_class,
        "child_allowances": children,
        "church_tax": church_tax_rate is not None,
        "church_tax_rate": church_tax_rate,
        "health_insurance_additional_rate": additional_rate,
        "is_east_germany": east,
        "is_childless": childless,
        "age": age,
        "weekly_hours": weekly_hours,
    }


def employee_options(f):
    """Master data options shared by calc and net2gross."""
    options = [
        click.option("--year", type=int, help="Tax year (default: current year)"),
        click.option("--month", type=click.IntRange(1, 12), help="Month (default: current month)"),
        click.option("--tax-class", default="I", show_default=True, help="Tax class I-VI or 1-6"),
        click.option("--children", type=float, default=0, help="Child allowances (e.g. 1.5)"),
        click.option("--church-tax-rate", type=float, help="Church tax percent; enables church tax (8 or 9)"),
        click.option("--additional-rate", type=float, help="Health insurer's additional rate in percent"),
        click.option("--east", is_flag=True, help="Use the east pension ceiling"),
        click.option("--childless/--has-children", default=None,
                     help="Care surcharge flag (default: no children allowances)"),
        click.option("--age", type=int, default=30, show_default=True),
        click.option("--weekly-hours", type=float, help="Contract hours per week (minimum wage check)"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@cli.command("calc")
@click.argument("gross", type=float)
@employee_options
@click.option("--overtime", "overtime_hours", type=float, default=0, help="Overtime hours")
@click.option("--night", "night_hours", type=float, default=0, help="Night hours")
@click.option("--deep-night", "deep_night_hours", type=float, default=0, help="Night hours between 0 and 4 h")
@click.option("--sunday", "sunday_hours", type=float, default=0, help="Sunday hours")
@click.option("--holiday", "holiday_hours", type=float, default=0, help="Holiday hours")
@click.option("--scheme", help="Surcharge scheme (default: settings 'default_scheme' or general)")
@click.option("--bonus", type=float, default=0, help="Bonus paid this month")
@click.option("--one-time", type=float, default=0, help="One-time payment this month")
@click.option("--deduction", type=float, default=0, help="Other deductions from the payout")
@FORMAT_OPTION
def calc(gross, year, month, tax_class, children, church_tax_rate, additional_rate, east, childless, age,
         weekly_hours, overtime_hours, night_hours, deep_night_hours, sunday_hours, holiday_hours, scheme,
         bonus, one_time, deduction, output_format):
    """Calculate net pay and employer cost for a monthly GROSS salary.

    Examples:
        lohn-calc calc 4000
        lohn-calc calc 4000 --tax-class III --children 1 --church-tax-rate 8
        lohn-calc calc 3200 --overtime 10 --night 8 --scheme gastronomy
    """
    employee = _employee(tax_class, children, church_tax_rate, additional_rate, east, childless, age, weekly_hours)
    employee["gross_salary"] = gross
    overrides = {
        "bonuses": bonus,
        "one_time_payments": one_time,
        "other_deductions": deduction,
    }
    if any((overtime_hours, night_hours, deep_night_hours, sunday_hours, holiday_hours)):
        overrides["scheme"] = _scheme_or_default(scheme)
        overrides["working_time"] = {
            "overtime_hours": overtime_hours,
            "night_hours": night_hours,
            "deep_night_hours": deep_night_hours,
            "sunday_hours": sunday_hours,
            "holiday_hours": holiday_hours,
        }

    result = calculate(employee, _period(year, month), overrides)
    if isinstance(result, CalculationError):
        _fail(result)

    if output_format == "json":
        _echo_json(result)
        return
    render_salary_result(Console(), result)


@cli.command("net2gross")
@click.argument("net", type=float)
@employee_options
@FORMAT_OPTION
def net2gross(net, year, month, tax_class, children, church_tax_rate, additional_rate, east, childless, age,
              weekly_hours, output_format):
    """Find the monthly gross salary that pays out a target NET.

    Examples:
        lohn-calc net2gross 2500
        lohn-calc net2gross 3000 --tax-class III --church-tax-rate 9
    """
    employee = _employee(tax_class, children, church_tax_rate, additional_rate, east, childless, age, weekly_hours)
    result = calculate_net_to_gross(net, employee, _period(year, month))
    if isinstance(result, CalculationError):
        _fail(result)

    if output_format == "json":
        _echo_json(result)
        return
    render_net_to_gross(Console(), result)


@cli.command("multi")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--year", type=int, help="Tax year (default: current year)")
@click.option("--month", type=click.IntRange(1, 12), help="Month (default: current month)")
@click.option("--method", type=click.Choice(["statutory", "flat_estimate"]), default="statutory",
              show_default=True, help="Income tax method per employment")
@FORMAT_OPTION
def multi(input_file, year, month, method, output_format):
    """Distribute contributions across multiple employments.

    INPUT_FILE is a JSON employee object with an 'employments' list:

    \b
    {"age": 35, "isChildless": true, "employments": [
      {"id": "a", "employerId": "E1", "grossMonthly": 5000,
       "taxClass": "I", "startDate": "2020-01-01"}, ...]}
    """
    data = _load_json(input_file)
    result = calculate_multi(data, _period(year, month), tax_method=method)
    if isinstance(result, CalculationError):
        _fail(result)

    if output_format == "json":
        _echo_json(result)
        return
    render_multi_result(Console(), result)


@cli.command("overtime")
@click.argument("gross", type=float)
@click.option("--regular", "regular_hours", type=float, default=0, help="Regular hours")
@click.option("--overtime", "overtime_hours", type=float, default=0, help="Overtime hours")
@click.option("--night", "night_hours", type=float, default=0, help="Night hours")
@click.option("--deep-night", "deep_night_hours", type=float, default=0, help="Night hours between 0 and 4 h")
@click.option("--sunday", "sunday_hours", type=float, default=0, help="Sunday hours")
@click.option("--holiday", "holiday_hours", type=float, default=0, help="Holiday hours")
@click.option("--scheme", help="Surcharge scheme (default: settings 'default_scheme' or general)")
@FORMAT_OPTION
def overtime(gross, regular_hours, overtime_hours, night_hours, deep_night_hours, sunday_hours, holiday_hours,
             scheme, output_format):
    """Calculate overtime and surcharge pay for a monthly GROSS salary.

    The hourly rate is GROSS / 173.33. Hour categories overlap: a Sunday
    night hour counts in both --night and --sunday. Hours between 0 and 4
    go to --deep-night instead of --night.
    """
    try:
        hours = WorkingTime(
            regular_hours=regular_hours,
            overtime_hours=overtime_hours,
            night_hours=night_hours,
            deep_night_hours=deep_night_hours,
            sunday_hours=sunday_hours,
            holiday_hours=holiday_hours,
        )
        result = calc_overtime_for_salary(gross, hours, _scheme_or_default(scheme))
    except ValidationError as e:
        error = e.errors()[0]
        raise click.ClickException(f"invalid_input: {error['loc'][0]}: {error['msg']}")
    except PayrollError as e:
        raise click.ClickException(e.message)

    if output_format == "json":
        _echo_json(result)
        return
    render_overtime_result(Console(), result)


@cli.command("batch")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--year", type=int, help="Tax year (default: current year)")
@click.option("--month", type=click.IntRange(1, 12), help="Month (default: current month)")
@click.option("--fail-fast", is_flag=True, help="Stop after the first failed employee")
@click.option("--workers", type=click.IntRange(min=1), help="Worker threads")
@click.option("--scheme", help="Surcharge scheme for overrides without one "
                               "(default: settings 'default_scheme' or general)")
@FORMAT_OPTION
def batch(input_file, year, month, fail_fast, workers, scheme, output_format):
    """Run payroll for every employee in INPUT_FILE.

    INPUT_FILE is a JSON list of employee objects, or an object with
    'employees' and optional 'overrides' keyed by employee id. Failed
    employees are reported at the end; the exit code is 1 if any failed.
    """
    data = _load_json(input_file)
    if isinstance(data, list):
        employees, overrides = data, {}
    elif isinstance(data, dict) and isinstance(data.get("employees"), list):
        employees, overrides = data["employees"], data.get("overrides") or {}
        if not isinstance(overrides, dict):
            raise click.ClickException("'overrides' must map employee ids to overrides")
    else:
        raise click.ClickException("Expected a list of employees or {'employees': [...]}")

    try:
        run = run_payroll(employees, _period(year, month), overrides=overrides,
                          max_workers=workers, fail_fast=fail_fast, scheme=_scheme_or_default(scheme))
    except ValidationError as e:
        raise click.ClickException(f"invalid_input: {e.errors()[0]['msg']}")
    except PayrollError as e:
        raise click.ClickException(e.message)

    if output_format == "json":
        _echo_json(run)
    else:
        render_payroll_run(Console(), run)

    if run.failures:
        raise click.ClickException(f"{len(run.failures)} of {len(employees)} calculations failed")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
