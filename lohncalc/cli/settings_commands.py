"""Settings CLI commands for Lohn Calc.

Manages settings.json - extra rates directory, default surcharge scheme.
"""

import click
from pathlib import Path

from lohncalc.sdk import (
    PayrollError,
    SettingsError,
    get_default_scheme,
    get_rates_dir,
    get_setting,
    get_settings_path,
    load_settings,
    load_surcharge_scheme,
    reset_provider,
    reset_scheme_registry,
    set_setting,
)


@click.group()
def settings():
    """Manage settings (settings.json).

    Available settings:
    - rates_dir: extra directory of <year>.yaml rate tables
    - default_scheme: surcharge scheme used when none is given
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and their values."""
    settings_path = get_settings_path()
    try:
        current = load_settings()
    except SettingsError as e:
        raise click.ClickException(str(e))

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if not current:
        click.echo("No settings configured (using defaults).")
    else:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")

    click.echo()
    click.echo("Effective values:")
    rates_dir = get_rates_dir()
    click.echo(f"  rates_dir: {rates_dir if rates_dir else '(packaged tables only)'}")
    click.echo(f"  default_scheme: {get_default_scheme()}")


@settings.command("rates-dir")
@click.argument("path", required=False, type=click.Path())
@click.option("--clear", is_flag=True, help="Clear custom rates_dir, use packaged tables only")
def settings_rates_dir(path, clear):
    """Set or clear the extra rate-table directory.

    PATH holds <year>.yaml files that add or replace packaged rate tables,
    and optionally a surcharge_schemes.yaml.

    Examples:
        lohn-calc settings rates-dir ~/lohn-calc/rates
        lohn-calc settings rates-dir --clear
    """
    if clear:
        if get_setting("rates_dir"):
            set_setting("rates_dir", None)
            reset_provider()
            reset_scheme_registry()
            click.echo("Cleared rates_dir setting.")
        else:
            click.echo("rates_dir was not set.")
        return

    if not path:
        current = get_setting("rates_dir")
        if current:
            click.echo(f"Current rates_dir: {current}")
        else:
            click.echo("No custom rates_dir set. Using packaged tables only.")
        return

    rates_path = Path(path).expanduser().resolve()
    if not rates_path.is_dir():
        raise click.ClickException(f"Not a directory: {rates_path}")

    set_setting("rates_dir", str(rates_path))
    reset_provider()
    reset_scheme_registry()
    click.echo(f"Set rates_dir: {rates_path}")
    click.echo(f"Saved to: {get_settings_path()}")


@settings.command("scheme")
@click.argument("name", required=False)
@click.option("--clear", is_flag=True, help="Revert to the 'general' scheme")
def settings_scheme(name, clear):
    """Set or clear the default surcharge scheme.

    Examples:
        lohn-calc settings scheme gastronomy
        lohn-calc settings scheme --clear
    """
    if clear:
        set_setting("default_scheme", None)
        click.echo(f"Default scheme is now: {get_default_scheme()}")
        return

    if not name:
        click.echo(f"Default scheme: {get_default_scheme()}")
        return

    try:
        scheme = load_surcharge_scheme(name)
    except PayrollError as e:
        raise click.ClickException(e.message)

    set_setting("default_scheme", scheme.name)
    click.echo(f"Set default_scheme: {scheme.name}")
