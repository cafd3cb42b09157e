"""Rich renderer for payroll results.

Transforms SDK result models into formatted Rich tables.
"""

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.markup import escape

from lohncalc.sdk.rates import RateTable
from lohncalc.sdk.schemas import (
    CalculationError,
    MultiEmploymentResult,
    NetToGrossResult,
    OvertimeResult,
    PayrollRun,
    SalaryCalculationResult,
    SocialInsuranceBreakdown,
)

SV_LABELS = [
    ("pension", "Rentenversicherung"),
    ("unemployment", "Arbeitslosenversicherung"),
    ("health", "Krankenversicherung"),
    ("care", "Pflegeversicherung"),
]


def render_salary_result(console: Console, result: SalaryCalculationResult) -> None:
    """Render one monthly payroll result as a payslip-style table.

    Args:
        console: Rich Console instance
        result: SDK output from calculate()
    """
    _render_warnings(console, result.warnings)

    who = f" ({result.employee_id})" if result.employee_id else ""
    table = Table(
        title=f"Lohnabrechnung {result.year}-{result.month:02d}{who} - Steuerklasse {result.tax_class.roman}",
        box=box.ROUNDED,
    )
    table.add_column("", style="bold", min_width=28)
    table.add_column("Arbeitnehmer", justify="right", min_width=12)
    table.add_column("Arbeitgeber", justify="right", min_width=12)

    # Earnings
    table.add_row("[bold]BRUTTO[/bold]", "", "")
    table.add_row("  Grundgehalt", _fmt(result.additions.base_salary), "")
    if result.additions.surcharge_pay:
        table.add_row("  Mehrarbeit / Zuschläge", _fmt(result.additions.surcharge_pay), "")
    if result.additions.bonuses:
        table.add_row("  Prämien", _fmt(result.additions.bonuses), "")
    if result.additions.one_time_payments:
        table.add_row("  Einmalzahlungen", _fmt(result.additions.one_time_payments), "")
    table.add_row("  [dim]Gesamtbrutto[/dim]", f"[dim]{_fmt(result.gross)}[/dim]", "")
    table.add_row("", "", "")

    # Taxes
    table.add_row("[bold]STEUERN[/bold]", "", "")
    table.add_row("  Lohnsteuer", _fmt(result.taxes.income_tax), "")
    table.add_row("  Solidaritätszuschlag", _fmt(result.taxes.solidarity_tax), "")
    table.add_row("  Kirchensteuer", _fmt(result.taxes.church_tax), "")
    table.add_row("  [dim]Summe Steuern[/dim]", f"[dim]{_fmt(result.taxes.total)}[/dim]", "")
    table.add_row("", "", "")

    # Social insurance
    _add_sv_rows(table, result.social_insurance)
    table.add_row("", "", "")

    table.add_row("Abzüge gesamt", _fmt(result.total_employee_deductions), _fmt(result.total_employer_deductions))
    table.add_row(
        "[bold green]NETTO[/bold green]",
        f"[bold green]{_fmt(result.net)}[/bold green]",
        "",
    )
    if result.other_deductions:
        table.add_row("  Sonstige Abzüge", _fmt(result.other_deductions), "")
        table.add_row("[bold]AUSZAHLUNG[/bold]", f"[bold]{_fmt(result.payout)}[/bold]", "")
    table.add_row("Arbeitgeberkosten", "", f"[bold]{_fmt(result.employer_cost)}[/bold]")

    console.print(table)

    if result.multi_employment:
        render_multi_result(console, result.multi_employment, show_warnings=False)


def render_net_to_gross(console: Console, result: NetToGrossResult) -> None:
    """Render the gross found for a target net, followed by its payslip."""
    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column("key", style="dim")
    summary.add_column("value")
    summary.add_row("Wunschnetto", _fmt(result.target_net))
    summary.add_row("Benötigtes Brutto", f"[bold]{_fmt(result.required_gross)}[/bold]")
    summary.add_row("Tatsächliches Netto", f"{_fmt(result.actual_net)} (+{_fmt(result.difference)})")
    console.print(Panel(summary, title="Netto-Brutto-Rechnung", border_style="green"))
    render_salary_result(console, result.result)


def render_multi_result(console: Console, result: MultiEmploymentResult, show_warnings: bool = True) -> None:
    """Render per-employment detail of a multi-employment distribution."""
    if show_warnings:
        _render_warnings(console, result.warnings)

    table = Table(title=f"Mehrfachbeschäftigung ({result.tax_method})", box=box.ROUNDED)
    table.add_column("Arbeitgeber")
    table.add_column("StKl", justify="center")
    table.add_column("Brutto", justify="right")
    table.add_column("Anteil", justify="right")
    table.add_column("SV (AN)", justify="right")
    table.add_column("Lohnsteuer", justify="right")
    table.add_column("Soli + KiSt", justify="right")
    table.add_column("Netto", justify="right")

    shares = {s.employment_id: s for s in result.shares}
    for detail in result.employments:
        employment = detail.employment
        name = escape(employment.employer_name or employment.employer_id)
        if detail.is_main_employment:
            name = f"[bold]{name}[/bold] (Haupt)"
        share = shares.get(employment.id)
        table.add_row(
            name,
            detail.tax_class.roman,
            _fmt(detail.gross_monthly),
            f"{share.share_percent:.1f}%" if share else "-",
            _fmt(detail.social_insurance_employee),
            _fmt(detail.income_tax),
            _fmt(detail.solidarity_tax + detail.church_tax),
            _fmt(detail.net_monthly),
        )
    table.add_row(
        "[bold]Gesamt[/bold]", "", _fmt(result.total_gross), "",
        _fmt(result.contributions.total.employee), _fmt(result.total_income_tax),
        _fmt(result.total_solidarity_tax + result.total_church_tax),
        f"[green]{_fmt(result.total_net)}[/green]",
    )
    console.print(table)

    ceilings = Table(show_header=False, box=None, padding=(0, 2))
    ceilings.add_column("key", style="dim")
    ceilings.add_column("value")
    for label, dist in (("BBG RV/AV", result.pension_distribution), ("BBG KV/PV", result.health_distribution)):
        state = "[yellow]anteilig verteilt[/yellow]" if dist.capped else "nicht erreicht"
        ceilings.add_row(label, f"{_fmt(dist.ceiling)} - {state}, bemessen {_fmt(dist.total_assessable)}")
    console.print(Panel(ceilings, title="Beitragsbemessungsgrenzen", border_style="dim"))


def render_overtime_result(console: Console, result: OvertimeResult) -> None:
    """Render overtime and surcharge pay components."""
    table = Table(title=f"Zuschläge ({result.scheme}) - Stundensatz {_fmt(result.hourly_rate)}", box=box.ROUNDED)
    table.add_column("", style="bold", min_width=20)
    table.add_column("Betrag", justify="right", min_width=12)

    table.add_row("Grundlohn", _fmt(result.regular_pay))
    table.add_row("Mehrarbeit", _fmt(result.overtime_pay))
    table.add_row("  [dim]davon Zuschlag[/dim]", f"[dim]{_fmt(result.overtime_surcharge)}[/dim]")
    table.add_row("Nachtzuschlag", _fmt(result.night_bonus))
    if result.deep_night_bonus:
        table.add_row("Nachtzuschlag 0-4 Uhr", _fmt(result.deep_night_bonus))
    table.add_row("Sonntagszuschlag", _fmt(result.sunday_bonus))
    table.add_row("Feiertagszuschlag", _fmt(result.holiday_bonus))
    table.add_row("[dim]Zuschläge gesamt[/dim]", f"[dim]{_fmt(result.total_bonuses)}[/dim]")
    table.add_row("[bold green]Gesamt[/bold green]", f"[bold green]{_fmt(result.total_gross_pay)}[/bold green]")
    console.print(table)


def render_payroll_run(console: Console, run: PayrollRun) -> None:
    """Render a batch run as one row per employee."""
    table = Table(title=f"Lohnlauf {run.year}-{run.month:02d}", box=box.ROUNDED)
    table.add_column("Mitarbeiter")
    table.add_column("Brutto", justify="right")
    table.add_column("Netto", justify="right")
    table.add_column("AG-Kosten", justify="right")
    table.add_column("Status")

    for result in run.results:
        if isinstance(result, CalculationError):
            table.add_row(escape(result.employee_id or "?"), "-", "-", "-", f"[red]{result.code}: {escape(result.message)}[/red]")
            continue
        status = "[yellow]" + escape("; ".join(result.warnings)) + "[/yellow]" if result.warnings else "[green]ok[/green]"
        table.add_row(
            result.employee_id or "?",
            _fmt(result.gross),
            _fmt(result.net),
            _fmt(result.employer_cost),
            status,
        )
    console.print(table)

    summary = f"{len(run.succeeded)} berechnet, {len(run.failures)} fehlgeschlagen"
    if run.aborted:
        summary += " [red](abgebrochen)[/red]"
    console.print(summary)


def render_rate_table(console: Console, table_data: RateTable) -> None:
    """Render the statutory constants of one year."""
    it = table_data.income_tax
    si = table_data.social_insurance

    table = Table(show_header=False, box=box.ROUNDED, title=f"Rechengrößen {table_data.year}")
    table.add_column("key", style="bold")
    table.add_column("value", justify="right")

    table.add_row("Grundfreibetrag", _fmt(it.basic_allowance))
    table.add_row("Kinderfreibetrag", _fmt(table_data.allowances.child))
    table.add_row("Entlastungsbetrag (StKl II)", _fmt(table_data.allowances.single_parent))
    table.add_row("Soli-Freigrenze", _fmt(table_data.solidarity.exemption))
    table.add_row("StKl V/VI Schwellen", " / ".join(str(w) for w in it.class_v_vi.thresholds))
    table.add_row("", "")
    table.add_row("RV (AN/AG)", f"{si.pension.employee}% / {si.pension.employer}%")
    table.add_row("AV (AN/AG)", f"{si.unemployment.employee}% / {si.unemployment.employer}%")
    table.add_row("KV (AN/AG)", f"{si.health.employee}% / {si.health.employer}%")
    table.add_row("KV Zusatzbeitrag (Ø)", f"{si.health.average_additional}%")
    table.add_row("PV (AN/AG)", f"{si.care.employee}% / {si.care.employer}%")
    table.add_row("PV Kinderlosenzuschlag", f"{si.care.childless_surcharge}%")
    table.add_row("", "")
    table.add_row("BBG RV West / Ost", f"{_fmt(table_data.ceilings.pension_west)} / {_fmt(table_data.ceilings.pension_east)}")
    table.add_row("BBG KV", _fmt(table_data.ceilings.health))
    table.add_row("Mindestlohn", _fmt(table_data.minimum_wage))
    table.add_row("Minijob-Grenze", _fmt(table_data.minijob_limit))

    console.print(table)


def _add_sv_rows(table: Table, sv: SocialInsuranceBreakdown) -> None:
    table.add_row("[bold]SOZIALVERSICHERUNG[/bold]", "", "")
    for attr, label in SV_LABELS:
        split = getattr(sv, attr)
        table.add_row(f"  {label}", _fmt(split.employee), _fmt(split.employer))
    table.add_row(
        "  [dim]Summe SV[/dim]",
        f"[dim]{_fmt(sv.total.employee)}[/dim]",
        f"[dim]{_fmt(sv.total.employer)}[/dim]",
    )


def _render_warnings(console: Console, warnings: list) -> None:
    for warning in warnings:
        console.print(Panel(
            f"[yellow]{escape(warning)}[/yellow]",
            title="Hinweis",
            border_style="yellow"
        ))


def _fmt(amount: float | None) -> str:
    """Format currency amount."""
    if amount is None:
        return "-"
    return f"{amount:,.2f} €"
