"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_calendar import GoogleFreeBusyClient
from ..adapters.graph_client import GraphScheduleClient
from ..adapters.mock_busy_source import JsonBusyPeriodSource
from ..adapters.provider_router import ProviderRouter
from ..adapters.token_providers import GoogleTokenProvider, MsalTokenProvider
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotguardError
from ..domain.models import WEEKDAY_NAMES
from ..domain.presentation import format_date_heading, format_slot, group_slots_by_date
from ..services.availability_engine import AvailabilityEngine, AvailabilityQuery
from ..services.busy_periods import BusyPeriodCollector, BusyPeriodSource
from ..services.rule_source import InMemoryRuleSource
from ..services.slot_validator import SlotValidator

app = typer.Typer(
    name="slotguard",
    help="Compute bookable slots and re-validate them against live calendars",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
BusyFileOption = Annotated[
    Optional[Path],
    typer.Option("--busy-file", help="Read busy times from a JSON file instead of the providers."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_source(config: AppConfig, busy_file: Optional[Path]) -> BusyPeriodSource:
    """Mock source when a busy file is given, provider adapters otherwise."""
    if busy_file:
        return JsonBusyPeriodSource(busy_file, timezone=config.timezone)

    sources = {}
    if config.google:
        sources["google"] = GoogleFreeBusyClient(
            GoogleTokenProvider(config.google.client_id, config.google.client_secret)
        )
    if config.microsoft:
        sources["outlook"] = GraphScheduleClient(
            MsalTokenProvider(
                client_id=config.microsoft.client_id,
                tenant_id=config.microsoft.tenant_id,
                client_secret=config.microsoft.client_secret,
                authority_url=config.microsoft.get_authority_url(),
            )
        )
    return ProviderRouter(sources)


def _parse_day(value: str, tz: str) -> pendulum.Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last day (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list unavailable slots.")] = False,
    busy_file: BusyFileOption = None,
    verbose: VerboseOption = False,
):
    """
    Compute the bookable slots of the configured host.

    Examples:

        slotguard slots
        slotguard slots --start 2026-03-09 --end 2026-03-13 --duration 60
        slotguard slots --busy-file busy.json --all
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        tz = config.timezone
        defaults = config.defaults

        range_start = _parse_day(start, tz) if start else pendulum.today(tz).date()
        range_end = (
            _parse_day(end, tz) if end
            else range_start.add(days=defaults.lookahead_days - 1)
        )

        rules = InMemoryRuleSource(config.availability_rules()).active_rules_for(config.owner_id)
        collector = BusyPeriodCollector(
            _build_source(config, busy_file),
            timeout_seconds=defaults.fetch_timeout_seconds,
        )
        engine = AvailabilityEngine(collector)

        query = AvailabilityQuery(
            rules=rules,
            zone=tz,
            range_start=range_start,
            range_end=range_end,
            slot_duration=duration if duration is not None else defaults.slot_duration_minutes,
            accounts=config.accounts(),
            min_notice_hours=defaults.min_notice_hours,
            buffer_before_minutes=defaults.buffer_before_minutes,
            buffer_after_minutes=defaults.buffer_after_minutes,
            fail_closed=defaults.fail_closed,
        )
        result = asyncio.run(engine.compute(query))

    except (FileNotFoundError, ValueError, SlotguardError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if result.degraded:
        failed = ", ".join(f"{f.account_id} ({f.kind.value})" for f in result.failures)
        console.print(f"[yellow]⚠ Busy data missing for: {failed}[/yellow]")

    available = result.available_slots()
    console.print(
        f"\n[bold green]{len(available)} available slot(s)[/bold green] "
        f"of {len(result.slots)} between {range_start} and {range_end} ({tz})\n"
    )

    shown = result.slots if show_all else available
    for day, day_slots in group_slots_by_date(shown, tz).items():
        table = Table(title=format_date_heading(day), show_header=True, header_style="bold cyan")
        table.add_column("Time", style="bold")
        table.add_column("Status")
        for slot in day_slots:
            status = "[green]available[/green]" if slot.available else f"[dim]{slot.blocked_by.value}[/dim]"
            table.add_row(format_slot(slot, tz), status)
        console.print(table)


@app.command()
def validate(
    slot_start: Annotated[str, typer.Argument(help="Slot start, ISO 8601 with offset")],
    slot_end: Annotated[str, typer.Argument(help="Slot end, ISO 8601 with offset")],
    config_file: ConfigOption = None,
    busy_file: BusyFileOption = None,
    verbose: VerboseOption = False,
):
    """
    Re-validate one slot exactly as a booking commit would.
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        start_instant = pendulum.parse(slot_start, tz=config.timezone).in_timezone("UTC")
        end_instant = pendulum.parse(slot_end, tz=config.timezone).in_timezone("UTC")

        defaults = config.defaults
        collector = BusyPeriodCollector(
            _build_source(config, busy_file),
            timeout_seconds=defaults.fetch_timeout_seconds,
        )
        validator = SlotValidator(collector)
        buffers = (
            (defaults.buffer_before_minutes, defaults.buffer_after_minutes)
            if defaults.validator_applies_buffers else (0, 0)
        )

        verdict = asyncio.run(
            validator.validate(
                start_instant,
                end_instant,
                config.accounts(),
                InMemoryRuleSource(config.availability_rules()).active_rules_for(config.owner_id),
                config.timezone,
                min_notice_hours=defaults.min_notice_hours,
                buffer_before_minutes=buffers[0],
                buffer_after_minutes=buffers[1],
            )
        )

    except (FileNotFoundError, ValueError, SlotguardError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if verdict.valid:
        console.print(Panel.fit("[bold green]✓ Slot can be booked[/bold green]", title="Validation"))
        return

    console.print(Panel.fit(
        f"[bold red]✗ {verdict.reason}[/bold red]\n[dim]{verdict.outcome.value}[/dim]",
        title="Validation"
    ))
    raise typer.Exit(1)


@app.command()
def rules(config_file: ConfigOption = None):
    """
    List the availability rules in effect for the configured host.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    effective = InMemoryRuleSource(config.availability_rules()).active_rules_for(config.owner_id)

    table = Table(
        title=f"Availability rules ({config.timezone})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Weekday", style="bold yellow")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Name", style="dim")

    for rule in sorted(effective, key=lambda r: (r.weekday, r.start)):
        table.add_row(WEEKDAY_NAMES[rule.weekday], str(rule.start), str(rule.end), rule.name)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotguard[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
