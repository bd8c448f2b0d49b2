"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import load_fixture
from ..adapters.schedule_source import StaticScheduleSource, YamlScheduleSource
from ..config import WEEKDAY_KEYS, AppConfig, get_default_config_path, resolve_business_hours
from ..domain.exceptions import SchedulingError
from ..domain.slot_calculator import SlotCalculator
from ..wiring import SchedulingEngine, build_memory_engine

app = typer.Typer(
    name="bookingengine",
    help="Inspect availability and the booking calendar of a single practitioner",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="YAML fixture with existing bookings and blocks"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """
    Load the explicit config file, or ./config.yaml when present.
    Without either, the built-in defaults are used.
    """
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _build_engine(
    config: AppConfig,
    data_file: Optional[Path],
    schedule_file: Optional[Path] = None,
) -> SchedulingEngine:
    schedule_source = (
        YamlScheduleSource(schedule_file) if schedule_file else StaticScheduleSource(config.schedule)
    )
    engine = build_memory_engine(config, schedule_source=schedule_source)
    if data_file is not None:
        load_fixture(data_file, engine.storage, timezone=config.timezone)
    return engine


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Invalid date '{value}': {e}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    day: Annotated[str, typer.Argument(help="Date to check (YYYY-MM-DD)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")] = 60,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    schedule_file: Annotated[
        Optional[Path],
        typer.Option("--schedule", help="YAML/JSON weekly schedule overriding the config"),
    ] = None,
):
    """
    List free start times for a service on a date.

    Examples:

        bookingengine slots 2024-11-25 --duration 60

        bookingengine slots 2024-11-25 -d 90 --data bookings.yaml
    """
    try:
        config = _load_config(config_file)
        engine = _build_engine(config, data_file, schedule_file)
        target = _parse_date(day, config.timezone)

        hours = engine.availability.business_hours_for(target)
        free = engine.availability.compute_slots(target, duration)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(
        f"\n[bold cyan]{target.format('dddd, DD.MM.YYYY')}[/bold cyan] "
        f"| business hours: {hours} | duration: {duration} min\n"
    )

    if not free:
        console.print("[yellow]No available slots found.[/yellow]\n")
        return

    console.print(f"[bold green]{len(free)} available slot(s):[/bold green]")
    length = SlotCalculator(config.timezone).normalize_duration(duration)
    for start in free:
        console.print(f"  {start.format('HH:mm')} - {start.add(minutes=length).format('HH:mm')}")
    console.print()


@app.command()
def hours(config_file: ConfigOption = None):
    """
    Show the configured business hours for each weekday.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Business hours", show_header=True, header_style="bold cyan")
    table.add_column("Weekday", style="bold yellow")
    table.add_column("Hours")

    # Any date works as anchor; only its weekday matters.
    monday = pendulum.date(2024, 1, 1)
    fallback = config.fallback_business_hours()
    for offset, key in enumerate(WEEKDAY_KEYS):
        business_hours = resolve_business_hours(config.schedule, monday.add(days=offset), fallback)
        table.add_row(key.capitalize(), str(business_hours))

    console.print()
    console.print(table)
    console.print()


@app.command()
def calendar(
    from_day: Annotated[str, typer.Argument(help="First date (YYYY-MM-DD)")],
    to_day: Annotated[str, typer.Argument(help="Last date, inclusive (YYYY-MM-DD)")],
    include_cancelled: Annotated[
        bool, typer.Option("--include-cancelled", help="Also list cancelled bookings and blocks.")
    ] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List bookings and blocks between two dates.
    """
    try:
        config = _load_config(config_file)
        engine = _build_engine(config, data_file)
        start = _parse_date(from_day, config.timezone)
        end = _parse_date(to_day, config.timezone)
        events = engine.calendar.events(start, end, include_cancelled=include_cancelled)
    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not events:
        console.print("[yellow]No calendar events in range.[/yellow]")
        return

    table = Table(title="Calendar", show_header=True, header_style="bold cyan")
    table.add_column("Type", style="bold yellow")
    table.add_column("Number")
    table.add_column("When")
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for event in events:
        table.add_row(
            event.type.value,
            event.booking_number or event.block_number or "",
            f"{event.start_at.format('DD.MM.YYYY HH:mm')} - {event.end_at.format('HH:mm')}",
            event.status,
            event.title,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
