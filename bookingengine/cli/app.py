"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.json_store import JsonReservationStore
from ..adapters.memory_store import InMemoryResourceCatalog
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityAggregator
from ..domain.conflicts import ConflictDetector
from ..domain.exceptions import BookingEngineError
from ..domain.models import BookingRequest, Interval, RecurrenceType, pattern_from_dict
from ..domain.recurrence import RecurrenceExpander
from ..domain.validator import BookingValidator
from ..services.booking_service import BookingService

app = typer.Typer(
    name="bookingengine",
    help="Check availability and book coworking spaces",
    add_completion=False
)

console = Console()

DEFAULT_DATA_FILE = Path("reservations.json")

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Path, typer.Option("--data", help="Reservation data file (JSON).")]


def configure_logging(level: str) -> None:
    """Route library logging through rich, once per process."""
    root = logging.getLogger()
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(config_file: Optional[Path], data_file: Path, verbose: bool = False):
    """Load the config and build the service around the JSON store."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    configure_logging("DEBUG" if verbose else config.log_level)

    detector = ConflictDetector()
    validator = BookingValidator(
        conflict_detector=detector,
        expander=RecurrenceExpander(max_expansion=config.engine.max_expansion),
        recurrence_horizon_days=config.engine.recurrence_horizon_days,
    )
    aggregator = AvailabilityAggregator(
        conflict_detector=detector,
        max_range_days=config.engine.max_range_days,
    )
    service = BookingService(
        catalog=InMemoryResourceCatalog(config.build_resources()),
        store=JsonReservationStore(data_file, config.timezone),
        validator=validator,
        aggregator=aggregator,
        conflict_detector=detector,
        clock=lambda: pendulum.now(config.timezone),
    )
    return config, service


def _resolve_resource_id(config: AppConfig, identifier: str) -> str:
    resource = config.find_resource(identifier)
    if resource is None:
        raise typer.BadParameter(f"Unknown resource: '{identifier}'", param_hint="RESOURCE")
    return resource.id


def _parse_datetime(value: str, tz: str, label: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}' (expected YYYY-MM-DD HH:mm): {e}[/red]")
        raise typer.Exit(1)


def _parse_date(value: str, tz: str, label: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}' (expected YYYY-MM-DD): {e}[/red]")
        raise typer.Exit(1)


def _parse_days(value: Optional[str]) -> List[int]:
    if not value:
        return []
    try:
        return [int(part) for part in value.replace(" ", "").split(",") if part]
    except ValueError:
        console.print(f"[red]--days must be a comma separated list of 0-6 (0=Sunday), got '{value}'[/red]")
        raise typer.Exit(1)


@app.command()
def resources(
    config_file: ConfigOption = None,
):
    """
    List all configured resources.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)

        if not config.resources:
            console.print("[yellow]No resources defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured resources",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Capacity", justify="right")
        table.add_column("Hours")
        table.add_column("Slot", justify="right")
        table.add_column("Approval")
        table.add_column("Status", style="dim")

        for resource in config.build_resources():
            hours = resource.operating_hours
            table.add_row(
                resource.id,
                resource.display_name,
                str(resource.capacity),
                f"{hours.open.strftime('%H:%M')}-{hours.close.strftime('%H:%M')}",
                f"{resource.slot_granularity_minutes} min",
                "yes" if resource.requires_approval else "no",
                resource.status.value,
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def availability(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD). Defaults to today.")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last day (YYYY-MM-DD). Defaults to the first day.")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = DEFAULT_DATA_FILE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Show free and busy slots of a resource.

    Examples:

        bookingengine availability room-a
        bookingengine availability room-a --start 2024-11-25 --end 2024-11-29
    """
    try:
        config, service = _load(config_file, data_file, verbose)
        tz = config.timezone
        resource_id = _resolve_resource_id(config, resource)

        date_from = _parse_date(start, tz, "start date").date() if start else pendulum.today(tz).date()
        date_to = _parse_date(end, tz, "end date").date() if end else date_from

        days = service.get_availability(resource_id, date_from, date_to)

        for day in days:
            table = Table(
                title=day.date.strftime("%A, %d.%m.%Y"),
                show_header=True,
                header_style="bold cyan"
            )
            table.add_column("Slot")
            table.add_column("Status")
            table.add_column("Reservation", style="dim")

            if not day.slots:
                console.print(f"[yellow]{day.date.isoformat()}: closed[/yellow]")
                continue

            for slot in day.slots:
                time_str = f"{slot.interval.start.format('HH:mm')}-{slot.interval.end.format('HH:mm')}"
                if slot.available:
                    table.add_row(time_str, "[green]free[/green]", "")
                else:
                    occupant = slot.occupying_reservation
                    table.add_row(time_str, "[red]busy[/red]", occupant.title or occupant.id)

            console.print(table)
            free = ", ".join(
                f"{w.start.format('HH:mm')}-{w.end.format('HH:mm')}" for w in day.free_windows()
            )
            console.print(f"  Free: {free or 'none'}\n")

    except (FileNotFoundError, BookingEngineError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    resource: Annotated[str, typer.Argument(help="Resource id or name")],
    start: Annotated[str, typer.Option("--start", help="Start (YYYY-MM-DD HH:mm)")],
    end: Annotated[str, typer.Option("--end", help="End (YYYY-MM-DD HH:mm)")],
    participants: Annotated[int, typer.Option("--participants", "-p", help="Number of participants")] = 1,
    title: Annotated[str, typer.Option("--title", "-t", help="Reservation title")] = "",
    repeat: Annotated[RecurrenceType, typer.Option("--repeat", help="Recurrence type")] = RecurrenceType.NONE,
    every: Annotated[int, typer.Option("--every", help="Repeat every N days/weeks/months")] = 1,
    days: Annotated[Optional[str], typer.Option("--days", help="Weekly days, e.g. '1,3' (0=Sunday)")] = None,
    count: Annotated[Optional[int], typer.Option("--count", help="Maximum number of occurrences")] = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Last day of the recurrence (YYYY-MM-DD)")] = None,
    partial: Annotated[bool, typer.Option("--partial", help="Book the free occurrences even if some conflict.")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Validate only, store nothing.")] = False,
    now: Annotated[Optional[str], typer.Option("--now", help="Override the current time (YYYY-MM-DD HH:mm)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = DEFAULT_DATA_FILE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Book a resource, optionally as a recurring series.

    Examples:

        bookingengine book room-a --start "2024-11-25 10:00" --end "2024-11-25 11:00" -p 3

        # Mon/Wed every other week, 12 times
        bookingengine book room-a --start "2024-11-25 10:00" --end "2024-11-25 11:00" \\
            --repeat weekly --every 2 --days 1,3 --count 12
    """
    try:
        config, service = _load(config_file, data_file, verbose)
        tz = config.timezone
        resource_id = _resolve_resource_id(config, resource)

        pattern = pattern_from_dict(
            {
                "type": repeat.value,
                "interval": every,
                "days_of_week": _parse_days(days),
                "max_occurrences": count,
                "end_date": until,
            },
            timezone=tz,
        )
        request = BookingRequest(
            resource_id=resource_id,
            interval=Interval(
                start=_parse_datetime(start, tz, "start"),
                end=_parse_datetime(end, tz, "end"),
            ),
            participant_count=participants,
            recurrence=pattern,
            title=title,
            allow_partial=partial,
        )
        current_time = _parse_datetime(now, tz, "now") if now else None

        if dry_run:
            decision = service.validate_booking(request, now=current_time)
            reservations = ()
        else:
            outcome = service.book(request, now=current_time)
            decision = outcome.decision
            reservations = outcome.reservations

        if not decision.accepted:
            console.print(f"[bold red]✗ Booking rejected:[/bold red] {decision.rejection.message}")
            raise typer.Exit(2)

        verb = "would be booked" if dry_run else "booked"
        console.print(
            f"[bold green]✓ {len(decision.occurrences)} occurrence(s) {verb} "
            f"({decision.status.value}):[/bold green]"
        )
        for occurrence in decision.occurrences:
            console.print(f"  {occurrence}")
        for check in decision.skipped:
            console.print(
                f"  [yellow]skipped {check.interval} (conflicts with {', '.join(check.conflicting_ids)})[/yellow]"
            )
        if decision.truncated:
            console.print("[yellow]⚠ Recurrence truncated at the booking horizon.[/yellow]")
        if reservations:
            console.print(f"\nReservation id: [bold]{reservations[0].id}[/bold]")

    except (FileNotFoundError, BookingEngineError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def cancel(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    reason: Annotated[str, typer.Option("--reason", help="Cancellation reason")] = "",
    cascade: Annotated[bool, typer.Option("--cascade", help="Cancel the whole recurring series.")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = DEFAULT_DATA_FILE,
):
    """
    Cancel a reservation or its whole series.
    """
    try:
        _, service = _load(config_file, data_file)
        cancelled = service.cancel(reservation_id, reason=reason, cascade=cascade)
        console.print(f"[green]✓ {len(cancelled)} reservation(s) cancelled.[/green]")

    except (FileNotFoundError, BookingEngineError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
