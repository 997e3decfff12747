"""
Main CLI application using Typer.
"""

import logging
import random
from pathlib import Path
from typing import Annotated, NoReturn, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.roster_file import Roster, load_roster
from ..config import SchedulerConfig
from ..domain.models import ProposedSession
from ..services.scheduling_service import SchedulingService

app = typer.Typer(
    name="therapyscheduler",
    help="Propose therapy sessions, check bookings for conflicts and plan daily routes",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to scheduler config. Defaults to ./scheduler.yaml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]
RosterArgument = Annotated[Path, typer.Argument(help="Roster file (YAML or JSON) with therapists, clients and sessions")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path], roster_file: Path) -> Tuple[SchedulerConfig, Roster]:
    config = SchedulerConfig.load_or_default(config_file)
    roster = load_roster(roster_file, config.timezone)
    return config, roster


def _parse_day(value: str, tz: str, option: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {option} '{value}': {e}[/red]")
        raise typer.Exit(1)


def _parse_moment(value: str, tz: str, option: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse {option} '{value}' (expected YYYY-MM-DD HH:mm): {e}[/red]")
        raise typer.Exit(1)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def generate(
    roster_file: RosterArgument,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD). Defaults to today.")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last day (YYYY-MM-DD). Defaults to start + 6 days.")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session duration in minutes")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", min=0, help="Show at most this many slots")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Propose sessions for every compatible therapist/client pair.

    Examples:

        therapyscheduler generate roster.yaml --start 2024-11-25 --end 2024-11-29
    """
    _configure_logging(verbose)
    try:
        config, roster = _load(config_file, roster_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)

    tz = config.timezone
    start_date = _parse_day(start, tz, "--start") if start else pendulum.now(tz).start_of("day")
    end_date = _parse_day(end, tz, "--end") if end else start_date.add(days=6)

    service = SchedulingService(config)
    try:
        slots = service.generate_schedule(
            roster.therapists,
            roster.clients,
            roster.sessions,
            start_date,
            end_date,
            session_duration_minutes=duration,
        )
    except ValueError as e:
        _fail(e)

    console.print(
        f"\n[bold cyan]Horizon:[/bold cyan] {start_date.format('DD.MM.YYYY')} - {end_date.format('DD.MM.YYYY')}"
        f"  ({len(roster.therapists)} therapists, {len(roster.clients)} clients)\n"
    )
    if not slots:
        console.print(
            "[yellow]⚠ No slots could be proposed.[/yellow]\n"
            "Check service types, availability windows and weekly caps."
        )
        return

    shown = slots[:limit] if limit is not None else slots
    table = Table(title=f"{len(slots)} proposed slot(s)", show_header=True, header_style="bold cyan")
    table.add_column("Therapist", style="bold yellow")
    table.add_column("Client")
    table.add_column("When")
    table.add_column("Score", justify="right")

    for slot in shown:
        therapist = roster.find_therapist(slot.therapist_id)
        client = roster.find_client(slot.client_id)
        table.add_row(
            therapist.display_name() if therapist else slot.therapist_id,
            client.display_name() if client else slot.client_id,
            slot.format_display(),
            f"{slot.score:.2f}",
        )

    console.print(table)
    console.print()


@app.command()
def check(
    roster_file: RosterArgument,
    therapist_id: Annotated[str, typer.Option("--therapist", "-t", help="Therapist id")],
    client_id: Annotated[str, typer.Option("--client", "-k", help="Client id")],
    start: Annotated[str, typer.Option("--start", help="Session start (YYYY-MM-DD HH:mm)")],
    end: Annotated[Optional[str], typer.Option("--end", help="Session end (YYYY-MM-DD HH:mm)")] = None,
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes when --end is omitted")] = 60,
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Session id being edited")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Check a proposed session for conflicts and suggest alternatives.
    """
    _configure_logging(verbose)
    try:
        config, roster = _load(config_file, roster_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)

    tz = config.timezone
    therapist = roster.find_therapist(therapist_id)
    client = roster.find_client(client_id)
    if therapist is None or client is None:
        missing = therapist_id if therapist is None else client_id
        _fail(ValueError(f"Unknown therapist or client id: '{missing}'"))

    session_start = _parse_moment(start, tz, "--start")
    session_end = _parse_moment(end, tz, "--end") if end else session_start.add(minutes=duration)

    service = SchedulingService(config)
    try:
        proposal = ProposedSession(
            therapist_id=therapist.id,
            client_id=client.id,
            start=session_start,
            end=session_end,
        )
        result = service.check_booking(
            proposal,
            therapist,
            client,
            roster.sessions,
            exclude_session_id=exclude,
            clients=roster.clients,
        )
    except ValueError as e:
        _fail(e)

    when = f"{session_start.format('dddd DD.MM.YYYY HH:mm')} – {session_end.format('HH:mm')}"
    if result.is_clear:
        console.print(f"\n[bold green]✓ {when} is clear to book.[/bold green]\n")
        return

    console.print(f"\n[bold red]✗ {len(result.conflicts)} conflict(s) for {when}:[/bold red]")
    for conflict in result.conflicts:
        console.print(f"  • [dim]{conflict.type.value}[/dim] {conflict.message}")

    console.print()
    if not result.alternatives:
        console.print("[yellow]⚠ No alternative times found nearby.[/yellow]\n")
        return

    table = Table(title="Alternatives", show_header=True, header_style="bold cyan")
    table.add_column("When", style="bold yellow")
    table.add_column("Score", justify="right")
    table.add_column("Reason", style="dim")
    for alternative in result.alternatives:
        table.add_row(
            f"{alternative.start.in_timezone(tz).format('ddd DD.MM. HH:mm')} – "
            f"{alternative.end.in_timezone(tz).format('HH:mm')}",
            f"{alternative.score:.2f}",
            alternative.reason,
        )
    console.print(table)
    console.print()


@app.command()
def route(
    roster_file: RosterArgument,
    therapist_id: Annotated[str, typer.Option("--therapist", "-t", help="Therapist id")],
    day: Annotated[str, typer.Option("--date", help="Day to plan (YYYY-MM-DD)")],
    seed: Annotated[Optional[int], typer.Option("--seed", help="Random seed for a reproducible route")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Order a therapist's visits for one day to keep driving short.
    """
    _configure_logging(verbose)
    try:
        config, roster = _load(config_file, roster_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)

    therapist = roster.find_therapist(therapist_id)
    if therapist is None:
        _fail(ValueError(f"Unknown therapist id: '{therapist_id}'"))

    plan_day = _parse_day(day, config.timezone, "--date")
    rng = random.Random(seed if seed is not None else config.route.seed)
    plan = SchedulingService(config).plan_day_route(
        therapist, plan_day, roster.sessions, roster.clients, rng=rng
    )

    if plan.start is None:
        console.print(f"\n[yellow]⚠ Nothing to route for {therapist.display_name()} on {day}.[/yellow]\n")
        return

    console.print(f"\n[bold cyan]Route for {therapist.display_name()} on {plan_day.format('dddd DD.MM.YYYY')}[/bold cyan]")
    console.print(f"  Start: {plan.start.address or f'{plan.start.latitude:.5f}, {plan.start.longitude:.5f}'}")
    for index, stop in enumerate(plan.stops, 1):
        label = stop.address or f"{stop.latitude:.5f}, {stop.longitude:.5f}"
        console.print(f"  {index}. {label}")
    console.print(f"  [bold]Total:[/bold] {plan.distance_km:.1f} km (round trip)")
    if plan.unlocated_sessions:
        console.print(f"  [yellow]{len(plan.unlocated_sessions)} session(s) skipped: no client location[/yellow]")
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]therapyscheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
