"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.file_calendar_client import FileCalendarClient
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarClient
from ..config import AppConfig, load_config
from ..domain.clock import TimeZoneClock
from ..domain.exceptions import AvailabilityError
from ..domain.models import WorkingHours
from ..services.availability import (
    AvailabilityQuery,
    AvailabilityResult,
    AvailabilityService,
    error_response,
    resolve_query,
)

app = typer.Typer(
    name="freeslots",
    help="Find free time within working hours across time zones",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format="%(asctime)s %(name)-32s %(levelname)-7s %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
    )


def _authenticator(config: AppConfig) -> GraphAuthenticator:
    return GraphAuthenticator(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        authority_url=config.get_authority_url(),
        cache_file=config.token_cache_file,
    )


def _build_client(config: AppConfig, events_file: Optional[Path]):
    """Use the events file when given, otherwise sign in to Microsoft Graph."""
    if events_file is not None:
        return FileCalendarClient(events_file)

    access_token = _authenticator(config).get_access_token(force_refresh=False)
    return GraphCalendarClient(access_token=access_token, timeout=config.fetch_timeout_seconds)


def _build_query(
    config: AppConfig,
    start: Optional[str],
    end: Optional[str],
    hours: Optional[str],
    timezone: Optional[str],
) -> AvailabilityQuery:
    """
    Turn CLI options into a request, defaulting to the coming seven days.
    """
    zone = timezone or config.timezone
    TimeZoneClock().validate_zone(zone)

    start_date = start or pendulum.today(zone).format("YYYY-MM-DD")
    if end is None:
        try:
            end = pendulum.from_format(start_date, "YYYY-MM-DD").add(days=6).format("YYYY-MM-DD")
        except ValueError:
            # Leave the bad start date for the service to report.
            end = start_date

    payload = {"startDate": start_date, "endDate": end, "timezone": zone}
    if hours:
        working_hours = WorkingHours.parse(hours)
        payload["workingHours"] = {"start": working_hours.start, "end": working_hours.end}

    return AvailabilityQuery.from_payload(payload)


def _print_result(result: AvailabilityResult) -> None:
    request = result.request

    console.print("\n[bold cyan]Free slots[/bold cyan]")
    console.print(f"   Period: {request.date_range.start_date} - {request.date_range.end_date}")
    console.print(f"   Working hours: {request.working_hours} ({request.timezone})")
    if result.calendars:
        console.print(f"   Calendars: {', '.join(calendar.name for calendar in result.calendars)}")
    for calendar_id in result.skipped_calendars:
        console.print(f"[yellow]   Skipped calendar {calendar_id} (no response)[/yellow]")
    console.print()

    if not result.free_slots:
        console.print(
            "[yellow]No free time found.[/yellow]\n"
            "Try a longer period or wider working hours."
        )
        return

    console.print(f"[bold green]{len(result.free_slots)} free slot(s):[/bold green]\n")
    for slot in result.free_slots:
        console.print(f"  {slot.format_display()}")
    console.print()


@app.command()
def find(
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD), defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD), defaults to start + 6 days")] = None,
    hours: Annotated[Optional[str], typer.Option("--hours", help="Working hours as HH:MM-HH:MM")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "-z", help="IANA timezone, e.g. Asia/Tokyo")] = None,
    config_file: ConfigOption = None,
    events_file: Annotated[Optional[Path], typer.Option("--events-file", help="Read busy events from a JSON file instead of Microsoft Graph")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """
    Find free time slots within working hours.

    Examples:

        # The coming week, using config defaults
        freeslots find

        # Explicit period, hours and zone
        freeslots find --start 2024-02-20 --end 2024-02-21 --hours 09:00-18:00 -z Asia/Tokyo

        # Offline, from an events file, as JSON
        freeslots find --events-file events.json --json
    """
    _configure_logging(verbose)

    try:
        config = load_config(config_file)
        query = _build_query(config, start, end, hours, timezone)
        # Reject bad input before signing in to the provider
        resolve_query(query, config)
        service = AvailabilityService(
            calendar_client=_build_client(config, events_file),
            config=config,
        )
        result = asyncio.run(service.find_free_slots(query))

    except AvailabilityError as e:
        if as_json:
            typer.echo(json.dumps(error_response(e), indent=2))
        else:
            console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError) as e:
        # Bad local input: config, events file or option values
        if as_json:
            typer.echo(json.dumps(error_response(e, status=400), indent=2))
        else:
            console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.to_response(), indent=2))
    else:
        _print_result(result)


@app.command()
def calendars(
    config_file: ConfigOption = None,
    events_file: Annotated[Optional[Path], typer.Option("--events-file", help="Read calendars from a JSON events file")] = None,
):
    """
    List the calendars that can be queried.
    """
    try:
        config = load_config(config_file)
        client = _build_client(config, events_file)
        available = client.list_calendars()
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not available:
        console.print("[yellow]No calendars found.[/yellow]")
        return

    wanted = config.calendars
    table = Table(
        title="Calendars",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Name", style="bold yellow")
    table.add_column("ID", style="dim")
    table.add_column("Used")

    for calendar in available:
        used = not wanted or any(calendar.matches(identifier) for identifier in wanted)
        table.add_row(calendar.name, calendar.id, "yes" if used else "no")

    console.print()
    console.print(table)
    console.print()


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = load_config(config_file)
        access_token = _authenticator(config).get_access_token(force_refresh=force)
        user_info = GraphCalendarClient(access_token=access_token).test_connection()
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]Authentication successful[/bold green]\n\n"
        f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
        f"[bold]E-mail:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}",
        title="Connection test"
    ))


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the authentication token cache.
    """
    try:
        config = load_config(config_file)
        _authenticator(config).clear_cache()
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print("\n[green]Token cache cleared.[/green]")
    console.print("You will be asked to sign in again on the next call.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]freeslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
