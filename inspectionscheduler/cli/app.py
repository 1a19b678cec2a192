"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.frappe_authenticator import FrappeAuthenticator
from ..adapters.frappe_client import FrappeClient
from ..adapters.mock_frappe_client import MockFrappeClient
from ..config import AppConfig, get_default_config_path
from ..domain.clock import system_clock
from ..domain.exceptions import (
    ConfirmationRequiredError,
    InvalidSelectionError,
    SchedulerError,
)
from ..domain.models import PRIORITIES, AssignmentFailure
from ..domain.slot_computer import SlotComputer
from ..domain.time_arithmetic import format_12h, to_minutes
from ..services.assignment_saga import AssignmentSaga
from ..services.availability import AvailabilityService
from ..services.scheduling_session import SchedulingSession

app = typer.Typer(
    name="inspectionscheduler",
    help="Allocate inspection slots and assign inspectors to leads",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the in-memory record store instead of the Frappe site.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_client(config: AppConfig, mock: bool):
    """Create the record store client (mock or Frappe)."""
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using in-memory record store[/yellow]\n")
        return MockFrappeClient()

    authenticator = FrappeAuthenticator(
        site_url=config.site_url,
        api_key=config.api_key,
        api_secret=config.api_secret,
    )
    return FrappeClient(
        site_url=config.site_url,
        api_key=config.api_key,
        api_secret=authenticator.get_api_secret(),
        timeout=config.request_timeout_seconds,
    )


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _parse_fields(fields: Optional[List[str]]) -> dict:
    parsed = {}
    for item in fields or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            console.print(f"[red]Invalid --field {item!r}; expected key=value[/red]")
            raise typer.Exit(1)
        parsed[key.strip()] = value
    return parsed


def _build_session(config: AppConfig, client) -> SchedulingSession:
    clock = system_clock(config.timezone)
    policy = config.scheduling_policy()
    service = AvailabilityService(
        client,
        SlotComputer(policy),
        clock,
        derive_from_occupied=config.derive_free_slots,
    )
    return SchedulingSession(service, clock, policy)


@app.command()
def availability(
    date: Annotated[str, typer.Argument(help="Inspection date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show each inspector's selectable free slots for a date.

    Slots that already ended are hidden and the slot in progress starts now.
    """
    try:
        config = _load_config(config_file)
        day = _parse_date(date, config.timezone)
        client = _build_client(config, mock)
        session = _build_session(config, client)

        inspectors = asyncio.run(session.select_date(day)) or []

        if not inspectors:
            console.print("[yellow]⚠ No inspector availability for this date.[/yellow]")
            return

        table = Table(
            title=f"Inspector availability - {day.format('MMM DD, YYYY')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Inspector", style="bold yellow")
        table.add_column("E-Mail", style="dim")
        table.add_column("Status")
        table.add_column("Free slots")

        for inspector in inspectors:
            status = "[green]Available[/green]" if inspector.is_completely_free else (
                f"[yellow]Busy {inspector.total_occupied_hours:g}h[/yellow]"
            )
            slots = ", ".join(
                f"{format_12h(slot.start_time)} - {format_12h(slot.end_time)}"
                for slot in inspector.free_slots
            ) or "[dim]none left[/dim]"
            table.add_row(inspector.display_name, inspector.email, status, slots)

        console.print()
        console.print(table)
        console.print()

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except SchedulerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def assign(
    inspector: Annotated[str, typer.Option("--inspector", "-i", help="Inspector email")],
    date: Annotated[str, typer.Option("--date", "-d", help="Inspection date (YYYY-MM-DD)")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start time (HH:MM). Defaults to the next free quarter hour.")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End time (HH:MM). Defaults to start + 15 minutes.")] = None,
    lead: Annotated[Optional[str], typer.Option("--lead", help="Existing lead to update; a new lead is created otherwise.")] = None,
    priority: Annotated[Optional[str], typer.Option("--priority", "-p", help="Low, Medium or High")] = None,
    description: Annotated[str, typer.Option("--description", help="Notes for the inspector")] = "",
    field: Annotated[Optional[List[str]], typer.Option("--field", "-f", help="Lead field as key=value (repeatable)")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Accept a finish after business close without asking.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Assign an inspector to a lead for a time window.

    Examples:

        # Default times in the inspector's first free slot
        inspectionscheduler assign -i amal.inspector@example.com -d 2025-03-04 --mock

        # Explicit window on an existing lead
        inspectionscheduler assign -i amal.inspector@example.com -d 2025-03-04 --start 10:00 --end 11:30 --lead CRM-LEAD-0042
    """
    try:
        config = _load_config(config_file)
        day = _parse_date(date, config.timezone)
        chosen_priority = priority or config.default_priority
        if chosen_priority not in PRIORITIES:
            console.print(f"[red]Priority must be one of {', '.join(PRIORITIES)}[/red]")
            raise typer.Exit(1)
        lead_fields = _parse_fields(field)

        client = _build_client(config, mock)
        session = _build_session(config, client)

        console.print("[bold]Step 1/3:[/bold] Loading availability...")
        asyncio.run(session.select_date(day))
        selected = session.select_inspector(inspector)

        if start:
            start_minutes = to_minutes(start)
            containing = next(
                (slot for slot in selected.free_slots if slot.contains_minute(start_minutes)),
                None,
            )
            if containing is not None:
                session.select_slot(containing)
            session.set_start(start)
        if end:
            session.set_end(end)

        session.lead_id = lead
        session.priority = chosen_priority
        session.description = description
        session.work_description = description or None

        console.print(f"[green]✓ {selected.display_name}: {session.start} - {session.end} ({session.duration_hours():g} h)[/green]")

        console.print("\n[bold]Step 2/3:[/bold] Validating selection...")
        try:
            request = session.confirm(assigned_by=config.assigned_by, lead_fields=lead_fields)
        except ConfirmationRequiredError as warning:
            console.print(f"[yellow]⚠ {warning}[/yellow]")
            if not yes and not typer.confirm("Assign anyway?", default=False):
                console.print("Assignment cancelled; nothing was saved.")
                raise typer.Exit(1)
            request = session.confirm(
                acknowledge_late_finish=True,
                assigned_by=config.assigned_by,
                lead_fields=lead_fields,
            )
        except InvalidSelectionError as invalid:
            blamed = [name for name, flag in (("start", invalid.result.field_errors.start), ("end", invalid.result.field_errors.end)) if flag]
            suffix = f" [dim](check: {', '.join(blamed)})[/dim]" if blamed else ""
            console.print(f"[bold red]✗ {invalid}[/bold red]{suffix}")
            raise typer.Exit(1)
        console.print("[green]✓ Selection is valid[/green]")

        console.print("\n[bold]Step 3/3:[/bold] Saving inquiry and assigning inspector...")
        saga = AssignmentSaga(
            client,
            step_timeout=config.step_timeout_seconds,
            default_work_title=config.default_work_title,
            assigned_by=config.assigned_by,
        )
        outcome = asyncio.run(saga.run(request))

        if isinstance(outcome, AssignmentFailure):
            console.print(f"\n[bold red]✗ {outcome.summary()}[/bold red]")
            if outcome.resumable:
                console.print(
                    f"[dim]Committed so far: lead {outcome.checkpoint.lead_id}"
                    f"{', assignment ' + outcome.checkpoint.assignment_record_id if outcome.checkpoint.assignment_record_id else ''}."
                    f" Re-run with --lead {outcome.checkpoint.lead_id} only after checking the assignment.[/dim]"
                )
            raise typer.Exit(1)

        console.print(Panel.fit(
            f"[bold green]✓ Inspector assigned successfully![/bold green]\n\n"
            f"[bold]Lead:[/bold] {outcome.lead_id}\n"
            f"[bold]Assignment:[/bold] {outcome.assignment_record_id}\n"
            f"[bold]Work allocation:[/bold] {outcome.work_allocation_id}",
            title="✓ Assignment"
        ))
        console.print()

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (SchedulerError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def test_connection(
    config_file: ConfigOption = None,
):
    """
    Test the connection and credentials for the Frappe site.
    """
    try:
        config = _load_config(config_file)
        client = _build_client(config, mock=False)
        user_info = asyncio.run(client.ping())

        console.print(Panel.fit(
            f"[bold green]✓ Connection successful![/bold green]\n\n"
            f"[bold]Site:[/bold] {config.site_url}\n"
            f"[bold]User:[/bold] {user_info.get('message', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (FileNotFoundError, SchedulerError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def store_secret(
    config_file: ConfigOption = None,
):
    """
    Store the API secret for the configured key in the OS keyring.
    """
    try:
        config = _load_config(config_file)
        authenticator = FrappeAuthenticator(site_url=config.site_url, api_key=config.api_key)
        secret = typer.prompt("API secret", hide_input=True)
        authenticator.store_api_secret(secret)
        console.print(f"\n[green]✓ Secret stored for {authenticator.key_identifier}.[/green]\n")

    except (FileNotFoundError, SchedulerError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def clear_secret(
    config_file: ConfigOption = None,
):
    """
    Remove the stored API secret from the OS keyring.
    """
    try:
        config = _load_config(config_file)
        authenticator = FrappeAuthenticator(site_url=config.site_url, api_key=config.api_key)

        if authenticator.clear_api_secret():
            console.print("\n[green]✓ Stored secret removed.[/green]\n")
        else:
            console.print("\n[yellow]No stored secret found.[/yellow]\n")

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]inspectionscheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
