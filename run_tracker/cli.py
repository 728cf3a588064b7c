"""CLI for the run tracker service.

Operator commands for a local or deployed database: create the schema, seed the
roster, grant admin rights, inspect a submitter's day and run the API server.
"""

import csv
import mimetypes
import os
from datetime import date
from pathlib import Path

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from run_tracker.config.settings import settings
from run_tracker.core.clock import OrganizationClock
from run_tracker.core.logger import setup_logger
from run_tracker.db.session import check_database_connection
from run_tracker.errors import MemberNotFoundError, RosterConflictError, StoreUnavailableError
from run_tracker.main import init_db as create_tables
from run_tracker.notifications.admin_email import AdminNotifier
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.identifiers import normalize_service_number
from run_tracker.roster.types import MemberInput
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.submission import SubmissionOrchestrator
from run_tracker.runs.types import RunPolicy

console = Console()

app = typer.Typer(
    name="run-tracker",
    help="Run tracker CLI - roster and ledger administration",
    add_completion=False,
)

DEFAULT_HOST = os.getenv("SERVER_HOST", "127.0.0.1")


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(level="DEBUG" if debug else "WARNING", log_file=settings.log_file, serialize_file=settings.log_json)


@app.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("run_tracker.main:app", host=host, port=port, reload=reload)


@app.command()
def init_db() -> None:
    """Create the roster and ledger tables if they do not exist."""
    create_tables()
    console.print(Panel(Text("Database tables ready", style="bold green"), subtitle=settings.database_url, border_style="green"))


@app.command()
def check_db() -> None:
    """Verify the configured database is reachable."""
    try:
        check_database_connection()
    except Exception as e:
        console.print(Panel(Text("Database connection failed", style="bold red"), subtitle=str(e), border_style="red"))
        raise typer.Exit(1) from e
    db_type = "PostgreSQL" if "postgres" in settings.database_url.lower() else "SQLite"
    console.print(Panel(Text(f"{db_type} connection OK", style="bold green"), border_style="green"))


@app.command()
def add_member(
    service_number: str = typer.Argument(..., help="Service number, e.g. 5568 or C1234"),
    name: str = typer.Option(..., "--name", help="Full name"),
    station: str = typer.Option(..., "--station", help="Station"),
    rank: str = typer.Option("", "--rank", help="Rank"),
    email: str = typer.Option("", "--email", help="Email"),
    phone: str = typer.Option("", "--phone", help="Phone"),
) -> None:
    """Register a member on the roster."""
    directory = IdentityDirectory()
    try:
        member = directory.add_member(
            MemberInput(service_number=service_number, name=name, station=station, rank=rank, email=email, phone=phone)
        )
    except (RosterConflictError, ValueError) as e:
        console.print(f"[bold red]✗ Could not add member:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Registered {member.service_number}[/bold green] {member.name} ({member.station})")


@app.command()
def import_roster(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV export of the Users sheet"),
) -> None:
    """Import members from a Users sheet export.

    Expected headers: ServiceNumber, Name, Rank, Email, Phone, Station, IsAdmin,
    AdminPassword. Admin passwords are hashed on import. Rows whose service
    number is already registered are skipped.
    """
    directory = IdentityDirectory()
    added = skipped = 0
    with csv_path.open(newline="", encoding="utf-8-sig") as handle:
        for line_number, row in enumerate(csv.DictReader(handle), start=2):
            try:
                member = directory.add_member(
                    MemberInput(
                        service_number=row.get("ServiceNumber") or "",
                        name=row.get("Name") or "",
                        station=row.get("Station") or "",
                        rank=row.get("Rank") or "",
                        email=row.get("Email") or "",
                        phone=row.get("Phone") or "",
                    )
                )
            except RosterConflictError:
                skipped += 1
                continue
            except ValueError as e:
                console.print(f"[yellow]⚠ Line {line_number} skipped:[/yellow] {e}")
                skipped += 1
                continue
            if (row.get("IsAdmin") or "").strip().lower() == "true":
                directory.set_admin_status(member.id, True, row.get("AdminPassword") or None)
            added += 1

    console.print(f"[bold green]✓ Imported {added} members[/bold green] ({skipped} skipped)")


@app.command()
def set_admin(
    service_number: str = typer.Argument(..., help="Service number of an existing member"),
    password: str = typer.Option(None, "--password", help="Admin password to set"),
    revoke: bool = typer.Option(False, "--revoke", help="Revoke admin rights instead of granting them"),
) -> None:
    """Grant (or revoke) admin rights for a member."""
    directory = IdentityDirectory()
    match = directory.find_member(service_number)
    if match is None:
        console.print(f"[bold red]✗ No member with service number {service_number!r}[/bold red]")
        raise typer.Exit(code=1)
    try:
        member = directory.set_admin_status(match.id, not revoke, password)
    except MemberNotFoundError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(code=1) from e
    state = "granted" if member.is_admin else "revoked"
    console.print(f"[bold green]✓ Admin rights {state} for {member.service_number}[/bold green] {member.name}")


@app.command()
def daily_state(
    service_number: str = typer.Argument(..., help="Service number"),
    run_date: str = typer.Option(None, "--date", help="Date (YYYY-MM-DD). Defaults to today in the organization timezone."),
) -> None:
    """Show a submitter's entries and remaining allowance for a day."""
    target = date.fromisoformat(run_date) if run_date else OrganizationClock(settings.organization_timezone).today()
    submitter_id = normalize_service_number(service_number)
    ledger = RunLedger()
    policy = RunPolicy.from_settings()
    try:
        state = ledger.daily_state(submitter_id, target)
        entries = ledger.list_entries(submitter_id=submitter_id, run_date=target)
    except StoreUnavailableError as e:
        console.print(f"[bold red]✗ Store unavailable:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"{submitter_id} on {target.isoformat()}")
    table.add_column("Entry")
    table.add_column("Distance (km)", justify="right")
    table.add_column("Status")
    table.add_column("Logged at")
    for entry in entries:
        table.add_row(entry.id[:8], f"{entry.distance_km:.2f}", entry.status.value, entry.created_at.isoformat(timespec="seconds"))
    console.print(table)

    remaining = max(policy.daily_ceiling_km - state.total_distance_km, 0)
    console.print(
        f"Counted entries: [bold]{state.count}[/bold]/{policy.max_entries_per_day}  "
        f"Total: [bold]{state.total_distance_km:.2f}[/bold] km  "
        f"Remaining: [bold]{remaining:.2f}[/bold] km"
    )


@app.command()
def submit(
    service_number: str = typer.Argument(..., help="Service number"),
    distance_km: str = typer.Argument(..., help="Distance in km, up to two decimals"),
    evidence: Path = typer.Option(None, "--evidence", exists=True, dir_okay=False, help="Evidence image file"),
) -> None:
    """Submit a run for today through the same checks as the API."""
    clock = OrganizationClock(settings.organization_timezone)
    directory = IdentityDirectory()
    orchestrator = SubmissionOrchestrator(directory, RunLedger(), clock, RunPolicy.from_settings(), AdminNotifier.from_settings(directory))

    evidence_bytes = evidence.read_bytes() if evidence else None
    evidence_mime = mimetypes.guess_type(evidence.name)[0] if evidence else None
    result = orchestrator.submit(service_number, clock.today(), distance_km, evidence_bytes, evidence_mime)

    style = "green" if result.admitted else "red"
    subtitle = f"entry {result.entry_id}" if result.entry_id else result.outcome.value
    console.print(Panel(Text(result.message, style=f"bold {style}"), subtitle=subtitle, border_style=style))
    if not result.admitted:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
