"""CLI commands for the progress tracker.

Commands:
- init-db: Create the database schema
- add-student / list-students: Manage tracked students
- sync: On-demand sync, no reminders
- run-batch: Full batch (sync, inactivity check, reminders)
- settings: Show or change the sync schedule
- scheduler: Run the cron scheduler loop
- serve: Run the Web API
"""

import httpx
import structlog
import typer
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from cptracker.config.app_config import AppConfig, load_app_config
from cptracker.core.cron import InvalidCronExpression
from cptracker.core.factory import build_orchestrator
from cptracker.core.scheduler import SyncScheduler
from cptracker.core.sync_orchestrator import (
    BatchAlreadyRunning,
    StudentNotFound,
    StudentSyncResult,
)
from cptracker.db.database import init_db
from cptracker.db.settings_repository import get_sync_settings, update_sync_settings
from cptracker.db.students_repository import (
    DuplicateStudentError,
    get_student_by_handle,
    insert_student,
    list_students,
)
from cptracker.utils.time_utils import to_iso
from cptracker.utils.validators import validate_email, validate_handle

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="cptrack",
    help="Competitive-programming progress tracker backed by Codeforces.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main() -> None:
    """Load .env before any command runs."""
    load_dotenv()


def _bootstrap() -> AppConfig:
    """Load config and open the configured database."""
    config = load_app_config()
    init_db(config.database.get_path())
    return config


def _print_sync_results(results: list[StudentSyncResult]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Student", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Contests", justify="right")
    table.add_column("Submissions", justify="right")
    table.add_column("Detail")

    for r in results:
        if r.status == "success":
            icon = "[green]✓ synced[/green]"
            detail = ""
        elif r.status == "skipped":
            icon = "[yellow]- skipped[/yellow]"
            detail = r.reason or ""
        else:
            icon = "[red]✗ failed[/red]"
            detail = f"{r.stage}: {r.error}"
        table.add_row(
            r.student_name,
            icon,
            str(r.contests_processed) if r.status == "success" else "",
            str(r.submissions_processed) if r.status == "success" else "",
            detail,
        )

    console.print(table)


# =============================================================================
# DATABASE AND STUDENTS
# =============================================================================


@app.command(name="init-db")
def init_database() -> None:
    """Create the database schema (idempotent)."""
    config = _bootstrap()
    console.print(f"[green]✓ Database ready:[/green] {config.database.get_path()}")


@app.command(name="add-student")
def add_student(
    name: str = typer.Argument(..., help="Student name"),
    email: str = typer.Argument(..., help="Contact email"),
    handle: str = typer.Argument(..., help="Codeforces handle"),
    phone: str | None = typer.Option(None, "--phone", "-p", help="Phone number"),
) -> None:
    """Register a student to track."""
    if not validate_email(email):
        console.print(f"[red]✗ Invalid email: {email}[/red]")
        raise typer.Exit(code=1)
    if not validate_handle(handle):
        console.print(f"[red]✗ Invalid handle: {handle}[/red]")
        raise typer.Exit(code=1)

    _bootstrap()
    existing = get_student_by_handle(handle)
    if existing is not None:
        console.print(
            f"[yellow]⚠ Handle {handle} is already tracked as {existing.student_id} ({existing.name})[/yellow]"
        )
        raise typer.Exit(code=1)

    try:
        student = insert_student(name=name, email=email, handle=handle, phone_number=phone)
    except DuplicateStudentError as e:
        console.print(f"[yellow]⚠ {e}[/yellow]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Student added[/green]")
    console.print(f"  [dim]student_id:[/dim] {student.student_id}")
    console.print(f"  [dim]handle:[/dim]     {student.handle}")


@app.command(name="list-students")
def show_students() -> None:
    """List tracked students."""
    _bootstrap()
    students = list_students()
    if not students:
        console.print("[dim]No students registered.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Handle")
    table.add_column("Rating", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Active", justify="center")
    table.add_column("Reminders", justify="center")
    table.add_column("Last sync")

    for s in students:
        table.add_row(
            s.student_id,
            s.name,
            s.handle,
            str(s.current_rating),
            str(s.max_rating),
            "✓" if s.is_active else "✗",
            "✓" if s.email_reminders_enabled else "✗",
            to_iso(s.last_data_sync) or "never",
        )

    console.print(table)


# =============================================================================
# SYNC
# =============================================================================


@app.command()
def sync(
    student: str | None = typer.Option(None, "--student", "-s", help="Student ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore the recent-sync window"),
) -> None:
    """Sync judge data now, without inactivity reminders."""
    config = _bootstrap()
    orchestrator = build_orchestrator(config)

    try:
        if student:
            results = [orchestrator.sync_student(student, force=force)]
        else:
            results = orchestrator.sync_all(force=force)
    except StudentNotFound as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    finally:
        orchestrator.judge_client.close()

    if not results:
        console.print("[dim]No active students.[/dim]")
        return
    _print_sync_results(results)
    if any(r.status == "failed" for r in results):
        raise typer.Exit(code=1)


@app.command(name="run-batch")
def run_batch(
    force: bool = typer.Option(False, "--force", "-f", help="Ignore the recent-sync window"),
) -> None:
    """Run the full batch: sync, inactivity check and reminders."""
    config = _bootstrap()
    orchestrator = build_orchestrator(config)

    try:
        batch = orchestrator.run_batch(force=force)
    except BatchAlreadyRunning as e:
        console.print(f"[yellow]⚠ {e}[/yellow]")
        raise typer.Exit(code=1)
    finally:
        orchestrator.judge_client.close()

    _print_sync_results(batch.sync_results)

    inactive = [r for r in batch.inactivity_results if r.result.is_inactive]
    console.print(f"\n[dim]inactive:[/dim] {len(inactive)}")
    for e in batch.email_results:
        color = {"sent": "green", "failed": "red"}.get(e.status, "yellow")
        extra = e.error or e.reason or ""
        console.print(f"  [{color}]{e.status}[/{color}] {e.student_name} {extra}".rstrip())


# =============================================================================
# SCHEDULE
# =============================================================================


@app.command()
def settings(
    cron: str | None = typer.Option(None, "--cron", help="Five-field cron expression"),
    enabled: bool | None = typer.Option(None, "--enable/--disable", help="Turn the schedule on or off"),
) -> None:
    """Show or change the sync schedule."""
    _bootstrap()

    if cron is not None or enabled is not None:
        try:
            current = update_sync_settings(cron_expression=cron, is_enabled=enabled)
        except InvalidCronExpression as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1)
        console.print("[green]✓ Settings updated[/green]")
    else:
        current = get_sync_settings()

    console.print(f"  [dim]cron:[/dim]      {current.cron_expression}")
    console.print(f"  [dim]enabled:[/dim]   {current.is_enabled}")
    console.print(f"  [dim]last sync:[/dim] {to_iso(current.last_sync) or 'never'}")
    console.print(f"  [dim]next sync:[/dim] {to_iso(current.next_sync) or '-'}")


def _http_trigger(url: str, secret: str | None, timeout: float):
    """Job that POSTs to a running API's cron endpoint."""

    def job() -> None:
        headers = {"Authorization": f"Bearer {secret}"} if secret else {}
        response = httpx.post(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        logger.info("scheduler.http_trigger_ok", url=url, status=response.status_code)

    return job


@app.command()
def scheduler(
    url: str | None = typer.Option(
        None, "--url", help="Trigger a running API at this cron URL instead of in-process"
    ),
    poll_interval: float | None = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between settings reloads (defaults to sync.settings_poll_seconds)",
    ),
) -> None:
    """Run the cron scheduler until interrupted."""
    config = _bootstrap()

    if url:
        job = _http_trigger(url, config.sync.get_cron_secret(), timeout=600.0)
        console.print(f"[blue]Triggering {url} on schedule[/blue]")
    else:
        orchestrator = build_orchestrator(config)
        job = orchestrator.run_batch
        console.print("[blue]Running batches in-process on schedule[/blue]")

    if poll_interval is None:
        poll_interval = config.sync.settings_poll_seconds

    runner = SyncScheduler(job)
    try:
        runner.run_forever(get_sync_settings, poll_interval=poll_interval)
    except KeyboardInterrupt:
        runner.stop()
        console.print("\n[dim]Scheduler stopped.[/dim]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
) -> None:
    """Run the Web API with uvicorn."""
    uvicorn.run("cptracker.web.api:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":
    app()
