"""Session commands - create sessions and inspect progress."""

import click
from rich.box import ASCII
from rich.table import Table

from siteintel.cli.async_runner import run_async_command
from siteintel.cli.colors import console, print_error, print_header, print_info, print_success
from siteintel.cli.context import get_executor, get_repository


@click.group()
def session():
    """Create and inspect scraping sessions."""
    pass


@session.command()
@click.argument("domain")
@click.option("--id", "session_id", default=None, help="Use a specific session ID")
@click.pass_context
def create(ctx: click.Context, domain: str, session_id: str):
    """
    Create a session for DOMAIN.

    Example:
        siteintel session create example.com
    """
    print_header("New Session")

    repository = get_repository(ctx)
    created = run_async_command(repository.create_session(domain, session_id=session_id))
    print_success(f"Created session {created.id}")
    print_info(f"Domain: {created.domain}")


@session.command()
@click.argument("session_id")
@click.pass_context
def status(ctx: click.Context, session_id: str):
    """
    Show phase, progress and suggestions for a session.

    Example:
        siteintel session status 3f2a...
    """
    print_header("Session Status")

    report = run_async_command(get_executor(ctx).get_session_status(session_id))
    if report.status == "not_found":
        print_error(f"Session not found: {session_id}")
        ctx.exit(1)
    if report.status == "error":
        print_error("Error retrieving session status")
        ctx.exit(1)

    table = Table(show_header=False, box=ASCII)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="white")
    table.add_row("Session", report.id)
    table.add_row("Status", report.status)
    table.add_row("Phase", f"{report.phase}/{report.max_phase} ({report.progress}%)")
    table.add_row("Pages", str(report.total_pages))
    table.add_row("Data points", str(report.total_data_points))
    table.add_row("Used scrapers", ", ".join(report.used_scrapers) or "-")
    table.add_row("Available scrapers", ", ".join(report.available_scrapers) or "-")
    console.print(table)

    for suggestion in report.suggestions:
        print_info(suggestion)
