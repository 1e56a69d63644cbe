"""Budget commands."""

import click

from siteintel.cli.async_runner import run_async_command
from siteintel.cli.colors import print_budget, print_header
from siteintel.cli.context import get_executor


@click.command()
@click.argument("session_id")
@click.option("--max", "max_budget", type=float, required=True, help="Session budget in USD")
@click.pass_context
def budget(ctx: click.Context, session_id: str, max_budget: float):
    """
    Check a session's spend against a budget.

    Example:
        siteintel budget 3f2a... --max 0.50
    """
    print_header("Budget Status")

    optimizer = get_executor(ctx).cost_optimizer
    status = run_async_command(optimizer.check_budget(session_id, max_budget))
    print_budget(status, max_budget)
