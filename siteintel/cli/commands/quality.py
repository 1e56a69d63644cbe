"""Quality and recommendation commands."""

import click

from siteintel.cli.async_runner import run_async_command
from siteintel.cli.colors import print_budget, print_error, print_header, print_optimization, print_quality, print_routing
from siteintel.cli.context import get_config, get_executor


@click.command()
@click.argument("session_id")
@click.pass_context
def quality(ctx: click.Context, session_id: str):
    """
    Score the data collected for a session.

    Example:
        siteintel quality 3f2a...
    """
    print_header("Data Quality")

    executor = get_executor(ctx)
    metrics = run_async_command(executor.assessor.calculate_quality_score(session_id))
    print_quality(metrics)


@click.command()
@click.argument("session_id")
@click.option("--budget", "max_budget", type=float, default=None, help="Session budget in USD")
@click.option("--target", "target_quality", type=int, default=None, help="Target quality score (0-100)")
@click.pass_context
def recommend(ctx: click.Context, session_id: str, max_budget: float, target_quality: int):
    """
    Recommend the next scraper for a session.

    Examples:
        siteintel recommend 3f2a...
        siteintel recommend 3f2a... --budget 0.5 --target 90
    """
    print_header("Next Action")

    config = get_config(ctx)
    action = run_async_command(
        get_executor(ctx).suggest_next_action(session_id, max_budget=max_budget, target_quality=target_quality)
    )
    if action is None:
        print_error(f"Could not assess session {session_id}")
        ctx.exit(1)
        return

    shown_budget = config.executor.default_max_budget if max_budget is None else max_budget
    print_quality(action.quality)
    print_routing(action.routing)
    print_optimization(action.optimization)
    if action.budget is not None:
        print_budget(action.budget, shown_budget)
