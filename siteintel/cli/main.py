"""
siteintel CLI - inspect scraping sessions and plan the next run.

Examples:
    siteintel session create example.com
    siteintel session status <session-id>
    siteintel quality <session-id>
    siteintel recommend <session-id> --budget 0.5 --target 90
    siteintel budget <session-id> --max 0.5
    siteintel cost project dynamic 25
    siteintel cost tier 0.05
"""

import click

from siteintel import __version__
from siteintel.cli.context import configure_logging, get_config


@click.group()
@click.version_option(version=__version__, prog_name="siteintel")
@click.pass_context
def cli(ctx: click.Context):
    """
    siteintel - Progressive website intelligence gathering.
    """
    configure_logging(get_config(ctx))


# Import command groups
from siteintel.cli.commands import budget, cost, quality, session  # noqa: E402

cli.add_command(session.session)
cli.add_command(quality.quality)
cli.add_command(quality.recommend)
cli.add_command(budget.budget)
cli.add_command(cost.cost)


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
