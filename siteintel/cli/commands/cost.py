"""Cost commands - project costs and classify spend."""

import click

from siteintel.cli.colors import console, print_header
from siteintel.cli.context import get_config
from siteintel.core.types import ScraperType
from siteintel.observability.cost_optimizer import CostOptimizer
from siteintel.storage import InMemoryRepository


def _optimizer(ctx: click.Context) -> CostOptimizer:
    # Projections are pure; no session store is needed
    return CostOptimizer(InMemoryRepository(), get_config(ctx).pricing)


@click.group()
def cost():
    """Project and classify scraping costs."""
    pass


@cost.command()
@click.argument("scraper_type", type=click.Choice([s.value for s in ScraperType]))
@click.argument("count", type=click.IntRange(min=0))
@click.option("--no-overhead", is_flag=True, help="Exclude the fixed per-operation overhead")
@click.pass_context
def project(ctx: click.Context, scraper_type: str, count: int, no_overhead: bool):
    """
    Project the cost of scraping COUNT pages.

    Example:
        siteintel cost project dynamic 25
    """
    print_header("Cost Projection")

    optimizer = _optimizer(ctx)
    scraper = ScraperType(scraper_type)
    amount = optimizer.project_cost(scraper, count, include_overhead=not no_overhead)

    console.print(f"\n{scraper.value} x {count} pages: [cost]${amount:.4f}[/cost]")
    console.print(f"Tier: {optimizer.get_cost_tier(amount).value}")


@cost.command()
@click.argument("amount", type=float)
@click.pass_context
def tier(ctx: click.Context, amount: float):
    """
    Classify a cumulative spend into a cost tier.

    Example:
        siteintel cost tier 0.05
    """
    click.echo(_optimizer(ctx).get_cost_tier(amount).value)
