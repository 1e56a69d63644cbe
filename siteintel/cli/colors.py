"""CLI color utilities built on rich."""

from typing import Optional

from rich.box import ASCII
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from siteintel.core.types import BudgetStatus, OptimizationResult, QualityMetrics, RoutingDecision

custom_theme = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "dim": "dim white",
    "highlight": "bold cyan",
    "cost": "yellow",
    "level_excellent": "bold green",
    "level_high": "green",
    "level_medium": "yellow",
    "level_low": "red",
})

console = Console(theme=custom_theme)


def print_header(text: str):
    """Print a section header."""
    console.print(f"\n[bold cyan]{text}[/bold cyan]")
    console.print("[dim]" + "-" * len(text) + "[/dim]")


def print_success(text: str):
    console.print(f"[success][OK][/success] {text}")


def print_error(text: str):
    console.print(f"[error][X][/error] {text}")


def print_warning(text: str):
    console.print(f"[warning][!][/warning] {text}")


def print_info(text: str):
    console.print(f"[info][i][/info] {text}")


def print_quality(metrics: QualityMetrics):
    """Print a quality assessment with its recommendations."""
    level = metrics.level.value
    console.print(f"\nOverall: [level_{level}]{metrics.overall_score}[/level_{level}] ({level.upper()})")

    table = Table(show_header=True, header_style="bold cyan", box=ASCII)
    table.add_column("Dimension", style="white")
    table.add_column("Score", justify="right")
    table.add_row("Field coverage", str(metrics.field_coverage))
    table.add_row("Content depth", str(metrics.content_depth))
    table.add_row("Data freshness", str(metrics.data_freshness))
    table.add_row("Source quality", str(metrics.source_quality))
    console.print(table)

    if metrics.missing_fields:
        console.print(f"\n[dim]Missing fields:[/dim] {', '.join(metrics.missing_fields)}")

    if metrics.recommendations:
        recs = Table(show_header=True, header_style="bold cyan", box=ASCII)
        recs.add_column("Scraper", style="cyan")
        recs.add_column("Priority")
        recs.add_column("Gain", justify="right")
        recs.add_column("Cost", style="cost", justify="right")
        recs.add_column("Reason", style="white")
        for rec in metrics.recommendations:
            recs.add_row(
                rec.scraper.value,
                rec.priority.value,
                f"+{rec.expected_improvement}",
                f"${rec.estimated_cost:.4f}",
                rec.reason,
            )
        console.print(recs)


def print_routing(decision: Optional[RoutingDecision]):
    if decision is None:
        print_warning("Every enabled scraper has already run for this session")
        return

    console.print(f"\nRecommended: [highlight]{decision.recommended_scraper.value}[/highlight]")
    console.print(f"   Reason: {decision.reason}")
    console.print(f"   Confidence: {decision.confidence.value}")
    console.print(f"   Expected gain: +{decision.estimated_quality_gain}")
    console.print(f"   [cost]Estimated cost: ${decision.estimated_cost:.4f}[/cost]")
    if decision.alternative_scrapers:
        alternatives = ", ".join(s.value for s in decision.alternative_scrapers)
        console.print(f"   Alternatives: {alternatives}")


def print_optimization(result: Optional[OptimizationResult]):
    if result is None:
        return
    if result.recommended is None:
        print_warning(f"{result.reason} ({result.outcome.value})")
        return
    console.print(
        f"\nMost cost-effective: [highlight]{result.recommended.value}[/highlight] "
        f"[cost](${result.projected_cost:.4f})[/cost]"
    )
    console.print(f"   {result.reason}")


def print_budget(status: BudgetStatus, max_budget: float):
    style = "error" if status.exceeded else "success"
    console.print(f"\nSpent: [cost]${status.total_spent:.4f}[/cost] of ${max_budget:.2f}")
    console.print(f"Remaining: [{style}]${status.remaining:.4f}[/{style}]")
    if status.exceeded:
        print_warning("Budget exceeded")
