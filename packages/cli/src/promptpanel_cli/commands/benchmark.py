"""benchmark command — current reviewer weights vs uniform weights."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from promptpanel_cli.helpers import build_controller, echo_json, fmt_num

console = Console()


@click.command("benchmark")
@click.option("--days", default=30, show_default=True, help="Window size in days. 0 reads the whole log.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def benchmark_cmd(ctx, days: int, as_json: bool):
    """Check whether the configured weights separate good reviews from bad ones.

    Every scored review is re-scored with the current weights and with all
    weights at 1.0. The better weighting has the larger gap between the mean
    composite of approved/edited reviews and that of rejected ones.
    """
    result = build_controller(ctx).benchmark(days or None)

    if as_json:
        echo_json(
            {
                "weights": result.weights,
                "scored_reviews": result.scored_reviews,
                "current": {**vars(result.current), "separation": result.current.separation},
                "uniform": {**vars(result.uniform), "separation": result.uniform.separation},
                "winner": result.winner,
            }
        )
        return

    if not result.scored_reviews:
        console.print("[yellow]No scored reviews in this window.[/yellow]")
        return

    table = Table(title=f"Benchmark ({result.scored_reviews} scored reviews)", show_header=True, header_style="bold cyan")
    table.add_column("Weighting", style="bold")
    table.add_column("Mean", justify="right")
    table.add_column("Approved/edited", justify="right")
    table.add_column("Rejected", justify="right")
    table.add_column("Separation", justify="right")
    for name, stats in (("current", result.current), ("uniform", result.uniform)):
        table.add_row(
            name,
            fmt_num(stats.mean_composite),
            fmt_num(stats.favourable_mean),
            fmt_num(stats.rejected_mean),
            fmt_num(stats.separation),
        )
    console.print(table)

    if result.winner is None:
        console.print("[yellow]Need both favourable and rejected outcomes to compare weightings.[/yellow]")
    elif result.winner == "tie":
        console.print("Both weightings separate outcomes equally well.")
    else:
        console.print(f"Better separation: [bold]{result.winner}[/bold] weights")
