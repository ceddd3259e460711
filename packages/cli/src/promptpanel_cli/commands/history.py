"""history command — display past weight adaptations from the weight history log."""

from __future__ import annotations

from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from promptpanel_cli.helpers import build_controller, echo_json, fmt_num, fmt_pct

console = Console()


@click.command("history")
@click.option("--limit", default=20, show_default=True, help="Maximum number of adaptations to show.")
@click.option("--role", default=None, help="Only show changes for this reviewer.")
@click.option("--json", "as_json", is_flag=True, help="Print the history as JSON.")
@click.pass_context
def history_cmd(ctx, limit: int, role: str | None, as_json: bool):
    """Show past weight changes and the precision that drove them."""
    impacts = build_controller(ctx).history()

    # Show most recent first, capped at --limit.
    impacts = list(reversed(impacts))[:limit]

    if as_json:
        echo_json([asdict(i) for i in impacts])
        return

    if not impacts:
        console.print("[yellow]No weight adaptations recorded.[/yellow]")
        return

    table = Table(title="Weight History", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold", width=10)
    table.add_column("Window", justify="right")
    table.add_column("Reviewer")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Precision", justify="right")

    for impact in impacts:
        window = f"{impact.period_days}d" if impact.period_days else "all"
        for r in impact.roles:
            if role and r.role != role:
                continue
            style = "green" if r.weight_delta > 0 else "red" if r.weight_delta < 0 else "white"
            table.add_row(
                impact.change_date,
                window,
                r.role,
                fmt_num(r.weight_before),
                fmt_num(r.weight_after),
                f"[{style}]{r.weight_delta:+.2f}[/{style}]",
                fmt_pct(r.precision_at_change),
            )

    console.print(table)
