"""reflect command — per-reviewer precision over a window of recorded reviews."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from promptpanel_cli.helpers import echo_json, fmt_pct, require_store
from promptpanel_core.config import reflection_settings
from promptpanel_core.reflection import reflect

console = Console()


@click.command("reflect")
@click.option("--days", default=30, show_default=True, help="Window size in days. 0 reads the whole log.")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.pass_context
def reflect_cmd(ctx, days: int, as_json: bool):
    """Show how useful each reviewer has been.

    Precision is accepted / proposed findings; strict precision only counts
    rejections marked 'invalid'. Outcome correlation is the share of a
    reviewer's reviews where an accepted finding of theirs ended approved or
    edited. Roles that rarely speak up but are always right are flagged as
    playing it safe.
    """
    store = require_store(ctx)
    settings = reflection_settings(ctx.obj["config"])

    report = reflect(
        store,
        days or None,
        min_reviews=settings["min_reviews_for_adaptation"],
        precision_threshold=settings["precision_threshold"],
    )

    if as_json:
        echo_json(report.to_dict())
        return

    # --- Summary ---
    console.print(f"\n[bold]Reflection over [cyan]{report.period}[/cyan][/bold]")
    console.print(f"  Reviews:              {report.total_reviews}")
    console.print(f"  With outcome:         {report.reviews_with_outcome}")
    if report.hash_verification_failed:
        console.print(f"  [red]Failed integrity:     {report.skipped_entries}[/red]")
    if report.malformed_entries:
        console.print(f"  [yellow]Malformed lines:      {report.malformed_entries}[/yellow]")

    if not report.sufficient_data:
        console.print(
            f"[yellow]Not enough reviews with a reported outcome "
            f"({report.reviews_with_outcome} < {settings['min_reviews_for_adaptation']}).[/yellow]"
        )
        return

    # --- Per-reviewer metrics ---
    low = set(report.low_precision_roles)
    table = Table(title="Reviewer Metrics", show_header=True, header_style="bold cyan")
    table.add_column("Reviewer", style="bold")
    table.add_column("Reviews", justify="right")
    table.add_column("Proposed", justify="right")
    table.add_column("Accepted", justify="right")
    table.add_column("Precision", justify="right")
    table.add_column("Strict", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_column("Outcome", justify="right")
    for role, m in report.reviewers.items():
        style = "red" if role in low else "green"
        table.add_row(
            role,
            str(m.review_count),
            str(m.proposed),
            str(m.accepted),
            f"[{style}]{fmt_pct(m.precision)}[/{style}]",
            fmt_pct(m.precision_strict),
            fmt_pct(m.coverage_ratio),
            fmt_pct(m.outcome_correlation),
        )
    console.print(table)

    if report.low_precision_roles:
        console.print(f"Low precision:  {', '.join(report.low_precision_roles)}")
    if report.plays_it_safe_roles:
        console.print(f"Plays it safe:  {', '.join(report.plays_it_safe_roles)}")
