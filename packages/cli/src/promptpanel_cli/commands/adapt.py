"""adapt command — preview or apply precision-driven reviewer weights."""

from __future__ import annotations

from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from promptpanel_cli.helpers import build_controller, echo_json, fmt_num

console = Console()


def _diff_table(diff) -> Table:
    table = Table(title="Suggested Weights", show_header=True, header_style="bold cyan")
    table.add_column("Reviewer", style="bold")
    table.add_column("Current", justify="right")
    table.add_column("Suggested", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Reason")
    for s in diff:
        style = "green" if s.delta > 0 else "red" if s.delta < 0 else "white"
        table.add_row(
            s.role,
            fmt_num(s.current),
            fmt_num(s.suggested),
            f"[{style}]{s.delta:+.2f}[/{style}]",
            s.reason,
        )
    return table


@click.command("adapt")
@click.option("--days", default=30, show_default=True, help="Measurement window in days. 0 reads the whole log.")
@click.option("--apply", "apply_changes", is_flag=True, help="Write the suggested weights to the config file.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def adapt_cmd(ctx, days: int, apply_changes: bool, as_json: bool):
    """Suggest new reviewer weights from measured precision.

    Each weight is scaled by the reviewer's precision relative to the
    average, then clamped to the configured bounds. Without --apply nothing
    is written.
    """
    controller = build_controller(ctx)
    window = days or None

    if apply_changes:
        result = controller.apply(window)
        sufficient = result.report is not None and result.report.sufficient_data
        diff, success, error = result.diff, result.success, result.error
    else:
        preview = controller.preview(window)
        sufficient = preview.sufficient_data
        diff, success, error = preview.diff, preview.error is None, preview.error

    if as_json:
        payload = {
            "sufficient_data": sufficient,
            "diff": [asdict(s) for s in diff],
            "applied": apply_changes and success,
        }
        if error:
            payload["error"] = error
        echo_json(payload)
    elif not sufficient:
        console.print("[yellow]Not enough reviews with a reported outcome to adapt weights.[/yellow]")
    elif not diff:
        console.print("[yellow]No reviewer has enough reviews to qualify for a weight change.[/yellow]")
    else:
        console.print(_diff_table(diff))

    if error:
        raise click.ClickException(error)
    if not apply_changes or not sufficient:
        return

    if not as_json:
        console.print(f"[green]Weights written to {ctx.obj['config_path']}[/green]")
        if not result.history_logged:
            console.print("[yellow]Weight change was not added to the weight history log.[/yellow]")
