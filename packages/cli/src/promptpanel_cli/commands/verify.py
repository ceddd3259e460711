"""verify command — check audit log partitions for tampered or unhashed records."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from promptpanel_cli.helpers import echo_json, require_store, today_utc

console = Console()


@click.command("verify")
@click.option("--date", "dates", multiple=True, help="Partition date (YYYY-MM-DD). Repeatable. Defaults to today (UTC).")
@click.option("--all", "check_all", is_flag=True, help="Check every partition in the log directory.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@click.pass_context
def verify_cmd(ctx, dates: tuple[str, ...], check_all: bool, as_json: bool):
    """Recompute the integrity hash of every record in the selected partitions.

    Exits non-zero when any record is missing its hash, fails verification,
    or cannot be decoded.
    """
    from promptpanel_store.jsonl import JsonlAuditStore

    store = require_store(ctx)
    if not isinstance(store, JsonlAuditStore):
        raise click.UsageError("verify needs the JSONL audit store.")

    if check_all:
        dates = tuple(store.partition_dates())
    elif not dates:
        dates = (today_utc(),)

    reports = [store.check_integrity(d) for d in dates]
    failed = any(r.issues or r.malformed for r in reports)

    if as_json:
        echo_json(
            [
                {
                    "date": r.date,
                    "total": r.total,
                    "valid": r.valid,
                    "malformed": r.malformed,
                    "issues": [{"line": i.line, "prompt_hash": i.prompt_hash, "reason": i.reason} for i in r.issues],
                }
                for r in reports
            ]
        )
    else:
        if not reports:
            console.print("[yellow]No audit log partitions found.[/yellow]")
            return

        table = Table(title="Audit Log Integrity", show_header=True, header_style="bold cyan")
        table.add_column("Date", style="bold")
        table.add_column("Records", justify="right")
        table.add_column("Valid", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Malformed", justify="right")
        for r in reports:
            failed_style = "red" if r.issues else "green"
            table.add_row(
                r.date,
                str(r.total),
                str(r.valid),
                f"[{failed_style}]{len(r.issues)}[/{failed_style}]",
                str(r.malformed),
            )
        console.print(table)

        for r in reports:
            for issue in r.issues:
                console.print(f"  [red]{r.date}:{issue.line}[/red] {issue.prompt_hash or '?'}: {issue.reason}")

    if failed:
        ctx.exit(1)
