"""record command — merge reviewer critiques and append a pending audit record."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from promptpanel_cli.helpers import echo_json, require_store
from promptpanel_core.recorder import record_review

console = Console()

_SEV_STYLE = {"blocker": "red", "major": "yellow", "minor": "blue", "nit": "dim"}


def _load_payload(critiques_file) -> tuple[list, dict]:
    """Accept either a bare list of critiques or {"critiques": [...], "usage": {...}}."""
    try:
        payload = json.load(critiques_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="CRITIQUES_FILE")

    if isinstance(payload, list):
        return payload, {}
    if isinstance(payload, dict) and isinstance(payload.get("critiques"), list):
        return payload["critiques"], payload.get("usage") or {}
    raise click.BadParameter(
        "expected a list of critiques or an object with a 'critiques' list", param_hint="CRITIQUES_FILE"
    )


@click.command("record")
@click.argument("critiques_file", type=click.File("r"))
@click.option("--prompt", "prompt_text", default=None, help="The prompt that was reviewed.")
@click.option(
    "--prompt-file",
    type=click.File("r"),
    default=None,
    help="Read the reviewed prompt from a file instead of --prompt.",
)
@click.option("--project", default="", help="Project label stored with the record.")
@click.option("--duration-ms", type=int, default=0, show_default=True, help="Wall-clock time of the review.")
@click.option("--json", "as_json", is_flag=True, help="Print the audit record as JSON.")
@click.pass_context
def record_cmd(ctx, critiques_file, prompt_text, prompt_file, project: str, duration_ms: int, as_json: bool):
    """Record one review cycle from a JSON file of reviewer critiques.

    Critiques failing schema validation are dropped (and listed); the rest are
    merged into a priority-ordered edit plan and written to today's audit log
    as a pending record. Report how it ended later with `promptpanel outcome`.
    """
    if (prompt_text is None) == (prompt_file is None):
        raise click.UsageError("Pass exactly one of --prompt or --prompt-file.")
    prompt = prompt_text if prompt_text is not None else prompt_file.read()

    store = require_store(ctx)
    config = ctx.obj["config"]
    critiques, usage = _load_payload(critiques_file)

    result = record_review(store, prompt, critiques, config, project=project, usage=usage, duration_ms=duration_ms)

    for role, errors in result.invalid_critiques.items():
        console.print(f"[yellow]Dropped invalid critique from {escape(role)}:[/yellow] {escape('; '.join(errors))}")

    if not result.write.ok:
        raise click.ClickException(f"Audit record was not written: {result.write.error}")

    if as_json:
        echo_json(result.record.to_dict())
        return

    record = result.record
    console.print(f"\n[bold]Recorded review [cyan]{record.prompt_hash}[/cyan][/bold]")
    console.print(f"  Reviewers: {', '.join(record.reviewers_active) or 'none'}")
    console.print(f"  Severity:  {record.severity_max}")
    console.print(f"  Conflicts: {record.conflicts}")
    if result.score is not None and config.get("scoring", {}).get("display", True):
        composite = "-" if record.composite_score is None else f"{record.composite_score:.2f}"
        console.print(f"  Composite: {composite}")

    if result.merge.no_changes:
        console.print("[green]All reviewers reported no issues.[/green]")
        return

    if record.findings_detail:
        table = Table(title="Edit Plan", show_header=True, header_style="bold cyan")
        table.add_column("Finding", style="bold")
        table.add_column("Reviewer")
        table.add_column("Severity")
        table.add_column("Op")
        table.add_column("Value", max_width=40)
        for finding in record.findings_detail:
            style = _SEV_STYLE.get(finding.severity, "white")
            table.add_row(
                finding.finding_id,
                finding.reviewer_role,
                f"[{style}]{finding.severity}[/{style}]",
                finding.op or "",
                escape((finding.value or "")[:40]),
            )
        console.print(table)
