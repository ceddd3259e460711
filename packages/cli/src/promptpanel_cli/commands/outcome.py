"""outcome command — report how a recorded review ended."""

from __future__ import annotations

import click
from rich.console import Console

from promptpanel_cli.helpers import require_store, today_utc

console = Console()

_REJECTION_KINDS = ("invalid", "deferred", "conflict")


def _parse_reasons(values: tuple[str, ...]) -> dict[str, str]:
    reasons = {}
    for value in values:
        finding_id, sep, kind = value.partition("=")
        if not sep or not finding_id or kind not in _REJECTION_KINDS:
            raise click.BadParameter(
                f"expected FINDING_ID=KIND with KIND one of {', '.join(_REJECTION_KINDS)}; got {value!r}",
                param_hint="--reason",
            )
        reasons[finding_id] = kind
    return reasons


@click.command("outcome")
@click.argument("prompt_hash")
@click.option(
    "--outcome",
    type=click.Choice(["approved", "edited", "rejected"]),
    required=True,
    help="How the review ended.",
)
@click.option("--accept", "accepted", multiple=True, help="Accepted finding id. Repeatable.")
@click.option("--reject", "rejected", multiple=True, help="Rejected finding id. Repeatable.")
@click.option(
    "--reason",
    "reasons",
    multiple=True,
    help="Why a finding was rejected, as FINDING_ID=invalid|deferred|conflict. Repeatable.",
)
@click.option("--date", "date", default=None, help="Partition date (YYYY-MM-DD) of the record. Defaults to today (UTC).")
@click.pass_context
def outcome_cmd(ctx, prompt_hash: str, outcome: str, accepted, rejected, reasons, date: str | None):
    """Resolve the pending record for PROMPT_HASH.

    Only the first pending record with that hash in the day's log is updated;
    a record that fails its integrity check is never touched.
    """
    store = require_store(ctx)
    rejection_reasons = _parse_reasons(reasons)

    updated = store.update_outcome(
        date or today_utc(),
        prompt_hash,
        outcome,
        list(accepted),
        list(rejected),
        rejection_reasons or None,
    )
    if not updated:
        raise click.ClickException(
            f"No pending, verifiable record for {prompt_hash} on {date or today_utc()}."
        )

    console.print(
        f"[green]Recorded outcome '{outcome}' for {prompt_hash}[/green] "
        f"({len(accepted)} accepted, {len(rejected)} rejected)"
    )
