"""CLI entry point for promptpanel.

Commands:
  record     — merge a set of reviewer critiques and append a pending audit record
  outcome    — report how a review ended (approved / edited / rejected)
  verify     — check the integrity hashes of one or more audit log partitions
  reflect    — per-reviewer precision and outcome correlation over a window
  adapt      — preview (or --apply) precision-driven reviewer weights
  history    — past weight adaptations and the metrics behind them
  benchmark  — current weights vs uniform weights on recorded outcomes
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from promptpanel_cli.commands.adapt import adapt_cmd
from promptpanel_cli.commands.benchmark import benchmark_cmd
from promptpanel_cli.commands.history import history_cmd
from promptpanel_cli.commands.outcome import outcome_cmd
from promptpanel_cli.commands.record import record_cmd
from promptpanel_cli.commands.reflect import reflect_cmd
from promptpanel_cli.commands.verify import verify_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_store(config: dict):
    """Instantiate the audit store from .promptpanel.yml settings.

      enabled: false → NoOpStore        (nothing is recorded)
      (default)      → JsonlAuditStore  (date-partitioned JSONL under log_dir)

    This factory lives in cli.py so neither promptpanel_core nor
    promptpanel_store know about the CLI config format.
    """
    from promptpanel_store.jsonl import JsonlAuditStore
    from promptpanel_store.noop import NoOpStore

    if not config.get("enabled", True):
        return NoOpStore()
    return JsonlAuditStore(config.get("log_dir") or "logs")


@click.group()
@click.version_option(
    version=importlib.metadata.version("promptpanel"),
    prog_name="promptpanel",
)
@click.option(
    "--config",
    "config_path",
    default=".promptpanel.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PROMPTPANEL_CONFIG",
)
@click.option("--log-dir", default=None, help="Audit log directory. Overrides config file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, log_dir: str | None, verbose: bool):
    """Multi-reviewer prompt critique with an adaptive, auditable scoring loop."""
    from promptpanel_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"log_dir": log_dir})
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.UsageError(f"Cannot read {config_path}: {e}")

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(record_cmd)
main.add_command(outcome_cmd)
main.add_command(verify_cmd)
main.add_command(reflect_cmd)
main.add_command(adapt_cmd)
main.add_command(history_cmd)
main.add_command(benchmark_cmd)
