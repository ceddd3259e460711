"""Helpers shared by CLI commands."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import click

from promptpanel_core.adaptation import AdaptationController
from promptpanel_store.base import BaseStore
from promptpanel_store.noop import NoOpStore
from promptpanel_store.weights import WeightChangeLog


def require_store(ctx: click.Context) -> BaseStore:
    """Return the audit store, or fail with a usage error when auditing is disabled."""
    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError(
            "Auditing is disabled. Set 'enabled: true' in .promptpanel.yml "
            "(and unset PROMPTPANEL_ENABLED) to record reviews."
        )
    return store


def build_controller(ctx: click.Context) -> AdaptationController:
    store = require_store(ctx)
    config = ctx.obj["config"]
    weight_log = WeightChangeLog.in_dir(config.get("log_dir") or "logs")
    return AdaptationController(store, weight_log, ctx.obj["config_path"])


def today_utc() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def fmt_pct(value: float | None) -> str:
    return "-" if value is None else f"{value * 100:.1f}%"


def fmt_num(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}"


def echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))
