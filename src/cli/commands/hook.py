"""Hook CLI commands, invoked by the host on session lifecycle events."""

import json
import sys

import click

from cli.utils import get_components
from hooks.handler import HookHandler, run_hook


def _run(command: str) -> None:
    c = get_components()
    scopes = c["scopes"]
    cfg = c["config_model"].sweep
    handler = HookHandler(
        scopes.store_for_scope("project"),
        project_path=scopes.project_path,
        sweeper_options={
            "proposed_fact_ttl_days": cfg.proposed_fact_ttl_days,
            "disputed_fact_ttl_days": cfg.disputed_fact_ttl_days,
            "content_retention_days": cfg.content_retention_days,
            "default_budget_seconds": cfg.default_budget_seconds,
        },
    )
    code, result = run_hook(handler, command, sys.stdin.read())
    click.echo(json.dumps(result, default=str))
    sys.exit(int(code))


@click.group()
def hook():
    """Lifecycle hooks (read one JSON payload from stdin)."""
    pass


@hook.command("ingest")
def hook_ingest():
    """Ingest new transcript bytes, distill and resolve them."""
    _run("ingest")


@hook.command("sweep")
def hook_sweep():
    """Run budgeted maintenance on the project store."""
    _run("sweep")
