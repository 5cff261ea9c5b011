"""Maintenance CLI commands."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cli.utils import get_components, print_json
from knowledge.health import SchemaValidator
from knowledge.sweeper import Sweeper

console = Console()


@click.command()
@click.option("--budget", type=float, default=None, help="Time budget in seconds")
@click.option("--scope", "-s", type=click.Choice(["all", "project", "global"]), default="all")
def sweep(budget: float, scope: str):
    """Expire stale facts and prune orphaned rows within a time budget."""
    c = get_components()
    cfg = c["config_model"].sweep
    found = False
    for source, store in c["scopes"].available(scope):
        found = True
        report = Sweeper(
            store,
            proposed_fact_ttl_days=cfg.proposed_fact_ttl_days,
            disputed_fact_ttl_days=cfg.disputed_fact_ttl_days,
            content_retention_days=cfg.content_retention_days,
            default_budget_seconds=cfg.default_budget_seconds,
        ).run(budget_seconds=budget)

        table = Table(title=f"Sweep: {source}")
        table.add_column("Step")
        table.add_column("Result", justify="right")
        for key, value in report.items():
            table.add_row(key, str(value))
        console.print(table)

    if not found:
        console.print("[yellow]No stores to sweep.[/]")


@click.command()
def serve():
    """Run the MCP server on stdio."""
    from memory_mcp.server import main

    main()


@click.command()
@click.option("--scope", "-s", type=click.Choice(["all", "project", "global"]), default="all")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def doctor(scope: str, as_json: bool):
    """Validate schema version, tables and orphaned rows of each store."""
    c = get_components()
    reports = {source: SchemaValidator(store).validate() for source, store in c["scopes"].available(scope)}
    if as_json:
        print_json(reports)
    elif not reports:
        console.print("[yellow]No stores found.[/] Run [cyan]beliefbase init[/].")
    else:
        _print_health(reports)
    if any(not r["valid"] for r in reports.values()):
        raise SystemExit(1)


def _print_health(reports: dict) -> None:
    for source, report in reports.items():
        color = {"healthy": "green", "degraded": "yellow"}.get(report["status"], "red")
        console.print(
            f"[bold]{source}[/] {escape(report['db_path'])} "
            f"(schema v{report['schema_version']}): [{color}]{report['status']}[/]"
        )
        for issue in report["issues"]:
            console.print(f"  {issue['severity']}: {escape(issue['message'])}")
