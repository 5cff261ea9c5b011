"""Init CLI command."""

from pathlib import Path

import click
import yaml
from rich.console import Console

from cli.utils import get_components

console = Console()

MINIMAL_CONFIG = {
    "paths": {
        "global_db": "~/.beliefbase/memory.sqlite3",
        "project_db_name": ".beliefbase/memory.sqlite3",
    },
    "sweep": {
        "default_budget_seconds": 5,
    },
    "logging": {
        "level": "WARNING",
    },
}


@click.command()
@click.option("--global-only", is_flag=True, help="Only create the user-wide store")
def init(global_only: bool):
    """Create the global and project stores and a default config."""
    c = get_components()
    scopes = c["scopes"]

    labels = ["global"] if global_only else ["global", "project"]
    for label in labels:
        store = scopes.store(label)
        console.print(f"[green]✓[/] {label} store: {store.db_path} (schema v{store.schema_version})")

    config_path = Path.home() / ".beliefbase" / "config.yaml"
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(MINIMAL_CONFIG, f, default_flow_style=False)
        console.print(f"[green]✓[/] Created config: {config_path}")

    console.print("\n[bold]Next:[/]")
    console.print("  1. Run [cyan]beliefbase serve[/] from your MCP client config")
    console.print("  2. Wire [cyan]beliefbase hook ingest[/] and [cyan]beliefbase hook sweep[/] to session events")
    console.print("  3. Run [cyan]beliefbase recall 'database'[/] to query what was learned")
