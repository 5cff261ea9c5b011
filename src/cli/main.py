"""beliefbase CLI entry point."""

import os
import sys
from pathlib import Path

import click
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import (
    changes,
    concepts,
    conflicts,
    details,
    doctor,
    embed,
    explain,
    hook,
    index,
    init,
    promote,
    recall,
    semantic,
    serve,
    stats,
    store,
    sweep,
)
from cli.config import get_paths, load_config_model
from cli.logging_config import setup_logging
from knowledge.scope import PROJECT_DIR_ENV

console = Console(stderr=True)


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines on stderr")
@click.option(
    "--project-dir",
    envvar=PROJECT_DIR_ENV,
    type=click.Path(file_okay=False),
    help="Project directory (default: current directory)",
)
def cli(verbose: bool, json_logs: bool, project_dir: str):
    """beliefbase - evidence-backed project memory."""
    if project_dir:
        os.environ[PROJECT_DIR_ENV] = str(Path(project_dir).resolve())
    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    paths = get_paths(config.to_dict())
    setup_logging(
        json_mode=json_logs or config.logging.json_mode,
        level="DEBUG" if verbose else config.logging.level,
        log_file=paths["log_file"],
    )


for command in (
    init,
    recall,
    index,
    details,
    explain,
    changes,
    conflicts,
    semantic,
    concepts,
    store,
    promote,
    embed,
    stats,
    sweep,
    doctor,
    hook,
    serve,
):
    cli.add_command(command)


if __name__ == "__main__":
    cli()
