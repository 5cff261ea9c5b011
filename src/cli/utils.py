"""Shared CLI utilities."""

import json
from typing import Optional

import structlog
from rich.console import Console

console = Console()
err_console = Console(stderr=True)
logger = structlog.get_logger()


def get_components(project_dir: Optional[str] = None) -> dict:
    """Build the scope manager and recall engine from config.

    Stores are opened lazily by the scope manager, so this is cheap.
    """
    from cli.config import get_paths, load_config, load_config_model
    from knowledge.recall import Recall
    from knowledge.scope import build_scope_manager

    config = load_config()
    config_model = load_config_model()
    paths = get_paths(config, project_dir)

    scopes = build_scope_manager(
        global_db=paths["global_db"],
        project_path=str(paths["project_dir"]),
        project_db=paths["project_db"],
        single_db=paths["single_db"],
    )
    recall = Recall(
        scopes,
        rrf_k=config_model.recall.rrf_k,
        semantic_candidates=config_model.recall.semantic_candidates,
    )
    return {
        "config": config,
        "config_model": config_model,
        "paths": paths,
        "scopes": scopes,
        "recall": recall,
    }


def print_json(data) -> None:
    """Plain JSON on stdout for scripting (``--json`` flags)."""
    console.print_json(json.dumps(data, default=str))


def fact_label(fact: dict) -> str:
    obj = fact.get("object_literal") or fact.get("object_name") or ""
    return f"{fact.get('subject_name')} {fact.get('predicate')} {obj}".strip()
