"""Canned recall queries with fixed scope and limit."""

from .recall import Recall

QUERIES: dict[str, dict] = {
    "decisions": {"query": "decision constraint rule requirement", "scope": "all", "limit": 10},
    "architecture": {
        "query": "uses framework implements architecture pattern",
        "scope": "all",
        "limit": 10,
    },
    "conventions": {"query": "convention style format pattern prefer", "scope": "global", "limit": 20},
    "project_config": {
        "query": "uses requires depends configuration",
        "scope": "project",
        "limit": 10,
    },
}


def run(name: str, recall: Recall, **overrides) -> list[dict]:
    """Run shortcut ``name``; ``overrides`` may replace scope or limit."""
    options = {**QUERIES[name], **{k: v for k, v in overrides.items() if v is not None}}
    return recall.query(options["query"], limit=options["limit"], scope=options["scope"])


def decisions(recall: Recall, **overrides) -> list[dict]:
    return run("decisions", recall, **overrides)


def architecture(recall: Recall, **overrides) -> list[dict]:
    return run("architecture", recall, **overrides)


def conventions(recall: Recall, **overrides) -> list[dict]:
    return run("conventions", recall, **overrides)


def project_config(recall: Recall, **overrides) -> list[dict]:
    return run("project_config", recall, **overrides)
