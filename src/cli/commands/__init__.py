"""CLI command modules."""

from .hook import hook
from .init import init
from .maintenance import doctor, serve, sweep
from .memory import (
    changes,
    concepts,
    conflicts,
    details,
    embed,
    explain,
    index,
    promote,
    recall,
    semantic,
    stats,
    store,
)

__all__ = [
    "init",
    "recall",
    "index",
    "details",
    "explain",
    "changes",
    "conflicts",
    "semantic",
    "concepts",
    "store",
    "promote",
    "embed",
    "stats",
    "sweep",
    "doctor",
    "hook",
    "serve",
]
