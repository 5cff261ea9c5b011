"""Time-budgeted maintenance for one store."""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from .models import FactStatus
from .store import FactStore

logger = structlog.get_logger()


def _cutoff(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).replace(microsecond=0).isoformat()


class Sweeper:
    """Expire stale facts and prune unreferenced rows, stopping when out of time.

    Steps run in a fixed order and the budget is checked before each one; a
    step that has started always finishes.
    """

    def __init__(
        self,
        store: FactStore,
        proposed_fact_ttl_days: int = 14,
        disputed_fact_ttl_days: int = 30,
        content_retention_days: int = 30,
        default_budget_seconds: float = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.proposed_fact_ttl_days = proposed_fact_ttl_days
        self.disputed_fact_ttl_days = disputed_fact_ttl_days
        self.content_retention_days = content_retention_days
        self.default_budget_seconds = default_budget_seconds
        self._clock = clock

    def run(self, budget_seconds: Optional[float] = None) -> dict:
        budget = self.default_budget_seconds if budget_seconds is None else float(budget_seconds)
        start = self._clock()
        stats: dict = {
            "proposed_facts_expired": 0,
            "disputed_facts_expired": 0,
            "orphaned_provenance_deleted": 0,
            "old_content_pruned": 0,
            "wal_checkpointed": False,
            "steps_skipped": [],
        }

        steps = [
            ("expire_proposed", self._expire_proposed),
            ("expire_disputed", self._expire_disputed),
            ("prune_provenance", self._prune_provenance),
            ("prune_content", self._prune_content),
            ("checkpoint_wal", self._checkpoint),
        ]
        for name, step in steps:
            if self._clock() - start >= budget:
                stats["steps_skipped"].append(name)
                continue
            step(stats)

        elapsed = self._clock() - start
        stats["elapsed_seconds"] = round(elapsed, 4)
        stats["budget_seconds"] = budget
        stats["budget_honored"] = elapsed <= budget
        logger.info(
            "sweep.completed",
            db=str(self.store.db_path),
            elapsed_seconds=stats["elapsed_seconds"],
            budget_honored=stats["budget_honored"],
            skipped=len(stats["steps_skipped"]),
        )
        return stats

    def _expire_proposed(self, stats: dict) -> None:
        stats["proposed_facts_expired"] = self.store.expire_facts(
            FactStatus.PROPOSED, _cutoff(self.proposed_fact_ttl_days)
        )

    def _expire_disputed(self, stats: dict) -> None:
        stats["disputed_facts_expired"] = self.store.expire_facts(
            FactStatus.DISPUTED, _cutoff(self.disputed_fact_ttl_days)
        )

    def _prune_provenance(self, stats: dict) -> None:
        stats["orphaned_provenance_deleted"] = self.store.prune_orphaned_provenance()

    def _prune_content(self, stats: dict) -> None:
        stats["old_content_pruned"] = self.store.prune_content(_cutoff(self.content_retention_days))

    def _checkpoint(self, stats: dict) -> None:
        self.store.checkpoint_wal()
        stats["wal_checkpointed"] = True
