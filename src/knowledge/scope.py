"""Scope manager: owns the project and global store handles.

Every multi-store read goes through ``ScopeManager.execute`` so scope
branching lives in one place. Which implementation is used is decided once,
by ``build_scope_manager``.
"""

import os
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional, TypeVar

import structlog

from .errors import ScopeError
from .models import ABSENT, Found, Lookup, Scope

logger = structlog.get_logger()

T = TypeVar("T")

PROJECT_DIR_ENV = "BELIEFBASE_PROJECT_DIR"
PROJECT_DB_DIR = ".beliefbase"
PROJECT_DB_NAME = "memory.sqlite3"
DEFAULT_GLOBAL_DB = Path("~/.beliefbase/memory.sqlite3")

PROJECT = Scope.PROJECT.value
GLOBAL = Scope.GLOBAL.value
ALL = Scope.ALL.value


def resolve_project_dir(env: Optional[dict] = None) -> str:
    """Project directory from ``BELIEFBASE_PROJECT_DIR``, else the cwd."""
    env = os.environ if env is None else env
    return str(Path(env.get(PROJECT_DIR_ENV) or os.getcwd()).expanduser().resolve())


def validate_scope(scope: str) -> str:
    if scope not in (PROJECT, GLOBAL, ALL):
        raise ScopeError(f"Unknown scope: {scope!r} (expected project, global or all)")
    return scope


@dataclass(frozen=True)
class QueryContext:
    """Immutable per-request context threaded through recall helpers."""

    scope: str = ALL
    project_path: Optional[str] = None
    limit: int = 10

    def with_limit(self, limit: int) -> "QueryContext":
        return replace(self, limit=limit)


class ScopeManager(ABC):
    """Store access by scope."""

    project_path: str

    @abstractmethod
    def store(self, label: str):
        """Open (creating if needed) the store for ``label``."""

    @abstractmethod
    def available(self, scope: str) -> list[tuple[str, object]]:
        """``(source, store)`` pairs a read in ``scope`` should touch."""

    @abstractmethod
    def store_for_scope(self, scope: str):
        """Write target for ``project`` or ``global``."""

    @abstractmethod
    def promote_fact(self, fact_id: int) -> Lookup[int]:
        """Copy a project fact into the global store."""

    @abstractmethod
    def close(self) -> None: ...

    def context(self, scope: str = ALL, limit: int = 10) -> QueryContext:
        return QueryContext(scope=validate_scope(scope), project_path=self.project_path, limit=limit)

    def execute(self, scope: str, op: Callable[[object, str], list[T]]) -> list[T]:
        """Run ``op(store, source)`` per store in scope and concatenate results.

        With ``scope=all`` a database error in one store is logged and that
        store is skipped. For a single scope the error propagates.
        """
        validate_scope(scope)
        results: list[T] = []
        for source, store in self.available(scope):
            if scope != ALL:
                results.extend(op(store, source))
                continue
            try:
                results.extend(op(store, source))
            except sqlite3.Error as e:
                logger.warning("scope.store_failed", source=source, error=str(e))
        return results


class DualStoreScope(ScopeManager):
    """Separate project and global files, each opened on first use."""

    def __init__(
        self,
        project_db_path: str | Path,
        global_db_path: str | Path,
        project_path: Optional[str] = None,
        store_factory: Optional[Callable] = None,
    ):
        from .store import FactStore

        self.project_path = project_path or resolve_project_dir()
        self.paths = {
            PROJECT: Path(project_db_path).expanduser(),
            GLOBAL: Path(global_db_path).expanduser(),
        }
        self._factory = store_factory or FactStore
        self._stores: dict[str, object] = {}

    def exists(self, label: str) -> bool:
        return label in self._stores or self.paths[label].exists()

    def store(self, label: str):
        if label not in self.paths:
            raise ScopeError(f"Unknown store: {label!r}")
        if label not in self._stores:
            self._stores[label] = self._factory(self.paths[label])
            logger.debug("scope.store_opened", source=label, path=str(self.paths[label]))
        return self._stores[label]

    def available(self, scope: str) -> list[tuple[str, object]]:
        labels = [PROJECT, GLOBAL] if scope == ALL else [scope]
        return [(label, self.store(label)) for label in labels if self.exists(label)]

    def store_for_scope(self, scope: str):
        if scope not in (PROJECT, GLOBAL):
            raise ScopeError(f"Cannot write to scope {scope!r}")
        return self.store(scope)

    def promote_fact(self, fact_id: int) -> Lookup[int]:
        if not self.exists(PROJECT):
            return ABSENT
        project = self.store(PROJECT)
        fact = project.find_fact_row(fact_id)
        if not fact.present:
            return ABSENT
        row = fact.value
        subject = project.get_entity(row["subject_entity_id"])
        if not subject.present:
            return ABSENT

        glob = self.store(GLOBAL)
        receipts = project.receipts_by_fact_ids([fact_id])[fact_id]
        embedding = project.fact_embedding(fact_id)

        with glob.transaction():
            subject_id, _ = glob.find_or_create_entity(subject.value.type, subject.value.canonical_name)
            object_id = None
            if row["object_entity_id"]:
                obj = project.get_entity(row["object_entity_id"])
                if obj.present:
                    object_id, _ = glob.find_or_create_entity(obj.value.type, obj.value.canonical_name)

            global_id = glob.insert_fact(
                subject_entity_id=subject_id,
                predicate=row["predicate"],
                object_entity_id=object_id,
                object_literal=row["object_literal"],
                polarity=row["polarity"],
                valid_from=row["valid_from"],
                status=row["status"],
                confidence=row["confidence"],
                created_from=f"promoted:{self.project_path}:{fact_id}",
                scope=GLOBAL,
                project_path=None,
                embedding=embedding,
            )
            for receipt in receipts:
                glob.insert_provenance(global_id, quote=receipt["quote"], strength=receipt["strength"])
            if not receipts:
                glob.insert_provenance(global_id, quote=f"Promoted from {self.project_path}")

        logger.info("scope.fact_promoted", project_fact_id=fact_id, global_fact_id=global_id)
        return Found(global_id)

    def close(self) -> None:
        for store in self._stores.values():
            store.close()
        self._stores.clear()


class SingleStoreScope(ScopeManager):
    """One file holding both project and global facts."""

    SOURCE = "single"

    def __init__(self, store, project_path: Optional[str] = None):
        self._store = store
        self.project_path = project_path or resolve_project_dir()

    def store(self, label: str):
        return self._store

    def available(self, scope: str) -> list[tuple[str, object]]:
        return [(self.SOURCE, self._store)]

    def store_for_scope(self, scope: str):
        if scope not in (PROJECT, GLOBAL):
            raise ScopeError(f"Cannot write to scope {scope!r}")
        return self._store

    def promote_fact(self, fact_id: int) -> Lookup[int]:
        logger.warning("scope.promote_unsupported", fact_id=fact_id)
        return ABSENT

    def close(self) -> None:
        self._store.close()


def build_scope_manager(
    global_db: str | Path = DEFAULT_GLOBAL_DB,
    project_path: Optional[str] = None,
    project_db: Optional[str | Path] = None,
    single_db: Optional[str | Path] = None,
) -> ScopeManager:
    """Pick the scope manager implementation once, from configuration."""
    if single_db:
        from .store import FactStore

        return SingleStoreScope(FactStore(single_db), project_path=project_path)

    project_path = project_path or resolve_project_dir()
    if project_db is None:
        project_db = Path(project_path) / PROJECT_DB_DIR / PROJECT_DB_NAME
    return DualStoreScope(project_db, global_db, project_path=project_path)
