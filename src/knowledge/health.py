"""Schema health checks for a fact store file.

Validates the schema version, expected tables, columns and indexes, then looks
for orphaned rows and out-of-range values. Each run is recorded in
``schema_health`` so degradation can be traced over time.
"""

import json

import structlog

from .embeddings import EMBEDDING_DIM
from .migrations import SCHEMA_VERSION
from .models import FactStatus, utc_now
from .store import FactStore

logger = structlog.get_logger().bind(source="schema_health")

EXPECTED_TABLES = (
    "meta",
    "content_items",
    "delta_cursors",
    "entities",
    "entity_aliases",
    "facts",
    "provenance",
    "fact_links",
    "conflicts",
    "content_fts",
    "tool_calls",
    "schema_health",
)

CRITICAL_COLUMNS = {
    "facts": ("id", "subject_entity_id", "predicate", "status", "scope", "project_path", "embedding_json"),
    "content_items": ("id", "source", "session_id", "text_hash", "ingested_at", "git_branch"),
    "entities": ("id", "type", "canonical_name", "slug"),
    "conflicts": ("id", "fact_a_id", "status", "proposed_object"),
}

CRITICAL_INDEXES = (
    "idx_facts_slot",
    "idx_facts_scope",
    "idx_provenance_fact",
    "idx_content_items_session",
    "idx_tool_calls_content",
)

# (severity, message template, query counting offending rows)
ROW_CHECKS = (
    (
        "error",
        "{n} orphaned provenance record(s) without a fact",
        "SELECT COUNT(*) FROM provenance p LEFT JOIN facts f ON f.id = p.fact_id WHERE f.id IS NULL",
    ),
    (
        "error",
        "{n} orphaned fact_links record(s)",
        """SELECT COUNT(*) FROM fact_links l
           LEFT JOIN facts a ON a.id = l.from_fact_id
           LEFT JOIN facts b ON b.id = l.to_fact_id
           WHERE a.id IS NULL OR b.id IS NULL""",
    ),
    (
        "warning",
        "{n} orphaned tool_calls record(s) without a content item",
        """SELECT COUNT(*) FROM tool_calls t
           LEFT JOIN content_items c ON c.id = t.content_item_id WHERE c.id IS NULL""",
    ),
    (
        "error",
        "{n} fact(s) with invalid scope",
        "SELECT COUNT(*) FROM facts WHERE scope NOT IN ('project', 'global')",
    ),
    (
        "warning",
        "{n} fact(s) with unknown status",
        "SELECT COUNT(*) FROM facts WHERE status NOT IN ({statuses})".format(
            statuses=",".join(f"'{s.value}'" for s in FactStatus)
        ),
    ),
)

EMBEDDING_SAMPLE = 10


class SchemaValidator:
    """Checks one ``FactStore`` and records the outcome."""

    def __init__(self, store: FactStore):
        self.store = store

    def _tables(self) -> set[str]:
        rows = self.store.conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')"
        ).fetchall()
        return {r[0] for r in rows}

    def _indexes(self) -> set[str]:
        rows = self.store.conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
        return {r[0] for r in rows}

    def _columns(self, table: str) -> set[str]:
        return {row[1] for row in self.store.conn.execute(f"PRAGMA table_info({table})")}

    def validate(self, record: bool = True) -> dict:
        issues: list[dict] = []
        conn = self.store.conn

        version = self.store.schema_version
        if version != SCHEMA_VERSION:
            issues.append(
                {"severity": "error", "message": f"Schema version {version}, expected {SCHEMA_VERSION}"}
            )

        tables = self._tables()
        for table in EXPECTED_TABLES:
            if table not in tables:
                issues.append({"severity": "error", "message": f"Missing table: {table}"})

        for table, columns in CRITICAL_COLUMNS.items():
            if table not in tables:
                continue
            existing = self._columns(table)
            for column in columns:
                if column not in existing:
                    issues.append({"severity": "error", "message": f"Missing column {table}.{column}"})

        indexes = self._indexes()
        for index in CRITICAL_INDEXES:
            if index not in indexes:
                issues.append({"severity": "warning", "message": f"Missing index: {index}"})

        if {"facts", "provenance", "fact_links", "tool_calls", "content_items"} <= tables:
            for severity, message, query in ROW_CHECKS:
                count = conn.execute(query).fetchone()[0]
                if count:
                    issues.append({"severity": severity, "message": message.format(n=count)})
            issues.extend(self._embedding_issues())

        counts = {
            table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in sorted(tables & set(EXPECTED_TABLES))
        }
        if any(i["severity"] == "error" for i in issues):
            status = "corrupt"
        elif issues:
            status = "degraded"
        else:
            status = "healthy"

        if record and "schema_health" in tables:
            with self.store.transaction():
                conn.execute(
                    """INSERT INTO schema_health
                       (checked_at, schema_version, validation_status, issues_json, table_counts_json)
                       VALUES (?, ?, ?, ?, ?)""",
                    (utc_now(), version, status, json.dumps(issues), json.dumps(counts)),
                )

        log = logger.warning if status != "healthy" else logger.info
        log("health.checked", db_path=str(self.store.db_path), status=status, issues=len(issues))
        return {
            "db_path": str(self.store.db_path),
            "schema_version": version,
            "status": status,
            "valid": status != "corrupt",
            "issues": issues,
            "table_counts": counts,
        }

    def _embedding_issues(self) -> list[dict]:
        rows = self.store.conn.execute(
            "SELECT id, embedding_json FROM facts WHERE embedding_json IS NOT NULL LIMIT ?",
            (EMBEDDING_SAMPLE,),
        ).fetchall()
        for row in rows:
            try:
                vector = json.loads(row[1])
            except ValueError:
                return [{"severity": "error", "message": f"Fact {row[0]} has unreadable embedding JSON"}]
            if not isinstance(vector, list) or len(vector) != EMBEDDING_DIM:
                size = len(vector) if isinstance(vector, list) else 0
                return [
                    {
                        "severity": "error",
                        "message": f"Fact {row[0]} embedding has {size} dimensions, expected {EMBEDDING_DIM}",
                    }
                ]
        return []
