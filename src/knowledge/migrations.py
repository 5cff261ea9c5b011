"""Forward-only schema migrations keyed by ``meta.schema_version``.

Every migration must be safe to re-run against a partially migrated file:
tables and indexes use IF NOT EXISTS and columns are only added when missing.
"""

import sqlite3
from typing import Callable

import structlog

from .errors import KnowledgeError

logger = structlog.get_logger()


def _has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    return any(row[1] == column for row in conn.execute(f"PRAGMA table_info({table})"))


def _add_column(conn: sqlite3.Connection, table: str, column: str, decl: str) -> None:
    if not _has_column(conn, table, column):
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")


def _001_core_tables(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS content_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            source TEXT NOT NULL,
            session_id TEXT,
            transcript_path TEXT,
            project_path TEXT,
            occurred_at TEXT,
            ingested_at TEXT NOT NULL,
            text_hash TEXT NOT NULL,
            byte_len INTEGER NOT NULL,
            raw_text TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS delta_cursors (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            transcript_path TEXT NOT NULL,
            last_byte_offset INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL,
            UNIQUE (session_id, transcript_path)
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS entities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            canonical_name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS entity_aliases (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_id INTEGER NOT NULL REFERENCES entities(id),
            source TEXT,
            alias TEXT NOT NULL,
            confidence REAL DEFAULT 1.0,
            UNIQUE (entity_id, alias)
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS facts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            subject_entity_id INTEGER REFERENCES entities(id),
            predicate TEXT NOT NULL,
            object_entity_id INTEGER REFERENCES entities(id),
            object_literal TEXT,
            polarity TEXT DEFAULT 'positive',
            valid_from TEXT,
            valid_to TEXT,
            status TEXT DEFAULT 'active',
            confidence REAL DEFAULT 1.0,
            created_from TEXT,
            created_at TEXT NOT NULL,
            scope TEXT DEFAULT 'project',
            project_path TEXT,
            CHECK ((scope = 'project' AND project_path IS NOT NULL)
                OR (scope = 'global' AND project_path IS NULL))
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS provenance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            fact_id INTEGER NOT NULL REFERENCES facts(id),
            content_item_id INTEGER REFERENCES content_items(id),
            quote TEXT,
            attribution_entity_id INTEGER REFERENCES entities(id),
            strength TEXT DEFAULT 'stated'
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS fact_links (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            from_fact_id INTEGER NOT NULL REFERENCES facts(id),
            to_fact_id INTEGER NOT NULL REFERENCES facts(id),
            link_type TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS conflicts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            fact_a_id INTEGER NOT NULL REFERENCES facts(id),
            fact_b_id INTEGER REFERENCES facts(id),
            status TEXT DEFAULT 'open',
            detected_at TEXT NOT NULL,
            notes TEXT
        )
    """)
    for stmt in (
        "CREATE INDEX IF NOT EXISTS idx_facts_slot ON facts(subject_entity_id, predicate, status)",
        "CREATE INDEX IF NOT EXISTS idx_facts_predicate ON facts(predicate)",
        "CREATE INDEX IF NOT EXISTS idx_facts_status ON facts(status)",
        "CREATE INDEX IF NOT EXISTS idx_facts_scope ON facts(scope, project_path)",
        "CREATE INDEX IF NOT EXISTS idx_facts_created ON facts(created_at)",
        "CREATE INDEX IF NOT EXISTS idx_provenance_fact ON provenance(fact_id)",
        "CREATE INDEX IF NOT EXISTS idx_provenance_content ON provenance(content_item_id)",
        "CREATE INDEX IF NOT EXISTS idx_fact_links_from ON fact_links(from_fact_id)",
        "CREATE INDEX IF NOT EXISTS idx_fact_links_to ON fact_links(to_fact_id)",
        "CREATE INDEX IF NOT EXISTS idx_conflicts_status ON conflicts(status)",
        "CREATE INDEX IF NOT EXISTS idx_entity_aliases_entity ON entity_aliases(entity_id)",
        "CREATE INDEX IF NOT EXISTS idx_content_items_session ON content_items(session_id)",
        "CREATE INDEX IF NOT EXISTS idx_content_items_hash ON content_items(text_hash)",
    ):
        conn.execute(stmt)


def _002_content_fts(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE VIRTUAL TABLE IF NOT EXISTS content_fts USING fts5(
            content_item_id UNINDEXED,
            text,
            tokenize='porter unicode61'
        )
    """)


def _003_fact_embeddings(conn: sqlite3.Connection) -> None:
    _add_column(conn, "facts", "embedding_json", "TEXT")


def _004_conflict_audit(conn: sqlite3.Connection) -> None:
    _add_column(conn, "conflicts", "proposed_object", "TEXT")
    _add_column(conn, "conflicts", "proposed_quote", "TEXT")
    _add_column(conn, "conflicts", "proposed_strength", "TEXT")
    _add_column(conn, "conflicts", "content_item_id", "INTEGER REFERENCES content_items(id)")


def _005_session_metadata(conn: sqlite3.Connection) -> None:
    _add_column(conn, "content_items", "git_branch", "TEXT")
    _add_column(conn, "content_items", "cwd", "TEXT")
    _add_column(conn, "content_items", "agent_version", "TEXT")
    _add_column(conn, "content_items", "thinking_level", "TEXT")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS tool_calls (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            content_item_id INTEGER NOT NULL REFERENCES content_items(id) ON DELETE CASCADE,
            tool_name TEXT NOT NULL,
            tool_input TEXT,
            is_error INTEGER NOT NULL DEFAULT 0,
            timestamp TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_content_items_branch ON content_items(git_branch)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tool_calls_name ON tool_calls(tool_name)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_tool_calls_content ON tool_calls(content_item_id)"
    )


def _006_schema_health(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_health (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            checked_at TEXT NOT NULL,
            schema_version INTEGER NOT NULL,
            validation_status TEXT NOT NULL,
            issues_json TEXT,
            table_counts_json TEXT
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_schema_health_checked ON schema_health(checked_at)"
    )


MIGRATIONS: list[tuple[int, str, Callable[[sqlite3.Connection], None]]] = [
    (1, "core_tables", _001_core_tables),
    (2, "content_fts", _002_content_fts),
    (3, "fact_embeddings", _003_fact_embeddings),
    (4, "conflict_audit", _004_conflict_audit),
    (5, "session_metadata", _005_session_metadata),
    (6, "schema_health", _006_schema_health),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]


def get_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
    return int(row[0]) if row else 0


def _set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT INTO meta(key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )


def migrate(conn: sqlite3.Connection, target: int = SCHEMA_VERSION) -> int:
    """Bring the database up to ``target``. Returns the resulting version.

    ``conn`` must be in autocommit mode; each step runs in its own
    ``BEGIN IMMEDIATE`` transaction so a concurrent opener waits instead of
    applying the same step twice.
    """
    conn.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT)")

    current = get_version(conn)
    if current > SCHEMA_VERSION:
        raise KnowledgeError(
            f"Database schema version {current} is newer than supported version {SCHEMA_VERSION}"
        )

    for version, name, step in MIGRATIONS:
        if version > target:
            break
        conn.execute("BEGIN IMMEDIATE")
        try:
            # Re-read under the write lock: another process may have migrated.
            if get_version(conn) >= version:
                conn.execute("COMMIT")
                continue
            step(conn)
            _set_meta(conn, "schema_version", str(version))
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        logger.info("store.migrated", version=version, migration=name)

    return get_version(conn)
