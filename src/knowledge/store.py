"""Persistent fact store: one SQLite file per scope.

Holds entities, facts, provenance receipts, supersession links, conflicts and
the evidence (content items) they were drawn from. All writes go through a
single long-lived connection so the resolver can wrap a whole extraction in
one transaction.
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from db import wal_connect

from .errors import ValidationError
from .fts import LexicalFTS
from .migrations import migrate
from .models import (
    ABSENT,
    Conflict,
    ConflictStatus,
    ContentItem,
    Entity,
    Fact,
    FactStatus,
    Found,
    LinkType,
    Lookup,
    Scope,
    Strength,
    utc_now,
)

logger = structlog.get_logger()

SESSION_METADATA_COLUMNS = ("git_branch", "cwd", "agent_version", "thinking_level")

_FACT_COLUMNS = """
    f.id, f.subject_entity_id, s.canonical_name AS subject_name, f.predicate,
    f.object_entity_id, o.canonical_name AS object_name, f.object_literal,
    f.polarity, f.status, f.confidence, f.valid_from, f.valid_to,
    f.created_at, f.created_from, f.scope, f.project_path
"""

_FACT_FROM = """
    FROM facts f
    LEFT JOIN entities s ON s.id = f.subject_entity_id
    LEFT JOIN entities o ON o.id = f.object_entity_id
"""


def _placeholders(values) -> str:
    return ",".join("?" for _ in values)


def scope_clause(scope: str, project_path: str | None, alias: str = "f") -> tuple[str, list]:
    """SQL predicate restricting facts to a scope.

    ``all`` with a project path means global facts plus that project's facts;
    ``all`` without one applies no filter.
    """
    if scope == Scope.PROJECT.value:
        return f"{alias}.scope = 'project' AND {alias}.project_path = ?", [project_path]
    if scope == Scope.GLOBAL.value:
        return f"{alias}.scope = 'global'", []
    if project_path:
        return (
            f"({alias}.scope = 'global' OR "
            f"({alias}.scope = 'project' AND {alias}.project_path = ?))",
            [project_path],
        )
    return "", []


class FactStore:
    """SQLite persistence for one scope's knowledge base."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = wal_connect(self.db_path, row_factory=True, autocommit=True)
        self._tx_depth = 0
        self.schema_version = migrate(self.conn)
        if not self._get_meta("created_at"):
            self._set_meta("created_at", utc_now())
        self.fts = LexicalFTS(self)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator["FactStore"]:
        """Run the block atomically. Nested calls join the outer transaction."""
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        self.conn.execute("BEGIN IMMEDIATE")
        self._tx_depth = 1
        try:
            yield self
        except BaseException:
            self._tx_depth = 0
            self.conn.execute("ROLLBACK")
            raise
        self._tx_depth = 0
        self.conn.execute("COMMIT")

    def checkpoint_wal(self) -> None:
        """Fold the WAL back into the main file and truncate it."""
        self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")

    def _get_meta(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _set_meta(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO meta(key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    # ------------------------------------------------------------------
    # Content items (evidence)
    # ------------------------------------------------------------------

    def upsert_content_item(
        self,
        source: str,
        text_hash: str,
        byte_len: int,
        session_id: str | None = None,
        transcript_path: str | None = None,
        project_path: str | None = None,
        occurred_at: str | None = None,
        raw_text: str | None = None,
        metadata: dict | None = None,
    ) -> int:
        """Insert an evidence chunk, or return the id of an identical one.

        ``metadata`` may carry the session columns ``git_branch``, ``cwd``,
        ``agent_version`` and ``thinking_level``.
        """
        if session_id is None:
            existing = self.conn.execute(
                "SELECT id FROM content_items WHERE text_hash = ? AND session_id IS NULL",
                (text_hash,),
            ).fetchone()
        else:
            existing = self.conn.execute(
                "SELECT id FROM content_items WHERE text_hash = ? AND session_id = ?",
                (text_hash, session_id),
            ).fetchone()
        if existing:
            return existing[0]

        now = utc_now()
        metadata = metadata or {}
        cur = self.conn.execute(
            """INSERT INTO content_items
               (source, session_id, transcript_path, project_path, occurred_at,
                ingested_at, text_hash, byte_len, raw_text,
                git_branch, cwd, agent_version, thinking_level)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                source,
                session_id,
                transcript_path,
                project_path,
                occurred_at or now,
                now,
                text_hash,
                byte_len,
                raw_text,
                *(metadata.get(c) for c in SESSION_METADATA_COLUMNS),
            ),
        )
        return cur.lastrowid

    def get_content_item(self, content_item_id: int) -> Lookup[ContentItem]:
        row = self.conn.execute(
            """SELECT id, source, text_hash, byte_len, occurred_at, ingested_at,
                      session_id, project_path, transcript_path,
                      git_branch, cwd, agent_version, thinking_level
               FROM content_items WHERE id = ?""",
            (content_item_id,),
        ).fetchone()
        return Found(ContentItem(**dict(row))) if row else ABSENT

    def insert_tool_calls(self, content_item_id: int, calls: list[dict]) -> int:
        if not calls:
            return 0
        self.conn.executemany(
            """INSERT INTO tool_calls (content_item_id, tool_name, tool_input, is_error, timestamp)
               VALUES (?, ?, ?, ?, ?)""",
            [
                (
                    content_item_id,
                    c["tool_name"],
                    c.get("tool_input"),
                    int(bool(c.get("is_error"))),
                    c.get("timestamp") or utc_now(),
                )
                for c in calls
            ],
        )
        return len(calls)

    def tool_calls_for(self, content_item_id: int) -> list[dict]:
        rows = self.conn.execute(
            """SELECT id, content_item_id, tool_name, tool_input, is_error, timestamp
               FROM tool_calls WHERE content_item_id = ? ORDER BY id""",
            (content_item_id,),
        ).fetchall()
        return [{**dict(r), "is_error": bool(r["is_error"])} for r in rows]

    def tool_usage(self, limit: int = 20) -> list[dict]:
        """Most used tools with call and error counts."""
        rows = self.conn.execute(
            """SELECT tool_name, COUNT(*) AS calls, SUM(is_error) AS errors
               FROM tool_calls GROUP BY tool_name
               ORDER BY calls DESC, tool_name LIMIT ?""",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_delta_cursor(self, session_id: str, transcript_path: str) -> int:
        row = self.conn.execute(
            "SELECT last_byte_offset FROM delta_cursors WHERE session_id = ? AND transcript_path = ?",
            (session_id, transcript_path),
        ).fetchone()
        return row[0] if row else 0

    def update_delta_cursor(self, session_id: str, transcript_path: str, offset: int) -> None:
        self.conn.execute(
            """INSERT INTO delta_cursors(session_id, transcript_path, last_byte_offset, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(session_id, transcript_path)
               DO UPDATE SET last_byte_offset = excluded.last_byte_offset,
                             updated_at = excluded.updated_at""",
            (session_id, transcript_path, offset, utc_now()),
        )

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    @staticmethod
    def slugify(entity_type: str, name: str) -> str:
        body = re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")
        return f"{entity_type.strip().lower()}:{body}"

    def find_or_create_entity(self, entity_type: str, name: str) -> tuple[int, bool]:
        """Resolve an entity by (type, slug). Returns (id, created).

        A spelling that slugifies to an existing entity but differs from its
        canonical name is kept as an alias.
        """
        name = name.strip()
        slug = self.slugify(entity_type, name)
        row = self.conn.execute(
            "SELECT id, canonical_name FROM entities WHERE slug = ?", (slug,)
        ).fetchone()
        if row:
            if row["canonical_name"] != name:
                self.add_entity_alias(row["id"], name, source="resolver")
            return row["id"], False

        cur = self.conn.execute(
            "INSERT INTO entities(type, canonical_name, slug, created_at) VALUES (?, ?, ?, ?)",
            (entity_type, name, slug, utc_now()),
        )
        return cur.lastrowid, True

    def add_entity_alias(
        self, entity_id: int, alias: str, source: str | None = None, confidence: float = 1.0
    ) -> None:
        self.conn.execute(
            """INSERT OR IGNORE INTO entity_aliases(entity_id, source, alias, confidence)
               VALUES (?, ?, ?, ?)""",
            (entity_id, source, alias, confidence),
        )

    def entity_aliases(self, entity_id: int) -> list[str]:
        rows = self.conn.execute(
            "SELECT alias FROM entity_aliases WHERE entity_id = ? ORDER BY id", (entity_id,)
        ).fetchall()
        return [r[0] for r in rows]

    def get_entity(self, entity_id: int) -> Lookup[Entity]:
        row = self.conn.execute(
            "SELECT id, type, canonical_name, slug, created_at FROM entities WHERE id = ?",
            (entity_id,),
        ).fetchone()
        return Found(Entity(**dict(row))) if row else ABSENT

    # ------------------------------------------------------------------
    # Facts
    # ------------------------------------------------------------------

    def insert_fact(
        self,
        subject_entity_id: int,
        predicate: str,
        object_entity_id: int | None = None,
        object_literal: str | None = None,
        polarity: str = "positive",
        valid_from: str | None = None,
        status: FactStatus | str = FactStatus.ACTIVE,
        confidence: float = 1.0,
        created_from: str | None = None,
        scope: str = Scope.PROJECT.value,
        project_path: str | None = None,
        embedding: list[float] | None = None,
    ) -> int:
        if scope == Scope.GLOBAL.value:
            project_path = None
        elif scope == Scope.PROJECT.value:
            if not project_path:
                raise ValidationError("Project-scoped facts require a project_path")
        else:
            raise ValidationError(f"Invalid fact scope: {scope}")

        now = utc_now()
        cur = self.conn.execute(
            """INSERT INTO facts
               (subject_entity_id, predicate, object_entity_id, object_literal, polarity,
                valid_from, status, confidence, created_from, created_at, scope,
                project_path, embedding_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                subject_entity_id,
                predicate,
                object_entity_id,
                object_literal,
                polarity,
                valid_from or now,
                FactStatus(status).value,
                confidence,
                created_from,
                now,
                scope,
                project_path,
                json.dumps(embedding) if embedding is not None else None,
            ),
        )
        return cur.lastrowid

    def update_fact(
        self,
        fact_id: int,
        status: FactStatus | str | None = None,
        valid_to: str | None = None,
    ) -> bool:
        updates: dict = {}
        if status is not None:
            updates["status"] = FactStatus(status).value
        if valid_to is not None:
            updates["valid_to"] = valid_to
        if not updates:
            return False

        assignments = ", ".join(f"{k} = ?" for k in updates)
        cur = self.conn.execute(
            f"UPDATE facts SET {assignments} WHERE id = ?", (*updates.values(), fact_id)
        )
        return cur.rowcount > 0

    def supersede_fact(self, old_fact_id: int, new_fact_id: int, valid_to: str) -> None:
        """Close ``old_fact_id`` and link it from its replacement."""
        with self.transaction():
            self.update_fact(old_fact_id, status=FactStatus.SUPERSEDED, valid_to=valid_to)
            self.insert_fact_link(new_fact_id, old_fact_id, LinkType.SUPERSEDES)

    def update_fact_embedding(self, fact_id: int, embedding: list[float]) -> None:
        self.conn.execute(
            "UPDATE facts SET embedding_json = ? WHERE id = ?", (json.dumps(embedding), fact_id)
        )

    def fact_embedding(self, fact_id: int) -> list[float] | None:
        row = self.conn.execute(
            "SELECT embedding_json FROM facts WHERE id = ?", (fact_id,)
        ).fetchone()
        if not row or not row[0]:
            return None
        return json.loads(row[0])

    def get_fact(self, fact_id: int) -> Lookup[Fact]:
        row = self.conn.execute(
            """SELECT id, subject_entity_id, predicate, object_entity_id, object_literal,
                      polarity, valid_from, valid_to, status, confidence, scope,
                      project_path, created_at, created_from
               FROM facts WHERE id = ?""",
            (fact_id,),
        ).fetchone()
        return Found(self._row_to_fact(row)) if row else ABSENT

    def facts_for_slot(
        self,
        subject_entity_id: int,
        predicate: str,
        status: FactStatus = FactStatus.ACTIVE,
        scope: str = Scope.ALL.value,
        project_path: str | None = None,
    ) -> list[Fact]:
        """Facts filling one (subject, predicate) slot, restricted to a scope.

        ``project`` only sees that project's facts and ``global`` only global
        ones, so a write never supersedes a fact it cannot see.
        """
        sql = """SELECT f.id, f.subject_entity_id, f.predicate, f.object_entity_id,
                        f.object_literal, f.polarity, f.valid_from, f.valid_to, f.status,
                        f.confidence, f.scope, f.project_path, f.created_at, f.created_from
                 FROM facts f
                 WHERE f.subject_entity_id = ? AND f.predicate = ? AND f.status = ?"""
        params: list = [subject_entity_id, predicate, FactStatus(status).value]
        clause, clause_params = scope_clause(scope, project_path)
        if clause:
            sql += f" AND {clause}"
            params.extend(clause_params)
        rows = self.conn.execute(sql + " ORDER BY f.id", params).fetchall()
        return [self._row_to_fact(r) for r in rows]

    def find_fact_row(self, fact_id: int) -> Lookup[dict]:
        """Fact joined with its subject/object entity names."""
        row = self.conn.execute(
            f"SELECT {_FACT_COLUMNS} {_FACT_FROM} WHERE f.id = ?", (fact_id,)
        ).fetchone()
        return Found(dict(row)) if row else ABSENT

    def facts_by_ids(
        self,
        fact_ids: list[int],
        scope: str = Scope.ALL.value,
        project_path: str | None = None,
    ) -> dict[int, dict]:
        """Batch-load facts with entity names in one query, keyed by id."""
        if not fact_ids:
            return {}
        sql = f"SELECT {_FACT_COLUMNS} {_FACT_FROM} WHERE f.id IN ({_placeholders(fact_ids)})"
        params: list = list(fact_ids)
        clause, clause_params = scope_clause(scope, project_path)
        if clause:
            sql += f" AND {clause}"
            params.extend(clause_params)
        return {row["id"]: dict(row) for row in self.conn.execute(sql, params).fetchall()}

    def changes_since(
        self,
        since: str,
        limit: int = 50,
        scope: str = Scope.ALL.value,
        project_path: str | None = None,
    ) -> list[dict]:
        sql = f"SELECT {_FACT_COLUMNS} {_FACT_FROM} WHERE f.created_at >= ?"
        params: list = [since]
        clause, clause_params = scope_clause(scope, project_path)
        if clause:
            sql += f" AND {clause}"
            params.extend(clause_params)
        sql += " ORDER BY f.created_at DESC, f.id DESC LIMIT ?"
        params.append(limit)
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def facts_with_embeddings(
        self,
        limit: int = 1000,
        scope: str = Scope.ALL.value,
        project_path: str | None = None,
    ) -> list[dict]:
        sql = """SELECT f.id, f.subject_entity_id, f.predicate, f.object_literal,
                        f.embedding_json, f.scope
                 FROM facts f
                 WHERE f.embedding_json IS NOT NULL AND f.status = 'active'"""
        params: list = []
        clause, clause_params = scope_clause(scope, project_path)
        if clause:
            sql += f" AND {clause}"
            params.extend(clause_params)
        sql += " ORDER BY f.id DESC LIMIT ?"
        params.append(limit)
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def facts_missing_embeddings(self, limit: int = 500) -> list[dict]:
        rows = self.conn.execute(
            f"""SELECT {_FACT_COLUMNS} {_FACT_FROM}
                WHERE f.embedding_json IS NULL ORDER BY f.id LIMIT ?""",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Provenance
    # ------------------------------------------------------------------

    def insert_provenance(
        self,
        fact_id: int,
        content_item_id: int | None = None,
        quote: str | None = None,
        strength: Strength | str = Strength.STATED,
        attribution_entity_id: int | None = None,
    ) -> int:
        cur = self.conn.execute(
            """INSERT INTO provenance(fact_id, content_item_id, quote, attribution_entity_id, strength)
               VALUES (?, ?, ?, ?, ?)""",
            (fact_id, content_item_id, quote, attribution_entity_id, Strength(strength).value),
        )
        return cur.lastrowid

    def provenance_for_content_items(self, content_item_ids: list[int]) -> dict[int, list[dict]]:
        """Batch-load provenance grouped by content item id."""
        if not content_item_ids:
            return {}
        rows = self.conn.execute(
            f"""SELECT id, fact_id, content_item_id FROM provenance
                WHERE content_item_id IN ({_placeholders(content_item_ids)})
                ORDER BY id""",
            list(content_item_ids),
        ).fetchall()
        grouped: dict[int, list[dict]] = {}
        for row in rows:
            grouped.setdefault(row["content_item_id"], []).append(dict(row))
        return grouped

    def receipts_by_fact_ids(self, fact_ids: list[int]) -> dict[int, list[dict]]:
        """Batch-load receipts (provenance + evidence metadata) keyed by fact id.

        Every requested id gets an entry, possibly an empty list.
        """
        if not fact_ids:
            return {}
        rows = self.conn.execute(
            f"""SELECT p.id, p.fact_id, p.quote, p.strength, p.content_item_id,
                       c.session_id, c.occurred_at
                FROM provenance p
                LEFT JOIN content_items c ON c.id = p.content_item_id
                WHERE p.fact_id IN ({_placeholders(fact_ids)})
                ORDER BY p.id""",
            list(fact_ids),
        ).fetchall()
        grouped: dict[int, list[dict]] = {fid: [] for fid in fact_ids}
        for row in rows:
            grouped.setdefault(row["fact_id"], []).append(dict(row))
        return grouped

    # ------------------------------------------------------------------
    # Links and conflicts
    # ------------------------------------------------------------------

    def insert_fact_link(
        self, from_fact_id: int, to_fact_id: int, link_type: LinkType | str = LinkType.SUPERSEDES
    ) -> int:
        cur = self.conn.execute(
            "INSERT INTO fact_links(from_fact_id, to_fact_id, link_type) VALUES (?, ?, ?)",
            (from_fact_id, to_fact_id, LinkType(link_type).value),
        )
        return cur.lastrowid

    def supersedes_ids(self, fact_id: int) -> list[int]:
        """Ids of facts that ``fact_id`` replaced."""
        rows = self.conn.execute(
            "SELECT to_fact_id FROM fact_links WHERE from_fact_id = ? AND link_type = 'supersedes'",
            (fact_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def superseded_by_ids(self, fact_id: int) -> list[int]:
        """Ids of facts that replaced ``fact_id``."""
        rows = self.conn.execute(
            "SELECT from_fact_id FROM fact_links WHERE to_fact_id = ? AND link_type = 'supersedes'",
            (fact_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def insert_conflict(
        self,
        fact_a_id: int,
        fact_b_id: int | None = None,
        notes: str | None = None,
        proposed_object: str | None = None,
        proposed_quote: str | None = None,
        proposed_strength: str | None = None,
        content_item_id: int | None = None,
        status: ConflictStatus = ConflictStatus.OPEN,
    ) -> int:
        cur = self.conn.execute(
            """INSERT INTO conflicts
               (fact_a_id, fact_b_id, status, detected_at, notes, proposed_object,
                proposed_quote, proposed_strength, content_item_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                fact_a_id,
                fact_b_id,
                ConflictStatus(status).value,
                utc_now(),
                notes,
                proposed_object,
                proposed_quote,
                proposed_strength,
                content_item_id,
            ),
        )
        return cur.lastrowid

    def find_open_conflict(self, fact_a_id: int, proposed_object: str | None) -> Lookup[Conflict]:
        row = self.conn.execute(
            """SELECT * FROM conflicts
               WHERE fact_a_id = ? AND status = 'open'
                 AND lower(trim(coalesce(proposed_object, ''))) = ?
               ORDER BY id LIMIT 1""",
            (fact_a_id, (proposed_object or "").strip().lower()),
        ).fetchone()
        return Found(self._row_to_conflict(row)) if row else ABSENT

    def conflicts_for_fact(self, fact_id: int) -> list[Conflict]:
        rows = self.conn.execute(
            "SELECT * FROM conflicts WHERE fact_a_id = ? OR fact_b_id = ? ORDER BY id",
            (fact_id, fact_id),
        ).fetchall()
        return [self._row_to_conflict(r) for r in rows]

    def open_conflicts(self) -> list[Conflict]:
        rows = self.conn.execute(
            "SELECT * FROM conflicts WHERE status = 'open' ORDER BY detected_at DESC, id DESC"
        ).fetchall()
        return [self._row_to_conflict(r) for r in rows]

    # ------------------------------------------------------------------
    # Maintenance primitives
    # ------------------------------------------------------------------

    def expire_facts(self, status: FactStatus, older_than: str) -> int:
        cur = self.conn.execute(
            "UPDATE facts SET status = ? WHERE status = ? AND created_at < ?",
            (FactStatus.EXPIRED.value, FactStatus(status).value, older_than),
        )
        return cur.rowcount

    def prune_orphaned_provenance(self) -> int:
        cur = self.conn.execute(
            "DELETE FROM provenance WHERE fact_id NOT IN (SELECT id FROM facts)"
        )
        return cur.rowcount

    def prune_content(self, older_than: str) -> int:
        """Delete aged evidence no receipt or conflict points at."""
        with self.transaction():
            ids = [
                r[0]
                for r in self.conn.execute(
                    """SELECT id FROM content_items
                       WHERE ingested_at < ?
                         AND id NOT IN (SELECT content_item_id FROM provenance
                                        WHERE content_item_id IS NOT NULL)
                         AND id NOT IN (SELECT content_item_id FROM conflicts
                                        WHERE content_item_id IS NOT NULL)""",
                    (older_than,),
                ).fetchall()
            ]
            if not ids:
                return 0
            self.fts.remove_content_items(ids)
            self.conn.execute(
                f"DELETE FROM tool_calls WHERE content_item_id IN ({_placeholders(ids)})", ids
            )
            self.conn.execute(
                f"DELETE FROM content_items WHERE id IN ({_placeholders(ids)})", ids
            )
        return len(ids)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> dict:
        """Counts by status, predicate, entity type, plus conflict/provenance health."""
        conn = self.conn
        by_status = {
            r["status"]: r["cnt"]
            for r in conn.execute("SELECT status, COUNT(*) AS cnt FROM facts GROUP BY status")
        }
        by_predicate = {
            r["predicate"]: r["cnt"]
            for r in conn.execute(
                "SELECT predicate, COUNT(*) AS cnt FROM facts WHERE status = 'active' "
                "GROUP BY predicate ORDER BY cnt DESC"
            )
        }
        entities_by_type = {
            r["type"]: r["cnt"]
            for r in conn.execute("SELECT type, COUNT(*) AS cnt FROM entities GROUP BY type")
        }
        total_facts = conn.execute("SELECT COUNT(*) FROM facts").fetchone()[0]
        with_receipts = conn.execute(
            "SELECT COUNT(DISTINCT fact_id) FROM provenance WHERE fact_id IN (SELECT id FROM facts)"
        ).fetchone()[0]
        open_conflicts = conn.execute(
            "SELECT COUNT(*) FROM conflicts WHERE status = 'open'"
        ).fetchone()[0]
        content_items = conn.execute("SELECT COUNT(*) FROM content_items").fetchone()[0]
        tool_calls = conn.execute("SELECT COUNT(*) FROM tool_calls").fetchone()[0]

        return {
            "db_path": str(self.db_path),
            "schema_version": self.schema_version,
            "size_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
            "total_facts": total_facts,
            "facts_by_status": by_status,
            "active_by_predicate": by_predicate,
            "entities_by_type": entities_by_type,
            "content_items": content_items,
            "tool_calls": tool_calls,
            "top_tools": self.tool_usage(limit=5),
            "open_conflicts": open_conflicts,
            "provenance_coverage": round(with_receipts / total_facts, 3) if total_facts else 1.0,
        }

    @staticmethod
    def _row_to_fact(row: sqlite3.Row) -> Fact:
        d = dict(row)
        d["status"] = FactStatus(d["status"])
        return Fact(**d)

    @staticmethod
    def _row_to_conflict(row: sqlite3.Row) -> Conflict:
        d = dict(row)
        return Conflict(
            id=d["id"],
            fact_a_id=d["fact_a_id"],
            fact_b_id=d.get("fact_b_id"),
            status=ConflictStatus(d["status"]),
            detected_at=d["detected_at"],
            notes=d.get("notes"),
            proposed_object=d.get("proposed_object"),
            proposed_quote=d.get("proposed_quote"),
            proposed_strength=d.get("proposed_strength"),
            content_item_id=d.get("content_item_id"),
        )
