"""FTS5 full-text index over evidence (content item) text."""

import re
import sqlite3

import structlog

logger = structlog.get_logger()


class LexicalFTS:
    """BM25 search over the ``content_fts`` table of one store.

    The table itself is created by migration 2; this class only reads and
    writes rows.
    """

    def __init__(self, store):
        self.store = store

    def index_content_item(self, content_item_id: int, text: str) -> bool:
        """Index text for a content item. Returns False if already indexed."""
        conn = self.store.conn
        existing = conn.execute(
            "SELECT 1 FROM content_fts WHERE content_item_id = ?", (content_item_id,)
        ).fetchone()
        if existing:
            return False
        conn.execute(
            "INSERT INTO content_fts(content_item_id, text) VALUES (?, ?)",
            (content_item_id, text),
        )
        return True

    def remove_content_items(self, content_item_ids: list[int]) -> None:
        if not content_item_ids:
            return
        placeholders = ",".join("?" for _ in content_item_ids)
        self.store.conn.execute(
            f"DELETE FROM content_fts WHERE content_item_id IN ({placeholders})",
            content_item_ids,
        )

    def search(self, query: str, limit: int = 20) -> list[int]:
        """BM25-ranked search. Returns content item ids, most relevant first."""
        fts_query = self._to_fts5_query(query)
        if not fts_query or limit <= 0:
            return []

        try:
            rows = self.store.conn.execute(
                """
                SELECT content_item_id FROM content_fts
                WHERE content_fts MATCH ?
                ORDER BY bm25(content_fts)
                LIMIT ?
                """,
                (fts_query, limit),
            ).fetchall()
        except sqlite3.OperationalError as e:
            logger.warning("fts_search_error", query=query, error=str(e))
            return []
        return [int(r[0]) for r in rows]

    @staticmethod
    def _to_fts5_query(query: str) -> str:
        """Convert free text to an FTS5 MATCH expression.

        Tokens get a ``*`` suffix for prefix matching and are OR-ed together;
        BM25 ranks documents that match more terms first.
        """
        tokens = re.findall(r"\w+", (query or "").lower())
        if not tokens:
            return ""
        return " OR ".join(f'"{t}"*' for t in dict.fromkeys(tokens))
