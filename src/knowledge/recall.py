"""Recall engine: scope-aware search over the fact stores.

Two disclosure tiers: ``query_index`` returns small previews for a fixed
token cost per result, ``query_details`` fetches full records for ids the
caller picked. ``query`` is the one-shot form returning facts with receipts.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

import structlog

from . import ranking
from .embeddings import EmbeddingGenerator, cosine, decode, fact_text
from .models import Scope
from .scope import QueryContext, ScopeManager, validate_scope

logger = structlog.get_logger()

SEMANTIC_MODES = ("both", "vector", "text")
FTS_FANOUT = 3


@dataclass
class Explanation:
    fact: dict
    receipts: list[dict] = field(default_factory=list)
    supersedes: list[int] = field(default_factory=list)
    superseded_by: list[int] = field(default_factory=list)
    conflicts: list[dict] = field(default_factory=list)
    source: Optional[str] = None

    @property
    def present(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "present": True,
            "source": self.source,
            "fact": self.fact,
            "receipts": self.receipts,
            "supersedes": self.supersedes,
            "superseded_by": self.superseded_by,
            "conflicts": self.conflicts,
        }


class NullExplanation:
    """Explanation for a fact id that does not exist."""

    present = False
    fact: dict = {}
    receipts: list = []
    supersedes: list = []
    superseded_by: list = []
    conflicts: list = []
    source = None

    def to_dict(self) -> dict:
        return {
            "present": False,
            "source": None,
            "fact": None,
            "receipts": [],
            "supersedes": [],
            "superseded_by": [],
            "conflicts": [],
        }


def _store_filter(source: str, ctx: QueryContext) -> tuple[str, Optional[str]]:
    """Scope filter to apply inside one store for a request."""
    if source == Scope.PROJECT.value:
        return Scope.PROJECT.value, ctx.project_path
    if source == Scope.GLOBAL.value:
        return Scope.GLOBAL.value, None
    return ctx.scope, ctx.project_path


class Recall:
    """Read side of the knowledge base."""

    def __init__(
        self,
        scopes: ScopeManager,
        embedder: Optional[EmbeddingGenerator] = None,
        rrf_k: int = ranking.RRF_K,
        semantic_candidates: int = 1000,
    ):
        self.scopes = scopes
        self.embedder = embedder or EmbeddingGenerator()
        self.rrf_k = rrf_k
        self.semantic_candidates = semantic_candidates

    # ------------------------------------------------------------------
    # Lexical recall
    # ------------------------------------------------------------------

    def query(self, text: str, limit: int = 10, scope: str = Scope.ALL.value) -> list[dict]:
        """Facts matching ``text`` with their receipts, project results first."""
        ctx = self.scopes.context(scope, limit)
        results = self.scopes.execute(scope, lambda store, source: self._query_store(store, source, text, ctx))
        return ranking.dedupe_and_sort(results, limit)

    def query_index(self, text: str, limit: int = 20, scope: str = Scope.ALL.value) -> list[dict]:
        """Compact previews: no receipts and no temporal fields."""
        ctx = self.scopes.context(scope, limit)
        results = self.scopes.execute(scope, lambda store, source: self._index_store(store, source, text, ctx))
        return [self._preview(r["fact"], r["source"]) for r in ranking.dedupe_and_sort(results, limit)]

    def _candidate_fact_ids(self, store, text: str, limit: int) -> list[int]:
        """FTS hits mapped to fact ids via provenance, in relevance order."""
        content_ids = store.fts.search(text, limit=limit * FTS_FANOUT)
        if not content_ids:
            return []
        by_content = store.provenance_for_content_items(content_ids)
        fact_ids: list[int] = []
        seen: set = set()
        for content_id in content_ids:
            for prov in by_content.get(content_id, []):
                fact_id = prov["fact_id"]
                if fact_id in seen:
                    continue
                seen.add(fact_id)
                fact_ids.append(fact_id)
                if len(fact_ids) >= limit:
                    return fact_ids
        return fact_ids

    def _query_store(self, store, source: str, text: str, ctx: QueryContext) -> list[dict]:
        fact_ids = self._candidate_fact_ids(store, text, ctx.limit)
        if not fact_ids:
            return []
        filter_scope, filter_path = _store_filter(source, ctx)
        facts = store.facts_by_ids(fact_ids, filter_scope, filter_path)
        receipts = store.receipts_by_fact_ids(list(facts))
        return [
            {"fact": facts[fid], "receipts": receipts.get(fid, []), "source": source}
            for fid in fact_ids
            if fid in facts
        ]

    def _index_store(self, store, source: str, text: str, ctx: QueryContext) -> list[dict]:
        fact_ids = self._candidate_fact_ids(store, text, ctx.limit)
        if not fact_ids:
            return []
        filter_scope, filter_path = _store_filter(source, ctx)
        facts = store.facts_by_ids(fact_ids, filter_scope, filter_path)
        return [{"fact": facts[fid], "source": source} for fid in fact_ids if fid in facts]

    @staticmethod
    def _preview(fact: dict, source: str) -> dict:
        return {
            "id": fact["id"],
            "subject": fact["subject_name"],
            "predicate": fact["predicate"],
            "object_preview": ranking.preview(ranking.object_text(fact)),
            "status": fact["status"],
            "scope": fact["scope"],
            "confidence": fact["confidence"],
            "token_estimate": ranking.estimate_fact_tokens(fact),
            "source": source,
        }

    # ------------------------------------------------------------------
    # Details tier
    # ------------------------------------------------------------------

    def query_details(self, fact_ids: list[int], scope: str = Scope.PROJECT.value) -> list[dict]:
        """Full records (fact, receipts, lineage, conflicts) for chosen ids."""
        fact_ids = [int(f) for f in dict.fromkeys(fact_ids)]
        if not fact_ids:
            return []

        def op(store, source):
            facts = store.facts_by_ids(fact_ids)
            receipts = store.receipts_by_fact_ids(list(facts))
            return [
                self._explanation(store, source, facts[fid], receipts.get(fid, [])).to_dict()
                for fid in fact_ids
                if fid in facts
            ]

        return self.scopes.execute(scope, op)

    def explain(self, fact_id: int, scope: str = Scope.PROJECT.value) -> Explanation | NullExplanation:
        """Explanation for one fact, or ``NullExplanation`` when it does not exist."""
        validate_scope(scope)
        for source, store in self.scopes.available(scope):
            found = store.find_fact_row(int(fact_id))
            if found.present:
                receipts = store.receipts_by_fact_ids([found.value["id"]])[found.value["id"]]
                return self._explanation(store, source, found.value, receipts)
        return NullExplanation()

    @staticmethod
    def _explanation(store, source: str, fact: dict, receipts: list[dict]) -> Explanation:
        fact_id = fact["id"]
        return Explanation(
            fact=fact,
            receipts=receipts,
            supersedes=store.supersedes_ids(fact_id),
            superseded_by=store.superseded_by_ids(fact_id),
            conflicts=[_conflict_dict(c) for c in store.conflicts_for_fact(fact_id)],
            source=source,
        )

    # ------------------------------------------------------------------
    # Timeline and conflicts
    # ------------------------------------------------------------------

    def changes(self, since: str, limit: int = 50, scope: str = Scope.ALL.value) -> list[dict]:
        """Facts created at or after ``since``, newest first."""
        ctx = self.scopes.context(scope, limit)

        def op(store, source):
            filter_scope, filter_path = _store_filter(source, ctx)
            rows = store.changes_since(since, limit, filter_scope, filter_path)
            return [{**row, "source": source} for row in rows]

        rows = self.scopes.execute(scope, op)
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]

    def conflicts(self, scope: str = Scope.ALL.value) -> list[dict]:
        def op(store, source):
            return [{**_conflict_dict(c), "source": source} for c in store.open_conflicts()]

        return self.scopes.execute(scope, op)

    # ------------------------------------------------------------------
    # Semantic recall
    # ------------------------------------------------------------------

    def query_semantic(
        self,
        text: str,
        limit: int = 10,
        scope: str = Scope.ALL.value,
        mode: str = "both",
    ) -> list[dict]:
        """Vector and/or lexical candidates fused by reciprocal rank."""
        if mode not in SEMANTIC_MODES:
            raise ValueError(f"Unknown semantic mode: {mode!r}")
        ctx = self.scopes.context(scope, limit)
        query_vector = self.embedder.generate(text)

        results = self.scopes.execute(
            scope,
            lambda store, source: self._semantic_store(store, source, text, query_vector, mode, ctx),
        )
        results.sort(key=lambda r: (-r["score"], ranking.source_priority(r["source"])))
        return ranking.dedupe(results)[:limit]

    def _semantic_store(
        self, store, source: str, text: str, query_vector: list[float], mode: str, ctx: QueryContext
    ) -> list[dict]:
        filter_scope, filter_path = _store_filter(source, ctx)
        pool = ctx.limit * FTS_FANOUT

        vector_ids: list[int] = []
        similarities: dict[int, float] = {}
        if mode in ("both", "vector"):
            candidates = store.facts_with_embeddings(self.semantic_candidates, filter_scope, filter_path)
            for row in candidates:
                sim = cosine(query_vector, decode(row["embedding_json"]))
                if sim > 0:
                    similarities[row["id"]] = sim
            vector_ids = sorted(similarities, key=lambda fid: similarities[fid], reverse=True)[:pool]

        text_ids: list[int] = []
        if mode in ("both", "text"):
            text_ids = self._candidate_fact_ids(store, text, pool)

        fused = ranking.fuse_ranked([(vector_ids, 1.0), (text_ids, 1.0)], k=self.rrf_k)[:pool]
        if not fused:
            return []

        ids = [fid for fid, _ in fused]
        facts = store.facts_by_ids(ids, filter_scope, filter_path)
        receipts = store.receipts_by_fact_ids(list(facts))
        return [
            {
                "fact": facts[fid],
                "receipts": receipts.get(fid, []),
                "source": source,
                "similarity": similarities.get(fid, 0.0),
                "score": score,
            }
            for fid, score in fused
            if fid in facts
        ]

    def search_concepts(
        self, concepts: list[str], limit: int = 10, scope: str = Scope.ALL.value
    ) -> list[dict]:
        """Facts relevant to every concept, ranked by average similarity."""
        concepts = [c.strip() for c in concepts if c and c.strip()]
        if not 2 <= len(concepts) <= 5:
            raise ValueError("search_concepts needs between 2 and 5 concepts")
        per_concept = [
            self.query_semantic(concept, limit=limit * FTS_FANOUT, scope=scope, mode="vector")
            for concept in concepts
        ]
        return ranking.rank_by_concepts(per_concept, limit)

    def index_embeddings(self, scope: str = Scope.ALL.value, batch_size: int = 500) -> dict[str, int]:
        """Compute embeddings for facts stored without one."""

        def op(store, source):
            rows = store.facts_missing_embeddings(batch_size)
            with store.transaction():
                for row in rows:
                    store.update_fact_embedding(row["id"], self.embedder.generate(fact_text(row)))
            return [(source, len(rows))]

        counts = dict(self.scopes.execute(scope, op))
        logger.info("recall.embeddings_indexed", **counts)
        return counts


def _conflict_dict(conflict) -> dict:
    data = asdict(conflict)
    data["status"] = conflict.status.value
    return data
