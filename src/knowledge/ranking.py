"""Pure ranking helpers: token estimates, dedupe, scope precedence, rank fusion."""

import math
import re

CHARS_PER_TOKEN = 4.0
PREVIEW_CHARS = 50
RRF_K = 60

_WS_RE = re.compile(r"\s+")


def estimate_tokens(text: str | None) -> int:
    """Approximate token count: whitespace-normalized chars / 4, rounded up."""
    if not text:
        return 0
    normalized = _WS_RE.sub(" ", text.strip())
    return math.ceil(len(normalized) / CHARS_PER_TOKEN)


def estimate_fact_tokens(fact: dict) -> int:
    parts = [fact.get("subject_name"), fact.get("predicate"), object_text(fact)]
    return estimate_tokens(" ".join(p for p in parts if p))


def object_text(fact: dict) -> str | None:
    return fact.get("object_literal") or fact.get("object_name")


def preview(text: str | None, max_chars: int = PREVIEW_CHARS) -> str | None:
    """Truncate to at most ``max_chars`` characters, ellipsis included."""
    if text is None or len(text) <= max_chars:
        return text
    return text[: max_chars - 3] + "..."


def source_priority(source: str) -> int:
    return 0 if source == "project" else 1


def fact_signature(fact: dict) -> tuple:
    obj = (object_text(fact) or "").strip().lower()
    return (fact.get("subject_name"), fact.get("predicate"), obj)


def dedupe_and_sort(results: list[dict], limit: int) -> list[dict]:
    """Put project results ahead of global ones, then drop repeated facts.

    Each result is ``{"fact": {...}, "source": ...}``. The sort is stable, so
    relevance order within a source is preserved.
    """
    ordered = sorted(results, key=lambda r: source_priority(r["source"]))
    return dedupe(ordered)[:limit]


def dedupe(results: list[dict]) -> list[dict]:
    """Keep the first of each fact.

    A result repeats an earlier one when it has the same (source, id) or the
    same subject/predicate/object signature.
    """
    seen_ids: set = set()
    seen_sigs: set = set()
    unique = []
    for result in results:
        fact = result["fact"]
        key = (result["source"], fact["id"])
        sig = fact_signature(fact)
        if key in seen_ids or sig in seen_sigs:
            continue
        seen_ids.add(key)
        seen_sigs.add(sig)
        unique.append(result)
    return unique


def rrf_score(rank: int, weight: float = 1.0, k: int = RRF_K) -> float:
    """Reciprocal rank fusion contribution for a 0-based ``rank``."""
    score = weight / (k + rank + 1)
    if rank == 0:
        score += 0.05
    elif rank <= 2:
        score += 0.02
    return score


def fuse_ranked(ranked_lists: list[tuple[list, float]], k: int = RRF_K) -> list[tuple]:
    """Fuse several ranked key lists. Returns ``[(key, score), ...]`` best first.

    Each entry of ``ranked_lists`` is ``(keys, weight)``. Ties keep the order in
    which keys were first seen.
    """
    scores: dict = {}
    for keys, weight in ranked_lists:
        for rank, key in enumerate(keys):
            scores[key] = scores.get(key, 0.0) + rrf_score(rank, weight, k)
    return sorted(scores.items(), key=lambda kv: kv[1], reverse=True)


def rank_by_concepts(concept_results: list[list[dict]], limit: int) -> list[dict]:
    """Keep facts matched by every concept, ranked by average similarity.

    ``concept_results`` holds one result list per concept; each result has
    ``fact``, ``source``, ``receipts`` and ``similarity``.
    """
    if not concept_results:
        return []
    matches: dict = {}
    for idx, results in enumerate(concept_results):
        for result in results:
            key = (result["source"], result["fact"]["id"])
            per_concept = matches.setdefault(key, {})
            per_concept.setdefault(idx, result)

    ranked = []
    for per_concept in matches.values():
        if len(per_concept) != len(concept_results):
            continue
        sims = [per_concept[i].get("similarity", 0.0) for i in range(len(concept_results))]
        first = per_concept[0]
        ranked.append(
            {
                "fact": first["fact"],
                "receipts": first.get("receipts", []),
                "source": first["source"],
                "similarity": sum(sims) / len(sims),
                "concept_similarities": sims,
            }
        )
    ranked.sort(key=lambda r: (-r["similarity"], source_priority(r["source"])))
    return ranked[:limit]
