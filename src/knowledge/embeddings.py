"""Local term-weighted embeddings for facts.

No model download and no external service: a fixed technical vocabulary gets
TF-IDF style weights, and the remaining dimensions hold hashed unigram/bigram
features. Vectors are unit length so cosine similarity is a dot product.
"""

import hashlib
import json
import math
import re
from collections import Counter
from typing import Iterable, Optional

import structlog

logger = structlog.get_logger()

EMBEDDING_DIM = 384

VOCABULARY = """
database framework library module class function method
api rest graphql http request response server client
authentication authorization token session cookie jwt
user admin role permission access control security
error exception handling validation sanitization
test spec unit integration e2e
frontend backend fullstack ui ux component
react vue angular svelte javascript typescript
ruby python java go rust php elixir
sql nosql postgresql mysql mongodb redis sqlite
docker kubernetes container orchestration deployment
git branch commit merge pull push repository
configuration environment variable setting preference
logger logging debug trace info warn
cache caching storage persistence state
async await promise callback thread process
route routing middleware handler controller
model view template render
form input button submit
dependency injection service factory singleton
migration schema table column index constraint
query filter sort pagination limit offset
create read update delete crud operation
json xml yaml csv format serialization
encrypt decrypt hash salt cipher algorithm
webhook event listener subscriber publisher
job queue worker background task schedule
metric monitoring performance optimization
refactor cleanup debt improvement
""".split()

# dict.fromkeys keeps first occurrence order and drops repeats
VOCABULARY = list(dict.fromkeys(VOCABULARY))

_COMMON_TERMS = frozenset(
    """the is are was were be been being have has had do does did for with from
    that this these those can could would should will make get set add remove""".split()
)

_TOKEN_RE = re.compile(r"\w+")


def _md5_int(value: str) -> int:
    return int(hashlib.md5(value.encode("utf-8")).hexdigest(), 16)


class EmbeddingGenerator:
    """Deterministic 384-dimensional text embeddings."""

    dimensions = EMBEDDING_DIM

    def __init__(self):
        self._vocab_index = {term: i for i, term in enumerate(VOCABULARY)}
        self._idf = {term: 2.0 for term in VOCABULARY}
        self._idf.update({term: 0.5 for term in _COMMON_TERMS if term not in self._idf})

    def generate(self, text: Optional[str]) -> list[float]:
        """Embed text. Empty or token-free text gives the zero vector."""
        tokens = _TOKEN_RE.findall((text or "").lower())
        if not tokens:
            return [0.0] * EMBEDDING_DIM

        counts = Counter(tokens)
        max_tf = max(counts.values())
        vocab_part = [0.0] * len(VOCABULARY)
        for term, count in counts.items():
            idx = self._vocab_index.get(term)
            if idx is not None:
                vocab_part[idx] = (count / max_tf) * self._idf.get(term, 1.0)

        vector = vocab_part + self._hashed_features(tokens)
        return _normalize(vector[:EMBEDDING_DIM])

    def _hashed_features(self, tokens: list[str]) -> list[float]:
        size = EMBEDDING_DIM - len(VOCABULARY)
        features = [0.0] * size
        for i, token in enumerate(tokens):
            features[_md5_int(f"{token}_{i % 10}") % size] += 1.0
        for first, second in zip(tokens, tokens[1:]):
            features[_md5_int(f"{first}_{second}") % size] += 0.5

        peak = max(features)
        if peak > 0:
            features = [v / peak for v in features]
        return features


def _normalize(vector: list[float]) -> list[float]:
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


def fact_text(fact: dict) -> str:
    """Text a fact is embedded from: subject, predicate and object."""
    parts = [
        fact.get("subject_name"),
        (fact.get("predicate") or "").replace("_", " "),
        fact.get("object_literal") or fact.get("object_name"),
    ]
    return " ".join(p for p in parts if p)


def decode(embedding_json: Optional[str]) -> Optional[list[float]]:
    """Parse a stored embedding. Unreadable or wrong-sized values give None."""
    if not embedding_json:
        return None
    try:
        vector = json.loads(embedding_json)
    except (TypeError, ValueError) as e:
        logger.warning("embedding_decode_failed", error=str(e))
        return None
    if not isinstance(vector, list) or len(vector) != EMBEDDING_DIM:
        return None
    return vector


def cosine(a: Optional[list[float]], b: Optional[list[float]]) -> float:
    """Similarity of two unit vectors, clamped to [0, 1]."""
    if not a or not b:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    return min(1.0, max(0.0, dot))


def top_k(query_vector: list[float], candidates: Iterable[dict], k: int) -> list[dict]:
    """Score candidates (each with an ``embedding`` key) and keep the best ``k``."""
    scored = [
        {"candidate": c, "similarity": cosine(query_vector, c.get("embedding"))}
        for c in candidates
    ]
    scored.sort(key=lambda item: item["similarity"], reverse=True)
    return scored[:k]
