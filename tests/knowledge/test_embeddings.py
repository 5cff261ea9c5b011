"""Tests for local embeddings."""

import json
import math

import pytest

from knowledge.embeddings import EMBEDDING_DIM, EmbeddingGenerator, cosine, decode, fact_text, top_k


@pytest.fixture
def embedder():
    return EmbeddingGenerator()


def test_dimension_and_unit_length(embedder):
    vector = embedder.generate("repo uses database postgresql")
    assert len(vector) == EMBEDDING_DIM
    assert math.isclose(sum(v * v for v in vector), 1.0, rel_tol=1e-9)


def test_deterministic(embedder):
    assert embedder.generate("redis cache") == EmbeddingGenerator().generate("redis cache")


def test_empty_text_is_zero_vector(embedder):
    assert embedder.generate("") == [0.0] * EMBEDDING_DIM
    assert embedder.generate(None) == [0.0] * EMBEDDING_DIM


def test_related_text_scores_higher(embedder):
    fact = embedder.generate("repo uses database postgresql")
    related = embedder.generate("postgresql database")
    unrelated = embedder.generate("button submit form")
    assert cosine(fact, related) > cosine(fact, unrelated)


def test_cosine_edge_cases():
    assert cosine(None, [1.0]) == 0.0
    assert cosine([], []) == 0.0
    assert cosine([1.0, 0.0], [-1.0, 0.0]) == 0.0


def test_decode(embedder):
    vector = embedder.generate("docker")
    assert decode(json.dumps(vector)) == vector
    assert decode(None) is None
    assert decode("not json") is None
    assert decode(json.dumps([1.0, 2.0])) is None


def test_fact_text():
    fact = {"subject_name": "repo", "predicate": "uses_database", "object_literal": None, "object_name": "redis"}
    assert fact_text(fact) == "repo uses database redis"


def test_top_k(embedder):
    query = embedder.generate("redis cache")
    candidates = [
        {"id": 1, "embedding": embedder.generate("form button")},
        {"id": 2, "embedding": embedder.generate("redis cache layer")},
    ]
    best = top_k(query, candidates, k=1)
    assert best[0]["candidate"]["id"] == 2
