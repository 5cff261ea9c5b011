"""Tests for the recall engine."""

from unittest.mock import patch

import pytest

from knowledge.recall import NullExplanation, Recall

PROJECT = "/work/app"

INDEX_KEYS = {
    "id",
    "subject",
    "predicate",
    "object_preview",
    "status",
    "scope",
    "confidence",
    "token_estimate",
    "source",
}


def _convention(obj, quote=None):
    return {"facts": [{"subject": "repo", "predicate": "convention", "object": obj, "quote": quote}]}


@pytest.fixture
def recall(scopes):
    return Recall(scopes)


@pytest.fixture
def populated(scopes, remember, sample_extraction):
    remember(scopes.store("project"), sample_extraction)
    remember(
        scopes.store("global"),
        _convention("snake_case table names", "Tables are always snake_case."),
        scope="global",
    )
    remember(scopes.store("global"), _convention("prefer pytest fixtures"), scope="global")
    return scopes


class TestQuery:
    def test_returns_facts_with_receipts(self, recall, populated):
        results = recall.query("postgresql database", scope="project")
        assert results[0]["fact"]["object_literal"] == "postgresql"
        assert results[0]["receipts"][0]["quote"] == "We use PostgreSQL for the main database."
        assert results[0]["source"] == "project"

    def test_project_before_global_and_deduped(self, recall, populated):
        results = recall.query("snake_case tables", scope="all")
        conventions = [r for r in results if r["fact"]["object_literal"] == "snake_case table names"]
        # Same subject/predicate/object in both stores: only the project copy survives
        assert len(conventions) == 1
        assert conventions[0]["source"] == "project"

    def test_global_scope_only_reads_global(self, recall, populated):
        results = recall.query("pytest", scope="global")
        assert results
        assert {r["source"] for r in results} == {"global"}

    def test_limit(self, recall, populated):
        assert len(recall.query("snake_case postgresql pytest", limit=1)) == 1

    def test_no_match(self, recall, populated):
        assert recall.query("kubernetes") == []

    def test_other_projects_are_hidden(self, scopes, remember, recall):
        remember(scopes.store("project"), _convention("tabs everywhere"), project_path="/other/app")
        assert recall.query("tabs", scope="project") == []

    def test_batches_fact_loads(self, recall, populated):
        store = populated.store("project")
        with patch.object(store, "facts_by_ids", wraps=store.facts_by_ids) as facts_spy, patch.object(
            store, "receipts_by_fact_ids", wraps=store.receipts_by_fact_ids
        ) as receipts_spy:
            results = recall.query("postgresql snake_case", scope="project")
        assert len(results) == 2
        assert facts_spy.call_count == 1
        assert receipts_spy.call_count == 1


class TestIndex:
    def test_index_has_only_preview_keys(self, recall, populated):
        results = recall.query_index("postgresql", scope="project")
        assert results
        assert set(results[0]) == INDEX_KEYS

    def test_object_preview_truncated(self, scopes, remember, recall):
        long_object = "always write migrations that can run twice without harm to data"
        remember(scopes.store("project"), _convention(long_object))
        [item] = recall.query_index("migrations", scope="project")
        assert len(item["object_preview"]) <= 50
        assert item["object_preview"].endswith("...")
        assert item["token_estimate"] > 0

    def test_objects_sharing_a_preview_are_both_listed(self, scopes, remember, recall):
        shared = "always run the migration suite against a copy of "
        remember(scopes.store("project"), _convention(shared + "staging"))
        remember(scopes.store("project"), _convention(shared + "production"))
        items = recall.query_index("migration suite", scope="project")
        assert len(items) == 2
        assert items[0]["object_preview"] == items[1]["object_preview"]
        assert {i["id"] for i in items} == {1, 2}


class TestDetailsAndExplain:
    def test_details_for_chosen_ids(self, recall, populated):
        details = recall.query_details([1, 1, 999], scope="project")
        assert len(details) == 1
        assert details[0]["fact"]["id"] == 1
        assert details[0]["present"] is True

    def test_explain_shows_lineage(self, scopes, remember, recall):
        project = scopes.store("project")
        remember(project, {"facts": [{"subject": "repo", "predicate": "uses_database", "object": "postgresql"}]})
        remember(
            project,
            {"facts": [{"subject": "repo", "predicate": "uses_database", "object": "mysql", "supersedes": True}]},
        )
        old = recall.explain(1)
        new = recall.explain(2)
        assert old.superseded_by == [2]
        assert new.supersedes == [1]
        assert old.fact["status"] == "superseded"

    def test_explain_shows_conflicts(self, scopes, remember, recall):
        project = scopes.store("project")
        remember(project, {"facts": [{"subject": "repo", "predicate": "uses_database", "object": "postgresql"}]})
        remember(project, {"facts": [{"subject": "repo", "predicate": "uses_database", "object": "mysql"}]})
        explanation = recall.explain(1)
        assert explanation.conflicts[0]["proposed_object"] == "mysql"
        assert explanation.conflicts[0]["status"] == "open"

    def test_explain_missing_fact(self, recall, populated):
        explanation = recall.explain(999)
        assert isinstance(explanation, NullExplanation)
        assert not explanation.present
        assert explanation.to_dict()["fact"] is None


class TestTimeline:
    def test_changes_newest_first(self, recall, populated):
        changes = recall.changes("2000-01-01T00:00:00+00:00")
        stamps = [c["created_at"] for c in changes]
        assert stamps == sorted(stamps, reverse=True)
        assert {c["source"] for c in changes} == {"project", "global"}

    def test_changes_since_future_is_empty(self, recall, populated):
        assert recall.changes("2999-01-01T00:00:00+00:00") == []

    def test_conflicts_listed_with_source(self, scopes, remember, recall):
        project = scopes.store("project")
        remember(project, {"facts": [{"subject": "repo", "predicate": "auth_method", "object": "jwt"}]})
        remember(project, {"facts": [{"subject": "repo", "predicate": "auth_method", "object": "sessions"}]})
        [conflict] = recall.conflicts()
        assert conflict["source"] == "project"
        assert conflict["proposed_object"] == "sessions"


class TestSemantic:
    def test_vector_mode_finds_related_fact(self, recall, populated):
        results = recall.query_semantic("which database does the repo use", scope="project", mode="vector")
        assert results[0]["fact"]["predicate"] == "uses_database"
        assert 0 < results[0]["similarity"] <= 1

    def test_scores_descending(self, recall, populated):
        results = recall.query_semantic("snake_case database pytest", scope="all")
        scores = [r["score"] for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_invalid_mode(self, recall, populated):
        with pytest.raises(ValueError):
            recall.query_semantic("x", mode="fuzzy")

    def test_search_concepts_needs_two_to_five(self, recall):
        with pytest.raises(ValueError):
            recall.search_concepts(["database"])
        with pytest.raises(ValueError):
            recall.search_concepts(["a", "b", "c", "d", "e", "f"])

    def test_search_concepts_intersects(self, recall, populated):
        results = recall.search_concepts(["repo database", "postgresql"], scope="project")
        assert results
        assert results[0]["fact"]["object_literal"] == "postgresql"
        assert len(results[0]["concept_similarities"]) == 2

    def test_index_embeddings_backfills(self, scopes, recall):
        project = scopes.store("project")
        subject_id, _ = project.find_or_create_entity("repo", "repo")
        fact_id = project.insert_fact(subject_id, "convention", object_literal="tabs", project_path=PROJECT)
        assert project.fact_embedding(fact_id) is None

        counts = recall.index_embeddings(scope="project")
        assert counts == {"project": 1}
        assert len(project.fact_embedding(fact_id)) == 384
