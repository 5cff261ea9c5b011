"""Tests for the truth-maintenance resolver."""

import pytest

from knowledge.distiller import RuleDistiller
from knowledge.errors import ValidationError
from knowledge.models import Extraction, FactStatus
from knowledge.resolver import Resolver, has_supersession_signal

PROJECT = "/work/app"


def _db_fact(obj, quote=None, **extra):
    fact = {"subject": "repo", "predicate": "uses_database", "object": obj, "quote": quote}
    fact.update(extra)
    return {"facts": [fact]}


@pytest.fixture
def resolver(store):
    return Resolver(store)


def _active(store, predicate="uses_database"):
    rows = store.conn.execute(
        "SELECT id, object_literal FROM facts WHERE predicate = ? AND status = 'active'",
        (predicate,),
    ).fetchall()
    return [(r["id"], r["object_literal"]) for r in rows]


class TestEquivalence:
    def test_repeat_attaches_receipt(self, store, resolver):
        first = resolver.apply(_db_fact("postgresql", "We use PostgreSQL"), project_path=PROJECT)
        second = resolver.apply(_db_fact("postgresql", "Still on PostgreSQL"), project_path=PROJECT)

        assert first.facts_created == 1
        assert second.facts_created == 0
        assert second.provenance_created == 1
        [(fact_id, _)] = _active(store)
        quotes = [r["quote"] for r in store.receipts_by_fact_ids([fact_id])[fact_id]]
        assert quotes == ["We use PostgreSQL", "Still on PostgreSQL"]

    def test_match_ignores_case_and_whitespace(self, store, resolver):
        resolver.apply(_db_fact("PostgreSQL"), project_path=PROJECT)
        result = resolver.apply(_db_fact(" postgresql "), project_path=PROJECT)
        assert result.facts_created == 0
        assert result.conflicts_created == 0

    def test_object_entity_match(self, store, resolver):
        data = {
            "entities": [{"type": "database", "name": "postgresql"}],
            **_db_fact("postgresql"),
        }
        resolver.apply(data, project_path=PROJECT)
        result = resolver.apply(data, project_path=PROJECT)
        assert result.facts_created == 0
        assert result.entities_created == 0


class TestExclusiveSlots:
    def test_contradiction_becomes_conflict(self, store, resolver):
        resolver.apply(_db_fact("postgresql", "We use PostgreSQL"), project_path=PROJECT)
        result = resolver.apply(_db_fact("mysql", "The app runs on MySQL"), project_path=PROJECT)

        assert result.conflicts_created == 1
        assert result.facts_created == 0
        assert _active(store) == [(1, "postgresql")]
        [conflict] = store.open_conflicts()
        assert conflict.fact_a_id == 1
        assert conflict.fact_b_id is None
        assert conflict.proposed_object == "mysql"
        assert conflict.proposed_quote == "The app runs on MySQL"

    def test_repeated_contradiction_not_duplicated(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        resolver.apply(_db_fact("mysql"), project_path=PROJECT)
        again = resolver.apply(_db_fact("MySQL"), project_path=PROJECT)
        assert again.conflicts_created == 0
        assert len(store.open_conflicts()) == 1

    def test_explicit_flag_supersedes(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        result = resolver.apply(_db_fact("mysql", supersedes=True), project_path=PROJECT)

        assert result.facts_created == 1
        assert result.facts_superseded == 1
        assert result.conflicts_created == 0
        [(new_id, obj)] = _active(store)
        assert obj == "mysql"
        old = store.get_fact(1).value
        assert old.status == FactStatus.SUPERSEDED
        assert old.valid_to is not None
        assert store.supersedes_ids(new_id) == [1]

    def test_phrase_in_quote_supersedes(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        result = resolver.apply(
            _db_fact("mysql", "We switched to MySQL last sprint"), project_path=PROJECT
        )
        assert result.facts_superseded == 1
        assert _active(store)[0][1] == "mysql"

    def test_extraction_signal_naming_predicate_supersedes(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        signal = {"kind": "supersession", "value": True, "predicate": "uses_database"}
        result = resolver.apply({**_db_fact("mysql"), "signals": [signal]}, project_path=PROJECT)
        assert result.facts_superseded == 1

    def test_extraction_signal_naming_object_supersedes(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        signal = {"kind": "supersession", "object": "MySQL"}
        result = resolver.apply({**_db_fact("mysql"), "signals": [signal]}, project_path=PROJECT)
        assert result.facts_superseded == 1

    def test_untargeted_extraction_signal_is_conflict(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        data = {**_db_fact("mysql"), "signals": [{"kind": "supersession", "value": True}]}
        result = resolver.apply(data, project_path=PROJECT)
        assert result.facts_superseded == 0
        assert result.conflicts_created == 1
        assert _active(store) == [(1, "postgresql")]

    def test_replacement_phrase_elsewhere_in_transcript_is_conflict(self, store, resolver):
        resolver.apply(_db_fact("postgresql", "We use PostgreSQL"), project_path=PROJECT)
        extraction = RuleDistiller().distill(
            "We replaced the old logo. Ran a quick mysql dump for comparison."
        )
        result = resolver.apply(extraction, project_path=PROJECT)
        assert result.facts_superseded == 0
        assert result.facts_created == 0
        assert result.conflicts_created == 1
        assert _active(store) == [(1, "postgresql")]

    def test_valid_to_is_occurrence_time(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT, occurred_at="2026-01-01T00:00:00+00:00")
        resolver.apply(
            _db_fact("mysql", supersedes=True),
            project_path=PROJECT,
            occurred_at="2026-02-01T00:00:00+00:00",
        )
        old = store.get_fact(1).value
        assert old.valid_to == "2026-02-01T00:00:00+00:00"
        assert store.get_fact(2).value.valid_from == "2026-02-01T00:00:00+00:00"


class TestAccumulation:
    def test_multi_valued_predicates_accumulate(self, store, resolver):
        data = {
            "facts": [
                {"subject": "repo", "predicate": "convention", "object": "snake_case tables"},
                {"subject": "repo", "predicate": "convention", "object": "UTC timestamps"},
            ]
        }
        result = resolver.apply(data, project_path=PROJECT)
        assert result.facts_created == 2
        assert result.conflicts_created == 0
        assert len(_active(store, "convention")) == 2

    def test_unknown_predicate_accumulates(self, store, resolver):
        resolver.apply({"facts": [{"subject": "repo", "predicate": "team_size", "object": "4"}]}, project_path=PROJECT)
        result = resolver.apply(
            {"facts": [{"subject": "repo", "predicate": "team_size", "object": "5"}]}, project_path=PROJECT
        )
        assert result.facts_created == 1
        assert result.conflicts_created == 0


class TestEntities:
    def test_entities_created_counts_new_rows_only(self, store, resolver, sample_extraction):
        first = resolver.apply(sample_extraction, project_path=PROJECT)
        second = resolver.apply(sample_extraction, project_path=PROJECT)
        # database:postgresql plus the implicit repo subject
        assert first.entities_created == 2
        assert second.entities_created == 0

    def test_unlisted_subject_is_repo_entity(self, store, resolver):
        resolver.apply({"facts": [{"subject": "billing", "predicate": "convention", "object": "x"}]}, project_path=PROJECT)
        row = store.conn.execute("SELECT type, slug FROM entities").fetchone()
        assert row["type"] == "repo"
        assert row["slug"] == "repo:billing"

    def test_object_links_to_entity(self, store, resolver, sample_extraction):
        resolver.apply(sample_extraction, project_path=PROJECT)
        row = store.find_fact_row(1).value
        assert row["object_name"] == "postgresql"


class TestValidation:
    def test_invalid_fact_writes_nothing(self, store, resolver):
        data = {
            "facts": [
                {"subject": "repo", "predicate": "convention", "object": "ok"},
                {"subject": "repo", "predicate": "", "object": "broken"},
            ]
        }
        with pytest.raises(ValidationError):
            resolver.apply(data, project_path=PROJECT)
        assert store.stats()["total_facts"] == 0
        assert store.stats()["entities_by_type"] == {}

    def test_invalid_strength(self, resolver):
        with pytest.raises(ValidationError):
            resolver.apply(_db_fact("x", strength="guessed"), project_path=PROJECT)

    def test_invalid_entity(self, resolver):
        with pytest.raises(ValidationError):
            resolver.apply({"entities": [{"type": "", "name": "x"}], "facts": []}, project_path=PROJECT)

    def test_scope_all_is_not_writable(self, resolver):
        with pytest.raises(ValidationError):
            resolver.apply(_db_fact("postgresql"), scope="all")

    def test_failure_midway_rolls_back(self, store, resolver, monkeypatch):
        calls = {"n": 0}
        original = store.insert_provenance

        def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("disk full")
            return original(*args, **kwargs)

        monkeypatch.setattr(store, "insert_provenance", flaky)
        data = {
            "facts": [
                {"subject": "repo", "predicate": "convention", "object": "a"},
                {"subject": "repo", "predicate": "convention", "object": "b"},
            ]
        }
        with pytest.raises(RuntimeError):
            resolver.apply(data, project_path=PROJECT)
        assert store.stats()["total_facts"] == 0


class TestScopes:
    def test_global_fact_has_no_project_path(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), scope="global", project_path=PROJECT)
        fact = store.get_fact(1).value
        assert fact.scope == "global"
        assert fact.project_path is None

    def test_other_project_fact_is_not_superseded(self, store, resolver):
        resolver.apply(_db_fact("mysql"), project_path="/a")
        result = resolver.apply(_db_fact("postgresql", supersedes=True), project_path="/b")

        assert result.facts_superseded == 0
        assert result.facts_created == 1
        rows = store.conn.execute(
            "SELECT project_path, object_literal, status FROM facts ORDER BY id"
        ).fetchall()
        assert [tuple(r) for r in rows] == [("/a", "mysql", "active"), ("/b", "postgresql", "active")]

    def test_other_project_fact_is_not_a_conflict(self, store, resolver):
        resolver.apply(_db_fact("mysql"), project_path="/a")
        result = resolver.apply(_db_fact("postgresql"), project_path="/b")
        assert result.conflicts_created == 0
        assert result.facts_created == 1

    def test_global_write_ignores_project_slot(self, store, resolver):
        resolver.apply(_db_fact("mysql"), project_path="/a")
        result = resolver.apply(_db_fact("postgresql"), scope="global")

        assert result.facts_created == 1
        assert result.conflicts_created == 0
        assert store.get_fact(1).value.status == FactStatus.ACTIVE

    def test_project_write_ignores_global_slot(self, store, resolver):
        resolver.apply(_db_fact("mysql"), scope="global")
        result = resolver.apply(_db_fact("postgresql", supersedes=True), project_path=PROJECT)
        assert result.facts_superseded == 0
        assert store.get_fact(1).value.status == FactStatus.ACTIVE

    def test_project_path_defaults_from_env(self, store, resolver, monkeypatch, tmp_path):
        monkeypatch.setenv("BELIEFBASE_PROJECT_DIR", str(tmp_path))
        resolver.apply(_db_fact("postgresql"))
        assert store.get_fact(1).value.project_path == str(tmp_path.resolve())

    def test_facts_get_embeddings(self, store, resolver):
        resolver.apply(_db_fact("postgresql"), project_path=PROJECT)
        assert len(store.fact_embedding(1)) == 384

    def test_receipt_links_content_item(self, store, resolver):
        content_id = store.upsert_content_item("test", "h", 3)
        resolver.apply(_db_fact("postgresql", "quote"), content_item_id=content_id, project_path=PROJECT)
        assert store.get_fact(1).value.created_from == f"content:{content_id}"
        assert store.receipts_by_fact_ids([1])[1][0]["content_item_id"] == content_id


def test_has_supersession_signal():
    extraction = Extraction.from_dict(_db_fact("mysql", "We no longer use Postgres"))
    assert has_supersession_signal(extraction.facts[0], extraction)
    plain = Extraction.from_dict(_db_fact("mysql", "We use MySQL"))
    assert not has_supersession_signal(plain.facts[0], plain)
