"""Tests for store schema health checks."""

import json

from knowledge.health import SchemaValidator


def _messages(report):
    return [i["message"] for i in report["issues"]]


def test_fresh_store_is_healthy(store):
    report = SchemaValidator(store).validate()
    assert report["status"] == "healthy"
    assert report["valid"] is True
    assert report["issues"] == []
    assert report["table_counts"]["facts"] == 0


def test_check_is_recorded(store):
    SchemaValidator(store).validate()
    row = store.conn.execute(
        "SELECT validation_status, issues_json FROM schema_health ORDER BY id DESC"
    ).fetchone()
    assert row["validation_status"] == "healthy"
    assert json.loads(row["issues_json"]) == []


def test_record_can_be_skipped(store):
    SchemaValidator(store).validate(record=False)
    assert store.conn.execute("SELECT COUNT(*) FROM schema_health").fetchone()[0] == 0


def test_orphaned_provenance_is_corrupt(store, remember, sample_extraction):
    remember(store, sample_extraction)
    store.conn.execute("DELETE FROM facts WHERE id = 1")
    report = SchemaValidator(store).validate()
    assert report["status"] == "corrupt"
    assert report["valid"] is False
    assert any("orphaned provenance" in m for m in _messages(report))


def test_orphaned_tool_calls_degrade(store):
    content_id = store.upsert_content_item("test", "h", 1)
    store.insert_tool_calls(content_id, [{"tool_name": "Bash"}])
    store.conn.execute("DELETE FROM content_items WHERE id = ?", (content_id,))
    report = SchemaValidator(store).validate()
    assert report["status"] == "degraded"
    assert report["valid"] is True


def test_missing_index_and_table(store):
    store.conn.execute("DROP INDEX idx_facts_slot")
    store.conn.execute("DROP TABLE tool_calls")
    messages = _messages(SchemaValidator(store).validate())
    assert "Missing index: idx_facts_slot" in messages
    assert "Missing table: tool_calls" in messages


def test_wrong_embedding_size(store, remember, sample_extraction):
    remember(store, sample_extraction)
    store.conn.execute("UPDATE facts SET embedding_json = '[0.5, 0.5]' WHERE id = 1")
    messages = _messages(SchemaValidator(store).validate())
    assert any("2 dimensions" in m for m in messages)
