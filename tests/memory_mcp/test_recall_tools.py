"""Tests for recall MCP tools against real stores."""

import pytest

from memory_mcp.tools.recall import TOOLS

HANDLERS = {name: handler for name, _, handler in TOOLS}


def _call(name, args):
    return HANDLERS[name](args)


@pytest.fixture
def populated(components, remember, sample_extraction):
    scopes = components["scopes"]
    remember(scopes.store("project"), sample_extraction)
    remember(
        scopes.store("global"),
        {"facts": [{"subject": "repo", "predicate": "convention", "object": "prefer small commits"}]},
        scope="global",
    )
    return components


def test_recall_requires_query(components):
    assert "error" in _call("memory_recall", {})


def test_recall(populated):
    result = _call("memory_recall", {"query": "postgresql", "scope": "project"})
    assert result["count"] == 2
    fact = result["facts"][0]
    assert fact["object"] == "postgresql"
    assert fact["receipts"][0]["strength"] == "stated"


def test_recall_index_reports_tokens(populated):
    result = _call("memory_recall_index", {"query": "postgresql commits"})
    assert result["result_count"] == len(result["facts"])
    assert result["total_estimated_tokens"] == sum(f["token_estimate"] for f in result["facts"])
    assert "receipts" not in result["facts"][0]


def test_recall_details(populated):
    result = _call("memory_recall_details", {"fact_ids": [1]})
    assert result["fact_count"] == 1
    assert result["facts"][0]["receipts"]


def test_recall_details_requires_ids(components):
    assert "error" in _call("memory_recall_details", {"fact_ids": []})


def test_explain_absent(populated):
    result = _call("memory_explain", {"fact_id": 404})
    assert result["present"] is False
    assert result["fact"] is None


def test_changes(populated):
    result = _call("memory_changes", {"since": "2000-01-01T00:00:00+00:00"})
    assert result["count"] == 3
    assert "error" in _call("memory_changes", {})


def test_conflicts(components, remember):
    project = components["scopes"].store("project")
    remember(project, {"facts": [{"subject": "repo", "predicate": "uses_framework", "object": "rails"}]})
    remember(project, {"facts": [{"subject": "repo", "predicate": "uses_framework", "object": "sinatra"}]})
    result = _call("memory_conflicts", {})
    assert result["count"] == 1
    assert result["conflicts"][0]["proposed_object"] == "sinatra"


def test_semantic(populated):
    result = _call("memory_recall_semantic", {"query": "database", "mode": "vector"})
    assert result["facts"][0]["object"] == "postgresql"
    assert "similarity" in result["facts"][0]


def test_search_concepts_validates_count(components):
    assert "error" in _call("memory_search_concepts", {"concepts": ["one"]})


def test_conventions_shortcut(populated):
    result = _call("memory_conventions", {})
    assert result["category"] == "conventions"
    assert [f["object"] for f in result["facts"]] == ["prefer small commits"]
