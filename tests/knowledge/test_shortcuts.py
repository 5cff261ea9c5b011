"""Tests for canned recall queries."""

from unittest.mock import MagicMock

import pytest

from knowledge import shortcuts
from knowledge.recall import Recall


def test_conventions_default_to_global():
    recall = MagicMock()
    shortcuts.conventions(recall)
    recall.query.assert_called_once_with(
        shortcuts.QUERIES["conventions"]["query"], limit=20, scope="global"
    )


def test_overrides_replace_defaults():
    recall = MagicMock()
    shortcuts.decisions(recall, limit=3, scope="project")
    _, kwargs = recall.query.call_args
    assert kwargs == {"limit": 3, "scope": "project"}


def test_none_override_ignored():
    recall = MagicMock()
    shortcuts.architecture(recall, limit=None)
    assert recall.query.call_args.kwargs["limit"] == 10


def test_unknown_shortcut():
    with pytest.raises(KeyError):
        shortcuts.run("everything", MagicMock())


def test_decisions_end_to_end(scopes, remember):
    remember(
        scopes.store("project"),
        {"facts": [{"subject": "repo", "predicate": "decision", "object": "keep the monolith"}]},
    )
    results = shortcuts.decisions(Recall(scopes))
    assert [r["fact"]["object_literal"] for r in results] == ["keep the monolith"]
