"""Tests for predicate policies."""

from knowledge.policy import DEFAULT_POLICY, Cardinality, is_exclusive, is_single, policy_for


def test_single_valued_predicates():
    for predicate in ("auth_method", "uses_database", "uses_framework", "deployment_platform"):
        assert is_single(predicate)
        assert is_exclusive(predicate)


def test_multi_valued_predicates():
    assert not is_single("convention")
    assert not is_single("decision")
    assert not is_exclusive("decision")


def test_unknown_predicate_accumulates():
    assert policy_for("likes_tabs") is DEFAULT_POLICY
    assert DEFAULT_POLICY.cardinality == Cardinality.MULTI
    assert not is_single("likes_tabs")


def test_to_dict():
    assert policy_for("uses_database").to_dict() == {"cardinality": "single", "exclusive": True}
