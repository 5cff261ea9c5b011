"""Predicate policy with cardinality and exclusivity per predicate slot."""

from dataclasses import dataclass
from enum import Enum


class Cardinality(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class PredicatePolicy:
    cardinality: Cardinality
    exclusive: bool

    def to_dict(self) -> dict:
        return {"cardinality": self.cardinality.value, "exclusive": self.exclusive}


POLICIES: dict[str, PredicatePolicy] = {
    "convention": PredicatePolicy(Cardinality.MULTI, False),
    "decision": PredicatePolicy(Cardinality.MULTI, False),
    "auth_method": PredicatePolicy(Cardinality.SINGLE, True),
    "uses_database": PredicatePolicy(Cardinality.SINGLE, True),
    "uses_framework": PredicatePolicy(Cardinality.SINGLE, True),
    "deployment_platform": PredicatePolicy(Cardinality.SINGLE, True),
}

# Unknown predicates accumulate: a false conflict costs more than a duplicate.
DEFAULT_POLICY = PredicatePolicy(Cardinality.MULTI, False)


def policy_for(predicate: str) -> PredicatePolicy:
    return POLICIES.get(predicate, DEFAULT_POLICY)


def is_single(predicate: str) -> bool:
    return policy_for(predicate).cardinality == Cardinality.SINGLE


def is_exclusive(predicate: str) -> bool:
    return policy_for(predicate).exclusive
