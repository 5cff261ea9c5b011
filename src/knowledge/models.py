"""Data models for the knowledge store."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (second precision)."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class FactStatus(str, Enum):
    PROPOSED = "proposed"
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    DISPUTED = "disputed"
    EXPIRED = "expired"


class Strength(str, Enum):
    STATED = "stated"
    INFERRED = "inferred"


class Scope(str, Enum):
    PROJECT = "project"
    GLOBAL = "global"
    ALL = "all"


class ConflictStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class LinkType(str, Enum):
    SUPERSEDES = "supersedes"


# ----------------------------------------------------------------------
# Lookup results
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Found(Generic[T]):
    """A lookup that found its row."""

    value: T

    @property
    def present(self) -> bool:
        return True

    def unwrap_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Absent:
    """A lookup that found nothing. Use ``ABSENT`` rather than constructing."""

    @property
    def present(self) -> bool:
        return False

    def unwrap_or(self, default: Any) -> Any:
        return default


ABSENT = Absent()

Lookup = Union[Found[T], Absent]


# ----------------------------------------------------------------------
# Persisted rows
# ----------------------------------------------------------------------


@dataclass
class ContentItem:
    id: int
    source: str
    text_hash: str
    byte_len: int
    occurred_at: str
    ingested_at: str
    session_id: str | None = None
    project_path: str | None = None
    transcript_path: str | None = None
    git_branch: str | None = None
    cwd: str | None = None
    agent_version: str | None = None
    thinking_level: str | None = None


@dataclass
class Entity:
    id: int
    type: str
    canonical_name: str
    slug: str
    created_at: str = ""


@dataclass
class Fact:
    id: int
    subject_entity_id: int
    predicate: str
    object_entity_id: int | None = None
    object_literal: str | None = None
    polarity: str = "positive"
    valid_from: str | None = None
    valid_to: str | None = None
    status: FactStatus = FactStatus.ACTIVE
    confidence: float = 1.0
    scope: str = Scope.PROJECT.value
    project_path: str | None = None
    created_at: str = ""
    created_from: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == FactStatus.ACTIVE


@dataclass
class Provenance:
    id: int
    fact_id: int
    content_item_id: int | None
    quote: str | None
    strength: Strength = Strength.STATED
    attribution_entity_id: int | None = None


@dataclass
class FactLink:
    id: int
    from_fact_id: int
    to_fact_id: int
    link_type: LinkType = LinkType.SUPERSEDES


@dataclass
class Conflict:
    id: int
    fact_a_id: int
    fact_b_id: int | None
    status: ConflictStatus
    detected_at: str
    notes: str | None = None
    proposed_object: str | None = None
    proposed_quote: str | None = None
    proposed_strength: str | None = None
    content_item_id: int | None = None


# ----------------------------------------------------------------------
# Extraction (distiller output, resolver input)
# ----------------------------------------------------------------------


@dataclass
class EntityMention:
    type: str
    name: str
    confidence: float = 1.0


@dataclass
class ProposedFact:
    subject: str
    predicate: str
    object: str | None = None
    polarity: str = "positive"
    confidence: float = 1.0
    quote: str | None = None
    strength: str = Strength.STATED.value
    supersedes: bool = False
    scope_hint: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProposedFact":
        return cls(
            subject=(data.get("subject") or "").strip(),
            predicate=(data.get("predicate") or "").strip(),
            object=data.get("object"),
            polarity=data.get("polarity") or "positive",
            confidence=float(data.get("confidence", 1.0)),
            quote=data.get("quote"),
            strength=data.get("strength") or Strength.STATED.value,
            supersedes=bool(data.get("supersedes", False)),
            scope_hint=data.get("scope_hint"),
        )


@dataclass
class Extraction:
    entities: list[EntityMention] = field(default_factory=list)
    facts: list[ProposedFact] = field(default_factory=list)
    decisions: list[dict] = field(default_factory=list)
    signals: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Extraction":
        return cls(
            entities=[
                EntityMention(
                    type=(e.get("type") or "").strip(),
                    name=(e.get("name") or "").strip(),
                    confidence=float(e.get("confidence", 1.0)),
                )
                for e in data.get("entities") or []
            ],
            facts=[ProposedFact.from_dict(f) for f in data.get("facts") or []],
            decisions=list(data.get("decisions") or []),
            signals=list(data.get("signals") or []),
        )

    def is_empty(self) -> bool:
        return not (self.entities or self.facts or self.decisions or self.signals)

    def has_signal(self, kind: str) -> bool:
        return any(s.get("kind") == kind and s.get("value", True) for s in self.signals)

    def searchable_text(self) -> str:
        """Flatten the extraction into text suitable for full-text indexing."""
        parts = [f"{e.type}: {e.name}" for e in self.entities]
        parts += [
            " ".join(p for p in (f.subject, f.predicate, f.object or "", f.quote or "") if p)
            for f in self.facts
        ]
        parts += [f"{d.get('title', '')} {d.get('summary', '')}".strip() for d in self.decisions]
        return " ".join(p for p in parts if p).strip()


@dataclass
class ResolveResult:
    """Aggregate counters for one resolver call."""

    entities_created: int = 0
    facts_created: int = 0
    facts_superseded: int = 0
    conflicts_created: int = 0
    provenance_created: int = 0

    def to_dict(self) -> dict:
        return {
            "entities_created": self.entities_created,
            "facts_created": self.facts_created,
            "facts_superseded": self.facts_superseded,
            "conflicts_created": self.conflicts_created,
            "provenance_created": self.provenance_created,
        }
