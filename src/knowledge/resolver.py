"""Truth maintenance: fold an extraction into a store.

For each proposed fact the resolver decides between attaching a receipt to an
equivalent fact, accumulating a new fact, superseding the current one, or
recording a conflict. The whole extraction is applied in one transaction.
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from .embeddings import EmbeddingGenerator, fact_text
from .errors import ValidationError
from .models import (
    Extraction,
    Fact,
    FactStatus,
    ProposedFact,
    ResolveResult,
    Scope,
    Strength,
    utc_now,
)
from .policy import is_single
from .scope import resolve_project_dir
from .store import FactStore

logger = structlog.get_logger()

DEFAULT_SUBJECT_TYPE = "repo"

SUPERSESSION_RE = re.compile(
    r"\b(switched\s+(to|from)|no\s+longer|stopped\s+using|replaced|"
    r"migrated\s+(to|from)|moved\s+(to|from)|instead\s+of|deprecated)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class _ApplyContext:
    content_item_id: Optional[int]
    occurred_at: str
    scope: str
    project_path: Optional[str]
    signalled: bool


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _signal_targets(signal: dict, proposal: ProposedFact) -> bool:
    if signal.get("predicate") and signal["predicate"] == proposal.predicate:
        return True
    return bool(signal.get("object")) and _normalize(signal["object"]) == _normalize(proposal.object)


def has_supersession_signal(proposal: ProposedFact, extraction: Extraction) -> bool:
    """Explicit flag, a replacement phrase in the quote, or an extraction-level
    signal naming this proposal's predicate or object.

    A supersession signal that names neither applies to no fact.
    """
    if proposal.supersedes:
        return True
    if proposal.quote and SUPERSESSION_RE.search(proposal.quote):
        return True
    return any(
        s.get("kind") == "supersession" and s.get("value", True) and _signal_targets(s, proposal)
        for s in extraction.signals
    )


class Resolver:
    """Applies extractions to one ``FactStore``."""

    def __init__(self, store: FactStore, embedder: Optional[EmbeddingGenerator] = None):
        self.store = store
        self.embedder = embedder or EmbeddingGenerator()

    def apply(
        self,
        extraction: Extraction | dict,
        content_item_id: Optional[int] = None,
        occurred_at: Optional[str] = None,
        project_path: Optional[str] = None,
        scope: str = Scope.PROJECT.value,
    ) -> ResolveResult:
        if isinstance(extraction, dict):
            extraction = Extraction.from_dict(extraction)
        self.validate(extraction, scope)

        if scope == Scope.PROJECT.value:
            project_path = project_path or resolve_project_dir()
        else:
            project_path = None

        occurred_at = occurred_at or utc_now()
        result = ResolveResult()
        with self.store.transaction():
            entity_ids = self._resolve_entities(extraction, result)
            for proposal in extraction.facts:
                ctx = _ApplyContext(
                    content_item_id=content_item_id,
                    occurred_at=occurred_at,
                    scope=scope,
                    project_path=project_path,
                    signalled=has_supersession_signal(proposal, extraction),
                )
                self._resolve_fact(proposal, entity_ids, ctx, result)

        logger.info("resolver.applied", scope=scope, **result.to_dict())
        return result

    @staticmethod
    def validate(extraction: Extraction, scope: str) -> None:
        """Raise ValidationError for a malformed extraction or write scope."""
        if scope not in (Scope.PROJECT.value, Scope.GLOBAL.value):
            raise ValidationError(f"Invalid scope for writes: {scope!r}")
        for i, proposal in enumerate(extraction.facts):
            if not proposal.subject:
                raise ValidationError(f"Fact {i} is missing a subject")
            if not proposal.predicate:
                raise ValidationError(f"Fact {i} is missing a predicate")
            if proposal.strength not in (Strength.STATED.value, Strength.INFERRED.value):
                raise ValidationError(f"Fact {i} has invalid strength {proposal.strength!r}")
        for i, mention in enumerate(extraction.entities):
            if not mention.type or not mention.name:
                raise ValidationError(f"Entity {i} needs both type and name")

    def _resolve_entities(self, extraction: Extraction, result: ResolveResult) -> dict[str, int]:
        """Create or look up each distinct (type, name) once. Keyed by name."""
        entity_ids: dict[str, int] = {}
        seen: set = set()
        for mention in extraction.entities:
            key = (mention.type, mention.name)
            if key in seen:
                continue
            seen.add(key)
            entity_id, created = self.store.find_or_create_entity(mention.type, mention.name)
            result.entities_created += int(created)
            entity_ids.setdefault(mention.name, entity_id)
        return entity_ids

    def _subject_id(self, name: str, entity_ids: dict[str, int], result: ResolveResult) -> int:
        if name in entity_ids:
            return entity_ids[name]
        entity_id, created = self.store.find_or_create_entity(DEFAULT_SUBJECT_TYPE, name)
        result.entities_created += int(created)
        entity_ids[name] = entity_id
        return entity_id

    def _resolve_fact(
        self,
        proposal: ProposedFact,
        entity_ids: dict[str, int],
        ctx: _ApplyContext,
        result: ResolveResult,
    ) -> None:
        subject_id = self._subject_id(proposal.subject, entity_ids, result)
        object_entity_id = entity_ids.get(proposal.object) if proposal.object else None
        existing = self.store.facts_for_slot(
            subject_id, proposal.predicate, scope=ctx.scope, project_path=ctx.project_path
        )

        matching = next(
            (f for f in existing if self._objects_match(f, proposal.object, object_entity_id)),
            None,
        )
        if matching is not None:
            self._add_receipt(matching.id, proposal, ctx, result)
            return

        if existing and is_single(proposal.predicate):
            if not ctx.signalled:
                self._record_conflict(existing[0], proposal, ctx, result)
                return
            new_id = self._insert_fact(subject_id, object_entity_id, proposal, ctx, result)
            for old in existing:
                self.store.supersede_fact(old.id, new_id, valid_to=ctx.occurred_at)
                result.facts_superseded += 1
            logger.debug(
                "resolver.superseded",
                predicate=proposal.predicate,
                new_fact_id=new_id,
                old_fact_ids=[f.id for f in existing],
            )
            return

        self._insert_fact(subject_id, object_entity_id, proposal, ctx, result)

    @staticmethod
    def _objects_match(fact: Fact, obj: Optional[str], object_entity_id: Optional[int]) -> bool:
        if object_entity_id is not None and fact.object_entity_id == object_entity_id:
            return True
        return _normalize(fact.object_literal) == _normalize(obj)

    def _insert_fact(
        self,
        subject_id: int,
        object_entity_id: Optional[int],
        proposal: ProposedFact,
        ctx: _ApplyContext,
        result: ResolveResult,
    ) -> int:
        subject_name = self.store.get_entity(subject_id).unwrap_or(None)
        embedding = self.embedder.generate(
            fact_text(
                {
                    "subject_name": subject_name.canonical_name if subject_name else proposal.subject,
                    "predicate": proposal.predicate,
                    "object_literal": proposal.object,
                }
            )
        )
        fact_id = self.store.insert_fact(
            subject_entity_id=subject_id,
            predicate=proposal.predicate,
            object_entity_id=object_entity_id,
            object_literal=proposal.object,
            polarity=proposal.polarity,
            valid_from=ctx.occurred_at,
            status=FactStatus.ACTIVE,
            confidence=proposal.confidence,
            created_from=f"content:{ctx.content_item_id}" if ctx.content_item_id else None,
            scope=ctx.scope,
            project_path=ctx.project_path,
            embedding=embedding,
        )
        result.facts_created += 1
        self._add_receipt(fact_id, proposal, ctx, result)
        return fact_id

    def _add_receipt(
        self, fact_id: int, proposal: ProposedFact, ctx: _ApplyContext, result: ResolveResult
    ) -> None:
        self.store.insert_provenance(
            fact_id,
            content_item_id=ctx.content_item_id,
            quote=proposal.quote,
            strength=proposal.strength,
        )
        result.provenance_created += 1

    def _record_conflict(
        self, current: Fact, proposal: ProposedFact, ctx: _ApplyContext, result: ResolveResult
    ) -> None:
        if self.store.find_open_conflict(current.id, proposal.object).present:
            logger.debug("resolver.conflict_exists", fact_id=current.id, proposed=proposal.object)
            return
        self.store.insert_conflict(
            fact_a_id=current.id,
            notes=(
                f"Contradicting {proposal.predicate} claims: "
                f"{current.object_literal!r} vs {proposal.object!r}"
            ),
            proposed_object=proposal.object,
            proposed_quote=proposal.quote,
            proposed_strength=proposal.strength,
            content_item_id=ctx.content_item_id,
        )
        result.conflicts_created += 1
