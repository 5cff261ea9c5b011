"""Rule-based distiller: evidence text to an ``Extraction``.

Regex heuristics only. It recognises a fixed set of technologies, decision
and convention phrasing, and replacement language. Callers that have a better
extractor pass its output to the resolver directly.
"""

import re

from .models import EntityMention, Extraction, ProposedFact, Strength

ENTITY_PATTERNS: dict[str, re.Pattern] = {
    "database": re.compile(r"\b(postgresql|postgres|mysql|sqlite|mongodb|redis)\b", re.I),
    "framework": re.compile(
        r"\b(rails|sinatra|django|flask|fastapi|express|next\.?js|react|vue)\b", re.I
    ),
    "language": re.compile(r"\b(ruby|python|javascript|typescript|golang|rust)\b", re.I),
    "platform": re.compile(
        r"\b(aws|gcp|azure|heroku|vercel|netlify|docker|kubernetes|fly\.io)\b", re.I
    ),
}

PREDICATE_FOR_TYPE = {
    "database": "uses_database",
    "framework": "uses_framework",
    "platform": "deployment_platform",
}

DECISION_PATTERNS = [
    re.compile(r"\b(?:we\s+)?decided\s+to\s+([^.\n]+)", re.I),
    re.compile(r"\b(?:we\s+)?agreed\s+(?:to|on)\s+([^.\n]+)", re.I),
    re.compile(r"\blet'?s\s+(?:go\s+with|use)\s+([^.\n]+)", re.I),
    re.compile(r"\bgoing\s+(?:forward|ahead)\s+with\s+([^.\n]+)", re.I),
]

CONVENTION_PATTERNS = [
    re.compile(r"\balways\s+([^.\n]+)", re.I),
    re.compile(r"\bnever\s+([^.\n]+)", re.I),
    re.compile(r"\bconvention[:\s]+([^.\n]+)", re.I),
]

SUPERSESSION_TEXT_RE = re.compile(
    r"\b(no\s+longer|stopped\s+using|switched\s+(?:from|to)|replaced|migrated\s+(?:from|to)|deprecated)\b",
    re.I,
)
RETIRED_BEFORE_RE = re.compile(
    r"\b(?:(?:switched|migrated|moved|away)\s+from|no\s+longer(?:\s+(?:use|using|on))?|"
    r"stopped\s+using|instead\s+of|replaced|deprecated)\s+(?:the\s+|our\s+)?$",
    re.I,
)
RETIRED_WINDOW = 40
CONFLICT_TEXT_RE = re.compile(r"\b(disagree|conflict|contradiction)\b", re.I)

MAX_DECISIONS = 5
QUOTE_CHARS = 200
INFERRED_CONFIDENCE = 0.7


def _canonical(name: str) -> str:
    name = name.lower()
    return {"postgres": "postgresql", "nextjs": "next.js"}.get(name, name)


def _retired(text: str, start: int) -> bool:
    """Mention is the old side of a replacement ("switched from X", "no longer using X")."""
    return bool(RETIRED_BEFORE_RE.search(text[max(0, start - RETIRED_WINDOW) : start]))


def _sentence_around(text: str, start: int, end: int) -> str:
    left = max(text.rfind(".", 0, start), text.rfind("\n", 0, start)) + 1
    right_candidates = [i for i in (text.find(".", end), text.find("\n", end)) if i != -1]
    right = min(right_candidates) + 1 if right_candidates else len(text)
    return text[left:right].strip()[:QUOTE_CHARS]


class RuleDistiller:
    """Heuristic ``Distiller`` implementation."""

    def distill(self, text: str) -> Extraction:
        text = text or ""
        entities, facts = self._technology_facts(text)
        decisions = self._decisions(text)
        facts += [
            ProposedFact(
                subject="repo",
                predicate="decision",
                object=d["title"],
                confidence=INFERRED_CONFIDENCE,
                quote=d["summary"][:QUOTE_CHARS],
                strength=Strength.STATED.value,
            )
            for d in decisions
        ]
        facts += self._conventions(text)
        return Extraction(
            entities=entities, facts=facts, decisions=decisions, signals=self._signals(text)
        )

    @staticmethod
    def _technology_facts(text: str) -> tuple[list[EntityMention], list[ProposedFact]]:
        entities: list[EntityMention] = []
        facts: list[ProposedFact] = []
        seen: set = set()
        for entity_type, pattern in ENTITY_PATTERNS.items():
            for match in pattern.finditer(text):
                name = _canonical(match.group(1))
                if (entity_type, name) in seen:
                    continue
                seen.add((entity_type, name))
                entities.append(EntityMention(entity_type, name, INFERRED_CONFIDENCE))
                predicate = PREDICATE_FOR_TYPE.get(entity_type)
                if predicate and not _retired(text, match.start()):
                    quote = _sentence_around(text, match.start(), match.end())
                    facts.append(
                        ProposedFact(
                            subject="repo",
                            predicate=predicate,
                            object=name,
                            confidence=INFERRED_CONFIDENCE,
                            quote=quote,
                            strength=Strength.INFERRED.value,
                            supersedes=bool(SUPERSESSION_TEXT_RE.search(quote)),
                        )
                    )
        return entities, facts

    @staticmethod
    def _decisions(text: str) -> list[dict]:
        decisions = []
        for pattern in DECISION_PATTERNS:
            for match in pattern.finditer(text):
                summary = match.group(1).strip()
                decisions.append(
                    {"title": summary[:100], "summary": summary, "status_hint": "accepted"}
                )
        return decisions[:MAX_DECISIONS]

    @staticmethod
    def _conventions(text: str) -> list[ProposedFact]:
        found = []
        for pattern in CONVENTION_PATTERNS:
            for match in pattern.finditer(text):
                found.append(
                    ProposedFact(
                        subject="repo",
                        predicate="convention",
                        object=match.group(0).strip()[:100],
                        confidence=INFERRED_CONFIDENCE,
                        quote=_sentence_around(text, match.start(), match.end()),
                        strength=Strength.STATED.value,
                    )
                )
        return found

    @staticmethod
    def _signals(text: str) -> list[dict]:
        signals = []
        if SUPERSESSION_TEXT_RE.search(text):
            signals.append({"kind": "supersession", "value": True})
        if CONFLICT_TEXT_RE.search(text):
            signals.append({"kind": "conflict", "value": True})
        return signals
