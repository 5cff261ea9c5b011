"""Recall MCP tools: search, progressive disclosure and lineage."""

from knowledge import shortcuts
from memory_mcp.bootstrap import get_components

SCOPE_SCHEMA = {
    "type": "string",
    "enum": ["all", "project", "global"],
    "description": "Which store to search: current project, user-wide global, or both",
    "default": "all",
}


def _recall():
    return get_components()["recall"]


def _limit(args: dict, default: int = 10) -> int:
    return max(1, min(int(args.get("limit") or default), 500))


def _format_fact(result: dict) -> dict:
    fact = result["fact"]
    formatted = {
        "id": fact["id"],
        "subject": fact["subject_name"],
        "predicate": fact["predicate"],
        "object": fact.get("object_literal") or fact.get("object_name"),
        "status": fact["status"],
        "scope": fact["scope"],
        "source": result["source"],
        "receipts": [
            {"quote": r["quote"], "strength": r["strength"]} for r in result.get("receipts", [])
        ],
    }
    if "similarity" in result:
        formatted["similarity"] = round(result["similarity"], 4)
    return formatted


def _format_results(query, scope: str, results: list[dict]) -> dict:
    return {
        "query": query,
        "scope": scope,
        "facts": [_format_fact(r) for r in results],
        "count": len(results),
    }


def _memory_recall(args: dict) -> dict:
    query = args.get("query", "")
    if not query:
        return {"error": "query is required"}
    scope = args.get("scope", "all")
    return _format_results(query, scope, _recall().query(query, limit=_limit(args), scope=scope))


def _memory_recall_index(args: dict) -> dict:
    query = args.get("query", "")
    if not query:
        return {"error": "query is required"}
    scope = args.get("scope", "all")
    results = _recall().query_index(query, limit=_limit(args, 20), scope=scope)
    return {
        "query": query,
        "scope": scope,
        "result_count": len(results),
        "total_estimated_tokens": sum(r["token_estimate"] for r in results),
        "facts": results,
    }


def _memory_recall_details(args: dict) -> dict:
    fact_ids = args.get("fact_ids") or []
    if not fact_ids:
        return {"error": "fact_ids is required"}
    details = _recall().query_details(fact_ids, scope=args.get("scope", "project"))
    return {"fact_count": len(details), "facts": details}


def _memory_explain(args: dict) -> dict:
    if args.get("fact_id") is None:
        return {"error": "fact_id is required"}
    explanation = _recall().explain(int(args["fact_id"]), scope=args.get("scope", "project"))
    return explanation.to_dict()


def _memory_changes(args: dict) -> dict:
    since = args.get("since")
    if not since:
        return {"error": "since is required (ISO-8601 timestamp)"}
    changes = _recall().changes(since, limit=_limit(args, 50), scope=args.get("scope", "all"))
    return {"since": since, "changes": changes, "count": len(changes)}


def _memory_conflicts(args: dict) -> dict:
    conflicts = _recall().conflicts(scope=args.get("scope", "all"))
    return {"conflicts": conflicts, "count": len(conflicts)}


def _memory_recall_semantic(args: dict) -> dict:
    query = args.get("query", "")
    if not query:
        return {"error": "query is required"}
    scope = args.get("scope", "all")
    results = _recall().query_semantic(
        query, limit=_limit(args), scope=scope, mode=args.get("mode", "both")
    )
    return _format_results(query, scope, results)


def _memory_search_concepts(args: dict) -> dict:
    concepts = args.get("concepts") or []
    if not 2 <= len(concepts) <= 5:
        return {"error": "Provide between 2 and 5 concepts"}
    scope = args.get("scope", "all")
    results = _recall().search_concepts(concepts, limit=_limit(args), scope=scope)
    formatted = _format_results(concepts, scope, results)
    for item, result in zip(formatted["facts"], results):
        item["concept_similarities"] = [round(s, 4) for s in result["concept_similarities"]]
    return formatted


def _shortcut(name: str):
    def handler(args: dict) -> dict:
        results = shortcuts.run(name, _recall(), limit=args.get("limit"))
        return {"category": name, "facts": [_format_fact(r) for r in results], "count": len(results)}

    handler.__name__ = f"_memory_{name}"
    return handler


_LIMIT = {"type": "integer", "description": "Max results", "default": 10}

TOOLS = [
    (
        "memory_recall",
        {
            "description": "Search remembered facts (with their source quotes) by keywords. Project facts rank ahead of global ones.",
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": _LIMIT,
                "scope": SCOPE_SCHEMA,
            },
            "required": ["query"],
        },
        _memory_recall,
    ),
    (
        "memory_recall_index",
        {
            "description": "Cheap first pass: compact fact previews (no quotes, no dates) with a token estimate each. Follow up with memory_recall_details for the ids you need.",
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": {"type": "integer", "description": "Max results", "default": 20},
                "scope": SCOPE_SCHEMA,
            },
            "required": ["query"],
        },
        _memory_recall_index,
    ),
    (
        "memory_recall_details",
        {
            "description": "Full records for chosen fact ids: fact, receipts, supersession lineage and conflicts.",
            "type": "object",
            "properties": {
                "fact_ids": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Fact ids from memory_recall_index",
                },
                "scope": {
                    "type": "string",
                    "enum": ["project", "global"],
                    "description": "Store the ids belong to",
                    "default": "project",
                },
            },
            "required": ["fact_ids"],
        },
        _memory_recall_details,
    ),
    (
        "memory_explain",
        {
            "description": "Explain one fact: its receipts, what it superseded, what superseded it, and open conflicts.",
            "type": "object",
            "properties": {
                "fact_id": {"type": "integer", "description": "Fact id"},
                "scope": {
                    "type": "string",
                    "enum": ["project", "global", "all"],
                    "default": "project",
                },
            },
            "required": ["fact_id"],
        },
        _memory_explain,
    ),
    (
        "memory_changes",
        {
            "description": "Facts created since a timestamp, newest first.",
            "type": "object",
            "properties": {
                "since": {"type": "string", "description": "ISO-8601 timestamp"},
                "limit": {"type": "integer", "description": "Max results", "default": 50},
                "scope": SCOPE_SCHEMA,
            },
            "required": ["since"],
        },
        _memory_changes,
    ),
    (
        "memory_conflicts",
        {
            "description": "Open conflicts: contradicting claims that arrived without a replacement signal.",
            "type": "object",
            "properties": {"scope": SCOPE_SCHEMA},
            "required": [],
        },
        _memory_conflicts,
    ),
    (
        "memory_recall_semantic",
        {
            "description": "Meaning-based search using local embeddings, fused with keyword search.",
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Natural language query"},
                "limit": _LIMIT,
                "scope": SCOPE_SCHEMA,
                "mode": {
                    "type": "string",
                    "enum": ["both", "vector", "text"],
                    "default": "both",
                    "description": "vector = embeddings only, text = keywords only",
                },
            },
            "required": ["query"],
        },
        _memory_recall_semantic,
    ),
    (
        "memory_search_concepts",
        {
            "description": "Facts relevant to ALL of 2-5 concepts, ranked by average similarity.",
            "type": "object",
            "properties": {
                "concepts": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 2,
                    "maxItems": 5,
                },
                "limit": _LIMIT,
                "scope": SCOPE_SCHEMA,
            },
            "required": ["concepts"],
        },
        _memory_search_concepts,
    ),
    (
        "memory_decisions",
        {
            "description": "Architectural decisions, constraints and rules. Check before implementing features.",
            "type": "object",
            "properties": {"limit": _LIMIT},
            "required": [],
        },
        _shortcut("decisions"),
    ),
    (
        "memory_conventions",
        {
            "description": "Coding conventions and style preferences from the global store.",
            "type": "object",
            "properties": {"limit": {"type": "integer", "description": "Max results", "default": 20}},
            "required": [],
        },
        _shortcut("conventions"),
    ),
    (
        "memory_architecture",
        {
            "description": "Frameworks, tools and architecture patterns in use.",
            "type": "object",
            "properties": {"limit": _LIMIT},
            "required": [],
        },
        _shortcut("architecture"),
    ),
]
