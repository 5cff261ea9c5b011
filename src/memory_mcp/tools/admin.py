"""Write and maintenance MCP tools."""

from knowledge.errors import ValidationError
from knowledge.health import SchemaValidator
from knowledge.ingest import Ingester
from knowledge.models import Extraction, ResolveResult, utc_now
from knowledge.resolver import Resolver
from knowledge.sweeper import Sweeper
from memory_mcp.bootstrap import get_components

EXTRACTION_SOURCE = "mcp_extraction"


def _scopes():
    return get_components()["scopes"]


def _memory_store_extraction(args: dict) -> dict:
    """Resolve an extraction, routing facts by ``scope_hint`` (default ``scope``)."""
    default_scope = args.get("scope", "project")
    facts = args.get("facts") or []
    if not facts:
        return {"error": "facts is required"}

    groups: dict[str, list[dict]] = {}
    for fact in facts:
        groups.setdefault(fact.get("scope_hint") or default_scope, []).append(fact)
    if any(s not in ("project", "global") for s in groups):
        return {"error": f"Invalid scope in {sorted(groups)}"}

    scopes = _scopes()
    occurred_at = utc_now()
    totals = ResolveResult()
    try:
        # Validate everything before the first write.
        extractions = {
            scope: Extraction.from_dict(
                {
                    "entities": args.get("entities") or [],
                    "facts": group,
                    "decisions": args.get("decisions") or [],
                }
            )
            for scope, group in groups.items()
        }
        for scope, extraction in extractions.items():
            Resolver.validate(extraction, scope)

        for scope, extraction in extractions.items():
            store = scopes.store_for_scope(scope)
            content_id = Ingester(store).ingest_text(
                EXTRACTION_SOURCE,
                extraction.searchable_text(),
                project_path=scopes.project_path if scope == "project" else None,
                occurred_at=occurred_at,
            )
            result = Resolver(store).apply(
                extraction,
                content_item_id=content_id,
                occurred_at=occurred_at,
                project_path=scopes.project_path,
                scope=scope,
            )
            for key, value in result.to_dict().items():
                setattr(totals, key, getattr(totals, key) + value)
    except ValidationError as e:
        return {"error": str(e)}

    return {"success": True, "scopes": sorted(groups), **totals.to_dict()}


def _memory_promote(args: dict) -> dict:
    fact_id = args.get("fact_id")
    if fact_id is None:
        return {"error": "fact_id is required"}
    promoted = _scopes().promote_fact(int(fact_id))
    if not promoted.present:
        return {"success": False, "error": f"Project fact {fact_id} not found or cannot be promoted"}
    return {"success": True, "project_fact_id": int(fact_id), "global_fact_id": promoted.value}


def _memory_sweep_now(args: dict) -> dict:
    components = get_components()
    sweep_cfg = components["config_model"].sweep
    budget = args.get("budget_seconds") or sweep_cfg.default_budget_seconds
    reports = {}
    for source, store in components["scopes"].available(args.get("scope", "all")):
        sweeper = Sweeper(
            store,
            proposed_fact_ttl_days=sweep_cfg.proposed_fact_ttl_days,
            disputed_fact_ttl_days=sweep_cfg.disputed_fact_ttl_days,
            content_retention_days=sweep_cfg.content_retention_days,
            default_budget_seconds=sweep_cfg.default_budget_seconds,
        )
        reports[source] = sweeper.run(budget_seconds=budget)
    return {"sweeps": reports}


def _memory_status(args: dict) -> dict:
    scopes = _scopes()
    stores = {}
    for source, store in scopes.available("all"):
        stats = store.stats()
        stores[source] = {
            "db_path": stats["db_path"],
            "schema_version": stats["schema_version"],
            "total_facts": stats["total_facts"],
            "open_conflicts": stats["open_conflicts"],
        }
    return {"project_path": scopes.project_path, "stores": stores, "initialized": bool(stores)}


def _memory_stats(args: dict) -> dict:
    scope = args.get("scope", "all")
    return {source: store.stats() for source, store in _scopes().available(scope)}


def _memory_doctor(args: dict) -> dict:
    reports = {
        source: SchemaValidator(store).validate()
        for source, store in _scopes().available(args.get("scope", "all"))
    }
    return {"healthy": all(r["status"] == "healthy" for r in reports.values()), "stores": reports}


TOOLS = [
    (
        "memory_store_extraction",
        {
            "description": "Store facts, entities and decisions learned in this session. Contradictions are recorded as conflicts unless the fact says it replaces the old value.",
            "type": "object",
            "properties": {
                "entities": {
                    "type": "array",
                    "description": "Entities mentioned (databases, frameworks, services, ...)",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {"type": "string", "description": "database, framework, language, platform, repo, module, person, service"},
                            "name": {"type": "string", "description": "Canonical name"},
                            "confidence": {"type": "number"},
                        },
                        "required": ["type", "name"],
                    },
                },
                "facts": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "subject": {"type": "string", "description": "Entity name, or 'repo' for project-level facts"},
                            "predicate": {"type": "string", "description": "uses_database, uses_framework, convention, decision, auth_method, deployment_platform, ..."},
                            "object": {"type": "string"},
                            "confidence": {"type": "number"},
                            "quote": {"type": "string", "description": "Source text excerpt (max 200 chars)"},
                            "strength": {"type": "string", "enum": ["stated", "inferred"]},
                            "supersedes": {"type": "boolean", "description": "This replaces the current value"},
                            "scope_hint": {"type": "string", "enum": ["project", "global"]},
                        },
                        "required": ["subject", "predicate", "object"],
                    },
                },
                "decisions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "summary": {"type": "string"},
                            "status_hint": {"type": "string", "enum": ["accepted", "proposed", "rejected"]},
                        },
                        "required": ["title", "summary"],
                    },
                },
                "scope": {"type": "string", "enum": ["project", "global"], "default": "project"},
            },
            "required": ["facts"],
        },
        _memory_store_extraction,
    ),
    (
        "memory_promote",
        {
            "description": "Copy a project fact (with receipts) into the global store.",
            "type": "object",
            "properties": {"fact_id": {"type": "integer", "description": "Project fact id"}},
            "required": ["fact_id"],
        },
        _memory_promote,
    ),
    (
        "memory_sweep_now",
        {
            "description": "Run time-budgeted maintenance: expire stale facts, prune orphaned rows.",
            "type": "object",
            "properties": {
                "budget_seconds": {"type": "number", "default": 5},
                "scope": {"type": "string", "enum": ["all", "project", "global"], "default": "all"},
            },
            "required": [],
        },
        _memory_sweep_now,
    ),
    (
        "memory_status",
        {
            "description": "Which stores exist for this project, their schema version and fact counts.",
            "type": "object",
            "properties": {},
            "required": [],
        },
        _memory_status,
    ),
    (
        "memory_stats",
        {
            "description": "Detailed counts by status, predicate and entity type, plus provenance coverage.",
            "type": "object",
            "properties": {
                "scope": {"type": "string", "enum": ["all", "project", "global"], "default": "all"},
            },
            "required": [],
        },
        _memory_stats,
    ),
    (
        "memory_doctor",
        {
            "description": "Check each store's schema version, tables, indexes and orphaned rows. Each check is recorded in the store's health log.",
            "type": "object",
            "properties": {
                "scope": {"type": "string", "enum": ["all", "project", "global"], "default": "all"},
            },
            "required": [],
        },
        _memory_doctor,
    ),
]
