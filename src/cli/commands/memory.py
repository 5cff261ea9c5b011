"""Memory CLI commands: recall tiers, lineage and writes."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cli.utils import fact_label, get_components, print_json

console = Console()

SCOPE_CHOICE = click.Choice(["all", "project", "global"])


def _results_table(title: str, results: list[dict]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Fact")
    table.add_column("Status", width=10)
    table.add_column("Source", width=8)
    table.add_column("Quote")
    for r in results:
        fact = r["fact"]
        receipts = r.get("receipts") or []
        quote = (receipts[0]["quote"] or "")[:60] if receipts else ""
        table.add_row(str(fact["id"]), fact_label(fact), fact["status"], r["source"], quote)
    return table


@click.command()
@click.argument("query")
@click.option("--limit", "-n", default=10, help="Max results")
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def recall(query: str, limit: int, scope: str, as_json: bool):
    """Search facts (with receipts) by keywords."""
    results = get_components()["recall"].query(query, limit=limit, scope=scope)
    if as_json:
        print_json(results)
        return
    if not results:
        console.print("No matching facts.")
        return
    console.print(_results_table(f"Recall: {query}", results))


@click.command()
@click.argument("query")
@click.option("--limit", "-n", default=20, help="Max results")
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def index(query: str, limit: int, scope: str, as_json: bool):
    """Compact previews with token estimates (first disclosure tier)."""
    results = get_components()["recall"].query_index(query, limit=limit, scope=scope)
    if as_json:
        print_json(results)
        return
    if not results:
        console.print("No matching facts.")
        return

    table = Table(title=f"Index: {query}")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Subject")
    table.add_column("Predicate")
    table.add_column("Object")
    table.add_column("Status", width=10)
    table.add_column("Source", width=8)
    table.add_column("~Tok", justify="right", width=5)
    for r in results:
        table.add_row(
            str(r["id"]),
            r["subject"] or "",
            r["predicate"],
            r["object_preview"] or "",
            r["status"],
            r["source"],
            str(r["token_estimate"]),
        )
    console.print(table)
    console.print(f"[dim]~{sum(r['token_estimate'] for r in results)} tokens total[/]")


@click.command()
@click.argument("fact_ids", nargs=-1, type=int, required=True)
@click.option("--scope", "-s", type=click.Choice(["project", "global"]), default="project")
def details(fact_ids: tuple[int, ...], scope: str):
    """Full records for chosen fact ids (second disclosure tier)."""
    print_json(get_components()["recall"].query_details(list(fact_ids), scope=scope))


@click.command()
@click.argument("fact_id", type=int)
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="project")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def explain(fact_id: int, scope: str, as_json: bool):
    """Show a fact's receipts, lineage and conflicts."""
    explanation = get_components()["recall"].explain(fact_id, scope=scope)
    if as_json:
        print_json(explanation.to_dict())
        return
    if not explanation.present:
        console.print(f"[red]Fact not found: {fact_id}[/]")
        raise SystemExit(1)

    fact = explanation.fact
    console.print(f"[bold]#{fact['id']}[/] {escape(fact_label(fact))}")
    console.print(f"Status: {fact['status']}  Scope: {fact['scope']}  Source: {explanation.source}")
    console.print(f"Valid: {fact['valid_from']} → {fact['valid_to'] or 'now'}")
    if explanation.supersedes:
        console.print(f"Supersedes: {', '.join(map(str, explanation.supersedes))}")
    if explanation.superseded_by:
        console.print(f"Superseded by: {', '.join(map(str, explanation.superseded_by))}")
    for r in explanation.receipts:
        console.print(f"  [dim]receipt {r['id']}[/] ({r['strength']}) {escape(r['quote'] or '')}")
    for c in explanation.conflicts:
        console.print(f"  [yellow]conflict {c['id']}[/] ({c['status']}) {escape(c['notes'] or '')}")


@click.command()
@click.option("--since", required=True, help="ISO-8601 timestamp")
@click.option("--limit", "-n", default=50)
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
def changes(since: str, limit: int, scope: str):
    """Facts created since a timestamp, newest first."""
    rows = get_components()["recall"].changes(since, limit=limit, scope=scope)
    if not rows:
        console.print("No changes.")
        return
    for row in rows:
        console.print(
            f"[dim]{row['created_at']}[/] #{row['id']} {escape(fact_label(row))} "
            f"({row['status']}, {row['source']})"
        )


@click.command()
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
def conflicts(scope: str):
    """List open conflicts."""
    rows = get_components()["recall"].conflicts(scope=scope)
    if not rows:
        console.print("No open conflicts.")
        return
    table = Table(title="Open conflicts")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Fact", width=6)
    table.add_column("Proposed")
    table.add_column("Notes")
    table.add_column("Source", width=8)
    for c in rows:
        table.add_row(
            str(c["id"]), str(c["fact_a_id"]), c["proposed_object"] or "", c["notes"] or "", c["source"]
        )
    console.print(table)


@click.command()
@click.argument("query")
@click.option("--limit", "-n", default=10)
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
@click.option("--mode", type=click.Choice(["both", "vector", "text"]), default="both")
def semantic(query: str, limit: int, scope: str, mode: str):
    """Embedding search fused with keyword search."""
    results = get_components()["recall"].query_semantic(query, limit=limit, scope=scope, mode=mode)
    if not results:
        console.print("No matching facts.")
        return
    for r in results:
        console.print(
            f"[dim]#{r['fact']['id']}[/] {escape(fact_label(r['fact']))} "
            f"(sim={r['similarity']:.2f}, {r['source']})"
        )


@click.command()
@click.argument("concept_list", nargs=-1, required=True)
@click.option("--limit", "-n", default=10)
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
def concepts(concept_list: tuple[str, ...], limit: int, scope: str):
    """Facts relevant to every one of 2-5 concepts."""
    try:
        results = get_components()["recall"].search_concepts(list(concept_list), limit=limit, scope=scope)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    if not results:
        console.print("No fact matches all concepts.")
        return
    for r in results:
        console.print(f"[dim]#{r['fact']['id']}[/] {escape(fact_label(r['fact']))} (avg={r['similarity']:.2f})")


@click.command()
@click.argument("extraction_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--scope", "-s", type=click.Choice(["project", "global"]), default="project")
def store(extraction_file: Path, scope: str):
    """Resolve an extraction JSON file into a store."""
    from knowledge.errors import ValidationError
    from knowledge.ingest import Ingester
    from knowledge.models import Extraction
    from knowledge.resolver import Resolver

    try:
        data = json.loads(extraction_file.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON:[/] {e}")
        raise SystemExit(1)

    c = get_components()
    scopes = c["scopes"]
    target = scopes.store_for_scope(scope)
    extraction = Extraction.from_dict(data)
    try:
        Resolver.validate(extraction, scope)
        content_id = Ingester(target).ingest_text(
            "cli_extraction",
            extraction.searchable_text(),
            project_path=scopes.project_path if scope == "project" else None,
        )
        result = Resolver(target).apply(
            extraction, content_item_id=content_id, project_path=scopes.project_path, scope=scope
        )
    except ValidationError as e:
        console.print(f"[red]Invalid extraction:[/] {e}")
        raise SystemExit(1)

    for key, value in result.to_dict().items():
        console.print(f"{key}: {value}")


@click.command()
@click.argument("fact_id", type=int)
def promote(fact_id: int):
    """Copy a project fact into the global store."""
    promoted = get_components()["scopes"].promote_fact(fact_id)
    if not promoted.present:
        console.print(f"[red]Project fact {fact_id} not found or cannot be promoted[/]")
        raise SystemExit(1)
    console.print(f"[green]✓[/] Promoted project fact {fact_id} → global fact {promoted.value}")


@click.command()
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
def embed(scope: str):
    """Compute embeddings for facts stored without one."""
    counts = get_components()["recall"].index_embeddings(scope=scope)
    for source, count in counts.items():
        console.print(f"{source}: {count} embedded")


@click.command()
@click.option("--scope", "-s", type=SCOPE_CHOICE, default="all")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def stats(scope: str, as_json: bool):
    """Fact counts by status, predicate and entity type."""
    c = get_components()
    report = {source: s.stats() for source, s in c["scopes"].available(scope)}
    if as_json:
        print_json(report)
        return
    if not report:
        console.print("No stores found. Run [cyan]beliefbase init[/].")
        return
    for source, data in report.items():
        console.print(f"[bold]{source}[/] {data['db_path']} (schema v{data['schema_version']})")
        console.print(f"  Facts: {data['total_facts']}  Open conflicts: {data['open_conflicts']}")
        for status, count in sorted(data["facts_by_status"].items()):
            console.print(f"  {status}: {count}")
        console.print(f"  Provenance coverage: {data['provenance_coverage']:.0%}")
        if data["tool_calls"]:
            tools = ", ".join(f"{t['tool_name']} ({t['calls']})" for t in data["top_tools"])
            console.print(f"  Tool calls: {data['tool_calls']}  Top: {escape(tools)}")
