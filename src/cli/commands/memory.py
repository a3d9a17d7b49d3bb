"""Memory CLI commands — add, search, forget."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, run_async
from shared_types import SearchMode

console = Console()


def _store(ctx):
    return get_components(ctx.obj.get("config_path") if ctx.obj else None, with_engine=False)[
        "memory"
    ]


@click.group()
def memory():
    """Remembered facts about each owner."""
    pass


@memory.command("add")
@click.argument("owner_id")
@click.argument("text")
@click.option("--tags", help="Comma-separated tags")
@click.option("--importance", "-i", default=0.5, type=click.FloatRange(0.0, 1.0))
@click.option("--ttl-hours", type=float, default=None, help="Expire after this many hours")
@click.pass_context
def memory_add(ctx, owner_id: str, text: str, tags: str, importance: float, ttl_hours):
    """Store a memory for OWNER_ID."""
    from datetime import timedelta

    store = _store(ctx)
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
    ttl = timedelta(hours=ttl_hours) if ttl_hours else None
    try:
        record_id = run_async(store.store(owner_id, text, tags=tag_list, importance=importance, ttl=ttl))
    except ValueError as e:
        console.print(f"[red]Error:[/] {e}")
        raise SystemExit(1)
    console.print(f"[green]Stored:[/] {record_id}")


@memory.command("search")
@click.argument("owner_id")
@click.argument("query")
@click.option("--limit", "-n", default=5)
@click.option("--min-similarity", default=0.1, type=click.FloatRange(0.0, 1.0))
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SearchMode]),
    default=SearchMode.HYBRID.value,
)
@click.pass_context
def memory_search(ctx, owner_id: str, query: str, limit: int, min_similarity: float, mode: str):
    """Search OWNER_ID's memories."""
    store = _store(ctx)
    hits = run_async(store.search(owner_id, query, limit, min_similarity, SearchMode(mode)))

    if not hits:
        console.print("No matching memories.")
        return

    table = Table(title=f"Memories for {owner_id}")
    table.add_column("ID", style="dim", width=16)
    table.add_column("Memory")
    table.add_column("Score", width=6)
    table.add_column("Method", width=8)
    table.add_column("Tags")

    for hit in hits:
        table.add_row(
            hit.record.id,
            hit.record.text[:80],
            f"{hit.similarity:.2f}",
            hit.method,
            ",".join(sorted(hit.record.tags)),
        )
    console.print(table)


@memory.command("forget")
@click.argument("record_id")
@click.confirmation_option(prompt="Deactivate this memory?")
@click.pass_context
def memory_forget(ctx, record_id: str):
    """Deactivate a memory. The sweeper removes it after the grace period."""
    store = _store(ctx)
    if not run_async(store.deactivate(record_id)):
        console.print(f"[red]Memory not found: {record_id}[/]")
        raise SystemExit(1)
    console.print(f"Deactivated {record_id}")
