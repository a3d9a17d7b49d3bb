"""Maintenance commands: sweep and provider status."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components

console = Console()


@click.command()
@click.pass_context
def sweep(ctx):
    """Run the retention sweep once."""
    c = get_components(ctx.obj.get("config_path") if ctx.obj else None, with_engine=False)
    summary = c["sweeper"].run_once()
    console.print(f"Removed memories: {summary['memory_removed']}")
    console.print(f"Circuits reset: {', '.join(summary['circuits_reset']) or 'none'}")
    console.print(f"Expired decisions: {summary['decisions_expired']}")


@click.command()
@click.pass_context
def providers(ctx):
    """Show configured provider order and health."""
    c = get_components(ctx.obj.get("config_path") if ctx.obj else None, with_engine=False)
    rows = c["gateway"].status()
    if not rows:
        console.print("[yellow]No providers configured (check API keys).[/]")
        return

    table = Table(title="Providers")
    table.add_column("Capability")
    table.add_column("#", width=3)
    table.add_column("Provider")
    table.add_column("Failures", width=8)
    table.add_column("Circuit")
    table.add_column("Last error")

    for row in rows:
        table.add_row(
            row["capability"],
            str(row["priority"]),
            row["provider"],
            str(row["consecutive_failures"]),
            "[red]open[/]" if row["circuit_open"] else "[green]closed[/]",
            (row["last_error"] or "")[:60],
        )
    console.print(table)
