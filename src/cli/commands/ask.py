"""Ask command: run one message through the pipeline."""

import json
import sys

import click
from rich.console import Console
from rich.markdown import Markdown

from cli.utils import get_components, run_async
from orchestrator import InboundRequest

console = Console()


async def _ask(engine, request: InboundRequest):
    try:
        return await engine.handle(request)
    finally:
        await engine.drain()
        if engine.web_client is not None:
            await engine.web_client.close()


@click.command()
@click.argument("owner_id")
@click.argument("text")
@click.option("--conversation", "-c", "conversation_id", default=None, help="Conversation id")
@click.option("--no-memory", is_flag=True, help="Skip memory lookup and write-back")
@click.option("--suggestions", is_flag=True, help="Include follow-up suggestions")
@click.option("--json", "as_json", is_flag=True, help="Print the full result envelope as JSON")
@click.pass_context
def ask(ctx, owner_id: str, text: str, conversation_id, no_memory: bool, suggestions: bool, as_json: bool):
    """Ask a question as OWNER_ID and print the reply."""
    c = get_components(ctx.obj.get("config_path") if ctx.obj else None)
    request = InboundRequest(
        owner_id=owner_id,
        text=text,
        conversation_id=conversation_id,
        include_memory=not no_memory,
        include_suggestions=suggestions,
    )

    with console.status("Thinking..."):
        result = run_async(_ask(c["engine"], request))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        sys.exit(0 if result.ok else 1)

    if result.error:
        console.print(f"[red]Error ({result.error.kind}):[/] {result.error.message}")
        sys.exit(1)

    console.print()
    console.print(Markdown(result.content))
    if result.degraded:
        console.print(f"\n[yellow]Degraded:[/] {', '.join(result.degraded_reasons)}")
    for suggestion in result.suggestions:
        console.print(f"[dim]> {suggestion}[/]")
