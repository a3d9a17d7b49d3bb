"""CLI entry point for mentorflow."""

import sys
from pathlib import Path

import click
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import ask, memory, providers, sweep
from cli.config import load_config
from cli.logging_config import setup_from_config
from observability import log_run_summary

console = Console()


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file (default: ./config.yaml or ~/.mentorflow/config.yaml)",
)
@click.pass_context
def cli(ctx, verbose: bool, json_logs: bool, config_path: Path | None):
    """mentorflow - personalized tutoring assistant pipeline."""
    try:
        config = load_config(config_path)
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)
    if verbose:
        config["logging"] = {**config.get("logging", {}), "level": "DEBUG"}
    setup_from_config(config, json_override=True if json_logs else None)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if verbose:
        ctx.call_on_close(log_run_summary)


cli.add_command(ask)
cli.add_command(memory)
cli.add_command(sweep)
cli.add_command(providers)


if __name__ == "__main__":
    cli()
