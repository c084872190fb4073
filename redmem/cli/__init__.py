"""redmem CLI application - main entry point."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from redmem import __version__

from .memory import memory_app
from .tools import tools_app

app = typer.Typer(
    name="redmem",
    help="Redis-backed long-term memory for conversational agents",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"redmem {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to memory config (default: XDG location of memory.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level log messages"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """Redis-backed long-term memory for conversational agents."""
    if verbose:
        logging.getLogger("redmem").setLevel(logging.INFO)
    ctx.obj = {"config": config}


app.add_typer(memory_app, name="memory")
app.add_typer(tools_app, name="tools")


if __name__ == "__main__":
    app()
