"""Memory management CLI commands."""

import asyncio
import json
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from redmem.exceptions import InvalidMemoryIdError, RedmemError
from redmem.plugin import SEARCH_MODES, MemoryPlugin, get_memory_plugin

console = Console()

memory_app = typer.Typer(help="Inspect and manage stored memories")

CLI_MIN_SCORE = 0.3

T = TypeVar("T")


def _load_plugin(ctx: typer.Context) -> MemoryPlugin:
    config_path = (ctx.obj or {}).get("config")
    try:
        return get_memory_plugin(config_path)
    except RedmemError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _run(plugin: MemoryPlugin, operation: Callable[[MemoryPlugin], Awaitable[T]]) -> T:
    """Run one async plugin operation, always disconnecting afterwards."""

    async def _runner() -> T:
        try:
            return await operation(plugin)
        finally:
            await plugin.stop()

    return asyncio.run(_runner())


@memory_app.command("list")
def memory_list(ctx: typer.Context):
    """Show how many memories are stored."""
    plugin = _load_plugin(ctx)

    try:
        count = _run(plugin, lambda p: p.count())
    except Exception as e:
        console.print(f"[red]Failed to count memories: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"Total memories in Redis: {count}")


@memory_app.command("search")
def memory_search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Search query"),
    limit: int = typer.Option(5, "--limit", "-n", min=1, help="Maximum results"),
    mode: str = typer.Option("vector", "--mode", "-m", help="Search mode: vector, text, or hybrid"),
):
    """Search memories and print the matches as JSON.

    Examples:
        redmem memory search "favorite editor"
        redmem memory search "dark mode" --mode hybrid --limit 10
    """
    if mode not in SEARCH_MODES:
        console.print(f"[red]Invalid mode '{mode}'. Must be one of: {', '.join(SEARCH_MODES)}[/red]")
        raise typer.Exit(1)

    plugin = _load_plugin(ctx)

    try:
        results = _run(plugin, lambda p: p.search(query, limit=limit, mode=mode, min_score=CLI_MIN_SCORE))
    except Exception as e:
        console.print(f"[red]Search failed: {e}[/red]")
        raise typer.Exit(1)

    # Use plain print to avoid Rich wrapping that breaks JSON
    print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))


@memory_app.command("stats")
def memory_stats(ctx: typer.Context):
    """Show memory count and the active configuration."""
    plugin = _load_plugin(ctx)

    try:
        stats = _run(plugin, lambda p: p.stats())
    except Exception as e:
        console.print(f"[red]Failed to read stats: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Memory Statistics")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Total memories", str(stats["count"]))
    table.add_row("Redis URL", stats["redis_url"])
    table.add_row("Index", stats["index_name"])
    table.add_row("Key prefix", stats["key_prefix"])
    table.add_row("Embedding provider", stats["embedding_provider"])
    table.add_row("Auto recall", "yes" if stats["auto_recall"] else "no")
    table.add_row("Auto capture", "yes" if stats["auto_capture"] else "no")

    console.print(table)


@memory_app.command("delete")
def memory_delete(
    ctx: typer.Context,
    memory_id: str = typer.Argument(help="Memory UUID"),
):
    """Delete a memory by ID."""
    plugin = _load_plugin(ctx)

    try:
        deleted = _run(plugin, lambda p: p.delete(memory_id))
    except InvalidMemoryIdError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Failed to delete memory: {e}[/red]")
        raise typer.Exit(1)

    if deleted:
        console.print(f"Deleted memory: {memory_id}")
    else:
        console.print(f"Memory not found: {memory_id}")
