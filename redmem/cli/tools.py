"""Tools inspection CLI commands."""

import typer
from rich.console import Console

from redmem.exceptions import ToolValidationError
from redmem.tools import describe_tool, get_tool, list_tools

console = Console()

tools_app = typer.Typer(help="Inspect the agent-facing memory tools")


@tools_app.command("list")
def tools_list():
    """List the registered tools."""
    names = sorted(list_tools())
    if not names:
        console.print("[yellow]No tools registered[/yellow]")
        return

    for name in names:
        console.print(f"  [bold]{name}[/bold]")
        console.print(f"    {get_tool(name).description}")

    console.print(f"\n[dim]Total: {len(names)} tool{'s' if len(names) != 1 else ''}[/dim]")


@tools_app.command("show")
def tools_show(
    tool_name: str = typer.Argument(help="Tool name to inspect"),
):
    """Show a tool's description and parameters, as given to the agent."""
    try:
        description = describe_tool(tool_name)
    except ToolValidationError as e:
        console.print(f"[red]{e}[/red]")
        console.print("\nUse [cyan]redmem tools list[/cyan] to see all available tools")
        raise typer.Exit(1)

    print(description)
