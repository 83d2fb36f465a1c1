"""Tools command - List and inspect the tools advertised to the model."""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from upcore_agent.application.factory import AgentFactory
from upcore_agent.core.domain.models import ToolInvocation
from upcore_agent.infrastructure.tools.registry import ToolRegistry

app = typer.Typer(help="Tool management")
console = Console()


def _registry(ctx: typer.Context):
    factory = AgentFactory(ctx.obj["settings"])
    store = factory.create_checkpoint_store()
    return ToolRegistry(factory.create_tools(store))


@app.command("list")
def list_tools(ctx: typer.Context):
    """List available tools."""
    registry = _registry(ctx)

    table = Table(title="Available Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description", style="white")

    for tool in registry.tools.values():
        table.add_row(tool.name, tool.description.splitlines()[0])

    console.print(table)


@app.command("inspect")
def inspect_tool(
    ctx: typer.Context,
    tool_name: str = typer.Argument(..., help="Tool name to inspect"),
):
    """Inspect tool details and parameters."""
    tool = _registry(ctx).get(tool_name)

    if not tool:
        console.print(f"[red]Tool '{tool_name}' not found[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold cyan]{tool.name}[/bold cyan]")
    console.print(f"{tool.description}\n")

    console.print("[bold]Parameters:[/bold]")
    console.print_json(data=tool.parameters_schema)


@app.command("run")
def run_tool(
    ctx: typer.Context,
    tool_name: str = typer.Argument(..., help="Tool name to run"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool input as a JSON object"),
):
    """Run a single tool outside the agent loop."""
    try:
        tool_input = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON arguments: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(tool_input, dict):
        console.print("[red]Tool arguments must be a JSON object[/red]")
        raise typer.Exit(1)

    registry = _registry(ctx)
    if tool_name not in registry:
        console.print(f"[red]Tool '{tool_name}' not found[/red]")
        raise typer.Exit(1)

    result = asyncio.run(
        registry.execute(ToolInvocation(id="cli", name=tool_name, input=tool_input))
    )
    style = "red" if result.is_error else None
    console.print(result.text, style=style, markup=False, highlight=False)
    if result.is_error:
        raise typer.Exit(1)
