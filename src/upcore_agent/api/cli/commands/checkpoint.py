"""Checkpoint command - Inspect and clear the task checkpoint."""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel

from upcore_agent.application.factory import AgentFactory
from upcore_agent.core.domain.checkpoint import render_checkpoint

app = typer.Typer(help="Task checkpoint management")
console = Console()


@app.command("show")
def show_checkpoint(
    ctx: typer.Context,
    raw: bool = typer.Option(False, "--json", help="Print the stored JSON"),
):
    """Show the current checkpoint."""
    store = AgentFactory(ctx.obj["settings"]).create_checkpoint_store()
    record = asyncio.run(store.load())

    if record is None:
        console.print(f"[dim]No checkpoint at {store.location}[/dim]")
        return

    if raw:
        console.print_json(record.to_json())
        return

    console.print(Panel(render_checkpoint(record), title=store.location, border_style="cyan"))


@app.command("clear")
def clear_checkpoint(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete the current checkpoint."""
    store = AgentFactory(ctx.obj["settings"]).create_checkpoint_store()

    if not force:
        confirm = typer.confirm(f"Delete checkpoint at {store.location}?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            return

    if asyncio.run(store.clear()):
        console.print("[green]✅ Checkpoint cleared[/green]")
    else:
        console.print("[dim]No checkpoint to clear[/dim]")
