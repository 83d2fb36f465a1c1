"""Serve command - run the HTTP/WebSocket server (and the Telegram bot if configured)."""

from typing import Optional

import typer
import uvicorn
from rich.console import Console

from upcore_agent.api.server import create_app

console = Console()


def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default from settings)"),
):
    """Run the agent server."""
    settings = ctx.obj["settings"]
    try:
        app = create_app(settings)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(f"[green]Upcore agent listening on {bind_host}:{bind_port}[/green]")
    if settings.telegram_enabled:
        console.print(f"[dim]Telegram bot enabled for {len(settings.allowed_chat_ids)} chat(s)[/dim]")
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())
