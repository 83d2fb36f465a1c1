"""Upcore agent CLI entry point."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from upcore_agent.api.cli.commands import chat, checkpoint, serve, tools
from upcore_agent.application.logging_config import configure_logging
from upcore_agent.application.settings import AgentSettings

app = typer.Typer(
    name="upcore-agent",
    help="Upcore agent - streaming LLM coding agent",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("serve", help="Run the HTTP/WebSocket server")(serve.serve)
app.command("chat", help="Interactive terminal chat")(chat.chat)
app.add_typer(tools.app, name="tools", help="Tool management")
app.add_typer(checkpoint.app, name="checkpoint", help="Task checkpoint management")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings override file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default from settings)"),
):
    """Upcore agent CLI."""
    settings = AgentSettings.load_from_file(config) if config else AgentSettings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = {"settings": settings, "log_level": log_level}


@app.command()
def version():
    """Show the agent version."""
    from upcore_agent import __version__

    console.print(f"[bold blue]Upcore agent[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
