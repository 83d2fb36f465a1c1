"""Chat command - interactive terminal chat with the agent."""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel

from upcore_agent.api.cli.output_formatter import TerminalEventRenderer
from upcore_agent.application.factory import AgentFactory
from upcore_agent.application.logging_config import configure_logging
from upcore_agent.core.domain.events import AgentEventType

console = Console()

EXIT_WORDS = ("exit", "quit", "bye")


def chat(
    ctx: typer.Context,
    auto_continue: bool = typer.Option(
        False, "--auto-continue", help="Start the next phase automatically when a phase hits its limit"
    ),
    show_results: bool = typer.Option(False, "--show-results", help="Print tool result previews"),
    debug: bool = typer.Option(False, "--debug", help="Show debug logging"),
):
    """Start an interactive chat session.

    Commands inside the chat: /reset clears history, /continue resumes a task
    that hit its phase limit, exit or quit ends the session. Ctrl+C while the
    agent works cancels the current request.
    """
    settings = ctx.obj["settings"]
    if debug:
        configure_logging("DEBUG")
    elif not ctx.obj.get("log_level"):
        configure_logging("WARNING")

    console.print(
        Panel.fit(
            f"[bold blue]Upcore agent[/bold blue]\n"
            f"[dim]Model: {settings.llm_model}\n"
            f"Repository: {settings.repo_dir}\n"
            f"Knowledge base: {settings.context_dir}[/dim]",
            border_style="blue",
        )
    )
    console.print("[dim]Type 'exit' or 'quit' to end the session[/dim]\n")
    asyncio.run(_chat_loop(settings, auto_continue, show_results))


async def _chat_loop(settings, auto_continue: bool, show_results: bool) -> None:
    runtime = AgentFactory(settings).create_runtime()
    session = runtime.sessions.open("terminal")
    renderer = TerminalEventRenderer(console, show_results=show_results)
    executor = runtime.executor

    while True:
        try:
            user_input = console.input("[bold green]You[/bold green]: ").strip()
        except (KeyboardInterrupt, EOFError):
            console.print("\n[yellow]Goodbye! 👋[/yellow]")
            break

        if user_input.lower() in EXIT_WORDS:
            console.print("[yellow]Goodbye! 👋[/yellow]")
            break
        if not user_input:
            continue
        if user_input == "/reset":
            executor.reset(session)
            console.print("[dim]🔄 Conversation history cleared.[/dim]")
            continue

        if user_input == "/continue":
            task = await executor.continue_phase(session, renderer.handle)
        else:
            task = await executor.submit(session, user_input, renderer.handle)

        while task is not None:
            console.print("[bold blue]🤖 Agent[/bold blue]:")
            try:
                await task
            except (KeyboardInterrupt, asyncio.CancelledError):
                executor.cancel(session)
                console.print("\n[yellow]⏹ Request cancelled.[/yellow]")
                break
            console.print()
            ended = renderer.last_terminal
            if not (auto_continue and ended is not None and ended.type == AgentEventType.NEEDS_CONTINUE):
                break
            renderer.last_terminal = None
            task = await executor.continue_phase(session, renderer.handle)

    runtime.sessions.close(session.session_id)
