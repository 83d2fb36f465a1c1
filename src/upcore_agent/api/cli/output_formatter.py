"""Rich console rendering of agent events for the terminal chat."""

from rich.console import Console
from rich.panel import Panel

from upcore_agent.core.domain.events import AgentEvent, AgentEventType


class TerminalEventRenderer:
    """
    Streams AgentEvents to a rich Console.

    Text chunks are printed as they arrive; tool progress goes on dim lines of
    its own. After a terminal event ``last_terminal`` tells the chat loop how
    the phase ended.
    """

    def __init__(self, console: Console, show_results: bool = False):
        self.console = console
        self.show_results = show_results
        self.last_terminal: AgentEvent | None = None
        self._mid_line = False

    def _break_line(self) -> None:
        if self._mid_line:
            self.console.print()
            self._mid_line = False

    async def handle(self, event: AgentEvent) -> None:
        if event.type == AgentEventType.TEXT_CHUNK:
            self.console.print(event.content or "", end="", markup=False, highlight=False)
            self._mid_line = not (event.content or "").endswith("\n")
            return

        self._break_line()
        if event.type == AgentEventType.TOOL_START:
            self.console.print(f"[dim]🔧 Using tool: {event.tool}[/dim]")
        elif event.type == AgentEventType.TOOL_DONE:
            self.console.print(f"[dim]✅ {event.tool} completed[/dim]")
            if self.show_results and event.result:
                self.console.print(event.result, style="dim", markup=False)
        elif event.type == AgentEventType.HEARTBEAT:
            self.console.print(f"[dim]⏳ {event.tool} running ({event.elapsed}s)[/dim]")
        elif event.type == AgentEventType.COMPLETE:
            self.last_terminal = event
            usage = event.usage
            if usage is not None:
                self.console.print(
                    f"[dim]Tokens used: {usage.input_tokens} in · {usage.output_tokens} out[/dim]"
                )
        elif event.type == AgentEventType.NEEDS_CONTINUE:
            self.last_terminal = event
            self.console.print(
                Panel(event.summary or "", title="⏸ Phase limit reached", border_style="yellow")
            )
        elif event.type == AgentEventType.ERROR:
            self.last_terminal = event
            self.console.print(f"[red]❌ {event.message}[/red]")

    __call__ = handle
