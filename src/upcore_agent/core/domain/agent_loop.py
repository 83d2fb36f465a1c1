"""
Agent Loop - streaming tool-calling state machine for one phase.

A phase is a bounded run of turns. Each turn is one streaming model call plus
the tool executions it requests:

1. Append the user input as a new turn
2. Stream the model with full history + tool catalog + system prompt,
   forwarding text chunks and tool starts as they arrive
3. On message stop: add input tokens to the phase total; past the ceiling the
   phase hands off (needs_continue) so the next one starts with a fresh context
4. end_turn (or any other non-tool reason) completes the phase
5. tool_use executes every invocation sequentially, with heartbeats while a
   tool runs, appends each full result to history, and loops
6. Running out of turns hands off (needs_continue) rather than failing

Exactly one terminal event (complete, needs_continue, error) ends a phase. A
cancelled phase ends silently.
"""

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import structlog

from upcore_agent.core.domain import events
from upcore_agent.core.domain.cancellation import CancellationToken
from upcore_agent.core.domain.events import AgentEvent
from upcore_agent.core.domain.models import (
    ConversationTurn,
    FinishReason,
    ImagePart,
    ToolInvocation,
    ToolResult,
    Usage,
)
from upcore_agent.core.domain.stream_decoder import StreamDecoder
from upcore_agent.core.interfaces.llm import LLMProviderProtocol
from upcore_agent.infrastructure.persistence.checkpoint_store import CheckpointStore
from upcore_agent.infrastructure.tools.registry import ToolRegistry

EventCallback = Callable[[AgentEvent], Awaitable[None] | None]


class AgentLoop:
    """
    Turn-taking loop driving the model, the stream decoder and the tools.

    The loop itself is stateless between phases: history is owned by the
    caller and passed in on every run.
    """

    MAX_TURNS = 15
    PHASE_TOKEN_CEILING = 150_000
    HEARTBEAT_INTERVAL = 5.0
    RESULT_PREVIEW_CHARS = 500

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        tool_registry: ToolRegistry,
        system_prompt: str | Callable[[], str] = "",
        max_turns: int | None = None,
        phase_token_ceiling: int | None = None,
        heartbeat_interval: float | None = None,
        result_preview_chars: int | None = None,
        checkpoint_store: CheckpointStore | None = None,
    ):
        """
        Args:
            llm_provider: Streaming model provider
            tool_registry: Tools advertised to and executed for the model
            system_prompt: Prompt text, or a callable rebuilt on every model call
            max_turns: Turn ceiling per phase
            phase_token_ceiling: Input-token ceiling per phase
            heartbeat_interval: Seconds between heartbeats while a tool runs
            result_preview_chars: Length of the tool_done result preview
            checkpoint_store: Used to mention the next step in handoff summaries
        """
        self.llm_provider = llm_provider
        self.tool_registry = tool_registry
        self._system_prompt = system_prompt
        self.max_turns = max_turns or self.MAX_TURNS
        self.phase_token_ceiling = phase_token_ceiling or self.PHASE_TOKEN_CEILING
        self.heartbeat_interval = heartbeat_interval or self.HEARTBEAT_INTERVAL
        self.result_preview_chars = result_preview_chars or self.RESULT_PREVIEW_CHARS
        self.checkpoint_store = checkpoint_store
        self.logger = structlog.get_logger().bind(component="agent_loop")
        self._detached: set[asyncio.Task] = set()

    def build_system_prompt(self) -> str:
        if callable(self._system_prompt):
            return self._system_prompt()
        return self._system_prompt

    async def run(
        self,
        user_input: str,
        history: list[ConversationTurn],
        on_event: EventCallback,
        cancel_token: CancellationToken,
        images: list[ImagePart] | None = None,
    ) -> list[ConversationTurn]:
        """
        Callback form of ``execute_stream``.

        Works on a copy of ``history`` and returns the updated list, including
        whatever was accumulated before a cancellation.
        """
        updated = list(history)
        async for event in self.execute_stream(user_input, updated, cancel_token, images):
            result: Any = on_event(event)
            if inspect.isawaitable(result):
                await result
        return updated

    async def execute_stream(
        self,
        user_input: str,
        history: list[ConversationTurn],
        cancel_token: CancellationToken,
        images: list[ImagePart] | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run one phase, yielding AgentEvents as they happen.

        ``history`` is mutated in place: the user turn, every agent turn and
        every tool-result turn are appended as the phase progresses.
        """
        try:
            async for event in self._run_phase(user_input, history, cancel_token, images):
                yield event
        except Exception as e:
            self.logger.error("phase_unexpected_error", error=str(e), error_type=type(e).__name__)
            if not cancel_token.cancelled:
                yield events.error(f"Unexpected error: {e}")

    async def _run_phase(
        self,
        user_input: str,
        history: list[ConversationTurn],
        cancel_token: CancellationToken,
        images: list[ImagePart] | None,
    ) -> AsyncIterator[AgentEvent]:
        history.append(ConversationTurn.user(user_input, images))
        phase_usage = Usage()
        tools = self.tool_registry.catalog()
        turn = 0

        while turn < self.max_turns:
            if cancel_token.cancelled:
                self.logger.info("phase_cancelled", turn=turn, where="before_model_call")
                return
            turn += 1
            self.logger.info("loop_turn", turn=turn, history_length=len(history))

            decoder = StreamDecoder()
            try:
                async for stream_event in self.llm_provider.stream(
                    self.build_system_prompt(), history, tools
                ):
                    if cancel_token.cancelled:
                        self.logger.info("phase_cancelled", turn=turn, where="model_stream")
                        return
                    for event in decoder.feed(stream_event):
                        yield event
            except Exception as e:
                if cancel_token.cancelled:
                    return
                self.logger.error("llm_stream_failed", turn=turn, error=str(e))
                yield events.error(str(e) or type(e).__name__)
                return

            if cancel_token.cancelled:
                return
            if not decoder.finished:
                self.logger.error("llm_stream_incomplete", turn=turn)
                yield events.error("Model stream ended without a stop event")
                return

            phase_usage = phase_usage + decoder.usage
            history.append(decoder.to_turn())
            invocations = decoder.invocations
            self.logger.info(
                "model_call_finished",
                turn=turn,
                finish_reason=decoder.finish_reason.value,
                tool_calls=len(invocations),
                phase_input_tokens=phase_usage.input_tokens,
            )

            if phase_usage.input_tokens > self.phase_token_ceiling:
                if decoder.finish_reason == FinishReason.TOOL_USE and invocations:
                    history.append(self._skipped_results(invocations))
                yield events.needs_continue(
                    await self._handoff_summary(
                        f"Context budget reached after {turn} turn(s) "
                        f"({phase_usage.input_tokens:,} input tokens)."
                    )
                )
                return

            if decoder.finish_reason != FinishReason.TOOL_USE or not invocations:
                yield events.complete(phase_usage)
                return

            for invocation in invocations:
                if cancel_token.cancelled:
                    self.logger.info("phase_cancelled", turn=turn, where="before_tool")
                    return
                result = None
                async for item in self._execute_tool(invocation, cancel_token):
                    if isinstance(item, ToolResult):
                        result = item
                    else:
                        yield item
                if result is None or cancel_token.cancelled:
                    self.logger.info(
                        "tool_result_discarded", turn=turn, tool=invocation.name
                    )
                    return
                yield events.tool_done(invocation.name, result.preview(self.result_preview_chars))
                history.append(ConversationTurn.tool_results([result]))

        self.logger.warning("turn_ceiling_reached", max_turns=self.max_turns)
        yield events.needs_continue(
            await self._handoff_summary(f"Turn limit ({self.max_turns}) reached for this phase.")
        )

    async def _execute_tool(
        self,
        invocation: ToolInvocation,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[AgentEvent | ToolResult]:
        """
        Execute one invocation, yielding heartbeats while it runs and finally
        the ToolResult. Yields no result if the token is cancelled meanwhile;
        the handler keeps running in the background and its result is dropped.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        task = asyncio.create_task(self.tool_registry.execute(invocation))
        cancelled = asyncio.create_task(cancel_token.wait())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {task, cancelled},
                    timeout=self.heartbeat_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if task in done:
                    break
                if cancel_token.cancelled:
                    self._detach(task)
                    return
                yield events.heartbeat(invocation.name, int(loop.time() - started))
        finally:
            cancelled.cancel()
        yield task.result()

    def _detach(self, task: asyncio.Task) -> None:
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)

    def _skipped_results(self, invocations: list[ToolInvocation]) -> ConversationTurn:
        """Results for tool calls the phase handed off before running."""
        return ConversationTurn.tool_results(
            [
                ToolResult(
                    invocation_id=inv.id,
                    tool=inv.name,
                    text="Not executed: phase budget exhausted before this tool ran.",
                    is_error=True,
                )
                for inv in invocations
            ]
        )

    async def _handoff_summary(self, reason: str) -> str:
        if self.checkpoint_store is None:
            return reason
        record = await self.checkpoint_store.load()
        if record is None or not record.next_step:
            return reason
        return f"{reason} Next step: {record.next_step}"
