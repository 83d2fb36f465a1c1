"""
Agent Executor Service

Application-layer service owning the lifecycle of agent turns for sessions.
Transports (WebSocket, Telegram, terminal) hand it user input plus an event
sink; it applies the message rate limit, enforces cancel-then-supersede, runs
the AgentLoop in a background task and commits history when the turn ends.

Example:
    >>> executor = AgentExecutor(loop, FixedWindowRateLimiter(10, 60), store)
    >>> task = await executor.submit(session, "Add a health endpoint", fanout.send)
    >>> await task
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from upcore_agent.core.domain import events
from upcore_agent.core.domain.agent_loop import AgentLoop
from upcore_agent.core.domain.cancellation import CancellationToken
from upcore_agent.core.domain.events import AgentEvent
from upcore_agent.core.domain.models import ConversationTurn, ImagePart
from upcore_agent.core.domain.rate_limiter import FixedWindowRateLimiter
from upcore_agent.core.domain.session import SessionState
from upcore_agent.core.prompts.system_prompt import build_continuation_prompt
from upcore_agent.infrastructure.persistence.checkpoint_store import CheckpointStore

EventSink = Callable[[AgentEvent], Awaitable[None] | None]

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait before sending more messages."
EMPTY_MESSAGE = "Message content cannot be empty"


async def emit(sink: EventSink, event: AgentEvent) -> None:
    result: Any = sink(event)
    if inspect.isawaitable(result):
        await result


class AgentExecutor:
    """
    Starts, supersedes and cancels agent turns.

    At most one turn runs per session. A new submission cancels the running
    one; the cancelled turn finishes silently and its history is discarded.
    """

    def __init__(
        self,
        agent_loop: AgentLoop,
        message_limiter: FixedWindowRateLimiter,
        checkpoint_store: CheckpointStore,
    ):
        self.agent_loop = agent_loop
        self.message_limiter = message_limiter
        self.checkpoint_store = checkpoint_store
        self.logger = structlog.get_logger().bind(component="agent_executor")

    async def submit(
        self,
        session: SessionState,
        message: str,
        sink: EventSink,
        images: list[ImagePart] | None = None,
    ) -> asyncio.Task | None:
        """
        Start a turn for a user message.

        Returns:
            The running turn task, or None when the input was rejected (an
            error event has been sent to ``sink``)
        """
        if not self.message_limiter.allow(session.rate_window):
            self.logger.warning("message_rate_limited", session_id=session.session_id)
            await emit(sink, events.error(RATE_LIMIT_MESSAGE))
            return None
        if not message.strip() and not images:
            await emit(sink, events.error(EMPTY_MESSAGE))
            return None
        return self._start(session, message, list(session.history), sink, images)

    async def continue_phase(self, session: SessionState, sink: EventSink) -> asyncio.Task | None:
        """Start a fresh phase seeded from the checkpoint."""
        if not self.message_limiter.allow(session.rate_window):
            self.logger.warning("message_rate_limited", session_id=session.session_id)
            await emit(sink, events.error(RATE_LIMIT_MESSAGE))
            return None
        record = await self.checkpoint_store.load()
        self.logger.info(
            "phase_continue",
            session_id=session.session_id,
            has_checkpoint=record is not None,
        )
        return self._start(session, build_continuation_prompt(record), [], sink, None)

    def cancel(self, session: SessionState) -> bool:
        cancelled = session.cancel()
        if cancelled:
            self.logger.info("turn_cancelled", session_id=session.session_id)
        return cancelled

    def reset(self, session: SessionState) -> None:
        session.reset()
        self.logger.info("session_reset", session_id=session.session_id)

    def _start(
        self,
        session: SessionState,
        message: str,
        history: list[ConversationTurn],
        sink: EventSink,
        images: list[ImagePart] | None,
    ) -> asyncio.Task:
        token = session.begin_turn()
        task = asyncio.create_task(self._run_turn(session, token, message, history, sink, images))
        session.task = task
        return task

    async def _run_turn(
        self,
        session: SessionState,
        token: CancellationToken,
        message: str,
        history: list[ConversationTurn],
        sink: EventSink,
        images: list[ImagePart] | None,
    ) -> None:
        self.logger.info(
            "turn_started",
            session_id=session.session_id,
            history_length=len(history),
            images=len(images or []),
        )
        try:
            updated = await self.agent_loop.run(message, history, sink, token, images)
            if token.cancelled:
                self.logger.info("turn_discarded", session_id=session.session_id)
                return
            session.history = updated
            self.logger.info(
                "turn_finished", session_id=session.session_id, history_length=len(updated)
            )
        except Exception as e:
            self.logger.error("turn_failed", session_id=session.session_id, error=str(e))
            if not token.cancelled:
                try:
                    await emit(sink, events.error(str(e) or "An unexpected error occurred"))
                except Exception as sink_error:
                    self.logger.error("turn_error_undeliverable", error=str(sink_error))
        finally:
            session.end_turn(token)
