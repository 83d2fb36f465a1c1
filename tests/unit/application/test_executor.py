"""
Unit tests for AgentExecutor.

Uses a real AgentLoop over a scripted provider so turn lifecycle, history
commits and supersession are exercised end to end.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import EchoTool, ScriptedProvider, text_reply, tool_reply
from upcore_agent.application.executor import EMPTY_MESSAGE, RATE_LIMIT_MESSAGE, AgentExecutor
from upcore_agent.core.domain.agent_loop import AgentLoop
from upcore_agent.core.domain.checkpoint import CheckpointRecord
from upcore_agent.core.domain.events import AgentEventType
from upcore_agent.core.domain.rate_limiter import FixedWindowRateLimiter
from upcore_agent.core.domain.session import SessionState
from upcore_agent.core.prompts.system_prompt import CONTINUATION_PROMPT
from upcore_agent.infrastructure.persistence.checkpoint_store import (
    CheckpointStore,
    InMemoryCheckpointBackend,
)
from upcore_agent.infrastructure.tools.registry import ToolRegistry


def build(scripts, tools=None, limit=10):
    provider = ScriptedProvider(scripts)
    store = CheckpointStore(InMemoryCheckpointBackend())
    loop = AgentLoop(
        llm_provider=provider,
        tool_registry=ToolRegistry(tools or [EchoTool()]),
        heartbeat_interval=0.01,
        checkpoint_store=store,
    )
    executor = AgentExecutor(loop, FixedWindowRateLimiter(limit, 60), store)
    return executor, provider, store


class TestSubmit:
    @pytest.mark.asyncio
    async def test_turn_commits_history(self):
        executor, _, _ = build([text_reply("Hi!")])
        session = SessionState("s1")
        received = []

        task = await executor.submit(session, "hello", received.append)
        await task

        assert [e.type for e in received] == [AgentEventType.TEXT_CHUNK, AgentEventType.COMPLETE]
        assert [t.text for t in session.history] == ["hello", "Hi!"]
        assert not session.busy

    @pytest.mark.asyncio
    async def test_history_carries_across_turns(self):
        executor, provider, _ = build([text_reply("one"), text_reply("two")])
        session = SessionState("s1")

        await (await executor.submit(session, "first", lambda e: None))
        await (await executor.submit(session, "second", lambda e: None))

        assert len(provider.calls[1]["history"]) == 3
        assert [t.text for t in session.history] == ["first", "one", "second", "two"]

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self):
        executor, provider, _ = build([])
        received = []

        task = await executor.submit(SessionState("s1"), "   ", received.append)

        assert task is None
        assert [e.message for e in received] == [EMPTY_MESSAGE]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        executor, _, _ = build([text_reply("a")], limit=1)
        session = SessionState("s1")
        received = []

        first = await executor.submit(session, "one", received.append)
        await first
        second = await executor.submit(session, "two", received.append)

        assert second is None
        assert received[-1].type == AgentEventType.ERROR
        assert received[-1].message == RATE_LIMIT_MESSAGE

    @pytest.mark.asyncio
    async def test_new_message_supersedes_running_turn(self):
        slow = EchoTool("slow", delay=0.3)
        executor, _, _ = build(
            [tool_reply([("t1", "slow", "{}")]), text_reply("fresh answer")], tools=[slow]
        )
        session = SessionState("s1")
        received = []

        first = await executor.submit(session, "long task", received.append)
        await asyncio.sleep(0.05)
        second = await executor.submit(session, "never mind", received.append)
        await asyncio.gather(first, second)

        terminals = [e for e in received if e.is_terminal]
        assert [e.type for e in terminals] == [AgentEventType.COMPLETE]
        assert [t.text for t in session.history] == ["never mind", "fresh answer"]
        await asyncio.gather(*list(executor.agent_loop._detached))


class TestCancelAndReset:
    @pytest.mark.asyncio
    async def test_cancel_running_turn_discards_history(self):
        executor, _, _ = build([tool_reply([("t1", "slow", "{}")])], tools=[EchoTool("slow", 0.2)])
        session = SessionState("s1")
        received = []

        task = await executor.submit(session, "go", received.append)
        await asyncio.sleep(0.05)

        assert executor.cancel(session) is True
        await task

        assert session.history == []
        assert [e for e in received if e.is_terminal] == []
        assert executor.cancel(session) is False
        await asyncio.gather(*list(executor.agent_loop._detached))

    @pytest.mark.asyncio
    async def test_reset_clears_history(self):
        executor, _, _ = build([text_reply("a")])
        session = SessionState("s1")
        await (await executor.submit(session, "hello", lambda e: None))

        executor.reset(session)

        assert session.history == []


class TestContinuePhase:
    @pytest.mark.asyncio
    async def test_continue_starts_fresh_history_from_checkpoint(self):
        executor, provider, store = build([text_reply("resuming")])
        await store.save(CheckpointRecord(goal="Audit log", next_step="Write controller"))
        session = SessionState("s1")
        session.history = [MagicMock()] * 4

        await (await executor.continue_phase(session, lambda e: None))

        sent = provider.calls[0]["history"]
        assert len(sent) == 1
        assert sent[0].text.startswith(CONTINUATION_PROMPT)
        assert "Write controller" in sent[0].text
        assert [t.text for t in session.history][-1] == "resuming"

    @pytest.mark.asyncio
    async def test_continue_counts_against_rate_limit(self):
        executor, _, _ = build([], limit=1)
        session = SessionState("s1")
        received = []
        session.rate_window.count = 1
        session.rate_window.window_start = executor.message_limiter.clock()

        task = await executor.continue_phase(session, received.append)

        assert task is None
        assert received[0].message == RATE_LIMIT_MESSAGE


class TestFailures:
    @pytest.mark.asyncio
    async def test_loop_exception_reported_to_sink(self):
        agent_loop = MagicMock()
        agent_loop.run = AsyncMock(side_effect=RuntimeError("boom"))
        store = CheckpointStore(InMemoryCheckpointBackend())
        executor = AgentExecutor(agent_loop, FixedWindowRateLimiter(10, 60), store)
        session = SessionState("s1")
        received = []

        await (await executor.submit(session, "go", received.append))

        assert [e.message for e in received] == ["boom"]
        assert not session.busy

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self):
        executor, _, _ = build([text_reply("Hi")])
        sink = AsyncMock()

        await (await executor.submit(SessionState("s1"), "hello", sink))

        assert sink.await_count == 2
