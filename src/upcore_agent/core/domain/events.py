"""
Domain Events for Agent Execution

Two families of events live here:

- ``StreamEvent``: low-level events produced by one streaming model call
  (block start, delta, block stop, message stop). They are consumed by the
  StreamDecoder and never leave the core.
- ``AgentEvent``: the transport-agnostic events the AgentLoop emits. Every
  transport (WebSocket, Telegram, terminal) renders these.

Exactly one terminal AgentEvent (complete, needs_continue or error) ends a
turn loop invocation, unless the caller cancelled it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from upcore_agent.core.domain.models import FinishReason, Usage


class StreamEventType(str, Enum):
    """Low-level model stream event types."""

    BLOCK_START = "block_start"
    DELTA = "delta"
    BLOCK_STOP = "block_stop"
    MESSAGE_STOP = "message_stop"


class BlockType(str, Enum):
    TEXT = "text"
    TOOL_USE = "tool_use"


@dataclass(frozen=True)
class StreamEvent:
    """
    One low-level event from a streaming model call.

    The fields used depend on ``type``:
    - block_start: index, block_type, and for tool_use blocks id + name
    - delta: index, and either text or partial_json
    - block_stop: index
    - message_stop: finish_reason, usage
    """

    type: StreamEventType
    index: int = 0
    block_type: BlockType | None = None
    id: str | None = None
    name: str | None = None
    text: str | None = None
    partial_json: str | None = None
    finish_reason: FinishReason | None = None
    usage: Usage | None = None

    @classmethod
    def block_start(
        cls,
        index: int,
        block_type: BlockType,
        id: str | None = None,
        name: str | None = None,
    ) -> "StreamEvent":
        return cls(StreamEventType.BLOCK_START, index=index, block_type=block_type, id=id, name=name)

    @classmethod
    def text_delta(cls, index: int, text: str) -> "StreamEvent":
        return cls(StreamEventType.DELTA, index=index, text=text)

    @classmethod
    def json_delta(cls, index: int, partial_json: str) -> "StreamEvent":
        return cls(StreamEventType.DELTA, index=index, partial_json=partial_json)

    @classmethod
    def block_stop(cls, index: int) -> "StreamEvent":
        return cls(StreamEventType.BLOCK_STOP, index=index)

    @classmethod
    def message_stop(cls, finish_reason: FinishReason, usage: Usage | None = None) -> "StreamEvent":
        return cls(
            StreamEventType.MESSAGE_STOP,
            finish_reason=finish_reason,
            usage=usage or Usage(),
        )


class AgentEventType(str, Enum):
    """Wire names of agent events."""

    TEXT_CHUNK = "text_chunk"
    TOOL_START = "tool_start"
    TOOL_DONE = "tool_done"
    HEARTBEAT = "heartbeat"
    NEEDS_CONTINUE = "needs_continue"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset(
    {AgentEventType.COMPLETE, AgentEventType.NEEDS_CONTINUE, AgentEventType.ERROR}
)


@dataclass(frozen=True)
class AgentEvent:
    """
    Event emitted by the AgentLoop.

    Attributes:
        type: Event type
        content: Text delta (text_chunk)
        tool: Tool name (tool_start, tool_done, heartbeat)
        result: Bounded result preview (tool_done)
        message: Error message (error)
        usage: Token usage (complete)
        elapsed: Seconds the current tool has been running (heartbeat)
        summary: Why the phase stopped and what comes next (needs_continue)
    """

    type: AgentEventType
    content: str | None = None
    tool: str | None = None
    result: str | None = None
    message: str | None = None
    usage: Usage | None = None
    elapsed: int | None = None
    summary: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with absent fields dropped."""
        data: dict[str, Any] = {"type": self.type.value}
        for key in ("content", "tool", "result", "message", "elapsed", "summary"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        return data


def text_chunk(content: str) -> AgentEvent:
    return AgentEvent(AgentEventType.TEXT_CHUNK, content=content)


def tool_start(tool: str) -> AgentEvent:
    return AgentEvent(AgentEventType.TOOL_START, tool=tool)


def tool_done(tool: str, result: str) -> AgentEvent:
    return AgentEvent(AgentEventType.TOOL_DONE, tool=tool, result=result)


def heartbeat(tool: str, elapsed: int) -> AgentEvent:
    return AgentEvent(AgentEventType.HEARTBEAT, tool=tool, elapsed=elapsed)


def needs_continue(summary: str) -> AgentEvent:
    return AgentEvent(AgentEventType.NEEDS_CONTINUE, summary=summary)


def complete(usage: Usage) -> AgentEvent:
    return AgentEvent(AgentEventType.COMPLETE, usage=usage)


def error(message: str) -> AgentEvent:
    return AgentEvent(AgentEventType.ERROR, message=message)
