"""
Stream Decoder - reassembles one streaming model call.

Consumes the low-level StreamEvents of a single model call and produces, in
arrival order, the user-visible AgentEvents (text chunks, tool starts). Tool
input arrives as raw JSON fragments that are only parsed once the block ends.

Fragments are routed by block index, never by tool name: one message may open
several invocations of the same tool.
"""

import json
from typing import Any

import structlog

from upcore_agent.core.domain import events
from upcore_agent.core.domain.events import (
    AgentEvent,
    BlockType,
    StreamEvent,
    StreamEventType,
)
from upcore_agent.core.domain.models import (
    ConversationTurn,
    FinishReason,
    TextPart,
    ToolInvocation,
    TurnRole,
    Usage,
)

logger = structlog.get_logger()


def parse_tool_input(raw: str) -> dict[str, Any] | None:
    """
    Parse concatenated tool input fragments.

    Returns:
        The parsed object, ``{}`` for an empty fragment stream, or None when
        the fragments are not a JSON object.
    """
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class StreamDecoder:
    """
    Incremental decoder for one model call.

    Usage:
        decoder = StreamDecoder()
        async for stream_event in provider.stream(...):
            for agent_event in decoder.feed(stream_event):
                yield agent_event
        decoder.invocations  # completed tool calls, in block order
    """

    def __init__(self) -> None:
        self._text: list[str] = []
        self._open: dict[int, ToolInvocation] = {}
        self._fragments: dict[int, list[str]] = {}
        self._completed: dict[int, ToolInvocation] = {}
        self.finish_reason: FinishReason | None = None
        self.usage = Usage()
        self.logger = logger.bind(component="stream_decoder")

    @property
    def finished(self) -> bool:
        return self.finish_reason is not None

    @property
    def text(self) -> str:
        return "".join(self._text)

    @property
    def invocations(self) -> list[ToolInvocation]:
        return [self._completed[i] for i in sorted(self._completed)]

    def feed(self, event: StreamEvent) -> list[AgentEvent]:
        """Consume one stream event and return the agent events it produces."""
        if event.type == StreamEventType.BLOCK_START:
            return self._on_block_start(event)
        if event.type == StreamEventType.DELTA:
            return self._on_delta(event)
        if event.type == StreamEventType.BLOCK_STOP:
            self._close_block(event.index)
            return []
        if event.type == StreamEventType.MESSAGE_STOP:
            for index in sorted(self._open):
                self._close_block(index)
            self.finish_reason = event.finish_reason or FinishReason.OTHER
            self.usage = event.usage or Usage()
            return []
        return []

    def _on_block_start(self, event: StreamEvent) -> list[AgentEvent]:
        if event.block_type != BlockType.TOOL_USE:
            return []
        name = event.name or ""
        self._open[event.index] = ToolInvocation(
            id=event.id or f"toolu_{event.index}",
            name=name,
        )
        self._fragments[event.index] = []
        return [events.tool_start(name)]

    def _on_delta(self, event: StreamEvent) -> list[AgentEvent]:
        if event.text:
            self._text.append(event.text)
            return [events.text_chunk(event.text)]
        if event.partial_json is not None:
            fragments = self._fragments.get(event.index)
            if fragments is None:
                self.logger.warning("json_delta_without_block", index=event.index)
                return []
            fragments.append(event.partial_json)
        return []

    def _close_block(self, index: int) -> None:
        invocation = self._open.pop(index, None)
        if invocation is None:
            return
        raw = "".join(self._fragments.pop(index, []))
        parsed = parse_tool_input(raw)
        if parsed is None:
            self.logger.warning(
                "stream_tool_args_parse_failed",
                tool=invocation.name,
                raw_args=raw[:200],
            )
            parsed = {}
        invocation.raw_input = raw
        invocation.input = parsed
        self._completed[index] = invocation

    def to_turn(self) -> ConversationTurn:
        """Agent turn for history: text first, then tool uses in block order."""
        parts: list = []
        if self._text:
            parts.append(TextPart(self.text))
        parts.extend(inv.to_part() for inv in self.invocations)
        return ConversationTurn(role=TurnRole.AGENT, parts=tuple(parts))
