"""
LiteLLM streaming provider.

Issues one ``litellm.acompletion(stream=True)`` call per model turn and
translates the OpenAI-style chunks into the block-structured StreamEvents the
StreamDecoder consumes:

- text deltas live in block 0
- tool call ``i`` lives in block ``i + 1``; its first chunk opens the block
  (id + name), argument fragments follow as JSON deltas
- the stream closes every open block, then emits one message_stop with the
  finish reason and the usage reported by the final ``include_usage`` chunk

No retry here: a failed call surfaces to the AgentLoop as an exception.
"""

import json
import time
from collections.abc import AsyncIterator
from typing import Any

import litellm
import structlog

from upcore_agent.core.domain.events import BlockType, StreamEvent
from upcore_agent.core.domain.models import (
    ConversationTurn,
    FinishReason,
    ImagePart,
    TextPart,
    ToolResultPart,
    TurnRole,
    Usage,
)

TEXT_BLOCK = 0

_FINISH_REASONS = {
    "stop": FinishReason.END_TURN,
    "end_turn": FinishReason.END_TURN,
    "tool_calls": FinishReason.TOOL_USE,
    "function_call": FinishReason.TOOL_USE,
    "tool_use": FinishReason.TOOL_USE,
}


def map_finish_reason(reason: str | None) -> FinishReason:
    return _FINISH_REASONS.get(reason or "", FinishReason.OTHER)


def history_to_messages(system: str, history: list[ConversationTurn]) -> list[dict[str, Any]]:
    """Convert a conversation history into OpenAI chat messages."""
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})

    for turn in history:
        if turn.role == TurnRole.USER:
            images = [p for p in turn.parts if isinstance(p, ImagePart)]
            if not images:
                messages.append({"role": "user", "content": turn.text})
                continue
            content: list[dict[str, Any]] = [
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{img.media_type};base64,{img.data}"},
                }
                for img in images
            ]
            if turn.text:
                content.append({"type": "text", "text": turn.text})
            messages.append({"role": "user", "content": content})

        elif turn.role == TurnRole.AGENT:
            message: dict[str, Any] = {"role": "assistant", "content": turn.text or None}
            tool_uses = turn.tool_uses
            if tool_uses:
                message["tool_calls"] = [
                    {
                        "id": use.id,
                        "type": "function",
                        "function": {"name": use.name, "arguments": json.dumps(use.input)},
                    }
                    for use in tool_uses
                ]
            messages.append(message)

        else:
            for part in turn.parts:
                if isinstance(part, ToolResultPart):
                    messages.append(
                        {"role": "tool", "tool_call_id": part.tool_use_id, "content": part.content}
                    )
                elif isinstance(part, TextPart):
                    messages.append({"role": "user", "content": part.text})

    return messages


def _usage_from(raw: Any) -> Usage | None:
    if raw is None:
        return None
    if isinstance(raw, dict):
        return Usage(
            input_tokens=raw.get("prompt_tokens") or 0,
            output_tokens=raw.get("completion_tokens") or 0,
        )
    return Usage(
        input_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        output_tokens=getattr(raw, "completion_tokens", 0) or 0,
    )


class ChunkTranslator:
    """Stateful translation of one call's chunks into StreamEvents."""

    def __init__(self) -> None:
        self.open_blocks: list[int] = []
        self.finish_reason: str | None = None
        self.usage = Usage()

    def feed(self, chunk: Any) -> list[StreamEvent]:
        out: list[StreamEvent] = []
        usage = _usage_from(getattr(chunk, "usage", None))
        if usage is not None:
            self.usage = usage

        for choice in getattr(chunk, "choices", None) or []:
            delta = getattr(choice, "delta", None)
            if delta is not None:
                text = getattr(delta, "content", None)
                if text:
                    self._open(out, TEXT_BLOCK, BlockType.TEXT)
                    out.append(StreamEvent.text_delta(TEXT_BLOCK, text))

                for call in getattr(delta, "tool_calls", None) or []:
                    index = (getattr(call, "index", None) or 0) + 1
                    function = getattr(call, "function", None)
                    if index not in self.open_blocks:
                        self._open(
                            out,
                            index,
                            BlockType.TOOL_USE,
                            id=getattr(call, "id", None),
                            name=getattr(function, "name", None),
                        )
                    arguments = getattr(function, "arguments", None)
                    if arguments:
                        out.append(StreamEvent.json_delta(index, arguments))

            reason = getattr(choice, "finish_reason", None)
            if reason:
                self.finish_reason = reason
        return out

    def close(self) -> list[StreamEvent]:
        out = [StreamEvent.block_stop(index) for index in self.open_blocks]
        self.open_blocks = []
        out.append(StreamEvent.message_stop(map_finish_reason(self.finish_reason), self.usage))
        return out

    def _open(self, out: list[StreamEvent], index: int, block_type: BlockType, **kwargs: Any) -> None:
        if index in self.open_blocks:
            return
        self.open_blocks.append(index)
        out.append(StreamEvent.block_start(index, block_type, **kwargs))


class LiteLLMProvider:
    """
    Streaming model provider backed by LiteLLM.

    Args:
        model: LiteLLM model string (e.g. "anthropic/claude-sonnet-4-5")
        max_tokens: Output token cap per call
        temperature: Optional sampling temperature
        timeout: Request timeout in seconds
        extra_params: Passed through to ``litellm.acompletion`` (api_base, api_key, ...)
    """

    def __init__(
        self,
        model: str,
        max_tokens: int = 8192,
        temperature: float | None = None,
        timeout: float = 600.0,
        extra_params: dict[str, Any] | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.extra_params = extra_params or {}
        self.logger = structlog.get_logger().bind(component="litellm_provider")

    async def stream(
        self,
        system: str,
        history: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StreamEvent]:
        messages = history_to_messages(system, history)
        params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
            "timeout": self.timeout,
            **self.extra_params,
        }
        if tools:
            params["tools"] = tools
        if self.temperature is not None:
            params["temperature"] = self.temperature

        start_time = time.time()
        self.logger.info(
            "llm_stream_started",
            model=self.model,
            message_count=len(messages),
            tool_count=len(tools),
        )

        response = await litellm.acompletion(**params)
        translator = ChunkTranslator()
        async for chunk in response:
            for event in translator.feed(chunk):
                yield event

        for event in translator.close():
            yield event

        self.logger.info(
            "llm_stream_finished",
            model=self.model,
            finish_reason=translator.finish_reason,
            input_tokens=translator.usage.input_tokens,
            output_tokens=translator.usage.output_tokens,
            latency_ms=int((time.time() - start_time) * 1000),
        )
