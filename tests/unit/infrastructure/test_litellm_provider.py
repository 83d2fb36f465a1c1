"""Unit tests for the LiteLLM provider's message and chunk translation."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from upcore_agent.core.domain.events import BlockType, StreamEventType
from upcore_agent.core.domain.models import (
    ConversationTurn,
    FinishReason,
    ImagePart,
    TextPart,
    ToolResult,
    ToolUsePart,
    TurnRole,
    Usage,
)
from upcore_agent.core.domain.stream_decoder import StreamDecoder
from upcore_agent.infrastructure.llm.litellm_provider import (
    ChunkTranslator,
    LiteLLMProvider,
    history_to_messages,
    map_finish_reason,
)


def chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def tool_call(index, id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments)
    )


async def aiter_chunks(chunks):
    for c in chunks:
        yield c


class TestFinishReason:
    def test_mapping(self):
        assert map_finish_reason("stop") == FinishReason.END_TURN
        assert map_finish_reason("tool_calls") == FinishReason.TOOL_USE
        assert map_finish_reason("length") == FinishReason.OTHER
        assert map_finish_reason(None) == FinishReason.OTHER


class TestHistoryToMessages:
    def test_full_round(self):
        history = [
            ConversationTurn.user("Read the API"),
            ConversationTurn(
                role=TurnRole.AGENT,
                parts=(
                    TextPart("Reading."),
                    ToolUsePart(id="call_1", name="get_context", input={"name": "API_REFERENCE"}),
                ),
            ),
            ConversationTurn.tool_results(
                [ToolResult(invocation_id="call_1", tool="get_context", text="GET /users")]
            ),
        ]

        messages = history_to_messages("sys", history)

        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[1] == {"role": "user", "content": "Read the API"}
        assert messages[2]["role"] == "assistant"
        assert messages[2]["content"] == "Reading."
        call = messages[2]["tool_calls"][0]
        assert call["id"] == "call_1"
        assert json.loads(call["function"]["arguments"]) == {"name": "API_REFERENCE"}
        assert messages[3] == {"role": "tool", "tool_call_id": "call_1", "content": "GET /users"}

    def test_tool_only_agent_turn_has_null_content(self):
        turn = ConversationTurn(role=TurnRole.AGENT, parts=(ToolUsePart(id="c", name="x"),))

        assert history_to_messages("", [turn])[0]["content"] is None

    def test_images_become_data_urls(self):
        turn = ConversationTurn.user(
            "What is this?", [ImagePart(data="QUJD", media_type="image/png")]
        )

        content = history_to_messages("", [turn])[0]["content"]

        assert content[0] == {
            "type": "image_url",
            "image_url": {"url": "data:image/png;base64,QUJD"},
        }
        assert content[1] == {"type": "text", "text": "What is this?"}


class TestChunkTranslator:
    def test_text_and_tool_calls_become_blocks(self):
        translator = ChunkTranslator()
        chunks = [
            chunk(content="Let me "),
            chunk(content="check."),
            chunk(tool_calls=[tool_call(0, id="call_a", name="read_file", arguments='{"pa')]),
            chunk(tool_calls=[tool_call(0, arguments='th": "x.md"}')]),
            chunk(tool_calls=[tool_call(1, id="call_b", name="list_files", arguments="{}")]),
            chunk(finish_reason="tool_calls"),
            SimpleNamespace(choices=[], usage={"prompt_tokens": 120, "completion_tokens": 30}),
        ]

        events = [e for c in chunks for e in translator.feed(c)] + translator.close()

        starts = [e for e in events if e.type == StreamEventType.BLOCK_START]
        assert [(e.index, e.block_type) for e in starts] == [
            (0, BlockType.TEXT),
            (1, BlockType.TOOL_USE),
            (2, BlockType.TOOL_USE),
        ]
        assert starts[1].id == "call_a" and starts[1].name == "read_file"
        stop = events[-1]
        assert stop.type == StreamEventType.MESSAGE_STOP
        assert stop.finish_reason == FinishReason.TOOL_USE
        assert stop.usage == Usage(120, 30)

        decoder = StreamDecoder()
        for e in events:
            decoder.feed(e)
        assert decoder.text == "Let me check."
        assert [(i.id, i.input) for i in decoder.invocations] == [
            ("call_a", {"path": "x.md"}),
            ("call_b", {}),
        ]


class TestLiteLLMProvider:
    @pytest.mark.asyncio
    async def test_stream_calls_litellm_and_yields_events(self):
        chunks = [
            chunk(content="Hi"),
            chunk(finish_reason="stop", usage=SimpleNamespace(prompt_tokens=5, completion_tokens=1)),
        ]
        provider = LiteLLMProvider(model="anthropic/claude-sonnet-4-5", max_tokens=8192)
        tools = [{"type": "function", "function": {"name": "x", "parameters": {}}}]

        with patch(
            "upcore_agent.infrastructure.llm.litellm_provider.litellm.acompletion",
            new=AsyncMock(return_value=aiter_chunks(chunks)),
        ) as acompletion:
            events = [e async for e in provider.stream("sys", [ConversationTurn.user("hey")], tools)]

        params = acompletion.call_args.kwargs
        assert params["model"] == "anthropic/claude-sonnet-4-5"
        assert params["stream"] is True
        assert params["max_tokens"] == 8192
        assert params["tools"] == tools
        assert "temperature" not in params
        assert [e.type for e in events] == [
            StreamEventType.BLOCK_START,
            StreamEventType.DELTA,
            StreamEventType.BLOCK_STOP,
            StreamEventType.MESSAGE_STOP,
        ]
        assert events[-1].finish_reason == FinishReason.END_TURN
        assert events[-1].usage == Usage(5, 1)

    @pytest.mark.asyncio
    async def test_failure_propagates(self):
        provider = LiteLLMProvider(model="m")

        with patch(
            "upcore_agent.infrastructure.llm.litellm_provider.litellm.acompletion",
            new=AsyncMock(side_effect=RuntimeError("rate limited")),
        ):
            with pytest.raises(RuntimeError, match="rate limited"):
                async for _ in provider.stream("", [], []):
                    pass
