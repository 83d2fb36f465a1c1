"""Unit tests for AgentEvent wire serialization."""

from upcore_agent.core.domain import events
from upcore_agent.core.domain.models import ToolResult, Usage


class TestAgentEventWire:
    def test_text_chunk(self):
        assert events.text_chunk("Hi").to_wire() == {"type": "text_chunk", "content": "Hi"}

    def test_tool_done_carries_preview(self):
        assert events.tool_done("read_file", "abc").to_wire() == {
            "type": "tool_done",
            "tool": "read_file",
            "result": "abc",
        }

    def test_heartbeat(self):
        assert events.heartbeat("run_command", 10).to_wire() == {
            "type": "heartbeat",
            "tool": "run_command",
            "elapsed": 10,
        }

    def test_complete_usage_keys(self):
        assert events.complete(Usage(1200, 300)).to_wire() == {
            "type": "complete",
            "usage": {"input": 1200, "output": 300},
        }

    def test_terminal_flags(self):
        assert events.complete(Usage()).is_terminal
        assert events.needs_continue("later").is_terminal
        assert events.error("boom").is_terminal
        assert not events.text_chunk("x").is_terminal
        assert not events.heartbeat("t", 5).is_terminal


class TestModels:
    def test_usage_addition(self):
        assert Usage(1, 2) + Usage(10, 20) == Usage(11, 22)

    def test_result_preview(self):
        result = ToolResult(invocation_id="t1", tool="x", text="a" * 600)
        assert len(result.preview()) == 500
        assert result.preview(3) == "aaa"
