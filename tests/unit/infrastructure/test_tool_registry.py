"""Unit tests for ToolRegistry."""

import pytest

from fakes import EchoTool, FailingTool
from upcore_agent.core.domain.models import ToolInvocation
from upcore_agent.infrastructure.tools.registry import ToolRegistry
from upcore_agent.infrastructure.tools.tool_converter import truncate_output


class TestToolRegistry:
    def test_catalog_in_openai_format(self, echo_tool):
        registry = ToolRegistry([echo_tool])

        assert registry.catalog() == [
            {
                "type": "function",
                "function": {
                    "name": "echo",
                    "description": "Echo tool echo",
                    "parameters": {"type": "object", "properties": {"value": {"type": "string"}}},
                },
            }
        ]
        assert "echo" in registry
        assert registry.names() == ["echo"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            ToolRegistry([EchoTool(), EchoTool()])

    @pytest.mark.asyncio
    async def test_execute_success(self, echo_tool):
        result = await ToolRegistry([echo_tool]).execute(
            ToolInvocation(id="t1", name="echo", input={"value": "v"})
        )

        assert result.invocation_id == "t1"
        assert result.text == "echo:v"
        assert result.is_error is False

    @pytest.mark.asyncio
    async def test_handler_exception_contained(self):
        result = await ToolRegistry([FailingTool("boom")]).execute(
            ToolInvocation(id="t1", name="boom")
        )

        assert result.is_error is True
        assert result.text == "Error executing tool: disk on fire"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, echo_tool):
        result = await ToolRegistry([echo_tool]).execute(ToolInvocation(id="t1", name="ghost"))

        assert result.is_error is True
        assert result.text == "Unknown tool: ghost"


class TestTruncateOutput:
    def test_short_output_untouched(self):
        assert truncate_output("abc", 10) == "abc"

    def test_long_output_marked(self):
        assert truncate_output("abcdef", 2) == "ab\n... (truncated 4 characters)"
