"""
Tool Registry

Fixed mapping from tool name to handler. ``execute`` never raises: unknown
tools and handler exceptions become ToolResult text the model can react to.
"""

from typing import Any

import structlog

from upcore_agent.core.domain.models import ToolInvocation, ToolResult
from upcore_agent.core.interfaces.tools import ToolProtocol
from upcore_agent.infrastructure.tools.tool_converter import tools_to_openai_format

logger = structlog.get_logger()


class ToolRegistry:
    """Name → tool lookup plus the catalog advertised to the model."""

    def __init__(self, tools: list[ToolProtocol]):
        self.tools: dict[str, ToolProtocol] = {}
        for tool in tools:
            if tool.name in self.tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self.tools[tool.name] = tool
        self._catalog = tools_to_openai_format(self.tools)
        self.logger = logger.bind(component="tool_registry")

    def __contains__(self, name: object) -> bool:
        return name in self.tools

    def names(self) -> list[str]:
        return list(self.tools)

    def get(self, name: str) -> ToolProtocol | None:
        return self.tools.get(name)

    def catalog(self) -> list[dict[str, Any]]:
        return self._catalog

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        """Run one invocation and wrap its outcome."""
        tool = self.tools.get(invocation.name)
        if tool is None:
            self.logger.warning("tool_not_found", tool=invocation.name)
            return ToolResult(
                invocation_id=invocation.id,
                tool=invocation.name,
                text=f"Unknown tool: {invocation.name}",
                is_error=True,
            )

        try:
            self.logger.info(
                "tool_execute",
                tool=invocation.name,
                args_keys=list(invocation.input.keys()),
            )
            text = await tool.execute(**invocation.input)
            self.logger.info("tool_complete", tool=invocation.name, chars=len(text))
            return ToolResult(invocation_id=invocation.id, tool=invocation.name, text=text)
        except Exception as e:
            self.logger.error("tool_exception", tool=invocation.name, error=str(e))
            return ToolResult(
                invocation_id=invocation.id,
                tool=invocation.name,
                text=f"Error executing tool: {e}",
                is_error=True,
            )
