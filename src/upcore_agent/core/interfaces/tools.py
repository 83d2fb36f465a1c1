"""
Tool Protocol

Every tool handler has the same contract: structured input in, text out.
Handlers convert their own failures into result text; the ToolRegistry adds a
second safety net for anything that still escapes.
"""

from typing import Any, Protocol


class ToolProtocol(Protocol):
    """Async tool handler advertised to the model."""

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema of the input object (advertised, not enforced)."""
        ...

    async def execute(self, **kwargs: Any) -> str: ...
