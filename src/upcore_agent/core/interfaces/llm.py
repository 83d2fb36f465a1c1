"""
LLM Provider Protocol

The model call is an opaque streaming RPC: given the system text, the ordered
history and the tool catalog, it yields low-level StreamEvents and ends with
exactly one message_stop carrying the finish reason and token usage.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from upcore_agent.core.domain.events import StreamEvent
from upcore_agent.core.domain.models import ConversationTurn


class LLMProviderProtocol(Protocol):
    """Streaming model provider."""

    def stream(
        self,
        system: str,
        history: list[ConversationTurn],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StreamEvent]:
        """
        Issue one streaming model call.

        Raises:
            Exception: Transport failures propagate; the caller does not retry.
        """
        ...
