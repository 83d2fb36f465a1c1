"""
Core Domain Models

This module defines the data models that flow through the agent loop:
conversation turns and their content parts, tool invocations decoded from the
model stream, tool results, and token usage.

Turns are immutable once appended to a history. A history is a plain
``list[ConversationTurn]`` owned by exactly one session.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class TurnRole(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    AGENT = "agent"
    TOOL_RESULT = "tool-result"


class FinishReason(str, Enum):
    """Why the model stopped producing output for one call."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    OTHER = "other"


@dataclass(frozen=True)
class TextPart:
    """Plain text segment."""

    text: str


@dataclass(frozen=True)
class ImagePart:
    """
    Binary media attached to a user turn.

    Attributes:
        data: Base64 encoded payload (no data-URL prefix)
        media_type: MIME type, e.g. "image/png"
        name: Optional original file name
    """

    data: str
    media_type: str
    name: str | None = None


@dataclass(frozen=True)
class ToolUsePart:
    """Tool invocation requested by the model, as stored in history."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    """Full tool output fed back to the model on the next call."""

    tool_use_id: str
    content: str
    is_error: bool = False


ContentPart = Union[TextPart, ImagePart, ToolUsePart, ToolResultPart]


@dataclass(frozen=True)
class ConversationTurn:
    """
    One entry in a conversation history.

    Attributes:
        role: Who produced the turn (user, agent, tool-result)
        parts: Ordered content parts
    """

    role: TurnRole
    parts: tuple[ContentPart, ...]

    @classmethod
    def user(cls, text: str, images: list[ImagePart] | None = None) -> "ConversationTurn":
        parts: list[ContentPart] = list(images or [])
        if text:
            parts.append(TextPart(text))
        return cls(role=TurnRole.USER, parts=tuple(parts))

    @classmethod
    def tool_results(cls, results: list["ToolResult"]) -> "ConversationTurn":
        return cls(
            role=TurnRole.TOOL_RESULT,
            parts=tuple(
                ToolResultPart(
                    tool_use_id=r.invocation_id,
                    content=r.text,
                    is_error=r.is_error,
                )
                for r in results
            ),
        )

    @property
    def text(self) -> str:
        """Concatenated text parts (empty for tool-only turns)."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_uses(self) -> list[ToolUsePart]:
        return [p for p in self.parts if isinstance(p, ToolUsePart)]


@dataclass
class ToolInvocation:
    """
    Tool call reconstructed from the model stream.

    ``raw_input`` keeps the concatenated JSON fragments exactly as they arrived;
    ``input`` is the parsed object, or ``{}`` when the fragments did not form a
    valid JSON object.
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    raw_input: str = ""

    def to_part(self) -> ToolUsePart:
        return ToolUsePart(id=self.id, name=self.name, input=dict(self.input))


@dataclass(frozen=True)
class ToolResult:
    """Outcome of executing one ToolInvocation."""

    invocation_id: str
    tool: str
    text: str
    is_error: bool = False

    def preview(self, max_length: int = 500) -> str:
        """Bounded slice of the result text for event emission."""
        return self.text[:max_length]


@dataclass(frozen=True)
class Usage:
    """Token counters reported by the model provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {"input": self.input_tokens, "output": self.output_tokens}
