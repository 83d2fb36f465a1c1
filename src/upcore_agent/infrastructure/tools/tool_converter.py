"""
Tool catalog and output helpers shared by the registry and the file tools.

Converts tool definitions into the function-calling catalog the model
provider advertises, and bounds tool output before it is fed back.
"""

from typing import Any

from upcore_agent.core.interfaces.tools import ToolProtocol


def tools_to_openai_format(
    tools: dict[str, ToolProtocol],
) -> list[dict[str, Any]]:
    """
    Build the tool catalog sent with every model call.

    Each entry is ``{"type": "function", "function": {name, description,
    parameters}}`` with the tool's JSON schema as ``parameters``. Order
    follows the registry's insertion order.
    """
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema,
            },
        }
        for tool in tools.values()
    ]


def truncate_output(output: str, max_chars: int = 50000) -> str:
    """
    Truncate large tool output to prevent token overflow.

    Keeps the head of the output and appends a marker with the number of
    characters dropped.
    """
    if len(output) <= max_chars:
        return output
    dropped = len(output) - max_chars
    return output[:max_chars] + f"\n... (truncated {dropped} characters)"
