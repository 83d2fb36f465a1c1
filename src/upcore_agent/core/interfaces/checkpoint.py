"""Storage backend protocol for the single-slot checkpoint."""

from typing import Protocol


class CheckpointBackendProtocol(Protocol):
    """Raw storage for one serialized checkpoint record."""

    async def read(self) -> str | None:
        """Return the stored text, or None if nothing is stored."""
        ...

    async def write(self, text: str) -> None:
        """Replace the stored text."""
        ...

    async def delete(self) -> bool:
        """Remove the stored text. Returns True if something was removed."""
        ...

    def describe(self) -> str:
        """Human readable location, used in tool output."""
        ...
