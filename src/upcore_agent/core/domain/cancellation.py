"""Cooperative cancellation for agent turns."""

import asyncio


class CancellationToken:
    """
    Flag checked by the AgentLoop at its suspension points. A tool wait also
    wakes on it.

    Setting the flag never interrupts a running tool handler; the loop notices
    it at the next check and stops emitting events.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
