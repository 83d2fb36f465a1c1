"""
WebSocket fanout.

Events go out one JSON object per frame with no coalescing. A socket that
closed (or fails to send) drops events silently; the agent loop never sees a
transport error.
"""

import structlog
from fastapi import WebSocket
from starlette.websockets import WebSocketState

from upcore_agent.core.domain.events import AgentEvent

logger = structlog.get_logger()


class WebSocketFanout:
    """Sends AgentEvents to one WebSocket connection."""

    def __init__(self, websocket: WebSocket, session_id: str = ""):
        self.websocket = websocket
        self.session_id = session_id
        self.logger = logger.bind(component="websocket_fanout", session_id=session_id)

    @property
    def connected(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, event: AgentEvent) -> None:
        if not self.connected:
            self.logger.debug("ws.event_dropped", event_type=event.type.value)
            return
        try:
            await self.websocket.send_json(event.to_wire())
        except Exception as e:
            self.logger.warning("ws.send_failed", event_type=event.type.value, error=str(e))

    __call__ = send
