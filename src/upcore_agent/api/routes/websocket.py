"""
Browser WebSocket endpoint.

Client frames (JSON):
    {"type": "message", "content": "...", "images": [{"data", "mediaType", "name"}]}
    {"type": "cancel"}
    {"type": "continue"}

Server frames are AgentEvent wire dicts.
"""

import json
import uuid

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from upcore_agent.api.auth import verify_token
from upcore_agent.application.executor import AgentExecutor
from upcore_agent.core.domain import events
from upcore_agent.core.domain.models import ImagePart
from upcore_agent.core.domain.session import SessionState
from upcore_agent.infrastructure.transports.websocket_fanout import WebSocketFanout

router = APIRouter()
logger = structlog.get_logger()

INVALID_FORMAT_MESSAGE = "Invalid message format"


def parse_images(raw: object) -> list[ImagePart] | None:
    """Images from a client frame; None when the list is malformed."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        return None
    images = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        data = item.get("data")
        media_type = item.get("mediaType") or item.get("media_type")
        if not isinstance(data, str) or not isinstance(media_type, str):
            return None
        name = item.get("name")
        images.append(ImagePart(data=data, media_type=media_type, name=name if isinstance(name, str) else None))
    return images


async def handle_client_frame(
    executor: AgentExecutor,
    session: SessionState,
    fanout: WebSocketFanout,
    raw: str,
) -> None:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        payload = None
    if not isinstance(payload, dict):
        await fanout.send(events.error(INVALID_FORMAT_MESSAGE))
        return

    kind = payload.get("type")
    if kind == "cancel":
        executor.cancel(session)
    elif kind == "continue":
        await executor.continue_phase(session, fanout.send)
    elif kind == "message":
        content = payload.get("content") or ""
        images = parse_images(payload.get("images"))
        if not isinstance(content, str) or images is None:
            await fanout.send(events.error(INVALID_FORMAT_MESSAGE))
            return
        await executor.submit(session, content, fanout.send, images or None)
    else:
        logger.debug("ws.unknown_frame", session_id=session.session_id, frame_type=kind)


@router.websocket("/ws")
async def agent_socket(websocket: WebSocket, token: str | None = Query(default=None)):
    runtime = websocket.app.state.runtime
    if verify_token(token, runtime.settings.agent_jwt_secret) is None:
        logger.warning("ws.unauthorized")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session_id = uuid.uuid4().hex
    session = runtime.sessions.open(session_id)
    fanout = WebSocketFanout(websocket, session_id)
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_client_frame(runtime.executor, session, fanout, raw)
    except WebSocketDisconnect as e:
        logger.info("ws.disconnected", session_id=session_id, code=e.code)
    finally:
        runtime.sessions.close(session_id)
