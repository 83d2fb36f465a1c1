import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Liveness probe with process uptime in whole seconds."""
    started = getattr(request.app.state, "started_at", time.monotonic())
    return {"status": "ok", "uptime": round(time.monotonic() - started)}
