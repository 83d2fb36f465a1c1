import asyncio
import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from upcore_agent.api.auth import passwords_match, sign_token

router = APIRouter()
logger = structlog.get_logger()

LOGIN_PATH = "/api/auth/login"
PASSWORD_REQUIRED = "Password is required"

# Every login answer takes at least this long, whatever the outcome.
LOGIN_DELAY_FLOOR = 0.2


class LoginRequest(BaseModel):
    """Request body for the password login."""

    password: str = Field(..., min_length=1, description="Shared agent password")


class LoginResponse(BaseModel):
    token: str


def enforce_login_rate_limit(request: Request) -> str:
    """Count the attempt against the caller's host; 429 past the limit."""
    client_host = request.client.host if request.client else "unknown"
    if not request.app.state.runtime.login_limiter.hit(client_host):
        logger.warning("auth.login_rate_limited", client=client_host)
        raise HTTPException(
            status_code=429,
            detail="Too many login attempts, please try again in 15 minutes",
        )
    return client_host


@router.post(LOGIN_PATH, response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    client_host: str = Depends(enforce_login_rate_limit),
):
    """Exchange the shared password for a 24h bearer token."""
    settings = request.app.state.runtime.settings

    started = time.monotonic()
    valid = bool(settings.agent_password) and passwords_match(body.password, settings.agent_password)
    await asyncio.sleep(max(0.0, LOGIN_DELAY_FLOOR - (time.monotonic() - started)))

    if not valid:
        logger.warning("auth.login_failed", client=client_host)
        raise HTTPException(status_code=401, detail="Invalid password")

    logger.info("auth.login_succeeded", client=client_host)
    return LoginResponse(
        token=sign_token(settings.agent_jwt_secret, settings.jwt_expiry_hours)
    )
