import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from telegram.error import TelegramError

from upcore_agent import __version__
from upcore_agent.api.routes import auth, health, websocket
from upcore_agent.application.factory import AgentFactory, AgentRuntime
from upcore_agent.application.settings import AgentSettings
from upcore_agent.infrastructure.transports.telegram_bot import TelegramBotService

logger = structlog.get_logger()


async def login_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed login bodies answer 400, other routes keep the default 422."""
    if request.url.path == auth.LOGIN_PATH:
        return JSONResponse(status_code=400, content={"detail": auth.PASSWORD_REQUIRED})
    return await request_validation_exception_handler(request, exc)


def create_telegram_bot(runtime: AgentRuntime) -> TelegramBotService:
    s = runtime.settings
    return TelegramBotService(
        token=s.telegram_bot_token,
        allowed_chat_ids=s.allowed_chat_ids,
        executor=runtime.executor,
        sessions=runtime.sessions,
        max_chars=s.telegram_max_chars,
        edit_interval=s.telegram_edit_interval,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the optional Telegram bot alongside the HTTP server."""
    runtime: AgentRuntime = app.state.runtime
    app.state.started_at = time.monotonic()
    await logger.ainfo("fastapi.startup", message="Upcore agent API starting...")

    bot: TelegramBotService | None = None
    if runtime.settings.telegram_enabled:
        try:
            bot = create_telegram_bot(runtime)
            await bot.start()
        except TelegramError as e:
            logger.error("telegram.start_failed", error=str(e))
            bot = None
    app.state.telegram_bot = bot

    yield

    if bot is not None:
        await bot.stop()
    for session_id in list(runtime.sessions.ids()):
        runtime.sessions.close(session_id)
    await logger.ainfo("fastapi.shutdown", message="Upcore agent API shutting down...")


def create_app(
    settings: AgentSettings | None = None,
    runtime: AgentRuntime | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Raises:
        ValueError: If the login password or JWT secret is not configured
    """
    if runtime is None:
        runtime = AgentFactory(settings or AgentSettings()).create_runtime()
    runtime.settings.require_server_auth()

    app = FastAPI(
        title="Upcore Agent API",
        description="Streaming LLM coding agent over WebSocket and Telegram",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.state.started_at = time.monotonic()

    # Auth is password + JWT, not origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, login_validation_handler)

    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(websocket.router, tags=["websocket"])

    return app
