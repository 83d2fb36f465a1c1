"""
Session state and registry.

One SessionState exists per WebSocket connection or Telegram chat. It owns the
conversation history, the cancellation token of the in-flight turn (present iff
a turn is running) and the message rate-limit window. The registry indexes
sessions by id and drops them when the connection closes.
"""

import asyncio
from dataclasses import dataclass, field

import structlog

from upcore_agent.core.domain.cancellation import CancellationToken
from upcore_agent.core.domain.models import ConversationTurn
from upcore_agent.core.domain.rate_limiter import RateWindow

logger = structlog.get_logger()


@dataclass
class SessionState:
    """Mutable per-connection state."""

    session_id: str
    history: list[ConversationTurn] = field(default_factory=list)
    cancel_token: CancellationToken | None = None
    rate_window: RateWindow = field(default_factory=RateWindow)
    task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self.cancel_token is not None

    def begin_turn(self) -> CancellationToken:
        """Cancel whatever is in flight and hand out a fresh token."""
        self.cancel()
        self.cancel_token = CancellationToken()
        return self.cancel_token

    def end_turn(self, token: CancellationToken) -> None:
        """Release the in-flight slot if ``token`` still owns it."""
        if self.cancel_token is token:
            self.cancel_token = None
            self.task = None

    def cancel(self) -> bool:
        """Signal the in-flight turn, if any. Returns True if one was running."""
        if self.cancel_token is None:
            return False
        self.cancel_token.cancel()
        self.cancel_token = None
        self.task = None
        return True

    def reset(self) -> None:
        self.cancel()
        self.history = []


class SessionRegistry:
    """Sessions indexed by connection or chat id."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self.logger = logger.bind(component="session_registry")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def ids(self) -> list[str]:
        return list(self._sessions)

    def open(self, session_id: str, window: RateWindow | None = None) -> SessionState:
        if session_id in self._sessions:
            raise ValueError(f"Session already open: {session_id}")
        state = SessionState(session_id=session_id, rate_window=window or RateWindow())
        self._sessions[session_id] = state
        self.logger.info("session.opened", session_id=session_id, active=len(self._sessions))
        return state

    def get(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def get_or_open(self, session_id: str, window: RateWindow | None = None) -> SessionState:
        return self._sessions.get(session_id) or self.open(session_id, window)

    def close(self, session_id: str) -> None:
        """Cancel the in-flight turn and drop the session."""
        state = self._sessions.pop(session_id, None)
        if state is None:
            return
        state.cancel()
        self.logger.info("session.closed", session_id=session_id, active=len(self._sessions))
