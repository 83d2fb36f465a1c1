"""Password check and JWT handling for the HTTP and WebSocket surfaces."""

import hmac
from datetime import datetime, timedelta, timezone

import jwt
import structlog

logger = structlog.get_logger()

JWT_ALGORITHM = "HS256"
JWT_SUBJECT = "agent-user"


def sign_token(secret: str, expiry_hours: int = 24) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": JWT_SUBJECT, "iat": now, "exp": now + timedelta(hours=expiry_hours)}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str | None, secret: str | None) -> dict | None:
    """Decoded claims, or None for a missing, expired or forged token."""
    if not token or not secret:
        return None
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.info("auth.token_rejected", error=str(e))
        return None


def passwords_match(candidate: str, expected: str) -> bool:
    """Constant-time comparison."""
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
