"""Login sessions stored in Redis."""

import json
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

import redis.asyncio as redis

from myfitlog.core.config import get_settings

settings = get_settings()

SESSION_KEY_PREFIX = "myfitlog:session:"

# Redis client (initialized lazily)
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


def generate_session_id() -> str:
    """Generate a secure random session ID."""
    return secrets.token_urlsafe(32)


def _key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


async def create_session(user_id: int, user_data: dict[str, Any]) -> str:
    """Store a new session and return its id.

    Args:
        user_id: Authenticated user's id.
        user_data: Display fields cached alongside the id (email, display_name).

    Returns:
        Session ID to hand to the client as a cookie.
    """
    redis_client = await get_redis()
    session_id = generate_session_id()

    payload = {
        "user_id": user_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        **user_data,
    }
    await redis_client.setex(
        _key(session_id),
        settings.session_ttl_seconds,
        json.dumps(payload),
    )
    return session_id


async def get_session(session_id: str) -> Optional[dict[str, Any]]:
    """Return session data, or None if the session is unknown or expired."""
    redis_client = await get_redis()
    data = await redis_client.get(_key(session_id))
    if data is None:
        return None
    return json.loads(data)


async def delete_session(session_id: str) -> bool:
    """Delete a session. Returns True if something was deleted."""
    redis_client = await get_redis()
    result = await redis_client.delete(_key(session_id))
    return result > 0


async def close_redis() -> None:
    """Close the shared Redis client, if one was opened."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
