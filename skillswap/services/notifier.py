"""Swap lifecycle event fan-out: redis pub/sub for the notification subsystem, websocket nudges for open clients."""
import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi import WebSocket

from skillswap.config import settings
from skillswap.redis_client import get_redis

logger = logging.getLogger(__name__)


class EventType:
    PROPOSED = "swap_proposed"
    ACCEPTED = "swap_accepted"
    REJECTED = "swap_rejected"
    CANCELLED = "swap_cancelled"
    RATED = "swap_rated"
    COMPLETED = "swap_completed"
    EXPIRED = "swap_expired"


class Emitter(Protocol):
    async def emit(self, event: str, target_user_id: int, payload: dict[str, Any]) -> None: ...


class UpdatesConnectionManager:
    """user_id -> open websockets on /ws/updates."""

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = defaultdict(set)

    def connect(self, user_id: int, websocket: WebSocket) -> None:
        self._connections[user_id].add(websocket)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._connections[user_id]

    def connected(self, user_id: int) -> int:
        return len(self._connections.get(user_id, ()))

    async def notify_user(self, user_id: int, message: dict) -> None:
        sockets = list(self._connections.get(user_id, ()))
        if not sockets:
            return
        text = json.dumps(message)
        results = await asyncio.gather(*[ws.send_text(text) for ws in sockets], return_exceptions=True)
        for ws, result in zip(sockets, results):
            if isinstance(result, Exception):
                logger.debug("dropping dead websocket for user %s: %s", user_id, result)
                self.disconnect(user_id, ws)


updates_manager = UpdatesConnectionManager()


def channel_for(user_id: int) -> str:
    return f"{settings.NOTIFICATION_CHANNEL_PREFIX}:{user_id}"


class SwapEventEmitter:
    """
    Publishes ``{"event", "user_id", "payload", "emitted_at"}`` on the target
    user's redis channel, then tells that user's open websockets to refetch.
    Errors propagate; the lifecycle engine decides that they are non-fatal.
    """

    def __init__(self, redis: Any = None, updates: UpdatesConnectionManager = updates_manager) -> None:
        self._redis = redis
        self._updates = updates

    async def _client(self) -> Any:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def emit(self, event: str, target_user_id: int, payload: dict[str, Any]) -> None:
        message = {
            "event": event,
            "user_id": target_user_id,
            "payload": payload,
            "emitted_at": datetime.now(timezone.utc).isoformat(),
        }
        redis = await self._client()
        await redis.publish(channel_for(target_user_id), json.dumps(message))
        await self._updates.notify_user(target_user_id, {"type": "swaps", "event": event, "swap_id": payload.get("swap_id")})


async def get_emitter() -> Emitter:
    """FastAPI dependency; tests override it."""
    return SwapEventEmitter()
