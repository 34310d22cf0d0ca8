import logging
from collections import defaultdict
from collections.abc import Iterable

from fastapi import WebSocket

from app.services.notifications import NotificationEvent


class NotificationConnectionManager:
    """Open notification sockets, keyed by the authenticated user."""

    def __init__(self) -> None:
        self._connections: dict[int, list[WebSocket]] = defaultdict(list)

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        self._connections[user_id].append(websocket)
        logger.info("WS connect user_id=%s total=%s", user_id, len(self._connections[user_id]))

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        if user_id not in self._connections:
            return
        self._connections[user_id] = [ws for ws in self._connections[user_id] if ws is not websocket]
        if not self._connections[user_id]:
            self._connections.pop(user_id, None)
        else:
            logger.info("WS disconnect user_id=%s total=%s", user_id, len(self._connections[user_id]))

    def connection_count(self, user_id: int | None = None) -> int:
        if user_id is None:
            return sum(len(sockets) for sockets in self._connections.values())
        return len(self._connections.get(user_id, []))

    async def send_to_user(self, user_id: int, message: dict) -> int:
        if user_id not in self._connections:
            return 0

        delivered = 0
        to_remove: list[WebSocket] = []
        for websocket in list(self._connections[user_id]):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.exception("WS send failed user_id=%s", user_id)
                to_remove.append(websocket)

        if to_remove:
            self._connections[user_id] = [ws for ws in self._connections[user_id] if ws not in to_remove]
            if not self._connections[user_id]:
                self._connections.pop(user_id, None)
            else:
                logger.info("WS pruned user_id=%s total=%s", user_id, len(self._connections[user_id]))
        return delivered

    async def publish(self, events: Iterable[NotificationEvent]) -> int:
        """Push committed notification changes to their recipients. Best effort."""
        delivered = 0
        for event in events:
            delivered += await self.send_to_user(
                event.user_id,
                {"event": event.event, "notification": event.notification},
            )
        return delivered


logger = logging.getLogger("giftcircle.ws")
manager = NotificationConnectionManager()
