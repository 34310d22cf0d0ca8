import asyncio
import logging
from urllib.parse import parse_qs, urlparse

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from sqlalchemy import select

from app.api.deps import DbSessionDep
from app.core.config import settings
from app.core.security import user_id_from_token
from app.models.models import User
from app.realtime.manager import manager

router = APIRouter(tags=["ws"])
logger = logging.getLogger("giftcircle.ws")

WS_PING_TIMEOUT = 30  # seconds to wait for a ping to be written before giving up


@router.websocket("/ws/notifications")
async def notifications_ws(websocket: WebSocket, db: DbSessionDep) -> None:
    await websocket.accept()

    query_params = parse_qs(urlparse(str(websocket.url)).query)
    token = None
    auth_header = websocket.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.removeprefix("Bearer ").strip()
    elif "token" in query_params:
        token = query_params["token"][0]
    elif "access_token" in websocket.cookies:
        token = websocket.cookies.get("access_token")

    user_id = user_id_from_token(token)
    viewer: User | None = None
    if user_id is not None:
        result = await db.execute(select(User).where(User.id == user_id))
        viewer = result.scalar_one_or_none()
    # The socket lives much longer than this lookup; do not hold the session open.
    await db.close()

    if viewer is None:
        logger.warning("WS auth failed for notifications socket")
        await websocket.close(code=1008)
        return

    await manager.connect(viewer.id, websocket)
    await websocket.send_json({"type": "ready", "user_id": viewer.id})

    try:
        while True:
            try:
                await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=settings.ws_ping_interval_seconds,
                )
            except asyncio.TimeoutError:
                try:
                    await asyncio.wait_for(
                        websocket.send_text('{"type":"ping"}'),
                        timeout=WS_PING_TIMEOUT,
                    )
                except Exception:
                    logger.info("WS idle timeout, closing user_id=%s", viewer.id)
                    break
    except WebSocketDisconnect:
        logger.info("WS disconnected user_id=%s", viewer.id)
    finally:
        manager.disconnect(viewer.id, websocket)
