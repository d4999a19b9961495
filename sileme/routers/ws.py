"""
Real-time channel.

WS /ws?user_id=<id>

The socket joins room "user_<id>" and receives every event published to
that room as {"event": ..., "data": {...}}. Sending "ping" gets "pong".
"""
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from sileme.db.base import SessionLocal
from sileme.models.user import User
from sileme.services.delivery import channel_key_for

router = APIRouter(tags=["realtime"])


def _is_active_user(user_id: int) -> bool:
    with SessionLocal() as db:
        user = db.get(User, user_id)
        return user is not None and user.is_active


@router.websocket("/ws")
async def realtime(websocket: WebSocket, user_id: int = Query(...)):
    if not await run_in_threadpool(_is_active_user, user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connections
    key = channel_key_for(user_id)
    await websocket.accept()
    manager.join(key, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        manager.leave(key, websocket)
