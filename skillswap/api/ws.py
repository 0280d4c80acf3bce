"""WebSocket: real-time nudge channel; clients refetch their swap views when told to."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from skillswap.auth.jwt import resolve_user_id
from skillswap.services.notifier import updates_manager

router = APIRouter(tags=["ws"])


@router.websocket("/ws/updates")
async def updates_ws(websocket: WebSocket):
    """Connect with ?token=JWT. Server pushes { type: 'swaps', event, swap_id } when one of my swaps changes."""
    await websocket.accept()
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4000)
        return
    user_id = resolve_user_id(token)
    if user_id is None:
        await websocket.close(code=4001)
        return
    updates_manager.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        updates_manager.disconnect(user_id, websocket)
