from typing import Optional
from fastapi import APIRouter, WebSocket

from studymatch.services.signaling import SignalingSession


router = APIRouter(tags=["signaling"])


@router.websocket("/ws")
async def signaling_ws(websocket: WebSocket, clientId: Optional[str] = None):
    """Presence and signaling channel.

    The first frame sent by the server is ``{"type": "connected",
    "connectionId": "..."}``; that id is what the client passes to
    ``/api/join``. A ``clientId`` query parameter rebinds the client's
    waiting entry to the new connection right away.
    """
    state = websocket.app.state
    session = SignalingSession(websocket, state.relay, state.engine, state.resolver)
    await session.run(client_id=clientId)
