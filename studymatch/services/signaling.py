"""Per-connection handler for the presence and signaling channel.

Client frames::

    {"type": "enterRoom", "roomId": "..."}
    {"type": "exitRoom", "roomId": "..."}
    {"type": "signal", "toConnectionId": "...", "payload": <anything>}
    {"type": "rebind", "clientId": "..."}

Server frames: ``connected``, ``matched``, ``peerArrived``, ``peerLeft``,
``signal`` and ``error``.
"""

from typing import Optional
from fastapi import WebSocket, WebSocketDisconnect
import json
import logging

from studymatch.core.exceptions import JoinValidationError, StoreUnavailable
from studymatch.core.relay import SignalingRelay
from studymatch.services.identity import IdentityResolver
from studymatch.services.matchmaking import MatchmakingEngine

logger = logging.getLogger(__name__)


class SignalingSession:
    """Owns one WebSocket from accept to disconnect.

    Frames from the client are handled one at a time, in order, by this
    session's task. Disconnecting cleans up presence and the waiting queue
    separately: a matched member only loses presence.
    """

    def __init__(self, websocket: WebSocket, relay: SignalingRelay,
                 engine: MatchmakingEngine, resolver: IdentityResolver):
        self._websocket = websocket
        self._relay = relay
        self._engine = engine
        self._resolver = resolver
        self.connection_id: Optional[str] = None

    async def run(self, client_id: Optional[str] = None):
        connection = await self._relay.connect(self._websocket)
        self.connection_id = connection.id
        try:
            if client_id:
                await self._rebind(client_id)
            while True:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                data = message.get("text")
                if data is None:
                    self._error("Expected a text frame")
                    continue
                await self.handle_frame(data)
        except WebSocketDisconnect:
            logger.info(f"[WS] Connection {self.connection_id} disconnected")
        finally:
            await self._cleanup()

    async def handle_frame(self, data: str):
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            self._error("Invalid JSON")
            return
        if not isinstance(message, dict):
            self._error("Expected a JSON object")
            return

        message_type = message.get("type")
        if message_type == "enterRoom":
            room_id = self._require(message, "roomId")
            if room_id:
                self._relay.enter(self.connection_id, room_id)
        elif message_type == "exitRoom":
            room_id = self._require(message, "roomId")
            if room_id:
                self._relay.exit(self.connection_id, room_id)
        elif message_type == "signal":
            target = self._require(message, "toConnectionId")
            if target:
                self._relay.relay(self.connection_id, target, message.get("payload"))
        elif message_type == "rebind":
            client_id = self._require(message, "clientId")
            if client_id:
                await self._rebind(client_id)
        else:
            self._error(f"Unknown message type: {message_type}")

    async def _rebind(self, client_id: str):
        try:
            await self._resolver.resolve(client_id, self.connection_id)
        except JoinValidationError as e:
            self._error(str(e))
        except StoreUnavailable:
            self._error("Service temporarily unavailable")

    def _require(self, message: dict, field: str) -> Optional[str]:
        value = message.get(field)
        if not isinstance(value, str) or not value:
            self._error(f"{message.get('type')} requires {field}")
            return None
        return value

    def _error(self, text: str):
        self._relay.notify(self.connection_id, {"type": "error", "message": text})

    async def _cleanup(self):
        await self._relay.disconnect(self.connection_id)
        try:
            await self._engine.leave(self.connection_id)
        except StoreUnavailable:
            logger.error(f"Could not remove waiting member of connection {self.connection_id}")
