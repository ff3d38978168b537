"""Presence tracking and signaling relay for live WebSocket connections."""

from typing import Any, Dict, List, Optional
from fastapi import WebSocket
import asyncio
import json
import logging
import uuid

logger = logging.getLogger(__name__)


def should_initiate(local_connection_id: str, remote_connection_id: str) -> bool:
    """Return True if the local peer sends the offer to the remote peer.

    Both endpoints apply the same rule to the ids they know, so exactly one
    side of every pair initiates. The relay itself never consults it.
    """
    return local_connection_id < remote_connection_id


class Connection:
    """A live WebSocket and its outbound message queue.

    Messages are queued without suspending and written by a dedicated task,
    so the order in which they are queued is the order the client sees.

    Attributes:
        id: Connection id assigned by the relay
        room_id: Room whose presence set currently holds this connection
        client_id: Stable client id announced by the client, if any
    """

    def __init__(self, connection_id: str, websocket: WebSocket):
        self.id = connection_id
        self.websocket = websocket
        self.room_id: Optional[str] = None
        self.client_id: Optional[str] = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._broken = False

    def start(self):
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, message: dict):
        self._outbox.put_nowait(message)

    async def flush(self):
        """Wait until every queued message has been written or dropped."""
        await self._outbox.join()

    async def close(self):
        self._outbox.put_nowait(None)
        if self._writer is not None:
            await self._writer

    async def _write_loop(self):
        while True:
            message = await self._outbox.get()
            try:
                if message is None:
                    return
                if not self._broken:
                    await self.websocket.send_text(json.dumps(message))
            except Exception as e:
                # The socket is gone; keep draining so flush() and close() return
                self._broken = True
                logger.warning(f"[WS] Failed to send to connection {self.id}: {e}")
            finally:
                self._outbox.task_done()


class SignalingRelay:
    """Tracks live connections and the presence set of every room.

    All presence mutations and fan-outs are plain method calls with no await,
    so under the event loop they never interleave with each other.

    Attributes:
        connections: Live connections by connection id
        rooms: Presence sets by room id, in order of arrival
    """

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Dict[str, Connection]] = {}

    async def connect(self, websocket: WebSocket) -> Connection:
        """Accept a WebSocket, assign it a connection id and announce the id to it."""
        await websocket.accept()
        connection = Connection(uuid.uuid4().hex, websocket)
        self.connections[connection.id] = connection
        connection.start()
        connection.send({"type": "connected", "connectionId": connection.id})
        logger.info(f"[WS] Connection {connection.id} opened. Total connections: {len(self.connections)}")
        return connection

    async def disconnect(self, connection_id: str):
        """Drop a connection: leave its room and stop its writer."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return
        if connection.room_id is not None:
            self._remove_from_room(connection)
        await connection.close()
        client = f" (client {connection.client_id})" if connection.client_id else ""
        logger.info(f"[WS] Connection {connection_id}{client} closed. Total connections: {len(self.connections)}")

    async def close(self):
        """Disconnect everything, used on server shutdown."""
        for connection_id in list(self.connections):
            await self.disconnect(connection_id)

    def is_connected(self, connection_id: Optional[str]) -> bool:
        return connection_id in self.connections

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def presence(self, room_id: str) -> List[str]:
        """Connection ids present in a room, in order of arrival."""
        return list(self.rooms.get(room_id, {}))

    def enter(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to a room's presence set.

        Peers already present are told about the newcomer, and the newcomer
        is told about each of them. A connection sits in one room at most,
        so entering a new room leaves the previous one first.

        Returns:
            False if the connection is unknown or already present in the room
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            return False
        if connection.room_id == room_id:
            return False
        if connection.room_id is not None:
            self._remove_from_room(connection)

        members = self.rooms.setdefault(room_id, {})
        for peer in members.values():
            peer.send({"type": "peerArrived", "connectionId": connection.id})
            connection.send({"type": "peerArrived", "connectionId": peer.id})
        members[connection.id] = connection
        connection.room_id = room_id
        logger.info(f"[WS] {connection.id} entered room {room_id}. Present: {len(members)}")
        return True

    def exit(self, connection_id: str, room_id: str) -> bool:
        """Remove a connection from a room's presence set.

        Returns:
            False if the connection was not present in that room
        """
        connection = self.connections.get(connection_id)
        if connection is None or connection.room_id != room_id:
            return False
        self._remove_from_room(connection)
        return True

    def _remove_from_room(self, connection: Connection):
        room_id = connection.room_id
        members = self.rooms.get(room_id, {})
        members.pop(connection.id, None)
        connection.room_id = None
        for peer in members.values():
            peer.send({"type": "peerLeft", "connectionId": connection.id})
        if not members:
            self.rooms.pop(room_id, None)
        logger.info(f"[WS] {connection.id} left room {room_id}. Present: {len(members)}")

    def relay(self, from_connection_id: str, to_connection_id: str, payload: Any) -> bool:
        """Forward a signaling payload to one connection, untouched.

        Delivery is at most once: an unknown target drops the message.
        """
        target = self.connections.get(to_connection_id)
        if target is None:
            logger.debug(f"[WS] Dropped signal from {from_connection_id}: {to_connection_id} not connected")
            return False
        target.send({"type": "signal", "fromConnectionId": from_connection_id, "payload": payload})
        return True

    def notify(self, connection_id: Optional[str], message: dict) -> bool:
        """Push a server event to one connection if it is live."""
        connection = self.connections.get(connection_id) if connection_id else None
        if connection is None:
            logger.debug(f"[WS] Skipped {message.get('type')} push: {connection_id} not connected")
            return False
        connection.send(message)
        return True
