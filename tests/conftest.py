import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from studymatch.core.relay import SignalingRelay
from studymatch.database.connection import MongoDB
from studymatch.database.member_repository import QUEUE_ORDER, MemberRepository
from studymatch.database.room_repository import RoomRepository
from studymatch.services.identity import IdentityResolver
from studymatch.services.matchmaking import MatchmakingEngine
from studymatch.services.rooms import RoomRegistry
from studymatch.services.signaling import SignalingSession


class FakeWebSocket:
    """Server-side stand-in for a Starlette WebSocket.

    Frames pushed with :meth:`feed` are returned by ``receive`` as text, or
    as binary when given bytes. Feeding None delivers a disconnect message,
    like a closed tab.
    """

    def __init__(self):
        self.accepted = False
        self.sent = []
        self.incoming = asyncio.Queue()

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        self.sent.append(json.loads(text))

    async def receive(self):
        frame = await self.incoming.get()
        if frame is None:
            return {"type": "websocket.disconnect", "code": 1000}
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        return {"type": "websocket.receive", "text": frame}

    def feed(self, frame):
        self.incoming.put_nowait(frame if frame is None or isinstance(frame, (str, bytes)) else json.dumps(frame))

    def of_type(self, kind):
        return [message for message in self.sent if message["type"] == kind]


@pytest.fixture
def database(mocker):
    """Replaces the MongoDB database with an in-memory mongomock one."""
    db = AsyncMongoMockClient()["studymatch_test"]
    mocker.patch.object(MongoDB, "database", db)
    return db


@pytest.fixture
def members(database):
    return MemberRepository()


@pytest.fixture
def records_of(members):
    """Every record of a client, waiting or matched, oldest first."""
    async def _records(client_id):
        cursor = members.collection.find({"client_id": client_id}).sort(QUEUE_ORDER)
        return [members._to_member(doc) async for doc in cursor]
    return _records


@pytest.fixture
def room_repo(database):
    return RoomRepository()


@pytest.fixture
def registry(room_repo):
    return RoomRegistry(room_repo)


@pytest.fixture
async def relay():
    relay = SignalingRelay()
    yield relay
    await relay.close()


@pytest.fixture
def engine(members, registry, relay):
    return MatchmakingEngine(members=members, rooms=registry, relay=relay)


@pytest.fixture
def resolver(members, relay):
    return IdentityResolver(members=members, relay=relay)


@pytest.fixture
def open_connection(relay):
    """Factory opening a relay connection over a FakeWebSocket.

    Usage::

        async def test_something(open_connection):
            connection, ws = await open_connection()
    """
    async def _open():
        ws = FakeWebSocket()
        connection = await relay.connect(ws)
        return connection, ws
    return _open


@pytest.fixture
def start_session(relay, engine, resolver):
    """Factory running a SignalingSession over a FakeWebSocket in a task."""
    async def _start(client_id=None):
        ws = FakeWebSocket()
        session = SignalingSession(ws, relay, engine, resolver)
        task = asyncio.create_task(session.run(client_id=client_id))
        while session.connection_id is None:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)
        return session, ws, task
    return _start


@pytest.fixture
def client(database, mocker):
    """TestClient over a fresh app whose MongoDB is the mongomock database."""
    mocker.patch("studymatch.main.connect_to_mongo", new=AsyncMock())
    mocker.patch("studymatch.main.close_mongo_connection", new=AsyncMock())
    from studymatch.main import create_app
    with TestClient(create_app()) as test_client:
        yield test_client
