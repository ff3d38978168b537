from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from studymatch.config import settings
from studymatch.core.exceptions import JoinValidationError, StoreUnavailable
from studymatch.core.locks import KeyedLock
from studymatch.core.relay import SignalingRelay
from studymatch.database.member_repository import MemberRepository
from studymatch.models.member import (
    JoinRequest, JoinResponse, JoinStatus, Member, Participant, WaitingMemberResponse
)
from studymatch.services.rooms import RoomRegistry

logger = logging.getLogger(__name__)


def validate_join_request(request: JoinRequest) -> JoinRequest:
    """Check a join request and return a normalized copy.

    Raises:
        JoinValidationError: Listing every missing or invalid field
    """
    invalid = [
        field for field in ("name", "subject", "connectionId", "clientId")
        if not getattr(request, field) or not getattr(request, field).strip()
    ]
    size = request.desiredSize if request.desiredSize is not None else settings.DEFAULT_GROUP_SIZE
    if isinstance(size, bool) or not isinstance(size, int) or not 2 <= size <= settings.MAX_GROUP_SIZE:
        invalid.append("desiredSize")
    if invalid:
        raise JoinValidationError(invalid)

    return JoinRequest(
        name=request.name.strip(),
        subject=request.subject.strip(),
        desiredSize=size,
        connectionId=request.connectionId.strip(),
        clientId=request.clientId.strip(),
    )


class MatchmakingEngine:
    """Forms rooms out of the waiting queue of each (subject, size) pair.

    Notes:
    - The read-select-bind step runs under a lock per queue, taken after a
      lock per client. The bind itself is conditional on members still
      waiting, so a member can never end up in two rooms even with several
      server processes.
    - A client has at most one waiting record; the unique ``waiting_client``
      index enforces it across processes.
    - The oldest ``desiredSize`` waiting members win a room (FIFO).
    - Matched members are pushed a ``matched`` event through the relay; a
      member whose connection is gone simply misses the push.
    """

    def __init__(self, members: Optional[MemberRepository] = None,
                 rooms: Optional[RoomRegistry] = None,
                 relay: Optional[SignalingRelay] = None) -> None:
        self._members = members or MemberRepository()
        self._rooms = rooms or RoomRegistry()
        self._relay = relay
        self._client_locks = KeyedLock()
        self._queue_locks = KeyedLock()
        self._retry_limit: int = settings.MATCH_RETRY_LIMIT

    async def join(self, request: JoinRequest) -> JoinResponse:
        """Put a client in the queue and form a room if the queue is full enough.

        Joins of one client are serialized before the queue lock is taken,
        since a re-join may move the client's record to another queue.
        """
        request = validate_join_request(request)

        async with self._client_locks.hold(request.clientId):
            return await self._join_queue(request)

    async def _join_queue(self, request: JoinRequest) -> JoinResponse:
        subject, size = request.subject, request.desiredSize

        async with self._queue_locks.hold((subject, size)):
            me = await self._members.upsert_waiting(
                request.clientId, request.name, subject, size, request.connectionId
            )
            logger.info(f"Client {request.clientId} ({request.name}) waiting for '{subject}' x{size}")

            for attempt in range(1, self._retry_limit + 1):
                queue = await self._members.find_waiting(subject, size)
                if len(queue) < size:
                    return JoinResponse(status=JoinStatus.WAITING)

                selected = queue[:size]
                formed = await self._form_room(subject, size, selected)
                if formed is None:
                    logger.warning(
                        f"Queue '{subject}' x{size} changed while forming a room "
                        f"(attempt {attempt}/{self._retry_limit})"
                    )
                    continue

                room_id, participants = formed
                self._notify_matched(room_id, participants)
                if any(member.id == me.id for member in selected):
                    return JoinResponse(status=JoinStatus.MATCHED, roomId=room_id, participants=participants)
                return JoinResponse(status=JoinStatus.WAITING)

        logger.warning(f"Gave up forming a room for '{subject}' x{size}; client {request.clientId} keeps waiting")
        return JoinResponse(status=JoinStatus.WAITING)

    async def _form_room(self, subject: str, size: int,
                         selected: List[Member]) -> Optional[Tuple[str, List[Participant]]]:
        """Bind the selected members to a new room, all or nothing.

        Returns:
            The room id and participants, or None if some member was taken
            by another writer (the partial binding is undone)
        """
        room_id = self._rooms.allocate_id()
        claimed = await self._members.claim([m.id for m in selected], room_id, subject, size)
        if claimed != len(selected):
            await self._members.release(room_id)
            return None

        participants = [Participant.from_member(m) for m in selected]
        try:
            await self._rooms.create_room(subject, size, participants, room_id=room_id)
        except StoreUnavailable:
            try:
                await self._members.release(room_id)
            except StoreUnavailable:
                logger.error(f"Members left bound to unsaved room {room_id}")
            raise
        return room_id, participants

    def _notify_matched(self, room_id: str, participants: List[Participant]) -> None:
        if self._relay is None:
            return
        message = {
            "type": "matched",
            "roomId": room_id,
            "participants": [p.model_dump() for p in participants],
        }
        for participant in participants:
            if not self._relay.notify(participant.connectionId, message):
                logger.info(f"Member {participant.id} has no live connection; matched push skipped")

    async def leave(self, connection_id: str) -> bool:
        """Remove the waiting member bound to a connection.

        Matched members are left alone.

        Returns:
            True if a waiting member was removed
        """
        if not connection_id or not connection_id.strip():
            raise JoinValidationError(["connectionId"])
        removed = await self._members.delete_waiting_by_connection(connection_id)
        if removed:
            logger.info(f"Removed waiting member for connection {connection_id}")
        return removed > 0

    async def list_waiting(self) -> List[WaitingMemberResponse]:
        members = await self._members.find_all_waiting()
        return [
            WaitingMemberResponse(
                id=m.id,
                name=m.name,
                subject=m.subject,
                desiredSize=m.desired_size,
                connectionId=m.connection_id,
                joinedAt=m.joined_at,
            )
            for m in members
        ]
