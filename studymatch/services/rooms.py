from typing import List, Optional
import logging

from studymatch.core.exceptions import RoomNotFound
from studymatch.database.room_repository import RoomRepository
from studymatch.models.member import Participant
from studymatch.models.room import Room, RoomResponse, RoomSummary

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Read and create access to formed rooms."""

    def __init__(self, rooms: Optional[RoomRepository] = None):
        self._rooms = rooms or RoomRepository()

    def allocate_id(self) -> str:
        return self._rooms.new_room_id()

    async def create_room(self, subject: str, desired_size: int,
                          participants: List[Participant], room_id: Optional[str] = None) -> str:
        """Persist a room with its final participant list.

        Args:
            subject: Study subject of the group
            desired_size: Group size the members asked for
            participants: Frozen membership at formation time
            room_id: Preallocated id, typically already written to the members

        Returns:
            The room id
        """
        room = Room(
            id=room_id or self.allocate_id(),
            subject=subject,
            desired_size=desired_size,
            participants=participants,
        )
        await self._rooms.insert_room(room)
        logger.info(f"Room {room.id} created for '{subject}' with {len(participants)} participants")
        return room.id

    async def get_room(self, room_id: str) -> RoomResponse:
        """Look up a room for a late or refreshing client.

        Raises:
            RoomNotFound: If no room has this id
        """
        room = await self._rooms.find_by_id(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return RoomResponse(roomId=room.id, subject=room.subject, participants=room.participants)

    async def list_rooms(self, limit: int) -> List[RoomSummary]:
        rooms = await self._rooms.find_recent(limit)
        return [
            RoomSummary(
                roomId=room.id,
                subject=room.subject,
                desiredSize=room.desired_size,
                status=room.status,
                createdAt=room.created_at,
                participants=room.participants,
            )
            for room in rooms
        ]
