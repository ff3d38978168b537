from typing import Optional, List
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError
from studymatch.database.connection import get_database
from studymatch.models.room import Room
from studymatch.core.exceptions import StoreUnavailable
from studymatch.config import settings
import logging

logger = logging.getLogger(__name__)


class RoomRepository:
    """Repository for formed rooms.

    Rooms are written once, with their final participant list, and never
    updated or deleted afterwards.
    """

    def __init__(self):
        self._collection: Optional[AsyncIOMotorCollection] = None

    @property
    def collection(self) -> AsyncIOMotorCollection:
        """Get the rooms collection, initializing it if needed."""
        if self._collection is None:
            db = get_database()
            self._collection = db[settings.ROOMS_COLLECTION]
        return self._collection

    @staticmethod
    def new_room_id() -> str:
        """Allocate an id before the room document exists."""
        return str(ObjectId())

    async def insert_room(self, room: Room) -> Room:
        """Insert a room under its preallocated id.

        Raises:
            StoreUnavailable: If the insert fails
        """
        try:
            room_dict = room.model_dump(by_alias=True, exclude={"id"})
            room_dict["_id"] = ObjectId(room.id)
            await self.collection.insert_one(room_dict)
            return room
        except PyMongoError as e:
            logger.error(f"Error creating room {room.id}: {e}")
            raise StoreUnavailable("Failed to create room") from e

    async def find_by_id(self, room_id: str) -> Optional[Room]:
        """Find a room by its ID.

        Returns:
            The room if found, None for unknown or malformed ids
        """
        try:
            oid = ObjectId(room_id)
        except (InvalidId, TypeError):
            logger.warning(f"Invalid ObjectId received: {room_id}")
            return None
        try:
            room_doc = await self.collection.find_one({"_id": oid})
            if room_doc:
                room_doc["_id"] = str(room_doc["_id"])
                return Room(**room_doc)
            return None
        except PyMongoError as e:
            logger.error(f"Error finding room by id {room_id}: {e}")
            raise StoreUnavailable("Failed to read room") from e

    async def find_recent(self, limit: int) -> List[Room]:
        """Return the most recently formed rooms, newest first."""
        try:
            cursor = self.collection.find({}).sort("created_at", DESCENDING).limit(limit)
            rooms = []
            async for room_doc in cursor:
                room_doc["_id"] = str(room_doc["_id"])
                rooms.append(Room(**room_doc))
            return rooms
        except PyMongoError as e:
            logger.error(f"Error listing rooms: {e}")
            raise StoreUnavailable("Failed to list rooms") from e
