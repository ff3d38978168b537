from typing import Optional, List
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from studymatch.database.connection import get_database
from studymatch.models.member import Member
from studymatch.core.exceptions import StoreUnavailable
from studymatch.config import settings
import logging

logger = logging.getLogger(__name__)

QUEUE_ORDER = [("joined_at", ASCENDING), ("_id", ASCENDING)]


class MemberRepository:
    """Repository for the waiting queue and matched member records.

    A member document is waiting while its ``room_id`` is null. Every write
    that moves a member out of the queue is conditional on that predicate so
    concurrent writers cannot bind the same member twice.

    Waiting documents also carry ``waiting_client`` (a copy of ``client_id``)
    which is unset once the member is bound to a room. A unique sparse index
    on it keeps a client from waiting twice.
    """

    def __init__(self):
        self._collection: Optional[AsyncIOMotorCollection] = None

    @property
    def collection(self) -> AsyncIOMotorCollection:
        """Get the members collection, initializing it if needed."""
        if self._collection is None:
            db = get_database()
            self._collection = db[settings.MEMBERS_COLLECTION]
        return self._collection

    @staticmethod
    def _to_member(doc: dict) -> Member:
        doc["_id"] = str(doc["_id"])
        return Member(**doc)

    async def upsert_waiting(self, client_id: str, name: str, subject: str,
                             desired_size: int, connection_id: str) -> Member:
        """Refresh the waiting record of a client or insert a new one.

        An existing waiting record is updated in place, including a new
        ``joined_at``, so re-joining moves the client to the back of the queue.
        """
        fields = {
            "name": name,
            "subject": subject,
            "desired_size": desired_size,
            "connection_id": connection_id,
            "joined_at": datetime.utcnow(),
            "waiting_client": client_id,
        }
        try:
            # Second pass only when another writer inserted the record first
            for _ in range(2):
                doc = await self.collection.find_one_and_update(
                    {"client_id": client_id, "room_id": None},
                    {"$set": fields},
                    return_document=ReturnDocument.AFTER
                )
                if doc:
                    logger.debug(f"Refreshed waiting member for client {client_id}")
                    return self._to_member(doc)

                member = Member(client_id=client_id, room_id=None, **fields)
                member_dict = member.model_dump(by_alias=True, exclude={"id"})
                try:
                    result = await self.collection.insert_one(member_dict)
                except DuplicateKeyError:
                    logger.debug(f"Client {client_id} inserted concurrently, updating instead")
                    continue
                member.id = str(result.inserted_id)
                logger.debug(f"Inserted waiting member {member.id} for client {client_id}")
                return member
        except PyMongoError as e:
            logger.error(f"Error upserting waiting member for client {client_id}: {e}")
            raise StoreUnavailable("Failed to record waiting member") from e
        logger.error(f"Waiting member of client {client_id} kept changing under upsert")
        raise StoreUnavailable("Failed to record waiting member")

    async def find_waiting(self, subject: str, desired_size: int) -> List[Member]:
        """Return the queue for a subject and group size, oldest first."""
        try:
            cursor = self.collection.find({
                "subject": subject,
                "desired_size": desired_size,
                "room_id": None
            }).sort(QUEUE_ORDER)
            members = []
            async for doc in cursor:
                members.append(self._to_member(doc))
            return members
        except PyMongoError as e:
            logger.error(f"Error reading queue for {subject}/{desired_size}: {e}")
            raise StoreUnavailable("Failed to read waiting queue") from e

    async def find_all_waiting(self) -> List[Member]:
        """Return every waiting member across all queues, oldest first."""
        try:
            cursor = self.collection.find({"room_id": None}).sort(QUEUE_ORDER)
            members = []
            async for doc in cursor:
                members.append(self._to_member(doc))
            return members
        except PyMongoError as e:
            logger.error(f"Error listing waiting members: {e}")
            raise StoreUnavailable("Failed to read waiting queue") from e

    async def find_by_room(self, room_id: str) -> List[Member]:
        try:
            cursor = self.collection.find({"room_id": room_id}).sort(QUEUE_ORDER)
            members = []
            async for doc in cursor:
                members.append(self._to_member(doc))
            return members
        except PyMongoError as e:
            logger.error(f"Error finding members of room {room_id}: {e}")
            raise StoreUnavailable("Failed to read members") from e

    async def claim(self, member_ids: List[str], room_id: str,
                    subject: str, desired_size: int) -> int:
        """Bind still-waiting members to a room.

        Only members that are still waiting in the given queue are bound.

        Returns:
            Number of members actually bound; less than ``len(member_ids)``
            means another writer got some of them first.
        """
        try:
            oids = [ObjectId(member_id) for member_id in member_ids]
            result = await self.collection.update_many(
                {
                    "_id": {"$in": oids},
                    "subject": subject,
                    "desired_size": desired_size,
                    "room_id": None
                },
                {"$set": {"room_id": room_id}, "$unset": {"waiting_client": ""}}
            )
            return result.modified_count
        except PyMongoError as e:
            logger.error(f"Error binding members to room {room_id}: {e}")
            raise StoreUnavailable("Failed to bind members") from e

    async def release(self, room_id: str) -> int:
        """Return members bound to an unfinished room to the queue.

        A member whose client joined again in the meantime is dropped, the
        newer waiting record wins.

        Returns:
            Number of members put back in the queue
        """
        released = 0
        try:
            for member in await self.find_by_room(room_id):
                try:
                    result = await self.collection.update_one(
                        {"_id": ObjectId(member.id), "room_id": room_id},
                        {"$set": {"room_id": None, "waiting_client": member.client_id}}
                    )
                    released += result.modified_count
                except DuplicateKeyError:
                    await self.collection.delete_one({"_id": ObjectId(member.id)})
                    logger.info(f"Dropped member {member.id}: client {member.client_id} is already waiting again")
            return released
        except PyMongoError as e:
            logger.error(f"Error releasing members of room {room_id}: {e}")
            raise StoreUnavailable("Failed to release members") from e

    async def rebind_waiting(self, client_id: str, connection_id: str) -> int:
        """Point every waiting record of a client at a new connection."""
        try:
            result = await self.collection.update_many(
                {"client_id": client_id, "room_id": None},
                {"$set": {"connection_id": connection_id}}
            )
            return result.modified_count
        except PyMongoError as e:
            logger.error(f"Error rebinding client {client_id}: {e}")
            raise StoreUnavailable("Failed to rebind connection") from e

    async def delete_waiting_by_connection(self, connection_id: str) -> int:
        """Delete waiting records bound to a connection. Matched records stay."""
        try:
            result = await self.collection.delete_many(
                {"connection_id": connection_id, "room_id": None}
            )
            return result.deleted_count
        except PyMongoError as e:
            logger.error(f"Error deleting waiting member for connection {connection_id}: {e}")
            raise StoreUnavailable("Failed to remove waiting member") from e

    async def find_by_id(self, member_id: str) -> Optional[Member]:
        try:
            oid = ObjectId(member_id)
        except (InvalidId, TypeError):
            logger.warning(f"Invalid ObjectId received: {member_id}")
            return None
        try:
            doc = await self.collection.find_one({"_id": oid})
            return self._to_member(doc) if doc else None
        except PyMongoError as e:
            logger.error(f"Error finding member {member_id}: {e}")
            raise StoreUnavailable("Failed to read member") from e
