"""MongoDB connection management module."""

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from studymatch.config import settings
import logging


logger = logging.getLogger(__name__)


class MongoDB:
    """Global MongoDB connection state.

    Attributes:
        client: AsyncIOMotorClient instance for database connection
        database: Reference to the active database
    """
    client: AsyncIOMotorClient = None
    database = None


async def connect_to_mongo():
    """Establish connection to MongoDB and initialize database reference."""
    try:
        MongoDB.client = AsyncIOMotorClient(settings.MONGODB_URL)
        MongoDB.database = MongoDB.client[settings.DATABASE_NAME]

        # Verify connection
        await MongoDB.client.admin.command('ping')
        logger.info(f"Successfully connected to MongoDB: {settings.DATABASE_NAME}")

        await ensure_indexes(MongoDB.database)

    except Exception as e:
        logger.error(f"Error connecting to MongoDB: {e}")
        raise


async def ensure_indexes(database):
    """Create the indexes backing the queue and room lookups."""
    members = database[settings.MEMBERS_COLLECTION]
    await members.create_index(
        [("subject", ASCENDING), ("desired_size", ASCENDING),
         ("room_id", ASCENDING), ("joined_at", ASCENDING)]
    )
    await members.create_index("client_id")
    await members.create_index("waiting_client", unique=True, sparse=True)
    await members.create_index("connection_id")
    await members.create_index("room_id")
    await database[settings.ROOMS_COLLECTION].create_index([("created_at", DESCENDING)])
    logger.info("MongoDB indexes ensured")


async def close_mongo_connection():
    """Close the MongoDB connection and cleanup resources."""
    if MongoDB.client:
        MongoDB.client.close()
        logger.info("MongoDB connection closed")


def get_database():
    """Return the active database instance.

    Returns:
        The MongoDB database instance configured in settings.
    """
    return MongoDB.database
