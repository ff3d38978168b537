"""Application configuration module.

Loads environment variables from .env file and provides a centralized
configuration object for the application.
"""

import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings and configuration.

    Attributes:
        MONGODB_URL: MongoDB connection string
        DATABASE_NAME: Name of the MongoDB database
        HOST: Server host address
        PORT: Server port number
        CORS_ORIGIN: Allowed origin for browser clients ("*" allows all)
        LOG_LEVEL: Root logging level
        MEMBERS_COLLECTION: Name of the waiting/matched members collection
        ROOMS_COLLECTION: Name of the rooms collection
        DEFAULT_GROUP_SIZE: Group size used when a join omits desiredSize
        MAX_GROUP_SIZE: Largest group a client may ask for
        MATCH_RETRY_LIMIT: Attempts at forming a room before answering "waiting"
        ROOM_LIST_LIMIT: Default number of rooms returned by the rooms listing
    """
    # MongoDB Configuration
    MONGODB_URL: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "study_groups")

    # Server Configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))
    CORS_ORIGIN: str = os.getenv("CORS_ORIGIN", "*")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Collections Names
    MEMBERS_COLLECTION: str = "members"
    ROOMS_COLLECTION: str = "rooms"

    # Matchmaking Rules
    DEFAULT_GROUP_SIZE: int = int(os.getenv("DEFAULT_GROUP_SIZE", "2"))
    MAX_GROUP_SIZE: int = int(os.getenv("MAX_GROUP_SIZE", "10"))
    MATCH_RETRY_LIMIT: int = int(os.getenv("MATCH_RETRY_LIMIT", "3"))
    ROOM_LIST_LIMIT: int = int(os.getenv("ROOM_LIST_LIMIT", "50"))


settings = Settings()
