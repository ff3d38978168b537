from .connection import connect_to_mongo, close_mongo_connection, get_database
from .member_repository import MemberRepository
from .room_repository import RoomRepository

__all__ = [
    "connect_to_mongo",
    "close_mongo_connection",
    "get_database",
    "MemberRepository",
    "RoomRepository"
]
