from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime
from enum import Enum

from studymatch.models.member import Participant


class RoomStatus(str, Enum):
    ACTIVE = "active"


class Room(BaseModel):
    """Formed study group as stored in the rooms collection.

    ``participants`` is captured when the room is formed and never changes.
    """
    id: Optional[str] = Field(None, alias="_id")
    subject: str
    desired_size: int
    status: RoomStatus = RoomStatus.ACTIVE
    participants: List[Participant]
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True
    )


class RoomResponse(BaseModel):
    """API response for a single room"""
    roomId: str
    subject: str
    participants: List[Participant]


class RoomSummary(BaseModel):
    """Entry of the rooms listing"""
    roomId: str
    subject: str
    desiredSize: int
    status: RoomStatus
    createdAt: datetime
    participants: List[Participant]
