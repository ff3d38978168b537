from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum


class JoinStatus(str, Enum):
    WAITING = "waiting"
    MATCHED = "matched"


class Member(BaseModel):
    """Waiting or matched participant as stored in the members collection.

    A member with ``room_id`` set to None is waiting and eligible for
    matching. Once bound to a room the binding never changes.
    """
    id: Optional[str] = Field(None, alias="_id")
    client_id: str
    name: str
    subject: str
    desired_size: int
    connection_id: Optional[str] = None
    room_id: Optional[str] = None
    joined_at: datetime = Field(default_factory=datetime.utcnow)
    waiting_client: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True
    )


class Participant(BaseModel):
    """Entry of a room's frozen participant list"""
    id: str
    name: str
    connectionId: Optional[str] = None

    @classmethod
    def from_member(cls, member: Member) -> "Participant":
        return cls(id=member.id, name=member.name, connectionId=member.connection_id)


class JoinRequest(BaseModel):
    """Request to enter the waiting queue.

    Fields are optional at the schema level so the matchmaking engine can
    report every missing field at once.
    """
    name: Optional[str] = None
    subject: Optional[str] = None
    desiredSize: Optional[int] = None
    connectionId: Optional[str] = None
    clientId: Optional[str] = None


class JoinResponse(BaseModel):
    status: JoinStatus
    roomId: Optional[str] = None
    participants: Optional[list[Participant]] = None


class RebindRequest(BaseModel):
    clientId: Optional[str] = None
    newConnectionId: Optional[str] = None


class LeaveRequest(BaseModel):
    connectionId: Optional[str] = None


class WaitingMemberResponse(BaseModel):
    """Debug view of a waiting member"""
    id: str
    name: str
    subject: str
    desiredSize: int
    connectionId: Optional[str]
    joinedAt: datetime
