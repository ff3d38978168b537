"""Room lookup routes."""

from typing import List
from fastapi import APIRouter, HTTPException, Depends, Query, Request
import logging

from studymatch.config import settings
from studymatch.core.exceptions import RoomNotFound, StoreUnavailable
from studymatch.models.room import RoomResponse, RoomSummary
from studymatch.services.rooms import RoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.rooms


@router.get("/room/{room_id}", response_model=RoomResponse)
async def get_room(room_id: str, registry: RoomRegistry = Depends(get_registry)):
    """Return a room and its participants as fixed at formation.

    Used by clients that refreshed the page or missed the ``matched`` push.
    """
    try:
        return await registry.get_room(room_id)
    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")


@router.get("/rooms", response_model=List[RoomSummary])
async def list_rooms(
    limit: int = Query(settings.ROOM_LIST_LIMIT, ge=1, le=500),
    registry: RoomRegistry = Depends(get_registry)
):
    """List recently formed rooms, newest first."""
    try:
        return await registry.list_rooms(limit)
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
