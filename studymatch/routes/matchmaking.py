"""Matchmaking routes: joining and leaving the queue, rebinding connections."""

from typing import List
from fastapi import APIRouter, HTTPException, Depends, Request
import logging

from studymatch.core.exceptions import JoinValidationError, StoreUnavailable
from studymatch.models.member import (
    JoinRequest, JoinResponse, RebindRequest, LeaveRequest, WaitingMemberResponse
)
from studymatch.services.identity import IdentityResolver
from studymatch.services.matchmaking import MatchmakingEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["matchmaking"])

STORE_UNAVAILABLE = "Service temporarily unavailable"


def get_engine(request: Request) -> MatchmakingEngine:
    return request.app.state.engine


def get_resolver(request: Request) -> IdentityResolver:
    return request.app.state.resolver


@router.post("/join", response_model=JoinResponse, response_model_exclude_none=True)
async def join(payload: JoinRequest, engine: MatchmakingEngine = Depends(get_engine)):
    """Join the waiting queue for a subject and group size.

    Answers ``{"status": "waiting"}`` or, when a group forms with this
    client in it, ``{"status": "matched", "roomId": ..., "participants": [...]}``.
    Every matched member also gets a ``matched`` event on its WebSocket.
    """
    logger.info(f"/api/join subject={payload.subject} size={payload.desiredSize} connection={payload.connectionId}")
    try:
        return await engine.join(payload)
    except JoinValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    except Exception as e:
        logger.error(f"Join error: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/rebind-connection")
async def rebind_connection(payload: RebindRequest, resolver: IdentityResolver = Depends(get_resolver)):
    """Attach a client's waiting queue entry to its new connection id."""
    try:
        await resolver.resolve(payload.clientId, payload.newConnectionId)
        return {"ok": True}
    except JoinValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    except Exception as e:
        logger.error(f"Rebind error: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/leave")
async def leave(payload: LeaveRequest, engine: MatchmakingEngine = Depends(get_engine)):
    """Leave the queue. Does nothing for a member already in a room."""
    try:
        removed = await engine.leave(payload.connectionId)
        return {"ok": True, "removed": removed}
    except JoinValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    except Exception as e:
        logger.error(f"Leave error: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/waiting", response_model=List[WaitingMemberResponse])
async def list_waiting(engine: MatchmakingEngine = Depends(get_engine)):
    """List every waiting member, oldest first (debugging aid)."""
    try:
        return await engine.list_waiting()
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
