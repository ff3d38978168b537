"""
Service layer module containing matchmaking, room and signaling logic.
"""

from .identity import IdentityResolver
from .matchmaking import MatchmakingEngine
from .rooms import RoomRegistry
from .signaling import SignalingSession

__all__ = ["IdentityResolver", "MatchmakingEngine", "RoomRegistry", "SignalingSession"]
