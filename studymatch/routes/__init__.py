"""
Route handlers for the study group API endpoints.
"""

from .matchmaking import router as matchmaking_router
from .rooms import router as rooms_router
from .signaling import router as signaling_router

__all__ = [
    "matchmaking_router",
    "rooms_router",
    "signaling_router"
]
