"""
Main application module for the study group matchmaking backend.
Configures FastAPI application, middleware, routes, and event handlers.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from studymatch.database.connection import connect_to_mongo, close_mongo_connection
from studymatch.core.relay import SignalingRelay
from studymatch.routes.matchmaking import router as matchmaking_router
from studymatch.routes.rooms import router as rooms_router
from studymatch.routes.signaling import router as signaling_router
from studymatch.services.identity import IdentityResolver
from studymatch.services.matchmaking import MatchmakingEngine
from studymatch.services.rooms import RoomRegistry
from studymatch.config import settings
import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application and its process-wide relay and services."""
    app = FastAPI(
        title="Study Group Finder Backend",
        description="Matches students into study groups and relays WebRTC signaling",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Live state for this process only; lost on restart
    relay = SignalingRelay()
    rooms = RoomRegistry()
    app.state.relay = relay
    app.state.rooms = rooms
    app.state.resolver = IdentityResolver(relay=relay)
    app.state.engine = MatchmakingEngine(rooms=rooms, relay=relay)

    # Register route handlers
    app.include_router(matchmaking_router)
    app.include_router(rooms_router)
    app.include_router(signaling_router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize server resources and establish database connection."""
        logger.info("Starting Study Group Backend Server...")
        await connect_to_mongo()
        logger.info("Server started successfully!")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close live connections and the database connection on server shutdown."""
        logger.info("Shutting down Study Group Backend Server...")
        await relay.close()
        await close_mongo_connection()
        logger.info("Server shutdown complete!")

    @app.get("/")
    async def root():
        """Root endpoint providing basic API information."""
        return {
            "message": "Study Group Finder server running",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring service status."""
        return {
            "status": "healthy",
            "connections": len(relay.connections),
            "rooms_with_presence": len(relay.rooms)
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "studymatch.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
