#!/usr/bin/env python3
"""
Launches the study group backend server.
"""

import uvicorn
from studymatch.config import settings

if __name__ == "__main__":
    print("Starting Study Group Backend Server...")
    print(f"Server will run on: http://{settings.HOST}:{settings.PORT}")
    print(f"API Documentation: http://{settings.HOST}:{settings.PORT}/docs")
    print(f"Signaling WebSocket: ws://{settings.HOST}:{settings.PORT}/ws")
    print(f"Database: {settings.DATABASE_NAME}")

    uvicorn.run(
        "studymatch.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
