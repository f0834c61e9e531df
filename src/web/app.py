"""
FastAPI application factory for the Pawvision control surface.

Routes:
- /api/* -> REST control API (mode, capture, recording, camera)
- /api/camera/live.mjpg -> filtered preview stream
"""

from __future__ import annotations

from fastapi import FastAPI

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Pawvision",
        version="0.1.0",
        description="Simulated animal-vision camera",
    )
    app.include_router(api.router, prefix="/api")
    return app


# Exported application instance for uvicorn
app = create_app()
