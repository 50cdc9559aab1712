"""
FastAPI application for operating the collaboration server.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

if TYPE_CHECKING:
    from ..websockets.server.collab_server import CollaborationServer

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Response model for the health check."""
    status: str
    server_running: bool
    connections: int


class StatsResponse(BaseModel):
    """Response model for session statistics."""
    server_running: bool
    max_connections: int
    total_connections: int
    identified_connections: int
    unique_users: int
    workspaces: int
    pages: int
    cursors: int
    presence: int


def get_collab_server(request: Request):
    """Dependency to get the collaboration server instance."""
    server = getattr(request.app.state, "collab_server", None)
    if server is None:
        raise HTTPException(status_code=500, detail="Collaboration server not initialized")
    return server


def create_app(collab_server: "CollaborationServer") -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        collab_server: The running collaboration server to report on

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Workspace Collaboration API",
        description="Health and statistics for the workspace collaboration server",
        version=API_VERSION,
    )
    app.state.collab_server = collab_server

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "Workspace Collaboration API", "version": API_VERSION}

    @app.get("/health", response_model=HealthResponse)
    async def health_check(server=Depends(get_collab_server)):
        """Health check endpoint."""
        stats = server.get_stats()
        running = stats["server_running"]
        return HealthResponse(
            status="healthy" if running else "stopped",
            server_running=running,
            connections=stats["registry_stats"].get("total_connections", 0),
        )

    @app.get("/stats", response_model=StatsResponse)
    async def get_stats(server=Depends(get_collab_server)):
        """
        Get registry, scope and presence sizes.

        Returns:
            Flattened server statistics
        """
        try:
            stats: Dict[str, Any] = server.get_stats()
            return StatsResponse(
                server_running=stats["server_running"],
                max_connections=stats["max_connections"],
                **stats["registry_stats"],
            )
        except Exception as e:
            logger.error(f"Error collecting stats: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    return app
