"""
API server runner for the ops endpoints.
"""

import logging

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def create_api_server(
    app: FastAPI,
    host: str = "0.0.0.0",
    port: int = 8000,
) -> uvicorn.Server:
    """
    Build a uvicorn server for the ops API.

    The caller runs ``serve()`` on the same event loop as the websocket
    server so the API reads live state.

    Args:
        app: FastAPI application from create_app
        host: Host to bind to
        port: Port to bind to
    """
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    logger.info(f"Ops API configured on {host}:{port}")
    return uvicorn.Server(config)
