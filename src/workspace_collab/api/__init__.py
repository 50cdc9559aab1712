"""
REST API module for the workspace collaboration server.

This module provides health and statistics endpoints for operators.
"""

from .app import create_app
from .server import create_api_server

__all__ = ["create_app", "create_api_server"]
