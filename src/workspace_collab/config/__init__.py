"""
Configuration management for the workspace collaboration server.

This package provides configuration management including:
- The CollabConfig data structure
- Environment variable and .env loading
- Default value management
"""

from .settings import CollabConfig, CollabConfigManager, config_manager

__all__ = [
    "CollabConfig",
    "CollabConfigManager",
    "config_manager",
]
