"""
Infrastructure components for the workspace collaboration server.

This package contains infrastructure concerns including:
- Logging configuration and utilities with production controls
- Custom exception definitions
"""

from .logging import setup_logging
from .logging_manager import (
    LoggingManager,
    LogLevel,
    Environment,
    get_environment,
)
from .exceptions import (
    CollabError,
    ConfigurationError,
    ProtocolError,
    MalformedMessageError,
    UnknownMessageTypeError,
    PersistenceError,
)

__all__ = [
    # Logging
    "setup_logging",
    "LoggingManager",
    "LogLevel",
    "Environment",
    "get_environment",
    # Exceptions
    "CollabError",
    "ConfigurationError",
    "ProtocolError",
    "MalformedMessageError",
    "UnknownMessageTypeError",
    "PersistenceError",
]
