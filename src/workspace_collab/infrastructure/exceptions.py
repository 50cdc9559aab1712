"""
Custom exceptions for the workspace collaboration server.

This module defines all custom exceptions used throughout the system,
providing clear error categorization and handling.
"""

from typing import Optional


class CollabError(Exception):
    """Base exception for all collaboration server errors."""

    pass


class ConfigurationError(CollabError):
    """Raised when there are configuration-related errors."""

    pass


class ProtocolError(CollabError):
    """Raised when an inbound frame cannot be turned into a message."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.request_id = request_id


class MalformedMessageError(ProtocolError):
    """Raised for unparseable frames or frames with missing/invalid fields."""

    pass


class UnknownMessageTypeError(ProtocolError):
    """Raised when a frame declares a type the router does not handle."""

    def __init__(self, message_type: object, request_id: Optional[str] = None):
        super().__init__(f"Unknown message type: {message_type}", request_id)
        self.message_type = message_type


class PersistenceError(CollabError):
    """Raised when the document store fails (as opposed to not finding a row)."""

    pass
