"""
Message processing modules for the collaboration server.

This package contains handlers for the different kinds of client messages.
"""

from .document_message import DocumentMessageHandler
from .presence_message import PresenceMessageHandler
from .session_message import SessionMessageHandler
from .utils import ConnectionUtils

__all__ = [
    "SessionMessageHandler",
    "PresenceMessageHandler",
    "DocumentMessageHandler",
    "ConnectionUtils",
]
