"""
Shared session state for the collaboration server.

This package contains the connection registry, the scope index, the
ephemeral presence store and the object that keeps them consistent.
"""

from .connection_manager import ConnectionRegistry
from .presence_store import PresenceStore
from .scope_index import ScopeIndex
from .state import CollaborationState

__all__ = [
    "CollaborationState",
    "ConnectionRegistry",
    "PresenceStore",
    "ScopeIndex",
]
