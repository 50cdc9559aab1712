"""
Core data model for the workspace collaboration server.

This package contains the connection and presence data structures and the
protocol constants shared by every other component.
"""

from .models import (
    Connection,
    ConnectionSnapshot,
    ConnectionState,
    Cursor,
    Identity,
    PresenceRecord,
    PresenceStatus,
    ScopeKind,
    color_for_user,
    now_ms,
)
from .types import ScopeId

__all__ = [
    "Connection",
    "ConnectionSnapshot",
    "ConnectionState",
    "Cursor",
    "Identity",
    "PresenceRecord",
    "PresenceStatus",
    "ScopeId",
    "ScopeKind",
    "color_for_user",
    "now_ms",
]
