"""
Workspace Collab - real-time collaboration session layer for shared workspaces.

This package keeps track of who is connected to which workspace and page,
relays cursors, presence and typing indicators between them, and fans out
confirmed page and block mutations to everyone looking at the same scope.

Architecture:
- Core: Connection, cursor and presence data model and protocol constants
- WebSockets: Session state, message routing, broadcast and the server
- Persistence: Document store protocol and the SQLite implementation
- API: Health and statistics endpoints
- Config: Configuration management
- Infrastructure: Logging and exceptions
"""

__version__ = "1.0.0"
__author__ = "Workspace Collab Team"

# Core components
from .core import ConnectionSnapshot, Cursor, Identity, PresenceRecord, ScopeKind

# Session state
from .websockets.core import CollaborationState

# Networking components
from .websockets.server import CollaborationServer

# Persistence
from .persistence import DocumentStore, SQLiteDocumentStore

# Configuration
from .config import CollabConfig, CollabConfigManager, config_manager

# Infrastructure
from .infrastructure.logging import setup_logging
from .infrastructure.exceptions import (
    CollabError,
    ConfigurationError,
    ProtocolError,
    PersistenceError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Core components
    "ConnectionSnapshot",
    "Cursor",
    "Identity",
    "PresenceRecord",
    "ScopeKind",
    # Session state
    "CollaborationState",
    # Networking components
    "CollaborationServer",
    # Persistence
    "DocumentStore",
    "SQLiteDocumentStore",
    # Configuration
    "CollabConfig",
    "CollabConfigManager",
    "config_manager",
    # Infrastructure
    "setup_logging",
    "CollabError",
    "ConfigurationError",
    "ProtocolError",
    "PersistenceError",
]
