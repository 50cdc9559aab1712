"""
WebSocket server implementation for workspace collaboration.

This module contains the main CollaborationServer class and related components.
"""

from .broadcast import BroadcastEngine
from .collab_server import CollaborationServer
from .lifecycle import LifecycleManager
from .router import MessageRouter

__all__ = [
    "BroadcastEngine",
    "CollaborationServer",
    "LifecycleManager",
    "MessageRouter",
]
