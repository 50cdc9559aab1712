"""
Connection registry for the collaboration server.

This module owns every live connection and its identity/scope attributes.
Scope membership and presence live elsewhere and refer to connections by id.
"""

import time
from typing import Any, Dict, Iterator, Optional

from ...core.models import Connection, ConnectionSnapshot
from ...core.types import ScopeId

# Distinguishes "leave this field alone" from "clear it" in set_scope
_UNSET: Any = object()


class ConnectionRegistry:
    """Live connections keyed by connection id, with O(1) lookups."""

    def __init__(self) -> None:
        # Map connection_id -> Connection
        self._connections: Dict[str, Connection] = {}

    def register(self, connection_id: str, transport: Any) -> None:
        """Register a freshly accepted connection with empty identity."""
        if connection_id in self._connections:
            raise ValueError(f"Connection {connection_id} is already registered")
        self._connections[connection_id] = Connection(
            connection_id=connection_id, transport=transport
        )

    def identify(
        self, connection_id: str, user_id: str, user_name: str, color: str
    ) -> None:
        """Attach user identity. Unknown ids are ignored (already closed)."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        connection.user_id = user_id
        connection.user_name = user_name
        connection.color = color

    def set_scope(
        self,
        connection_id: str,
        workspace_id: Optional[ScopeId] = _UNSET,
        page_id: Optional[ScopeId] = _UNSET,
    ) -> None:
        """Update scope fields; pass None to clear, omit to keep."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        if workspace_id is not _UNSET:
            connection.workspace_id = workspace_id
        if page_id is not _UNSET:
            connection.page_id = page_id

    def touch(self, connection_id: str) -> None:
        """Record inbound activity on a connection."""
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.last_activity = time.time()

    def remove(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """Remove a connection and return its last known snapshot."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None
        return connection.snapshot()

    def get(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """Get a snapshot of a connection - O(1) lookup."""
        connection = self._connections.get(connection_id)
        return connection.snapshot() if connection else None

    def get_transport(self, connection_id: str) -> Optional[Any]:
        """Get the transport handle for a connection - O(1) lookup."""
        connection = self._connections.get(connection_id)
        return connection.transport if connection else None

    def get_last_activity(self, connection_id: str) -> Optional[float]:
        connection = self._connections.get(connection_id)
        return connection.last_activity if connection else None

    def is_registered(self, connection_id: str) -> bool:
        """Check if a connection is registered."""
        return connection_id in self._connections

    def connection_ids(self) -> Iterator[str]:
        """Iterate over a copy of the registered ids."""
        return iter(list(self._connections))

    def __len__(self) -> int:
        return len(self._connections)

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        identified = sum(1 for c in self._connections.values() if c.user_id)
        return {
            "total_connections": len(self._connections),
            "identified_connections": identified,
            "unique_users": len(
                {c.user_id for c in self._connections.values() if c.user_id}
            ),
        }
