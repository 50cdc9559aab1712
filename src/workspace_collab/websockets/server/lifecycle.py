"""
Connection lifecycle: accept, scope departures and teardown.

Every path that takes a connection out of a scope (explicit leave, switching
page, transport close, eviction after a failed send) ends up here so that
``user_left`` is announced exactly once per scope.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional, Set

from ...core.models import ConnectionSnapshot, Identity, ScopeKind, now_ms
from ...core.types import EVT_USER_LEFT
from ..core import CollaborationState
from .broadcast import BroadcastEngine
from .protocol import envelope


class LifecycleManager:
    """Registers connections on accept and tears them down on close."""

    def __init__(
        self,
        state: CollaborationState,
        broadcaster: BroadcastEngine,
        logger: logging.Logger,
    ) -> None:
        self.state = state
        self.broadcaster = broadcaster
        self.logger = logger
        self._closing: Set[asyncio.Task] = set()
        broadcaster.set_evict_handler(self.evict)

    def open(self, transport: Any, identity: Optional[Identity] = None) -> str:
        """Register a new transport and return its fresh connection id."""
        connection_id = uuid.uuid4().hex
        self.state.open(connection_id, transport)
        if identity is not None:
            self.state.identify(connection_id, identity)
        self.logger.info(
            f"Connection opened: {connection_id}"
            + (f" (user {identity.user_id})" if identity else "")
        )
        return connection_id

    async def close(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """
        Tear down a connection and announce its departure.

        Safe to call more than once; only the first call broadcasts.
        """
        snapshot = self.state.disconnect(connection_id)
        if snapshot is None:
            return None
        self.logger.info(f"Connection closed: {connection_id}")
        await self._announce_departure(snapshot, snapshot.workspace_id, snapshot.page_id)
        return snapshot

    async def evict(self, connection_id: str) -> None:
        """Close a connection the server gave up on, including its transport."""
        transport = self.state.registry.get_transport(connection_id)
        snapshot = await self.close(connection_id)
        if snapshot is not None:
            self.logger.warning(f"Evicted unresponsive connection {connection_id}")
        if transport is not None:
            task = asyncio.create_task(self._close_transport(connection_id, transport))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def leave_page(self, connection_id: str) -> bool:
        """Take a connection off its page and tell the page."""
        before = self.state.leave_page(connection_id)
        if before is None:
            return False
        await self._announce_departure(before, None, before.page_id)
        return True

    async def leave_workspace(self, connection_id: str) -> bool:
        """Take a connection out of its workspace (and page) and tell both."""
        before = self.state.leave_workspace(connection_id)
        if before is None:
            return False
        await self._announce_departure(before, before.workspace_id, before.page_id)
        return True

    async def _announce_departure(
        self,
        snapshot: ConnectionSnapshot,
        workspace_id: Optional[Any],
        page_id: Optional[Any],
    ) -> None:
        if snapshot.user_id is None:
            return
        if page_id is not None:
            await self.broadcaster.broadcast(
                ScopeKind.PAGE,
                page_id,
                envelope(
                    EVT_USER_LEFT,
                    {**snapshot.user_payload(), "pageId": page_id, "timestamp": now_ms()},
                ),
                exclude_connection_id=snapshot.connection_id,
            )
        if workspace_id is not None:
            await self.broadcaster.broadcast(
                ScopeKind.WORKSPACE,
                workspace_id,
                envelope(
                    EVT_USER_LEFT,
                    {
                        **snapshot.user_payload(),
                        "workspaceId": workspace_id,
                        "timestamp": now_ms(),
                    },
                ),
                exclude_connection_id=snapshot.connection_id,
            )

    async def _close_transport(self, connection_id: str, transport: Any) -> None:
        try:
            await transport.close()
        except Exception as e:
            self.logger.debug(f"Error closing transport for {connection_id}: {e}")
