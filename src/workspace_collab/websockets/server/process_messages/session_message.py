"""
Session message handler: joining and leaving workspaces and pages.
"""

import logging

from ....core.models import Identity, ScopeKind, now_ms
from ....core.types import (
    EVT_HEARTBEAT_RESPONSE,
    EVT_PAGE_SNAPSHOT,
    EVT_USER_JOINED,
    EVT_WORKSPACE_JOINED,
)
from ...core import CollaborationState
from ..broadcast import BroadcastEngine
from ..lifecycle import LifecycleManager
from ..protocol import (
    HeartbeatMessage,
    JoinPageMessage,
    JoinWorkspaceMessage,
    LeavePageMessage,
    LeaveWorkspaceMessage,
    envelope,
)
from .base import MessageHandler


class SessionMessageHandler(MessageHandler):
    """Handles scope membership and heartbeats."""

    def __init__(
        self,
        state: CollaborationState,
        broadcaster: BroadcastEngine,
        lifecycle: LifecycleManager,
        logger: logging.Logger,
    ) -> None:
        super().__init__(state, broadcaster, logger)
        self.lifecycle = lifecycle

    async def handle_join_workspace(
        self, connection_id: str, message: JoinWorkspaceMessage
    ) -> None:
        """Enter a workspace, announce the user and acknowledge with who is online."""
        connection = self.state.get(connection_id)
        if connection is None:
            return
        if connection.workspace_id is not None:
            self._ignore(connection_id, message.type, "already in a workspace")
            return

        if connection.user_id is None:
            if not message.user_id:
                await self._send_error(
                    connection_id, "userId is required to join a workspace", message.request_id
                )
                return
            self.state.identify(
                connection_id, Identity(message.user_id, message.user_name or message.user_id)
            )

        connection = self.state.join_workspace(connection_id, message.workspace_id)
        if connection is None:
            return
        workspace_id = message.workspace_id
        self.logger.info(f"User {connection.user_id} joined workspace {workspace_id}")

        await self._reply(
            connection_id,
            EVT_WORKSPACE_JOINED,
            {
                **connection.user_payload(),
                "workspaceId": workspace_id,
                "users": list(self.state.workspace_users(workspace_id).values()),
            },
            message.request_id,
        )
        if not self.state.registry.is_registered(connection_id):
            # Evicted by the failed ack; its departure was already announced
            return
        await self.broadcaster.broadcast(
            ScopeKind.WORKSPACE,
            workspace_id,
            envelope(
                EVT_USER_JOINED,
                {**connection.user_payload(), "workspaceId": workspace_id, "timestamp": now_ms()},
            ),
            exclude_connection_id=connection_id,
        )

    async def handle_leave_workspace(
        self, connection_id: str, message: LeaveWorkspaceMessage
    ) -> None:
        if not await self.lifecycle.leave_workspace(connection_id):
            self._ignore(connection_id, message.type, "not in a workspace")

    async def handle_join_page(self, connection_id: str, message: JoinPageMessage) -> None:
        """
        Enter a page and send back its current cursors and presence.

        Switching pages announces the departure from the previous one first.
        Re-joining the current page only resends the snapshot.
        """
        connection = self.state.get(connection_id)
        if connection is None:
            return
        if connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        page_id = message.page_id
        if connection.page_id != page_id:
            if connection.page_id is not None:
                await self.lifecycle.leave_page(connection_id)
            connection = self.state.join_page(connection_id, page_id)
            if connection is None:
                return
            self.logger.debug(f"User {connection.user_id} joined page {page_id}")
            await self.broadcaster.broadcast(
                ScopeKind.PAGE,
                page_id,
                envelope(
                    EVT_USER_JOINED,
                    {**connection.user_payload(), "pageId": page_id, "timestamp": now_ms()},
                ),
                exclude_connection_id=connection_id,
            )

        presence = self.state.presence
        await self._reply(
            connection_id,
            EVT_PAGE_SNAPSHOT,
            {
                "pageId": page_id,
                "cursors": [
                    cursor.to_dict()
                    for cursor in presence.cursors_for_page(
                        page_id, exclude_user_id=connection.user_id
                    )
                ],
                "presence": [record.to_dict() for record in presence.presence_for_page(page_id)],
            },
            message.request_id,
        )

    async def handle_leave_page(self, connection_id: str, message: LeavePageMessage) -> None:
        if not await self.lifecycle.leave_page(connection_id):
            self._ignore(connection_id, message.type, "not on a page")

    async def handle_heartbeat(self, connection_id: str, message: HeartbeatMessage) -> None:
        await self._reply(
            connection_id,
            EVT_HEARTBEAT_RESPONSE,
            {"timestamp": now_ms()},
            message.request_id,
        )
