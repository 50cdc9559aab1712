"""
Presence message handler: cursors, typing and unsaved block edits.

These messages only touch ephemeral state, or none at all, and are relayed
to the rest of the scope without acknowledgement.
"""

from ....core.models import Cursor, PresenceRecord, PresenceStatus, ScopeKind, now_ms
from ....core.types import EVT_BLOCK_EDIT, EVT_CURSOR_HIDE, EVT_CURSOR_UPDATE, EVT_USER_TYPING
from ..protocol import (
    BlockEditMessage,
    CursorHideMessage,
    CursorMoveMessage,
    TypingMessage,
    envelope,
)
from .base import MessageHandler


class PresenceMessageHandler(MessageHandler):
    """Handles live relays that never reach the document store."""

    async def handle_cursor_move(self, connection_id: str, message: CursorMoveMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.page_id is None:
            self._ignore(connection_id, message.type, "not on a page")
            return

        cursor = Cursor(
            user_id=connection.user_id,
            page_id=connection.page_id,
            x=message.x,
            y=message.y,
            user_name=connection.user_name,
            color=connection.color,
            block_id=message.block_id,
            selection=message.selection,
        )
        self.state.presence.set_cursor(connection.user_id, cursor)

        await self.broadcaster.broadcast(
            ScopeKind.PAGE,
            connection.page_id,
            envelope(EVT_CURSOR_UPDATE, cursor.to_dict()),
            exclude_connection_id=connection_id,
        )

    async def handle_cursor_hide(self, connection_id: str, message: CursorHideMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.page_id is None:
            self._ignore(connection_id, message.type, "not on a page")
            return

        # A cursor the same user left on another page belongs to another tab
        cursor = self.state.presence.get_cursor(connection.user_id)
        if cursor is not None and cursor.page_id == connection.page_id:
            self.state.presence.clear_cursor(connection.user_id)

        await self.broadcaster.broadcast(
            ScopeKind.PAGE,
            connection.page_id,
            envelope(
                EVT_CURSOR_HIDE,
                {
                    "userId": connection.user_id,
                    "pageId": connection.page_id,
                    "timestamp": now_ms(),
                },
            ),
            exclude_connection_id=connection_id,
        )

    async def handle_typing(self, connection_id: str, message: TypingMessage) -> None:
        """
        Relay a typing indicator.

        On a page it also updates the user's presence status and goes to the
        page; otherwise it goes to the whole workspace.
        """
        connection = self.state.get(connection_id)
        if connection is None or (connection.workspace_id is None and connection.page_id is None):
            self._ignore(connection_id, message.type, "not in a workspace or page")
            return

        if connection.page_id is not None:
            status = PresenceStatus.TYPING if message.is_typing else PresenceStatus.ACTIVE
            record = self.state.presence.get_presence(connection.user_id)
            if record is not None and record.page_id == connection.page_id:
                self.state.presence.set_status(connection.user_id, status)
            else:
                self.state.presence.set_presence(
                    connection.user_id,
                    PresenceRecord(
                        user_id=connection.user_id,
                        page_id=connection.page_id,
                        status=status,
                        user_name=connection.user_name,
                    ),
                )
            kind, scope_id = ScopeKind.PAGE, connection.page_id
        else:
            kind, scope_id = ScopeKind.WORKSPACE, connection.workspace_id

        await self.broadcaster.broadcast(
            kind,
            scope_id,
            envelope(
                EVT_USER_TYPING,
                {
                    "userId": connection.user_id,
                    "userName": connection.user_name,
                    "userColor": connection.color,
                    "workspaceId": connection.workspace_id,
                    "pageId": connection.page_id,
                    "blockId": message.block_id,
                    "isTyping": message.is_typing,
                    "timestamp": now_ms(),
                },
            ),
            exclude_connection_id=connection_id,
        )

    async def handle_block_edit(self, connection_id: str, message: BlockEditMessage) -> None:
        """Relay unsaved block content to the rest of the page."""
        connection = self.state.get(connection_id)
        if connection is None or connection.page_id is None:
            self._ignore(connection_id, message.type, "not on a page")
            return

        await self.broadcaster.broadcast(
            ScopeKind.PAGE,
            connection.page_id,
            envelope(
                EVT_BLOCK_EDIT,
                {
                    "userId": connection.user_id,
                    "userName": connection.user_name,
                    "blockId": message.block_id,
                    "content": message.content,
                    "timestamp": now_ms(),
                },
            ),
            exclude_connection_id=connection_id,
        )
