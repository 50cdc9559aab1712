"""
Document message handler: page and block mutations.

Every mutation is request/confirm/broadcast. The document store is called
first and only the entity it returns is relayed, never the client's payload.
The requester gets the confirmed entity back with its requestId; the rest
of the scope gets the same frame without one. A store failure or a
not-found answer produces an error for the requester and nothing else.

The store call is the only suspension point. Connection state read before
it may be stale afterwards, so scopes are resolved again once it returns.
"""

import logging
from typing import Any, Dict, Optional

from ....core.models import ScopeKind
from ....core.types import (
    EVT_BLOCK_CREATED,
    EVT_BLOCK_DELETED,
    EVT_BLOCK_UPDATED,
    EVT_BLOCKS_REORDERED,
    EVT_PAGE_CREATED,
    EVT_PAGE_DELETED,
    EVT_PAGE_UPDATED,
    ScopeId,
)
from ....persistence import DocumentStore
from ...core import CollaborationState
from ..broadcast import BroadcastEngine
from ..protocol import (
    CreateBlockMessage,
    CreatePageMessage,
    DeleteBlockMessage,
    DeletePageMessage,
    ReorderBlocksMessage,
    RequestId,
    UpdateBlockMessage,
    UpdatePageMessage,
    envelope,
)
from .base import MessageHandler


class DocumentMessageHandler(MessageHandler):
    """Handles page and block create/update/delete and block reordering."""

    def __init__(
        self,
        state: CollaborationState,
        broadcaster: BroadcastEngine,
        store: DocumentStore,
        logger: logging.Logger,
    ) -> None:
        super().__init__(state, broadcaster, logger)
        self.store = store

    # Pages

    async def handle_create_page(self, connection_id: str, message: CreatePageMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        workspace_id = self._first(message.workspace_id, connection.workspace_id)
        if workspace_id is None:
            await self._send_error(connection_id, "workspaceId is required", message.request_id)
            return

        try:
            page = await self.store.create_page(
                {
                    "workspace_id": workspace_id,
                    "title": message.title,
                    "icon": message.icon,
                    "parent_id": message.parent_id,
                    "created_by": connection.user_id,
                }
            )
        except Exception as e:
            self.logger.error(f"Error creating page: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to create page", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.WORKSPACE,
            self._first(page.workspace_id, workspace_id),
            envelope(EVT_PAGE_CREATED, page.to_dict()),
            message.request_id,
        )

    async def handle_update_page(self, connection_id: str, message: UpdatePageMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        patch = {**message.patch(), "last_edited_by": connection.user_id}
        try:
            page = await self.store.update_page(message.id, patch)
        except Exception as e:
            self.logger.error(f"Error updating page {message.id}: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to update page", message.request_id)
            return

        if page is None:
            await self._send_error(connection_id, "Page not found", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.WORKSPACE,
            self._first(page.workspace_id, self._current_workspace(connection_id)),
            envelope(EVT_PAGE_UPDATED, page.to_dict()),
            message.request_id,
        )

    async def handle_delete_page(self, connection_id: str, message: DeletePageMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        try:
            deleted = await self.store.delete_page(message.id)
        except Exception as e:
            self.logger.error(f"Error deleting page {message.id}: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to delete page", message.request_id)
            return

        if not deleted:
            await self._send_error(connection_id, "Page not found", message.request_id)
            return

        workspace_id = self._first(
            message.workspace_id,
            self._current_workspace(connection_id),
            connection.workspace_id,
        )
        await self._confirm(
            connection_id,
            ScopeKind.WORKSPACE,
            workspace_id,
            envelope(EVT_PAGE_DELETED, {"id": message.id, "workspaceId": workspace_id}),
            message.request_id,
        )

    # Blocks

    async def handle_create_block(self, connection_id: str, message: CreateBlockMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        page_id = self._first(message.page_id, connection.page_id)
        if page_id is None:
            await self._send_error(connection_id, "pageId is required", message.request_id)
            return

        try:
            block = await self.store.create_block(
                {
                    "page_id": page_id,
                    "type": message.block_type,
                    "content": message.content,
                    "position": message.position,
                    "created_by": connection.user_id,
                }
            )
        except Exception as e:
            self.logger.error(f"Error creating block: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to create block", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.PAGE,
            self._first(block.page_id, page_id),
            envelope(EVT_BLOCK_CREATED, block.to_dict()),
            message.request_id,
        )

    async def handle_update_block(self, connection_id: str, message: UpdateBlockMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        page_id = self._first(message.page_id, connection.page_id)
        if page_id is None:
            await self._send_error(connection_id, "pageId is required", message.request_id)
            return

        patch = {**message.patch(), "last_edited_by": connection.user_id}
        try:
            block = await self.store.update_block(message.id, patch)
        except Exception as e:
            self.logger.error(f"Error updating block {message.id}: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to update block", message.request_id)
            return

        if block is None:
            await self._send_error(connection_id, "Block not found", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.PAGE,
            self._first(block.page_id, page_id),
            envelope(EVT_BLOCK_UPDATED, block.to_dict()),
            message.request_id,
        )

    async def handle_delete_block(self, connection_id: str, message: DeleteBlockMessage) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        page_id = self._first(message.page_id, connection.page_id)
        if page_id is None:
            await self._send_error(connection_id, "pageId is required", message.request_id)
            return

        try:
            deleted = await self.store.delete_block(message.id)
        except Exception as e:
            self.logger.error(f"Error deleting block {message.id}: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to delete block", message.request_id)
            return

        if not deleted:
            await self._send_error(connection_id, "Block not found", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.PAGE,
            page_id,
            envelope(EVT_BLOCK_DELETED, {"id": message.id, "pageId": page_id}),
            message.request_id,
        )

    async def handle_reorder_blocks(
        self, connection_id: str, message: ReorderBlocksMessage
    ) -> None:
        connection = self.state.get(connection_id)
        if connection is None or connection.user_id is None:
            self._ignore(connection_id, message.type, "connection is not identified")
            return

        page_id = self._first(message.page_id, connection.page_id)
        if page_id is None:
            await self._send_error(connection_id, "pageId is required", message.request_id)
            return

        try:
            reordered = await self.store.reorder_blocks(page_id, message.block_ids)
        except Exception as e:
            self.logger.error(f"Error reordering blocks on page {page_id}: {e}", exc_info=True)
            await self._send_error(connection_id, "Failed to reorder blocks", message.request_id)
            return

        if not reordered:
            await self._send_error(connection_id, "Failed to reorder blocks", message.request_id)
            return

        await self._confirm(
            connection_id,
            ScopeKind.PAGE,
            page_id,
            envelope(EVT_BLOCKS_REORDERED, {"pageId": page_id, "blockIds": message.block_ids}),
            message.request_id,
        )

    # Helpers

    @staticmethod
    def _first(*candidates: Optional[ScopeId]) -> Optional[ScopeId]:
        for candidate in candidates:
            if candidate is not None:
                return candidate
        return None

    def _current_workspace(self, connection_id: str) -> Optional[ScopeId]:
        connection = self.state.get(connection_id)
        return connection.workspace_id if connection else None

    async def _confirm(
        self,
        connection_id: str,
        kind: ScopeKind,
        scope_id: Optional[ScopeId],
        frame: Dict[str, Any],
        request_id: Optional[RequestId],
    ) -> None:
        """
        Relay a confirmed mutation.

        Each scope member receives it once: the requester directly, with its
        requestId, everyone else through the scope broadcast.
        """
        if scope_id is not None:
            await self.broadcaster.broadcast(
                kind, scope_id, frame, exclude_connection_id=connection_id
            )
        if self.state.registry.is_registered(connection_id):
            await self.broadcaster.send(
                connection_id,
                {**frame, "requestId": request_id} if request_id is not None else frame,
            )
