"""
Message router for the collaboration server.

Decodes each inbound frame into its typed message and hands it to the
handler registered for that message class. Errors never escape: they are
reported to the offending connection, which stays open.
"""

import logging
from typing import Awaitable, Callable, Dict, Union

from ...infrastructure.exceptions import ProtocolError, UnknownMessageTypeError
from ...persistence import DocumentStore
from ..core import CollaborationState
from .broadcast import BroadcastEngine
from .lifecycle import LifecycleManager
from .process_messages import (
    DocumentMessageHandler,
    PresenceMessageHandler,
    SessionMessageHandler,
)
from .process_messages.base import MessageHandler
from .protocol import (
    BlockEditMessage,
    CreateBlockMessage,
    CreatePageMessage,
    CursorHideMessage,
    CursorMoveMessage,
    DeleteBlockMessage,
    DeletePageMessage,
    HeartbeatMessage,
    InboundMessage,
    JoinPageMessage,
    JoinWorkspaceMessage,
    LeavePageMessage,
    LeaveWorkspaceMessage,
    MESSAGE_MODELS,
    ReorderBlocksMessage,
    TypingMessage,
    UpdateBlockMessage,
    UpdatePageMessage,
    parse_client_message,
)

Handler = Callable[[str, InboundMessage], Awaitable[None]]


class MessageRouter(MessageHandler):
    """Routes decoded client messages to their handlers."""

    def __init__(
        self,
        state: CollaborationState,
        broadcaster: BroadcastEngine,
        lifecycle: LifecycleManager,
        store: DocumentStore,
        logger: logging.Logger,
    ) -> None:
        super().__init__(state, broadcaster, logger)
        self.session_handler = SessionMessageHandler(state, broadcaster, lifecycle, logger)
        self.presence_handler = PresenceMessageHandler(state, broadcaster, logger)
        self.document_handler = DocumentMessageHandler(state, broadcaster, store, logger)

        self._handlers: Dict[type, Handler] = {
            JoinWorkspaceMessage: self.session_handler.handle_join_workspace,
            LeaveWorkspaceMessage: self.session_handler.handle_leave_workspace,
            JoinPageMessage: self.session_handler.handle_join_page,
            LeavePageMessage: self.session_handler.handle_leave_page,
            HeartbeatMessage: self.session_handler.handle_heartbeat,
            CursorMoveMessage: self.presence_handler.handle_cursor_move,
            CursorHideMessage: self.presence_handler.handle_cursor_hide,
            TypingMessage: self.presence_handler.handle_typing,
            BlockEditMessage: self.presence_handler.handle_block_edit,
            CreatePageMessage: self.document_handler.handle_create_page,
            UpdatePageMessage: self.document_handler.handle_update_page,
            DeletePageMessage: self.document_handler.handle_delete_page,
            CreateBlockMessage: self.document_handler.handle_create_block,
            UpdateBlockMessage: self.document_handler.handle_update_block,
            DeleteBlockMessage: self.document_handler.handle_delete_block,
            ReorderBlocksMessage: self.document_handler.handle_reorder_blocks,
        }
        missing = set(MESSAGE_MODELS) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for {sorted(m.__name__ for m in missing)}")

    async def dispatch(self, connection_id: str, raw: Union[str, bytes]) -> None:
        """Process one inbound frame from a connection."""
        if not self.state.registry.is_registered(connection_id):
            return
        self.state.registry.touch(connection_id)

        if isinstance(raw, bytes):
            await self._send_error(connection_id, "Binary frames are not supported")
            return

        try:
            message = parse_client_message(raw)
        except UnknownMessageTypeError as e:
            self.logger.warning(f"Unknown message type from {connection_id}: {e.message_type}")
            await self._send_error(connection_id, str(e), e.request_id)
            return
        except ProtocolError as e:
            self.logger.warning(f"Malformed message from {connection_id}: {e}")
            await self._send_error(connection_id, str(e), e.request_id)
            return

        handler = self._handlers[type(message)]
        try:
            await handler(connection_id, message)
        except Exception as e:
            self.logger.error(
                f"Error processing {message.type} from {connection_id}: {e}", exc_info=True
            )
            if self.state.registry.is_registered(connection_id):
                await self._send_error(
                    connection_id, "Internal server error", message.request_id
                )
