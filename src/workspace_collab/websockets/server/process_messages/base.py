"""
Shared plumbing for the message handlers.
"""

import logging
from typing import Any, Optional

from ....core.types import EVT_ERROR
from ...core import CollaborationState
from ..broadcast import BroadcastEngine
from ..protocol import RequestId, envelope


class MessageHandler:
    """Base for handlers that answer on the connection that sent the message."""

    def __init__(
        self,
        state: CollaborationState,
        broadcaster: BroadcastEngine,
        logger: logging.Logger,
    ) -> None:
        self.state = state
        self.broadcaster = broadcaster
        self.logger = logger

    async def _reply(
        self,
        connection_id: str,
        message_type: str,
        data: Any = None,
        request_id: Optional[RequestId] = None,
    ) -> bool:
        return await self.broadcaster.send(
            connection_id, envelope(message_type, data, request_id=request_id)
        )

    async def _send_error(
        self,
        connection_id: str,
        error_message: str,
        request_id: Optional[RequestId] = None,
    ) -> None:
        """Send an error frame; the connection stays open."""
        await self.broadcaster.send(
            connection_id, envelope(EVT_ERROR, error=error_message, request_id=request_id)
        )

    def _ignore(self, connection_id: str, message_type: str, reason: str) -> None:
        self.logger.debug(f"Ignoring {message_type} from {connection_id}: {reason}")
