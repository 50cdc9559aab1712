"""
Scope fan-out for the collaboration server.

Delivery is best-effort and at most once per live connection. A connection
whose send fails or stalls past the send timeout is evicted as if it had
disconnected; nothing is retried and no error reaches the caller.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from websockets.exceptions import ConnectionClosed

from ...core.models import ScopeKind
from ...core.types import ScopeId
from ..core import CollaborationState
from .protocol import encode

EvictHandler = Callable[[str], Awaitable[Any]]


class BroadcastEngine:
    """Writes frames to single connections or to every member of a scope."""

    def __init__(
        self,
        state: CollaborationState,
        logger: logging.Logger,
        send_timeout: float = 5.0,
    ) -> None:
        self.state = state
        self.logger = logger
        self.send_timeout = send_timeout
        self._evict_handler: Optional[EvictHandler] = None

    def set_evict_handler(self, handler: EvictHandler) -> None:
        """Install the callback that tears down a connection whose send failed."""
        self._evict_handler = handler

    async def broadcast(
        self,
        kind: ScopeKind,
        scope_id: ScopeId,
        frame: Dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        """
        Send a frame to every member of a scope, optionally skipping one.

        Returns the number of connections that accepted the frame.
        """
        recipients = [
            connection_id
            for connection_id in self.state.members_of(kind, scope_id)
            if connection_id != exclude_connection_id
        ]
        if not recipients:
            self.logger.debug(f"No recipients in {kind.value} {scope_id} for {frame['type']}")
            return 0

        message = encode(frame)
        results = await asyncio.gather(
            *(self._deliver(connection_id, message) for connection_id in recipients)
        )

        failed: List[str] = [
            connection_id
            for connection_id, delivered in zip(recipients, results)
            if delivered is False
        ]
        for connection_id in failed:
            await self._evict(connection_id)

        return sum(1 for delivered in results if delivered)

    async def send(self, connection_id: str, frame: Dict[str, Any]) -> bool:
        """Send a frame to one connection; a failed send evicts it."""
        delivered = await self._deliver(connection_id, encode(frame))
        if delivered is False:
            await self._evict(connection_id)
        return bool(delivered)

    async def _deliver(self, connection_id: str, message: str) -> Optional[bool]:
        """
        Write one frame.

        Returns True on success, False on a transport failure, and None when
        the connection is no longer registered.
        """
        transport = self.state.registry.get_transport(connection_id)
        if transport is None:
            return None
        try:
            await asyncio.wait_for(transport.send(message), timeout=self.send_timeout)
            return True
        except ConnectionClosed:
            self.logger.debug(f"Connection {connection_id} closed during send")
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Send to {connection_id} stalled for more than {self.send_timeout}s"
            )
        except Exception as e:
            self.logger.error(f"Error sending to {connection_id}: {e}")
        return False

    async def _evict(self, connection_id: str) -> None:
        if not self.state.registry.is_registered(connection_id):
            return
        if self._evict_handler is not None:
            await self._evict_handler(connection_id)
        else:
            self.state.disconnect(connection_id)
