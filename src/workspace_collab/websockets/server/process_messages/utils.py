"""
Utility functions for connection management.

Handshake identity extraction and the liveness probe that evicts
connections whose peer stopped answering pings.
"""

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

from websockets.http11 import Request

from ....core.models import Identity
from ....core.types import HANDSHAKE_USER_ID, HANDSHAKE_USER_NAME
from ...core import CollaborationState
from ..lifecycle import LifecycleManager


class ConnectionUtils:
    """Utility functions for connection management."""

    @staticmethod
    def identity_from_request(request: Optional[Request]) -> Optional[Identity]:
        """
        Read the pre-authenticated identity from the handshake query string.

        Returns None when the handshake carries no userId; such connections
        stay anonymous until join_workspace identifies them.
        """
        if request is None:
            return None
        query = parse_qs(urlsplit(request.path).query)
        user_ids = query.get(HANDSHAKE_USER_ID)
        if not user_ids or not user_ids[0]:
            return None
        user_id = user_ids[0]
        user_name = query.get(HANDSHAKE_USER_NAME, [user_id])[0] or user_id
        return Identity(user_id=user_id, user_name=user_name)

    @staticmethod
    async def probe(transport: Any, ping_timeout: float) -> bool:
        """Ping a transport and wait for the pong; False if none comes back in time."""
        try:
            pong_waiter = await transport.ping()
            await asyncio.wait_for(pong_waiter, timeout=ping_timeout)
            return True
        except Exception:
            return False

    @staticmethod
    async def health_monitor(
        state: CollaborationState,
        lifecycle: LifecycleManager,
        ping_interval: float,
        ping_timeout: float,
        logger: logging.Logger,
    ) -> None:
        """Ping every connection periodically and evict the silent ones."""
        while True:
            await asyncio.sleep(ping_interval)

            targets = []
            for connection_id in state.registry.connection_ids():
                transport = state.registry.get_transport(connection_id)
                if transport is not None:
                    targets.append((connection_id, transport))

            results = await asyncio.gather(
                *(ConnectionUtils.probe(transport, ping_timeout) for _, transport in targets)
            )
            for (connection_id, _), alive in zip(targets, results):
                if alive or not state.registry.is_registered(connection_id):
                    continue
                logger.warning(f"Connection {connection_id} missed its pong, evicting")
                await lifecycle.evict(connection_id)
