"""
WebSocket collaboration server.

Accepts connections on one path, resolves the handshake identity, runs one
read loop per connection and tears the connection down when the loop ends.
Optionally serves the ops HTTP API next to it.
"""

import asyncio
from http import HTTPStatus
from typing import Callable, Optional
from urllib.parse import urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from workspace_collab.api import create_api_server, create_app
from workspace_collab.config import CollabConfig, config_manager
from workspace_collab.core.models import Identity
from workspace_collab.core.types import EVT_CONNECTION_ESTABLISHED
from workspace_collab.infrastructure import get_environment, setup_logging
from workspace_collab.persistence import DocumentStore, SQLiteDocumentStore
from ..core import CollaborationState
from .broadcast import BroadcastEngine
from .lifecycle import LifecycleManager
from .process_messages import ConnectionUtils
from .protocol import envelope
from .router import MessageRouter

logger = setup_logging(
    component_name="workspace_collab.server",
    log_file="logs/collab_server.log",
)

IdentityResolver = Callable[[Optional[Request]], Optional[Identity]]


class CollaborationServer:
    """WebSocket server for real-time workspace collaboration."""

    def __init__(
        self,
        config: CollabConfig,
        store: DocumentStore,
        identity_resolver: IdentityResolver = ConnectionUtils.identity_from_request,
    ) -> None:
        """Initialize the collaboration server."""
        self.config = config
        self.server: Optional[Server] = None
        self.identity_resolver = identity_resolver

        self.state = CollaborationState()
        self.broadcaster = BroadcastEngine(self.state, logger, send_timeout=config.send_timeout)
        self.lifecycle = LifecycleManager(self.state, self.broadcaster, logger)
        self.router = MessageRouter(self.state, self.broadcaster, self.lifecycle, store, logger)

        self._connection_semaphore = asyncio.Semaphore(config.max_connections)
        self._health_task: Optional[asyncio.Task] = None

    async def start(self) -> bool:
        """Start the collaboration server."""
        try:
            self.server = await serve(
                self._handle_connection,
                self.config.host,
                self.config.port,
                process_request=self._process_request,
                ping_interval=None,  # Pings are sent by the health monitor
                max_size=self.config.max_message_size,
            )
            logger.info(
                f"Collaboration server started on "
                f"ws://{self.config.host}:{self.config.port}{self.config.path}"
            )
            self._health_task = asyncio.create_task(
                ConnectionUtils.health_monitor(
                    self.state,
                    self.lifecycle,
                    self.config.ping_interval,
                    self.config.ping_timeout,
                    logger,
                )
            )
            return True
        except Exception as e:
            logger.error(f"Failed to start collaboration server: {e}", exc_info=True)
            return False

    async def stop(self) -> None:
        """Stop the collaboration server."""
        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Collaboration server stopped")

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """Refuse handshakes on any path other than the configured one."""
        if urlsplit(request.path).path != self.config.path:
            logger.debug(f"Rejected handshake on {request.path}")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not found\n")
        return None

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Handle one client connection from accept to close."""
        client_address = websocket.remote_address

        async with self._connection_semaphore:
            connection_id = self.lifecycle.open(
                websocket, self.identity_resolver(websocket.request)
            )
            logger.debug(f"Connection {connection_id} from {client_address}")
            try:
                connection = self.state.get(connection_id)
                await self.broadcaster.send(
                    connection_id,
                    envelope(
                        EVT_CONNECTION_ESTABLISHED,
                        {
                            "connectionId": connection_id,
                            "userId": connection.user_id,
                            "userName": connection.user_name,
                            "color": connection.color,
                        },
                    ),
                )

                async for message in websocket:
                    if not self.state.registry.is_registered(connection_id):
                        # Evicted while this loop was waiting
                        break
                    await self.router.dispatch(connection_id, message)
            except ConnectionClosed:
                logger.info(f"Connection closed: {client_address}")
            except Exception as e:
                logger.error(
                    f"Error handling connection from {client_address}: {e}",
                    exc_info=True,
                )
            finally:
                await self.lifecycle.close(connection_id)

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "server_running": self.server is not None,
            "max_connections": self.config.max_connections,
            "registry_stats": self.state.get_stats(),
        }


async def main(config: Optional[CollabConfig] = None) -> None:
    """Run the collaboration server, and the ops API when enabled."""
    config = config or config_manager.get_config()
    for component in ("workspace_collab.server", "workspace_collab.persistence"):
        setup_logging(component_name=component, log_level=config.log_level)
    logger.info(f"Starting in {get_environment().value} environment")

    store = SQLiteDocumentStore(config.db_path)
    server = CollaborationServer(config, store)
    api_task: Optional[asyncio.Task] = None

    try:
        if not await server.start():
            return
        logger.info("Collaboration server running. Press Ctrl+C to stop.")
        if config.api_enabled:
            api_server = create_api_server(
                create_app(server), host=config.api_host, port=config.api_port
            )
            api_task = asyncio.create_task(api_server.serve())
            await api_task
        else:
            await asyncio.Future()  # Run forever
    except KeyboardInterrupt:
        logger.info("Shutting down collaboration server...")
    finally:
        if api_task and not api_task.done():
            api_task.cancel()
        await server.stop()


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
