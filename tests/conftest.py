"""
Pytest configuration and shared fixtures for the workspace collaboration test suite.

This module provides common fixtures and configuration for all tests.
"""

import json
import logging
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from workspace_collab.config.settings import CollabConfig
from workspace_collab.core.models import Identity
from workspace_collab.persistence import Block, Page
from workspace_collab.websockets.core import CollaborationState
from workspace_collab.websockets.server.broadcast import BroadcastEngine
from workspace_collab.websockets.server.lifecycle import LifecycleManager
from workspace_collab.websockets.server.router import MessageRouter


def make_websocket() -> MagicMock:
    """Create a mock WebSocket connection that records what it was sent."""
    websocket = MagicMock()
    websocket.remote_address = ("127.0.0.1", 12345)
    websocket.send = AsyncMock()
    websocket.close = AsyncMock()
    websocket.ping = AsyncMock()
    return websocket


def sent_frames(websocket: MagicMock) -> List[Dict[str, Any]]:
    """Decode every frame written to a mock WebSocket."""
    return [json.loads(call.args[0]) for call in websocket.send.await_args_list]


def frames_of_type(websocket: MagicMock, message_type: str) -> List[Dict[str, Any]]:
    return [frame for frame in sent_frames(websocket) if frame["type"] == message_type]


@pytest.fixture
def received():
    """Frames a mock WebSocket was sent, optionally only those of one type."""

    def _received(websocket, message_type=None):
        if message_type is None:
            return sent_frames(websocket)
        return frames_of_type(websocket, message_type)

    return _received


@pytest.fixture
def mock_config():
    """Create a configuration for testing."""
    return CollabConfig(
        host="127.0.0.1",
        port=8765,
        path="/ws",
        ping_interval=30,
        ping_timeout=10,
        send_timeout=1,
        max_connections=10,
        db_path=":memory:",
        api_enabled=False,
        log_level="DEBUG",
    )


@pytest.fixture
def test_logger():
    return logging.getLogger("workspace_collab.tests")


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection for testing."""
    return make_websocket()


@pytest.fixture
def mock_store():
    """Create a mock document store whose calls succeed by default."""
    store = MagicMock()
    store.create_page = AsyncMock(
        return_value=Page(id=1, workspace_id="w1", title="Untitled", created_by="alice")
    )
    store.update_page = AsyncMock(
        return_value=Page(id=5, workspace_id="w1", title="X", last_edited_by="alice")
    )
    store.delete_page = AsyncMock(return_value=True)
    store.create_block = AsyncMock(
        return_value=Block(id=7, page_id="p1", type="text", content={"text": "hi"})
    )
    store.update_block = AsyncMock(
        return_value=Block(id=7, page_id="p1", type="text", content={"text": "persisted"})
    )
    store.delete_block = AsyncMock(return_value=True)
    store.reorder_blocks = AsyncMock(return_value=True)
    return store


@pytest.fixture
def state():
    return CollaborationState()


@pytest.fixture
def broadcaster(state, test_logger):
    return BroadcastEngine(state, test_logger, send_timeout=1)


@pytest.fixture
def lifecycle(state, broadcaster, test_logger):
    return LifecycleManager(state, broadcaster, test_logger)


@pytest.fixture
def router(state, broadcaster, lifecycle, mock_store, test_logger):
    return MessageRouter(state, broadcaster, lifecycle, mock_store, test_logger)


@pytest.fixture
def connect(lifecycle):
    """Open a connection with a fresh mock transport; returns (connection_id, websocket)."""

    def _connect(user_id=None, user_name=None):
        websocket = make_websocket()
        identity = Identity(user_id, user_name or user_id) if user_id else None
        connection_id = lifecycle.open(websocket, identity)
        return connection_id, websocket

    return _connect


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
