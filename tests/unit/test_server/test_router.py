"""
Unit tests for the MessageRouter and its handlers.

Connections are driven through the router exactly as the server's read loop
would drive them, with mock transports recording every frame sent.
"""

import json
from unittest.mock import AsyncMock

import pytest
from websockets.exceptions import ConnectionClosedError

from workspace_collab.core.models import PresenceStatus, ScopeKind
from workspace_collab.infrastructure.exceptions import PersistenceError
from workspace_collab.persistence import Block, Page
from workspace_collab.websockets.server.protocol import HeartbeatMessage


async def send(router, connection_id, **frame):
    await router.dispatch(connection_id, json.dumps(frame))


@pytest.fixture
def in_page(router, connect):
    """Open a connection, join it to a workspace and a page, then forget its frames."""

    async def _in_page(user_id, workspace_id="w1", page_id="p1"):
        connection_id, websocket = connect(user_id)
        await send(router, connection_id, type="join_workspace", workspaceId=workspace_id)
        if page_id is not None:
            await send(router, connection_id, type="join_page", pageId=page_id)
        return connection_id, websocket

    return _in_page


def reset(*websockets):
    for websocket in websockets:
        websocket.send.reset_mock()


class TestSessionMessages:
    """Joining and leaving workspaces and pages."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_workspace_acks_and_announces(self, router, connect, received):
        c1, ws1 = connect("alice")
        c2, ws2 = connect("bob")
        await send(router, c1, type="join_workspace", workspaceId="w1")

        await send(router, c2, type="join_workspace", workspaceId="w1", requestId="r1")

        ack = received(ws2, "workspace_joined")[0]
        assert ack["requestId"] == "r1"
        assert ack["data"]["workspaceId"] == "w1"
        assert {user["userId"] for user in ack["data"]["users"]} == {"alice", "bob"}
        joined = received(ws1, "user_joined")
        assert len(joined) == 1
        assert joined[0]["data"]["userId"] == "bob"
        assert "requestId" not in joined[0]
        assert received(ws2, "user_joined") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_workspace_evicted_by_failed_ack_is_not_announced(
        self, router, state, connect, received
    ):
        c1, ws1 = connect("alice")
        c2, ws2 = connect("bob")
        await send(router, c1, type="join_workspace", workspaceId="w1")
        ws2.send.side_effect = ConnectionClosedError(None, None)

        await send(router, c2, type="join_workspace", workspaceId="w1")

        assert not state.registry.is_registered(c2)
        assert [frame["type"] for frame in received(ws1)] == ["workspace_joined", "user_left"]
        assert received(ws1, "user_joined") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_workspace_identifies_anonymous_connection(self, router, state, connect):
        c1, _ = connect()

        await send(router, c1, type="join_workspace", workspaceId=5, userId="alice", userName="Alice")

        snapshot = state.get(c1)
        assert snapshot.user_id == "alice"
        assert snapshot.user_name == "Alice"
        assert snapshot.workspace_id == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_workspace_needs_a_user(self, router, state, connect, received):
        c1, ws1 = connect()

        await send(router, c1, type="join_workspace", workspaceId="w1", requestId="r1")

        error = received(ws1, "error")[0]
        assert error["requestId"] == "r1"
        assert state.get(c1).workspace_id is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_handshake_identity_wins(self, router, state, connect):
        c1, _ = connect("alice")

        await send(router, c1, type="join_workspace", workspaceId="w1", userId="mallory")

        assert state.get(c1).user_id == "alice"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_join_workspace_is_ignored(self, router, state, in_page, received):
        c1, ws1 = await in_page("alice", page_id=None)
        reset(ws1)

        await send(router, c1, type="join_workspace", workspaceId="w2")

        assert state.get(c1).workspace_id == "w1"
        assert received(ws1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_page_sends_snapshot_without_own_cursor(self, router, in_page, received):
        c1, ws1 = await in_page("alice")
        await send(router, c1, type="cursor_move", x=1, y=2)
        c2, ws2 = await in_page("bob")
        await send(router, c2, type="cursor_move", x=3, y=4)

        await send(router, c2, type="join_page", pageId="p1", requestId="again")

        snapshot = received(ws2, "page_snapshot")[-1]
        assert snapshot["requestId"] == "again"
        assert [c["userId"] for c in snapshot["data"]["cursors"]] == ["alice"]
        assert {p["userId"] for p in snapshot["data"]["presence"]} == {"alice", "bob"}
        # Re-joining the same page does not announce again
        assert len(received(ws1, "user_joined")) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_switching_page_announces_departure(self, router, state, in_page, received):
        c1, ws1 = await in_page("alice", page_id="p1")
        c2, ws2 = await in_page("bob", page_id="p2")
        c3, _ = await in_page("carol", page_id="p1")
        reset(ws1, ws2)

        await send(router, c3, type="join_page", pageId="p2")

        left = received(ws1, "user_left")
        assert len(left) == 1
        assert left[0]["data"]["pageId"] == "p1"
        assert received(ws2, "user_joined")[0]["data"]["userId"] == "carol"
        assert c3 not in state.members_of(ScopeKind.PAGE, "p1")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_page_ignored_when_anonymous(self, router, state, connect, received):
        c1, ws1 = connect()

        await send(router, c1, type="join_page", pageId="p1")

        assert state.get(c1).page_id is None
        assert received(ws1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_leave_messages(self, router, state, in_page, received):
        c1, _ = await in_page("alice")
        c2, ws2 = await in_page("bob")
        reset(ws2)

        await send(router, c1, type="leave_page")
        await send(router, c1, type="leave_page")
        await send(router, c1, type="leave_workspace")

        assert len(received(ws2, "user_left")) == 2
        assert state.get(c1).workspace_id is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_heartbeat_echoes_request_id(self, router, connect, received):
        c1, ws1 = connect()

        await send(router, c1, type="heartbeat", requestId="hb-1")

        frame = received(ws1, "heartbeat_response")[0]
        assert frame["requestId"] == "hb-1"


class TestPresenceMessages:
    """Cursors and typing indicators."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cursor_move_reaches_page_peers_only(self, router, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        reset(ws1, ws2)

        await send(router, c1, type="cursor_move", x=10, y=20)

        updates = received(ws2, "cursor_update")
        assert len(updates) == 1
        assert updates[0]["data"]["userId"] == "alice"
        assert (updates[0]["data"]["x"], updates[0]["data"]["y"]) == (10, 20)
        assert received(ws1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cursor_never_leaks_to_other_page(self, router, in_page, received):
        c1, _ = await in_page("alice", page_id="A")
        c2, ws2 = await in_page("bob", page_id="B")
        c3, ws3 = await in_page("carol", page_id=None)
        reset(ws2, ws3)

        await send(router, c1, type="cursor_update", x=1, y=1)

        assert received(ws2, "cursor_update") == []
        assert received(ws3, "cursor_update") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cursor_before_join_page_is_ignored(self, router, state, in_page, received):
        c1, ws1 = await in_page("alice", page_id=None)
        reset(ws1)

        await send(router, c1, type="cursor_move", x=1, y=1)

        assert state.presence.get_cursor("alice") is None
        assert received(ws1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cursor_hide_clears_cursor(self, router, state, in_page, received):
        c1, _ = await in_page("alice")
        c2, ws2 = await in_page("bob")
        await send(router, c1, type="cursor_move", x=1, y=1)

        await send(router, c1, type="cursor_hide")

        assert state.presence.get_cursor("alice") is None
        hide = received(ws2, "cursor_hide")[0]
        assert hide["data"]["userId"] == "alice"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_typing_on_page_updates_status(self, router, state, in_page, received):
        c1, _ = await in_page("alice")
        c2, ws2 = await in_page("bob")
        c3, ws3 = await in_page("carol", page_id=None)
        reset(ws2, ws3)

        await send(router, c1, type="typing_start", blockId=3)
        assert state.presence.get_presence("alice").status == PresenceStatus.TYPING

        await send(router, c1, type="typing_stop")
        assert state.presence.get_presence("alice").status == PresenceStatus.ACTIVE

        typing = received(ws2, "user_typing")
        assert [frame["data"]["isTyping"] for frame in typing] == [True, False]
        assert received(ws3, "user_typing") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_typing_in_workspace_goes_to_workspace(self, router, state, in_page, received):
        c1, _ = await in_page("alice", page_id=None)
        c2, ws2 = await in_page("bob", page_id=None)

        await send(router, c1, type="typing_start")

        assert received(ws2, "user_typing")[0]["data"]["isTyping"] is True
        assert state.presence.get_presence("alice") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_typing_outside_any_scope_is_ignored(self, router, connect, received):
        c1, ws1 = connect("alice")

        await send(router, c1, type="typing_start")

        assert received(ws1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_block_edit_is_relayed_to_page_without_saving(
        self, router, mock_store, in_page, received
    ):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        c3, ws3 = await in_page("carol", page_id="p2")
        reset(ws1, ws2, ws3)

        await send(router, c1, type="block_edit", blockId=7, content={"text": "dra"})

        edits = received(ws2, "block_edit")
        assert len(edits) == 1
        assert edits[0]["data"]["userId"] == "alice"
        assert edits[0]["data"]["blockId"] == 7
        assert edits[0]["data"]["content"] == {"text": "dra"}
        assert "timestamp" in edits[0]["data"]
        assert received(ws1) == []
        assert received(ws3) == []
        mock_store.update_block.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_block_edit_outside_a_page_is_ignored(self, router, in_page, received):
        c1, ws1 = await in_page("alice", page_id=None)
        c2, ws2 = await in_page("bob", page_id=None)
        reset(ws1, ws2)

        await send(router, c1, type="block_edit", blockId=7, content="x")

        assert received(ws1) == []
        assert received(ws2) == []
        assert received(ws1) == []


class TestDocumentMessages:
    """Request/confirm/broadcast for page and block mutations."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_page_not_found(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        mock_store.update_page.return_value = None
        reset(ws1, ws2)

        await send(router, c1, type="update_page", id=5, title="X", requestId="r1")

        assert received(ws1) == [{"type": "error", "error": "Page not found", "requestId": "r1"}]
        assert received(ws2, "page_updated") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_page_broadcasts_persisted_page(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob", page_id=None)
        mock_store.update_page.return_value = Page(
            id=5, workspace_id="w1", title="Server Title", last_edited_by="alice"
        )
        reset(ws1, ws2)

        await send(router, c1, type="update_page", id=5, title="Client Title", requestId="r1")

        mock_store.update_page.assert_awaited_once_with(
            5, {"title": "Client Title", "last_edited_by": "alice"}
        )
        peer = received(ws2, "page_updated")
        mine = received(ws1, "page_updated")
        assert len(peer) == 1 and len(mine) == 1
        assert peer[0]["data"]["title"] == "Server Title"
        assert "requestId" not in peer[0]
        assert mine[0]["requestId"] == "r1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_page_failure_is_private(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        mock_store.create_page.side_effect = PersistenceError("Failed to create page")
        reset(ws1, ws2)

        await send(router, c1, type="create_page", title="New", requestId="r1")

        assert received(ws1, "error")[0]["error"] == "Failed to create page"
        assert received(ws2) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_page_uses_connection_workspace(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        reset(ws1, ws2)

        await send(router, c1, type="create_page", title="New")

        data = mock_store.create_page.await_args.args[0]
        assert data["workspace_id"] == "w1"
        assert data["created_by"] == "alice"
        assert len(received(ws2, "page_created")) == 1
        assert len(received(ws1, "page_created")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_page_uses_message_workspace(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice", workspace_id="w1")
        c2, ws2 = await in_page("bob", workspace_id="w2")
        reset(ws1, ws2)

        await send(router, c1, type="delete_page", id=9, workspaceId="w2")

        deleted = received(ws2, "page_deleted")
        assert deleted[0]["data"] == {"id": 9, "workspaceId": "w2"}
        # The requester is confirmed even outside that workspace
        assert len(received(ws1, "page_deleted")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_block_one_copy_per_member(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        c3, ws3 = await in_page("carol")
        reset(ws1, ws2, ws3)

        await send(
            router, c1, type="update_block", id=7, content={"text": "client"}, requestId="r1"
        )

        for websocket in (ws1, ws2, ws3):
            updates = received(websocket, "block_updated")
            assert len(updates) == 1
            assert updates[0]["data"]["content"] == {"text": "persisted"}
        assert received(ws1, "block_updated")[0]["requestId"] == "r1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_block_mutation_requires_page_context(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice", page_id=None)
        reset(ws1)

        await send(router, c1, type="create_block", blockType="text", requestId="r1")

        assert received(ws1, "error")[0]["error"] == "pageId is required"
        mock_store.create_block.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_and_delete_block(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        reset(ws1, ws2)

        await send(router, c1, type="create_block", blockType="text", content={"text": "hi"})
        await send(router, c1, type="delete_block", id=7)

        assert mock_store.create_block.await_args.args[0]["page_id"] == "p1"
        assert received(ws2, "block_created")[0]["data"]["id"] == 7
        assert received(ws2, "block_deleted")[0]["data"] == {"id": 7, "pageId": "p1"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_block_not_found(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        mock_store.delete_block.return_value = False
        reset(ws1, ws2)

        await send(router, c1, type="delete_block", id=99)

        assert received(ws1, "error")[0]["error"] == "Block not found"
        assert received(ws2) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reorder_blocks_reaches_whole_page(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice", page_id=5)
        c2, ws2 = await in_page("bob", page_id=5)
        c3, ws3 = await in_page("carol", page_id=6)
        reset(ws1, ws2, ws3)

        await send(router, c1, type="reorder_blocks", pageId=5, blockIds=[3, 1, 2], requestId="r1")

        mock_store.reorder_blocks.assert_awaited_once_with(5, [3, 1, 2])
        for websocket in (ws1, ws2):
            frames = received(websocket, "blocks_reordered")
            assert len(frames) == 1
            assert frames[0]["data"] == {"pageId": 5, "blockIds": [3, 1, 2]}
        assert received(ws3) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reorder_rejected_by_store(self, router, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        mock_store.reorder_blocks.return_value = False
        reset(ws1)

        await send(router, c1, type="reorder_blocks", blockIds=[1])

        assert received(ws1) == [{"type": "error", "error": "Failed to reorder blocks"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requester_gone_during_store_call(self, router, lifecycle, mock_store, in_page, received):
        c1, ws1 = await in_page("alice")
        c2, ws2 = await in_page("bob")
        reset(ws1, ws2)

        async def close_requester(block_id, patch):
            await lifecycle.close(c1)
            return Block(id=block_id, page_id="p1", type="text", content=patch.get("content"))

        mock_store.update_block = AsyncMock(side_effect=close_requester)

        await send(router, c1, type="update_block", id=7, content="late")

        assert received(ws1) == []
        assert received(ws2, "block_updated")[0]["data"]["content"] == "late"


class TestRouterErrors:
    """Malformed input, unknown types and unexpected failures."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_type(self, router, state, connect, received):
        c1, ws1 = connect("alice")

        await send(router, c1, type="archive_page", requestId="r1")

        assert received(ws1) == [
            {"type": "error", "error": "Unknown message type: archive_page", "requestId": "r1"}
        ]
        assert state.registry.is_registered(c1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_json_keeps_connection(self, router, state, connect, received):
        c1, ws1 = connect("alice")

        await router.dispatch(c1, "{not json")
        await router.dispatch(c1, b"\x00\x01")

        errors = received(ws1, "error")
        assert [frame["error"] for frame in errors] == [
            "Invalid message format",
            "Binary frames are not supported",
        ]
        assert state.registry.is_registered(c1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_handler_error(self, router, state, connect, received):
        c1, ws1 = connect("alice")
        router._handlers[HeartbeatMessage] = AsyncMock(side_effect=RuntimeError("boom"))

        await send(router, c1, type="heartbeat", requestId="r1")

        assert received(ws1) == [
            {"type": "error", "error": "Internal server error", "requestId": "r1"}
        ]
        assert state.registry.is_registered(c1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dispatch_for_closed_connection_is_dropped(self, router, mock_store):
        await send(router, "ghost", type="create_page", title="X")

        mock_store.create_page.assert_not_awaited()


class TestDisconnectScenarios:
    """Departure announcements and multi-tab presence."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_abrupt_disconnect_announces_once(self, router, lifecycle, state, in_page, received):
        c1, _ = await in_page("alice", workspace_id="W", page_id="P1")
        c2, ws2 = await in_page("bob", workspace_id="W", page_id="P1")
        reset(ws2)

        await lifecycle.close(c1)
        await lifecycle.close(c1)

        left = received(ws2, "user_left")
        assert len([f for f in left if f["data"].get("workspaceId") == "W"]) == 1
        assert len([f for f in left if f["data"].get("pageId") == "P1"]) == 1
        assert c1 not in state.members_of(ScopeKind.WORKSPACE, "W")
        assert c1 not in state.members_of(ScopeKind.PAGE, "P1")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_two_tabs_keep_cursor(self, router, lifecycle, state, in_page):
        c1, _ = await in_page("alice")
        c2, _ = await in_page("alice")
        await send(router, c1, type="cursor_move", x=10, y=20)

        await lifecycle.close(c1)
        cursors = state.presence.cursors_for_page("p1")
        assert [(c.user_id, c.x, c.y) for c in cursors] == [("alice", 10, 20)]

        await lifecycle.close(c2)
        assert state.presence.cursors_for_page("p1") == []
