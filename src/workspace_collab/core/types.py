"""
Common types and constants for the workspace collaboration server.

This module centralizes message types and defaults to avoid hardcoding
throughout the codebase.
"""

from typing import Final, Tuple, Union

# Workspace and page ids arrive as JSON numbers or strings
ScopeId = Union[int, str]

# Inbound message types
MSG_JOIN_WORKSPACE: Final[str] = "join_workspace"
MSG_LEAVE_WORKSPACE: Final[str] = "leave_workspace"
MSG_JOIN_PAGE: Final[str] = "join_page"
MSG_LEAVE_PAGE: Final[str] = "leave_page"
MSG_CURSOR_MOVE: Final[str] = "cursor_move"
MSG_CURSOR_UPDATE: Final[str] = "cursor_update"
MSG_CURSOR_HIDE: Final[str] = "cursor_hide"
MSG_TYPING_START: Final[str] = "typing_start"
MSG_TYPING_STOP: Final[str] = "typing_stop"
MSG_CREATE_PAGE: Final[str] = "create_page"
MSG_UPDATE_PAGE: Final[str] = "update_page"
MSG_DELETE_PAGE: Final[str] = "delete_page"
MSG_CREATE_BLOCK: Final[str] = "create_block"
MSG_UPDATE_BLOCK: Final[str] = "update_block"
MSG_DELETE_BLOCK: Final[str] = "delete_block"
MSG_REORDER_BLOCKS: Final[str] = "reorder_blocks"
MSG_BLOCK_EDIT: Final[str] = "block_edit"
MSG_HEARTBEAT: Final[str] = "heartbeat"

# Outbound message types
EVT_CONNECTION_ESTABLISHED: Final[str] = "connection_established"
EVT_WORKSPACE_JOINED: Final[str] = "workspace_joined"
EVT_PAGE_SNAPSHOT: Final[str] = "page_snapshot"
EVT_USER_JOINED: Final[str] = "user_joined"
EVT_USER_LEFT: Final[str] = "user_left"
EVT_CURSOR_UPDATE: Final[str] = "cursor_update"
EVT_CURSOR_HIDE: Final[str] = "cursor_hide"
EVT_USER_TYPING: Final[str] = "user_typing"
EVT_PAGE_CREATED: Final[str] = "page_created"
EVT_PAGE_UPDATED: Final[str] = "page_updated"
EVT_PAGE_DELETED: Final[str] = "page_deleted"
EVT_BLOCK_CREATED: Final[str] = "block_created"
EVT_BLOCK_UPDATED: Final[str] = "block_updated"
EVT_BLOCK_DELETED: Final[str] = "block_deleted"
EVT_BLOCKS_REORDERED: Final[str] = "blocks_reordered"
EVT_BLOCK_EDIT: Final[str] = "block_edit"
EVT_HEARTBEAT_RESPONSE: Final[str] = "heartbeat_response"
EVT_ERROR: Final[str] = "error"

# Handshake query parameters carrying the pre-authenticated identity
HANDSHAKE_USER_ID: Final[str] = "userId"
HANDSHAKE_USER_NAME: Final[str] = "userName"

# Palette for per-user cursor colors
USER_COLORS: Final[Tuple[str, ...]] = (
    "#E57373",
    "#F06292",
    "#BA68C8",
    "#7986CB",
    "#4FC3F7",
    "#4DB6AC",
    "#81C784",
    "#FFB74D",
    "#A1887F",
    "#90A4AE",
)
