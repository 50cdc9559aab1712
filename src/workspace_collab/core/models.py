"""
Data structures for connections and ephemeral collaboration state.
"""

import time
import zlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .types import USER_COLORS, ScopeId


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def color_for_user(user_id: str) -> str:
    """Pick a palette color for a user; the same id always gets the same color."""
    return USER_COLORS[zlib.crc32(user_id.encode("utf-8")) % len(USER_COLORS)]


class ScopeKind(Enum):
    """Broadcast partition kinds."""

    WORKSPACE = "workspace"
    PAGE = "page"


class ConnectionState(Enum):
    """Protocol state of a connection, derived from its registry fields."""

    ANONYMOUS = "anonymous"
    IDENTIFIED = "identified"
    IN_WORKSPACE = "in_workspace"
    IN_PAGE = "in_page"


class PresenceStatus(Enum):
    """What a user is doing on a page."""

    ACTIVE = "active"
    TYPING = "typing"
    VIEWING = "viewing"


@dataclass(frozen=True)
class Identity:
    """Pre-authenticated user identity supplied by the handshake."""

    user_id: str
    user_name: str


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Immutable view of a connection's identity and scope fields."""

    connection_id: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    color: Optional[str] = None
    workspace_id: Optional[ScopeId] = None
    page_id: Optional[ScopeId] = None

    @property
    def state(self) -> ConnectionState:
        if self.page_id is not None:
            return ConnectionState.IN_PAGE
        if self.workspace_id is not None:
            return ConnectionState.IN_WORKSPACE
        if self.user_id is not None:
            return ConnectionState.IDENTIFIED
        return ConnectionState.ANONYMOUS

    def user_payload(self) -> Dict[str, Any]:
        """Public identity fields included in join/leave broadcasts."""
        return {
            "connectionId": self.connection_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userColor": self.color,
        }


@dataclass
class Connection:
    """A live transport session. Owned exclusively by the ConnectionRegistry."""

    connection_id: str
    transport: Any
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    color: Optional[str] = None
    workspace_id: Optional[ScopeId] = None
    page_id: Optional[ScopeId] = None
    connected_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            connection_id=self.connection_id,
            user_id=self.user_id,
            user_name=self.user_name,
            color=self.color,
            workspace_id=self.workspace_id,
            page_id=self.page_id,
        )


@dataclass
class Cursor:
    """Last known cursor of a user on a page."""

    user_id: str
    page_id: ScopeId
    x: float
    y: float
    user_name: Optional[str] = None
    color: Optional[str] = None
    block_id: Optional[ScopeId] = None
    selection: Optional[Dict[str, Any]] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "userColor": self.color,
            "pageId": self.page_id,
            "x": self.x,
            "y": self.y,
            "blockId": self.block_id,
            "selection": self.selection,
            "timestamp": self.timestamp,
        }


@dataclass
class PresenceRecord:
    """Activity status of a user on a page."""

    user_id: str
    page_id: ScopeId
    status: PresenceStatus = PresenceStatus.ACTIVE
    user_name: Optional[str] = None
    last_seen: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "pageId": self.page_id,
            "status": self.status.value,
            "lastSeen": self.last_seen,
        }
