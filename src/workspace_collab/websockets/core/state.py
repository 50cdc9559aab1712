"""
Single owner of the collaboration server's shared session state.

The registry, the scope index and the presence store must change together:
a connection listed under a scope always has that scope in its registry
entry, and presence counts follow page membership. Every transition that
touches more than one of them goes through this class. It is created once
per server and passed by reference; nothing here is module-global.
"""

from typing import Any, Dict, Optional

from ...core.models import (
    ConnectionSnapshot,
    Identity,
    PresenceRecord,
    PresenceStatus,
    ScopeKind,
    color_for_user,
)
from ...core.types import ScopeId
from .connection_manager import ConnectionRegistry
from .presence_store import PresenceStore
from .scope_index import ScopeIndex


class CollaborationState:
    """Registry, scope index and presence store, kept mutually consistent."""

    def __init__(self) -> None:
        self.registry = ConnectionRegistry()
        self.scopes = ScopeIndex()
        self.presence = PresenceStore()

    def open(self, connection_id: str, transport: Any) -> None:
        self.registry.register(connection_id, transport)

    def identify(self, connection_id: str, identity: Identity) -> None:
        self.registry.identify(
            connection_id,
            identity.user_id,
            identity.user_name,
            color_for_user(identity.user_id),
        )

    def get(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        return self.registry.get(connection_id)

    def join_workspace(
        self, connection_id: str, workspace_id: ScopeId
    ) -> Optional[ConnectionSnapshot]:
        """Put a connection in a workspace; returns the updated snapshot."""
        if not self.registry.is_registered(connection_id):
            return None
        self.registry.set_scope(connection_id, workspace_id=workspace_id)
        self.scopes.join_workspace(workspace_id, connection_id)
        return self.registry.get(connection_id)

    def leave_workspace(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """
        Take a connection out of its workspace, and out of its page first.

        Returns the snapshot from before the change, or None if the
        connection was not in a workspace.
        """
        before = self.registry.get(connection_id)
        if before is None or before.workspace_id is None:
            return None
        self.leave_page(connection_id)
        self.scopes.leave_workspace(before.workspace_id, connection_id)
        self.registry.set_scope(connection_id, workspace_id=None)
        return before

    def join_page(
        self, connection_id: str, page_id: ScopeId
    ) -> Optional[ConnectionSnapshot]:
        """
        Put an identified connection on a page and mark its user active there.

        A previous page is left first, without notifying anyone; callers
        that announce departures call leave_page themselves beforehand.
        Joining the page the connection is already on changes nothing.
        """
        current = self.registry.get(connection_id)
        if current is None or current.user_id is None:
            return None
        if current.page_id == page_id:
            return current
        if current.page_id is not None:
            self.leave_page(connection_id)
        self.registry.set_scope(connection_id, page_id=page_id)
        self.scopes.join_page(page_id, connection_id)
        self.presence.attach(current.user_id, page_id)
        # One presence record per user: it follows the tab that joined last
        self.presence.set_presence(
            current.user_id,
            PresenceRecord(
                user_id=current.user_id,
                page_id=page_id,
                status=PresenceStatus.ACTIVE,
                user_name=current.user_name,
            ),
        )
        return self.registry.get(connection_id)

    def leave_page(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """Take a connection off its page; returns the snapshot from before."""
        before = self.registry.get(connection_id)
        if before is None or before.page_id is None:
            return None
        self.scopes.leave_page(before.page_id, connection_id)
        if before.user_id is not None:
            self.presence.detach(before.user_id, before.page_id)
        self.registry.set_scope(connection_id, page_id=None)
        return before

    def disconnect(self, connection_id: str) -> Optional[ConnectionSnapshot]:
        """
        Forget a connection everywhere.

        Returns its last snapshot, or None if it was already gone, which
        makes repeated calls harmless.
        """
        snapshot = self.registry.remove(connection_id)
        if snapshot is None:
            return None
        if snapshot.workspace_id is not None:
            self.scopes.leave_workspace(snapshot.workspace_id, connection_id)
        if snapshot.page_id is not None:
            self.scopes.leave_page(snapshot.page_id, connection_id)
            if snapshot.user_id is not None:
                self.presence.detach(snapshot.user_id, snapshot.page_id)
        return snapshot

    def members_of(self, kind: ScopeKind, scope_id: ScopeId):
        return self.scopes.members_of(kind, scope_id)

    def workspace_users(self, workspace_id: ScopeId) -> Dict[str, Dict[str, Any]]:
        """Distinct users online in a workspace, keyed by user id."""
        users: Dict[str, Dict[str, Any]] = {}
        for connection_id in self.scopes.members_of(ScopeKind.WORKSPACE, workspace_id):
            snapshot = self.registry.get(connection_id)
            if snapshot and snapshot.user_id and snapshot.user_id not in users:
                users[snapshot.user_id] = {
                    "userId": snapshot.user_id,
                    "userName": snapshot.user_name,
                    "userColor": snapshot.color,
                }
        return users

    def get_stats(self) -> Dict[str, int]:
        stats: Dict[str, int] = {}
        stats.update(self.registry.get_stats())
        stats.update(self.scopes.get_stats())
        stats.update(self.presence.get_stats())
        return stats
