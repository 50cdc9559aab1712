"""
Scope membership index.

Maps workspace ids and page ids to the set of connection ids currently
joined to them. Entries are created on first join and dropped when empty.
"""

from collections import defaultdict
from typing import Dict, Set, Tuple

from ...core.models import ScopeKind
from ...core.types import ScopeId


class ScopeIndex:
    """Two membership maps, one per scope kind."""

    def __init__(self) -> None:
        self._members: Dict[ScopeKind, Dict[ScopeId, Set[str]]] = {
            kind: defaultdict(set) for kind in ScopeKind
        }

    def join(self, kind: ScopeKind, scope_id: ScopeId, connection_id: str) -> None:
        self._members[kind][scope_id].add(connection_id)

    def leave(self, kind: ScopeKind, scope_id: ScopeId, connection_id: str) -> None:
        """Remove a member; leaving a scope you are not in is a no-op."""
        scopes = self._members[kind]
        members = scopes.get(scope_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del scopes[scope_id]

    def join_workspace(self, workspace_id: ScopeId, connection_id: str) -> None:
        self.join(ScopeKind.WORKSPACE, workspace_id, connection_id)

    def leave_workspace(self, workspace_id: ScopeId, connection_id: str) -> None:
        self.leave(ScopeKind.WORKSPACE, workspace_id, connection_id)

    def join_page(self, page_id: ScopeId, connection_id: str) -> None:
        self.join(ScopeKind.PAGE, page_id, connection_id)

    def leave_page(self, page_id: ScopeId, connection_id: str) -> None:
        self.leave(ScopeKind.PAGE, page_id, connection_id)

    def members_of(self, kind: ScopeKind, scope_id: ScopeId) -> Tuple[str, ...]:
        """
        Snapshot of a scope's members.

        The tuple is detached from the index, so callers may keep iterating
        while members are pruned.
        """
        members = self._members[kind].get(scope_id)
        return tuple(members) if members else ()

    def is_member(self, kind: ScopeKind, scope_id: ScopeId, connection_id: str) -> bool:
        members = self._members[kind].get(scope_id)
        return bool(members) and connection_id in members

    def scopes(self, kind: ScopeKind) -> Tuple[ScopeId, ...]:
        """Ids of all non-empty scopes of a kind."""
        return tuple(self._members[kind])

    def get_stats(self) -> Dict[str, int]:
        return {
            "workspaces": len(self._members[ScopeKind.WORKSPACE]),
            "pages": len(self._members[ScopeKind.PAGE]),
        }
