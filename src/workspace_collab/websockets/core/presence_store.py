"""
Ephemeral presence store.

Cursors and presence records are keyed by user rather than by connection,
so a reconnect or a second tab does not duplicate them. A count of attached
connections per (user, page) decides when a user has really left a page.
"""

from collections import Counter
from typing import Dict, List, Optional, Tuple

from ...core.models import Cursor, PresenceRecord, PresenceStatus, now_ms
from ...core.types import ScopeId


class PresenceStore:
    """Cursor and presence state for every user with a live page connection."""

    def __init__(self) -> None:
        self._cursors: Dict[str, Cursor] = {}
        self._presence: Dict[str, PresenceRecord] = {}
        self._attached: Counter = Counter()

    # Connection accounting

    def attach(self, user_id: str, page_id: ScopeId) -> int:
        """Count one more connection of user_id on page_id."""
        key: Tuple[str, ScopeId] = (user_id, page_id)
        self._attached[key] += 1
        return self._attached[key]

    def detach(self, user_id: str, page_id: ScopeId) -> int:
        """
        Count one connection less and return how many remain.

        When none remain, the user's cursor and presence are cleared if they
        point at this page. Records that moved to another page stay.
        """
        key = (user_id, page_id)
        remaining = self._attached[key] - 1
        if remaining > 0:
            self._attached[key] = remaining
            return remaining

        self._attached.pop(key, None)
        cursor = self._cursors.get(user_id)
        if cursor is not None and cursor.page_id == page_id:
            del self._cursors[user_id]
        record = self._presence.get(user_id)
        if record is not None and record.page_id == page_id:
            del self._presence[user_id]
        return 0

    def connections_on_page(self, user_id: str, page_id: ScopeId) -> int:
        return self._attached.get((user_id, page_id), 0)

    # Cursors

    def set_cursor(self, user_id: str, cursor: Cursor) -> None:
        self._cursors[user_id] = cursor

    def clear_cursor(self, user_id: str) -> Optional[Cursor]:
        return self._cursors.pop(user_id, None)

    def get_cursor(self, user_id: str) -> Optional[Cursor]:
        return self._cursors.get(user_id)

    def cursors_for_page(
        self, page_id: ScopeId, exclude_user_id: Optional[str] = None
    ) -> List[Cursor]:
        return [
            cursor
            for user_id, cursor in self._cursors.items()
            if cursor.page_id == page_id
            and user_id != exclude_user_id
            and self.connections_on_page(user_id, page_id) > 0
        ]

    # Presence

    def set_presence(self, user_id: str, record: PresenceRecord) -> None:
        self._presence[user_id] = record

    def set_status(self, user_id: str, status: PresenceStatus) -> Optional[PresenceRecord]:
        """Change the status of an existing record and refresh last_seen."""
        record = self._presence.get(user_id)
        if record is None:
            return None
        record.status = status
        record.last_seen = now_ms()
        return record

    def clear_presence(self, user_id: str) -> Optional[PresenceRecord]:
        return self._presence.pop(user_id, None)

    def get_presence(self, user_id: str) -> Optional[PresenceRecord]:
        return self._presence.get(user_id)

    def presence_for_page(self, page_id: ScopeId) -> List[PresenceRecord]:
        return [
            record
            for user_id, record in self._presence.items()
            if record.page_id == page_id
            and self.connections_on_page(user_id, page_id) > 0
        ]

    def get_stats(self) -> Dict[str, int]:
        return {
            "cursors": len(self._cursors),
            "presence": len(self._presence),
        }
