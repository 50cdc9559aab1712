"""
Document data models returned by the document store.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

DEFAULT_PAGE_ICON = "📄"


@dataclass
class Page:
    """A page in a workspace."""

    id: int
    workspace_id: Any
    title: str
    icon: Optional[str] = DEFAULT_PAGE_ICON
    parent_id: Optional[int] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None
    is_deleted: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys)."""
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "title": self.title,
            "icon": self.icon,
            "parentId": self.parent_id,
            "createdBy": self.created_by,
            "lastEditedBy": self.last_edited_by,
            "isDeleted": self.is_deleted,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Block:
    """An ordered content block on a page."""

    id: int
    page_id: Any
    type: str
    content: Any = None
    position: int = 0
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys)."""
        return {
            "id": self.id,
            "pageId": self.page_id,
            "type": self.type,
            "content": self.content,
            "position": self.position,
            "createdBy": self.created_by,
            "lastEditedBy": self.last_edited_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
