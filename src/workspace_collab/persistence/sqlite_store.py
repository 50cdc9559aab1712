"""
SQLite-backed document store.

Lets the collaboration server run standalone. Blocking sqlite3 calls run in
a worker thread so they never stall the event loop.
"""

import asyncio
import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..infrastructure import PersistenceError, setup_logging
from .models import DEFAULT_PAGE_ICON, Block, Page

logger = setup_logging("workspace_collab.persistence")

PAGE_COLUMNS = "id, workspace_id, title, icon, parent_id, created_by, last_edited_by, is_deleted, created_at, updated_at"
BLOCK_COLUMNS = "id, page_id, type, content, position, created_by, last_edited_by, created_at, updated_at"

# Fields a patch may touch; anything else in a patch is ignored
PAGE_PATCH_FIELDS = ("title", "icon", "parent_id", "last_edited_by")
BLOCK_PATCH_FIELDS = ("type", "content", "position", "last_edited_by")


def _row_to_page(row: sqlite3.Row) -> Page:
    return Page(
        id=row["id"],
        workspace_id=row["workspace_id"],
        title=row["title"],
        icon=row["icon"],
        parent_id=row["parent_id"],
        created_by=row["created_by"],
        last_edited_by=row["last_edited_by"],
        is_deleted=bool(row["is_deleted"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_block(row: sqlite3.Row) -> Block:
    content = row["content"]
    return Block(
        id=row["id"],
        page_id=row["page_id"],
        type=row["type"],
        content=json.loads(content) if content is not None else None,
        position=row["position"],
        created_by=row["created_by"],
        last_edited_by=row["last_edited_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteDocumentStore:
    """Document store for pages and blocks on a local SQLite file."""

    def __init__(self, db_path: str = "data/workspace.db"):
        """
        Initialize the document store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Initialize the database schema."""
        try:
            with closing(self._connect()) as conn:
                cursor = conn.cursor()

                # workspace_id has no declared type so 5 and "5" survive the round trip
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS pages (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        workspace_id NOT NULL,
                        title TEXT NOT NULL,
                        icon TEXT,
                        parent_id INTEGER,
                        created_by TEXT,
                        last_edited_by TEXT,
                        is_deleted INTEGER NOT NULL DEFAULT 0,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS blocks (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        page_id NOT NULL,
                        type TEXT NOT NULL,
                        content TEXT,
                        position INTEGER NOT NULL DEFAULT 0,
                        created_by TEXT,
                        last_edited_by TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_pages_workspace
                    ON pages(workspace_id)
                """)
                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_blocks_page
                    ON blocks(page_id, position)
                """)

                conn.commit()
                logger.info(f"Document store initialized at {self.db_path}")

        except sqlite3.Error as e:
            logger.error(f"Failed to initialize document store: {e}")
            raise PersistenceError(f"Failed to initialize document store: {e}") from e

    async def _run(self, operation: str, func, *args):
        """Run a blocking store call in a worker thread, normalizing errors."""
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            logger.error(f"Document store failed to {operation}: {e}")
            raise PersistenceError(f"Failed to {operation}") from e

    # Pages

    def _get_page(self, conn: sqlite3.Connection, page_id: int) -> Optional[Page]:
        row = conn.execute(
            f"SELECT {PAGE_COLUMNS} FROM pages WHERE id = ?", (page_id,)
        ).fetchone()
        return _row_to_page(row) if row else None

    def _create_page(self, data: Dict[str, Any]) -> Page:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                """
                INSERT INTO pages (workspace_id, title, icon, parent_id, created_by, last_edited_by)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    data["workspace_id"],
                    data["title"],
                    data.get("icon") or DEFAULT_PAGE_ICON,
                    data.get("parent_id"),
                    data.get("created_by"),
                    data.get("last_edited_by", data.get("created_by")),
                ),
            )
            conn.commit()
            page = self._get_page(conn, cursor.lastrowid)
            logger.debug(f"Created page {page.id} in workspace {page.workspace_id}")
            return page

    def _update_page(self, page_id: int, patch: Dict[str, Any]) -> Optional[Page]:
        fields = {k: v for k, v in patch.items() if k in PAGE_PATCH_FIELDS}
        assignments = "".join(f"{name} = ?, " for name in fields)
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                f"""
                UPDATE pages
                SET {assignments}updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND is_deleted = 0
            """,
                (*fields.values(), page_id),
            )
            if cursor.rowcount == 0:
                logger.debug(f"No live page {page_id} to update")
                return None
            conn.commit()
            return self._get_page(conn, page_id)

    def _delete_page(self, page_id: int) -> bool:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                """
                UPDATE pages
                SET is_deleted = 1, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND is_deleted = 0
            """,
                (page_id,),
            )
            conn.commit()
            return cursor.rowcount > 0

    async def create_page(self, data: Dict[str, Any]) -> Page:
        return await self._run("create page", self._create_page, data)

    async def update_page(self, page_id: int, patch: Dict[str, Any]) -> Optional[Page]:
        return await self._run("update page", self._update_page, page_id, patch)

    async def delete_page(self, page_id: int) -> bool:
        return await self._run("delete page", self._delete_page, page_id)

    async def get_page(self, page_id: int) -> Optional[Page]:
        def _get() -> Optional[Page]:
            with closing(self._connect()) as conn:
                return self._get_page(conn, page_id)

        return await self._run("get page", _get)

    # Blocks

    def _get_block(self, conn: sqlite3.Connection, block_id: int) -> Optional[Block]:
        row = conn.execute(
            f"SELECT {BLOCK_COLUMNS} FROM blocks WHERE id = ?", (block_id,)
        ).fetchone()
        return _row_to_block(row) if row else None

    def _create_block(self, data: Dict[str, Any]) -> Block:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                """
                INSERT INTO blocks (page_id, type, content, position, created_by, last_edited_by)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    data["page_id"],
                    data["type"],
                    json.dumps(data.get("content")),
                    data.get("position", 0),
                    data.get("created_by"),
                    data.get("last_edited_by", data.get("created_by")),
                ),
            )
            conn.commit()
            return self._get_block(conn, cursor.lastrowid)

    def _update_block(self, block_id: int, patch: Dict[str, Any]) -> Optional[Block]:
        fields = {k: v for k, v in patch.items() if k in BLOCK_PATCH_FIELDS}
        if "content" in fields:
            fields["content"] = json.dumps(fields["content"])
        assignments = "".join(f"{name} = ?, " for name in fields)
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                f"""
                UPDATE blocks
                SET {assignments}updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """,
                (*fields.values(), block_id),
            )
            if cursor.rowcount == 0:
                return None
            conn.commit()
            return self._get_block(conn, block_id)

    def _delete_block(self, block_id: int) -> bool:
        with closing(self._connect()) as conn:
            cursor = conn.execute("DELETE FROM blocks WHERE id = ?", (block_id,))
            conn.commit()
            return cursor.rowcount > 0

    def _reorder_blocks(self, page_id: Any, block_ids: List[int]) -> bool:
        with closing(self._connect()) as conn:
            placeholders = ", ".join("?" for _ in block_ids)
            found = conn.execute(
                f"SELECT COUNT(*) FROM blocks WHERE page_id = ? AND id IN ({placeholders})",
                (page_id, *block_ids),
            ).fetchone()[0]
            if found != len(set(block_ids)) or len(block_ids) != len(set(block_ids)):
                logger.warning(
                    f"Reorder rejected for page {page_id}: ids do not match page blocks"
                )
                return False

            with conn:
                conn.executemany(
                    """
                    UPDATE blocks
                    SET position = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ? AND page_id = ?
                """,
                    [(index, block_id, page_id) for index, block_id in enumerate(block_ids)],
                )
            return True

    async def create_block(self, data: Dict[str, Any]) -> Block:
        return await self._run("create block", self._create_block, data)

    async def update_block(self, block_id: int, patch: Dict[str, Any]) -> Optional[Block]:
        return await self._run("update block", self._update_block, block_id, patch)

    async def delete_block(self, block_id: int) -> bool:
        return await self._run("delete block", self._delete_block, block_id)

    async def reorder_blocks(self, page_id: Any, block_ids: List[int]) -> bool:
        if not block_ids:
            return False
        return await self._run("reorder blocks", self._reorder_blocks, page_id, block_ids)

    async def get_blocks(self, page_id: Any) -> List[Block]:
        def _list() -> List[Block]:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    f"SELECT {BLOCK_COLUMNS} FROM blocks WHERE page_id = ? ORDER BY position",
                    (page_id,),
                ).fetchall()
                return [_row_to_block(row) for row in rows]

        return await self._run("list blocks", _list)
