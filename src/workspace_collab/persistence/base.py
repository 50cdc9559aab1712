"""
Interface of the document store the collaboration server writes through.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import Block, Page


@runtime_checkable
class DocumentStore(Protocol):
    """
    Durable CRUD for pages and blocks.

    Not-found is reported as ``None`` (updates) or ``False`` (deletes and
    reorders). Storage failures raise ``PersistenceError``, so "nothing
    there" and "could not ask" never look alike.
    """

    async def create_page(self, data: Dict[str, Any]) -> Page: ...

    async def update_page(self, page_id: int, patch: Dict[str, Any]) -> Optional[Page]: ...

    async def delete_page(self, page_id: int) -> bool: ...

    async def create_block(self, data: Dict[str, Any]) -> Block: ...

    async def update_block(self, block_id: int, patch: Dict[str, Any]) -> Optional[Block]: ...

    async def delete_block(self, block_id: int) -> bool: ...

    async def reorder_blocks(self, page_id: Any, block_ids: List[int]) -> bool: ...
