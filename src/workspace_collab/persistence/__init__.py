"""
Document persistence for the collaboration server.

The server never keeps authoritative copies of pages or blocks; it writes
through a DocumentStore and broadcasts what the store returns.
"""

from .base import DocumentStore
from .models import Block, Page
from .sqlite_store import SQLiteDocumentStore

__all__ = [
    "Block",
    "DocumentStore",
    "Page",
    "SQLiteDocumentStore",
]
