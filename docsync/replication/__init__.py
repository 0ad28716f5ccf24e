"""
Document Replication Module

Incremental pull of upstream documents into a warehouse, one batch per
iteration.
"""

from docsync.replication.documents import Document, ValueKind, kind_of, parse_record
from docsync.replication.chunker import (
    Chunk,
    Chunker,
    ChunkStats,
    MAX_JSON_SIZE,
    RECOMMENDED_JSON_SIZE,
    WARNING_JSON_SIZE,
)
from docsync.replication.cursor import BEGINNING_OF_TIME, CursorStore
from docsync.replication.api_client import DocumentApiClient, DocumentPage
from docsync.replication.sync_manager import (
    IterationResult,
    SyncConfig,
    SyncManager,
    SyncState,
)

__all__ = [
    # Documents
    "Document",
    "ValueKind",
    "kind_of",
    "parse_record",
    # Chunking
    "Chunk",
    "Chunker",
    "ChunkStats",
    "MAX_JSON_SIZE",
    "RECOMMENDED_JSON_SIZE",
    "WARNING_JSON_SIZE",
    # Cursor
    "BEGINNING_OF_TIME",
    "CursorStore",
    # Upstream
    "DocumentApiClient",
    "DocumentPage",
    # Sync
    "IterationResult",
    "SyncConfig",
    "SyncManager",
    "SyncState",
]
