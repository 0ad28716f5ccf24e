"""
Exception classes for docsync.
"""


class SyncError(Exception):
    """Base exception for all replication errors."""

    pass


class ConfigError(SyncError):
    """Missing or invalid configuration."""

    pass


class FetchError(SyncError):
    """Upstream transport failure or non-success response."""

    pass


class SchemaError(SyncError):
    """Schema fetch or parse error."""

    pass


class MalformedRecordError(SyncError):
    """A fetched line could not be parsed as a document record."""

    pass


class DocumentValidationError(SyncError):
    """A document record is missing a required envelope field."""

    pass


class ChunkSizeError(SyncError):
    """A serialized chunk exceeds the maximum accepted size."""

    def __init__(self, document_id: str, chunk_index: int, size: int, limit: int):
        self.document_id = document_id
        self.chunk_index = chunk_index
        self.size = size
        self.limit = limit
        super().__init__(
            f"JSON object size {size} bytes ({size / 1024 / 1024:.2f} MB) exceeds "
            f"limit of {limit} bytes ({limit / 1024 / 1024:.2f} MB) "
            f"for document {document_id} chunk {chunk_index}"
        )


class WarehouseError(SyncError):
    """Warehouse session, bootstrap or commit failure."""

    pass


class CursorError(SyncError):
    """Sync cursor could not be read or persisted."""

    pass
