"""
Splitting of documents into warehouse chunks.

Chunk 0 carries the document without its oversized top-level arrays; every
further chunk carries one slice of one oversized array. Only top-level fields
are inspected: arrays nested inside records stay in chunk 0 whatever their size.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from docsync.exceptions import ChunkSizeError
from docsync.logging_config import get_logger
from docsync.replication.documents import ID_FIELD, Document

MIB = 1024 * 1024

WARNING_JSON_SIZE = 8 * MIB  # warn at 80% of the recommended limit
RECOMMENDED_JSON_SIZE = 10 * MIB  # recommended upper bound for a single JSON value
MAX_JSON_SIZE = 15 * MIB  # reject outright

# Error messages kept on ChunkStats; the rest are only counted
MAX_RECORDED_ERRORS = 100


@dataclass
class Chunk:
    """One warehouse row: a document's base record or one array slice."""

    batch_date: str
    type: str
    id: str
    version: int
    index: int
    author: str
    date: str
    deleted: bool
    payload: dict[str, Any] = field(repr=False)
    data: str = field(default="", repr=False)

    @property
    def key(self) -> tuple[str, str, str, int, int]:
        """Warehouse row key."""
        return (self.batch_date, self.type, self.id, self.version, self.index)

    @property
    def size(self) -> int:
        """Serialized size in bytes."""
        return len(self.data.encode("utf-8"))


@dataclass
class ChunkStats:
    """Counters accumulated while chunking a batch."""

    documents_chunked: int = 0
    documents_rejected: int = 0
    chunks_emitted: int = 0
    chunks_failed: int = 0
    size_warnings: int = 0
    size_rejections: int = 0
    errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        if len(self.errors) < MAX_RECORDED_ERRORS:
            self.errors.append(message)


def serialize_payload(payload: dict[str, Any]) -> str:
    """Compact JSON text of a chunk payload.

    Raises:
        ValueError: payload holds values JSON cannot represent (NaN, infinity)
        TypeError: payload holds non-JSON types
    """
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def check_json_size(
    size: int,
    document_id: str,
    chunk_index: int,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Apply the size policy to a serialized chunk.

    Returns:
        True when the chunk reached the warning threshold

    Raises:
        ChunkSizeError: size is at or above MAX_JSON_SIZE
    """
    logger = logger or get_logger(__name__)
    details = {
        "document_id": document_id,
        "chunk_index": chunk_index,
        "size_bytes": size,
        "size_mb": round(size / MIB, 2),
    }

    if size >= MAX_JSON_SIZE:
        raise ChunkSizeError(document_id, chunk_index, size, MAX_JSON_SIZE)

    if size < WARNING_JSON_SIZE:
        return False

    logger.warning(
        f"Large JSON object detected for {document_id} chunk {chunk_index}",
        extra={"data": details},
    )
    if size >= RECOMMENDED_JSON_SIZE:
        logger.info(
            f"JSON object for {document_id} chunk {chunk_index} exceeds the "
            f"recommended limit of {RECOMMENDED_JSON_SIZE // MIB} MB"
        )
    return True


class Chunker:
    """Split documents into chunks of bounded array length."""

    def __init__(self, chunk_size: int, logger: Optional[logging.Logger] = None):
        """Initialize chunker.

        Args:
            chunk_size: Maximum number of items of one array held by a single chunk
            logger: Optional logger instance
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.chunk_size = chunk_size
        self._logger = logger or get_logger(__name__)

    def split(self, document: Document) -> list[dict[str, Any]]:
        """Split a document into partial records.

        The base record comes first, followed by the array slices ordered by
        field name and then by position.
        """
        base = dict(document.data)
        pieces: list[dict[str, Any]] = []

        for name in sorted(base):
            value = base[name]
            if not isinstance(value, list) or len(value) <= self.chunk_size:
                continue

            self._logger.debug(
                f"Chunking large list {name} of {document.id} "
                f"({len(value)} items, chunk size {self.chunk_size})"
            )
            for start in range(0, len(value), self.chunk_size):
                pieces.append(
                    {
                        ID_FIELD: document.id,
                        name: value[start:start + self.chunk_size],
                    }
                )
            del base[name]

        return [base] + pieces

    def chunks(
        self,
        document: Document,
        batch_date: str,
        stats: Optional[ChunkStats] = None,
    ) -> Iterator[Chunk]:
        """Yield the serialized chunks of a document that pass the size policy.

        Rejected chunks are counted on stats and skipped; their index is not
        reused.
        """
        stats = stats if stats is not None else ChunkStats()
        partials = self.split(document)

        self._logger.debug(f"Created {len(partials)} chunks for document {document.id}")

        for index, payload in enumerate(partials):
            try:
                data = serialize_payload(payload)
            except (TypeError, ValueError) as e:
                message = f"Failed to marshal JSON for document {document.id} chunk {index}: {e}"
                self._logger.error(message)
                stats.chunks_failed += 1
                stats.record_error(message)
                continue

            try:
                if check_json_size(len(data.encode("utf-8")), document.id, index, self._logger):
                    stats.size_warnings += 1
            except ChunkSizeError as e:
                self._logger.error(
                    f"JSON size validation failed: {e}",
                    extra={"data": {"document_id": document.id, "chunk_index": index}},
                )
                stats.size_rejections += 1
                stats.record_error(str(e))
                continue

            stats.chunks_emitted += 1
            yield Chunk(
                batch_date=batch_date,
                type=document.type,
                id=document.id,
                version=document.version,
                index=index,
                author=document.author,
                date=document.date,
                deleted=document.deleted,
                payload=payload,
                data=data,
            )

        stats.documents_chunked += 1
