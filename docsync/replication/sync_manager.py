"""
Orchestration of incremental replication into a warehouse.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from docsync.exceptions import DocumentValidationError, SyncError
from docsync.logging_config import get_logger, set_batch_id
from docsync.replication.api_client import DocumentPage
from docsync.replication.chunker import Chunk, Chunker, ChunkStats
from docsync.replication.cursor import BEGINNING_OF_TIME, CursorStore
from docsync.replication.documents import Document

if TYPE_CHECKING:
    from docsync.config import SyncSettings
    from docsync.warehouses.base import Warehouse

BATCH_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class DocumentSource(Protocol):
    """Anything that can open pages of documents (DocumentApiClient in production)."""

    def fetch_page(
        self, since: str, limit: int, include_calcs: bool = False
    ) -> AbstractAsyncContextManager[DocumentPage]: ...


class SyncState(str, Enum):
    """Where the replication loop currently is."""

    LOAD_CURSOR = "LOAD_CURSOR"
    FETCH_PAGE = "FETCH_PAGE"
    CHUNK_AND_UPLOAD = "CHUNK_AND_UPLOAD"
    ADVANCE_CURSOR = "ADVANCE_CURSOR"
    CHECK_TRUNCATION = "CHECK_TRUNCATION"
    IDLE = "IDLE"
    SLEEP = "SLEEP"
    TERMINAL = "TERMINAL"


@dataclass
class SyncConfig:
    """Configuration for sync operations."""

    max_documents: int = 10000
    chunk_size: int = 10000
    include_calcs: bool = False
    force: bool = False  # full refresh on the first iteration
    wait: int = 600  # seconds between iterations; 0 = single iteration
    prune_every: int = 0  # prune after every N successful iterations; 0 = never

    @classmethod
    def from_settings(cls, settings: "SyncSettings") -> "SyncConfig":
        return cls(
            max_documents=settings.max_documents,
            chunk_size=settings.chunk_size,
            include_calcs=settings.include_calcs,
            force=settings.force,
            wait=settings.wait,
            prune_every=settings.prune_every,
        )


@dataclass
class IterationResult:
    """Result of one sync iteration."""

    batch_date: str
    status: str  # RUNNING, COMPLETED, COMPLETED_WITH_ERRORS, FAILED
    started_at: datetime
    completed_at: Optional[datetime] = None
    pages: int = 0
    documents_processed: int = 0
    documents_rejected: int = 0
    records_malformed: int = 0
    chunks_written: int = 0
    chunks_failed: int = 0
    size_warnings: int = 0
    size_rejections: int = 0
    cursor: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status in ("COMPLETED", "COMPLETED_WITH_ERRORS")


class SyncManager:
    """Replicate document pages into a warehouse and advance the cursor."""

    def __init__(
        self,
        source: DocumentSource,
        warehouse: "Warehouse",
        cursor_store: CursorStore,
        config: Optional[SyncConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize sync manager.

        Args:
            source: Upstream document source
            warehouse: Destination warehouse adapter
            cursor_store: Persistence for the sync cursor
            config: Sync configuration
            logger: Optional logger instance
            sleep: Coroutine used to wait between iterations
        """
        self._source = source
        self._warehouse = warehouse
        self._cursor_store = cursor_store
        self._config = config or SyncConfig()
        self._logger = logger or get_logger(__name__)
        self._sleep = sleep
        self._chunker = Chunker(self._config.chunk_size, logger=self._logger)
        self.state = SyncState.IDLE
        self.last_result: Optional[IterationResult] = None

    @staticmethod
    def new_batch_date(now: Optional[datetime] = None) -> str:
        """Batch identifier for an iteration starting now (UTC, second precision)."""
        return (now or datetime.now(timezone.utc)).strftime(BATCH_DATE_FORMAT)

    async def _chunk_stream(
        self,
        page: DocumentPage,
        batch_date: str,
        stats: ChunkStats,
    ) -> AsyncIterator[Chunk]:
        async for record in page.records():
            try:
                document = Document.from_record(record)
            except DocumentValidationError as e:
                message = f"Skipping invalid document: {e}"
                self._logger.error(message)
                stats.documents_rejected += 1
                stats.record_error(message)
                continue

            for chunk in self._chunker.chunks(document, batch_date, stats):
                yield chunk

    async def run_iteration(self, force: Optional[bool] = None) -> IterationResult:
        """Pull every page updated since the stored cursor into the warehouse.

        The cursor is persisted after each page is committed, so a failure
        resumes from the last stored page.

        Args:
            force: Start from the beginning of time; defaults to config.force

        Raises:
            FetchError, WarehouseError, CursorError: the iteration aborted
        """
        force = self._config.force if force is None else force
        batch_date = self.new_batch_date()
        set_batch_id(batch_date)

        result = IterationResult(
            batch_date=batch_date,
            status="RUNNING",
            started_at=datetime.now(timezone.utc),
        )
        self.last_result = result
        stats = ChunkStats()

        self._logger.info("Starting sync" + (" (full refresh)" if force else ""))

        try:
            self.state = SyncState.LOAD_CURSOR
            cursor = None if force else self._cursor_store.load()
            cursor = cursor or BEGINNING_OF_TIME
            result.cursor = cursor

            while True:
                self.state = SyncState.FETCH_PAGE
                async with self._source.fetch_page(
                    since=cursor,
                    limit=self._config.max_documents,
                    include_calcs=self._config.include_calcs,
                ) as page:
                    self.state = SyncState.CHUNK_AND_UPLOAD
                    self._logger.debug("Uploading batch to warehouse")
                    upload = await self._warehouse.upload(
                        batch_date, self._chunk_stream(page, batch_date, stats)
                    )
                    next_cursor = page.cursor
                    truncated = page.truncated
                    result.records_malformed += page.malformed

                result.pages += 1
                result.documents_processed += upload.documents
                result.chunks_written += upload.chunks_written
                result.chunks_failed += upload.chunks_failed
                result.errors.extend(upload.errors)

                self.state = SyncState.ADVANCE_CURSOR
                self._cursor_store.save(next_cursor)
                self._logger.debug(f"Storing last sync date = {next_cursor}")

                self.state = SyncState.CHECK_TRUNCATION
                if not truncated:
                    cursor = next_cursor
                    break
                if next_cursor == cursor:
                    self._logger.warning(
                        f"Page was truncated but the cursor did not advance past {cursor}, "
                        f"ending iteration"
                    )
                    break
                cursor = next_cursor

            result.cursor = cursor

        except SyncError as e:
            result.status = "FAILED"
            result.errors.append(str(e))
            raise

        finally:
            result.documents_rejected = stats.documents_rejected
            result.chunks_failed += stats.chunks_failed
            result.size_warnings = stats.size_warnings
            result.size_rejections = stats.size_rejections
            result.errors.extend(stats.errors)
            result.completed_at = datetime.now(timezone.utc)
            self.state = SyncState.IDLE

        has_errors = (
            result.documents_rejected
            or result.records_malformed
            or result.chunks_failed
            or result.size_rejections
        )
        result.status = "COMPLETED_WITH_ERRORS" if has_errors else "COMPLETED"

        if result.documents_processed == 0:
            self._logger.info("Sync complete: no updated documents")
        else:
            self._logger.info(
                f"Sync complete: {result.documents_processed} updated documents "
                f"in {result.pages} pages ({result.chunks_written} chunks)",
                extra={
                    "data": {
                        "rejected": result.documents_rejected,
                        "malformed": result.records_malformed,
                        "chunks_failed": result.chunks_failed,
                        "size_rejections": result.size_rejections,
                    }
                },
            )
        return result

    async def prune(self) -> int:
        """Delete superseded batches from the warehouse."""
        self._logger.info("Pruning warehouse")
        return await self._warehouse.prune()

    async def run(self, once: bool = False, max_iterations: Optional[int] = None) -> list[IterationResult]:
        """Run sync iterations.

        Args:
            once: Run a single iteration and surface its failure
            max_iterations: Stop after this many iterations (continuous mode)

        Returns:
            Results of every iteration run
        """
        once = once or self._config.wait == 0
        results: list[IterationResult] = []
        force = self._config.force
        successes = 0

        while True:
            try:
                result = await self.run_iteration(force=force)
            except SyncError as e:
                if once:
                    self.state = SyncState.TERMINAL
                    raise
                self._logger.warning(f"Sync failed: {e}")
                results.append(self.last_result)
            else:
                results.append(result)
                successes += 1
                await self._maybe_prune(successes)

            # A full refresh is only forced once
            force = False

            if once or (max_iterations is not None and len(results) >= max_iterations):
                self.state = SyncState.TERMINAL
                return results

            self.state = SyncState.SLEEP
            self._logger.info(f"Sleeping {self._config.wait} seconds")
            await self._sleep(self._config.wait)

    async def _maybe_prune(self, successes: int) -> None:
        every = self._config.prune_every
        if every <= 0 or successes % every != 0:
            return
        try:
            await self.prune()
        except SyncError as e:
            self._logger.warning(f"Prune failed: {e}")
