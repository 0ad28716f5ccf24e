"""
Warehouse adapter contract shared by every backend.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Optional

from docsync.exceptions import ConfigError
from docsync.logging_config import get_logger
from docsync.replication.chunker import MAX_RECORDED_ERRORS, Chunk
from docsync.views.plan import ViewPlan, ViewPlanNode

if TYPE_CHECKING:
    from docsync.config import SyncSettings

DOCUMENTS_TABLE = "DOCUMENTS"
LATEST_ALL_VERSIONS_VIEW = f"{DOCUMENTS_TABLE}_LATEST_ALL_VERSIONS"
LATEST_VIEW = f"{DOCUMENTS_TABLE}_LATEST"

# Columns of the documents table, in insert order
DOCUMENT_COLUMNS = (
    "BATCH_DATE",
    "TYPE",
    "ID",
    "VERSION",
    "CHUNK",
    "AUTHOR",
    "DATE",
    "DELETED",
    "DATA",
)
KEY_COLUMNS = ("BATCH_DATE", "TYPE", "ID", "VERSION", "CHUNK")

# Alias of the latest-documents relation inside type views
ROW_ALIAS = "L"
# Alias of the expanded list item inside list views
ITEM_ALIAS = "item"


@dataclass
class UploadResult:
    """Outcome of uploading one page of chunks."""

    documents: int = 0
    chunks_written: int = 0
    chunks_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        if len(self.errors) < MAX_RECORDED_ERRORS:
            self.errors.append(message)


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote an SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def chunk_row(chunk: Chunk) -> tuple:
    """Values of a chunk in DOCUMENT_COLUMNS order."""
    return (
        chunk.batch_date,
        chunk.type,
        chunk.id,
        chunk.version,
        chunk.index,
        chunk.author,
        chunk.date,
        chunk.deleted,
        chunk.data,
    )


class Warehouse(ABC):
    """Destination of replicated chunks and compiled views.

    Every operation opens its own session, bootstraps the documents table when
    missing and closes the session on every exit path.
    """

    name = "warehouse"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or get_logger(__name__)

    @abstractmethod
    async def bootstrap(self) -> None:
        """Create the documents table if it does not exist."""

    @abstractmethod
    async def upload(self, batch_date: str, chunks: AsyncIterator[Chunk]) -> UploadResult:
        """Upsert every chunk of a page in a single transaction.

        Rows failing individually are counted and skipped.

        Raises:
            WarehouseError: session could not be opened or the commit failed
        """

    @abstractmethod
    async def prune(self) -> int:
        """Delete rows not from the latest batch of their (type, id, version).

        Returns:
            Number of rows deleted
        """

    @abstractmethod
    async def apply_view_plan(self, plan: ViewPlan) -> list[str]:
        """Create the standing views and every view of a plan.

        Returns:
            Names of the views created
        """

    @abstractmethod
    def standing_view_statements(self) -> list[str]:
        """DDL of the latest-batch and latest-version views."""

    @abstractmethod
    def render_view(self, node: ViewPlanNode) -> str:
        """SELECT statement backing one view."""

    def render_view_plan(self, plan: ViewPlan) -> dict[str, str]:
        """View name -> SELECT statement, for every view of a plan."""
        return {node.name: self.render_view(node) for node in plan.walk()}

    def _where_clause(self, node: ViewPlanNode) -> str:
        clause = f"WHERE {ROW_ALIAS}.{quote_identifier('TYPE')} = {quote_literal(node.document_type)}"
        if node.base_chunk_only:
            clause += f" AND {ROW_ALIAS}.{quote_identifier('CHUNK')} = 0"
        return clause


def create_warehouse(settings: "SyncSettings", logger: Optional[logging.Logger] = None) -> Warehouse:
    """Build the adapter named by settings.database_type.

    Raises:
        ConfigError: database type is not supported
    """
    database_type = (settings.database_type or "").upper()

    if database_type == "SQLITE":
        from docsync.warehouses.sqlite import SQLiteWarehouse

        return SQLiteWarehouse(settings.database_dsn, logger=logger)

    if database_type in ("POSTGRES", "POSTGRESQL"):
        from docsync.warehouses.postgres import PostgresWarehouse

        return PostgresWarehouse.from_url(settings.database_dsn, logger=logger)

    raise ConfigError(f"unsupported database type: {settings.database_type}")
