"""
SQLite warehouse using aiosqlite and the JSON1 functions.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

from docsync.exceptions import WarehouseError
from docsync.replication.chunker import Chunk
from docsync.views.plan import ColumnSource, Coercion, ProjectionColumn, ViewPlan, ViewPlanNode
from docsync.warehouses.base import (
    DOCUMENT_COLUMNS,
    DOCUMENTS_TABLE,
    ITEM_ALIAS,
    LATEST_ALL_VERSIONS_VIEW,
    LATEST_VIEW,
    ROW_ALIAS,
    UploadResult,
    Warehouse,
    chunk_row,
    quote_identifier,
    quote_literal,
)

_CASTS = {
    Coercion.INTEGER: "INTEGER",
    Coercion.DECIMAL: "REAL",
    Coercion.BOOLEAN: "INTEGER",
}


def json_path(path: tuple[str, ...]) -> str:
    """SQLite JSON path literal for a sequence of object keys."""
    quoted = "".join("." + '"' + part.replace('"', '\\"') + '"' for part in path)
    return quote_literal("$" + quoted)


class SQLiteWarehouse(Warehouse):
    """Store chunks in a single SQLite table and expose typed views over it."""

    name = "sqlite"

    def __init__(self, dsn: str, logger: Optional[logging.Logger] = None):
        """Initialize SQLite warehouse.

        Args:
            dsn: Path of the database file
            logger: Optional logger instance
        """
        super().__init__(logger)
        self._path = Path(dsn)

    @property
    def path(self) -> Path:
        return self._path

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a bootstrapped connection, closed on exit."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self._path)
        except (OSError, aiosqlite.Error) as e:
            raise WarehouseError(f"Error connecting to database: {e}") from e

        try:
            await self._bootstrap(db)
            yield db
        finally:
            await db.close()

    async def _bootstrap(self, db: aiosqlite.Connection) -> None:
        try:
            await db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {quote_identifier(DOCUMENTS_TABLE)} (
                    BATCH_DATE TEXT NOT NULL,
                    TYPE TEXT NOT NULL,
                    ID TEXT NOT NULL,
                    VERSION INTEGER NOT NULL,
                    CHUNK INTEGER NOT NULL,
                    AUTHOR TEXT,
                    DATE TEXT NOT NULL,
                    DELETED BOOLEAN NOT NULL,
                    DATA TEXT NOT NULL,
                    PRIMARY KEY (BATCH_DATE, TYPE, ID, VERSION, CHUNK)
                )
                """
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise WarehouseError(f"Error bootstrapping database: {e}") from e

    async def bootstrap(self) -> None:
        async with self.session():
            self._logger.info(f"SQLite warehouse ready at {self._path}")

    async def upload(self, batch_date: str, chunks: AsyncIterator[Chunk]) -> UploadResult:
        result = UploadResult()
        documents: set[tuple[str, str, int]] = set()
        columns = ", ".join(DOCUMENT_COLUMNS)
        placeholders = ", ".join("?" for _ in DOCUMENT_COLUMNS)
        statement = (
            f"INSERT OR REPLACE INTO {quote_identifier(DOCUMENTS_TABLE)} ({columns}) "
            f"VALUES ({placeholders})"
        )

        async with self.session() as db:
            async for chunk in chunks:
                try:
                    await db.execute(statement, chunk_row(chunk))
                except aiosqlite.Error as e:
                    message = f"Error inserting {chunk.id} chunk {chunk.index}: {e}"
                    self._logger.info(message)
                    result.chunks_failed += 1
                    result.record_error(message)
                    continue
                result.chunks_written += 1
                documents.add((chunk.type, chunk.id, chunk.version))

            try:
                await db.commit()
            except aiosqlite.Error as e:
                raise WarehouseError(f"Error committing batch {batch_date}: {e}") from e

        result.documents = len(documents)
        return result

    async def prune(self) -> int:
        table = quote_identifier(DOCUMENTS_TABLE)
        async with self.session() as db:
            try:
                cursor = await db.execute(
                    f"""
                    DELETE FROM {table}
                    WHERE (TYPE, ID, VERSION, BATCH_DATE) NOT IN (
                        SELECT TYPE, ID, VERSION, MAX(BATCH_DATE)
                        FROM {table}
                        GROUP BY TYPE, ID, VERSION
                    )
                    """
                )
                deleted = cursor.rowcount
                await db.commit()
            except aiosqlite.Error as e:
                raise WarehouseError(f"Error pruning documents: {e}") from e

        self._logger.info(f"Pruned {deleted} superseded rows")
        return deleted

    def standing_view_statements(self) -> list[str]:
        table = quote_identifier(DOCUMENTS_TABLE)
        all_versions = quote_identifier(LATEST_ALL_VERSIONS_VIEW)
        latest = quote_identifier(LATEST_VIEW)
        return [
            f"DROP VIEW IF EXISTS {latest}",
            f"DROP VIEW IF EXISTS {all_versions}",
            f"""CREATE VIEW {all_versions} AS
            SELECT * FROM {table} ed
            WHERE (ed.TYPE, ed.ID, ed.VERSION, ed.BATCH_DATE) IN (
                SELECT TYPE, ID, VERSION, MAX(BATCH_DATE)
                FROM {table}
                GROUP BY TYPE, ID, VERSION
            )""",
            f"""CREATE VIEW {latest} AS
            SELECT * FROM {all_versions} ed
            WHERE (ed.TYPE, ed.ID, ed.VERSION) IN (
                SELECT TYPE, ID, MAX(VERSION)
                FROM {table}
                GROUP BY TYPE, ID
            )""",
        ]

    def _column_expression(self, column: ProjectionColumn) -> str:
        if column.source == ColumnSource.ENVELOPE:
            expression = f"{ROW_ALIAS}.{quote_identifier(column.path[0])}"
        elif column.source == ColumnSource.ITEM:
            expression = f"json_extract({ITEM_ALIAS}.value, {json_path(column.path)})"
        else:
            expression = f"json_extract({ROW_ALIAS}.DATA, {json_path(column.path)})"

        cast = _CASTS.get(column.coercion)
        if cast and column.source != ColumnSource.ENVELOPE:
            expression = f"CAST({expression} AS {cast})"
        return f"{expression} AS {quote_identifier(column.name)}"

    def render_view(self, node: ViewPlanNode) -> str:
        columns = ", ".join(self._column_expression(column) for column in node.columns)
        source = f"{quote_identifier(LATEST_VIEW)} {ROW_ALIAS}"
        where = self._where_clause(node)
        if node.list_expansion is not None:
            source += (
                f", json_each({ROW_ALIAS}.DATA, {json_path(node.list_expansion.path)}) "
                f"AS {ITEM_ALIAS}"
            )
            # json_each also yields a row for a scalar in place of the array
            where += f" AND {ITEM_ALIAS}.type = 'object'"
        return f"SELECT {columns} FROM {source} {where}"

    async def apply_view_plan(self, plan: ViewPlan) -> list[str]:
        created: list[str] = []
        async with self.session() as db:
            try:
                for statement in self.standing_view_statements():
                    await db.execute(statement)
                await db.commit()
            except aiosqlite.Error as e:
                raise WarehouseError(f"Error creating latest views: {e}") from e

            for name, select in self.render_view_plan(plan).items():
                self._logger.info(f"Creating helper view `{name}`")
                view = quote_identifier(name)
                try:
                    await db.execute(f"DROP VIEW IF EXISTS {view}")
                    await db.execute(f"CREATE VIEW {view} AS {select}")
                    await db.commit()
                except aiosqlite.Error as e:
                    self._logger.error(f"Error creating {name}: {e}")
                    self._logger.debug(select)
                    continue
                created.append(name)

        return created
