"""
HTTP client for the upstream document API.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from docsync.exceptions import FetchError, MalformedRecordError, SchemaError
from docsync.logging_config import get_logger
from docsync.replication.documents import parse_record
from docsync.views.schema import RootSchema, parse_root_schema


class DocumentPage:
    """One page of documents streamed from the fetch endpoint.

    Attributes:
        cursor: High-water mark to resume from once this page is stored
        truncated: Whether more documents remain after this page
        malformed: Number of lines skipped because they were not JSON objects
    """

    def __init__(
        self,
        cursor: str,
        truncated: bool,
        lines: AsyncIterator[str],
        logger: Optional[logging.Logger] = None,
    ):
        self.cursor = cursor
        self.truncated = truncated
        self.malformed = 0
        self._lines = lines
        self._logger = logger or get_logger(__name__)

    async def records(self) -> AsyncIterator[dict[str, Any]]:
        """Yield parsed records, skipping malformed lines."""
        async for line in self._lines:
            if not line.strip():
                continue
            try:
                yield parse_record(line)
            except MalformedRecordError as e:
                self.malformed += 1
                self._logger.warning(f"Skipping malformed record: {e}")


class DocumentApiClient:
    """Fetch documents and schema from the upstream document API."""

    FETCH_PATH = "fetch/document/"
    SCHEMA_PATH = "fetch/document/schema"
    CURSOR_HEADER = "X-Sync-Highwater-Mark"
    TRUNCATED_HEADER = "X-Sync-Truncated"

    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize API client.

        Args:
            base_url: Base URL of the upstream API
            key_id: API key id (HTTP Basic user)
            key_secret: API key secret (HTTP Basic password)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            logger: Optional logger instance
        """
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self._timeout = timeout
        self._transport = transport
        self._logger = logger or get_logger(__name__)

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=self._auth,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    @staticmethod
    async def _status_error(response: httpx.Response) -> FetchError:
        body = (await response.aread()).decode("utf-8", errors="replace")
        return FetchError(
            f"unexpected status code: {response.status_code}"
            + (f" ({body[:200].strip()})" if body.strip() else "")
        )

    @asynccontextmanager
    async def fetch_page(
        self,
        since: str,
        limit: int,
        include_calcs: bool = False,
    ) -> AsyncIterator[DocumentPage]:
        """Open a page of documents updated since a cursor.

        The response body is streamed; records must be consumed inside the
        context.

        Args:
            since: Cursor to resume from
            limit: Maximum number of documents in the page
            include_calcs: Include calculated fields

        Raises:
            FetchError: transport failure, non-success status or missing cursor
        """
        params = {"limit": str(limit), "since": since}
        if include_calcs:
            params["calc"] = "true"

        self._logger.debug(f"Pulling batch since {since} (limit {limit})")

        try:
            async with self._client() as client:
                async with client.stream("GET", self._url(self.FETCH_PATH), params=params) as response:
                    if response.status_code != httpx.codes.OK:
                        raise await self._status_error(response)

                    cursor = response.headers.get(self.CURSOR_HEADER, "").strip()
                    if not cursor:
                        raise FetchError(f"response is missing the {self.CURSOR_HEADER} header")

                    truncated_header = response.headers.get(self.TRUNCATED_HEADER)
                    if truncated_header is None:
                        self._logger.warning(
                            f"Response is missing the {self.TRUNCATED_HEADER} header, "
                            f"treating page as complete"
                        )
                        truncated = False
                    else:
                        flag = truncated_header.strip().upper()
                        truncated = flag != "FALSE"
                        if flag != "TRUE":
                            self._logger.warning(
                                f"Unexpected {self.TRUNCATED_HEADER} value "
                                f"{truncated_header!r}, requesting another page"
                            )

                    yield DocumentPage(
                        cursor=cursor,
                        truncated=truncated,
                        lines=response.aiter_lines(),
                        logger=self._logger,
                    )
        except httpx.HTTPError as e:
            raise FetchError(f"performing request: {e}") from e

    async def fetch_schema(
        self,
        include_calcs: bool = False,
        active_only: bool = True,
    ) -> RootSchema:
        """Fetch the root schema describing every document type.

        Raises:
            FetchError: transport failure or non-success status
            SchemaError: body is not a valid schema
        """
        params = {"calc": "true"} if include_calcs else {}

        self._logger.debug("Pulling schema")

        try:
            async with self._client() as client:
                response = await client.get(self._url(self.SCHEMA_PATH), params=params)
        except httpx.HTTPError as e:
            raise FetchError(f"performing request: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise await self._status_error(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise SchemaError(f"Error parsing schema: {e}") from e

        return parse_root_schema(payload, active_only=active_only)
