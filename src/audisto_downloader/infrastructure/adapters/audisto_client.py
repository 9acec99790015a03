"""Adapter for fetching crawl pages from the Audisto API over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...application.ports.chunk_source import ChunkSourcePort
from ...domain.errors import TransportError
from ...domain.models.chunk import ChunkResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.audisto.com"
PAGES_PATH = "/2.0/crawls/{crawl_id}/pages"


class AudistoHttpTransport:
    """
    Performs single GET requests against the API and returns raw answers.

    gzip and deflate bodies are decompressed by httpx according to the
    response's Content-Encoding. Status codes are passed through untouched;
    only connection-level failures raise.
    """

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 300.0,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize transport.

        Args:
            username: API username (sent as HTTP basic auth on every request)
            password: API password
            base_url: API root, e.g. https://api.audisto.com
            timeout_seconds: Per-request timeout
            client: Pre-built httpx.Client (tests inject one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))
        self._auth = httpx.BasicAuth(username, password)
        self._headers = {
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        }

    def get(self, path: str, params: dict[str, Any]) -> ChunkResponse:
        """
        Issue a GET request.

        Args:
            path: URL path below base_url
            params: Query parameters

        Returns:
            ChunkResponse with the status code and decompressed body

        Raises:
            TransportError: On DNS, connection, timeout, protocol or decoding failures
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.client.get(url, params=params, headers=self._headers, auth=self._auth)
        except httpx.HTTPError as e:
            logger.debug(f"Request to {url} failed: {e!r}", extra={"url": url})
            raise TransportError(f"Failed to get the URL {url}: {e}", url=url) from e

        logger.debug(
            f"GET {url} -> {response.status_code} ({len(response.content)} bytes)",
            extra={"url": url, "status_code": response.status_code},
        )
        return ChunkResponse(status_code=response.status_code, body=response.content)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> AudistoHttpTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AudistoChunkSource(ChunkSourcePort):
    """Builds chunk and row-count probe requests for one crawl."""

    def __init__(self, transport: AudistoHttpTransport, crawl_id: int) -> None:
        self.transport = transport
        self.crawl_id = crawl_id
        self.path = PAGES_PATH.format(crawl_id=crawl_id)

    def fetch_chunk(
        self,
        chunk_index: int,
        chunk_size: int,
        no_details: bool,
    ) -> ChunkResponse:
        params = {
            "deep": "0" if no_details else "1",
            "chunk": str(chunk_index),
            "chunk_size": str(chunk_size),
            "output": "tsv",
        }
        return self.transport.get(self.path, params)

    def fetch_total(self) -> ChunkResponse:
        params = {
            "deep": "0",
            "chunk": "0",
            "chunk_size": "1",
            "output": "json",
        }
        return self.transport.get(self.path, params)
