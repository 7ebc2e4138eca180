"""Remote schema document fetcher with a per-registry URI cache."""

import asyncio
import codecs
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from schemapipe.core.errors import ReferenceFetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class HttpResponse:
    """Minimal view of an HTTP response.

    ``status`` is None when the server sent no status line. ``body`` yields raw
    byte chunks; ``close`` releases the connection.
    """
    status: int | None
    body: AsyncIterator[bytes]
    close: Callable[[], Any] = lambda: None


HttpGet = Callable[[str], Awaitable[HttpResponse]]


async def _read_chunks(stream) -> AsyncIterator[bytes]:
    while True:
        chunk = await asyncio.to_thread(stream.read, CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def urllib_get(timeout: float = 30.0) -> HttpGet:
    """Build an ``http_get`` on top of urllib.request, run in worker threads"""

    async def http_get(uri: str) -> HttpResponse:
        request = urllib.request.Request(uri, headers={"Accept": "application/json"})
        try:
            stream = await asyncio.to_thread(urllib.request.urlopen, request, timeout=timeout)
        except urllib.error.HTTPError as error:
            # Error statuses still carry a readable body
            stream = error
        return HttpResponse(
            status=getattr(stream, "status", None) or stream.getcode(),
            body=_read_chunks(stream),
            close=stream.close,
        )

    return http_get


async def _decode(uri: str, body: AsyncIterator[bytes]) -> str:
    decoder = codecs.getincrementaldecoder("utf-8")()
    text = ""
    try:
        async for chunk in body:
            text += decoder.decode(chunk)
        text += decoder.decode(b"", final=True)
    except UnicodeDecodeError as e:
        raise UnicodeDecodeError(
            e.encoding, e.object, e.start, e.end, f"{e.reason} in schema {uri}",
        ) from e
    return text


class RemoteSchemaCache:
    """Fetches JSON schema documents by URI and remembers successful results"""

    def __init__(self, http_get: HttpGet | None = None, timeout: float = 30.0):
        self._http_get = http_get or urllib_get(timeout)
        self._cache: dict[str, Any] = {}

    async def fetch(self, uri: str) -> Any:
        """Return the parsed document at uri.

        Raises:
            ReferenceFetchError: If the request fails or the response status is
                missing or >= 300
            UnicodeDecodeError: If the body is not valid UTF-8
            json.JSONDecodeError: If the body is not valid JSON
        """
        if uri in self._cache:
            logger.debug("Schema cache hit: %s", uri)
            return self._cache[uri]

        logger.info("Fetching schema %s", uri)
        try:
            response = await self._http_get(uri)
        except OSError as e:
            logger.warning("Schema request failed: %s: %s", uri, e)
            raise ReferenceFetchError(uri, None, reason=str(e)) from e
        try:
            if response.status is None or response.status >= 300:
                logger.warning("Schema request failed with status %s: %s", response.status, uri)
                # Consume the rest of the data to free the connection
                async for _ in response.body:
                    pass
                raise ReferenceFetchError(uri, response.status)

            text = await _decode(uri, response.body)
        except OSError as e:
            logger.warning("Schema download failed: %s: %s", uri, e)
            raise ReferenceFetchError(uri, response.status, reason=str(e)) from e
        finally:
            response.close()

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError(
                f"Invalid JSON in schema {uri}: {e.msg}",
                e.doc,
                e.pos,
            ) from e

        self._cache[uri] = document
        logger.info("Fetched schema %s", uri)
        return document

    def cached(self, uri: str) -> Any | None:
        """Cached document for uri, or None"""
        return self._cache.get(uri)

    def __contains__(self, uri: str) -> bool:
        return uri in self._cache

    def __len__(self) -> int:
        return len(self._cache)
