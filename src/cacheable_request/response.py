"""
Response views handed to callers.
"""
import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, List, Mapping, Optional, Tuple

import httpx

from .types import CachePolicy, StoredEntry

DECODED_BODY_EXCLUDED_HEADERS = frozenset(["content-encoding", "content-length"])


def decoded_headers(headers: Mapping[str, str]) -> List[Tuple[str, str]]:
    """Headers describing a body that was already content-decoded."""
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers.items()
    return [(k, v) for k, v in items if k.lower() not in DECODED_BODY_EXCLUDED_HEADERS]


@dataclass
class CacheableResponse:
    """A response with its cache policy and provenance."""

    response: httpx.Response
    cache_policy: CachePolicy
    from_cache: bool = False
    url: Optional[str] = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def content(self) -> bytes:
        return self.response.content

    @property
    def text(self) -> str:
        return self.response.text

    async def aread(self) -> bytes:
        return await self.response.aread()

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        return self.response.aiter_bytes()

    def aiter_raw(self) -> AsyncIterator[bytes]:
        return self.response.aiter_raw()

    async def aclose(self) -> None:
        await self.response.aclose()


def response_url(response: httpx.Response, default: str) -> str:
    """URL a live response was received from, falling back to ``default``."""
    try:
        return str(response.url)
    except RuntimeError:
        return default


def build_cached_response(
    entry: StoredEntry,
    policy: CachePolicy,
    request: Optional[httpx.Request] = None,
) -> CacheableResponse:
    """Reconstitute a stored entry as a ``from_cache`` response."""
    response = httpx.Response(
        status_code=entry.status_code,
        headers=decoded_headers(policy.response_headers()),
        content=entry.body,
        request=request,
    )
    return CacheableResponse(
        response=response,
        cache_policy=policy,
        from_cache=True,
        url=entry.url,
    )


class BodyTee:
    """
    Reads a live response body once for two consumers.

    ``pump()`` drains the source and returns the full decoded body, while
    ``clone()`` serves the same chunks to the caller as they arrive.
    """

    def __init__(self, source: httpx.Response) -> None:
        self._source = source
        self._chunks: List[bytes] = []
        self._done = False
        self._error: Optional[BaseException] = None
        self._changed = asyncio.Event()

    def _notify(self) -> None:
        self._changed.set()

    def fail(self, error: BaseException) -> None:
        """End the clone stream with ``error``."""
        if not self._done:
            self._error = error
            self._done = True
            self._notify()

    async def pump(self) -> bytes:
        try:
            async for chunk in self._source.aiter_bytes():
                self._chunks.append(chunk)
                self._notify()
        except BaseException as e:
            self.fail(e)
            raise
        finally:
            await self._source.aclose()
        self._done = True
        self._notify()
        return b"".join(self._chunks)

    async def _replay(self) -> AsyncIterator[bytes]:
        index = 0
        while True:
            while index < len(self._chunks):
                yield self._chunks[index]
                index += 1
            if self._error is not None:
                raise self._error
            if self._done:
                return
            await self._changed.wait()
            self._changed.clear()

    def clone(self) -> httpx.Response:
        """A response mirroring the source, streaming the tee'd body."""
        clone = httpx.Response(
            status_code=self._source.status_code,
            headers=decoded_headers(self._source.headers),
            stream=_ReplayStream(self),
            extensions=self._source.extensions,
        )
        try:
            clone.request = self._source.request
        except RuntimeError:
            pass
        return clone


class _ReplayStream(httpx.AsyncByteStream):
    def __init__(self, tee: BodyTee) -> None:
        self._tee = tee

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._tee._replay():
            yield chunk
