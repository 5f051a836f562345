"""Mock transports, stores and helpers shared by cacheable_request tests."""
import asyncio
from typing import AsyncIterator, Dict, List, Optional

import httpx

from cacheable_request import CacheableRequest, CacheableResponse

ORIGIN = "http://origin.test"

LAST_MODIFIED = "Wed, 21 Oct 2015 07:28:00 GMT"
ETAG = '"33a64df551425fcc55e4d42a148795d9f25f89d4"'


class OriginMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock origin server with per-path hit counters."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.hits: Dict[str, int] = {}

    def calls(self, path: str) -> int:
        return self.hits.get(path, 0)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Answer like a small caching-aware origin."""
        self.requests.append(request)
        path = request.url.path
        self.hits[path] = self.hits.get(path, 0) + 1
        index = self.hits[path]

        if path == "/cache":
            return httpx.Response(
                200,
                headers={"cache-control": "public, max-age=60"},
                content=str(index).encode(),
            )

        if path == "/no-store":
            return httpx.Response(
                200,
                headers={"cache-control": "public, no-cache, no-store"},
                content=str(index).encode(),
            )

        if path == "/last-modified":
            headers = {"cache-control": "public, max-age=0", "last-modified": LAST_MODIFIED}
            if request.headers.get("if-modified-since") == LAST_MODIFIED:
                return httpx.Response(304, headers=headers)
            return httpx.Response(200, headers=headers, content=b"last-modified")

        if path == "/etag":
            headers = {"cache-control": "public, max-age=0", "etag": ETAG}
            if request.headers.get("if-none-match") == ETAG:
                return httpx.Response(304, headers=headers)
            return httpx.Response(200, headers=headers, content=b"etag")

        if path == "/etag-changes":
            headers = {"cache-control": "public, max-age=0", "etag": f'"v{index}"'}
            return httpx.Response(200, headers=headers, content=f"v{index}".encode())

        if path == "/cache-then-no-store-on-revalidate":
            cache_control = (
                "public, max-age=0" if index == 1 else "public, no-cache, no-store"
            )
            return httpx.Response(
                200,
                headers={"cache-control": cache_control},
                content=b"cache-then-no-store-on-revalidate",
            )

        if path == "/cookies":
            return httpx.Response(
                200,
                headers=[
                    ("cache-control", "public, max-age=60"),
                    ("set-cookie", "a=1"),
                    ("set-cookie", "b=2"),
                ],
                content=b"cookies",
            )

        if path == "/echo":
            return httpx.Response(
                200,
                headers={"cache-control": "no-store"},
                content=request.content,
            )

        return httpx.Response(200, content=b"hi")

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class GatedStream(httpx.AsyncByteStream):
    """Body stream that holds back everything after the first chunk."""

    def __init__(self, chunks: List[bytes], gate: asyncio.Event) -> None:
        self.chunks = chunks
        self.gate = gate
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.chunks[0]
        await self.gate.wait()
        for chunk in self.chunks[1:]:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class GatedMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock transport whose response body stalls until the gate opens."""

    def __init__(self, hold_response: bool = False) -> None:
        self.gate = asyncio.Event()
        self.hold_response = hold_response
        self.requests: list[httpx.Request] = []
        self.streams: list[GatedStream] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Return a cacheable response with a gated body."""
        self.requests.append(request)
        if self.hold_response:
            await self.gate.wait()
        stream = GatedStream([b"first-", b"second"], self.gate)
        self.streams.append(stream)
        return httpx.Response(
            200,
            headers={"cache-control": "public, max-age=60"},
            stream=stream,
        )

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class ErrorMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport that raises errors."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Raise the configured error."""
        self.requests.append(request)
        raise self.error

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class RecordingStore:
    """Plain get/set/delete store recording every TTL it receives."""

    def __init__(self) -> None:
        self.data: Dict[str, object] = {}
        self.ttls: List[Optional[float]] = []

    def get(self, key: str):
        return self.data.get(key)

    def set(self, key: str, value, ttl: Optional[float] = None) -> None:
        self.ttls.append(ttl)
        self.data[key] = value

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None


class FailingStore:
    """Store whose selected operations raise."""

    def __init__(self, fail_on: str, message: str = "Fail") -> None:
        self.fail_on = fail_on
        self.message = message
        self.data: Dict[str, object] = {}

    async def get(self, key: str):
        if self.fail_on == "get":
            raise RuntimeError(self.message)
        return self.data.get(key)

    async def set(self, key: str, value, ttl: Optional[float] = None) -> None:
        if self.fail_on == "set":
            raise RuntimeError(self.message)
        self.data[key] = value

    async def delete(self, key: str) -> bool:
        if self.fail_on == "delete":
            raise RuntimeError(self.message)
        return self.data.pop(key, None) is not None


async def fetch(cacheable: CacheableRequest, request_input) -> tuple[CacheableResponse, bytes]:
    """Run one call to completion and read the body."""
    emitter = cacheable(request_input)
    response = await emitter.response()
    body = await response.aread()
    return response, body


