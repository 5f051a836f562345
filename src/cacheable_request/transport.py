"""
Outgoing request handle and the default httpx request function.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Union

import httpx

from .errors import RequestAbortedError
from .types import RequestDescriptor

logger = logging.getLogger(__name__)

Sender = Callable[[httpx.Request], Awaitable[httpx.Response]]


class OutgoingRequest:
    """
    In-flight outbound request.

    Handed to ``request`` listeners before dispatch so they can write a
    body, adjust headers or abort. Dispatch happens at most once.
    """

    def __init__(self, descriptor: RequestDescriptor, send: Sender) -> None:
        self.descriptor = descriptor
        self.headers: Dict[str, str] = dict(descriptor.headers)
        self._send = send
        self._body = bytearray(descriptor.body or b"")
        self._aborted = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._response: Optional[httpx.Response] = None

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    @property
    def dispatched(self) -> bool:
        return self._task is not None

    def write(self, data: Union[bytes, str]) -> None:
        """Append to the request body. Only valid before dispatch."""
        if self.dispatched:
            raise RuntimeError("Request already dispatched")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._body.extend(data)

    def build_request(self) -> httpx.Request:
        return httpx.Request(
            self.descriptor.method,
            self.descriptor.url,
            headers=self.headers,
            content=bytes(self._body) if self._body else None,
        )

    def dispatch(self) -> None:
        """Start sending the request."""
        if self._task is not None or self.aborted:
            return
        self._task = asyncio.ensure_future(self._run())

    async def _run(self) -> httpx.Response:
        request = self.build_request()
        logger.debug(f"dispatch: {request.method} {request.url}")
        response = await self._send(request)
        if self.aborted:
            await response.aclose()
            raise RequestAbortedError()
        self._response = response
        return response

    async def wait_response(self) -> httpx.Response:
        """
        Dispatch if needed and wait for the response head.

        Raises:
            RequestAbortedError: The request was aborted first.
        """
        self.dispatch()
        if self.aborted or self._task is None:
            raise RequestAbortedError()

        waiter = asyncio.ensure_future(self._aborted.wait())
        try:
            await asyncio.wait({self._task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if self.aborted:
            if self._task.done() and not self._task.cancelled():
                # retrieve to silence "exception was never retrieved"
                self._task.exception()
            raise RequestAbortedError()
        return self._task.result()

    async def wait_aborted(self) -> None:
        await self._aborted.wait()

    def abort(self) -> None:
        """Abort the request and close any response stream."""
        if self.aborted:
            return
        self._aborted.set()
        logger.debug(f"abort: {self.descriptor.method} {self.descriptor.url}")
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._response is not None:
            asyncio.ensure_future(self._response.aclose())


RequestFunction = Callable[[RequestDescriptor], OutgoingRequest]


def create_httpx_request(client: httpx.AsyncClient) -> RequestFunction:
    """
    Create a request function sending through an httpx client.

    Responses are streamed; the body is read by whoever consumes it.

    Example:
        async with httpx.AsyncClient() as client:
            cacheable = CacheableRequest(create_httpx_request(client))
    """

    async def send(request: httpx.Request) -> httpx.Response:
        return await client.send(request, stream=True)

    def request_function(descriptor: RequestDescriptor) -> OutgoingRequest:
        return OutgoingRequest(descriptor, send)

    return request_function
