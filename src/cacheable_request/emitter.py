"""
Event-notification handle returned by cacheable request calls.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import CacheableRequestError

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]
EventName = Union[str, Enum]


def _event_name(event: EventName) -> str:
    return event.value if isinstance(event, Enum) else str(event)


class CacheableRequestEmitter:
    """
    Lifecycle events of one cacheable request.

    Channels: ``request`` (once, the ``OutgoingRequest``), ``response``
    (at most once, the settled ``CacheableResponse``) and ``error`` (any
    number of ``CacheError``/``RequestError``). ``request`` always comes
    before ``response`` and request errors.

    Example:
        emitter = cacheable("https://example.com/data")
        emitter.on("request", lambda req: req.write(b"")).on("response", handle)
        response = await emitter.response()
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._once: Dict[str, List[Listener]] = {}
        self._task: Optional[asyncio.Task] = None
        self._response: Any = None
        self._errors: List[CacheableRequestError] = []

    def on(self, event: EventName, listener: Listener) -> "CacheableRequestEmitter":
        """Add an event listener."""
        self._listeners.setdefault(_event_name(event), []).append(listener)
        return self

    def once(self, event: EventName, listener: Listener) -> "CacheableRequestEmitter":
        """Add a listener removed after its first call."""
        name = _event_name(event)
        self._listeners.setdefault(name, []).append(listener)
        self._once.setdefault(name, []).append(listener)
        return self

    def off(self, event: EventName, listener: Listener) -> "CacheableRequestEmitter":
        """Remove an event listener."""
        name = _event_name(event)
        if listener in self._listeners.get(name, []):
            self._listeners[name].remove(listener)
        if listener in self._once.get(name, []):
            self._once[name].remove(listener)
        return self

    def listener_count(self, event: EventName) -> int:
        return len(self._listeners.get(_event_name(event), []))

    def emit(self, event: EventName, payload: Any) -> bool:
        """Call listeners of ``event``. Returns whether any were registered."""
        name = _event_name(event)
        if name == "response":
            self._response = payload
        elif name == "error":
            self._errors.append(payload)
            logger.debug(f"emit error: {type(payload).__name__}: {payload}")

        listeners = list(self._listeners.get(name, []))
        for listener in listeners:
            if listener in self._once.get(name, []):
                self.off(name, listener)
            try:
                listener(payload)
            except Exception:
                logger.error(f"Listener for '{name}' raised", exc_info=True)
        return bool(listeners)

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def errors(self) -> List[CacheableRequestError]:
        return list(self._errors)

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait(self) -> None:
        """Wait until the call settled, including any store write."""
        if self._task is not None:
            await self._task

    async def response(self) -> Any:
        """
        Wait for the call and return the settled response.

        Raises:
            CacheableRequestError: The first error, when no response was emitted.
        """
        await self.wait()
        if self._response is not None:
            return self._response
        if self._errors:
            raise self._errors[0]
        raise RuntimeError("Cacheable request settled without a response")
