"""
Cacheable request orchestration.

Wraps a request function with an RFC 7234 cache: lookup, freshness
check, conditional revalidation, response merging and store updates.
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Type

import httpx

from .config import merge_cacheable_request_config
from .emitter import CacheableRequestEmitter
from .errors import CacheError, RequestAbortedError, RequestError
from .normalizer import RequestInput, normalize_request
from .policy import HttpCachePolicy
from .response import BodyTee, CacheableResponse, build_cached_response, response_url
from .stores import ensure_cache_store
from .transport import OutgoingRequest, RequestFunction
from .types import (
    CacheableRequestConfig,
    CacheableRequestEventType,
    CachePolicy,
    RequestDescriptor,
    StoredEntry,
)

logger = logging.getLogger(__name__)

ResponseCallback = Callable[[CacheableResponse], Any]


def resolve_ttl(descriptor: RequestDescriptor, policy: CachePolicy) -> Optional[float]:
    """TTL handed to the store: policy TTL when strict, capped by ``max_ttl``."""
    ttl = policy.time_to_live() if descriptor.strict_ttl else None
    if descriptor.max_ttl is not None:
        ttl = descriptor.max_ttl if ttl is None else min(ttl, descriptor.max_ttl)
    return ttl


class CacheableRequest:
    """
    Transparent caching layer around a request function.

    Calling the instance returns a ``CacheableRequestEmitter`` right away;
    the lookup, request and store update run as a task on the running loop.

    Example:
        async with httpx.AsyncClient() as client:
            cacheable = CacheableRequest(create_httpx_request(client), {})
            response = await cacheable("https://example.com/data").response()
            body = await response.aread()
            print(response.from_cache, body)
    """

    def __init__(
        self,
        request: RequestFunction,
        store: Any = None,
        *,
        config: Optional[CacheableRequestConfig] = None,
        policy_class: Type[CachePolicy] = HttpCachePolicy,
    ) -> None:
        if not callable(request):
            raise TypeError("Parameter `request` must be a function")
        self._request = request
        self._store = ensure_cache_store(store)
        self._config = merge_cacheable_request_config(config)
        self._policy_class = policy_class

    @property
    def store(self):
        return self._store

    def get_config(self) -> CacheableRequestConfig:
        """Get configuration."""
        return self._config

    def __call__(
        self,
        request_input: RequestInput,
        callback: Optional[ResponseCallback] = None,
    ) -> CacheableRequestEmitter:
        emitter = CacheableRequestEmitter()
        loop = asyncio.get_running_loop()
        emitter.attach(loop.create_task(self._run(request_input, callback, emitter)))
        return emitter

    async def _run(
        self,
        request_input: RequestInput,
        callback: Optional[ResponseCallback],
        emitter: CacheableRequestEmitter,
    ) -> None:
        try:
            descriptor, normalized_url = normalize_request(request_input, self._config)
            key = self._config.key_generator(descriptor.method, normalized_url)
        except Exception as e:
            logger.debug(f"Request input rejected: {e!r}")
            emitter.emit(CacheableRequestEventType.ERROR, RequestError(e))
            return

        stale_entry: Optional[StoredEntry] = None
        stale_policy: Optional[CachePolicy] = None

        if descriptor.cache:
            try:
                entry = await self._store.get(key)
            except Exception as e:
                logger.warning(f"Cache lookup failed for {key}: {e}")
                emitter.emit(CacheableRequestEventType.ERROR, CacheError(e))
                if not descriptor.automatic_failover:
                    return
                entry = None

            if entry is not None:
                stale_policy = self._load_policy(key, entry, emitter)

            if stale_policy is not None:
                if (
                    stale_policy.satisfies_without_revalidation(descriptor)
                    and not descriptor.force_refresh
                ):
                    logger.debug(f"Cache hit: {key}")
                    await self._deliver(
                        emitter, callback, build_cached_response(entry, stale_policy)
                    )
                    return

                logger.debug(f"Cache stale: {key}")
                stale_entry = entry
                if not descriptor.force_refresh:
                    descriptor.headers = stale_policy.revalidation_headers(descriptor)
            else:
                logger.debug(f"Cache miss: {key}")

        await self._fetch(key, descriptor, stale_entry, stale_policy, callback, emitter)

    def _load_policy(
        self, key: str, entry: StoredEntry, emitter: CacheableRequestEmitter
    ) -> Optional[CachePolicy]:
        try:
            return self._policy_class.from_object(entry.cache_policy)
        except Exception as e:
            logger.warning(f"Unreadable cache policy for {key}: {e}")
            emitter.emit(CacheableRequestEventType.ERROR, CacheError(e))
            return None

    async def _fetch(
        self,
        key: str,
        descriptor: RequestDescriptor,
        stale_entry: Optional[StoredEntry],
        stale_policy: Optional[CachePolicy],
        callback: Optional[ResponseCallback],
        emitter: CacheableRequestEmitter,
    ) -> None:
        try:
            outgoing = self._request(descriptor)
        except Exception as e:
            logger.warning(f"Request function failed for {key}: {e}")
            emitter.emit(CacheableRequestEventType.ERROR, RequestError(e))
            return

        emitter.emit(CacheableRequestEventType.REQUEST, outgoing)

        try:
            live = await outgoing.wait_response()
        except Exception as e:
            logger.debug(f"Request failed for {key}: {e!r}")
            emitter.emit(CacheableRequestEventType.ERROR, RequestError(e))
            return

        url = response_url(live, descriptor.url)
        policy: Optional[CachePolicy] = None
        merged: Optional[CacheableResponse] = None

        if stale_entry is not None and stale_policy is not None and not descriptor.force_refresh:
            revalidated, modified = stale_policy.revalidated_policy(descriptor, live)
            if not modified:
                logger.debug(f"Revalidated, not modified: {key}")
                await live.aclose()
                policy = revalidated
                merged = build_cached_response(stale_entry, revalidated)

        if policy is None:
            policy = self._policy_class.from_response(descriptor, live)

        if descriptor.cache and policy.storable():
            if merged is not None:
                await self._deliver(emitter, callback, merged)
                body = stale_entry.body
                status_code = stale_entry.status_code
                url = stale_entry.url
            else:
                body = await self._tee_and_deliver(
                    key, outgoing, live, policy, url, callback, emitter
                )
                if body is None:
                    return
                status_code = live.status_code

            entry = StoredEntry(
                cache_policy=policy.to_object(),
                url=url,
                status_code=status_code,
                body=body,
            )
            ttl = resolve_ttl(descriptor, policy)
            try:
                await self._store.set(key, entry, ttl)
                logger.debug(f"Cache store: {key} ttl={ttl}")
            except Exception as e:
                logger.warning(f"Cache write failed for {key}: {e}")
                emitter.emit(CacheableRequestEventType.ERROR, CacheError(e))
            return

        if descriptor.cache and stale_entry is not None:
            try:
                await self._store.delete(key)
                logger.debug(f"Cache delete: {key}")
            except Exception as e:
                logger.warning(f"Cache delete failed for {key}: {e}")
                emitter.emit(CacheableRequestEventType.ERROR, CacheError(e))

        await self._deliver(
            emitter,
            callback,
            merged or CacheableResponse(live, policy, from_cache=False, url=url),
        )

    async def _tee_and_deliver(
        self,
        key: str,
        outgoing: OutgoingRequest,
        live: httpx.Response,
        policy: CachePolicy,
        url: str,
        callback: Optional[ResponseCallback],
        emitter: CacheableRequestEmitter,
    ) -> Optional[bytes]:
        """Deliver a clone of ``live`` and buffer its body for the store.

        Returns ``None`` when the body must not be stored.
        """
        tee = BodyTee(live)
        pump = asyncio.ensure_future(tee.pump())
        await self._deliver(
            emitter,
            callback,
            CacheableResponse(tee.clone(), policy, from_cache=False, url=url),
        )

        aborted = asyncio.ensure_future(outgoing.wait_aborted())
        try:
            await asyncio.wait({pump, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            aborted.cancel()

        if outgoing.aborted:
            logger.debug(f"Request aborted before body end, not caching: {key}")
            emitter.emit(
                CacheableRequestEventType.ERROR,
                RequestError(RequestAbortedError()),
            )
            tee.fail(RequestAbortedError())
            if not pump.done():
                pump.cancel()
            elif not pump.cancelled():
                # retrieve to silence "exception was never retrieved"
                pump.exception()
            return None

        try:
            return pump.result()
        except Exception as e:
            logger.warning(f"Buffering response body failed for {key}: {e}")
            emitter.emit(CacheableRequestEventType.ERROR, CacheError(e))
            return None

    async def _deliver(
        self,
        emitter: CacheableRequestEmitter,
        callback: Optional[ResponseCallback],
        response: CacheableResponse,
    ) -> None:
        emitter.emit(CacheableRequestEventType.RESPONSE, response)
        if callback is None:
            return
        try:
            result = callback(response)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.error("Response callback raised", exc_info=True)


def create_cacheable_request(
    request: RequestFunction,
    store: Any = None,
    *,
    config: Optional[CacheableRequestConfig] = None,
    policy_class: Type[CachePolicy] = HttpCachePolicy,
) -> CacheableRequest:
    """Create a cacheable request instance."""
    return CacheableRequest(request, store, config=config, policy_class=policy_class)
