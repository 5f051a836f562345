"""
Default RFC 7234 cache policy.

Freshness, validator and Vary handling for one request/response pair,
built on the Cache-Control parsing utilities.
"""
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from .parser import (
    calculate_freshness_lifetime,
    extract_etag,
    extract_last_modified,
    extract_vary_headers,
    format_date_header,
    get_header_value,
    hop_by_hop_names,
    is_cacheable_by_default,
    is_cacheable_method,
    is_cacheable_status,
    is_vary_uncacheable,
    match_vary_headers,
    normalize_headers,
    parse_cache_control,
    parse_vary,
    strip_hop_by_hop,
)
from .types import CachePolicy, RequestDescriptor

POLICY_FORMAT_VERSION = 1

IMMUTABLE_MIN_TTL_SECONDS = 24 * 3600

EXCLUDED_FROM_REVALIDATION_UPDATE = frozenset(
    ["content-length", "content-encoding", "transfer-encoding", "content-range"]
)

HeaderItems = List[Tuple[str, str]]
HeadersInput = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


def _strip_weak(etag: str) -> str:
    return etag[2:] if etag.startswith("W/") else etag


def _header_items(headers: Any) -> HeaderItems:
    """Header pairs with lowercase names, repeated headers kept apart."""
    if hasattr(headers, "multi_items"):
        items = headers.multi_items()
    elif isinstance(headers, Mapping):
        items = headers.items()
    else:
        items = headers
    return [(str(name).lower(), str(value)) for name, value in items]


def _joined(items: HeaderItems) -> Dict[str, str]:
    joined: Dict[str, str] = {}
    for name, value in items:
        joined[name] = f"{joined[name]}, {value}" if name in joined else value
    return joined


class HttpCachePolicy(CachePolicy):
    """
    Cache policy for shared caches.

    Subclass with ``shared = False`` for a private (single user) cache.

    Example:
        policy = HttpCachePolicy.from_response(descriptor, response)
        if policy.storable():
            await store.set(key, entry, policy.time_to_live())
    """

    shared: bool = True

    def __init__(
        self,
        method: str,
        path: str,
        host: str,
        request_headers: Dict[str, str],
        status_code: int,
        response_headers: HeadersInput,
        response_time: Optional[float] = None,
    ) -> None:
        self._method = method.upper()
        self._path = path
        self._host = host.lower()
        self._request_headers = normalize_headers(request_headers)
        self._status_code = status_code
        self._response_header_items = _header_items(response_headers)
        self._response_headers = _joined(self._response_header_items)
        self._response_time = response_time if response_time is not None else time.time()
        self._request_cc = parse_cache_control(self._request_headers.get("cache-control"))
        self._response_cc = parse_cache_control(self._response_headers.get("cache-control"))

        # HTTP/1.0 no-cache
        pragma = self._response_headers.get("pragma", "")
        if "cache-control" not in self._response_headers and "no-cache" in pragma.lower():
            self._response_cc.no_cache = True

    @classmethod
    def from_response(cls, request: RequestDescriptor, response: Any) -> "HttpCachePolicy":
        return cls(
            method=request.method,
            path=request.path,
            host=request.host,
            request_headers=dict(request.headers),
            status_code=response.status_code,
            response_headers=_header_items(response.headers),
        )

    @classmethod
    def from_object(cls, data: Dict[str, Any]) -> "HttpCachePolicy":
        if not isinstance(data, dict) or data.get("version") != POLICY_FORMAT_VERSION:
            raise ValueError("Unsupported cache policy format")
        try:
            return cls(
                method=data["method"],
                path=data["path"],
                host=data["host"],
                request_headers=data["request_headers"],
                status_code=int(data["status_code"]),
                response_headers=data["response_headers"],
                response_time=float(data["response_time"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed cache policy: {e}") from e

    def to_object(self) -> Dict[str, Any]:
        return {
            "version": POLICY_FORMAT_VERSION,
            "method": self._method,
            "path": self._path,
            "host": self._host,
            "request_headers": dict(self._request_headers),
            "status_code": self._status_code,
            "response_headers": [list(item) for item in self._response_header_items],
            "response_time": self._response_time,
        }

    @property
    def status_code(self) -> int:
        return self._status_code

    def storable(self) -> bool:
        if self._request_cc.no_store or self._response_cc.no_store:
            return False
        if not is_cacheable_method(self._method):
            return False
        if not is_cacheable_status(self._status_code):
            return False
        if self.shared and self._response_cc.private:
            return False
        if self.shared and "authorization" in self._request_headers and not (
            self._response_cc.public
            or self._response_cc.must_revalidate
            or self._response_cc.s_maxage is not None
        ):
            return False
        if is_vary_uncacheable(self._response_headers.get("vary")):
            return False
        return (
            "expires" in self._response_headers
            or self._response_cc.max_age is not None
            or (self.shared and self._response_cc.s_maxage is not None)
            or self._response_cc.public
            or is_cacheable_by_default(self._status_code)
        )

    def age(self) -> float:
        """Seconds since the origin produced the response."""
        try:
            age_header = float(self._response_headers.get("age", 0))
        except ValueError:
            age_header = 0.0
        resident_time = time.time() - self._response_time
        return max(0.0, age_header) + max(0.0, resident_time)

    def max_age(self) -> float:
        """Freshness lifetime in seconds."""
        if not self.storable() or self._response_cc.no_cache:
            return 0.0

        if (
            self.shared
            and "set-cookie" in self._response_headers
            and not self._response_cc.public
            and not self._response_cc.immutable
        ):
            return 0.0

        if self.shared and self._response_cc.proxy_revalidate:
            return 0.0

        default_min_ttl = IMMUTABLE_MIN_TTL_SECONDS if self._response_cc.immutable else 0
        return calculate_freshness_lifetime(
            self._response_headers,
            self._response_cc,
            shared=self.shared,
            response_time=self._response_time,
            default_min_ttl=default_min_ttl,
        )

    def time_to_live(self) -> float:
        return max(0.0, self.max_age() - self.age())

    def stale(self) -> bool:
        return self.max_age() <= self.age()

    def _request_matches(self, request: RequestDescriptor, allow_head: bool) -> bool:
        if request.path != self._path or request.host.lower() != self._host:
            return False
        method = request.method.upper()
        if method != self._method and not (allow_head and method == "HEAD"):
            return False
        return self._vary_matches(request)

    def _vary_matches(self, request: RequestDescriptor) -> bool:
        vary = parse_vary(self._response_headers.get("vary"))
        if not vary:
            return True
        cached = extract_vary_headers(self._request_headers, vary)
        return match_vary_headers(request.headers, vary, cached)

    def satisfies_without_revalidation(self, request: RequestDescriptor) -> bool:
        request_cc = parse_cache_control(get_header_value(request.headers, "cache-control"))
        if request_cc.no_cache:
            return False
        pragma = get_header_value(request.headers, "pragma") or ""
        if "no-cache" in pragma.lower():
            return False

        if request_cc.max_age is not None and self.age() > request_cc.max_age:
            return False

        if (
            request_cc.min_fresh is not None
            and self.max_age() - self.age() < request_cc.min_fresh
        ):
            return False

        if self.stale():
            allows_stale = (
                request_cc.max_stale is not None
                and not self._response_cc.must_revalidate
                and request_cc.max_stale > self.age() - self.max_age()
            )
            if not allows_stale:
                return False

        return self._request_matches(request, allow_head=False)

    def revalidation_headers(self, request: RequestDescriptor) -> Dict[str, str]:
        headers = strip_hop_by_hop(request.headers)
        headers.pop("if-range", None)

        if not self._request_matches(request, allow_head=True) or not self.storable():
            headers.pop("if-none-match", None)
            headers.pop("if-modified-since", None)
            return headers

        etag = extract_etag(self._response_headers)
        if etag:
            existing = headers.get("if-none-match")
            headers["if-none-match"] = f"{existing}, {etag}" if existing else etag

        forbids_weak = (
            "accept-ranges" in headers
            or "range" in headers
            or request.method.upper() != "GET"
        )

        if forbids_weak:
            headers.pop("if-modified-since", None)
            if "if-none-match" in headers:
                strong = [
                    tag.strip()
                    for tag in headers["if-none-match"].split(",")
                    if not tag.strip().startswith("W/")
                ]
                if strong:
                    headers["if-none-match"] = ", ".join(strong)
                else:
                    del headers["if-none-match"]
        else:
            last_modified = extract_last_modified(self._response_headers)
            if last_modified and "if-modified-since" not in headers:
                headers["if-modified-since"] = last_modified

        return headers

    def revalidated_policy(
        self, request: RequestDescriptor, response: Any
    ) -> Tuple["HttpCachePolicy", bool]:
        new_policy = self.__class__.from_response(request, response)
        if response.status_code != 304:
            return new_policy, True

        new_items = _header_items(response.headers)
        new_headers = _joined(new_items)
        stored_etag = extract_etag(self._response_headers)
        new_etag = extract_etag(new_headers)
        stored_last_modified = extract_last_modified(self._response_headers)
        new_last_modified = extract_last_modified(new_headers)

        if stored_etag and new_etag:
            matches = _strip_weak(stored_etag) == _strip_weak(new_etag)
        elif stored_last_modified:
            matches = stored_last_modified == new_last_modified
        else:
            matches = not (stored_etag or new_etag or new_last_modified)

        if not matches:
            return new_policy, True

        updated = {
            name for name, _ in new_items if name not in EXCLUDED_FROM_REVALIDATION_UPDATE
        }
        merged = [item for item in self._response_header_items if item[0] not in updated]
        merged.extend(item for item in new_items if item[0] in updated)

        return (
            self.__class__(
                method=request.method,
                path=request.path,
                host=request.host,
                request_headers=dict(request.headers),
                status_code=self._status_code,
                response_headers=merged,
            ),
            False,
        )

    def response_headers(self) -> httpx.Headers:
        dropped = hop_by_hop_names(self._response_headers)
        headers = httpx.Headers(
            [item for item in self._response_header_items if item[0] not in dropped]
        )
        headers["age"] = str(int(round(self.age())))
        headers["date"] = format_date_header()
        return headers
