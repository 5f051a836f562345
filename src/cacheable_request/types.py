"""
Types for cacheable HTTP requests.
"""
import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple


@dataclass
class CacheControlDirectives:
    """Parsed Cache-Control directives (request or response)."""

    no_store: bool = False
    """Response must not be cached."""

    no_cache: bool = False
    """Response must be revalidated before use."""

    max_age: Optional[int] = None
    """Maximum age in seconds."""

    s_maxage: Optional[int] = None
    """Shared cache maximum age in seconds."""

    private: bool = False
    """Response is private (user-specific)."""

    public: bool = False
    """Response is public (can be cached by shared caches)."""

    must_revalidate: bool = False
    """Response must be revalidated if stale."""

    proxy_revalidate: bool = False
    """Proxy must revalidate if stale."""

    immutable: bool = False
    """Response will not change."""

    min_fresh: Optional[int] = None
    """Request directive: response must stay fresh for at least this long."""

    max_stale: Optional[float] = None
    """Request directive: accept stale responses up to this many seconds.

    A bare ``max-stale`` parses to infinity.
    """


@dataclass
class RequestDescriptor:
    """Canonical description of one outgoing request.

    ``path`` is always derived from ``pathname`` and ``search``.
    """

    method: str = "GET"
    protocol: str = "http"
    hostname: str = "localhost"
    port: Optional[int] = None
    auth: Optional[str] = None
    pathname: str = "/"
    search: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    cache: bool = True
    strict_ttl: bool = False
    max_ttl: Optional[float] = None
    force_refresh: bool = False
    automatic_failover: bool = False

    @property
    def path(self) -> str:
        pathname = self.pathname or "/"
        if not pathname.startswith("/"):
            pathname = f"/{pathname}"
        return f"{pathname}{self.search}"

    @property
    def host(self) -> str:
        hostname = self.hostname
        if ":" in hostname and not hostname.startswith("["):
            hostname = f"[{hostname}]"
        if self.port is not None:
            return f"{hostname}:{self.port}"
        return hostname

    @property
    def url(self) -> str:
        netloc = self.host
        if self.auth:
            netloc = f"{self.auth}@{netloc}"
        return f"{self.protocol}://{netloc}{self.path}"


@dataclass
class StoredEntry:
    """Cache entry persisted by a store."""

    cache_policy: Dict[str, Any]
    """Serialized cache policy."""

    url: str
    """URL the response was received from."""

    status_code: int
    """Response status code."""

    body: bytes = b""
    """Raw response body."""

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible form, body base64 encoded."""
        return {
            "cache_policy": self.cache_policy,
            "url": self.url,
            "status_code": self.status_code,
            "body": base64.b64encode(self.body).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredEntry":
        try:
            return cls(
                cache_policy=dict(data["cache_policy"]),
                url=str(data["url"]),
                status_code=int(data["status_code"]),
                body=base64.b64decode(data.get("body") or b""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed cache entry: {e}") from e


class CacheStore(ABC):
    """Key-value store holding cache entries.

    ``ttl`` is advisory and expressed in seconds; ``None`` means the store
    decides.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredEntry]:
        """Get a cache entry by key."""
        pass

    @abstractmethod
    async def set(
        self, key: str, value: StoredEntry, ttl: Optional[float] = None
    ) -> None:
        """Store a cache entry."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a cache entry."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all cache entries."""
        pass

    async def close(self) -> None:
        """Close the store and release resources."""
        pass


class CachePolicy(ABC):
    """RFC 7234 cache semantics for one request/response pair."""

    @classmethod
    @abstractmethod
    def from_response(cls, request: RequestDescriptor, response: Any) -> "CachePolicy":
        """Evaluate a policy from a request and a received response."""
        pass

    @classmethod
    @abstractmethod
    def from_object(cls, data: Dict[str, Any]) -> "CachePolicy":
        """Restore a policy serialized with ``to_object``."""
        pass

    @abstractmethod
    def to_object(self) -> Dict[str, Any]:
        """Serialize the policy to a JSON-compatible dict."""
        pass

    @abstractmethod
    def storable(self) -> bool:
        """Whether the response may be stored."""
        pass

    @abstractmethod
    def satisfies_without_revalidation(self, request: RequestDescriptor) -> bool:
        """Whether the stored response can answer ``request`` as-is."""
        pass

    @abstractmethod
    def revalidation_headers(self, request: RequestDescriptor) -> Dict[str, str]:
        """Request headers for a conditional revalidation request."""
        pass

    @abstractmethod
    def revalidated_policy(
        self, request: RequestDescriptor, response: Any
    ) -> Tuple["CachePolicy", bool]:
        """Merge a revalidation response. Returns ``(policy, modified)``."""
        pass

    @abstractmethod
    def time_to_live(self) -> float:
        """Seconds the response stays fresh from now."""
        pass

    @abstractmethod
    def response_headers(self) -> Mapping[str, str]:
        """Headers to serve the stored response with; repeated headers stay apart."""
        pass


@dataclass
class CacheableRequestConfig:
    """Defaults applied to every call unless the call site overrides them."""

    cache: bool = True
    """Enable store interaction. Default: True."""

    strict_ttl: bool = False
    """Pass the policy TTL to the store. Default: False."""

    max_ttl: Optional[float] = None
    """Cap, in seconds, for the TTL handed to the store."""

    force_refresh: bool = False
    """Bypass fresh hits and revalidation merges. Default: False."""

    automatic_failover: bool = False
    """Fetch from the network when the store lookup fails. Default: False."""

    key_generator: Optional[Callable[[str, str], str]] = None
    """Custom cache key generator taking (method, normalized_url)."""


class CacheableRequestEventType(str, Enum):
    """Event channels of a cacheable request."""

    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"
