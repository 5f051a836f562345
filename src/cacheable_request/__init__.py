"""
Transparent RFC 7234 caching around an HTTP request function.

Serves fresh responses from a store, revalidates stale ones with
conditional requests and stores cacheable responses.
"""
from .types import (
    CacheControlDirectives,
    RequestDescriptor,
    StoredEntry,
    CacheStore,
    CachePolicy,
    CacheableRequestConfig,
    CacheableRequestEventType,
)
from .errors import (
    CacheableRequestError,
    CacheError,
    RequestError,
    RequestAbortedError,
)
from .parser import (
    parse_cache_control,
    extract_etag,
    extract_last_modified,
    parse_date_header,
    calculate_freshness_lifetime,
    is_cacheable_status,
    is_cacheable_method,
    parse_vary,
    is_vary_uncacheable,
    get_header_value,
    normalize_headers,
)
from .policy import HttpCachePolicy
from .keys import generate_cache_key
from .normalizer import normalize_request, normalize_url
from .config import (
    DEFAULT_CACHEABLE_REQUEST_CONFIG,
    merge_cacheable_request_config,
)
from .transport import OutgoingRequest, RequestFunction, create_httpx_request
from .emitter import CacheableRequestEmitter
from .response import CacheableResponse, build_cached_response
from .cacheable import CacheableRequest, create_cacheable_request, resolve_ttl
from .stores import (
    MemoryCacheStore,
    MemoryCacheStats,
    MappingCacheStore,
    create_memory_cache_store,
    ensure_cache_store,
)


__all__ = [
    # Types
    "CacheControlDirectives",
    "RequestDescriptor",
    "StoredEntry",
    "CacheStore",
    "CachePolicy",
    "CacheableRequestConfig",
    "CacheableRequestEventType",
    # Errors
    "CacheableRequestError",
    "CacheError",
    "RequestError",
    "RequestAbortedError",
    # Parser utilities
    "parse_cache_control",
    "extract_etag",
    "extract_last_modified",
    "parse_date_header",
    "calculate_freshness_lifetime",
    "is_cacheable_status",
    "is_cacheable_method",
    "parse_vary",
    "is_vary_uncacheable",
    "get_header_value",
    "normalize_headers",
    # Policy
    "HttpCachePolicy",
    # Requests
    "generate_cache_key",
    "normalize_request",
    "normalize_url",
    "DEFAULT_CACHEABLE_REQUEST_CONFIG",
    "merge_cacheable_request_config",
    "OutgoingRequest",
    "RequestFunction",
    "create_httpx_request",
    # Orchestration
    "CacheableRequestEmitter",
    "CacheableResponse",
    "build_cached_response",
    "CacheableRequest",
    "create_cacheable_request",
    "resolve_ttl",
    # Stores
    "MemoryCacheStore",
    "MemoryCacheStats",
    "MappingCacheStore",
    "create_memory_cache_store",
    "ensure_cache_store",
]

__version__ = "1.0.0"
