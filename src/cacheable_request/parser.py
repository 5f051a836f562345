"""
Cache-Control header parsing and utilities for RFC 7234 compliance.
"""
import time
from email.utils import formatdate, parsedate_to_datetime
from typing import Dict, List, Mapping, Optional, Set

from .types import CacheControlDirectives

HOP_BY_HOP_HEADERS = frozenset(
    [
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    ]
)

UNDERSTOOD_STATUSES = frozenset(
    [200, 203, 204, 206, 300, 301, 302, 303, 307, 308, 404, 405, 410, 414, 501]
)

CACHEABLE_BY_DEFAULT_STATUSES = frozenset(
    [200, 203, 204, 206, 300, 301, 308, 404, 405, 410, 414, 501]
)

CACHEABLE_METHODS = frozenset(["GET", "HEAD"])

HEURISTIC_FRACTION = 0.1
"""Share of (Date - Last-Modified) used as heuristic freshness."""


def _parse_seconds(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip('"'))
    except ValueError:
        return None


def parse_cache_control(header: Optional[str]) -> CacheControlDirectives:
    """Parse Cache-Control header into directives."""
    directives = CacheControlDirectives()

    if not header:
        return directives

    parts = [p.strip().lower() for p in header.split(",")]

    for part in parts:
        if "=" in part:
            key, value = part.split("=", 1)
            key = key.strip()
            value = value.strip()
        else:
            key = part.strip()
            value = None

        if key == "no-store":
            directives.no_store = True
        elif key == "no-cache":
            directives.no_cache = True
        elif key == "max-age":
            directives.max_age = _parse_seconds(value)
        elif key == "s-maxage":
            directives.s_maxage = _parse_seconds(value)
        elif key == "private":
            directives.private = True
        elif key == "public":
            directives.public = True
        elif key == "must-revalidate":
            directives.must_revalidate = True
        elif key == "proxy-revalidate":
            directives.proxy_revalidate = True
        elif key == "immutable":
            directives.immutable = True
        elif key == "min-fresh":
            directives.min_fresh = _parse_seconds(value)
        elif key == "max-stale":
            seconds = _parse_seconds(value)
            directives.max_stale = float("inf") if seconds is None else float(seconds)

    return directives


def extract_etag(headers: Mapping[str, str]) -> Optional[str]:
    """Extract ETag from response headers."""
    etag = get_header_value(headers, "etag")
    return etag.strip() if etag else None


def extract_last_modified(headers: Mapping[str, str]) -> Optional[str]:
    """Extract Last-Modified from response headers."""
    last_modified = get_header_value(headers, "last-modified")
    return last_modified.strip() if last_modified else None


def parse_date_header(header: Optional[str]) -> Optional[float]:
    """Parse an HTTP date header to a timestamp."""
    if not header:
        return None
    try:
        return parsedate_to_datetime(header).timestamp()
    except (TypeError, ValueError, IndexError, AttributeError):
        return None


def format_date_header(timestamp: Optional[float] = None) -> str:
    """Format a timestamp as an HTTP date."""
    return formatdate(timestamp if timestamp is not None else time.time(), usegmt=True)


def calculate_freshness_lifetime(
    headers: Mapping[str, str],
    directives: CacheControlDirectives,
    shared: bool = True,
    response_time: Optional[float] = None,
    default_min_ttl: float = 0,
) -> float:
    """Freshness lifetime in seconds from Cache-Control, Expires or Last-Modified."""
    if response_time is None:
        response_time = time.time()

    # s-maxage only applies to shared caches
    if shared and directives.s_maxage is not None:
        return float(directives.s_maxage)

    if directives.max_age is not None:
        return float(directives.max_age)

    server_date = parse_date_header(get_header_value(headers, "date")) or response_time

    expires = get_header_value(headers, "expires")
    if expires:
        expires_timestamp = parse_date_header(expires)
        # Invalid Expires means already expired
        if expires_timestamp is None:
            return 0.0
        return max(default_min_ttl, expires_timestamp - server_date)

    last_modified = parse_date_header(extract_last_modified(headers))
    if last_modified is not None and server_date > last_modified:
        return max(default_min_ttl, (server_date - last_modified) * HEURISTIC_FRACTION)

    return float(default_min_ttl)


def is_cacheable_status(status_code: int) -> bool:
    """Check if a status code is understood by the cache."""
    return status_code in UNDERSTOOD_STATUSES


def is_cacheable_by_default(status_code: int) -> bool:
    """Check if a status code may be cached without explicit freshness."""
    return status_code in CACHEABLE_BY_DEFAULT_STATUSES


def is_cacheable_method(method: str) -> bool:
    """Check if request method is cacheable."""
    return method.upper() in CACHEABLE_METHODS


def parse_vary(header: Optional[str]) -> List[str]:
    """Parse Vary header into list of header names."""
    if not header:
        return []
    if header.strip() == "*":
        return ["*"]
    return [h.strip().lower() for h in header.split(",") if h.strip()]


def is_vary_uncacheable(vary: Optional[str]) -> bool:
    """Check if Vary header indicates uncacheable."""
    return vary is not None and vary.strip() == "*"


def extract_vary_headers(
    headers: Mapping[str, str], vary: List[str]
) -> Dict[str, str]:
    """Extract headers needed for Vary matching."""
    result: Dict[str, str] = {}

    for key in vary:
        if key == "*":
            continue
        value = get_header_value(headers, key)
        if value is not None:
            result[key.lower()] = value

    return result


def match_vary_headers(
    request_headers: Mapping[str, str],
    vary: List[str],
    cached_vary_headers: Mapping[str, str],
) -> bool:
    """Check if request headers match the cached Vary headers."""
    for key in vary:
        if key == "*":
            return False
        if get_header_value(request_headers, key) != cached_vary_headers.get(key):
            return False
    return True


def get_header_value(
    headers: Mapping[str, str], key: str
) -> Optional[str]:
    """Get header value case-insensitively."""
    lower_key = key.lower()
    for k, v in headers.items():
        if k.lower() == lower_key:
            return v
    return None


def normalize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Normalize headers to lowercase keys."""
    return {k.lower(): v for k, v in headers.items()}


def hop_by_hop_names(headers: Mapping[str, str]) -> Set[str]:
    """Hop-by-hop header names, including those named by Connection."""
    connection = get_header_value(headers, "connection") or ""
    names = set(HOP_BY_HOP_HEADERS)
    names.update(name.strip().lower() for name in connection.split(",") if name.strip())
    return names


def strip_hop_by_hop(headers: Mapping[str, str]) -> Dict[str, str]:
    """Drop hop-by-hop headers, including those named by Connection."""
    dropped = hop_by_hop_names(headers)
    return {k: v for k, v in normalize_headers(headers).items() if k not in dropped}
