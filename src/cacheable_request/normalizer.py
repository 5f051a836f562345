"""
Request normalization.

Turns a URL string, a URL object or an option dict into a
``RequestDescriptor`` plus the normalized URL used for cache keys.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import ParseResult, SplitResult, urlencode, urlsplit, urlunsplit

import httpx

from .config import DEFAULT_CACHEABLE_REQUEST_CONFIG
from .types import CacheableRequestConfig, RequestDescriptor

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

RequestInput = Union[str, httpx.URL, SplitResult, ParseResult, Mapping[str, Any]]


def lowercase_keys(headers: Any) -> Dict[str, str]:
    """Copy headers with lowercase names."""
    if headers is None:
        return {}
    if isinstance(headers, httpx.Headers):
        return {k.lower(): v for k, v in headers.items()}
    if not isinstance(headers, Mapping):
        raise TypeError(f"headers must be a mapping, got {type(headers).__name__}")
    return {str(k).lower(): str(v) for k, v in headers.items()}


def _split_host(host: str) -> Tuple[str, Optional[str]]:
    """Split ``host[:port]`` (IPv6 in brackets) into hostname and port."""
    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            raise ValueError(f"Invalid host: {host!r}")
        rest = host[end + 1:]
        return host[1:end], rest[1:] if rest.startswith(":") else None
    if host.count(":") == 1:
        hostname, port = host.split(":", 1)
        return hostname, port
    return host, None


def _parse_port(port: Any) -> Optional[int]:
    if port is None or port == "":
        return None
    try:
        value = int(port)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid port: {port!r}") from e
    if not 0 < value < 65536:
        raise ValueError(f"Invalid port: {port!r}")
    return value


def _parse_duration(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"max_ttl must be seconds or a timedelta, got {value!r}")
    return float(value)


def _coerce_body(body: Any) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    raise TypeError(f"body must be bytes or str, got {type(body).__name__}")


def _split_path(path: str) -> Tuple[str, str]:
    """Split ``path`` at the first ``?``; the query is kept verbatim."""
    pathname, sep, query = path.partition("?")
    return pathname, f"?{query}" if sep else ""


def _components_from_url(url: str) -> Dict[str, Any]:
    parts = urlsplit(url)
    auth = None
    if "@" in parts.netloc:
        auth = parts.netloc.rpartition("@")[0]
    return {
        "protocol": parts.scheme or "http",
        "auth": auth,
        "hostname": parts.hostname or "localhost",
        "port": parts.port,
        "pathname": parts.path,
        "search": f"?{parts.query}" if parts.query else "",
    }


def _components_from_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    host_port = None
    hostname = options.get("hostname")
    if not hostname and options.get("host"):
        hostname, host_port = _split_host(str(options["host"]))

    path = options.get("path")
    if path is not None:
        # path wins over pathname/search/query
        pathname, search = _split_path(str(path))
    else:
        pathname = str(options.get("pathname") or "")
        search = options.get("search")
        if search is None:
            query = options.get("query")
            if isinstance(query, Mapping):
                query = urlencode(list(query.items()), doseq=True)
            search = f"?{query}" if query else ""
        elif search and not str(search).startswith("?"):
            search = f"?{search}"

    port = options.get("port")
    return {
        "protocol": str(options.get("protocol") or "http"),
        "auth": options.get("auth"),
        "hostname": hostname or "localhost",
        "port": port if port not in (None, "") else host_port,
        "pathname": pathname,
        "search": str(search or ""),
    }


def _option(options: Mapping[str, Any], name: str, default: Any) -> Any:
    value = options.get(name)
    return default if value is None else value


def normalize_url(url: str) -> str:
    """
    Normalize an absolute URL for cache keys.

    Lowercases scheme and host, drops default ports and the fragment,
    keeps credentials, sorts query parameters by name (stable) and strips a
    lone root ``/`` when there is no query.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()

    hostname = (parts.hostname or "").lower()
    if ":" in hostname:
        hostname = f"[{hostname}]"
    netloc = hostname
    port = parts.port
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    if "@" in parts.netloc:
        netloc = f"{parts.netloc.rpartition('@')[0]}@{netloc}"

    pairs = [pair for pair in parts.query.split("&") if pair]
    query = "&".join(sorted(pairs, key=lambda pair: pair.split("=", 1)[0]))

    path = parts.path or "/"
    if path == "/" and not query:
        path = ""

    return urlunsplit((scheme, netloc, path, query, ""))


def normalize_request(
    request_input: RequestInput,
    defaults: Optional[CacheableRequestConfig] = None,
) -> Tuple[RequestDescriptor, str]:
    """
    Build a ``RequestDescriptor`` and its normalized URL.

    Accepts an absolute URL string, an ``httpx.URL``, a ``urllib.parse``
    split/parse result, or an option dict. Option dicts may carry ``url``
    (components taken from it) or ``protocol``/``auth``/``hostname``/
    ``host``/``port``/``path`` (``pathname``/``search``/``query`` are used
    only without ``path``), plus ``method``, ``headers``, ``body``,
    ``cache``, ``strict_ttl``, ``max_ttl``, ``force_refresh`` and
    ``automatic_failover``.

    Raises:
        TypeError: Unsupported input type or option value.
        ValueError: Input that cannot be read as a URL.
    """
    if defaults is None:
        defaults = DEFAULT_CACHEABLE_REQUEST_CONFIG

    options: Mapping[str, Any]
    if isinstance(request_input, str):
        options = {}
        components = _components_from_url(request_input)
    elif isinstance(request_input, httpx.URL):
        options = {}
        components = _components_from_url(str(request_input))
    elif isinstance(request_input, (SplitResult, ParseResult)):
        options = {}
        components = _components_from_url(request_input.geturl())
    elif isinstance(request_input, Mapping):
        options = request_input
        if options.get("url") is not None:
            components = _components_from_url(str(options["url"]))
        else:
            components = _components_from_options(options)
    else:
        raise TypeError(
            f"Request must be a URL string, URL object or option dict, "
            f"got {type(request_input).__name__}"
        )

    protocol = components["protocol"].rstrip(":").lower()
    port = _parse_port(components["port"])
    # Host header omits the default port
    if port is not None and DEFAULT_PORTS.get(protocol) == port:
        port = None

    descriptor = RequestDescriptor(
        method=str(_option(options, "method", "GET")).upper(),
        protocol=protocol,
        hostname=str(components["hostname"]).lower(),
        port=port,
        auth=components["auth"] or None,
        pathname=components["pathname"] or "/",
        search=components["search"],
        headers=lowercase_keys(options.get("headers")),
        body=_coerce_body(options.get("body")),
        cache=bool(_option(options, "cache", defaults.cache)),
        strict_ttl=bool(_option(options, "strict_ttl", defaults.strict_ttl)),
        max_ttl=_parse_duration(_option(options, "max_ttl", defaults.max_ttl)),
        force_refresh=bool(_option(options, "force_refresh", defaults.force_refresh)),
        automatic_failover=bool(
            _option(options, "automatic_failover", defaults.automatic_failover)
        ),
    )

    normalized_url = normalize_url(descriptor.url)
    logger.debug(f"normalize_request: {descriptor.method} {normalized_url}")
    return descriptor, normalized_url
