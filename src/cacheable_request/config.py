"""
Configuration defaults for cacheable requests.
"""
from typing import Optional

from .keys import generate_cache_key
from .types import CacheableRequestConfig


DEFAULT_CACHEABLE_REQUEST_CONFIG = CacheableRequestConfig(
    cache=True,
    strict_ttl=False,
    max_ttl=None,
    force_refresh=False,
    automatic_failover=False,
    key_generator=generate_cache_key,
)


def merge_cacheable_request_config(
    config: Optional[CacheableRequestConfig] = None,
) -> CacheableRequestConfig:
    """Merge user config with defaults."""
    if config is None:
        return CacheableRequestConfig(
            cache=DEFAULT_CACHEABLE_REQUEST_CONFIG.cache,
            strict_ttl=DEFAULT_CACHEABLE_REQUEST_CONFIG.strict_ttl,
            max_ttl=DEFAULT_CACHEABLE_REQUEST_CONFIG.max_ttl,
            force_refresh=DEFAULT_CACHEABLE_REQUEST_CONFIG.force_refresh,
            automatic_failover=DEFAULT_CACHEABLE_REQUEST_CONFIG.automatic_failover,
            key_generator=DEFAULT_CACHEABLE_REQUEST_CONFIG.key_generator,
        )

    if config.max_ttl is not None and config.max_ttl < 0:
        raise ValueError("max_ttl must be a non-negative number of seconds")

    return CacheableRequestConfig(
        cache=config.cache
        if config.cache is not None
        else DEFAULT_CACHEABLE_REQUEST_CONFIG.cache,
        strict_ttl=config.strict_ttl
        if config.strict_ttl is not None
        else DEFAULT_CACHEABLE_REQUEST_CONFIG.strict_ttl,
        max_ttl=config.max_ttl,
        force_refresh=config.force_refresh
        if config.force_refresh is not None
        else DEFAULT_CACHEABLE_REQUEST_CONFIG.force_refresh,
        automatic_failover=config.automatic_failover
        if config.automatic_failover is not None
        else DEFAULT_CACHEABLE_REQUEST_CONFIG.automatic_failover,
        key_generator=config.key_generator or DEFAULT_CACHEABLE_REQUEST_CONFIG.key_generator,
    )
