"""
Cache key derivation.
"""


def generate_cache_key(method: str, normalized_url: str) -> str:
    """Default cache key generator: ``<METHOD>:<normalized url>``."""
    return f"{method.upper()}:{normalized_url}"
