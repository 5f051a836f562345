"""Pytest configuration and fixtures for cacheable_request tests."""
from typing import AsyncGenerator

import httpx
import pytest

from cacheable_request import CacheableRequest, create_httpx_request
from helpers import OriginMockAsyncTransport


@pytest.fixture
def origin() -> OriginMockAsyncTransport:
    """Create a mock origin for testing."""
    return OriginMockAsyncTransport()


@pytest.fixture
async def client(origin: OriginMockAsyncTransport) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create an httpx client bound to the mock origin."""
    async with httpx.AsyncClient(transport=origin) as c:
        yield c


@pytest.fixture
def cache() -> dict:
    """Plain dict used as a cache backend."""
    return {}


@pytest.fixture
def cacheable(client: httpx.AsyncClient, cache: dict) -> CacheableRequest:
    """Create a CacheableRequest over the mock origin and the dict cache."""
    return CacheableRequest(create_httpx_request(client), cache)
