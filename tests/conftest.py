"""Pytest configuration and shared fixtures."""

import pytest


@pytest.fixture(scope="module")
def anyio_backend():
    """Run async tests on asyncio; endpoints and transports use asyncio primitives."""
    return "asyncio"
