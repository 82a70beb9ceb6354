"""Pytest configuration and shared fixtures for devshop-server tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup and the command line of
the scriptable tool server used by the client tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from devshop_server import create_app
from devshop_server.config import DevShopSettings

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"


@pytest.fixture
def fake_server_command():
    """argv that starts the scriptable tool server with this interpreter."""
    return [sys.executable, str(FAKE_SERVER)]


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with isolated temporary directories.

    No tool server command is configured, so the app starts without a
    tool client unless a test patches one in.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        DevShopSettings: Settings instance configured for testing.
    """
    return DevShopSettings(
        host="127.0.0.1",
        port=8000,
        data_dir=str(tmp_path),
        state_dir="state",
        audit_dir="logs",
        mcp_server_command=[],
        max_exchanges=5,
        exchange_warning_threshold=3,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
