"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Iterator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from ev_oracle.api.app import app
from ev_oracle.api.routes import get_pipeline


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_pipeline() -> Iterator[AsyncMock]:
    """Replace the API's pipeline dependency with a mock."""
    pipeline = AsyncMock()
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield pipeline
    app.dependency_overrides.pop(get_pipeline, None)

