"""Shared test fixtures."""

import os

# Settings are read at import time; required secrets need a value first.
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("COLLABORATOR_TOKEN", "test-collaborator-token")
os.environ.setdefault("ADMIN_USER_IDS", "admin-1")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
