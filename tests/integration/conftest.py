"""Fixtures for API tests running against an in-memory database."""

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from brgy_api.core.config import Settings
from brgy_api.core.dependencies import get_async_session
from brgy_api.main import create_app


@pytest.fixture
def app(settings: Settings, async_session: AsyncSession) -> FastAPI:
    application = create_app(settings)

    async def _session() -> AsyncGenerator[AsyncSession]:
        yield async_session

    application.dependency_overrides[get_async_session] = _session
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register_user(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Register an account through the API and return the response body."""

    async def _register(email: str = "a@x.com", **extra) -> dict:
        payload = {"email": email, "password": "secret1", "mobile_number": "09171234567", **extra}
        response = await client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _register
