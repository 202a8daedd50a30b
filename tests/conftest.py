"""Pytest fixtures for cstash tests."""

from collections.abc import AsyncIterator, Iterator
import os

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("CSTASH_ENV", "dev")
os.environ.setdefault("LOG_LEVEL", "INFO")

from cstash.main import app as fastapi_app
from cstash.snippets.store import SnippetStore


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """Return the FastAPI application instance."""
    return fastapi_app


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
def store(app: FastAPI) -> SnippetStore:
    """Return the store the application serves from."""

    return app.state.snippet_store


@pytest.fixture(autouse=True)
def reset_runtime(app: FastAPI) -> Iterator[None]:
    """Reset store contents, metrics, and rate limiter across tests."""

    snippet_store = app.state.snippet_store
    metrics = getattr(app.state, "metrics", None)
    limiter = getattr(app.state, "rate_limiter", None)
    original_limit = getattr(app.state, "rate_limit_per_minute", None)
    snippet_store.clear()
    if metrics is not None:
        metrics.reset()
    if limiter is not None:
        limiter.reset()
    yield
    snippet_store.clear()
    if metrics is not None:
        metrics.reset()
    if limiter is not None:
        limiter.reset()
    if original_limit is not None:
        app.state.rate_limit_per_minute = original_limit
