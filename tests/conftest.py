"""
Pustaka Test Configuration

Pytest fixtures and configuration for the test suite.
"""

from collections.abc import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from src.config import Settings
from src.rag.records import SEED_BOOKS, Document, InMemoryRecordStore

# Captured before any test patches httpx.AsyncClient
_RealAsyncClient = httpx.AsyncClient

# ============================================
# Settings & Records
# ============================================


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at fake provider hosts."""
    return Settings(
        gemini_api_key="test-gemini-key",
        gemini_base_url="http://gemini.test/v1beta",
        pinecone_api_key="test-pinecone-key",
        pinecone_host="pinecone.test",
    )


@pytest.fixture
def sample_document() -> Document:
    return Document(id=42, filename="panduan-skripsi.pdf", pages_count=12, chunks_count=30)


@pytest.fixture
def records(sample_document) -> InMemoryRecordStore:
    """Seed catalogue plus one uploaded PDF."""
    return InMemoryRecordStore(books=SEED_BOOKS, documents=[sample_document])


# ============================================
# HTTP Transport Fixtures
# ============================================


@pytest.fixture
def mock_transport(mocker) -> Callable[[Callable], list[httpx.Request]]:
    """Route every httpx.AsyncClient created by the code under test to a handler.

    Returns an installer: ``requests = mock_transport(handler)``. The returned
    list collects each request the handler received.
    """

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def recording_handler(request: httpx.Request):
            seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(recording_handler)

        def factory(*args, **kwargs):
            kwargs["transport"] = transport
            return _RealAsyncClient(*args, **kwargs)

        mocker.patch("httpx.AsyncClient", side_effect=factory)
        return seen

    return install


# ============================================
# Client Fixtures
# ============================================


@pytest.fixture
def client(monkeypatch) -> Generator[TestClient, None, None]:
    """Synchronous test client with no provider configuration."""
    for key in ("PINECONE_HOST", "PINECONE_INDEX_NAME"):
        monkeypatch.delenv(key, raising=False)

    from src.main import app

    with TestClient(app) as c:
        yield c
