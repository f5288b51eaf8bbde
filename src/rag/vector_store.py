"""
Pinecone Vector Index Client for Pustaka

Async REST client for the Pinecone data plane (upsert, query, delete).

Every operation resolves to a well-formed value: queries return an empty
match list on failure, writes return a dict carrying an ``error`` key.
"""

import logging
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from src.config import DEFAULT_TIMEOUT, DEFAULT_TOP_K, Settings
from src.errors import ConfigurationError

logger = logging.getLogger(__name__)

# ============================================
# Data Models
# ============================================


class Vector(BaseModel):
    """An embedding stored in the index under a deterministic ID."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class Match(BaseModel):
    """A similarity query hit. ``score`` is the provider's raw similarity."""

    id: str
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    matches: list[Match] = Field(default_factory=list)


# ============================================
# Vector IDs
# ============================================

BOOK_KIND = "book"
DOCUMENT_KIND = "doc"


def make_vector_id(kind: str, source_id: int | str, chunk_number: int) -> str:
    """Compose ``<kind>-<source id>-chunk-<n>``.

    Re-ingesting the same logical chunk yields the same ID, so an upsert
    overwrites instead of duplicating.
    """
    return f"{kind}-{source_id}-chunk-{chunk_number}"


def document_vector_ids(document_id: int | str, chunks_count: int) -> list[str]:
    """Reconstruct every vector ID of a document from its stored chunk count."""
    return [make_vector_id(DOCUMENT_KIND, document_id, i) for i in range(chunks_count)]


# ============================================
# Search Mode Filters
# ============================================


class SearchMode(str, Enum):
    ALL = "all"
    PDF = "pdf"
    DATABASE = "database"


def build_filter(mode: SearchMode | str) -> dict[str, Any]:
    """Translate a search mode into a metadata filter on ``source_type``.

    ``pdf`` keeps only PDF chunks, ``database`` keeps everything else and
    ``all`` (or any unknown mode) applies no filter.
    """
    try:
        mode = SearchMode(mode)
    except ValueError:
        logger.warning("Unknown search mode %r, searching everything", mode)
        return {}

    if mode is SearchMode.PDF:
        return {"source_type": {"$eq": "pdf"}}
    if mode is SearchMode.DATABASE:
        return {"source_type": {"$ne": "pdf"}}
    return {}


# ============================================
# Client
# ============================================


class VectorIndexClient:
    """Async client for a single Pinecone index."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not base_url:
            raise ConfigurationError(
                "Pinecone index is not configured (set PINECONE_HOST or PINECONE_INDEX_NAME)"
            )
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "VectorIndexClient":
        return cls(
            base_url=settings.pinecone_base_url,
            api_key=settings.pinecone_api_key,
            timeout=settings.timeout_seconds,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Api-Key": self.api_key, "Content-Type": "application/json"},
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        async with self._client() as client:
            return await client.post(f"{self.base_url}{path}", json=payload)

    async def upsert(self, vectors: list[Vector]) -> dict[str, Any]:
        """Insert or overwrite vectors. Returns the provider body or ``{"error": ...}``."""
        payload = {"vectors": [v.model_dump() for v in vectors]}
        try:
            response = await self._post("/vectors/upsert", payload)
            if response.is_error:
                logger.error(
                    "Pinecone upsert failed: HTTP %d %s",
                    response.status_code,
                    response.text,
                )
                return {"error": f"Upsert failed: {response.text}"}
            return response.json()
        except Exception as e:
            logger.error("Pinecone upsert exception: %s", e)
            return {"error": str(e)}

    async def query(
        self,
        vector: list[float],
        top_k: int = DEFAULT_TOP_K,
        filter: dict[str, Any] | None = None,
    ) -> QueryResult:
        """Return the ``top_k`` nearest matches, or no matches on any failure."""
        payload: dict[str, Any] = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
        }
        if filter:
            payload["filter"] = filter

        try:
            response = await self._post("/query", payload)
            if response.is_error:
                logger.error(
                    "Pinecone query failed: HTTP %d %s",
                    response.status_code,
                    response.text,
                )
                return QueryResult()
            return QueryResult.model_validate(response.json())
        except ValidationError as e:
            logger.error("Pinecone query returned malformed matches: %s", e)
            return QueryResult()
        except Exception as e:
            logger.error("Pinecone query exception: %s", e)
            return QueryResult()

    async def delete_by_ids(self, ids: list[str]) -> dict[str, Any]:
        """Delete the given vector IDs (best effort)."""
        if not ids:
            return {"success": True}
        return await self._delete({"ids": ids})

    async def delete_all(self) -> dict[str, Any]:
        """Wipe every vector in the index (best effort)."""
        return await self._delete({"deleteAll": True})

    async def _delete(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._post("/vectors/delete", payload)
            if response.is_error:
                logger.error(
                    "Pinecone delete failed: HTTP %d %s",
                    response.status_code,
                    response.text,
                )
                return {"error": f"Delete failed: {response.text}"}
            if not response.content:
                return {"success": True}
            return response.json() or {"success": True}
        except Exception as e:
            logger.error("Pinecone delete exception: %s", e)
            return {"error": str(e)}
