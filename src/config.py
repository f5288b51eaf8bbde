"""
Pustaka Configuration

A single immutable settings object passed explicitly to every component.
Defaults mirror the reference deployment; ``Settings.from_env`` overlays
values from the process environment.
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# Defaults
# ============================================

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_CHAT_MODEL = "models/gemini-1.5-flash"
DEFAULT_EMBEDDING_MODEL = "models/gemini-embedding-001"
DEFAULT_EMBEDDING_DIMENSION = 768

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 100
DEFAULT_BATCH_SIZE = 10
DEFAULT_TOP_K = 5

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TIMEOUT = 60.0

DEFAULT_UPLOAD_DIR = "uploads"
MAX_UPLOAD_BYTES = 20 * 1024 * 1024

# Environment variable -> settings field
_ENV_FIELDS: dict[str, str] = {
    "GEMINI_API_KEY": "gemini_api_key",
    "GEMINI_BASE_URL": "gemini_base_url",
    "GEMINI_MODEL": "chat_model",
    "GEMINI_EMBEDDING_MODEL": "embedding_model",
    "EMBEDDING_DIMENSION": "embedding_dimension",
    "PINECONE_API_KEY": "pinecone_api_key",
    "PINECONE_HOST": "pinecone_host",
    "PINECONE_INDEX_NAME": "pinecone_index_name",
    "PINECONE_ENVIRONMENT": "pinecone_environment",
    "CHUNK_SIZE": "chunk_size",
    "CHUNK_OVERLAP": "chunk_overlap",
    "INGEST_BATCH_SIZE": "batch_size",
    "RAG_TOP_K": "top_k",
    "LLM_TEMPERATURE": "temperature",
    "LLM_MAX_TOKENS": "max_output_tokens",
    "LLM_TIMEOUT_SECONDS": "timeout_seconds",
    "EMBED_DELAY_SECONDS": "embed_delay_seconds",
    "UPLOAD_DIR": "upload_dir",
}


class Settings(BaseModel):
    """Runtime configuration for the RAG pipeline.

    Attributes:
        gemini_api_key: API key for the Gemini embedding and chat endpoints.
        chat_model: Model path used for generation (``models/...``).
        embedding_model: Model path used for ``embedContent``.
        pinecone_host: Data-plane host of the Pinecone index.
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks.
        batch_size: Vectors per upsert request during ingestion.
        top_k: Matches requested per similarity query.
        upload_dir: Directory where uploaded PDFs are stored.
    """

    model_config = ConfigDict(frozen=True)

    gemini_api_key: str = ""
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    chat_model: str = DEFAULT_CHAT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = Field(DEFAULT_EMBEDDING_DIMENSION, gt=0)

    pinecone_api_key: str = ""
    pinecone_host: str | None = None
    pinecone_index_name: str | None = None
    pinecone_environment: str | None = None

    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, gt=0)
    chunk_overlap: int = Field(DEFAULT_CHUNK_OVERLAP, ge=0)
    batch_size: int = Field(DEFAULT_BATCH_SIZE, gt=0)
    top_k: int = Field(DEFAULT_TOP_K, gt=0)

    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = Field(DEFAULT_MAX_TOKENS, gt=0)
    timeout_seconds: float = Field(DEFAULT_TIMEOUT, gt=0)
    embed_delay_seconds: float = Field(0.0, ge=0)

    upload_dir: str = DEFAULT_UPLOAD_DIR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset keys."""
        environ = os.environ if environ is None else environ
        values = {
            field: environ[key]
            for key, field in _ENV_FIELDS.items()
            if environ.get(key) not in (None, "")
        }
        return cls(**values)

    @property
    def pinecone_base_url(self) -> str:
        """Resolve the Pinecone data-plane URL.

        Precedence: explicit host, an index name that is already a URL or
        a ``*.svc.pinecone.io`` hostname, then ``{index}-{environment}``.
        Returns an empty string when nothing is configured.
        """
        if self.pinecone_host:
            base = self.pinecone_host.rstrip("/")
            if not base.startswith("https://"):
                base = "https://" + base
            return base

        index = self.pinecone_index_name
        if not index:
            return ""
        if index.startswith("https://"):
            return index.rstrip("/")
        if ".svc.pinecone.io" in index:
            return "https://" + index.rstrip("/")

        env = self.pinecone_environment or ""
        return f"https://{index}-{env}.svc.pinecone.io"
