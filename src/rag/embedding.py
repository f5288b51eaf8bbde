"""
Gemini Embedding Client for Pustaka

Async HTTP client for the Gemini ``embedContent`` endpoint.
Failures never propagate: an empty vector signals that the text could not
be embedded and callers must check for it before use.
"""

import logging

import httpx

from src.config import (
    DEFAULT_EMBEDDING_DIMENSION,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_TIMEOUT,
    Settings,
)

logger = logging.getLogger(__name__)

DEFAULT_TASK_TYPE = "RETRIEVAL_DOCUMENT"
DEFAULT_TITLE = "Embedding"


class EmbeddingClient:
    """Async client converting text into a fixed-dimension vector.

    The requested ``dimension`` is sent as ``outputDimensionality`` and every
    returned vector must have exactly that length to match the index.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_EMBEDDING_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        task_type: str = DEFAULT_TASK_TYPE,
        title: str = DEFAULT_TITLE,
        dimension: int = DEFAULT_EMBEDDING_DIMENSION,
    ) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.task_type = task_type
        self.title = title
        self.dimension = dimension

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingClient":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.embedding_model,
            base_url=settings.gemini_base_url,
            timeout=settings.timeout_seconds,
            dimension=settings.embedding_dimension,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:embedContent"

    def _build_payload(self, text: str) -> dict:
        return {
            "content": {"parts": [{"text": text}]},
            "taskType": self.task_type,
            "title": self.title,
            "outputDimensionality": self.dimension,
        }

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Returns an empty list on HTTP errors, transport errors, a response
        body without ``embedding.values`` or a vector of the wrong length.
        """
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=self._build_payload(text),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Gemini embedding failed for %s: HTTP %d",
                self.model,
                e.response.status_code,
            )
            return []
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Gemini embedding request error for %s: %s", self.model, e)
            return []
        except Exception as e:
            logger.error("Unexpected Gemini embedding error: %s", e)
            return []

        values = _extract_values(data)
        if values and len(values) != self.dimension:
            logger.warning(
                "Gemini embedding for %s has %d values, expected %d",
                self.model,
                len(values),
                self.dimension,
            )
            return []
        return values

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts one by one; the endpoint has no batch form."""
        embeddings = []
        for text in texts:
            embeddings.append(await self.embed(text))
        return embeddings


def _extract_values(data: object) -> list[float]:
    """Pull ``embedding.values`` out of a response body, or return []."""
    if not isinstance(data, dict):
        logger.warning("Gemini embedding response is not an object")
        return []

    embedding = data.get("embedding")
    values = embedding.get("values") if isinstance(embedding, dict) else None
    if not isinstance(values, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
    ):
        logger.warning("Gemini embedding response missing embedding.values")
        return []

    return [float(v) for v in values]
