"""
Research Assistant RAG Pipeline for Pustaka

The request-scoped controller of the RAG flow:

    embed question -> query index -> build context + sources -> generate

Two entry points share the retrieval stage. ``ask`` streams events
(``sources`` first, then ``text`` fragments, then ``done`` or ``error``);
``ask_sync`` returns a complete answer with its sources. Steps run strictly
in sequence since each consumes the previous step's output.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from src.config import DEFAULT_TOP_K, Settings
from src.llm.gemini_client import GeminiClient
from src.llm.prompt_templates import build_system_prompt
from src.rag.context import ContextBuilder, Source
from src.rag.embedding import EmbeddingClient
from src.rag.events import StreamEvent
from src.rag.records import RecordLookup
from src.rag.vector_store import (
    Match,
    SearchMode,
    VectorIndexClient,
    build_filter,
)

logger = logging.getLogger(__name__)

EMBEDDING_FAILED_MESSAGE = "Failed to generate embedding for your question."
NO_RESPONSE_MESSAGE = "Sorry, I could not generate a response."
GENERATION_ERROR_MESSAGE = "An error occurred while generating the response."


@dataclass
class Retrieval:
    """Output of the shared retrieval stage."""

    matches: list[Match]
    context: str
    sources: list[Source]

    def source_dicts(self) -> list[dict[str, Any]]:
        return [s.model_dump() for s in self.sources]


@dataclass
class SyncAnswer:
    """Result of the non-streaming entry point."""

    answer: str
    sources: list[dict[str, Any]] = field(default_factory=list)


class ResearchAssistant:
    """Answers library questions from retrieved books and PDF passages."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndexClient,
        llm_client: GeminiClient,
        context_builder: ContextBuilder,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.llm_client = llm_client
        self.context_builder = context_builder
        self.top_k = top_k

    @classmethod
    def from_settings(
        cls, settings: Settings, records: RecordLookup
    ) -> "ResearchAssistant":
        return cls(
            embedding_client=EmbeddingClient.from_settings(settings),
            vector_index=VectorIndexClient.from_settings(settings),
            llm_client=GeminiClient.from_settings(settings),
            context_builder=ContextBuilder(records),
            top_k=settings.top_k,
        )

    async def retrieve(
        self, query_vector: list[float], search_mode: SearchMode | str
    ) -> Retrieval:
        """Query the index with the mode filter and assemble context and sources."""
        step_start = time.time()
        result = await self.vector_index.query(
            query_vector, top_k=self.top_k, filter=build_filter(search_mode)
        )
        matches = result.matches

        context = await self.context_builder.build_context(matches)
        sources = await self.context_builder.extract_sources(matches)
        logger.info(
            "Retrieved %d matches (%d sources, mode=%s) in %.1fms",
            len(matches),
            len(sources),
            getattr(search_mode, "value", search_mode),
            (time.time() - step_start) * 1000,
        )
        return Retrieval(matches=matches, context=context, sources=sources)

    async def ask(
        self, question: str, search_mode: SearchMode | str = SearchMode.ALL
    ) -> AsyncIterator[StreamEvent]:
        """Stream an answer.

        Yields exactly one ``sources`` event before any ``text`` event and
        ends with ``done`` or ``error``. If the question cannot be embedded
        the only event is ``error``.
        """
        query_vector = await self.embedding_client.embed(question)
        if not query_vector:
            logger.warning("Question embedding failed, aborting stream")
            yield StreamEvent.error(EMBEDDING_FAILED_MESSAGE)
            return

        retrieval = await self.retrieve(query_vector, search_mode)
        yield StreamEvent.sources(retrieval.source_dicts())

        system_prompt = build_system_prompt(retrieval.context)
        async with aclosing(
            self.llm_client.stream_completion(system_prompt, question)
        ) as stream:
            async for event in stream:
                yield event

    async def ask_sync(
        self, question: str, search_mode: SearchMode | str = SearchMode.ALL
    ) -> SyncAnswer:
        """Answer without streaming.

        Provider failures become a fixed fallback answer; sources already
        retrieved are still returned.
        """
        query_vector = await self.embedding_client.embed(question)
        if not query_vector:
            logger.warning("Question embedding failed")
            return SyncAnswer(answer=EMBEDDING_FAILED_MESSAGE, sources=[])

        retrieval = await self.retrieve(query_vector, search_mode)
        sources = retrieval.source_dicts()
        system_prompt = build_system_prompt(retrieval.context)

        try:
            answer = await self.llm_client.generate(system_prompt, question)
        except Exception as e:
            logger.error("Gemini completion exception: %s", e)
            return SyncAnswer(answer=GENERATION_ERROR_MESSAGE, sources=sources)

        if answer is None:
            logger.warning("Gemini response had no candidate text")
            answer = NO_RESPONSE_MESSAGE
        return SyncAnswer(answer=answer, sources=sources)
