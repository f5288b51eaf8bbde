"""
Ingestion Pipeline for Pustaka

Feeds the vector index from two kinds of sources:

- PDF documents: extracted page by page, cleaned, chunked with a chunk
  index carried across pages, then embedded and upserted in bounded batches
- Book records: a few descriptive chunks built from catalogue metadata

Failures are contained at the smallest unit: a chunk whose embedding
fails is skipped, a batch whose upsert fails is skipped, and the final
report counts only what actually reached the index.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from src.config import DEFAULT_BATCH_SIZE, Settings
from src.rag.chunker import Chunk, PDFParser, TextChunker, clean_text
from src.rag.embedding import EmbeddingClient
from src.rag.records import Book
from src.rag.vector_store import (
    BOOK_KIND,
    DOCUMENT_KIND,
    Vector,
    VectorIndexClient,
    document_vector_ids,
    make_vector_id,
)

logger = logging.getLogger(__name__)

# Pause between embedding calls when re-ingesting the whole catalogue
BOOK_EMBED_DELAY_SECONDS = 0.1

# Descriptions at or below this length get no dedicated chunk
MIN_DESCRIPTION_CHUNK_LENGTH = 50


# ============================================
# PDF Extraction + Chunking
# ============================================


@dataclass
class IngestionResult:
    """Chunks extracted from one PDF and its page count."""

    chunks: list[Chunk]
    page_count: int


class IngestionPipeline:
    """Extracts and chunks a PDF without materializing the whole text."""

    def __init__(
        self,
        chunker: TextChunker | None = None,
        parser: PDFParser | None = None,
    ) -> None:
        self.chunker = chunker or TextChunker()
        self.parser = parser or PDFParser()

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionPipeline":
        return cls(chunker=TextChunker.from_settings(settings))

    def process(self, file_path: str | Path, filename: str) -> IngestionResult:
        """Extract and chunk every page of a PDF.

        Pages whose cleaned text is empty are skipped. Any extraction
        failure yields no chunks and a page count of 0; whether that is an
        ingestion failure is the caller's decision.
        """
        chunks: list[Chunk] = []
        page_count = 0

        try:
            for page in self.parser.iter_pages(file_path):
                page_count += 1
                text = clean_text(page.text)
                if not text:
                    continue
                chunks.extend(
                    self.chunker.chunk(
                        text,
                        page_number=page.number,
                        source_name=filename,
                        start_index=len(chunks),
                    )
                )
        except Exception as e:
            logger.error("PDF processing failed for %s: %s", file_path, e)
            return IngestionResult(chunks=[], page_count=0)

        logger.info(
            "Extracted %d chunks from %d pages of %s", len(chunks), page_count, filename
        )
        return IngestionResult(chunks=chunks, page_count=page_count)


# ============================================
# Embedding + Upsert
# ============================================


@dataclass
class IngestionReport:
    """Outcome of pushing one document's chunks into the index.

    ``chunks_count`` is the number of chunks produced and is what a caller
    stores to reconstruct vector IDs for deletion; ``upserted_count`` is
    the number of vectors the index accepted.
    """

    document_id: int
    filename: str
    chunks_count: int
    upserted_count: int = 0
    failed_embeddings: list[int] = field(default_factory=list)
    failed_batches: int = 0

    @property
    def message(self) -> str:
        return (
            f"Document '{self.filename}' processed successfully "
            f"({self.upserted_count} of {self.chunks_count} chunks indexed)."
        )


def pdf_chunk_vector(document_id: int, chunk: Chunk, values: list[float]) -> Vector:
    return Vector(
        id=make_vector_id(DOCUMENT_KIND, document_id, chunk.chunk_index),
        values=values,
        metadata={
            "source_type": "pdf",
            "document_id": document_id,
            "filename": chunk.source_filename,
            "page": chunk.page,
            "chunk_index": chunk.chunk_index,
            "content_chunk": chunk.text,
        },
    )


class DocumentIngestor:
    """Embeds PDF chunks and upserts them in sequential bounded batches."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndexClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        embed_delay_seconds: float = 0.0,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.batch_size = batch_size
        self.embed_delay_seconds = embed_delay_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "DocumentIngestor":
        return cls(
            embedding_client=EmbeddingClient.from_settings(settings),
            vector_index=VectorIndexClient.from_settings(settings),
            batch_size=settings.batch_size,
            embed_delay_seconds=settings.embed_delay_seconds,
        )

    async def ingest(
        self, document_id: int, filename: str, chunks: list[Chunk]
    ) -> IngestionReport:
        report = IngestionReport(
            document_id=document_id, filename=filename, chunks_count=len(chunks)
        )

        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            vectors: list[Vector] = []

            for chunk in batch:
                if self.embed_delay_seconds:
                    await asyncio.sleep(self.embed_delay_seconds)
                values = await self.embedding_client.embed(chunk.text)
                if not values:
                    logger.warning(
                        "Skipping chunk %d of document %d due to empty embedding",
                        chunk.chunk_index,
                        document_id,
                    )
                    report.failed_embeddings.append(chunk.chunk_index)
                    continue
                vectors.append(pdf_chunk_vector(document_id, chunk, values))

            if not vectors:
                continue

            result = await self.vector_index.upsert(vectors)
            if "error" in result:
                logger.error(
                    "Pinecone upsert error during ingestion of document %d (batch at %d): %s",
                    document_id,
                    start,
                    result["error"],
                )
                report.failed_batches += 1
                continue
            report.upserted_count += len(vectors)

        logger.info(report.message)
        return report

    async def delete(self, document_id: int, chunks_count: int) -> dict:
        """Remove a document's vectors by reconstructing its ID range."""
        if chunks_count <= 0:
            return {"success": True}
        return await self.vector_index.delete_by_ids(
            document_vector_ids(document_id, chunks_count)
        )


# ============================================
# Book Records
# ============================================


def build_book_chunks(book: Book) -> list[str]:
    """Describe a book as a metadata chunk, a title chunk and (if long enough) a description chunk."""
    chunks = [
        f"Book: {book.title}. Author: {book.author}. Category: {book.category}. "
        f"Published: {book.published_year or ''}. Location: Rack {book.rack_location}. "
        f"Description: {book.description}",
        f'The book titled "{book.title}" was written by {book.author} '
        f"and belongs to the {book.category} category.",
    ]
    if book.description and len(book.description) > MIN_DESCRIPTION_CHUNK_LENGTH:
        chunks.append(f'About "{book.title}": {book.description}')
    return chunks


@dataclass
class BookReingestReport:
    books_total: int = 0
    vectors_upserted: int = 0
    failed_books: list[int] = field(default_factory=list)
    wipe_error: str | None = None


class BookIngestor:
    """Indexes catalogue records as ``book-<id>-chunk-<n>`` vectors."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndexClient,
        embed_delay_seconds: float = BOOK_EMBED_DELAY_SECONDS,
    ) -> None:
        self.embedding_client = embedding_client
        self.vector_index = vector_index
        self.embed_delay_seconds = embed_delay_seconds

    async def ingest_book(self, book: Book) -> int:
        """Embed and upsert one book. Returns the number of vectors stored."""
        vectors: list[Vector] = []
        for index, text in enumerate(build_book_chunks(book)):
            if self.embed_delay_seconds:
                await asyncio.sleep(self.embed_delay_seconds)
            values = await self.embedding_client.embed(text)
            if not values:
                logger.warning("Failed to embed chunk %d for book: %s", index, book.title)
                continue
            vectors.append(
                Vector(
                    id=make_vector_id(BOOK_KIND, book.id, index),
                    values=values,
                    metadata={
                        "item_id": book.id,
                        "content_chunk": text,
                        "category": book.category,
                    },
                )
            )

        if not vectors:
            return 0

        result = await self.vector_index.upsert(vectors)
        if "error" in result:
            logger.error("Failed to upsert book: %s. Error: %s", book.title, result["error"])
            return 0
        return len(vectors)

    async def reingest(self, books: list[Book], wipe: bool = True) -> BookReingestReport:
        """Optionally wipe the index, then re-index every book sequentially."""
        report = BookReingestReport(books_total=len(books))

        if wipe:
            logger.info("Wiping existing Pinecone index...")
            result = await self.vector_index.delete_all()
            if "error" in result:
                report.wipe_error = str(result["error"])
                logger.error("Failed to wipe index: %s", report.wipe_error)

        for book in books:
            stored = await self.ingest_book(book)
            if stored == 0:
                report.failed_books.append(book.id)
            report.vectors_upserted += stored

        logger.info(
            "Re-ingestion completed: %d books, %d vectors, %d failed",
            report.books_total,
            report.vectors_upserted,
            len(report.failed_books),
        )
        return report
