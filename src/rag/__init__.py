"""
Pustaka RAG Module

Retrieval building blocks: PDF page extraction, boundary-aware chunking,
Gemini embeddings, the Pinecone index client and context assembly.
"""

from src.rag.chunker import Chunk, PDFParser, TextChunker, clean_text
from src.rag.context import BookSource, ContextBuilder, PdfSource, Source
from src.rag.embedding import EmbeddingClient
from src.rag.events import StreamEvent, format_sse
from src.rag.records import Book, Document, InMemoryRecordStore, RecordLookup
from src.rag.vector_store import (
    Match,
    QueryResult,
    SearchMode,
    Vector,
    VectorIndexClient,
    build_filter,
    document_vector_ids,
    make_vector_id,
)

__all__ = [
    # Chunker
    "Chunk",
    "PDFParser",
    "TextChunker",
    "clean_text",
    # Embedding
    "EmbeddingClient",
    # Vector index
    "Match",
    "QueryResult",
    "SearchMode",
    "Vector",
    "VectorIndexClient",
    "build_filter",
    "document_vector_ids",
    "make_vector_id",
    # Context
    "BookSource",
    "ContextBuilder",
    "PdfSource",
    "Source",
    # Records
    "Book",
    "Document",
    "InMemoryRecordStore",
    "RecordLookup",
    # Events
    "StreamEvent",
    "format_sse",
]
