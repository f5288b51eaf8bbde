"""
Context Assembly for Pustaka

Turns ranked vector-store matches into the two products of one retrieval
pass:

- the context block the model reads (every match, in relevance order,
  followed by compact reference lists of the records involved)
- the citation list the user sees (one source per distinct record)

When retrieval returns nothing, both fall back to the full book catalogue
instead of an empty answer.
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel

from src.rag.records import Book, RecordLookup
from src.rag.vector_store import Match

logger = logging.getLogger(__name__)

SCORE_DECIMALS = 4
PDF_SOURCE_TYPE = "pdf"


# ============================================
# Source Models
# ============================================


class BookSource(BaseModel):
    type: Literal["book"] = "book"
    id: int
    title: str
    author: str
    category: str
    rack_location: str
    score: float | None = None


class PdfSource(BaseModel):
    type: Literal["pdf"] = "pdf"
    id: int
    filename: str
    page: int | None = None
    score: float | None = None


Source = BookSource | PdfSource


def _book_source(book: Book, score: float | None) -> BookSource:
    return BookSource(
        id=book.id,
        title=book.title,
        author=book.author,
        category=book.category,
        rack_location=book.rack_location,
        score=score,
    )


# ============================================
# Metadata Helpers
# ============================================


def _is_pdf(match: Match) -> bool:
    # Book vectors carry no source_type; anything but "pdf" is a book chunk
    return match.metadata.get("source_type", "book") == PDF_SOURCE_TYPE


def _round_score(match: Match) -> float:
    return round(match.score or 0.0, SCORE_DECIMALS)


def _record_id(value: Any) -> int | None:
    """Normalize a metadata record ID (Pinecone may return ``3.0`` for ``3``)."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def _display(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ============================================
# Context Builder
# ============================================


class ContextBuilder:
    """Builds prompt context and citation lists from similarity matches."""

    def __init__(self, records: RecordLookup) -> None:
        self.records = records

    async def build_context(self, matches: list[Match]) -> str:
        """Render matches as prompt-ready text.

        Every match contributes its chunk (duplicates included). Referenced
        books and PDF documents are listed once each, in order of first
        appearance.
        """
        if not matches:
            return await self._catalogue_context()

        parts: list[str] = []
        book_ids: list[int] = []
        document_ids: list[int] = []

        for match in matches:
            chunk = match.metadata.get("content_chunk", "")
            score = _round_score(match)

            if _is_pdf(match):
                filename = _display(match.metadata.get("filename"), "Unknown")
                page = _display(match.metadata.get("page"), "?")
                doc_id = _record_id(match.metadata.get("document_id"))
                if doc_id is not None and doc_id not in document_ids:
                    document_ids.append(doc_id)

                parts.append(
                    f'Relevant content from PDF "{filename}" (page {page}, score: {score}):\n'
                    f"{chunk}\n\n"
                )
            else:
                item_id = _record_id(match.metadata.get("item_id"))
                if item_id is not None and item_id not in book_ids:
                    book_ids.append(item_id)

                parts.append(f"Relevant content chunk (score: {score}):\n{chunk}\n\n")

        books = await self.records.get_books(book_ids) if book_ids else []
        if books:
            parts.append("\n\nReferenced Books:\n")
            for book in books:
                parts.append(
                    f'- [{book.id}] "{book.title}" by {book.author}'
                    f" (Category: {book.category}, Rack: {book.rack_location})\n"
                )

        documents = await self.records.get_documents(document_ids) if document_ids else []
        if documents:
            parts.append("\n\nReferenced PDF Documents:\n")
            for doc in documents:
                parts.append(f'- [{doc.id}] "{doc.filename}" ({doc.pages_count} pages)\n')

        return "".join(parts)

    async def extract_sources(self, matches: list[Match]) -> list[Source]:
        """Derive one citation per distinct record, in retrieval order.

        Later matches against an already-cited record are dropped. If no
        match resolves to a record, every book is cited with no score.
        """
        sources: list[Source] = []
        seen_books: set[int] = set()
        seen_documents: set[int] = set()

        for match in matches:
            if _is_pdf(match):
                doc_id = _record_id(match.metadata.get("document_id"))
                if doc_id is None or doc_id in seen_documents:
                    continue
                seen_documents.add(doc_id)

                document = await self.records.get_document(doc_id)
                if document is None:
                    logger.warning("Match %s references unknown document %s", match.id, doc_id)
                    continue
                sources.append(
                    PdfSource(
                        id=document.id,
                        filename=document.filename,
                        page=_record_id(match.metadata.get("page")),
                        score=_round_score(match),
                    )
                )
            else:
                item_id = _record_id(match.metadata.get("item_id"))
                if item_id is None or item_id in seen_books:
                    continue
                seen_books.add(item_id)

                book = await self.records.get_book(item_id)
                if book is None:
                    logger.warning("Match %s references unknown book %s", match.id, item_id)
                    continue
                sources.append(_book_source(book, _round_score(match)))

        if not sources:
            books = await self.records.all_books()
            sources = [_book_source(book, None) for book in books]

        return sources

    async def _catalogue_context(self) -> str:
        books = await self.records.all_books()
        parts = ["Available books in the library:\n\n"]
        for book in books:
            parts.append(
                f"- Title: {book.title}\n"
                f"  Author: {book.author}\n"
                f"  Category: {book.category}\n"
                f"  Rack Location: {book.rack_location}\n"
                f"  Description: {book.description}\n"
                f"  Published Year: {book.published_year or ''}\n\n"
            )
        return "".join(parts)
