"""
Library Record Lookup for Pustaka

Book and document records live outside the RAG core. The core only needs
the async lookup interface below; ``InMemoryRecordStore`` implements it for
the default deployment and for tests. The document endpoints write
through the same store so ingested PDFs resolve when cited.
"""

from collections.abc import Iterable
from typing import Protocol

from pydantic import BaseModel


class Book(BaseModel):
    """A catalogue entry for a physical book."""

    id: int
    title: str
    author: str
    category: str = ""
    rack_location: str = ""
    description: str = ""
    published_year: str | None = None


class Document(BaseModel):
    """An uploaded PDF document."""

    id: int
    filename: str
    filepath: str = ""
    file_size: int = 0
    pages_count: int = 0
    chunks_count: int = 0
    status: str = "pending"


class RecordLookup(Protocol):
    """Read access to book and document records."""

    async def all_books(self) -> list[Book]: ...

    async def get_book(self, book_id: int) -> Book | None: ...

    async def get_books(self, book_ids: list[int]) -> list[Book]: ...

    async def get_document(self, document_id: int) -> Document | None: ...

    async def get_documents(self, document_ids: list[int]) -> list[Document]: ...


class InMemoryRecordStore:
    """Dictionary-backed ``RecordLookup``.

    Batch lookups return records in the order of the requested IDs and
    silently skip unknown IDs.
    """

    def __init__(
        self,
        books: Iterable[Book] = (),
        documents: Iterable[Document] = (),
    ) -> None:
        self._books: dict[int, Book] = {b.id: b for b in books}
        self._documents: dict[int, Document] = {d.id: d for d in documents}

    async def all_books(self) -> list[Book]:
        return list(self._books.values())

    async def get_book(self, book_id: int) -> Book | None:
        return self._books.get(_as_int(book_id))

    async def get_books(self, book_ids: list[int]) -> list[Book]:
        found = (self._books.get(_as_int(i)) for i in book_ids)
        return [b for b in found if b is not None]

    async def get_document(self, document_id: int) -> Document | None:
        return self._documents.get(_as_int(document_id))

    async def get_documents(self, document_ids: list[int]) -> list[Document]:
        found = (self._documents.get(_as_int(i)) for i in document_ids)
        return [d for d in found if d is not None]

    def save_document(self, document: Document) -> None:
        self._documents[document.id] = document

    def create_document(self, filename: str, filepath: str = "", file_size: int = 0) -> Document:
        """Register an uploaded file as a new ``pending`` document."""
        document = Document(
            id=max(self._documents, default=0) + 1,
            filename=filename,
            filepath=filepath,
            file_size=file_size,
        )
        self.save_document(document)
        return document

    def list_documents(self) -> list[Document]:
        """All documents, newest first."""
        return sorted(self._documents.values(), key=lambda d: d.id, reverse=True)

    def delete_document(self, document_id: int) -> Document | None:
        return self._documents.pop(_as_int(document_id), None)


def _as_int(value: object) -> int | None:
    # Vector metadata round-trips numbers as floats (e.g. 3.0)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


# ============================================
# Seed Catalogue
# ============================================

SEED_BOOKS: list[Book] = [
    Book(
        id=1,
        title="Clean Code: A Handbook of Agile Software Craftsmanship",
        author="Robert C. Martin",
        rack_location="A-101",
        category="Software Engineering",
        description=(
            "Even bad code can function. But if code isn't clean, it can bring "
            "a development organization to its knees."
        ),
        published_year="2008",
    ),
    Book(
        id=2,
        title="Artificial Intelligence: A Modern Approach",
        author="Stuart Russell, Peter Norvig",
        rack_location="B-205",
        category="Artificial Intelligence",
        description=(
            "The leading textbook in Artificial Intelligence, used in over 1400 "
            "universities in over 128 countries."
        ),
        published_year="2020",
    ),
    Book(
        id=3,
        title="The Pragmatic Programmer: Your Journey to Mastery",
        author="David Thomas, Andrew Hunt",
        rack_location="A-102",
        category="Software Engineering",
        description=(
            "One of the most significant books in my life. Obsolete... except "
            "for the wisdom."
        ),
        published_year="2019",
    ),
    Book(
        id=4,
        title="Deep Learning",
        author="Ian Goodfellow, Yoshua Bengio, Aaron Courville",
        rack_location="B-210",
        category="Artificial Intelligence",
        description=(
            "An introduction to a broad range of topics in deep learning, covering "
            "mathematical and conceptual background."
        ),
        published_year="2016",
    ),
    Book(
        id=5,
        title="Sapiens: A Brief History of Humankind",
        author="Yuval Noah Harari",
        rack_location="H-301",
        category="History",
        description=(
            "Explores how biology and history have defined us and enhanced our "
            'understanding of what it means to be "human".'
        ),
        published_year="2011",
    ),
    Book(
        id=6,
        title="Dune",
        author="Frank Herbert",
        rack_location="F-404",
        category="Science Fiction",
        description=(
            "Set on the desert planet Arrakis, Dune is the story of the boy Paul "
            "Atreides, heir to a noble family."
        ),
        published_year="1965",
    ),
    Book(
        id=7,
        title="Introduction to Algorithms",
        author="Thomas H. Cormen, Charles E. Leiserson, Ronald L. Rivest, Clifford Stein",
        rack_location="A-115",
        category="Computer Science",
        description=(
            "A comprehensive update of the leading algorithms text, with new material "
            "on matchings in bipartite graphs, online algorithms, machine learning, "
            "and other topics."
        ),
        published_year="2009",
    ),
]
